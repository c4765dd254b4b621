"""
FastAPI application for the ThreadLens API.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import uuid
from datetime import datetime
from typing import Callable, Any, Dict, Optional

from threadlens.core.config import get_settings
from threadlens.core.logging import get_logger, setup_logging
from threadlens.api.routes import CORS_HEADERS, router
from threadlens.core.exceptions import BaseAPIException, ForumArchiveException
from threadlens.services.category_cache import CategoryCache

# Initialize settings and logging
settings = get_settings()
setup_logging()
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="ThreadLens API",
    description="AI-powered sentiment and insight reports for Reddit discussions, with Foru.ms archival",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Shared across requests for the life of the process
app.state.category_cache = CategoryCache(ttl_seconds=settings.forums_category_cache_ttl)

# Permissive CORS: the browser extension calls the API from any origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=False,
    allow_methods=settings.allowed_methods,
    allow_headers=["Content-Type"],
)


@app.middleware("http")
async def request_size_limit_middleware(request: Request, call_next: Callable[[Request], Any]) -> Any:
    """Reject request bodies larger than the configured limit."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_request_size:
        return JSONResponse(
            status_code=413,
            content=_error_content(
                "REQUEST_TOO_LARGE",
                f"Request body too large. Maximum size is {settings.max_request_size / (1024*1024):.1f}MB",
                _new_request_id(),
            ),
            headers=CORS_HEADERS,
        )

    return await call_next(request)


@app.middleware("http")
async def log_requests(request: Request, call_next: Callable[[Request], Any]) -> Any:
    """Log all HTTP requests and responses."""
    start_time = time.time()

    logger.info(
        f"Request: {request.method} {request.url.path} - "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        f"Response: {response.status_code} - Processing time: {process_time:.3f}s",
        extra={
            "endpoint": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "duration_ms": round(process_time * 1000, 2),
        }
    )

    return response


def _new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _error_content(error_code: str, message: str, request_id: str) -> Dict[str, Any]:
    # `error` is the field the web page and extension display verbatim
    return {
        "error": message,
        "error_code": error_code,
        "request_id": request_id,
        "timestamp": datetime.now().isoformat(),
    }


def _with_debug_info(content: Dict[str, Any], debug_info: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if settings.debug and debug_info:
        content["debug_info"] = debug_info
    return content


# Exception handlers, most specific first

@app.exception_handler(ForumArchiveException)
async def forum_archive_exception_handler(request: Request, exc: ForumArchiveException) -> JSONResponse:
    """Handle Foru.ms errors, passing the upstream status and body through."""
    request_id = _new_request_id()

    logger.error(
        f"Foru.ms Error [{request_id}]: {exc.error_code} - {exc.message}",
        extra={
            "request_id": request_id,
            "error_code": exc.error_code,
            "upstream_status": exc.upstream_status,
        }
    )

    content = _error_content(exc.error_code, exc.message, request_id)
    if exc.upstream_status is not None:
        content["details"] = {"status": exc.upstream_status, "response": exc.upstream_body}

    return JSONResponse(status_code=exc.status_code, content=_with_debug_info(content, exc.debug_info))


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    """Handle custom API exceptions with detailed logging."""
    request_id = _new_request_id()

    logger.error(
        f"API Exception [{request_id}]: {exc.error_code} - {exc.message}",
        extra={
            "request_id": request_id,
            "error_code": exc.error_code,
            "endpoint": str(request.url.path),
            "method": request.method,
            "debug_info": exc.debug_info,
        }
    )

    content = _error_content(exc.error_code, exc.message, request_id)
    return JSONResponse(status_code=exc.status_code, content=_with_debug_info(content, exc.debug_info))


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are client errors with the usual error shape."""
    request_id = _new_request_id()
    errors = [{"loc": list(error.get("loc", ())), "msg": error.get("msg")} for error in exc.errors()]
    logger.warning(f"Invalid request body [{request_id}] for {request.url.path}: {errors}")

    content = _error_content("VALIDATION_002", "Invalid request body", request_id)
    return JSONResponse(
        status_code=400,
        content=_with_debug_info(content, {"errors": errors}),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions globally with enhanced logging."""
    request_id = _new_request_id()

    logger.error(
        f"Unhandled Exception [{request_id}]: {type(exc).__name__} - {str(exc)}",
        exc_info=True,
        extra={
            "request_id": request_id,
            "endpoint": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
        }
    )

    # Runs outside CORSMiddleware, so the headers are added here
    return JSONResponse(
        status_code=500,
        content=_error_content("INTERNAL_001", "An unexpected error occurred. Please try again later.", request_id),
        headers=CORS_HEADERS,
    )


# Include API routes
app.include_router(router)


@app.on_event("startup")
async def startup_event() -> None:
    """Log startup information and configuration state."""
    logger.info("🚀 ThreadLens API starting up...")
    logger.info(f"📍 Version: {settings.app_version}")
    logger.info(f"🔧 Debug mode: {settings.debug}")
    logger.info(f"📊 Log level: {settings.log_level}")
    logger.info(f"🤖 Model: {settings.gemini_model}")

    if not settings.gemini_api_key:
        logger.warning("⚠️  GEMINI_API_KEY is not set - analysis requests will fail")
    if settings.forums_configured:
        logger.info("✅ Foru.ms archival is live")
    else:
        logger.info("ℹ️  Foru.ms credentials missing - archival runs in demo mode")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Log shutdown information."""
    logger.info("🛑 ThreadLens API shutting down...")


if __name__ == "__main__":
    import uvicorn

    print("✅ Settings loaded successfully!")
    print("🔑 API Keys configured:")
    print(f"   - Gemini: {'✓' if settings.gemini_api_key else '✗'}")
    print(f"   - Foru.ms: {'✓' if settings.forums_configured else '✗ (demo mode)'}")
    print("📝 Logging configuration:")
    print(f"   - Level: {settings.log_level}")
    print(f"   - File Logging: {'✓' if settings.enable_file_logging else '✗'}")
    print(f"   - JSON Format: {'✓' if settings.enable_json_logging else '✗'}")

    uvicorn.run(
        "threadlens.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
