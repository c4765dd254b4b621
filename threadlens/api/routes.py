"""
API routes for the ThreadLens API.
"""

from datetime import datetime
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from threadlens.core.config import get_settings
from threadlens.core.exceptions import ValidationException
from threadlens.core.logging import get_logger
from threadlens.models.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    AnalyzeResponse,
    ArchiveResult,
    SaveRequest,
)
from threadlens.services.category_cache import CategoryCache
from threadlens.services.forum_archiver import ForumArchiver
from threadlens.services.health_score import calculate_health_score, health_label
from threadlens.services.insight_generator import InsightGenerator
from threadlens.services.reddit_fetcher import RedditFetcher

# Initialize router, logger, and settings
router = APIRouter()
logger = get_logger(__name__)
settings = get_settings()

# Answer for bare OPTIONS requests; real preflights are handled by CORSMiddleware
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# Dependencies

def get_category_cache(request: Request) -> CategoryCache:
    return request.app.state.category_cache


async def get_reddit_fetcher() -> AsyncIterator[RedditFetcher]:
    async with RedditFetcher() as fetcher:
        yield fetcher


async def get_insight_generator() -> InsightGenerator:
    return InsightGenerator()


async def get_forum_archiver(
    cache: CategoryCache = Depends(get_category_cache),
) -> AsyncIterator[ForumArchiver]:
    async with ForumArchiver(cache=cache) as archiver:
        yield archiver


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint that returns API status.
    """
    logger.info("Health check endpoint accessed")
    return {
        "status": "healthy",
        "version": settings.app_version,
        "service": "threadlens-api",
        "forums_mode": "live" if settings.forums_configured else "demo",
        "ai_configured": bool(settings.gemini_api_key),
        "timestamp": datetime.now().isoformat(),
    }


@router.options("/api/analyze")
@router.options("/api/forums/save")
async def cors_options() -> JSONResponse:
    return JSONResponse(content={}, headers=CORS_HEADERS)


@router.post("/api/analyze", response_model=AnalyzeResponse, response_model_exclude_none=True)
async def analyze_thread(
    request: AnalyzeRequest,
    fetcher: RedditFetcher = Depends(get_reddit_fetcher),
    generator: InsightGenerator = Depends(get_insight_generator),
    archiver: ForumArchiver = Depends(get_forum_archiver),
) -> AnalyzeResponse:
    """
    Fetch a Reddit thread, analyze it, and archive the analysis when Foru.ms
    credentials are configured.

    Args:
        request: Body with the Reddit thread URL

    Returns:
        AnalyzeResponse: The analysis with health score and, when archived, the Foru.ms thread

    Raises:
        ValidationException: When the URL is missing
        RedditFetchException: When every Reddit fetch attempt fails
        AIAnalysisException: When the AI analysis fails
    """
    if not request.url or not request.url.strip():
        raise ValidationException("URL is required", field="url")

    url = request.url.strip()

    # Phase 1: Reddit data
    logger.info(f"Fetching Reddit data for: {url}")
    thread = await fetcher.fetch_thread(url)

    # Phase 2: AI analysis
    logger.info("Running AI analysis...")
    analysis = await generator.generate(thread)

    # Phase 3: Best-effort Foru.ms sync
    forums_thread = None
    if settings.archive_on_analyze and archiver.is_live:
        logger.info("Syncing to Foru.ms...")
        archived = await archiver.try_archive(analysis, url)
        forums_thread = archived.thread if archived else None
    else:
        logger.info("Skipping Foru.ms sync - no credentials or disabled")

    health_score = calculate_health_score(analysis)
    logger.info(
        f"Analysis complete for '{thread.title}': "
        f"{len(thread.comments)}/{thread.num_comments} comments, health score {health_score}"
    )

    payload = analysis.model_dump()
    for key in ("healthScore", "healthLabel", "forumsThread"):
        payload.pop(key, None)
    payload.update(
        health_score=health_score,
        health_label=health_label(health_score),
        forums_thread=forums_thread,
    )
    return AnalyzeResponse.model_validate(payload)


@router.post("/api/forums/save", response_model=ArchiveResult, response_model_exclude_none=True)
async def save_to_forums(
    request: SaveRequest,
    archiver: ForumArchiver = Depends(get_forum_archiver),
) -> ArchiveResult:
    """
    Archive an analysis to Foru.ms.

    Args:
        request: Body with the analysis and the original Reddit URL

    Returns:
        ArchiveResult: Thread id and URL (demo values without credentials)

    Raises:
        ValidationException: When the analysis is missing
        ForumArchiveException: When Foru.ms rejects the thread
    """
    if request.analysis is None:
        raise ValidationException("Analysis data is required", field="analysis")

    analysis = AnalysisResult.model_validate(request.analysis)
    logger.info(f"Saving analysis of '{analysis.metadata.thread_title}' to Foru.ms")

    return await archiver.archive(analysis, request.original_url)
