"""
Custom exception classes for the ThreadLens API.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException


class BaseAPIException(HTTPException):
    """Base exception class for all API errors."""

    def __init__(
        self,
        error_code: str,
        message: str,
        status_code: int = 500,
        debug_info: Optional[Dict[str, Any]] = None,
        **additional_debug_info
    ):
        self.error_code = error_code
        self.message = message

        self.debug_info = debug_info or {}
        # Merge keyword debug info, skipping values that were not supplied
        self.debug_info.update(
            {key: value for key, value in additional_debug_info.items() if value is not None}
        )

        detail = {
            "error_code": error_code,
            "message": message,
            "debug_info": self.debug_info
        }

        super().__init__(status_code=status_code, detail=detail)

    def __str__(self) -> str:
        return self.message


class ValidationException(BaseAPIException):
    """Exception for request validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: str = "VALIDATION_001",
        debug_info: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=400,
            debug_info=debug_info,
            field=field
        )


class RedditFetchException(BaseAPIException):
    """Exception for Reddit fetch and listing parse errors."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: int = 500,
        error_code: str = "REDDIT_001",
        debug_info: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=status_code,
            debug_info=debug_info,
            url=url
        )


class AIAnalysisException(BaseAPIException):
    """Exception for AI analysis related errors."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        status_code: int = 500,
        error_code: str = "AI_001",
        debug_info: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            error_code=error_code,
            message=f"AI analysis failed: {message}",
            status_code=status_code,
            debug_info=debug_info,
            model=model
        )


class ForumArchiveException(BaseAPIException):
    """Exception for Foru.ms archival errors."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
        status_code: int = 500,
        error_code: str = "FORUMS_001",
        debug_info: Optional[Dict[str, Any]] = None
    ):
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=status_code,
            debug_info=debug_info,
            upstream_status=upstream_status,
        )


class AIResponseParseError(ValueError):
    """Raised when a model response does not contain a parseable JSON object."""


# Granular error codes for client-side error handling
class RedditErrorCodes:
    """Predefined error codes for Reddit fetch errors."""
    ALL_ATTEMPTS_FAILED = "REDDIT_FETCH_001"
    POST_NOT_FOUND = "REDDIT_NOTFOUND_002"
    MALFORMED_RESPONSE = "REDDIT_RESPONSE_003"


class AIErrorCodes:
    """Predefined error codes for AI analysis errors."""
    API_KEY_MISSING = "AI_AUTH_001"
    PROVIDER_ERROR = "AI_PROVIDER_002"
    PARSING_FAILED = "AI_PARSE_003"


class ForumErrorCodes:
    """Predefined error codes for Foru.ms archival errors."""
    THREAD_CREATE_FAILED = "FORUMS_THREAD_001"
    NETWORK_ERROR = "FORUMS_NETWORK_002"
