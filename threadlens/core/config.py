"""
Configuration management using Pydantic Settings.
"""

from functools import lru_cache
from typing import List, Dict
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Foru.ms credentials - both must be set, otherwise archival runs in demo mode
    forums_api_key: str = Field(
        default="",
        description="Foru.ms API key (optional, enables live archival)"
    )
    forums_org_id: str = Field(
        default="",
        description="Foru.ms organization id (optional, enables live archival)"
    )

    # Gemini API key - analysis fails without it
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key"
    )

    # Reddit Configuration
    reddit_proxy_templates: List[str] = Field(
        default=[
            "https://corsproxy.io/?{url}",
            "https://api.allorigins.win/raw?url={url}",
        ],
        description="CORS proxy URL templates tried in order before the direct URL"
    )
    reddit_comment_limit: int = Field(
        default=50,
        description="Maximum number of comments fetched and analyzed per thread"
    )
    reddit_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
        ),
        description="User-Agent sent when fetching Reddit JSON"
    )
    reddit_api_timeout: float = Field(
        default=30.0,
        description="Reddit request timeout in seconds"
    )

    # Foru.ms Configuration
    forums_base_url: str = Field(
        default="https://foru.ms",
        description="Foru.ms API base URL"
    )
    forums_category_names: List[str] = Field(
        default=["ThreadLens", "Reddit Analysis"],
        description="Category names matched (case-insensitively) when archiving"
    )
    forums_category_cache_ttl: float = Field(
        default=0.0,
        description="Seconds before the cached category id expires (0 = never)"
    )
    forums_post_concurrency: int = Field(
        default=3,
        description="Maximum concurrent top-comment posts per archived thread",
        ge=1
    )
    forums_max_top_comments: int = Field(
        default=5,
        description="Maximum top comments attached to an archived thread"
    )
    forums_api_timeout: float = Field(
        default=30.0,
        description="Foru.ms request timeout in seconds"
    )
    archive_on_analyze: bool = Field(
        default=True,
        description="Archive every analysis to Foru.ms when credentials are present"
    )

    # AI Model Configuration
    gemini_model: str = Field(default="gemini-2.5-flash", description="Gemini model for analysis")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="OpenAI-compatible Gemini endpoint"
    )
    gemini_temperature: float = Field(default=0.7, description="Gemini model temperature for analysis")

    # CORS Configuration
    allowed_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )
    allowed_methods: List[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        description="Allowed HTTP methods"
    )

    # Security Configuration
    max_request_size: int = Field(
        default=5 * 1024 * 1024,  # 5MB
        description="Maximum request body size in bytes"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Global logging level")
    log_file_path: str = Field(
        default="./logs",
        description="Directory path for log files"
    )
    log_file_name: str = Field(
        default="threadlens.log",
        description="Base name for log files"
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Enable logging to files"
    )
    enable_json_logging: bool = Field(
        default=False,
        description="Use structured JSON logging format"
    )
    log_rotation_size: int = Field(
        default=10 * 1024 * 1024,  # 10MB
        description="Log file size before rotation (bytes)"
    )
    log_retention_count: int = Field(
        default=5,
        description="Number of rotated log files to keep"
    )
    module_log_levels: Dict[str, str] = Field(
        default={
            "uvicorn.access": "WARNING",
            "httpx": "WARNING",
            "httpcore": "WARNING",
            "openai": "WARNING",
            "threadlens.services.reddit_fetcher": "INFO",
            "threadlens.services.forum_archiver": "INFO",
        },
        description="Module-specific log levels"
    )

    # Application Configuration
    debug: bool = Field(default=False, description="Enable debug mode")

    # API Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # FastAPI Configuration
    app_version: str = Field(default="v1", description="API version")

    @property
    def forums_configured(self) -> bool:
        """True when both Foru.ms credentials are present (live archival)."""
        return bool(self.forums_api_key and self.forums_org_id)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the settings instance (singleton pattern with lru_cache)."""
    return Settings()
