"""
Pydantic models for the ThreadLens API.

The AI analysis arrives from an untrusted model, so every AnalysisResult field
is optional and out-of-vocabulary values degrade to defaults instead of
failing validation. JSON leaves the service in camelCase, the shape the web
page and browser extension read.
"""

import logging
import math
from typing import List, Dict, Any, Optional, Literal, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SentimentType = Literal["positive", "negative", "neutral", "mixed"]
OpinionSentimentType = Literal["positive", "negative", "neutral"]
PrevalenceType = Literal["high", "medium", "low"]
ConsensusType = Literal["strong_consensus", "weak_consensus", "divided", "controversial", "exploratory"]

ModelT = TypeVar("ModelT", bound=BaseModel)


def _coerce_choice(value: Any, choices: tuple, default: str) -> str:
    if isinstance(value, str):
        normalized = value.strip().lower().replace(" ", "_")
        if normalized in choices:
            return normalized
    return default


def _coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return math.floor(float(value) + 0.5)
    except (TypeError, ValueError, OverflowError):
        return default


def _coerce_percent(value: Any, default: int = 50) -> int:
    return min(100, max(0, _coerce_int(value, default)))


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _coerce_label(value: Any) -> Any:
    # None stays None so an item without its label is still dropped
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1", "on")
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return False


def _coerce_items(model: Type[ModelT], value: Any, fallback_field: Optional[str] = None) -> List[ModelT]:
    """Validate each list item on its own, dropping the ones that do not fit."""
    if not isinstance(value, list):
        return []
    kept = []
    for item in value:
        if isinstance(item, str) and fallback_field:
            item = {fallback_field: item}
        try:
            kept.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping invalid {model.__name__} item: {e.error_count()} error(s)")
    return kept


def _coerce_strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else str(item) for item in value if item is not None]


class APIModel(BaseModel):
    """Base model accepting both camelCase aliases and field names."""

    class Config:
        populate_by_name = True


# Reddit records

class RedditComment(APIModel):
    """A single top-level Reddit comment."""

    author: str = ""
    body: str = ""
    score: int = 0

    @field_validator("author", "body", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> int:
        return _coerce_int(value)


class RedditThread(APIModel):
    """A Reddit submission with its first page of comments."""

    title: str = ""
    selftext: str = ""
    author: str = ""
    score: int = 0
    num_comments: int = Field(default=0, alias="numComments")
    comments: List[RedditComment] = Field(default_factory=list)

    @field_validator("title", "selftext", "author", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("score", "num_comments", mode="before")
    @classmethod
    def _counts(cls, value: Any) -> int:
        return _coerce_int(value)


# AI analysis

class SentimentBlock(APIModel):
    overall: SentimentType = "neutral"
    score: int = 50
    reasoning: str = ""

    @field_validator("overall", mode="before")
    @classmethod
    def _overall(cls, value: Any) -> str:
        return _coerce_choice(value, ("positive", "negative", "neutral", "mixed"), "neutral")

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> int:
        return _coerce_percent(value)

    @field_validator("reasoning", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)


class ConsensusBlock(APIModel):
    type: ConsensusType = "exploratory"
    description: str = ""
    agreement_level: int = Field(default=50, alias="agreementLevel")

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: Any) -> str:
        return _coerce_choice(
            value,
            ("strong_consensus", "weak_consensus", "divided", "controversial", "exploratory"),
            "exploratory",
        )

    @field_validator("agreement_level", mode="before")
    @classmethod
    def _level(cls, value: Any) -> int:
        return _coerce_percent(value)

    @field_validator("description", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)


class TopComment(APIModel):
    author: str = ""
    text: str = ""
    score: int = 0
    insight: str = ""

    @field_validator("author", "text", "insight", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> int:
        return _coerce_int(value)


class Theme(APIModel):
    name: str
    description: str = ""
    prevalence: PrevalenceType = "medium"

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> Any:
        return _coerce_label(value)

    @field_validator("prevalence", mode="before")
    @classmethod
    def _prevalence(cls, value: Any) -> str:
        return _coerce_choice(value, ("high", "medium", "low"), "medium")

    @field_validator("description", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)


class KeyOpinion(APIModel):
    opinion: str
    support: str = ""
    sentiment: OpinionSentimentType = "neutral"

    @field_validator("opinion", mode="before")
    @classmethod
    def _opinion(cls, value: Any) -> Any:
        return _coerce_label(value)

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, value: Any) -> str:
        return _coerce_choice(value, ("positive", "negative", "neutral"), "neutral")

    @field_validator("support", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)


class Insight(APIModel):
    title: str
    description: str = ""
    actionable: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> Any:
        return _coerce_label(value)

    @field_validator("description", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("actionable", mode="before")
    @classmethod
    def _actionable(cls, value: Any) -> bool:
        return _coerce_bool(value)


class AnalysisMetadata(APIModel):
    """Counts and titles describing the analyzed thread."""

    total_comments: int = Field(default=0, alias="totalComments")
    analyzed_comments: int = Field(default=0, alias="analyzedComments")
    thread_title: str = Field(default="", alias="threadTitle")
    thread_author: str = Field(default="", alias="threadAuthor")
    thread_score: int = Field(default=0, alias="threadScore")

    @field_validator("total_comments", "analyzed_comments", "thread_score", mode="before")
    @classmethod
    def _counts(cls, value: Any) -> int:
        return _coerce_int(value)

    @field_validator("thread_title", "thread_author", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)

    @classmethod
    def from_thread(cls, thread: RedditThread) -> "AnalysisMetadata":
        return cls(
            total_comments=thread.num_comments,
            analyzed_comments=len(thread.comments),
            thread_title=thread.title,
            thread_author=thread.author,
            thread_score=thread.score,
        )


class AnalysisResult(APIModel):
    """Structured discussion report produced by the AI model."""

    tldr: str = ""
    sentiment: SentimentBlock = Field(default_factory=SentimentBlock)
    top_comments: List[TopComment] = Field(default_factory=list, alias="topComments")
    themes: List[Theme] = Field(default_factory=list)
    key_opinions: List[KeyOpinion] = Field(default_factory=list, alias="keyOpinions")
    consensus: ConsensusBlock = Field(default_factory=ConsensusBlock)
    insights: List[Insight] = Field(default_factory=list)
    controversial_points: List[str] = Field(default_factory=list, alias="controversialPoints")
    emerging_ideas: List[str] = Field(default_factory=list, alias="emergingIdeas")
    practical_advice: List[str] = Field(default_factory=list, alias="practicalAdvice")
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    class Config:
        populate_by_name = True
        extra = "allow"  # keep fields the model adds beyond the requested shape

    @field_validator("tldr", mode="before")
    @classmethod
    def _tldr(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("sentiment", "consensus", "metadata", mode="before")
    @classmethod
    def _block(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, BaseModel)) else {}

    @field_validator("top_comments", mode="before")
    @classmethod
    def _top_comments(cls, value: Any) -> List[TopComment]:
        return _coerce_items(TopComment, value, fallback_field="text")

    @field_validator("themes", mode="before")
    @classmethod
    def _themes(cls, value: Any) -> List[Theme]:
        return _coerce_items(Theme, value, fallback_field="name")

    @field_validator("key_opinions", mode="before")
    @classmethod
    def _key_opinions(cls, value: Any) -> List[KeyOpinion]:
        return _coerce_items(KeyOpinion, value, fallback_field="opinion")

    @field_validator("insights", mode="before")
    @classmethod
    def _insights(cls, value: Any) -> List[Insight]:
        return _coerce_items(Insight, value, fallback_field="title")

    @field_validator("controversial_points", "emerging_ideas", "practical_advice", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> List[str]:
        return _coerce_strings(value)


# Foru.ms archival

class ForumThreadRef(APIModel):
    """Id and URL of a thread created in Foru.ms."""

    id: str
    url: str


class ArchiveResult(APIModel):
    """Outcome of archiving an analysis to Foru.ms."""

    success: bool = True
    thread: ForumThreadRef
    message: Optional[str] = None
    failed_comments: int = Field(default=0, alias="failedComments")


# Requests and responses

class AnalyzeRequest(APIModel):
    """Request body for POST /api/analyze."""

    url: Optional[str] = Field(default=None, description="Reddit thread URL")


class SaveRequest(APIModel):
    """Request body for POST /api/forums/save."""

    analysis: Optional[Dict[str, Any]] = Field(default=None, description="AnalysisResult to archive")
    original_url: str = Field(default="", alias="originalUrl", description="Reddit thread URL")

    @field_validator("original_url", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _coerce_text(value)


class AnalyzeResponse(AnalysisResult):
    """AnalysisResult enriched with the derived health score."""

    health_score: int = Field(alias="healthScore")
    health_label: str = Field(alias="healthLabel")
    forums_thread: Optional[ForumThreadRef] = Field(default=None, alias="forumsThread")
