"""
Shared fixtures for the ThreadLens test suite.
"""

import pytest

from threadlens.core.config import Settings
from threadlens.models.schemas import AnalysisResult, RedditComment, RedditThread

THREAD_URL = "https://www.reddit.com/r/python/comments/abc123/what_is_your_favorite_library/"


def make_reddit_payload(comment_count: int = 3, more_stubs: int = 1, post: dict = None) -> list:
    """Build a `[post_listing, comment_listing]` response like Reddit's .json view."""
    if post is None:
        post = {
            "title": "What is your favorite library?",
            "selftext": "Looking for recommendations.",
            "author": "op_user",
            "score": 120,
            "num_comments": 42,
        }
    comments = [
        {"kind": "t1", "data": {"author": f"user{i}", "body": f"Comment body {i}", "score": 100 - i}}
        for i in range(comment_count)
    ]
    comments += [{"kind": "more", "data": {"count": 10, "children": ["x", "y"]}} for _ in range(more_stubs)]
    return [
        {"kind": "Listing", "data": {"children": [{"kind": "t3", "data": post}] if post else []}},
        {"kind": "Listing", "data": {"children": comments}},
    ]


def make_analysis_payload() -> dict:
    return {
        "tldr": "People like httpx and pydantic.",
        "sentiment": {"overall": "mixed", "score": 55, "reasoning": "Some praise, some complaints"},
        "topComments": [
            {"author": "user0", "text": "httpx is great", "score": 100, "insight": "Popular choice"},
            {"author": "user1", "text": "pydantic v2 is fast", "score": 99, "insight": "Performance"},
        ],
        "themes": [
            {"name": "HTTP clients", "description": "requests vs httpx", "prevalence": "high"},
            {"name": "Validation", "description": "pydantic", "prevalence": "medium"},
        ],
        "keyOpinions": [
            {"opinion": "httpx beats requests", "support": "async support", "sentiment": "positive"},
            {"opinion": "Too many choices", "support": "fragmentation", "sentiment": "negative"},
        ],
        "consensus": {"type": "weak_consensus", "description": "Mostly agree", "agreementLevel": 60},
        "insights": [
            {"title": "Use httpx", "description": "For async code", "actionable": True},
            {"title": "Ecosystem is large", "description": "Hard to choose", "actionable": False},
        ],
        "controversialPoints": ["requests is outdated"],
        "emergingIdeas": ["niquests"],
        "practicalAdvice": ["Pin your dependencies"],
        "metadata": {
            "totalComments": 20,
            "analyzedComments": 10,
            "threadTitle": "What is your favorite library?",
            "threadAuthor": "op_user",
            "threadScore": 120,
        },
    }


@pytest.fixture
def analysis() -> AnalysisResult:
    return AnalysisResult.model_validate(make_analysis_payload())


@pytest.fixture
def thread() -> RedditThread:
    return RedditThread(
        title="What is your favorite library?",
        selftext="Looking for recommendations.",
        author="op_user",
        score=120,
        num_comments=42,
        comments=[RedditComment(author="user0", body="httpx", score=10)],
    )


@pytest.fixture
def demo_settings() -> Settings:
    return Settings(forums_api_key="", forums_org_id="", gemini_api_key="")


@pytest.fixture
def live_settings() -> Settings:
    return Settings(
        forums_api_key="forums-key",
        forums_org_id="org-1",
        forums_base_url="https://forums.test",
        forums_category_names=["ThreadLens", "Reddit Analysis"],
        forums_post_concurrency=2,
        gemini_api_key="gemini-key",
    )
