"""
Foru.ms archival of analysis results.

An analysis becomes a Foru.ms thread with a markdown summary body, and its
top comments become posts on that thread. Without both Foru.ms credentials
the archiver runs in demo mode and makes no outbound calls.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from threadlens.core.config import Settings, get_settings
from threadlens.core.exceptions import BaseAPIException, ForumArchiveException, ForumErrorCodes
from threadlens.models.schemas import AnalysisResult, ArchiveResult, ForumThreadRef, TopComment
from threadlens.services.category_cache import CategoryCache
from threadlens.services.health_score import calculate_health_score

logger = logging.getLogger(__name__)

SOURCE_TAG = "threadlens"


def _extract_id(payload: Any, *keys: str) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def _bullets(lines: List[str], empty: str) -> str:
    return "\n".join(lines) if lines else empty


def build_thread_body(analysis: AnalysisResult, original_url: str) -> str:
    """Render an analysis as the markdown body of a Foru.ms thread."""
    sentiment = analysis.sentiment
    consensus = analysis.consensus

    themes = [f"- **{t.name}** ({t.prevalence}): {t.description}" for t in analysis.themes]
    insights = [
        f"- {'✅' if i.actionable else '💡'} **{i.title}:** {i.description}"
        for i in analysis.insights
    ]
    advice = [f"- {a}" for a in analysis.practical_advice]

    return f"""## AI Analysis Summary

**TL;DR:** {analysis.tldr}

### Sentiment Analysis
- **Overall:** {sentiment.overall} (Score: {sentiment.score}/100)
- **Reasoning:** {sentiment.reasoning}

### Consensus
- **Type:** {consensus.type.replace("_", " ")}
- **Agreement Level:** {consensus.agreement_level}%
- **Description:** {consensus.description}

### Key Themes
{_bullets(themes, "No themes identified")}

### Top Insights
{_bullets(insights, "No insights")}

### Practical Advice
{_bullets(advice, "No advice")}

---
*Analyzed by ThreadLens | Original: {original_url}*"""


def build_comment_body(comment: TopComment) -> str:
    quoted = "\n> ".join(comment.text.splitlines() or [""])
    return (
        f"**u/{comment.author}** ({comment.score} upvotes):\n> {quoted}\n\n"
        f"**AI Insight:** {comment.insight}"
    )


class ForumArchiver:
    """
    Creates Foru.ms threads from analysis results.

    The category id is resolved at most once per cache lifetime; the cache is
    injected so that a single instance can be shared across requests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[CategoryCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else CategoryCache(self.settings.forums_category_cache_ttl)
        self.base_url = self.settings.forums_base_url.rstrip("/")
        self.headers = {
            "x-api-key": self.settings.forums_api_key,
            "Content-Type": "application/json",
        }
        self.client = client
        self._owns_client = client is None

    @property
    def is_live(self) -> bool:
        return self.settings.forums_configured

    async def __aenter__(self):
        """Async context manager entry"""
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.forums_api_timeout))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None

    def _api_url(self, resource: str) -> str:
        return f"{self.base_url}/api/v1/{resource}"

    def _demo_result(self) -> ArchiveResult:
        stamp = int(time.time() * 1000)
        logger.info("Demo mode - no Foru.ms credentials configured")
        return ArchiveResult(
            success=True,
            thread=ForumThreadRef(id=f"demo-{stamp}", url=f"{self.base_url}/demo/thread/{stamp}"),
            message="Saved to Foru.ms (Demo Mode)",
        )

    # Category resolution

    async def _list_categories(self) -> List[Dict[str, Any]]:
        response = await self.client.get(self._api_url("categories"), headers=self.headers)
        logger.info(f"Categories response status: {response.status_code}")

        if not response.is_success or not response.text:
            return []

        data = response.json()
        if isinstance(data, dict):
            categories = data.get("categories") or data.get("list") or []
        elif isinstance(data, list):
            categories = data
        else:
            categories = []

        return [c for c in categories if isinstance(c, dict) and _extract_id(c, "id")]

    def _pick_category(self, categories: List[Dict[str, Any]]) -> Optional[str]:
        wanted = {name.strip().lower() for name in self.settings.forums_category_names}
        for category in categories:
            name = category.get("name") or category.get("title")
            if isinstance(name, str) and name.strip().lower() in wanted:
                logger.info(f"Matched category by name: {name}")
                return _extract_id(category, "id")
        if categories:
            logger.info("No category name matched, using first available category")
            return _extract_id(categories[0], "id")
        return None

    async def _create_category(self) -> Optional[str]:
        if not self.settings.forums_category_names:
            return None
        name = self.settings.forums_category_names[0]
        response = await self.client.post(
            self._api_url("category"),
            json={"name": name, "description": "Reddit discussions analyzed by ThreadLens"},
            headers=self.headers,
        )
        if not response.is_success:
            logger.warning(f"Category creation failed ({response.status_code}): {response.text[:200]}")
            return None

        data = response.json()
        if isinstance(data, dict) and isinstance(data.get("category"), dict):
            data = data["category"]
        return _extract_id(data, "id", "_id")

    async def resolve_category(self) -> Optional[str]:
        """
        Find a category for new threads: cached id, a category whose name
        matches one of the configured names, the first available category,
        or a newly created one. Returns None when all of these fail; threads
        are then created without a category.
        """
        cached = self.cache.get()
        if cached:
            return cached

        try:
            category_id = self._pick_category(await self._list_categories())
            if category_id is None:
                logger.info("No categories available, attempting to create one")
                category_id = await self._create_category()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Category resolution failed, continuing without category: {type(e).__name__}: {e}")
            return None

        if category_id is None:
            logger.info("No category available, will try without categoryId")
            return None

        return self.cache.set(category_id)

    # Thread and post creation

    def _thread_url(self, thread: Dict[str, Any], thread_id: str) -> str:
        for key in ("url", "link"):
            if isinstance(thread.get(key), str) and thread[key]:
                return thread[key]
        if thread.get("slug"):
            return f"{self.base_url}/thread/{thread['slug']}"
        return f"{self.base_url}/thread/{thread_id}"

    async def _post_top_comments(self, thread_id: str, comments: List[TopComment]) -> int:
        """Attach top comments as posts; returns the number of failed posts."""
        comments = comments[: self.settings.forums_max_top_comments]
        if not comments:
            return 0

        semaphore = asyncio.Semaphore(self.settings.forums_post_concurrency)

        async def post_with_semaphore(comment: TopComment) -> None:
            async with semaphore:
                response = await self.client.post(
                    self._api_url("post"),
                    json={
                        "body": build_comment_body(comment),
                        "threadId": thread_id,
                        "extendedData": {
                            "type": "top_comment",
                            "author": comment.author,
                            "score": comment.score,
                        },
                    },
                    headers=self.headers,
                )
                response.raise_for_status()

        results = await asyncio.gather(
            *[post_with_semaphore(comment) for comment in comments],
            return_exceptions=True
        )

        failed = 0
        for comment, result in zip(comments, results):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(f"Failed to attach comment by u/{comment.author}: {type(result).__name__}: {result}")

        logger.info(f"Attached {len(comments) - failed}/{len(comments)} top comments to thread {thread_id}")
        return failed

    async def archive(self, analysis: AnalysisResult, original_url: str) -> ArchiveResult:
        """
        Archive an analysis as a Foru.ms thread.

        Args:
            analysis: Validated analysis result
            original_url: Reddit thread URL, linked from the thread body

        Returns:
            ArchiveResult with the thread id and URL (demo values without credentials)

        Raises:
            ForumArchiveException: When Foru.ms is unreachable or rejects the thread
        """
        if not self.is_live:
            return self._demo_result()

        if self.client is None:
            await self.__aenter__()

        category_id = await self.resolve_category()
        logger.info(f"Category ID: {category_id or 'none - will try without'}")

        request_body: Dict[str, Any] = {
            "title": f"[Analysis] {analysis.metadata.thread_title}",
            "body": build_thread_body(analysis, original_url),
            "extendedData": {
                "source": SOURCE_TAG,
                "originalUrl": original_url,
                "sentimentScore": analysis.sentiment.score,
                "consensusLevel": analysis.consensus.agreement_level,
                "healthScore": calculate_health_score(analysis),
                "analyzedAt": datetime.now(timezone.utc).isoformat(),
            },
        }
        if category_id:
            request_body["categoryId"] = category_id

        logger.info(f"Creating thread with title: {request_body['title']}")

        try:
            response = await self.client.post(self._api_url("thread"), json=request_body, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error(f"Foru.ms request failed: {type(e).__name__}: {e}")
            raise ForumArchiveException(
                f"Failed to reach Foru.ms: {str(e) or type(e).__name__}",
                error_code=ForumErrorCodes.NETWORK_ERROR,
            )

        if not response.is_success:
            error_text = response.text
            logger.error(f"Foru.ms API error: {response.status_code} {error_text[:500]}")
            raise ForumArchiveException(
                f"Foru.ms API Error ({response.status_code}): {error_text or 'Unknown error'}",
                upstream_status=response.status_code,
                upstream_body=error_text,
                error_code=ForumErrorCodes.THREAD_CREATE_FAILED,
            )

        try:
            thread = response.json()
        except ValueError:
            thread = {}
        if not isinstance(thread, dict):
            thread = {}

        thread_id = _extract_id(thread, "id", "_id", "threadId")
        if not thread_id:
            logger.error(f"No thread ID in Foru.ms response: {str(thread)[:500]}")
            return ArchiveResult(
                success=True,
                thread=ForumThreadRef(id="saved", url=self.base_url),
                message="Thread saved but ID not returned",
            )

        failed = await self._post_top_comments(thread_id, analysis.top_comments)
        thread_url = self._thread_url(thread, thread_id)
        logger.info(f"Thread archived: {thread_id} at {thread_url}")

        return ArchiveResult(
            success=True,
            thread=ForumThreadRef(id=thread_id, url=thread_url),
            message=f"{failed} top comment(s) could not be attached" if failed else None,
            failed_comments=failed,
        )

    async def try_archive(self, analysis: AnalysisResult, original_url: str) -> Optional[ArchiveResult]:
        """Best-effort archive: failures are logged and reported as None."""
        try:
            return await self.archive(analysis, original_url)
        except (BaseAPIException, httpx.HTTPError, ValueError) as e:
            logger.error(f"Foru.ms sync error: {e}")
            return None
