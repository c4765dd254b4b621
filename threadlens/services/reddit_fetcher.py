"""
Reddit thread fetcher.

Reads a thread through Reddit's public `.json` view. Server-side requests to
reddit.com are often blocked, so the URL is first tried through public CORS
proxies and only then directly. Each candidate is attempted exactly once.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from threadlens.core.config import Settings, get_settings
from threadlens.core.exceptions import RedditFetchException, RedditErrorCodes, ValidationException
from threadlens.models.schemas import RedditComment, RedditThread

logger = logging.getLogger(__name__)

COMMENT_KIND = "t1"


def normalize_reddit_url(url: str, limit: int = 50) -> str:
    """
    Turn a thread URL into its JSON listing URL.

    Query string and fragment are dropped, a single trailing slash is
    stripped, `.json` is appended unless already present, and the comment
    limit is added as the only query parameter.

    Raises:
        ValidationException: When the URL cannot be parsed (bad host or port)
    """
    url = url.strip()
    if "://" not in url:
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError for a non-numeric or out-of-range port
    except ValueError as e:
        raise ValidationException("Invalid Reddit URL", field="url", debug_info={"reason": str(e)})

    path = parts.path
    if path.endswith("/"):
        path = path[:-1]
    if not path.endswith(".json"):
        path = f"{path}.json"

    return urlunsplit((parts.scheme, parts.netloc, path, f"limit={limit}", ""))


def build_fetch_urls(json_url: str, proxy_templates: List[str]) -> List[str]:
    """Proxy-rewritten URLs in template order, followed by the direct URL."""
    encoded = quote(json_url, safe="")
    return [template.format(url=encoded) for template in proxy_templates] + [json_url]


def _children(listing: Any) -> List[Dict[str, Any]]:
    if not isinstance(listing, dict):
        return []
    data = listing.get("data")
    if not isinstance(data, dict):
        return []
    children = data.get("children")
    if not isinstance(children, list):
        return []
    return [child for child in children if isinstance(child, dict)]


def parse_reddit_listing(payload: Any, comment_limit: int = 50) -> RedditThread:
    """
    Normalize Reddit's `[post_listing, comment_listing]` response.

    Only kind `t1` comments are kept ("more" stubs are dropped), in source
    order, truncated to `comment_limit`.

    Raises:
        RedditFetchException: When the payload is not a two-element listing
            array or the post object is missing
    """
    if not isinstance(payload, list) or len(payload) < 2:
        raise RedditFetchException(
            "Unexpected Reddit response format",
            error_code=RedditErrorCodes.MALFORMED_RESPONSE,
            debug_info={"response_type": type(payload).__name__},
        )

    post_children = _children(payload[0])
    post = post_children[0].get("data") if post_children else None
    if not isinstance(post, dict) or not post:
        raise RedditFetchException(
            "Invalid Reddit URL or post not found",
            error_code=RedditErrorCodes.POST_NOT_FOUND,
        )

    comments = [
        RedditComment.model_validate(child.get("data") or {})
        for child in _children(payload[1])
        if child.get("kind") == COMMENT_KIND
    ][:comment_limit]

    return RedditThread(
        title=post.get("title"),
        selftext=post.get("selftext") or "",
        author=post.get("author"),
        score=post.get("score"),
        num_comments=post.get("num_comments"),
        comments=comments,
    )


class RedditFetcher:
    """
    Fetches and normalizes a single Reddit thread.
    An httpx client may be injected; otherwise one is created and owned.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self.headers = {
            "User-Agent": self.settings.reddit_user_agent,
            "Accept": "application/json",
        }
        self.client = client
        self._owns_client = client is None

    async def __aenter__(self):
        """Async context manager entry"""
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers=self.headers,
                timeout=httpx.Timeout(self.settings.reddit_api_timeout),
                follow_redirects=True,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None

    async def _fetch_listing(self, fetch_url: str) -> RedditThread:
        response = await self.client.get(fetch_url, headers=self.headers)

        if not response.is_success:
            raise RedditFetchException(
                f"HTTP {response.status_code}",
                url=fetch_url,
                debug_info={"response_text": response.text[:500]},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise RedditFetchException(
                f"Invalid JSON response: {e}",
                url=fetch_url,
                error_code=RedditErrorCodes.MALFORMED_RESPONSE,
                debug_info={"content_type": response.headers.get("content-type")},
            )

        return parse_reddit_listing(payload, self.settings.reddit_comment_limit)

    async def fetch_thread(self, url: str) -> RedditThread:
        """
        Fetch a thread, trying each proxy and then the direct URL once.

        Args:
            url: Reddit thread URL as submitted by the user

        Returns:
            RedditThread with up to `reddit_comment_limit` comments

        Raises:
            ValidationException: When the URL cannot be parsed
            RedditFetchException: When every candidate URL fails
        """
        if self.client is None:
            await self.__aenter__()

        json_url = normalize_reddit_url(url, self.settings.reddit_comment_limit)
        logger.info(f"Fetching Reddit thread from: {json_url}")

        last_error: Optional[Exception] = None
        for fetch_url in build_fetch_urls(json_url, self.settings.reddit_proxy_templates):
            try:
                logger.info(f"Trying: {fetch_url[:100]}")
                thread = await self._fetch_listing(fetch_url)
            except (httpx.HTTPError, httpx.InvalidURL, RedditFetchException) as e:
                logger.warning(f"Failed with {fetch_url[:50]}: {type(e).__name__}: {e}")
                last_error = e
                continue

            logger.info(f"Reddit data received: '{thread.title}' with {len(thread.comments)} comments")
            return thread

        reason = (str(last_error) or type(last_error).__name__) if last_error else "Unknown error"
        raise RedditFetchException(
            f"Failed to fetch Reddit data after trying all methods: {reason}",
            url=json_url,
            error_code=RedditErrorCodes.ALL_ATTEMPTS_FAILED,
        )
