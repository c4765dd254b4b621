"""
Process-lifetime cache for the Foru.ms category id.
"""

import time
from typing import Callable, Optional


class CategoryCache:
    """
    Holds a single category id. The first stored value wins until it expires
    or is invalidated; a ttl of 0 means it never expires.

    Access is unsynchronized. Concurrent requests may both resolve a category,
    in which case the first write is kept.
    """

    def __init__(self, ttl_seconds: float = 0.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._category_id: Optional[str] = None
        self._stored_at: float = 0.0

    def get(self) -> Optional[str]:
        if self._category_id is None:
            return None
        if self.ttl_seconds > 0 and self._clock() - self._stored_at >= self.ttl_seconds:
            self.invalidate()
            return None
        return self._category_id

    def set(self, category_id: str) -> str:
        """Store category_id unless a live value exists; return the value in effect."""
        current = self.get()
        if current is not None:
            return current
        self._category_id = category_id
        self._stored_at = self._clock()
        return category_id

    def invalidate(self) -> None:
        self._category_id = None
        self._stored_at = 0.0
