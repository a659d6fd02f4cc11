# ledger/cache.py
"""
Process-wide tagged cache + the invalidation signal.

Reads wrap expensive computations with `cache.wrap(key, tags, fn)`.
Writes call `invalidate_tags([...])` (usually as a FastAPI background task)
so every cached value under those tags is recomputed on next access.
Each tag also carries a version counter that only goes up; clients can use
it to tell whether their copy is stale.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple, TypeVar

logger = logging.getLogger("ledger.cache")

T = TypeVar("T")

TRANSACTIONS = "transactions"
BUDGETS = "budgets"
REPORTS = "reports"
PAYMENT_METHODS = "payment-methods"
CATEGORIES = "categories"
HOLIDAYS = "holidays"


class TaggedCache:
    def __init__(self, ttl_seconds: float = 3600.0) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._versions: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Tuple[bool, Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            expires_at, value = entry
            if expires_at < time.monotonic():
                del self._entries[key]
                return False, None
            return True, value

    def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str] = (),
        ttl_seconds: Optional[float] = None,
    ) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, value)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)

    def wrap(
        self,
        key: str,
        tags: Iterable[str],
        compute: Callable[[], T],
        ttl_seconds: Optional[float] = None,
    ) -> T:
        hit, value = self.get(key)
        if hit:
            return value
        value = compute()
        self.set(key, value, tags, ttl_seconds)
        return value

    def invalidate(self, *tags: str) -> int:
        """Drop every entry under the tags; returns how many entries were dropped."""
        dropped = 0
        with self._lock:
            for tag in tags:
                for key in self._tags.pop(tag, set()):
                    if self._entries.pop(key, None) is not None:
                        dropped += 1
                self._versions[tag] = self._versions.get(tag, 0) + 1
        return dropped

    def version(self, tag: str) -> int:
        with self._lock:
            return self._versions.get(tag, 0)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()


cache = TaggedCache()


def invalidate_tags(tags: Iterable[str]) -> None:
    """
    Fire-and-forget invalidation: never raises.
    Meant to run after the response via BackgroundTasks.add_task.
    """
    tags = list(tags)
    try:
        dropped = cache.invalidate(*tags)
        logger.debug("invalidated tags=%s entries=%d", tags, dropped)
    except Exception:
        logger.warning("cache invalidation failed for tags=%s", tags, exc_info=True)
