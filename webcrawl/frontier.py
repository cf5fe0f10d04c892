"""Crawl frontier: the FIFO work queue plus the visited / in-flight dedup ledger.

Every mutating operation runs under one asyncio.Condition, so admission
(check-and-insert), claim and completion are atomic with respect to the
other workers. The lock is never held across a fetch.
"""
from __future__ import annotations
import asyncio
import re
from collections import deque
from typing import Optional, Pattern

from webcrawl.models import FrontierEntry
from webcrawl.urls import normalize_url


class BaseFrontier:
    async def offer(self, url: str, depth: int) -> bool:
        raise NotImplementedError

    async def claim(self, max_inflight: Optional[int] = None) -> Optional[FrontierEntry]:
        raise NotImplementedError

    async def complete(self, url: str) -> None:
        raise NotImplementedError

    async def is_drained(self) -> bool:
        raise NotImplementedError

    async def wait_for_work(self, timeout: float) -> None:
        raise NotImplementedError

    def in_scope(self, url: str, depth: int) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def size(self) -> int:
        raise NotImplementedError

    def seen(self, url: str) -> bool:
        raise NotImplementedError

    def visited_size(self) -> int:
        raise NotImplementedError

    def inflight_size(self) -> int:
        raise NotImplementedError


class MemoryFrontier(BaseFrontier):
    def __init__(
        self,
        *,
        max_depth: int = 0,
        url_pattern: Optional[str] = None,
        exclude_pattern: Optional[str] = None,
    ) -> None:
        self.max_depth = max_depth
        self._include: Optional[Pattern[str]] = re.compile(url_pattern) if url_pattern else None
        self._exclude: Optional[Pattern[str]] = re.compile(exclude_pattern) if exclude_pattern else None
        self._queue: deque[FrontierEntry] = deque()
        self._visited: set[str] = set()
        self._inflight: set[str] = set()
        self._closed = False
        self._cond = asyncio.Condition()

    def in_scope(self, url: str, depth: int) -> bool:
        """Depth and include/exclude predicates; independent of dedup state."""
        if depth < 0:
            return False
        if self.max_depth and depth > self.max_depth:
            return False
        if self._include is not None and not self._include.search(url):
            return False
        if self._exclude is not None and self._exclude.search(url):
            return False
        return True

    async def offer(self, url: str, depth: int) -> bool:
        normalized = normalize_url(url)
        if normalized is None:
            return False
        async with self._cond:
            if self._closed:
                return False
            if normalized in self._visited or normalized in self._inflight:
                return False
            if not self.in_scope(normalized, depth):
                return False
            # visited before queued: a second offer of the same URL is a no-op
            self._visited.add(normalized)
            self._queue.append(FrontierEntry(url=normalized, depth=depth))
            self._cond.notify_all()
            return True

    async def claim(self, max_inflight: Optional[int] = None) -> Optional[FrontierEntry]:
        async with self._cond:
            if self._closed or not self._queue:
                return None
            if max_inflight is not None and len(self._inflight) >= max_inflight:
                return None
            entry = self._queue.popleft()
            self._inflight.add(entry.url)
            return entry

    async def complete(self, url: str) -> None:
        async with self._cond:
            self._inflight.discard(url)
            self._cond.notify_all()

    async def is_drained(self) -> bool:
        async with self._cond:
            return not self._queue and not self._inflight

    async def wait_for_work(self, timeout: float) -> None:
        """Sleep until the frontier changes (offer/complete) or timeout elapses."""
        async with self._cond:
            try:
                await asyncio.wait_for(self._cond.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def size(self) -> int:
        return len(self._queue)

    def seen(self, url: str) -> bool:
        normalized = normalize_url(url) or url
        return normalized in self._visited or normalized in self._inflight

    def visited_size(self) -> int:
        return len(self._visited)

    def inflight_size(self) -> int:
        return len(self._inflight)
