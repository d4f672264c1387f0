"""
In-memory, time-limited store for submitted wish texts.

Freshness is decided by each entry's ``expires_at`` on every read. The
eviction timer scheduled at insert time only reclaims memory; a read that
races ahead of it still reports "not found".
"""

import asyncio
import logging
import time
import uuid
from typing import Callable

from models import WishTextEntry

logger = logging.getLogger(__name__)


class TextStore:
    def __init__(self, ttl_seconds: float = 600.0, max_chars: int = 2000, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.max_chars = max_chars
        self._clock = clock
        self._entries: dict[str, WishTextEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, text: str) -> WishTextEntry:
        """Store text under a fresh opaque id. Raises ValueError for empty or oversized text."""
        if not isinstance(text, str) or not text.strip():
            raise ValueError("text must be a non-empty string")
        if len(text) > self.max_chars:
            raise ValueError(f"text exceeds {self.max_chars} characters")

        # Timers never fire without a running loop, so sweep on every write
        self.purge_expired()

        entry = WishTextEntry(
            id=uuid.uuid4().hex,
            text=text,
            expires_at=self._clock() + self.ttl_seconds,
        )
        self._entries[entry.id] = entry
        self._schedule_eviction(entry)
        return entry

    def get(self, entry_id: str) -> WishTextEntry | None:
        """Return the entry if it exists and has not expired. Reads never extend the TTL."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._evict(entry_id, entry.expires_at)
            return None
        return entry

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock()
        stale = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in stale:
            self._entries.pop(key, None)
        return len(stale)

    def _schedule_eviction(self, entry: WishTextEntry) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (CLI/tests): expiry is still enforced on read
            return
        loop.call_later(self.ttl_seconds, self._evict, entry.id, entry.expires_at)

    def _evict(self, entry_id: str, expires_at: float) -> None:
        entry = self._entries.get(entry_id)
        # Only remove the entry this eviction was scheduled for
        if entry is not None and entry.expires_at == expires_at:
            del self._entries[entry_id]
            logger.debug("Evicted wish text %s", entry_id)
