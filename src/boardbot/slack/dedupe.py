"""Drop Slack event redeliveries.

Slack retries an event when the ack is slow, so the same event id can
arrive more than once. Seen ids are kept for ``ttl_s`` seconds; expired
entries are purged lazily once the cache grows past ``max_entries``.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog

from boardbot.config import settings

logger = structlog.get_logger()


class EventDeduplicator:
    def __init__(
        self,
        ttl_s: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s if ttl_s is not None else settings.event_dedup_ttl_s
        self.max_entries = max_entries if max_entries is not None else settings.event_dedup_max_entries
        self._clock = clock
        self._seen: dict[str, float] = {}

    def is_duplicate(self, event_id: str) -> bool:
        """Record *event_id* and report whether it was already seen within the TTL."""
        now = self._clock()
        seen_at = self._seen.get(event_id)
        if seen_at is not None and now - seen_at < self.ttl_s:
            logger.debug("duplicate_event_dropped", event_id=event_id)
            return True

        if len(self._seen) >= self.max_entries:
            self._purge(now)

        self._seen[event_id] = now
        return False

    def _purge(self, now: float) -> None:
        stale = [k for k, ts in self._seen.items() if now - ts >= self.ttl_s]
        for k in stale:
            del self._seen[k]

    def __len__(self) -> int:
        return len(self._seen)
