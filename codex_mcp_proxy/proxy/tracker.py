"""In-flight request table with TTL eviction.

Owned by the proxy's single control loop, so no locking is done here; a
multi-threaded host must serialize access to one tracker.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from codex_mcp_proxy.protocol.messages import Request, RequestId

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_MAX_SIZE = 10000


@dataclass(slots=True)
class PendingRequest:
    request: Request
    enqueued_at: float


class CorrelationTracker:
    """Maps forwarded request ids to the original request until the response arrives."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._pending: dict[RequestId, PendingRequest] = {}
        # Ids the proxy already answered itself; a late backend reply for one is dropped.
        self._answered: dict[RequestId, float] = {}

    def track(self, request: Request) -> None:
        """Record a forwarded request. Ids that are absent or null are not tracked.

        A colliding id replaces the earlier entry.
        """
        if request.is_notification or request.id is None:
            return
        if len(self._pending) >= self.max_size:
            evicted = self.sweep()
            if len(self._pending) >= self.max_size:
                logger.warning(
                    "Pending request table over capacity ({} entries, max {}, {} evicted); tracking anyway",
                    len(self._pending),
                    self.max_size,
                    evicted,
                )
        self._answered.pop(request.id, None)
        if request.id in self._pending:
            logger.debug("Request id {} reused while still pending; replacing entry", request.id)
        self._pending[request.id] = PendingRequest(request=request, enqueued_at=self._clock())

    def complete(self, request_id: RequestId) -> Request | None:
        """Remove and return the request for ``request_id``, or ``None`` when unknown."""
        if request_id is None:
            return None
        entry = self._pending.pop(request_id, None)
        return entry.request if entry is not None else None

    def sweep(self) -> int:
        """Evict entries older than the TTL and return how many were removed."""
        now = self._clock()
        for rid in [rid for rid, at in self._answered.items() if now - at > self.ttl_seconds]:
            del self._answered[rid]
        expired = [rid for rid, entry in self._pending.items() if now - entry.enqueued_at > self.ttl_seconds]
        for rid in expired:
            del self._pending[rid]
        return len(expired)

    def settle(self, request_id: RequestId) -> Request | None:
        """Remove a pending request that was answered locally.

        Until the TTL passes, a backend response carrying the same id is reported
        by ``take_settled`` and must not be relayed.
        """
        request = self.complete(request_id)
        if request_id is not None:
            self._answered[request_id] = self._clock()
        return request

    def take_settled(self, request_id: RequestId) -> bool:
        """True (once) when ``request_id`` was settled locally and is still remembered."""
        if request_id is None:
            return False
        return self._answered.pop(request_id, None) is not None

    @property
    def size(self) -> int:
        return len(self._pending)

    def has(self, request_id: RequestId) -> bool:
        return request_id in self._pending

    def clear(self) -> None:
        self._pending.clear()
        self._answered.clear()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending
