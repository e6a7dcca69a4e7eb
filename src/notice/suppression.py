"""SuppressionCache — per-key deduplication windows with lazy and periodic expiry."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import structlog

from src.core.types import NoticeEventType, NoticeRecord
from src.notice.events import EventBus

logger = structlog.stdlib.get_logger()

# (notice_type, identifier)
SuppressionKey = tuple[str, str]


class SuppressionCache:
    """Maps ``(notice_type, identifier)`` to an absolute expiry time.

    Each entry carries its own expiry, taken from the accepted notice's
    timestamp plus its suppression window, so there is no shared TTL.
    Expired entries are dropped on lookup and by a background sweep.

    Usage::

        cache = SuppressionCache(bus, sweep_interval_secs=60)
        await cache.start()

        if not await cache.is_suppressed(n.notice_type, n.identifier, notice=n):
            ...
            await cache.begin_suppression(
                n.notice_type, n.identifier, n.timestamp + n.suppress_for, notice=n
            )

        await cache.stop()
    """

    def __init__(
        self,
        bus: EventBus | None = None,
        clock: Callable[[], float] | None = None,
        sweep_interval_secs: float = 60.0,
    ) -> None:
        self._clock = clock or time.time
        self._bus = bus or EventBus(clock=self._clock)
        self._sweep_interval = sweep_interval_secs
        self._entries: dict[SuppressionKey, float] = {}
        self._task: asyncio.Task[None] | None = None
        self._running = False

    # ── Lookup / insert ─────────────────────────────────────────

    def expiry_of(self, notice_type: str, identifier: str) -> float | None:
        """Expiry of a live entry, or None. Removes the entry if it has expired."""
        key = (notice_type, identifier)
        expiry = self._entries.get(key)
        if expiry is None:
            return None
        if expiry <= self._clock():
            del self._entries[key]
            return None
        return expiry

    async def is_suppressed(
        self,
        notice_type: str,
        identifier: str | None,
        notice: NoticeRecord | None = None,
    ) -> bool:
        """True if a live entry exists for the key.

        Emits a SUPPRESSED event when true and *notice* is given.
        """
        if identifier is None:
            return False
        expiry = self.expiry_of(notice_type, identifier)
        if expiry is None:
            return False
        if notice is not None:
            await self._bus.emit(NoticeEventType.SUPPRESSED, notice, expires_at=expiry)
        return True

    async def begin_suppression(
        self,
        notice_type: str,
        identifier: str,
        expiry: float,
        notice: NoticeRecord | None = None,
    ) -> None:
        """Insert or overwrite the entry for a key."""
        self._entries[(notice_type, identifier)] = expiry
        logger.debug(
            "suppression_started",
            notice_type=notice_type,
            identifier=identifier,
            expires_at=expiry,
        )
        if notice is not None:
            await self._bus.emit(
                NoticeEventType.BEGIN_SUPPRESSION, notice, expires_at=expiry
            )

    # ── Eviction ────────────────────────────────────────────────

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [k for k, expiry in self._entries.items() if expiry <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("suppression_sweep", removed=len(expired), live=len(self._entries))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    async def start(self) -> None:
        # A zero interval leaves eviction to lookups alone.
        if self._running or self._sweep_interval <= 0:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    @property
    def running(self) -> bool:
        return self._running

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("suppression_sweep_error")

    # ── Introspection ───────────────────────────────────────────

    def __contains__(self, key: SuppressionKey) -> bool:
        return self.expiry_of(*key) is not None

    def __len__(self) -> int:
        return len(self._entries)
