"""Observability event fan-out for the notice framework."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from src.core.types import NoticeEvent, NoticeEventType, NoticeRecord

logger = structlog.stdlib.get_logger()

NoticeEventCallback = Callable[[NoticeEvent], Awaitable[None] | None]


class EventBus:
    """Delivers notice events to registered callbacks.

    Callbacks may be plain functions or coroutines. A failing callback is
    logged and does not affect the others or the notice being handled.
    Events are stamped with *clock*, the monitoring clock of the owner.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._callbacks: list[NoticeEventCallback] = []
        self._clock = clock or time.time

    def on_event(self, callback: NoticeEventCallback) -> None:
        """Register a callback for notice events."""
        self._callbacks.append(callback)

    async def emit(
        self,
        event_type: NoticeEventType,
        notice: NoticeRecord,
        expires_at: float | None = None,
    ) -> None:
        if not self._callbacks:
            return
        event = NoticeEvent(
            event_type=event_type,
            notice=notice,
            expires_at=expires_at,
            timestamp=self._clock(),
        )
        for cb in self._callbacks:
            try:
                result = cb(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(
                    "notice_event_callback_error",
                    event_type=event_type,
                    notice_type=notice.notice_type,
                )
