"""NoticeFramework — the entry point detection modules raise notices through."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Callable
from types import TracebackType

import structlog

from src.core.config import NoticeConfig, Settings
from src.core.types import (
    NoticeEvent,
    NoticeEventType,
    NoticeRecord,
    is_registered_notice_type,
)
from src.notice.dispatcher import ActionDispatcher
from src.notice.email import EmailDelayCoordinator
from src.notice.events import EventBus, NoticeEventCallback
from src.notice.files import FileDescriber
from src.notice.log_writer import LogWriter, StructlogLogWriter
from src.notice.mail import MailTransport
from src.notice.metrics import NoticeMetrics
from src.notice.policy import PolicyEngine, PolicyHook, PolicyHookFn, ResolvedNotice
from src.notice.suppression import SuppressionCache, SuppressionKey

logger = structlog.stdlib.get_logger()


class NoticeFramework:
    """Policy evaluation, deduplication and dispatch for raised notices.

    Each notice goes through, strictly in order: policy (defaults and hook
    chain), the suppression check, then dispatch. Notices dropped by a
    hook or found suppressed stop early.

    Usage::

        framework = NoticeFramework(settings, writer=writer, transport=transport)
        framework.register_hook(my_hook, priority=-5)
        framework.on_event(my_callback)

        async with framework:
            await framework.raise_notice(NoticeRecord(notice_type=PORT_SCAN, ...))
    """

    def __init__(
        self,
        settings: Settings | None = None,
        writer: LogWriter | None = None,
        transport: MailTransport | None = None,
        clock: Callable[[], float] | None = None,
        file_describer: FileDescriber | None = None,
    ) -> None:
        from src.core.config import get_settings

        self._settings = settings or get_settings()
        cfg = self._settings.notice

        self._bus = EventBus(clock=clock)
        self._writer = writer or StructlogLogWriter()
        self._policy = PolicyEngine(cfg, clock=clock, file_describer=file_describer)
        self._cache = SuppressionCache(
            self._bus,
            clock=clock,
            sweep_interval_secs=cfg.suppression_sweep_interval_secs,
        )
        self._email = EmailDelayCoordinator(
            transport,
            mail_config=self._settings.mail,
            notice_config=cfg,
            bus=self._bus,
            clock=clock,
        )
        self._dispatcher = ActionDispatcher(
            self._writer,
            self._email,
            self._cache,
            mail_config=self._settings.mail,
            bus=self._bus,
        )
        self._metrics = NoticeMetrics()
        self._bus.on_event(self._metrics.on_notice_event)

        # One lock per live suppression key; entries vanish when unused.
        self._locks: weakref.WeakValueDictionary[SuppressionKey, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

        _warn_unregistered_types(cfg)

    # ── Properties ──────────────────────────────────────────────

    @property
    def policy(self) -> PolicyEngine:
        return self._policy

    @property
    def cache(self) -> SuppressionCache:
        return self._cache

    @property
    def email(self) -> EmailDelayCoordinator:
        return self._email

    @property
    def metrics(self) -> NoticeMetrics:
        return self._metrics

    # ── Extension points ────────────────────────────────────────

    def register_hook(
        self,
        fn: PolicyHookFn,
        priority: int = 0,
        name: str | None = None,
    ) -> PolicyHook:
        """Register a policy hook; see :meth:`PolicyEngine.register_hook`."""
        return self._policy.register_hook(fn, priority=priority, name=name)

    def on_event(
        self,
        callback: NoticeEventCallback,
        event_type: NoticeEventType | None = None,
    ) -> None:
        """Register a callback for notice events, optionally for one type only."""
        if event_type is None:
            self._bus.on_event(callback)
            return

        def _filtered(event: NoticeEvent):  # type: ignore[no-untyped-def]
            if event.event_type == event_type:
                return callback(event)
            return None

        self._bus.on_event(_filtered)

    # ── Entry point ─────────────────────────────────────────────

    async def raise_notice(self, notice: NoticeRecord) -> ResolvedNotice:
        """Apply policy, check suppression, and dispatch the notice."""
        resolved = self._policy.apply(notice)
        if resolved.dropped:
            await self._bus.emit(NoticeEventType.DROPPED, notice)
            return resolved

        key = notice.suppression_key
        if key is None:
            await self._dispatcher.dispatch(notice)
            return resolved

        lock = self._lock_for(key)
        async with lock:
            if await self._cache.is_suppressed(
                notice.notice_type, notice.identifier, notice=notice
            ):
                logger.debug(
                    "notice_suppressed",
                    notice_type=notice.notice_type,
                    identifier=notice.identifier,
                )
                resolved.suppressed = True
                return resolved
            await self._dispatcher.dispatch(notice)
        return resolved

    def _lock_for(self, key: SuppressionKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        await self._cache.start()
        logger.info(
            "notice_framework_started",
            hooks=len(self._policy.hooks),
            live_mode=self._settings.notice.live_mode,
        )

    async def stop(self) -> None:
        await self._cache.stop()
        await self._email.close()
        self._writer.close()
        logger.info("notice_framework_stopped")

    async def __aenter__(self) -> NoticeFramework:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    def snapshot(self) -> dict[str, object]:
        """Current cache size, deferred emails and metric totals."""
        return {
            "suppression_entries": len(self._cache),
            "pending_emails": self._email.pending,
            "hooks": [h.name for h in self._policy.hooks],
            "metrics": self._metrics.summary(),
        }


def _warn_unregistered_types(cfg: NoticeConfig) -> None:
    tables: dict[str, set[str]] = {
        "ignored_types": cfg.ignored_types,
        "emailed_types": cfg.emailed_types,
        "alarmed_types": cfg.alarmed_types,
        "not_suppressed_types": cfg.not_suppressed_types,
        "type_suppression_intervals": set(cfg.type_suppression_intervals),
    }
    for table, names in tables.items():
        unknown = sorted(n for n in names if not is_registered_notice_type(n))
        if unknown:
            logger.warning(
                "unregistered_notice_types_in_config",
                table=table,
                notice_types=unknown,
            )
