"""EmailDelayCoordinator — holds notice emails while delay tokens are outstanding."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Coroutine
from typing import Any

import structlog

from src.core.config import MailConfig, NoticeConfig
from src.core.types import NoticeEventType, NoticeRecord
from src.notice.events import EventBus
from src.notice.mail import MailTransport, compose_email

logger = structlog.stdlib.get_logger()


class EmailDelayCoordinator:
    """Sends notice emails, deferring while collaborators hold delay tokens.

    A deferred send is retried every ``email_retry_interval_secs`` until
    ``notice.email_delay_tokens`` is empty or ``notice.timestamp +
    max_email_delay_secs`` has passed. The deadline is fixed at the
    notice's own timestamp; retries never extend it. Past the deadline the
    email goes out anyway with a warning naming the held tokens.

    Delivery itself runs in a background task bounded by
    ``delivery_timeout_secs``; callers never wait on the transport.

    Usage::

        coordinator = EmailDelayCoordinator(transport, mail_cfg, notice_cfg)
        notice.email_delay_tokens.add("dns-lookup")
        await coordinator.send(notice, "soc@example.com", extend=True)
        # ... later, the collaborator finishes:
        notice.email_delay_tokens.discard("dns-lookup")
    """

    def __init__(
        self,
        transport: MailTransport | None,
        mail_config: MailConfig | None = None,
        notice_config: NoticeConfig | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        from src.core.config import get_settings

        self._transport = transport
        self._mail_config = mail_config or get_settings().mail
        self._notice_config = notice_config or get_settings().notice
        self._clock = clock or time.time
        self._bus = bus or EventBus(clock=self._clock)
        self._retries: set[asyncio.Task[None]] = set()
        self._deliveries: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of sends deferred for retry or still being delivered."""
        return len(self._retries) + len(self._deliveries)

    async def send(self, notice: NoticeRecord, dest: str, extend: bool) -> bool:
        """Start delivery, defer, or do nothing.

        Returns True once delivery has been handed to the transport in the
        background; the outcome is logged and reported by an EMAIL_SENT
        event. Never waits on the transport itself.
        """
        if not dest or self._transport is None or not self._notice_config.live_mode:
            return False

        if extend and notice.email_delay_tokens:
            now = self._clock()
            started = notice.timestamp if notice.timestamp is not None else now
            if started + self._notice_config.max_email_delay_secs > now:
                self._track(self._retries, self._retry(notice, dest, extend))
                return False
            logger.warning(
                "email_delay_tokens_unreleased",
                notice_type=notice.notice_type,
                tokens=sorted(notice.email_delay_tokens),
                max_delay_secs=self._notice_config.max_email_delay_secs,
            )

        text = compose_email(notice, dest, extend, self._mail_config)
        self._track(
            self._deliveries, self._deliver(self._transport, notice, dest, text)
        )
        return True

    async def _deliver(
        self, transport: MailTransport, notice: NoticeRecord, dest: str, text: str
    ) -> None:
        timeout = self._mail_config.delivery_timeout_secs
        try:
            await asyncio.wait_for(transport.deliver(text), timeout=timeout)
        except TimeoutError:
            logger.error(
                "mail_delivery_timeout",
                notice_type=notice.notice_type,
                dest=dest,
                timeout_secs=timeout,
            )
            return
        except Exception:
            logger.exception(
                "mail_transport_error",
                notice_type=notice.notice_type,
                dest=dest,
            )
            return

        logger.info("email_sent", notice_type=notice.notice_type, dest=dest)
        await self._bus.emit(NoticeEventType.EMAIL_SENT, notice)

    # ── Background tasks ────────────────────────────────────────

    @staticmethod
    def _track(
        tasks: set[asyncio.Task[None]], coro: Coroutine[Any, Any, None]
    ) -> None:
        task = asyncio.create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    async def _retry(self, notice: NoticeRecord, dest: str, extend: bool) -> None:
        await asyncio.sleep(self._notice_config.email_retry_interval_secs)
        try:
            await self.send(notice, dest, extend)
        except Exception:
            logger.exception("email_retry_error", notice_type=notice.notice_type)

    async def wait_idle(self) -> None:
        """Wait until no sends are deferred or in flight."""
        while self._retries or self._deliveries:
            tasks = [*self._retries, *self._deliveries]
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Cancel deferred sends and let in-flight deliveries finish.

        Deferred emails are not delivered. In-flight ones are bounded by
        ``delivery_timeout_secs``.
        """
        retries = list(self._retries)
        for task in retries:
            task.cancel()
        if retries:
            await asyncio.gather(*retries, return_exceptions=True)
            logger.info("email_retries_cancelled", count=len(retries))
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)
