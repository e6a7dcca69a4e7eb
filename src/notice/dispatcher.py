"""ActionDispatcher — performs the resolved actions for an accepted notice."""

from __future__ import annotations

import structlog

from src.core.config import MailConfig
from src.core.types import Action, LogStream, NoticeEventType, NoticeRecord
from src.notice.email import EmailDelayCoordinator
from src.notice.events import EventBus
from src.notice.log_writer import LogWriter
from src.notice.suppression import SuppressionCache

logger = structlog.stdlib.get_logger()


class ActionDispatcher:
    """Executes email, log and alarm actions, then records suppression.

    - EMAIL is initiated first; delivery runs in the background and may
      be deferred, so it never holds up the writes below.
    - LOG writes to the primary stream after a PRE_LOG event.
    - ALARM writes to the alarm stream.
    - Each successful write is followed by a LOG_WRITTEN or ALARM_WRITTEN
      event.
    - Each action is isolated: a failing collaborator is logged and the
      remaining actions still run.
    - Finally, a suppression entry is started if the notice has an
      identifier, a non-zero window, and no live entry yet.
    """

    def __init__(
        self,
        writer: LogWriter,
        email: EmailDelayCoordinator,
        cache: SuppressionCache,
        mail_config: MailConfig | None = None,
        bus: EventBus | None = None,
    ) -> None:
        from src.core.config import get_settings

        self._writer = writer
        self._email = email
        self._cache = cache
        self._mail_config = mail_config or get_settings().mail
        self._bus = bus or EventBus()

    async def dispatch(self, notice: NoticeRecord) -> None:
        actions = notice.actions

        if Action.EMAIL in actions:
            try:
                await self._email.send(notice, self._mail_config.destination, extend=True)
            except Exception:
                logger.exception("email_dispatch_error", notice_type=notice.notice_type)

        if Action.LOG in actions:
            await self._bus.emit(NoticeEventType.PRE_LOG, notice)
            if self._write(LogStream.PRIMARY, notice):
                await self._bus.emit(NoticeEventType.LOG_WRITTEN, notice)

        if Action.ALARM in actions:
            if self._write(LogStream.ALARM, notice):
                await self._bus.emit(NoticeEventType.ALARM_WRITTEN, notice)

        await self._bus.emit(NoticeEventType.DISPATCHED, notice)
        await self._record_suppression(notice)

    def _write(self, stream: LogStream, notice: NoticeRecord) -> bool:
        try:
            self._writer.write(stream, notice)
        except Exception:
            logger.exception(
                "log_write_error",
                stream=stream.value,
                notice_type=notice.notice_type,
            )
            return False
        return True

    async def _record_suppression(self, notice: NoticeRecord) -> None:
        key = notice.suppression_key
        if key is None or not notice.suppress_for:
            return
        if key in self._cache:
            return
        timestamp = notice.timestamp or 0.0
        await self._cache.begin_suppression(
            notice.notice_type,
            notice.identifier,  # type: ignore[arg-type]
            timestamp + notice.suppress_for,
            notice=notice,
        )
