"""Convenience factory for wiring the notice framework."""

from __future__ import annotations

from collections.abc import Callable

from src.core.config import Settings
from src.notice.framework import NoticeFramework
from src.notice.log_writer import JsonlLogWriter, LogWriter, StructlogLogWriter
from src.notice.mail import MailTransport, SendmailTransport


def create_log_writer(settings: Settings) -> LogWriter:
    cfg = settings.log_output
    if cfg.writer == "jsonl":
        return JsonlLogWriter(
            cfg.directory,
            primary_filename=cfg.primary_filename,
            alarm_filename=cfg.alarm_filename,
        )
    return StructlogLogWriter()


def create_mail_transport(settings: Settings) -> MailTransport | None:
    """A sendmail transport, or None when mail is not configured."""
    if not settings.mail.destination or not settings.mail.sendmail_path:
        return None
    return SendmailTransport(
        settings.mail.sendmail_path,
        timeout_secs=settings.mail.delivery_timeout_secs,
    )


def create_notice_framework(
    settings: Settings,
    writer: LogWriter | None = None,
    transport: MailTransport | None = None,
    clock: Callable[[], float] | None = None,
) -> NoticeFramework:
    """Build a framework from config, filling in collaborators not supplied."""
    return NoticeFramework(
        settings,
        writer=writer or create_log_writer(settings),
        transport=transport or create_mail_transport(settings),
        clock=clock,
    )
