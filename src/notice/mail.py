"""Notice email composition and mail transports."""

from __future__ import annotations

import abc
import asyncio

import structlog

from src.core.config import MailConfig
from src.core.types import NoticeRecord
from src.notice.exceptions import MailTransportError

logger = structlog.stdlib.get_logger()

SIGNATURE = "\n\n--\n[Automatically generated]\n\n"


def compose_headers(subject: str, dest: str, config: MailConfig) -> str:
    """Header block terminated by the blank separator line."""
    lines = [
        f"From: {config.mail_from}",
        f"Subject: {config.subject_prefix} {subject}",
        f"To: {dest}",
        f"User-Agent: {config.user_agent}",
    ]
    if config.reply_to:
        lines.append(f"Reply-To: {config.reply_to}")
    return "\n".join(lines) + "\n"


def compose_email(
    notice: NoticeRecord,
    dest: str,
    extend: bool,
    config: MailConfig,
) -> str:
    """Build the raw message text for *notice*.

    The "Email Extensions" section is only included when *extend* is set.
    """
    parts = [compose_headers(notice.notice_type, dest, config)]

    parts.append(f"\nMessage: {notice.message or ''}\n")
    if notice.sub_message is not None:
        parts.append(f"Sub-message: {notice.sub_message}\n")
    parts.append("\n")

    if notice.file_description is not None:
        parts.append(f"File Description: {notice.file_description}\n")
    if notice.file_mime_type is not None:
        parts.append(f"File MIME Type: {notice.file_mime_type}\n")
    if notice.file_description is not None or notice.file_mime_type is not None:
        parts.append("\n")

    cid = notice.connection_id
    if cid is not None:
        parts.append(
            f"Connection: {cid.orig_h}:{cid.orig_p.number}"
            f" -> {cid.resp_h}:{cid.resp_p.number}\n"
        )
        if notice.connection_uid is not None:
            parts.append(f"Connection uid: {notice.connection_uid}\n")
    elif notice.source_addr is not None:
        parts.append(f"Address: {notice.source_addr}\n")

    if extend:
        parts.append("\nEmail Extensions\n")
        parts.append("----------------\n")
        for section in notice.email_body_extensions:
            parts.append(f"{section}\n")

    parts.append(SIGNATURE)
    return "".join(parts)


# ── Transports ──────────────────────────────────────────────────


class MailTransport(abc.ABC):
    """Base class for message delivery."""

    @abc.abstractmethod
    async def deliver(self, raw_message: str) -> None:
        """Deliver a fully composed message. Raises MailTransportError on failure."""


class SendmailTransport(MailTransport):
    """Pipes messages to ``sendmail -t -oi``; recipients come from the headers."""

    def __init__(self, sendmail_path: str, timeout_secs: float = 30.0) -> None:
        self._sendmail_path = sendmail_path
        self._timeout = timeout_secs

    async def deliver(self, raw_message: str) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._sendmail_path,
                "-t",
                "-oi",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise MailTransportError(
                f"cannot start {self._sendmail_path}: {exc}"
            ) from exc

        try:
            _, stderr = await asyncio.wait_for(
                proc.communicate(raw_message.encode("utf-8")), timeout=self._timeout
            )
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise MailTransportError(
                f"{self._sendmail_path} did not finish within {self._timeout}s"
            ) from exc

        if proc.returncode != 0:
            raise MailTransportError(
                f"{self._sendmail_path} exited with {proc.returncode}:"
                f" {stderr.decode('utf-8', 'replace')[:200]}"
            )
        logger.debug("sendmail_delivered", bytes=len(raw_message))
