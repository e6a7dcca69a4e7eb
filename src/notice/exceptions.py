"""Notice framework exceptions."""

from __future__ import annotations


class NoticeError(Exception):
    """Base exception for notice handling errors."""


class MailTransportError(NoticeError):
    """The mail transport failed to accept a message."""


class LogWriteError(NoticeError):
    """A notice record could not be written to its log stream."""


class NoticeConfigError(NoticeError):
    """Configuration is inconsistent with the running framework."""
