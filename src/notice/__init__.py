"""Notice policy, suppression and action dispatch."""

from src.notice.dispatcher import ActionDispatcher
from src.notice.email import EmailDelayCoordinator
from src.notice.events import EventBus
from src.notice.exceptions import (
    LogWriteError,
    MailTransportError,
    NoticeConfigError,
    NoticeError,
)
from src.notice.factory import create_notice_framework
from src.notice.files import describe_file
from src.notice.framework import NoticeFramework
from src.notice.log_writer import (
    JsonlLogWriter,
    LogWriter,
    MemoryLogWriter,
    StructlogLogWriter,
)
from src.notice.mail import MailTransport, SendmailTransport, compose_email
from src.notice.metrics import NoticeMetrics
from src.notice.policy import PolicyEngine, PolicyHook, ResolvedNotice
from src.notice.suppression import SuppressionCache

__all__ = [
    "ActionDispatcher",
    "EmailDelayCoordinator",
    "EventBus",
    "JsonlLogWriter",
    "LogWriteError",
    "LogWriter",
    "MailTransport",
    "MailTransportError",
    "MemoryLogWriter",
    "NoticeConfigError",
    "NoticeError",
    "NoticeFramework",
    "NoticeMetrics",
    "PolicyEngine",
    "PolicyHook",
    "ResolvedNotice",
    "SendmailTransport",
    "StructlogLogWriter",
    "SuppressionCache",
    "compose_email",
    "create_notice_framework",
    "describe_file",
]
