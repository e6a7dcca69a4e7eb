"""Domain types for notice handling — records, actions, connection metadata."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

# ── Notice type registry ────────────────────────────────────────

# Notice types form an open namespace: detection modules add their own
# names (e.g. "SSH::Password_Guessing") when they are imported.
_NOTICE_TYPES: set[str] = set()


def register_notice_type(name: str) -> str:
    """Register a notice type name and return it unchanged.

    Usage::

        PASSWORD_GUESSING = register_notice_type("SSH::Password_Guessing")
    """
    if not name:
        raise ValueError("notice type name must be non-empty")
    _NOTICE_TYPES.add(name)
    return name


def is_registered_notice_type(name: str) -> bool:
    return name in _NOTICE_TYPES


def registered_notice_types() -> frozenset[str]:
    return frozenset(_NOTICE_TYPES)


# ── Enums ───────────────────────────────────────────────────────


class Action(StrEnum):
    """Side effect to perform for an accepted notice."""

    NONE = "NONE"
    LOG = "LOG"
    EMAIL = "EMAIL"
    ALARM = "ALARM"


class TransportProto(StrEnum):
    """Transport protocol carried by a port value."""

    TCP = "tcp"
    UDP = "udp"
    ICMP = "icmp"
    UNKNOWN = "unknown"


class LogStream(StrEnum):
    """Destination stream for notice log records."""

    PRIMARY = "primary"
    ALARM = "alarm"


class ChainResult(StrEnum):
    """Return value of a policy hook."""

    CONTINUE = "CONTINUE"
    STOP = "STOP"


# ── Connection / file metadata ──────────────────────────────────


class Port(BaseModel):
    """A port number tagged with its transport protocol."""

    number: int = Field(ge=0, le=65535)
    proto: TransportProto = TransportProto.UNKNOWN

    def __str__(self) -> str:
        return f"{self.number}/{self.proto.value}"


class ConnId(BaseModel):
    """Connection 4-tuple: originator and responder endpoints."""

    orig_h: str
    orig_p: Port
    resp_h: str
    resp_p: Port


class Connection(BaseModel):
    """Connection reference handed in by a detection module."""

    uid: str
    id: ConnId


class IcmpInfo(BaseModel):
    """ICMP pseudo-connection: ICMP has no ports, only endpoints and type/code."""

    orig_h: str
    resp_h: str
    itype: int = 0
    icode: int = 0


class FileInfo(BaseModel):
    """File analysis state attached to a notice."""

    fuid: str
    mime_type: str | None = None
    source: str = ""
    filename: str | None = None
    connections: list[Connection] = Field(default_factory=list)


class FileMetadata(BaseModel):
    """Canonical file fields copied onto a notice."""

    file_uid: str
    description: str
    mime_type: str | None = None
    connection_id: ConnId | None = None
    connection_uid: str | None = None


# ── Notice record ───────────────────────────────────────────────

# Raw references dropped once policy has been applied; they are large
# and cannot be shipped to a remote logger.
RAW_REFERENCE_FIELDS = ("conn", "file", "icmp")


class NoticeRecord(BaseModel):
    """A detected condition raised by a detection module.

    Only ``notice_type`` is required. Optional fields left as ``None`` are
    filled in by the policy engine from the attached raw references.
    """

    notice_type: str
    timestamp: float | None = None

    connection_uid: str | None = None
    connection_id: ConnId | None = None
    source_addr: str | None = None
    dest_addr: str | None = None
    port: Port | None = None
    transport_proto: TransportProto | None = None
    count: int | None = None

    message: str | None = None
    sub_message: str | None = None

    file_uid: str | None = None
    file_mime_type: str | None = None
    file_description: str | None = None

    peer_description: str | None = None

    actions: set[Action] = Field(default_factory=set)
    email_body_extensions: list[str] = Field(default_factory=list)
    email_delay_tokens: set[str] = Field(default_factory=set)

    identifier: str | None = None
    suppress_for: float | None = None

    # Raw references
    conn: Connection | None = None
    file: FileInfo | None = None
    icmp: IcmpInfo | None = None
    src_peer: str | None = None

    @property
    def suppression_key(self) -> tuple[str, str] | None:
        """``(notice_type, identifier)`` or None when dedup is disabled."""
        if self.identifier is None:
            return None
        return (self.notice_type, self.identifier)

    def to_log_record(self) -> dict[str, Any]:
        """JSON-ready dict of the loggable fields."""
        record = self.model_dump(
            mode="json",
            exclude=set(RAW_REFERENCE_FIELDS) | {"src_peer", "email_delay_tokens"},
            exclude_none=True,
        )
        record["actions"] = sorted(a.value for a in self.actions)
        return record


# ── Framework events ────────────────────────────────────────────


class NoticeEventType(StrEnum):
    """Observability events emitted while handling a notice."""

    BEGIN_SUPPRESSION = "BEGIN_SUPPRESSION"
    SUPPRESSED = "SUPPRESSED"
    PRE_LOG = "PRE_LOG"
    LOG_WRITTEN = "LOG_WRITTEN"
    ALARM_WRITTEN = "ALARM_WRITTEN"
    DROPPED = "DROPPED"
    DISPATCHED = "DISPATCHED"
    EMAIL_SENT = "EMAIL_SENT"


class NoticeEvent(BaseModel):
    """Fire-and-forget notification about a notice."""

    event_type: NoticeEventType
    notice: NoticeRecord
    expires_at: float | None = None
    timestamp: float = Field(default_factory=time.time)
