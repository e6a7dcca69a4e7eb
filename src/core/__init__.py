"""Core module — config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.types import (
    Action,
    ChainResult,
    ConnId,
    Connection,
    FileInfo,
    FileMetadata,
    IcmpInfo,
    LogStream,
    NoticeEvent,
    NoticeEventType,
    NoticeRecord,
    Port,
    TransportProto,
    is_registered_notice_type,
    register_notice_type,
    registered_notice_types,
)

__all__ = [
    "Action",
    "ChainResult",
    "ConnId",
    "Connection",
    "FileInfo",
    "FileMetadata",
    "IcmpInfo",
    "LogStream",
    "NoticeEvent",
    "NoticeEventType",
    "NoticeRecord",
    "Port",
    "Settings",
    "TransportProto",
    "get_settings",
    "is_registered_notice_type",
    "load_settings",
    "register_notice_type",
    "registered_notice_types",
    "reset_settings",
    "setup_logging",
]
