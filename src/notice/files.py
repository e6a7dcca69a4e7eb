"""File-metadata collaborator — canonical file fields for a notice."""

from __future__ import annotations

from collections.abc import Callable

from src.core.types import FileInfo, FileMetadata

FileDescriber = Callable[[FileInfo], FileMetadata]


def describe_file(info: FileInfo) -> FileMetadata:
    """Summarise attached file state into the fields a notice carries.

    The connection is only copied when the file was seen on exactly one
    connection; otherwise it is ambiguous which one the notice is about.
    """
    if info.filename and info.source:
        description = f"{info.source}: {info.filename}"
    else:
        description = info.filename or info.source or info.fuid

    meta = FileMetadata(
        file_uid=info.fuid,
        description=description,
        mime_type=info.mime_type,
    )
    if len(info.connections) == 1:
        conn = info.connections[0]
        meta.connection_id = conn.id
        meta.connection_uid = conn.uid
    return meta
