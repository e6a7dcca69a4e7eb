"""Logging collaborators — where accepted notices are recorded."""

from __future__ import annotations

import abc
import json
from pathlib import Path
from typing import IO, Any

import structlog

from src.core.types import LogStream, NoticeRecord
from src.notice.exceptions import LogWriteError

# Dedicated structured loggers for notice records.
notice_logger = structlog.get_logger("notice_log")
alarm_logger = structlog.get_logger("notice_alarm_log")


class LogWriter(abc.ABC):
    """Base class for notice log streams."""

    @abc.abstractmethod
    def write(self, stream: LogStream, notice: NoticeRecord) -> None:
        """Record *notice* on *stream*. Raises LogWriteError on failure."""

    def close(self) -> None:
        """Release resources (open files, etc.)."""


class StructlogLogWriter(LogWriter):
    """Emits each record on the ``notice_log`` / ``notice_alarm_log`` loggers."""

    def write(self, stream: LogStream, notice: NoticeRecord) -> None:
        target = alarm_logger if stream == LogStream.ALARM else notice_logger
        target.info("notice", stream=stream.value, record=notice.to_log_record())


class JsonlLogWriter(LogWriter):
    """Appends one JSON object per line to a file per stream."""

    def __init__(
        self,
        directory: str | Path,
        primary_filename: str = "notice.jsonl",
        alarm_filename: str = "notice_alarm.jsonl",
    ) -> None:
        self._directory = Path(directory)
        self._paths: dict[LogStream, Path] = {
            LogStream.PRIMARY: self._directory / primary_filename,
            LogStream.ALARM: self._directory / alarm_filename,
        }
        self._handles: dict[LogStream, IO[str]] = {}

    def path_for(self, stream: LogStream) -> Path:
        return self._paths[stream]

    def _handle(self, stream: LogStream) -> IO[str]:
        fh = self._handles.get(stream)
        if fh is None or fh.closed:
            self._directory.mkdir(parents=True, exist_ok=True)
            fh = open(self._paths[stream], "a", encoding="utf-8")  # noqa: SIM115
            self._handles[stream] = fh
        return fh

    def write(self, stream: LogStream, notice: NoticeRecord) -> None:
        line = json.dumps(notice.to_log_record(), sort_keys=True)
        try:
            fh = self._handle(stream)
            fh.write(line + "\n")
            fh.flush()
        except OSError as exc:
            raise LogWriteError(f"cannot write {self._paths[stream]}: {exc}") from exc

    def close(self) -> None:
        for fh in self._handles.values():
            if not fh.closed:
                fh.close()
        self._handles.clear()


class MemoryLogWriter(LogWriter):
    """Keeps records in memory, grouped by stream."""

    def __init__(self) -> None:
        self.records: dict[LogStream, list[dict[str, Any]]] = {
            LogStream.PRIMARY: [],
            LogStream.ALARM: [],
        }

    def write(self, stream: LogStream, notice: NoticeRecord) -> None:
        self.records[stream].append(notice.to_log_record())
