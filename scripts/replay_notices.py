#!/usr/bin/env python3
"""Replay CLI — feed recorded notices through the notice framework.

Runs in non-live mode: policy, suppression and logging behave as in
production, but no email is sent. The monitoring clock follows the
timestamps of the replayed notices, so suppression windows expire as
they would have at the time.

Usage:
    python -m scripts.replay_notices notices.jsonl
    python -m scripts.replay_notices notices.jsonl --config config/settings.yaml
    python -m scripts.replay_notices notices.jsonl --output-dir replay-logs

Input is one JSON object per line, e.g.::

    {"notice_type": "Scan::Port_Scan", "timestamp": 1700000000.0,
     "source_addr": "10.0.0.5", "identifier": "10.0.0.5",
     "message": "10.0.0.5 scanned 50 ports"}
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from collections.abc import Iterator
from pathlib import Path

import structlog
from pydantic import ValidationError

from src.core.config import load_settings
from src.core.logging import setup_logging
from src.core.types import NoticeRecord
from src.notice.factory import create_log_writer
from src.notice.framework import NoticeFramework
from src.notice.log_writer import JsonlLogWriter, LogWriter

logger = structlog.get_logger(__name__)


class ReplayClock:
    """Monitoring clock driven by the notices being replayed."""

    def __init__(self) -> None:
        self.now: float | None = None

    def advance_to(self, ts: float | None) -> None:
        if ts is not None and (self.now is None or ts > self.now):
            self.now = ts

    def __call__(self) -> float:
        # Wall clock until the first timestamped notice arrives.
        return self.now if self.now is not None else time.time()


def iter_notices(path: Path) -> Iterator[NoticeRecord]:
    """Yield notices from a JSON-lines file, skipping malformed lines."""
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield NoticeRecord.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning("replay_bad_line", line=lineno, error=str(exc)[:200])


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay recorded notices through policy, suppression and logging.",
    )
    parser.add_argument(
        "notices",
        help="Path to a JSON-lines file of notices",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Write notice logs as JSON lines into this directory",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override log level (e.g. DEBUG)",
    )
    return parser.parse_args(argv)


async def run_replay(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(level=args.log_level, config=settings.logging)

    path = Path(args.notices)
    if not path.exists():
        print(f"No such file: {path}", file=sys.stderr)
        return 1

    settings = settings.model_copy(
        update={"notice": settings.notice.model_copy(update={"live_mode": False})}
    )

    writer: LogWriter
    if args.output_dir:
        writer = JsonlLogWriter(args.output_dir)
    else:
        writer = create_log_writer(settings)

    clock = ReplayClock()
    framework = NoticeFramework(settings, writer=writer, clock=clock)

    async with framework:
        for notice in iter_notices(path):
            clock.advance_to(notice.timestamp)
            await framework.raise_notice(notice)
        summary = framework.snapshot()

    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    sys.exit(asyncio.run(run_replay(args)))


if __name__ == "__main__":
    main()
