"""Tests for the replay CLI — recorded notices through policy and suppression."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from scripts.replay_notices import ReplayClock, iter_notices, parse_args, run_replay

# ── Helpers ─────────────────────────────────────────────────────


def _write_notices(path: Path, rows: list[dict[str, object] | str]) -> Path:
    lines = [r if isinstance(r, str) else json.dumps(r) for r in rows]
    path.write_text("\n".join(lines) + "\n")
    return path


def _row(ts: float, ident: str = "10.0.0.5") -> dict[str, object]:
    return {
        "notice_type": "Scan::Port_Scan",
        "timestamp": ts,
        "identifier": ident,
        "source_addr": ident,
        "message": f"{ident} scanned 50 ports",
    }


# ── ReplayClock ─────────────────────────────────────────────────


class TestReplayClock:
    def test_follows_notice_time(self) -> None:
        clock = ReplayClock()
        clock.advance_to(1000.0)
        assert clock() == 1000.0

    def test_never_moves_backwards(self) -> None:
        clock = ReplayClock()
        clock.advance_to(1000.0)
        clock.advance_to(900.0)
        clock.advance_to(None)
        assert clock() == 1000.0


# ── Input parsing ───────────────────────────────────────────────


class TestIterNotices:
    def test_skips_blank_and_malformed_lines(self, tmp_path: Path) -> None:
        path = _write_notices(
            tmp_path / "in.jsonl",
            [_row(1.0), "", "{not json", json.dumps({"message": "no type"}), _row(2.0)],
        )
        notices = list(iter_notices(path))
        assert [n.timestamp for n in notices] == [1.0, 2.0]


# ── End to end ──────────────────────────────────────────────────


class TestRunReplay:
    @pytest.fixture(autouse=True)
    def _diagnostics_to_stderr(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> Iterator[None]:
        """Keep stdout for the summary document only."""
        monkeypatch.setattr("scripts.replay_notices.setup_logging", lambda **kw: None)
        structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
        yield
        structlog.reset_defaults()

    async def test_replay_dedups_by_notice_time(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = _write_notices(
            tmp_path / "in.jsonl",
            [
                _row(1000.0),
                _row(1500.0),
                _row(1000.0 + 3600.0),
                _row(1600.0, ident="10.0.0.6"),
            ],
        )
        out_dir = tmp_path / "out"
        args = parse_args([
            str(path),
            "--config", str(tmp_path / "missing.yaml"),
            "--output-dir", str(out_dir),
        ])

        assert await run_replay(args) == 0

        logged = (out_dir / "notice.jsonl").read_text().splitlines()
        assert len(logged) == 3
        summary = json.loads(capsys.readouterr().out)
        assert summary["metrics"]["suppressed"] == 1
        assert summary["pending_emails"] == 0

    async def test_missing_input(self, tmp_path: Path) -> None:
        args = parse_args([str(tmp_path / "nope.jsonl"), "--config", str(tmp_path / "x.yaml")])
        assert await run_replay(args) == 1
