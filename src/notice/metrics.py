"""NoticeMetrics — counters for notice handling outcomes.

Subscribes to ``NoticeFramework.on_event()`` and aggregates, overall and
per notice type:
- notices raised, dropped by policy, suppressed, dispatched
- successful log and alarm writes, emails sent
- suppression windows started
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from src.core.types import NoticeEvent, NoticeEventType


@dataclass
class TypeStats:
    """Counters for a single notice type."""

    notice_type: str
    raised: int = 0
    dropped: int = 0
    suppressed: int = 0
    dispatched: int = 0
    logged: int = 0
    alarmed: int = 0
    emailed: int = 0
    suppressions_started: int = 0

    @property
    def suppression_rate(self) -> float:
        if self.raised == 0:
            return 0.0
        return self.suppressed / self.raised


class NoticeMetrics:
    """Collects counters from framework events.

    Usage::

        metrics = NoticeMetrics()
        framework.on_event(metrics.on_notice_event)

        summary = metrics.summary()
    """

    def __init__(self) -> None:
        self._by_type: dict[str, TypeStats] = {}

    def _stats(self, notice_type: str) -> TypeStats:
        stats = self._by_type.get(notice_type)
        if stats is None:
            stats = TypeStats(notice_type=notice_type)
            self._by_type[notice_type] = stats
        return stats

    # ── Callback entry point ────────────────────────────────────

    def on_notice_event(self, event: NoticeEvent) -> None:
        """Callback for ``NoticeFramework.on_event()``."""
        stats = self._stats(event.notice.notice_type)
        etype = event.event_type

        if etype == NoticeEventType.DROPPED:
            stats.raised += 1
            stats.dropped += 1
        elif etype == NoticeEventType.SUPPRESSED:
            stats.raised += 1
            stats.suppressed += 1
        elif etype == NoticeEventType.DISPATCHED:
            stats.raised += 1
            stats.dispatched += 1
        elif etype == NoticeEventType.LOG_WRITTEN:
            stats.logged += 1
        elif etype == NoticeEventType.ALARM_WRITTEN:
            stats.alarmed += 1
        elif etype == NoticeEventType.EMAIL_SENT:
            stats.emailed += 1
        elif etype == NoticeEventType.BEGIN_SUPPRESSION:
            stats.suppressions_started += 1

    # ── Queries ─────────────────────────────────────────────────

    def type_stats(self) -> dict[str, TypeStats]:
        return dict(self._by_type)

    def summary(self) -> dict[str, object]:
        """Totals across all types plus a per-type breakdown."""
        totals = TypeStats(notice_type="*")
        for s in self._by_type.values():
            totals.raised += s.raised
            totals.dropped += s.dropped
            totals.suppressed += s.suppressed
            totals.dispatched += s.dispatched
            totals.logged += s.logged
            totals.alarmed += s.alarmed
            totals.emailed += s.emailed
            totals.suppressions_started += s.suppressions_started

        result: dict[str, object] = {
            k: v for k, v in asdict(totals).items() if k != "notice_type"
        }
        result["suppression_rate"] = round(totals.suppression_rate, 4)
        result["by_type"] = {
            name: {k: v for k, v in asdict(s).items() if k != "notice_type"}
            for name, s in sorted(self._by_type.items())
        }
        return result

    def reset(self) -> None:
        self._by_type.clear()
