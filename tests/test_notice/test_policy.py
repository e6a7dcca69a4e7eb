"""Tests for PolicyEngine — defaults, enrichment, hook chain ordering, built-in policy."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from src.core.config import NoticeConfig
from src.core.types import (
    Action,
    ChainResult,
    ConnId,
    Connection,
    FileInfo,
    IcmpInfo,
    NoticeRecord,
    Port,
    TransportProto,
)
from src.notice.exceptions import NoticeConfigError
from src.notice.policy import PolicyEngine

SSH_GUESS = "SSH::Password_Guessing"
PORT_SCAN = "Scan::Port_Scan"
WEIRD = "Weird::Activity"


# ── Helpers ─────────────────────────────────────────────────────


def _engine(clock_value: float = 1000.0, **overrides: object) -> PolicyEngine:
    cfg = NoticeConfig(**overrides)  # type: ignore[arg-type]
    return PolicyEngine(cfg, clock=lambda: clock_value)


def _conn_id(proto: TransportProto = TransportProto.TCP) -> ConnId:
    return ConnId(
        orig_h="10.0.0.5",
        orig_p=Port(number=51234, proto=proto),
        resp_h="192.168.1.10",
        resp_p=Port(number=22, proto=proto),
    )


def _conn(uid: str = "CAbc123") -> Connection:
    return Connection(uid=uid, id=_conn_id())


# ── Defaults / enrichment ───────────────────────────────────────


class TestFillDefaults:
    def test_timestamp_from_clock(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS)
        _engine(clock_value=42.0).apply(n)
        assert n.timestamp == 42.0

    def test_caller_timestamp_kept(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS, timestamp=7.0)
        _engine(clock_value=42.0).apply(n)
        assert n.timestamp == 7.0

    def test_connection_fields_derived(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS, conn=_conn())
        _engine().apply(n)
        assert n.connection_uid == "CAbc123"
        assert n.connection_id == _conn_id()
        assert n.source_addr == "10.0.0.5"
        assert n.dest_addr == "192.168.1.10"
        assert n.port == Port(number=22, proto=TransportProto.TCP)
        assert n.transport_proto == TransportProto.TCP

    def test_caller_addresses_not_overwritten(self) -> None:
        n = NoticeRecord(
            notice_type=SSH_GUESS,
            conn=_conn(),
            source_addr="1.1.1.1",
            port=Port(number=2222, proto=TransportProto.TCP),
        )
        _engine().apply(n)
        assert n.source_addr == "1.1.1.1"
        assert n.dest_addr == "192.168.1.10"
        assert n.port is not None and n.port.number == 2222

    def test_proto_from_port_alone(self) -> None:
        n = NoticeRecord(
            notice_type=SSH_GUESS, port=Port(number=53, proto=TransportProto.UDP)
        )
        _engine().apply(n)
        assert n.transport_proto == TransportProto.UDP

    def test_icmp_sets_proto_and_addresses(self) -> None:
        n = NoticeRecord(
            notice_type=SSH_GUESS,
            icmp=IcmpInfo(orig_h="10.0.0.1", resp_h="10.0.0.2", itype=8),
        )
        _engine().apply(n)
        assert n.transport_proto == TransportProto.ICMP
        assert n.source_addr == "10.0.0.1"
        assert n.dest_addr == "10.0.0.2"

    def test_peer_description_from_config(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS)
        _engine(peer_description="sensor-a").apply(n)
        assert n.peer_description == "sensor-a"

    def test_peer_description_from_raising_peer(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS, src_peer="worker-3")
        _engine().apply(n)
        assert n.peer_description == "worker-3"

    def test_file_metadata_copied(self) -> None:
        n = NoticeRecord(
            notice_type=SSH_GUESS,
            file=FileInfo(
                fuid="FhX1",
                mime_type="application/x-dosexec",
                source="HTTP",
                filename="setup.exe",
                connections=[_conn("CFile1")],
            ),
        )
        _engine().apply(n)
        assert n.file_uid == "FhX1"
        assert n.file_mime_type == "application/x-dosexec"
        assert n.file_description == "HTTP: setup.exe"
        assert n.connection_uid == "CFile1"
        assert n.source_addr == "10.0.0.5"

    def test_file_mime_type_not_overwritten(self) -> None:
        n = NoticeRecord(
            notice_type=SSH_GUESS,
            file_mime_type="text/plain",
            file=FileInfo(fuid="F1", mime_type="application/pdf"),
        )
        _engine().apply(n)
        assert n.file_mime_type == "text/plain"

    def test_file_with_many_connections_leaves_connection_unset(self) -> None:
        n = NoticeRecord(
            notice_type=SSH_GUESS,
            file=FileInfo(fuid="F1", connections=[_conn("C1"), _conn("C2")]),
        )
        _engine().apply(n)
        assert n.connection_uid is None
        assert n.connection_id is None

    def test_custom_file_describer(self) -> None:
        describer = MagicMock(
            return_value=MagicMock(
                file_uid="F9",
                description="custom",
                mime_type=None,
                connection_id=None,
                connection_uid=None,
            )
        )
        engine = PolicyEngine(NoticeConfig(), clock=lambda: 0.0, file_describer=describer)
        n = NoticeRecord(notice_type=SSH_GUESS, file=FileInfo(fuid="F9"))
        engine.apply(n)
        describer.assert_called_once()
        assert n.file_description == "custom"

    def test_raw_references_stripped(self) -> None:
        n = NoticeRecord(
            notice_type=SSH_GUESS,
            conn=_conn(),
            file=FileInfo(fuid="F1"),
            icmp=IcmpInfo(orig_h="a", resp_h="b"),
        )
        _engine().apply(n)
        assert n.conn is None
        assert n.file is None
        assert n.icmp is None


# ── Built-in policy ─────────────────────────────────────────────


class TestDefaultPolicy:
    def test_log_is_default_action(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS)
        _engine().apply(n)
        assert n.actions == {Action.LOG}

    def test_alarmed_and_emailed_types(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS)
        _engine(alarmed_types={SSH_GUESS}, emailed_types={SSH_GUESS}).apply(n)
        assert n.actions == {Action.LOG, Action.ALARM, Action.EMAIL}

    def test_default_suppression_interval(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS)
        _engine(default_suppression_interval_secs=1800).apply(n)
        assert n.suppress_for == 1800.0

    def test_caller_suppress_for_kept(self) -> None:
        n = NoticeRecord(notice_type=SSH_GUESS, suppress_for=10.0)
        _engine().apply(n)
        assert n.suppress_for == 10.0

    def test_not_suppressed_type_zeroes_window(self) -> None:
        n = NoticeRecord(notice_type=PORT_SCAN, suppress_for=60.0)
        _engine(not_suppressed_types={PORT_SCAN}).apply(n)
        assert n.suppress_for == 0.0

    def test_type_override_applied(self) -> None:
        n = NoticeRecord(notice_type=PORT_SCAN)
        _engine(type_suppression_intervals={PORT_SCAN: 300}).apply(n)
        assert n.suppress_for == 300.0

    def test_type_override_wins_over_not_suppressed(self) -> None:
        n = NoticeRecord(notice_type=PORT_SCAN)
        _engine(
            not_suppressed_types={PORT_SCAN},
            type_suppression_intervals={PORT_SCAN: 7200},
        ).apply(n)
        assert n.suppress_for == 7200.0

    def test_ignored_type_dropped(self) -> None:
        n = NoticeRecord(notice_type=WEIRD, identifier="x")
        resolved = _engine(ignored_types={WEIRD}, alarmed_types={WEIRD}).apply(n)
        assert resolved.dropped is True
        assert resolved.stopped_by == "ignored_types"
        assert n.actions == set()
        assert n.suppress_for is None

    def test_ignored_type_skips_custom_hooks(self) -> None:
        engine = _engine(ignored_types={WEIRD})
        hook = MagicMock(return_value=None)
        engine.register_hook(hook, priority=5)
        engine.apply(NoticeRecord(notice_type=WEIRD))
        hook.assert_not_called()


# ── Hook chain ──────────────────────────────────────────────────


class TestHookChain:
    def test_builtins_registered_in_order(self) -> None:
        names = [h.name for h in _engine().hooks]
        assert names == ["ignored_types", "default_policy"]

    def test_priority_ordering(self) -> None:
        engine = _engine()
        order: list[str] = []
        engine.register_hook(lambda n: order.append("low"), priority=-10, name="low")
        engine.register_hook(lambda n: order.append("high"), priority=20, name="high")
        engine.register_hook(lambda n: order.append("mid"), priority=5, name="mid")
        engine.apply(NoticeRecord(notice_type=SSH_GUESS))
        assert order == ["high", "mid", "low"]

    def test_equal_priority_keeps_registration_order(self) -> None:
        engine = _engine()
        order: list[str] = []
        engine.register_hook(lambda n: order.append("a"), name="a")
        engine.register_hook(lambda n: order.append("b"), name="b")
        engine.apply(NoticeRecord(notice_type=SSH_GUESS))
        assert order == ["a", "b"]
        assert [h.name for h in engine.hooks][-2:] == ["a", "b"]

    def test_later_hook_can_remove_log(self) -> None:
        engine = _engine()
        engine.register_hook(lambda n: n.actions.discard(Action.LOG), priority=-5)
        n = NoticeRecord(notice_type=SSH_GUESS)
        engine.apply(n)
        assert Action.LOG not in n.actions

    def test_higher_hook_overridden_by_default(self) -> None:
        engine = _engine(not_suppressed_types={SSH_GUESS})

        def set_window(n: NoticeRecord) -> None:
            n.suppress_for = 99.0

        engine.register_hook(set_window, priority=5)
        n = NoticeRecord(notice_type=SSH_GUESS)
        engine.apply(n)
        assert n.suppress_for == 0.0

    def test_custom_stop_drops_notice(self) -> None:
        engine = _engine(alarmed_types={SSH_GUESS})
        engine.register_hook(lambda n: ChainResult.STOP, priority=5, name="blocker")
        n = NoticeRecord(notice_type=SSH_GUESS)
        resolved = engine.apply(n)
        assert resolved.dropped
        assert resolved.stopped_by == "blocker"
        assert n.actions == set()

    def test_stop_after_default_clears_actions(self) -> None:
        engine = _engine(alarmed_types={SSH_GUESS})
        engine.register_hook(lambda n: ChainResult.STOP, priority=-5)
        n = NoticeRecord(notice_type=SSH_GUESS)
        assert engine.apply(n).dropped
        assert n.actions == set()

    def test_failing_hook_continues_chain(self) -> None:
        engine = _engine()

        def broken(n: NoticeRecord) -> None:
            raise RuntimeError("boom")

        engine.register_hook(broken, priority=5)
        n = NoticeRecord(notice_type=SSH_GUESS)
        resolved = engine.apply(n)
        assert not resolved.dropped
        assert n.actions == {Action.LOG}

    def test_unregister_hook(self) -> None:
        engine = _engine()
        calls: list[int] = []
        hook = engine.register_hook(lambda n: calls.append(1))
        engine.unregister_hook(hook)
        engine.apply(NoticeRecord(notice_type=SSH_GUESS))
        assert calls == []

    def test_non_callable_rejected(self) -> None:
        with pytest.raises(NoticeConfigError):
            _engine().register_hook("not a function")  # type: ignore[arg-type]


# ── Idempotence ─────────────────────────────────────────────────


class TestIdempotence:
    def test_second_apply_changes_nothing(self) -> None:
        engine = _engine(
            alarmed_types={SSH_GUESS},
            emailed_types={SSH_GUESS},
            type_suppression_intervals={SSH_GUESS: 120},
        )
        n = NoticeRecord(
            notice_type=SSH_GUESS,
            conn=_conn(),
            message="guessing",
            identifier="10.0.0.5",
        )
        engine.apply(n)
        first = n.model_dump()
        engine.apply(n)
        assert n.model_dump() == first
