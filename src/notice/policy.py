"""PolicyEngine — fills notice defaults and runs the policy hook chain."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog
from pydantic import BaseModel

from src.core.config import NoticeConfig
from src.core.types import (
    Action,
    ChainResult,
    RAW_REFERENCE_FIELDS,
    NoticeRecord,
    TransportProto,
)
from src.notice.exceptions import NoticeConfigError
from src.notice.files import FileDescriber, describe_file

logger = structlog.stdlib.get_logger()

# A hook may return None, which counts as CONTINUE.
PolicyHookFn = Callable[[NoticeRecord], ChainResult | None]

IGNORE_HOOK_PRIORITY = 10
DEFAULT_HOOK_PRIORITY = 0


@dataclass(frozen=True)
class PolicyHook:
    """A registered policy handler. Higher priority runs first."""

    priority: int
    fn: PolicyHookFn
    name: str
    # Registration sequence; breaks ties so equal priorities keep insertion order.
    seq: int = field(default=0, compare=False)


class ResolvedNotice(BaseModel):
    """Outcome of applying policy to a notice."""

    notice: NoticeRecord
    dropped: bool = False
    stopped_by: str | None = None
    suppressed: bool = False


class PolicyEngine:
    """Enriches notices with defaults and computes their action set.

    Usage::

        engine = PolicyEngine(config.notice)
        engine.register_hook(my_hook, priority=-5)

        resolved = engine.apply(notice)
        if resolved.dropped:
            return
    """

    def __init__(
        self,
        config: NoticeConfig | None = None,
        clock: Callable[[], float] | None = None,
        file_describer: FileDescriber | None = None,
    ) -> None:
        from src.core.config import get_settings

        self._config = config or get_settings().notice
        self._clock = clock or time.time
        self._describe_file = file_describer or describe_file
        self._hooks: list[PolicyHook] = []
        self._seq = 0

        self.register_hook(
            self._ignore_hook, priority=IGNORE_HOOK_PRIORITY, name="ignored_types"
        )
        self.register_hook(
            self._default_hook, priority=DEFAULT_HOOK_PRIORITY, name="default_policy"
        )

    @property
    def config(self) -> NoticeConfig:
        return self._config

    @property
    def hooks(self) -> list[PolicyHook]:
        """Registered hooks in execution order."""
        return list(self._hooks)

    # ── Hook registration ───────────────────────────────────────

    def register_hook(
        self,
        fn: PolicyHookFn,
        priority: int = 0,
        name: str | None = None,
    ) -> PolicyHook:
        """Add a policy hook. Hooks of equal priority run in registration order."""
        if not callable(fn):
            raise NoticeConfigError(f"policy hook is not callable: {fn!r}")
        hook = PolicyHook(
            priority=priority,
            fn=fn,
            name=name or getattr(fn, "__name__", repr(fn)),
            seq=self._seq,
        )
        self._seq += 1
        self._hooks.append(hook)
        self._hooks.sort(key=lambda h: (-h.priority, h.seq))
        return hook

    def unregister_hook(self, hook: PolicyHook) -> None:
        self._hooks.remove(hook)

    # ── Apply ───────────────────────────────────────────────────

    def apply(self, notice: NoticeRecord) -> ResolvedNotice:
        """Fill unset fields, run the hook chain, default the suppression window.

        Caller-supplied values are never overwritten. The notice is
        mutated in place and returned inside a :class:`ResolvedNotice`.
        """
        self._fill_defaults(notice)

        stopped_by = self._run_chain(notice)
        if stopped_by is not None:
            notice.actions.clear()
            self._strip_references(notice)
            logger.debug(
                "notice_dropped",
                notice_type=notice.notice_type,
                hook=stopped_by,
            )
            return ResolvedNotice(notice=notice, dropped=True, stopped_by=stopped_by)

        if notice.suppress_for is None:
            notice.suppress_for = self._config.default_suppression_interval_secs

        self._strip_references(notice)
        return ResolvedNotice(notice=notice)

    def _fill_defaults(self, n: NoticeRecord) -> None:
        if n.timestamp is None:
            n.timestamp = self._clock()

        if n.file is not None:
            meta = self._describe_file(n.file)
            if n.file_uid is None:
                n.file_uid = meta.file_uid
            if n.file_mime_type is None and meta.mime_type is not None:
                n.file_mime_type = meta.mime_type
            if n.file_description is None:
                n.file_description = meta.description
            if n.connection_id is None and meta.connection_id is not None:
                n.connection_id = meta.connection_id
            if n.connection_uid is None and meta.connection_uid is not None:
                n.connection_uid = meta.connection_uid

        if n.conn is not None:
            if n.connection_id is None:
                n.connection_id = n.conn.id
            if n.connection_uid is None:
                n.connection_uid = n.conn.uid

        if n.connection_id is not None:
            if n.source_addr is None:
                n.source_addr = n.connection_id.orig_h
            if n.dest_addr is None:
                n.dest_addr = n.connection_id.resp_h
            if n.port is None:
                n.port = n.connection_id.resp_p

        if n.port is not None and n.transport_proto is None:
            n.transport_proto = n.port.proto

        if n.icmp is not None:
            n.transport_proto = TransportProto.ICMP
            if n.source_addr is None:
                n.source_addr = n.icmp.orig_h
            if n.dest_addr is None:
                n.dest_addr = n.icmp.resp_h

        if n.peer_description is None:
            n.peer_description = n.src_peer or self._config.peer_description

    def _run_chain(self, notice: NoticeRecord) -> str | None:
        """Run hooks highest priority first. Returns the stopping hook's name."""
        for hook in list(self._hooks):
            try:
                result = hook.fn(notice)
            except Exception:
                logger.exception(
                    "policy_hook_error",
                    hook=hook.name,
                    notice_type=notice.notice_type,
                )
                continue
            if result == ChainResult.STOP:
                return hook.name
        return None

    @staticmethod
    def _strip_references(n: NoticeRecord) -> None:
        for name in RAW_REFERENCE_FIELDS:
            setattr(n, name, None)

    # ── Built-in hooks ──────────────────────────────────────────

    def _ignore_hook(self, n: NoticeRecord) -> ChainResult:
        if n.notice_type in self._config.ignored_types:
            return ChainResult.STOP
        return ChainResult.CONTINUE

    def _default_hook(self, n: NoticeRecord) -> ChainResult:
        cfg = self._config
        if n.notice_type in cfg.not_suppressed_types:
            n.suppress_for = 0.0
        if n.notice_type in cfg.alarmed_types:
            n.actions.add(Action.ALARM)
        if n.notice_type in cfg.emailed_types:
            n.actions.add(Action.EMAIL)
        # Applied after the not-suppressed check, so an override wins.
        if n.notice_type in cfg.type_suppression_intervals:
            n.suppress_for = cfg.type_suppression_intervals[n.notice_type]
        n.actions.add(Action.LOG)
        return ChainResult.CONTINUE
