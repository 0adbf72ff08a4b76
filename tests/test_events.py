"""Tests for the EventEmitter mixin and the command log built on it."""

from __future__ import annotations

import logging

from jjdeck.events import EventEmitter
from jjdeck.vcs.records import CallKind, CallStatus, CommandLog, CommandRecord


class _Emitter(EventEmitter):
    def __init__(self) -> None:
        self.__init_emitter__()


def _record(seq: int, *args: str, status: CallStatus = CallStatus.OK) -> CommandRecord:
    return CommandRecord(
        seq=seq,
        program="jj",
        args=args,
        kind=CallKind.READ_ONLY,
        started_at=1_700_000_000.0,
        duration=0.1,
        status=status,
    )


# ---------------------------------------------------------------------------
# Registration & emission
# ---------------------------------------------------------------------------


class TestOnAndEmit:
    def test_listeners_run_in_registration_order(self):
        e = _Emitter()
        results: list[int] = []
        e.on("evt", lambda: results.append(1))
        e.on("evt", lambda: results.append(2))
        e.emit("evt")
        assert results == [1, 2]

    def test_emit_passes_args_and_kwargs(self):
        e = _Emitter()
        received: list[tuple] = []
        e.on("data", lambda x, key=None: received.append((x, key)))
        e.emit("data", "a", key="b")
        assert received == [("a", "b")]

    def test_emit_unknown_event_is_noop(self):
        _Emitter().emit("nonexistent")

    def test_emit_without_init_is_noop(self):
        EventEmitter().emit("whatever")

    def test_on_initializes_lazily(self):
        e = EventEmitter()
        results: list[int] = []
        e.on("x", lambda: results.append(1))
        e.emit("x")
        assert results == [1]


class TestOff:
    def test_off_removes_callback(self):
        e = _Emitter()
        results: list[str] = []

        def cb() -> None:
            results.append("x")

        e.on("evt", cb)
        e.off("evt", cb)
        e.emit("evt")
        assert results == []

    def test_off_unknown_is_noop(self):
        _Emitter().off("evt", lambda: None)
        EventEmitter().off("evt", lambda: None)


class TestExceptionIsolation:
    def test_bad_listener_does_not_break_others(self, caplog):
        e = _Emitter()
        results: list[str] = []

        def explode() -> None:
            raise ValueError("kaboom")

        e.on("evt", explode)
        e.on("evt", lambda: results.append("ok"))
        with caplog.at_level(logging.WARNING, logger="jjdeck.events"):
            e.emit("evt")
        assert results == ["ok"]
        assert "listener for event 'evt' failed" in caplog.text


# ---------------------------------------------------------------------------
# CommandLog
# ---------------------------------------------------------------------------


class TestCommandLog:
    def test_append_emits_record_then_pending(self):
        log = CommandLog()
        events: list[str] = []
        log.on("append", lambda record: events.append(f"append {record.seq}"))
        log.on("pending", lambda pending: events.append(f"pending {len(pending)}"))

        pending = log.begin("jj", ("st",), CallKind.READ_ONLY)
        log.append(_record(pending.seq, "st"))
        assert events == ["pending 1", "append 1", "pending 0"]

    def test_records_keep_completion_order(self):
        log = CommandLog()
        first = log.begin("jj", ("git", "fetch"), CallKind.MUTATING)
        second = log.begin("jj", ("log",), CallKind.READ_ONLY)
        log.append(_record(second.seq, "log"))
        log.append(_record(first.seq, "git", "fetch", status=CallStatus.CANCELLED))

        assert [r.args[0] for r in log.records()] == ["log", "git"]
        assert [r.args[0] for r in log.newest_first()] == ["git", "log"]
        assert len(log) == 2

    def test_pending_sorted_by_submission(self):
        log = CommandLog()
        a = log.begin("jj", ("new",), CallKind.MUTATING)
        b = log.begin("jj", ("abandon", "x"), CallKind.MUTATING)
        assert [p.seq for p in log.pending()] == [a.seq, b.seq]
        assert b.command_line == "jj abandon x"

    def test_display_flags_failures(self):
        ok = _record(1, "st")
        failed = _record(2, "st", status=CallStatus.FAILED)
        assert ok.display.endswith("jj st")
        assert failed.display.endswith("jj st [failed]")
