"""Command log: an append-only record of every jj invocation in the session."""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass
from enum import Enum

from jjdeck.events import EventEmitter
from jjdeck.logging import get_command_logger, get_logger

_log = get_logger("vcs.records")
_history = get_command_logger()


class CallKind(Enum):
    READ_ONLY = "read-only"
    MUTATING = "mutating"


class CallStatus(Enum):
    OK = "ok"
    FAILED = "failed"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"


def format_command(program: str, args: tuple[str, ...]) -> str:
    return " ".join((program, *args))


@dataclass(frozen=True, slots=True)
class CommandRecord:
    """One completed (or abandoned) invocation.  Never mutated once logged."""

    seq: int
    program: str
    args: tuple[str, ...]
    kind: CallKind
    started_at: float
    duration: float
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    status: CallStatus = CallStatus.OK
    error: str = ""

    @property
    def command_line(self) -> str:
        return format_command(self.program, self.args)

    @property
    def formatted_time(self) -> str:
        return time.strftime("%H:%M:%S", time.localtime(self.started_at))

    @property
    def display(self) -> str:
        parts = [self.formatted_time, self.command_line]
        if self.status is not CallStatus.OK:
            parts.append(f"[{self.status.value}]")
        return " ".join(parts)

    @property
    def history_line(self) -> str:
        """One line for the persistent command history."""
        exit_code = "-" if self.exit_code is None else str(self.exit_code)
        line = f"{self.status.value:<11} exit={exit_code:<3} {self.duration:6.2f}s {self.command_line}"
        if self.error:
            line += f"  ({self.error})"
        return line


@dataclass(frozen=True, slots=True)
class PendingCommand:
    """An invocation that is queued or running and not yet recorded."""

    seq: int
    program: str
    args: tuple[str, ...]
    kind: CallKind
    queued_at: float

    @property
    def command_line(self) -> str:
        return format_command(self.program, self.args)


class CommandLog(EventEmitter):
    """Append-only session history of jj invocations.

    Emits ``"append"`` with the new :class:`CommandRecord` and ``"pending"``
    whenever the set of in-flight invocations changes.
    """

    def __init__(self) -> None:
        self.__init_emitter__()
        self._records: list[CommandRecord] = []
        self._pending: dict[int, PendingCommand] = {}
        self._seq = itertools.count(1)

    def __len__(self) -> int:
        return len(self._records)

    def begin(self, program: str, args: tuple[str, ...], kind: CallKind) -> PendingCommand:
        """Register an invocation that has been submitted."""
        pending = PendingCommand(next(self._seq), program, args, kind, time.time())
        self._pending[pending.seq] = pending
        self.emit("pending", self.pending())
        return pending

    def append(self, record: CommandRecord) -> CommandRecord:
        """Record a finished invocation.  Records are never edited or removed."""
        self._pending.pop(record.seq, None)
        self._records.append(record)
        _log.debug("recorded %s (%s)", record.command_line, record.status.value)
        _history.info(record.history_line)
        self.emit("append", record)
        self.emit("pending", self.pending())
        return record

    def records(self) -> tuple[CommandRecord, ...]:
        """The full history in the order invocations finished."""
        return tuple(self._records)

    def newest_first(self) -> list[CommandRecord]:
        return self._records[::-1]

    def pending(self) -> list[PendingCommand]:
        return sorted(self._pending.values(), key=lambda p: p.seq)
