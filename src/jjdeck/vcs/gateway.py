"""CommandGateway: the single place jj processes are spawned.

Every invocation is built as a discrete argument vector (never a shell
string), run with the repository root as working directory, captured in
full, and recorded in the :class:`CommandLog`.  Read-only calls run
concurrently; mutating calls go through the :class:`MutationLane`.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Coroutine, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jjdeck.logging import get_logger
from jjdeck.vcs.errors import (
    CommandCancelled,
    CommandError,
    CommandFailed,
    CommandUnavailable,
    OutputDecodeError,
)
from jjdeck.vcs.lane import MutationLane
from jjdeck.vcs.records import (
    CallKind,
    CallStatus,
    CommandLog,
    CommandRecord,
    PendingCommand,
    format_command,
)
from jjdeck.vcs.styled import StyledText, decode_ansi, decode_bytes

_log = get_logger("vcs.gateway")

_TERMINATE_TIMEOUT = 3.0


@dataclass(frozen=True, slots=True)
class CommandOutput:
    """Captured result of a successful invocation."""

    args: tuple[str, ...]
    stdout: str
    stderr: str = ""
    exit_code: int = 0
    duration: float = 0.0
    styled: StyledText | None = None
    decode_error: OutputDecodeError | None = None


@dataclass(eq=False)
class CallHandle:
    """A submitted invocation.  Await :meth:`wait` for its outcome."""

    pending: PendingCommand
    args: tuple[str, ...]
    argv: tuple[str, ...]
    kind: CallKind
    styled: bool
    future: asyncio.Future[CommandOutput]
    process: asyncio.subprocess.Process | None = field(default=None, repr=False)
    started: bool = False
    cancel_requested: bool = False

    @property
    def token(self) -> int:
        return self.pending.seq

    @property
    def command_line(self) -> str:
        return format_command(self.pending.program, self.argv)

    def done(self) -> bool:
        return self.future.done()

    async def wait(self) -> CommandOutput:
        return await self.future


def global_args(color: bool, quiet: bool = False, ignore_working_copy: bool = False) -> list[str]:
    """Flags appended to every invocation."""
    args = ["--no-pager", "--color", "always" if color else "never"]
    if quiet:
        args.append("--quiet")
    if ignore_working_copy:
        args.append("--ignore-working-copy")
    return args


class CommandGateway:
    """Runs jj for the rest of the application.

    Parameters
    ----------
    binary:
        Name or path of the jj executable.
    cwd:
        Repository root every process is started in.
    command_log:
        Shared session log; a fresh one is created when omitted.
    """

    def __init__(
        self,
        binary: str = "jj",
        cwd: str | Path | None = None,
        command_log: CommandLog | None = None,
        terminate_timeout: float = _TERMINATE_TIMEOUT,
    ) -> None:
        self.binary = binary
        self.cwd = str(cwd) if cwd is not None else None
        self.command_log = command_log if command_log is not None else CommandLog()
        self._terminate_timeout = terminate_timeout
        self._lane = MutationLane(self._run)
        self._active: set[CallHandle] = set()
        self._background_tasks: set[asyncio.Task[None]] = set()

    def _track_task(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # -- Public API --

    @property
    def mutation_busy(self) -> bool:
        return self._lane.busy

    def submit(
        self,
        args: Sequence[str],
        kind: CallKind = CallKind.READ_ONLY,
        *,
        color: bool = False,
        styled: bool = False,
        quiet: bool = False,
        ignore_working_copy: bool = False,
    ) -> CallHandle:
        """Enqueue an invocation and return its handle immediately.

        Must be called from inside the running event loop.  Mutating calls
        keep submission order because enqueueing happens synchronously here.
        """
        args = tuple(args)
        argv = (*args, *global_args(color or styled, quiet, ignore_working_copy))
        pending = self.command_log.begin(self.binary, argv, kind)
        handle = CallHandle(
            pending=pending,
            args=args,
            argv=argv,
            kind=kind,
            styled=styled,
            future=asyncio.get_running_loop().create_future(),
        )
        self._active.add(handle)
        if kind is CallKind.MUTATING:
            self._lane.submit(handle)
        else:
            self._track_task(self._run(handle))
        return handle

    async def execute(
        self,
        args: Sequence[str],
        kind: CallKind = CallKind.READ_ONLY,
        *,
        color: bool = False,
        styled: bool = False,
        quiet: bool = False,
        ignore_working_copy: bool = False,
    ) -> CommandOutput:
        """Submit and await; raises a :class:`CommandError` subclass on failure."""
        handle = self.submit(
            args,
            kind,
            color=color,
            styled=styled,
            quiet=quiet,
            ignore_working_copy=ignore_working_copy,
        )
        return await handle.wait()

    def cancel(self, handle: CallHandle) -> bool:
        """Cancel a queued or running invocation.

        A queued call is dropped and recorded as cancelled with no output.
        A running process is asked to terminate; whatever it printed is still
        recorded.  Returns False when the call had already finished.
        """
        if handle.done():
            return False
        handle.cancel_requested = True
        if not handle.started and self._lane.discard(handle):
            _log.info("cancelled queued call: %s", handle.command_line)
            self._finish(handle, CallStatus.CANCELLED, time.time(), 0.0)
            return True
        if handle.process is not None and handle.process.returncode is None:
            _log.info("terminating running call: %s", handle.command_line)
            self._track_task(self._terminate(handle.process))
        return True

    def shutdown(self) -> None:
        """Cancel everything still queued or running.  For application exit."""
        for handle in self._lane.drain_queued():
            handle.cancel_requested = True
            self._finish(handle, CallStatus.CANCELLED, time.time(), 0.0)
        for handle in list(self._active):
            self.cancel(handle)

    # -- Internal --

    async def _run(self, handle: CallHandle) -> None:
        """Launch, capture and record one invocation."""
        handle.started = True
        started_at = time.time()
        t0 = time.monotonic()
        _log.debug("run: %s", handle.command_line)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *handle.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as exc:
            _log.warning("could not launch %s: %s", self.binary, exc)
            self._finish(
                handle,
                CallStatus.UNAVAILABLE,
                started_at,
                time.monotonic() - t0,
                error=CommandUnavailable(handle.args, str(exc)),
            )
            return

        handle.process = proc
        if handle.cancel_requested:
            self._track_task(self._terminate(proc))
        try:
            out_bytes, err_bytes = await proc.communicate()
        except asyncio.CancelledError:
            await self._terminate(proc)
            self._finish(handle, CallStatus.CANCELLED, started_at, time.monotonic() - t0)
            raise

        duration = time.monotonic() - t0
        stdout, bad_stdout = decode_bytes(out_bytes or b"")
        stderr, bad_stderr = decode_bytes(err_bytes or b"")
        exit_code = proc.returncode if proc.returncode is not None else -1

        if handle.cancel_requested:
            self._finish(
                handle,
                CallStatus.CANCELLED,
                started_at,
                duration,
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
            )
            return

        if exit_code != 0:
            _log.info("jj exited %d: %s", exit_code, handle.command_line)
            self._finish(
                handle,
                CallStatus.FAILED,
                started_at,
                duration,
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
                error=CommandFailed(handle.args, stderr, exit_code),
            )
            return

        decode_error = None
        if bad_stdout:
            decode_error = OutputDecodeError("stdout")
        elif bad_stderr:
            decode_error = OutputDecodeError("stderr")
        if decode_error is not None:
            _log.warning("%s: %s", handle.command_line, decode_error)

        output = CommandOutput(
            args=handle.args,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            duration=duration,
            styled=decode_ansi(stdout) if handle.styled else None,
            decode_error=decode_error,
        )
        self._finish(
            handle,
            CallStatus.OK,
            started_at,
            duration,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            output=output,
            note=str(decode_error) if decode_error is not None else "",
        )

    def _finish(
        self,
        handle: CallHandle,
        status: CallStatus,
        started_at: float,
        duration: float,
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
        error: CommandError | None = None,
        output: CommandOutput | None = None,
        note: str = "",
    ) -> None:
        """Append the record, then resolve the handle's future.

        *note* is kept as the record's error text for calls that succeeded
        with a caveat.
        """
        if status is CallStatus.CANCELLED:
            error = CommandCancelled(handle.args, stdout, stderr)
        self.command_log.append(
            CommandRecord(
                seq=handle.pending.seq,
                program=handle.pending.program,
                args=handle.argv,
                kind=handle.kind,
                started_at=started_at,
                duration=duration,
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
                status=status,
                error=str(error) if error is not None else note,
            )
        )
        self._active.discard(handle)
        if handle.future.done():
            return
        if error is not None:
            handle.future.set_exception(error)
        else:
            handle.future.set_result(output)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Ask *proc* to exit, escalating to SIGKILL after a timeout."""
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
            await asyncio.wait_for(proc.wait(), timeout=self._terminate_timeout)
        except TimeoutError:
            _log.warning("jj did not exit after terminate, killing")
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        except ProcessLookupError:
            pass
