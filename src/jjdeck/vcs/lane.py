"""MutationLane: FIFO queue that runs mutating jj calls one at a time."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from jjdeck.logging import get_logger

if TYPE_CHECKING:
    from jjdeck.vcs.gateway import CallHandle

_log = get_logger("vcs.lane")


class MutationLane:
    """Serializes repository-mutating invocations.

    - At most one call runs at a time.
    - Calls start in submission order; the next is only launched after the
      previous runner has returned (its process exited and was recorded).
    - Queued calls can be discarded before they start.
    """

    def __init__(self, runner: Callable[[CallHandle], Coroutine[Any, Any, None]]) -> None:
        self._runner = runner
        self._queue: deque[CallHandle] = deque()
        self._running: CallHandle | None = None
        self._background_tasks: set[asyncio.Task[None]] = set()

    def _track_task(self, coro: Coroutine[Any, Any, None]) -> None:
        """Create a background task and prevent it from being GC'd."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # -- Public API --

    @property
    def busy(self) -> bool:
        return self._running is not None

    def submit(self, handle: CallHandle) -> None:
        """Run *handle* now if the lane is idle, else queue it."""
        if self._running is None:
            self._start(handle)
        else:
            self._queue.append(handle)
            _log.debug(
                "queued mutating call %s behind %s",
                handle.command_line,
                self._running.command_line,
            )

    def discard(self, handle: CallHandle) -> bool:
        """Remove a queued (not yet started) call.  Returns True if removed."""
        try:
            self._queue.remove(handle)
        except ValueError:
            return False
        return True

    def drain_queued(self) -> list[CallHandle]:
        """Remove and return every queued call.  For shutdown."""
        queued = list(self._queue)
        self._queue.clear()
        return queued

    # -- Internal --

    def _start(self, handle: CallHandle) -> None:
        self._running = handle
        self._track_task(self._execute(handle))

    async def _execute(self, handle: CallHandle) -> None:
        try:
            await self._runner(handle)
        except asyncio.CancelledError:
            _log.debug("mutating call %s cancelled", handle.command_line)
            raise
        finally:
            self._running = None
            self._drain_queue()

    def _drain_queue(self) -> None:
        if self._queue and self._running is None:
            self._start(self._queue.popleft())

