"""Exceptions raised by the command gateway."""

from __future__ import annotations

from collections.abc import Sequence


class CommandError(Exception):
    """Base class for every failed jj invocation."""

    def __init__(self, message: str, args: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.command_args = tuple(args)

    @property
    def command_line(self) -> str:
        return " ".join(("jj", *self.command_args))


class CommandUnavailable(CommandError):
    """The jj process could not be launched at all."""

    def __init__(self, args: Sequence[str], reason: str) -> None:
        super().__init__(f"Could not run jj: {reason}", args)
        self.reason = reason


class CommandFailed(CommandError):
    """jj ran and exited non-zero."""

    def __init__(self, args: Sequence[str], stderr: str, exit_code: int) -> None:
        message = stderr.strip() or f"jj exited with status {exit_code}"
        super().__init__(message, args)
        self.stderr = stderr
        self.exit_code = exit_code


class InvalidRevsetError(CommandFailed):
    """A log query failed for the revset the user entered."""

    def __init__(self, args: Sequence[str], stderr: str, exit_code: int, revset: str) -> None:
        super().__init__(args, stderr, exit_code)
        self.revset = revset


class CommandCancelled(CommandError):
    """The invocation was cancelled before or while it ran."""

    def __init__(self, args: Sequence[str], stdout: str = "", stderr: str = "") -> None:
        super().__init__("Command cancelled", args)
        self.stdout = stdout
        self.stderr = stderr


class OutputDecodeError:
    """Marker attached to output that contained invalid UTF-8.

    Not an exception: the output is still usable with U+FFFD placeholders.
    """

    __slots__ = ("stream",)

    def __init__(self, stream: str) -> None:
        self.stream = stream

    def __repr__(self) -> str:
        return f"OutputDecodeError({self.stream!r})"

    def __str__(self) -> str:
        return f"{self.stream} contained bytes that are not valid UTF-8"

