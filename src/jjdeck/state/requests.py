"""Plain-data messages between the state machine and the effect runner.

The machine never performs I/O.  It returns :class:`Query`, :class:`Mutation`
and :class:`CancelCall` requests; results come back as :class:`Completion`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from jjdeck.vcs.errors import CommandCancelled


@dataclass(frozen=True)
class Operation:
    """A mutating jj command and how the UI should treat its outcome."""

    args: tuple[str, ...]
    label: str
    refresh_bookmarks: bool = False
    cancellable: bool = False
    show_output: bool = False


class QueryOp(Enum):
    LOG = "log"
    SHOW = "show"
    DESCRIPTION = "description"
    FILES = "files"
    FILE_DIFF = "file_diff"
    BOOKMARKS = "bookmarks"
    BOOKMARK_SHOW = "bookmark_show"


# Result slots: only the newest completed result per slot is kept.
SLOT_LOG = "log"
SLOT_LOG_DETAILS = "log.details"
SLOT_DESCRIPTION = "describe"
SLOT_FILES = "files"
SLOT_FILE_DIFF = "files.diff"
SLOT_BOOKMARKS = "bookmarks"
SLOT_BOOKMARK_DETAILS = "bookmarks.details"


@dataclass(frozen=True)
class Query:
    token: int
    op: QueryOp
    slot: str
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Mutation:
    token: int
    operation: Operation

    @property
    def args(self) -> tuple[str, ...]:
        return self.operation.args


@dataclass(frozen=True)
class CancelCall:
    token: int


Request = Query | Mutation | CancelCall


@dataclass(frozen=True)
class Completion:
    """Outcome of a request: a value on success, the exception otherwise."""

    token: int
    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, CommandCancelled)
