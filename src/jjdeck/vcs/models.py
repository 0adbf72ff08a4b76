"""Value types for repository data parsed from jj output."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum

from jjdeck.vcs.styled import StyledText


class DiffFormat(Enum):
    """How change and file diffs are rendered."""

    COLOR_WORDS = "color-words"
    GIT = "git"

    @property
    def flag(self) -> str:
        return f"--{self.value}"

    def toggled(self) -> DiffFormat:
        return DiffFormat.GIT if self is DiffFormat.COLOR_WORDS else DiffFormat.COLOR_WORDS

    @classmethod
    def parse(cls, value: str) -> DiffFormat:
        """Accept jj's own spellings (``:git``, ``color_words``) as well as ours."""
        normalized = value.strip().lstrip(":").replace("_", "-").lower()
        return cls(normalized)


@dataclass(frozen=True, slots=True)
class Change:
    """One entry of the revision graph.

    ``change_id`` is stable across rewrites; ``commit_id`` identifies the
    current snapshot and differs between divergent copies of a change.
    """

    change_id: str
    commit_id: str
    description: str = ""
    author: str = ""
    timestamp: int = 0
    immutable: bool = False
    divergent: bool = False
    empty: bool = False
    bookmarks: tuple[str, ...] = ()

    @property
    def short_id(self) -> str:
        return self.change_id[:8]

    @property
    def title(self) -> str:
        return self.description or "(no description set)"

    @property
    def formatted_time(self) -> str:
        if not self.timestamp:
            return ""
        return datetime.datetime.fromtimestamp(self.timestamp).strftime("%Y-%m-%d %H:%M")


@dataclass(frozen=True, slots=True)
class LogSnapshot:
    """Result of one log query: the rendered graph plus its line mapping.

    ``line_changes[i]`` is the index into ``changes`` of the entry that
    graph line *i* belongs to, or ``None`` for pure graph lines such as
    elided-revision markers.
    """

    graph: StyledText
    line_changes: tuple[int | None, ...]
    changes: tuple[Change, ...]
    head: Change | None = None
    revset: str | None = None

    def find(self, change_id: str, commit_id: str | None = None) -> int | None:
        """Index of the entry matching *commit_id*, falling back to *change_id*."""
        if commit_id is not None:
            for i, change in enumerate(self.changes):
                if change.commit_id == commit_id:
                    return i
        for i, change in enumerate(self.changes):
            if change.change_id == change_id:
                return i
        return None

    def line_span(self, index: int) -> tuple[int, int]:
        """Graph lines ``[start, end)`` rendered for change *index*."""
        lines = [i for i, owner in enumerate(self.line_changes) if owner == index]
        if not lines:
            return (0, 0)
        return (lines[0], lines[-1] + 1)


class FileStatus(Enum):
    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"
    RENAMED = "R"
    COPIED = "C"

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True, slots=True)
class FileChange:
    """A file touched by a change, as reported by ``jj diff --summary``."""

    status: FileStatus
    path: str
    display: str = ""
    conflicted: bool = False

    @property
    def label(self) -> str:
        return self.display or self.path


@dataclass(frozen=True, slots=True)
class Conflict:
    path: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class Bookmark:
    """A named pointer, either local (``remote is None``) or remote-tracking."""

    name: str
    remote: str | None = None
    present: bool = True
    tracked: bool = False
    target: str | None = None
    timestamp: int = 0
    immutable: bool = False

    @property
    def ref(self) -> str:
        """The ``name@remote`` form jj accepts for remote bookmarks."""
        return f"{self.name}@{self.remote}" if self.remote else self.name

    @property
    def is_local(self) -> bool:
        return self.remote is None

    @property
    def is_git_remote(self) -> bool:
        return self.remote == "git"


@dataclass(slots=True)
class FileListing:
    """Files of one change together with its unresolved conflicts."""

    change_id: str
    files: list[FileChange] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
