"""Parsers for the machine-readable output produced by the templates in
:mod:`jjdeck.vcs.commands`."""

from __future__ import annotations

import re

from jjdeck.vcs.models import Bookmark, Change, Conflict, FileChange, FileStatus, LogSnapshot
from jjdeck.vcs.styled import StyledText

_MARKER_RE = re.compile(r"\[([0-9a-z]+)\|([0-9a-f]+)\|(true|false)\|(true|false)\]")
_SUMMARY_RE = re.compile(r"^([A-Z]) (.+)$")
_RENAME_RE = re.compile(r"^(.*)\{(.*) => (.*)\}(.*)$")
_VERSION_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)")
_COLUMN_GAP_RE = re.compile(r"\s{2,}")


def _flag(value: str) -> bool:
    return value.strip() == "true"


def _int(value: str) -> int:
    try:
        return int(value.strip() or 0)
    except ValueError:
        return 0


def parse_change(line: str) -> Change | None:
    """Parse one row of ``CHANGE_TEMPLATE`` output."""
    fields = line.rstrip("\n").split("\t", 8)
    if len(fields) < 9:
        return None
    change_id, commit_id, divergent, immutable, empty, author, ts, bookmarks, desc = fields
    return Change(
        change_id=change_id,
        commit_id=commit_id,
        description=desc,
        author=author,
        timestamp=_int(ts),
        immutable=_flag(immutable),
        divergent=_flag(divergent),
        empty=_flag(empty),
        bookmarks=tuple(b for b in bookmarks.split(",") if b),
    )


def parse_changes(text: str) -> list[Change]:
    return [c for c in (parse_change(line) for line in text.splitlines()) if c is not None]


def parse_marker(line: str) -> tuple[str, str] | None:
    """Return ``(change_id, commit_id)`` from a line-map graph line."""
    m = _MARKER_RE.search(line)
    if m is None:
        return None
    return m.group(1), m.group(2)


def build_snapshot(
    graph: StyledText,
    line_map: str,
    changes: list[Change],
    head: Change | None,
    revset: str | None,
) -> LogSnapshot:
    """Combine the coloured graph with its marker twin into a snapshot.

    Both graphs are rendered from the same revset so their lines align; the
    marker twin tells which change each coloured line belongs to.  Entries
    are ordered by first appearance in the graph.
    """
    details = {c.commit_id: c for c in changes}
    ordered: list[Change] = []
    index_of: dict[str, int] = {}
    line_changes: list[int | None] = []
    for line in line_map.splitlines():
        marker = parse_marker(line)
        if marker is None:
            line_changes.append(None)
            continue
        change_id, commit_id = marker
        if commit_id not in index_of:
            index_of[commit_id] = len(ordered)
            ordered.append(details.get(commit_id) or Change(change_id=change_id, commit_id=commit_id))
        line_changes.append(index_of[commit_id])
    # Pad or trim so every coloured line has an owner slot.
    line_changes = (line_changes + [None] * len(graph))[: len(graph)]
    return LogSnapshot(
        graph=graph,
        line_changes=tuple(line_changes),
        changes=tuple(ordered),
        head=head,
        revset=revset,
    )


def _resolve_rename(path: str) -> tuple[str, str]:
    """``src/{a => b}.py`` -> (``src/b.py``, original text)."""
    m = _RENAME_RE.match(path)
    if m is None:
        return path, path
    prefix, _old, new, suffix = m.groups()
    return f"{prefix}{new}{suffix}".replace("//", "/"), path


def parse_file_summary(text: str, conflicted: set[str] | None = None) -> list[FileChange]:
    """Parse ``jj diff --summary`` output (``M path`` per line)."""
    conflicted = conflicted or set()
    files: list[FileChange] = []
    for line in text.splitlines():
        m = _SUMMARY_RE.match(line)
        if m is None:
            continue
        try:
            status = FileStatus(m.group(1))
        except ValueError:
            continue
        path, display = _resolve_rename(m.group(2))
        files.append(
            FileChange(
                status=status,
                path=path,
                display=display if display != path else "",
                conflicted=path in conflicted,
            )
        )
    return files


def parse_conflicts(text: str) -> list[Conflict]:
    """Parse ``jj resolve --list``: ``path    2-sided conflict``."""
    conflicts: list[Conflict] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        path, *rest = _COLUMN_GAP_RE.split(line.strip(), maxsplit=1)
        conflicts.append(Conflict(path=path, description=rest[0] if rest else ""))
    return conflicts


def parse_bookmarks(text: str) -> list[Bookmark]:
    """Parse ``BOOKMARK_TEMPLATE`` rows, newest target first."""
    bookmarks: list[Bookmark] = []
    for line in text.splitlines():
        fields = line.split("\t")
        if len(fields) < 6:
            continue
        name, remote, present, tracked, target, ts = fields[:6]
        bookmarks.append(
            Bookmark(
                name=name,
                remote=None if remote in (".", "") else remote,
                present=_flag(present),
                tracked=_flag(tracked),
                target=target or None,
                timestamp=_int(ts),
                immutable=len(fields) > 6 and _flag(fields[6]),
            )
        )
    bookmarks.sort(key=lambda b: b.timestamp, reverse=True)
    return bookmarks


def parse_version(text: str) -> tuple[int, int, int] | None:
    """``jj 0.33.0-abcdef`` -> ``(0, 33, 0)``."""
    m = _VERSION_RE.search(text)
    if m is None:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3))
