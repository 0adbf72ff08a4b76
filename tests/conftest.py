"""Shared test fixtures and helpers."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from jjdeck.vcs.models import Bookmark, Change, LogSnapshot
from jjdeck.vcs.styled import plain_lines


@pytest.fixture(autouse=True, scope="session")
def _isolate_logging():
    """Prevent tests from writing to the production ``~/.jjdeck/jjdeck.log``.

    CLI tests invoke the click command which calls ``setup_logging()`` and
    attaches a ``RotatingFileHandler`` pointing at the user's log file.
    We patch ``setup_logging`` to redirect all file output to ``/dev/null``.
    """
    import jjdeck.cli as _cli
    import jjdeck.logging as _jjdeck_logging

    _real_setup = _jjdeck_logging.setup_logging

    def _test_setup(level="WARNING", log_file=None, history_file=None):
        return _real_setup(level=level, log_file="/dev/null", history_file="/dev/null")

    with (
        patch.object(_jjdeck_logging, "setup_logging", _test_setup),
        patch.object(_cli, "setup_logging", _test_setup),
    ):
        logger = logging.getLogger("jjdeck")
        logger.handlers.clear()
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.WARNING)
        yield


def make_change(
    change_id: str = "qpvuntsm",
    commit_id: str | None = None,
    description: str = "",
    *,
    immutable: bool = False,
    divergent: bool = False,
    bookmarks: tuple[str, ...] = (),
) -> Change:
    """Create a Change with a commit id derived from the change id."""
    return Change(
        change_id=change_id,
        commit_id=commit_id or f"c0{change_id}"[:12],
        description=description,
        author="dev@example.com",
        timestamp=1_700_000_000,
        immutable=immutable,
        divergent=divergent,
        bookmarks=bookmarks,
    )


def make_snapshot(
    changes: list[Change],
    head: Change | None = None,
    lines_per_change: int = 2,
    revset: str | None = None,
) -> LogSnapshot:
    """A snapshot where every change renders as *lines_per_change* graph lines."""
    graph: list[str] = []
    owners: list[int | None] = []
    for index, change in enumerate(changes):
        graph.append(f"○  {change.change_id} {change.commit_id}")
        owners.append(index)
        for _ in range(lines_per_change - 1):
            graph.append(f"│  {change.title}")
            owners.append(index)
    return LogSnapshot(
        graph=plain_lines(graph),
        line_changes=tuple(owners),
        changes=tuple(changes),
        head=head,
        revset=revset,
    )


def make_bookmark(
    name: str = "main",
    remote: str | None = None,
    target: str | None = "qpvuntsm",
    *,
    tracked: bool = False,
    present: bool = True,
    immutable: bool = False,
) -> Bookmark:
    return Bookmark(
        name=name,
        remote=remote,
        present=present,
        tracked=tracked,
        target=target,
        timestamp=1_700_000_000,
        immutable=immutable,
    )
