"""VcsClient: typed jj queries on top of the command gateway."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from jjdeck.logging import get_logger
from jjdeck.vcs import commands
from jjdeck.vcs.errors import CommandFailed, InvalidRevsetError
from jjdeck.vcs.gateway import CallHandle, CommandGateway, CommandOutput
from jjdeck.vcs.models import (
    Bookmark,
    Change,
    Conflict,
    DiffFormat,
    FileListing,
    LogSnapshot,
)
from jjdeck.vcs.parse import (
    build_snapshot,
    parse_bookmarks,
    parse_change,
    parse_changes,
    parse_conflicts,
    parse_file_summary,
    parse_version,
)
from jjdeck.vcs.records import CallKind
from jjdeck.vcs.styled import StyledText, plain_lines

_log = get_logger("vcs.client")

# ``jj resolve --list`` exits with this status when there is nothing to list.
_NO_CONFLICTS_EXIT = 2


class VcsClient:
    """Read operations against one repository plus mutation submission."""

    def __init__(self, gateway: CommandGateway) -> None:
        self.gateway = gateway

    # -- Session setup --

    async def root(self) -> str:
        output = await self.gateway.execute(commands.root())
        return output.stdout.strip()

    async def version(self) -> tuple[int, int, int] | None:
        output = await self.gateway.execute(commands.version())
        return parse_version(output.stdout)

    async def config_value(self, name: str) -> str | None:
        """Value of a jj config key, or None when it is unset."""
        try:
            output = await self.gateway.execute(commands.config_get(name))
        except CommandFailed:
            return None
        return output.stdout.strip() or None

    # -- Log tab --

    async def log(self, revset: str | None) -> LogSnapshot:
        """Query the graph, its line mapping, per-change details and ``@``.

        The four read-only calls run concurrently.
        """
        results = await asyncio.gather(
            self.gateway.execute(commands.log_graph(revset), styled=True),
            self.gateway.execute(commands.log_graph(revset, commands.LINE_MAP_TEMPLATE)),
            self.gateway.execute(commands.log_changes(revset)),
            self.head(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                if revset and isinstance(result, CommandFailed):
                    raise InvalidRevsetError(
                        result.command_args, result.stderr, result.exit_code, revset
                    ) from result
                raise result
        graph, line_map, details, head = results
        assert isinstance(graph, CommandOutput) and graph.styled is not None
        changes = parse_changes(details.stdout)
        return build_snapshot(graph.styled, line_map.stdout, changes, head, revset)

    async def head(self) -> Change | None:
        output = await self.gateway.execute(commands.head())
        return parse_change(output.stdout.strip("\n")) if output.stdout.strip() else None

    async def show(self, rev: str, diff_format: DiffFormat) -> StyledText:
        output = await self.gateway.execute(
            commands.show(rev, diff_format.flag), styled=True, ignore_working_copy=True
        )
        assert output.styled is not None
        return output.styled

    async def description(self, rev: str) -> str:
        output = await self.gateway.execute(commands.description(rev), ignore_working_copy=True)
        return output.stdout.rstrip("\n")

    # -- Files tab --

    async def files(self, rev: str) -> FileListing:
        summary, conflicts = await asyncio.gather(
            self.gateway.execute(commands.files_summary(rev)),
            self._conflicts(rev),
            return_exceptions=True,
        )
        if isinstance(summary, BaseException):
            raise summary
        if isinstance(conflicts, BaseException):
            _log.info("conflict listing for %s failed: %s", rev, conflicts)
            conflicts = []
        conflicted = {c.path for c in conflicts}
        return FileListing(
            change_id=rev,
            files=parse_file_summary(summary.stdout, conflicted),
            conflicts=conflicts,
        )

    async def _conflicts(self, rev: str) -> list[Conflict]:
        try:
            output = await self.gateway.execute(commands.conflicts(rev))
        except CommandFailed as exc:
            if exc.exit_code == _NO_CONFLICTS_EXIT:
                return []
            raise
        return parse_conflicts(output.stdout)

    async def file_diff(self, rev: str, path: str, diff_format: DiffFormat) -> StyledText:
        output = await self.gateway.execute(
            commands.file_diff(rev, path, diff_format.flag),
            styled=True,
            ignore_working_copy=True,
        )
        assert output.styled is not None
        return output.styled

    # -- Bookmarks tab --

    async def bookmarks(self, all_remotes: bool = False) -> list[Bookmark]:
        output = await self.gateway.execute(commands.bookmark_list(all_remotes))
        return parse_bookmarks(output.stdout)

    async def bookmark_show(self, bookmark: Bookmark, diff_format: DiffFormat) -> StyledText:
        if not bookmark.present or bookmark.target is None:
            return plain_lines([f"Bookmark {bookmark.ref} has no single target."])
        return await self.show(bookmark.target, diff_format)

    # -- Mutations --

    def submit(self, args: Sequence[str]) -> CallHandle:
        """Put a mutating command on the serialized lane."""
        return self.gateway.submit(args, CallKind.MUTATING, styled=True)
