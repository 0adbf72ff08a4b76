"""Tests for vcs/client.py: typed queries over a fake jj."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from jjdeck.vcs.client import VcsClient
from jjdeck.vcs.errors import CommandFailed, InvalidRevsetError
from jjdeck.vcs.gateway import CommandGateway
from jjdeck.vcs.models import DiffFormat
from jjdeck.vcs.records import CallKind
from tests.conftest import make_bookmark
from tests.fakes.process import FakeExec, FakeProcess

_GRAPH = b"\x1b[1m@\x1b[0m  kkk\n\xe2\x94\x82  first\n\xe2\x97\x8b  lll\n\xe2\x94\x82  second\n"
_LINE_MAP = b"@  [kkk|aaa|false|false]\n|  [kkk|aaa|false|false]\no  [lll|bbb|false|true]\n|  [lll|bbb|false|true]\n"
_CHANGES = (
    b"kkk\taaa\tfalse\tfalse\tfalse\tdev@example.com\t200\t\tfirst\n"
    b"lll\tbbb\tfalse\ttrue\tfalse\tdev@example.com\t100\tmain\tsecond\n"
)
_HEAD = b"kkk\taaa\tfalse\tfalse\tfalse\tdev@example.com\t200\t\tfirst\n"


def _log_responder(args: tuple[str, ...]) -> FakeProcess:
    """Answer the four calls a log refresh makes."""
    if "-r" in args and args[args.index("-r") + 1] == "bad(":
        return FakeProcess(stderr=b"Error: Failed to parse revset\n", exit_code=1)
    if "--limit" in args:
        return FakeProcess(stdout=_HEAD)
    if "--no-graph" in args:
        return FakeProcess(stdout=_CHANGES)
    if "builtin_log_compact" in args:
        return FakeProcess(stdout=_GRAPH)
    return FakeProcess(stdout=_LINE_MAP)


class TestLog:
    @pytest.mark.asyncio
    async def test_log_builds_snapshot(self):
        client = VcsClient(CommandGateway())
        fake = FakeExec(responder=_log_responder)
        with patch("asyncio.create_subprocess_exec", fake):
            snapshot = await client.log("::@")

        assert len(fake.calls) == 4
        assert [c.change_id for c in snapshot.changes] == ["kkk", "lll"]
        assert snapshot.changes[1].immutable
        assert snapshot.changes[1].bookmarks == ("main",)
        assert snapshot.head is not None and snapshot.head.change_id == "kkk"
        assert snapshot.line_changes == (0, 0, 1, 1)
        assert snapshot.graph.plain.splitlines()[0] == "@  kkk"
        assert len(client.gateway.command_log) == 4

    @pytest.mark.asyncio
    async def test_head(self):
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", FakeExec([FakeProcess(stdout=_HEAD)])):
            head = await client.head()
        assert head is not None and head.commit_id == "aaa"
        with patch("asyncio.create_subprocess_exec", FakeExec([FakeProcess(stdout=b"\n")])):
            assert await client.head() is None

    @pytest.mark.asyncio
    async def test_bad_revset_raises_invalid_revset(self):
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", FakeExec(responder=_log_responder)):
            with pytest.raises(InvalidRevsetError) as exc_info:
                await client.log("bad(")
        assert exc_info.value.revset == "bad("
        assert "parse revset" in str(exc_info.value)


class TestFiles:
    @pytest.mark.asyncio
    async def test_files_without_conflicts(self):
        def responder(args):
            if args[0] == "resolve":
                return FakeProcess(stderr=b"Error: No conflicts found\n", exit_code=2)
            return FakeProcess(stdout=b"M a.txt\nA b.txt\n")

        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", FakeExec(responder=responder)):
            listing = await client.files("kkk")
        assert [f.path for f in listing.files] == ["a.txt", "b.txt"]
        assert listing.conflicts == []

    @pytest.mark.asyncio
    async def test_files_with_conflicts(self):
        def responder(args):
            if args[0] == "resolve":
                return FakeProcess(stdout=b"a.txt    2-sided conflict\n")
            return FakeProcess(stdout=b"M a.txt\nA b.txt\n")

        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", FakeExec(responder=responder)):
            listing = await client.files("kkk")
        assert [f.conflicted for f in listing.files] == [True, False]
        assert listing.conflicts[0].description == "2-sided conflict"

    @pytest.mark.asyncio
    async def test_summary_failure_propagates(self):
        def responder(args):
            return FakeProcess(stderr=b"Error: boom\n", exit_code=1)

        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", FakeExec(responder=responder)):
            with pytest.raises(CommandFailed, match="boom"):
                await client.files("kkk")

    @pytest.mark.asyncio
    async def test_file_diff_is_styled_and_skips_snapshot(self):
        fake = FakeExec([FakeProcess(stdout=b"\x1b[32m+added\x1b[0m\n")])
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", fake):
            diff = await client.file_diff("kkk", "a.txt", DiffFormat.GIT)
        assert diff.plain == "+added"
        assert "--git" in fake.calls[0]
        assert "--ignore-working-copy" in fake.calls[0]
        assert "always" in fake.calls[0]


class TestMisc:
    @pytest.mark.asyncio
    async def test_show_uses_diff_format_flag(self):
        fake = FakeExec([FakeProcess(stdout=b"Commit ID: abc\n")])
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", fake):
            details = await client.show("kkk", DiffFormat.COLOR_WORDS)
        assert details.plain == "Commit ID: abc"
        assert fake.calls[0][1:5] == ("show", "-r", "kkk", "--color-words")

    @pytest.mark.asyncio
    async def test_description_strips_trailing_newline(self):
        fake = FakeExec([FakeProcess(stdout=b"title\n\nbody\n")])
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", fake):
            assert await client.description("kkk") == "title\n\nbody"

    @pytest.mark.asyncio
    async def test_config_value_missing_is_none(self):
        fake = FakeExec([FakeProcess(stderr=b"Config error: not found\n", exit_code=1)])
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", fake):
            assert await client.config_value("revsets.log") is None

    @pytest.mark.asyncio
    async def test_config_value(self):
        fake = FakeExec([FakeProcess(stdout=b"trunk()..@\n")])
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", fake):
            assert await client.config_value("revsets.log") == "trunk()..@"

    @pytest.mark.asyncio
    async def test_root_and_version(self):
        fake = FakeExec([FakeProcess(stdout=b"/home/dev/repo\n"), FakeProcess(stdout=b"jj 0.34.0\n")])
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", fake):
            assert await client.root() == "/home/dev/repo"
            assert await client.version() == (0, 34, 0)

    @pytest.mark.asyncio
    async def test_bookmark_show_without_target_makes_no_call(self):
        fake = FakeExec([])
        client = VcsClient(CommandGateway())
        bookmark = make_bookmark("topic", target=None)
        with patch("asyncio.create_subprocess_exec", fake):
            details = await client.bookmark_show(bookmark, DiffFormat.GIT)
        assert "no single target" in details.plain
        assert fake.calls == []

    @pytest.mark.asyncio
    async def test_submit_is_mutating(self):
        fake = FakeExec([FakeProcess(stderr=b"Working copy now at: xyz\n")])
        client = VcsClient(CommandGateway())
        with patch("asyncio.create_subprocess_exec", fake):
            handle = client.submit(("new", "kkk"))
            output = await handle.wait()
        assert handle.kind is CallKind.MUTATING
        assert "Working copy now at" in output.stderr
