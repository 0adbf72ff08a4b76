"""Tests for vcs/commands.py: argument vectors and the command prompt parser."""

from __future__ import annotations

import pytest

from jjdeck.vcs import commands


class TestQueries:
    def test_log_graph_without_revset_uses_jj_default(self):
        assert commands.log_graph(None) == ("log", "--template", "builtin_log_compact")

    def test_log_graph_with_revset(self):
        args = commands.log_graph("trunk()..@")
        assert args[-2:] == ("-r", "trunk()..@")

    def test_log_changes_has_no_graph(self):
        args = commands.log_changes("@")
        assert "--no-graph" in args
        assert args[-2:] == ("-r", "@")

    def test_show(self):
        assert commands.show("abc", "--git") == ("show", "-r", "abc", "--git")

    def test_file_diff_quotes_path_as_fileset(self):
        args = commands.file_diff("abc", 'dir/we"ird name.txt', "--color-words")
        assert args == ("diff", "-r", "abc", "--color-words", 'file:"dir/we\\"ird name.txt"')

    def test_bookmark_list_all_remotes(self):
        assert commands.bookmark_list(True)[-1] == "--all-remotes"
        assert "--all-remotes" not in commands.bookmark_list(False)


class TestMutations:
    def test_new_with_message_is_single_argument(self):
        message = "feat: add\nmultiple lines; $(rm -rf /)"
        assert commands.new("xyz", message) == ("new", "xyz", "-m", message)

    def test_new_without_message(self):
        assert commands.new("xyz") == ("new", "xyz")

    def test_describe(self):
        assert commands.describe("@", "msg") == ("describe", "@", "-m", "msg")

    def test_edit_ignore_immutable(self):
        assert commands.edit("abc", True) == ("edit", "abc", "--ignore-immutable")
        assert commands.edit("abc") == ("edit", "abc")

    def test_squash_into(self):
        assert commands.squash_into("abc") == ("squash", "--into", "abc")

    def test_bookmark_create_at_revision(self):
        assert commands.bookmark_create("feat", "abc") == ("bookmark", "create", "feat", "-r", "abc")
        assert commands.bookmark_create("feat") == ("bookmark", "create", "feat")

    def test_bookmark_set_allows_backwards(self):
        assert commands.bookmark_set("main", "abc")[-1] == "--allow-backwards"

    def test_git_push_variants(self):
        assert commands.git_push("abc") == ("git", "push", "-r", "abc")
        assert commands.git_push("abc", allow_new=True) == ("git", "push", "--allow-new", "-r", "abc")
        assert commands.git_push(all_bookmarks=True) == ("git", "push", "--all")

    def test_git_fetch_all_remotes(self):
        assert commands.git_fetch(True) == ("git", "fetch", "--all-remotes")

    def test_file_untrack(self):
        assert commands.file_untrack("a.txt") == ("file", "untrack", 'file:"a.txt"')


class TestParseCommandLine:
    def test_leading_jj_dropped(self):
        assert commands.parse_command_line("jj git fetch") == ("git", "fetch")

    def test_quotes_respected(self):
        assert commands.parse_command_line('describe -m "two words"') == (
            "describe",
            "-m",
            "two words",
        )

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            commands.parse_command_line("   ")

    def test_only_jj_raises(self):
        with pytest.raises(ValueError):
            commands.parse_command_line("jj")

    def test_unbalanced_quote_raises(self):
        with pytest.raises(ValueError):
            commands.parse_command_line('describe -m "oops')
