"""Tests for ui/render.py: panels rendered to rich Text."""

from __future__ import annotations

from dataclasses import replace

from rich.style import Style
from rich.text import Text

from jjdeck.keys.keymap import Keymap
from jjdeck.state.model import (
    BookmarkPicker,
    ConfirmPopup,
    PickerKind,
    PickerOption,
    PromptPurpose,
    Tab,
    TextPrompt,
    UIState,
)
from jjdeck.state.requests import Operation
from jjdeck.ui import render
from jjdeck.vcs.models import Conflict, FileChange, FileListing, FileStatus
from jjdeck.vcs.records import CallKind, CallStatus, CommandLog, CommandRecord
from tests.conftest import make_bookmark, make_change, make_snapshot

HIGHLIGHT = "#323296"
A = make_change("aaaaaaaa", description="first")
B = make_change("bbbbbbbb", description="second")


def _highlighted(text: Text) -> list[int]:
    """Indices of lines carrying the highlight background."""
    rows = []
    for index, line in enumerate(text.split("\n", allow_blank=True)):
        for span in line.spans:
            style = span.style
            if isinstance(style, Style) and style.bgcolor and style.bgcolor.name == HIGHLIGHT:
                rows.append(index)
                break
    return rows


def _log_with(*records: CommandRecord) -> CommandLog:
    log = CommandLog()
    for record in records:
        log.append(record)
    return log


def _record(seq: int, *args: str, status=CallStatus.OK, stdout="", stderr="", exit_code=0):
    return CommandRecord(
        seq=seq,
        program="jj",
        args=args,
        kind=CallKind.MUTATING,
        started_at=1_700_000_000.0,
        duration=1.5,
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        status=status,
    )


# ---------- chrome ----------


def test_tab_bar_marks_active_tab():
    state = UIState(tab=Tab.BOOKMARKS)
    text = render.tab_bar(state)
    assert text.plain == " 1 Log  2 Files  3 Bookmarks  4 Command log  5 Help "
    [active] = [s for s in text.spans if s.style == "bold reverse"]
    assert text.plain[active.start : active.end] == " 3 Bookmarks "


def test_status_bar_shows_head_and_running_command():
    state = UIState(head=A, wrap=False)
    log = CommandLog()
    log.begin("jj", ("git", "push"), CallKind.MUTATING)
    log.begin("jj", ("git", "fetch"), CallKind.MUTATING)
    plain = render.status_bar(state, log).plain
    assert plain.startswith("@ aaaaaaaa")
    assert "diff: color-words" in plain
    assert "wrap: off" in plain
    assert plain.endswith("running: jj git fetch (+1)")


# ---------- log ----------


class TestLogPanel:
    def test_selected_entry_lines_are_highlighted(self):
        state = UIState()
        state.log.snapshot = make_snapshot([A, B], lines_per_change=2)
        state.log.cursor.selected = 1
        text = render.log_panel(state, HIGHLIGHT)
        assert _highlighted(text) == [2, 3]
        assert "bbbbbbbb" in text.plain

    def test_window_starts_at_scroll(self):
        state = UIState()
        state.log.snapshot = make_snapshot([A, B], lines_per_change=2)
        state.log.cursor.scroll = 2
        state.log.cursor.height = 1
        assert render.log_panel(state, HIGHLIGHT).plain == f"○  bbbbbbbb {B.commit_id}"

    def test_error_without_snapshot(self):
        state = UIState()
        state.log.error = "Error: Failed to parse revset"
        assert render.log_panel(state, HIGHLIGHT).plain == "Error: Failed to parse revset"

    def test_error_keeps_previous_graph(self):
        state = UIState()
        state.log.snapshot = make_snapshot([A])
        state.log.error = "bad revset"
        state.log.revset = "bad(("
        plain = render.log_panel(state, HIGHLIGHT).plain
        assert plain.startswith("bad revset\n")
        assert "aaaaaaaa" in plain
        assert render.log_title(state) == "Log: bad(( (invalid)"

    def test_empty_revset(self):
        state = UIState()
        state.log.snapshot = make_snapshot([])
        assert render.log_panel(state, HIGHLIGHT).plain == "No changes in this revset"


# ---------- files ----------


class TestFilesPanel:
    def test_files_and_conflicts(self):
        state = UIState(tab=Tab.FILES)
        state.files.change = A
        state.files.listing = FileListing(
            A.change_id,
            [
                FileChange(FileStatus.MODIFIED, "src/app.py"),
                FileChange(FileStatus.RENAMED, "b.py", display="{a => b}.py"),
                FileChange(FileStatus.ADDED, "c.txt", conflicted=True),
            ],
            [Conflict("c.txt", "2-sided conflict")],
        )
        state.files.cursor.selected = 1
        text = render.files_panel(state, HIGHLIGHT)
        lines = text.plain.split("\n")
        assert lines[:3] == ["M src/app.py", "R {a => b}.py", "A c.txt (conflict)"]
        assert lines[-2:] == ["Conflicts:", "  c.txt  2-sided conflict"]
        assert _highlighted(text) == [1]
        assert render.files_title(state) == "Files: aaaaaaaa first"

    def test_no_change_selected(self):
        assert render.files_panel(UIState(), HIGHLIGHT).plain == "No change selected"


# ---------- bookmarks ----------


def test_bookmarks_panel():
    state = UIState(tab=Tab.BOOKMARKS)
    state.bookmarks.loaded = True
    state.bookmarks.bookmarks = [
        make_bookmark("main"),
        make_bookmark("main", remote="origin", tracked=True),
        make_bookmark("old", present=False),
    ]
    state.bookmarks.all_remotes = True
    plain = render.bookmarks_panel(state, HIGHLIGHT).plain
    assert plain.split("\n") == ["main", "main@origin (tracked)", "old (deleted)"]
    assert render.bookmarks_title(state) == "Bookmarks (all remotes)"


# ---------- command log ----------


class TestCommandLog:
    def test_newest_first_with_status(self):
        log = _log_with(
            _record(1, "new"),
            _record(2, "abandon", "x", status=CallStatus.FAILED, exit_code=1),
        )
        state = UIState(tab=Tab.COMMAND_LOG)
        lines = render.command_log_panel(state, log, HIGHLIGHT).plain.split("\n")
        assert lines[0].endswith("jj abandon x [failed]")
        assert lines[1].endswith("jj new")

    def test_output_of_selected_record(self):
        log = _log_with(_record(1, "git", "push", stdout="\x1b[32mok\x1b[0m\n", stderr="Done\n"))
        state = UIState(tab=Tab.COMMAND_LOG)
        state.command_log.cursor.selected = 0
        plain = render.command_output(state, log).plain
        assert plain.startswith("$ jj git push\nok, exit 0, 1.50s\n")
        assert "ok\n" in plain
        assert "Done" in plain

    def test_output_shows_decode_note(self):
        record = CommandRecord(
            seq=1,
            program="jj",
            args=("file", "show", "x"),
            kind=CallKind.READ_ONLY,
            started_at=1_700_000_000.0,
            duration=0.2,
            stdout="caf�\n",
            exit_code=0,
            error="stdout contained bytes that are not valid UTF-8",
        )
        state = UIState(tab=Tab.COMMAND_LOG)
        state.command_log.cursor.selected = 0
        plain = render.command_output(state, _log_with(record)).plain
        assert "note: stdout contained bytes that are not valid UTF-8" in plain

    def test_failure_error_is_not_repeated_as_note(self):
        failed = _record(1, "new", status=CallStatus.FAILED, stderr="Error: x\n", exit_code=1)
        log = _log_with(replace(failed, error="Error: x"))
        state = UIState(tab=Tab.COMMAND_LOG)
        state.command_log.cursor.selected = 0
        assert "note:" not in render.command_output(state, log).plain

    def test_empty(self):
        state = UIState(tab=Tab.COMMAND_LOG)
        assert render.command_log_panel(state, CommandLog(), HIGHLIGHT).plain == (
            "No commands run yet"
        )
        assert render.command_output(state, CommandLog()).plain == ""


# ---------- help ----------


def test_help_lists_every_context_and_warnings():
    keymap = Keymap.from_config({"log": {"nope": "x"}})
    plain = "\n".join(line.plain for line in render.help_lines(keymap))
    for heading in ("Global", "Log tab", "Files tab", "Bookmarks tab", "Confirmation popup"):
        assert heading in plain
    assert "Describe selected change" in plain
    assert "warning: keybinds.log.nope: unknown action" in plain


def test_help_lists_keys_disabled_in_a_tab():
    keymap = Keymap.from_config({"files": {"refresh": False, "scroll-down": False}})
    plain = [line.plain for line in render.help_lines(keymap)]
    files_at = plain.index("Files tab")
    assert "  disabled: refresh, scroll-down" in plain[files_at:]
    assert not any("disabled" in line for line in plain[:files_at])


def test_help_panel_is_windowed():
    lines = [Text(str(i)) for i in range(10)]
    state = UIState(tab=Tab.HELP)
    state.help.cursor.scroll = 4
    state.help.cursor.height = 3
    assert render.help_panel(state, lines).plain == "4\n5\n6"
    main, side = render.main_and_side(state, CommandLog(), HIGHLIGHT, lines)
    assert side is None


# ---------- popups ----------


class TestPopups:
    def test_confirm_body(self):
        popup = ConfirmPopup("Abandon", "Abandon aaaaaaaa?", Operation(("abandon", "a"), "abandon"))
        assert render.confirm_body(popup).plain == "Abandon aaaaaaaa?\n\ny yes   n no"
        popup.pending_token = 4
        popup.error = "Error: immutable"
        assert render.confirm_body(popup).plain == "Abandon aaaaaaaa?\n\nRunning…\n\nError: immutable"

    def test_prompt_footer(self):
        keymap = Keymap.from_config()
        single = TextPrompt(PromptPurpose.REVSET, "Revset")
        assert render.prompt_footer(single, keymap).plain == "ctrl+s save (or enter)"
        multi = TextPrompt(PromptPurpose.DESCRIBE, "Describe", multiline=True, loading=True)
        assert render.prompt_footer(multi, keymap).plain == "Loading…  ctrl+s save"

    def test_picker_body(self):
        picker = BookmarkPicker(
            change=A,
            rev=A.change_id,
            options=[
                PickerOption(PickerKind.CREATE),
                PickerOption(PickerKind.GENERATED, "push-aaaaaaaa", exists=True),
                PickerOption(PickerKind.EXISTING, "main", exists=True),
            ],
            selected=2,
        )
        text = render.picker_body(picker, HIGHLIGHT)
        assert text.plain.split("\n") == [
            "Create new bookmark…",
            "push-aaaaaaaa (generated, exists)",
            "main",
        ]
        assert _highlighted(text) == [2]


def test_panel_titles():
    state = UIState(tab=Tab.COMMAND_LOG)
    state.running[1] = Operation(("git", "push"), "push")
    assert render.panel_titles(state) == ("Command log (1 running)", "Output")
