"""Pure projections from :class:`UIState` to rich ``Text``.

Nothing here touches Textual, so every panel can be checked in tests by
looking at ``Text.plain`` and spans.
"""

from __future__ import annotations

from rich.style import Style
from rich.text import Text

from jjdeck.keys.actions import Action, Context
from jjdeck.keys.keymap import Keymap
from jjdeck.state.model import (
    TAB_ORDER,
    BookmarkPicker,
    ConfirmPopup,
    Tab,
    TextPrompt,
    UIState,
)
from jjdeck.vcs.models import FileStatus
from jjdeck.vcs.records import CallStatus, CommandLog, CommandRecord
from jjdeck.vcs.styled import StyledText

_STATUS_STYLES = {
    FileStatus.ADDED: "green",
    FileStatus.MODIFIED: "cyan",
    FileStatus.DELETED: "red",
    FileStatus.RENAMED: "cyan",
    FileStatus.COPIED: "green",
}

_HELP_SECTIONS = (
    (Context.GLOBAL, "Global"),
    (Context.LOG, "Log tab"),
    (Context.FILES, "Files tab"),
    (Context.BOOKMARKS, "Bookmarks tab"),
    (Context.COMMAND_LOG, "Command log tab"),
    (Context.CONFIRM, "Confirmation popup"),
    (Context.PROMPT, "Text prompt"),
    (Context.PICKER, "Bookmark picker"),
)


def _finish(text: Text, wrap: bool) -> Text:
    text.no_wrap = not wrap
    text.overflow = "fold" if wrap else "ellipsis"
    return text


def _highlight(text: Text, color: str) -> Text:
    text.stylize(Style(bgcolor=color))
    return text


def _window(lines: list[Text], scroll: int, height: int) -> Text:
    return Text("\n").join(lines[scroll : scroll + max(1, height)])


def styled_window(styled: StyledText | None, scroll: int, height: int, wrap: bool = True) -> Text:
    if styled is None:
        return Text("Loading…", style="dim")
    return _finish(styled.to_text(scroll, scroll + max(1, height)), wrap)


# -- Chrome --


def tab_bar(state: UIState) -> Text:
    text = Text()
    for number, tab in enumerate(TAB_ORDER, start=1):
        label = f" {number} {tab.title} "
        if tab is state.tab:
            text.append(label, style="bold reverse")
        else:
            text.append(label, style="dim")
    return text


def status_bar(state: UIState, command_log: CommandLog) -> Text:
    parts = Text()
    head = state.head
    if head is not None:
        parts.append(f"@ {head.short_id}", style="bold")
        parts.append("  ")
    parts.append(f"diff: {state.diff_format.value}")
    parts.append("  wrap: on" if state.wrap else "  wrap: off")
    pending = command_log.pending()
    if pending:
        parts.append("  running: ", style="bold yellow")
        parts.append(pending[-1].command_line, style="yellow")
        if len(pending) > 1:
            parts.append(f" (+{len(pending) - 1})", style="yellow")
    return parts


# -- Log tab --


def log_panel(state: UIState, highlight: str) -> Text:
    log = state.log
    snapshot = log.snapshot
    if snapshot is None:
        if log.error:
            return Text(log.error, style="red")
        return Text("Loading…", style="dim")
    cursor = log.cursor
    lines: list[Text] = []
    stop = min(len(snapshot.graph), cursor.scroll + cursor.height)
    for index in range(cursor.scroll, stop):
        line = snapshot.graph.line(index)
        owner = snapshot.line_changes[index] if index < len(snapshot.line_changes) else None
        if owner is not None and owner == cursor.selected:
            _highlight(line, highlight)
        lines.append(line)
    text = Text("\n").join(lines)
    if not snapshot.changes:
        text = Text("No changes in this revset", style="dim")
    if log.error:
        text = Text.assemble((f"{log.error}\n", "red"), text)
    return _finish(text, state.wrap)


def log_title(state: UIState) -> str:
    revset = state.log.revset or "default revset"
    suffix = " (invalid)" if state.log.error else ""
    return f"Log: {revset}{suffix}"


def log_details(state: UIState) -> Text:
    log = state.log
    if log.selected_change is None:
        return Text("")
    return styled_window(log.details, log.details_scroll, state.details_height, state.wrap)


# -- Files tab --


def files_panel(state: UIState, highlight: str) -> Text:
    files = state.files
    if files.change is None:
        return Text("No change selected", style="dim")
    if files.error and files.listing is None:
        return Text(files.error, style="red")
    if files.listing is None:
        return Text("Loading…", style="dim")
    lines: list[Text] = []
    for index, file in enumerate(files.files):
        line = Text()
        line.append(f"{file.status.value} ", style=_STATUS_STYLES.get(file.status, ""))
        line.append(file.label)
        if file.conflicted:
            line.append(" (conflict)", style="bold red")
        if index == files.cursor.selected:
            _highlight(line, highlight)
        lines.append(line)
    if files.listing.conflicts:
        lines.append(Text(""))
        lines.append(Text("Conflicts:", style="bold red"))
        for conflict in files.listing.conflicts:
            lines.append(Text(f"  {conflict.path}  {conflict.description}", style="red"))
    if not lines:
        return Text("The change is empty", style="dim")
    return _finish(_window(lines, files.cursor.scroll, files.cursor.height), state.wrap)


def files_title(state: UIState) -> str:
    change = state.files.change
    if change is None:
        return "Files"
    return f"Files: {change.short_id} {change.title}"


def file_diff(state: UIState) -> Text:
    files = state.files
    if files.selected_file is None:
        return Text("")
    return styled_window(files.diff, files.diff_scroll, state.details_height, state.wrap)


# -- Bookmarks tab --


def bookmarks_panel(state: UIState, highlight: str) -> Text:
    tab = state.bookmarks
    if not tab.loaded:
        return Text("Loading…", style="dim")
    if tab.error and not tab.bookmarks:
        return Text(tab.error, style="red")
    lines: list[Text] = []
    for index, bookmark in enumerate(tab.bookmarks):
        line = Text(bookmark.name, style="bold magenta" if bookmark.is_local else "magenta")
        if bookmark.remote:
            line.append(f"@{bookmark.remote}", style="dim")
            if bookmark.tracked:
                line.append(" (tracked)", style="dim")
        if not bookmark.present:
            line.append(" (deleted)", style="red")
        if index == tab.cursor.selected:
            _highlight(line, highlight)
        lines.append(line)
    if not lines:
        return Text("No bookmarks", style="dim")
    return _finish(_window(lines, tab.cursor.scroll, tab.cursor.height), state.wrap)


def bookmarks_title(state: UIState) -> str:
    return "Bookmarks (all remotes)" if state.bookmarks.all_remotes else "Bookmarks"


def bookmark_details(state: UIState) -> Text:
    tab = state.bookmarks
    if tab.selected_bookmark is None:
        return Text("")
    return styled_window(tab.details, tab.details_scroll, state.details_height, state.wrap)


# -- Command log tab --

_RECORD_STYLES = {
    CallStatus.OK: "",
    CallStatus.FAILED: "red",
    CallStatus.UNAVAILABLE: "bold red",
    CallStatus.CANCELLED: "yellow",
}


def command_log_panel(state: UIState, command_log: CommandLog, highlight: str) -> Text:
    records = command_log.newest_first()
    cursor = state.command_log.cursor
    lines: list[Text] = []
    for index, record in enumerate(records):
        line = Text(record.display, style=_RECORD_STYLES[record.status])
        if index == cursor.selected:
            _highlight(line, highlight)
        lines.append(line)
    if not lines:
        return Text("No commands run yet", style="dim")
    return _finish(_window(lines, cursor.scroll, cursor.height), state.wrap)


def selected_record(state: UIState, command_log: CommandLog) -> CommandRecord | None:
    records = command_log.newest_first()
    selected = state.command_log.cursor.selected
    if selected is None or selected >= len(records):
        return None
    return records[selected]


def command_output(state: UIState, command_log: CommandLog) -> Text:
    record = selected_record(state, command_log)
    if record is None:
        return Text("")
    text = Text()
    text.append(f"$ {record.command_line}\n", style="bold")
    summary = f"{record.status.value}"
    if record.exit_code is not None:
        summary += f", exit {record.exit_code}"
    summary += f", {record.duration:.2f}s"
    text.append(summary + "\n", style=_RECORD_STYLES[record.status] or "dim")
    if record.status is CallStatus.OK and record.error:
        text.append(f"note: {record.error}\n", style="yellow")
    body = Text.from_ansi(record.stdout) if record.stdout else Text()
    if record.stderr:
        if body:
            body.append("\n")
        body.append_text(Text.from_ansi(record.stderr))
    lines = body.split("\n")
    scroll = state.command_log.output_scroll
    text.append_text(Text("\n").join(lines[scroll : scroll + state.details_height]))
    return _finish(text, state.wrap)


# -- Help tab --


def help_lines(keymap: Keymap) -> list[Text]:
    """Every binding, grouped by context, one entry per line."""
    lines: list[Text] = []
    for context, heading in _HELP_SECTIONS:
        entries = keymap.help_entries(context)
        disabled = keymap.disabled_in(context)
        if not entries and not disabled:
            continue
        if lines:
            lines.append(Text(""))
        lines.append(Text(heading, style="bold underline"))
        width = max((len(e.keys) for e in entries), default=0)
        for entry in entries:
            line = Text("  ")
            line.append(entry.keys.ljust(width), style="bold cyan")
            line.append("  ")
            line.append(entry.description)
            lines.append(line)
        if disabled:
            names = ", ".join(action.value for action in Action if action in disabled)
            lines.append(Text(f"  disabled: {names}", style="dim"))
    for warning in keymap.warnings:
        lines.append(Text(f"warning: {warning}", style="yellow"))
    return lines


def help_panel(state: UIState, lines: list[Text]) -> Text:
    cursor = state.help.cursor
    return _window(lines, cursor.scroll, cursor.height)


# -- Popups --


def confirm_body(popup: ConfirmPopup) -> Text:
    text = Text(popup.prompt)
    text.append("\n\n")
    if popup.pending_token is not None:
        text.append("Running…", style="dim")
    else:
        text.append("y", style="bold")
        text.append(" yes   ")
        text.append("n", style="bold")
        text.append(" no")
    if popup.error:
        text.append(f"\n\n{popup.error}", style="red")
    return text


def prompt_footer(popup: TextPrompt, keymap: Keymap) -> Text:
    text = Text()
    if popup.loading:
        text.append("Loading…  ", style="dim")
    elif popup.pending_token is not None:
        text.append("Running…  ", style="dim")
    save = ", ".join(c.label for c in keymap.chords_for(Action.SAVE, Context.PROMPT))
    if save:
        text.append(f"{save} save", style="dim")
        if not popup.multiline:
            text.append(" (or enter)", style="dim")
    if popup.error:
        text.append(f"\n{popup.error}", style="red")
    return text


def picker_body(popup: BookmarkPicker, highlight: str) -> Text:
    lines: list[Text] = []
    for index, option in enumerate(popup.options):
        line = Text(option.label)
        if index == popup.selected:
            _highlight(line, highlight)
        lines.append(line)
    text = Text("\n").join(lines)
    if popup.pending_token is not None:
        text.append("\n\nRunning…", style="dim")
    if popup.error:
        text.append(f"\n\n{popup.error}", style="red")
    return text


def main_and_side(state: UIState, command_log: CommandLog, highlight: str, help_text: list[Text]):
    """Content of both panels for the active tab."""
    tab = state.tab
    if tab is Tab.LOG:
        return log_panel(state, highlight), log_details(state)
    if tab is Tab.FILES:
        return files_panel(state, highlight), file_diff(state)
    if tab is Tab.BOOKMARKS:
        return bookmarks_panel(state, highlight), bookmark_details(state)
    if tab is Tab.COMMAND_LOG:
        return command_log_panel(state, command_log, highlight), command_output(state, command_log)
    return help_panel(state, help_text), None


def panel_titles(state: UIState) -> tuple[str, str]:
    tab = state.tab
    if tab is Tab.LOG:
        return log_title(state), "Details"
    if tab is Tab.FILES:
        return files_title(state), "Diff"
    if tab is Tab.BOOKMARKS:
        return bookmarks_title(state), "Details"
    if tab is Tab.COMMAND_LOG:
        return f"Command log ({len(state.running)} running)", "Output"
    return "Help", ""
