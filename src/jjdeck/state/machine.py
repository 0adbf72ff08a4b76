"""StateMachine: folds logical actions and call results into :class:`UIState`.

Inputs are :meth:`StateMachine.dispatch` (a resolved :class:`Action`),
:meth:`StateMachine.complete` (a :class:`Completion` for an earlier
request) and :meth:`StateMachine.selection_settled` (the UI's debounce
signal after navigation).  Each returns the requests the caller must
execute; the machine itself never touches the repository.

Ordering rules:

- Navigation only changes selection and scroll; it never issues a call.
- A query result is applied only if no newer result for the same slot has
  already been applied (last-refresh-wins).
- A mutation opened from a popup keeps the popup open until it finishes;
  on failure the popup stays with its buffer and an error, on success it
  closes and the affected data is re-queried.
- A cancelled mutation triggers no refresh.
- The command log selection stays on the same record while new records
  are appended.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable

from jjdeck.keys.actions import Action, Context
from jjdeck.logging import get_logger
from jjdeck.state import navigation as nav
from jjdeck.state.model import (
    TAB_ORDER,
    BookmarkPicker,
    ConfirmPopup,
    Cursor,
    Notice,
    PickerKind,
    PickerOption,
    Popup,
    PromptPurpose,
    Severity,
    Tab,
    TextPrompt,
    UIState,
)
from jjdeck.state.requests import (
    SLOT_BOOKMARK_DETAILS,
    SLOT_BOOKMARKS,
    SLOT_DESCRIPTION,
    SLOT_FILE_DIFF,
    SLOT_FILES,
    SLOT_LOG,
    SLOT_LOG_DETAILS,
    CancelCall,
    Completion,
    Mutation,
    Operation,
    Query,
    QueryOp,
    Request,
)
from jjdeck.vcs import commands
from jjdeck.vcs.models import Bookmark, Change, DiffFormat, FileListing, LogSnapshot
from jjdeck.vcs.records import CommandLog, CommandRecord
from jjdeck.vcs.styled import StyledText, decode_ansi, plain_lines

_log = get_logger("state.machine")

_NAVIGATION = {
    Action.SCROLL_DOWN,
    Action.SCROLL_UP,
    Action.SCROLL_DOWN_HALF,
    Action.SCROLL_UP_HALF,
    Action.PAGE_DOWN,
    Action.PAGE_UP,
    Action.TOP,
    Action.BOTTOM,
    Action.DETAILS_DOWN,
    Action.DETAILS_UP,
}

_TAB_ACTIONS = {
    Action.TAB_LOG: Tab.LOG,
    Action.TAB_FILES: Tab.FILES,
    Action.TAB_BOOKMARKS: Tab.BOOKMARKS,
    Action.TAB_COMMAND_LOG: Tab.COMMAND_LOG,
    Action.TAB_HELP: Tab.HELP,
}

_GENERATED_ID_LENGTH = 12
_DETAILS_STEP = 3


def revision_of(change: Change) -> str:
    """Revision argument for *change*; divergent changes need the commit id."""
    return change.commit_id if change.divergent else change.change_id


class StateMachine:
    """Owns :class:`UIState` and every transition on it."""

    def __init__(
        self,
        command_log: CommandLog,
        *,
        revset: str | None = None,
        default_revset: str | None = None,
        diff_format: DiffFormat = DiffFormat.COLOR_WORDS,
        bookmark_prefix: str = "push-",
    ) -> None:
        self.command_log = command_log
        self.default_revset = default_revset
        self.bookmark_prefix = bookmark_prefix
        self.help_lines = 0
        self.state = UIState(diff_format=diff_format)
        self.state.log.revset = revset or default_revset
        self._tokens = itertools.count(1)
        self._issued: dict[int, Request] = {}
        self._applied: dict[str, int] = {}
        command_log.on("append", self._record_appended)

    # -- Public API --

    @property
    def popup(self) -> Popup | None:
        return self.state.popup

    @property
    def context(self) -> Context:
        """The key context currently in effect."""
        popup = self.state.popup
        if popup is not None:
            return popup.context
        return self.state.tab.context

    def start(self) -> list[Request]:
        """Initial requests: the log (which also yields the head)."""
        return [self._log_query()]

    def dispatch(self, action: Action) -> list[Request]:
        popup = self.state.popup
        if popup is not None:
            return self._popup_action(popup, action)
        if action in _NAVIGATION:
            self._navigate(action)
            return []
        if action in _TAB_ACTIONS:
            return self._switch(_TAB_ACTIONS[action])
        handler: Callable[[], list[Request]] | None = getattr(
            self, f"_do_{action.name.lower()}", None
        )
        if handler is None:
            _log.debug("action %s has no effect here", action.value)
            return []
        return handler()

    def complete(self, completion: Completion) -> list[Request]:
        request = self._issued.pop(completion.token, None)
        if request is None:
            _log.debug("completion for unknown token %d ignored", completion.token)
            return []
        if isinstance(request, Mutation):
            return self._complete_mutation(request, completion)
        if isinstance(request, Query):
            return self._complete_query(request, completion)
        return []

    def selection_settled(self) -> list[Request]:
        """Load details for the current selection if they are not shown yet."""
        if self.state.popup is not None:
            return []
        tab = self.state.tab
        if tab is Tab.LOG:
            return self._log_details_query()
        if tab is Tab.FILES:
            return self._file_diff_query()
        if tab is Tab.BOOKMARKS:
            return self._bookmark_details_query()
        return []

    def edit_prompt(self, text: str) -> None:
        popup = self.state.popup
        if isinstance(popup, TextPrompt):
            popup.buffer = text

    def set_viewport(self, height: int, details_height: int | None = None) -> None:
        """Record how many list lines are visible and keep selections in view."""
        height = max(1, height)
        for tab in TAB_ORDER:
            self._cursor(tab).height = height
            self._reveal(tab)
        if details_height is not None:
            self.state.details_height = max(1, details_height)

    def drain_notices(self) -> list[Notice]:
        notices, self.state.notices = self.state.notices, []
        return notices

    def outstanding(self) -> int:
        return len(self._issued)

    # -- Requests --

    def _next_token(self) -> int:
        return next(self._tokens)

    def _query(self, op: QueryOp, slot: str, **params: object) -> Query:
        query = Query(self._next_token(), op, slot, params)
        self._issued[query.token] = query
        return query

    def _mutation(self, operation: Operation) -> Mutation:
        mutation = Mutation(self._next_token(), operation)
        self._issued[mutation.token] = mutation
        self.state.running[mutation.token] = operation
        _log.debug("mutation %d: %s", mutation.token, " ".join(operation.args))
        return mutation

    def _log_query(self) -> Query:
        return self._query(QueryOp.LOG, SLOT_LOG, revset=self.state.log.revset)

    def _files_query(self) -> list[Request]:
        change = self.state.files.change
        if change is None:
            return []
        return [self._query(QueryOp.FILES, SLOT_FILES, rev=revision_of(change))]

    def _bookmarks_query(self) -> Query:
        return self._query(
            QueryOp.BOOKMARKS, SLOT_BOOKMARKS, all_remotes=self.state.bookmarks.all_remotes
        )

    def _log_details_query(self, force: bool = False) -> list[Request]:
        log = self.state.log
        change = log.selected_change
        if change is None:
            return []
        key = change.commit_id
        if not force and key in (log.details_for, log.details_requested):
            return []
        log.details_requested = key
        return [
            self._query(
                QueryOp.SHOW,
                SLOT_LOG_DETAILS,
                rev=revision_of(change),
                key=key,
                diff_format=self.state.diff_format,
            )
        ]

    def _file_diff_query(self, force: bool = False) -> list[Request]:
        files = self.state.files
        file = files.selected_file
        if file is None or files.change is None:
            return []
        key = f"{files.change.commit_id}:{file.path}"
        if not force and key in (files.diff_for, files.diff_requested):
            return []
        files.diff_requested = key
        return [
            self._query(
                QueryOp.FILE_DIFF,
                SLOT_FILE_DIFF,
                rev=revision_of(files.change),
                path=file.path,
                key=key,
                diff_format=self.state.diff_format,
            )
        ]

    def _bookmark_details_query(self, force: bool = False) -> list[Request]:
        tab = self.state.bookmarks
        bookmark = tab.selected_bookmark
        if bookmark is None:
            return []
        key = f"{bookmark.ref}:{bookmark.target}"
        if not force and key in (tab.details_for, tab.details_requested):
            return []
        tab.details_requested = key
        return [
            self._query(
                QueryOp.BOOKMARK_SHOW,
                SLOT_BOOKMARK_DETAILS,
                bookmark=bookmark,
                key=key,
                diff_format=self.state.diff_format,
            )
        ]

    def _details_query(self, force: bool = False) -> list[Request]:
        tab = self.state.tab
        if tab is Tab.LOG:
            return self._log_details_query(force)
        if tab is Tab.FILES:
            return self._file_diff_query(force)
        if tab is Tab.BOOKMARKS:
            return self._bookmark_details_query(force)
        return []

    # -- Notices --

    def _notify(self, text: str, severity: Severity = Severity.INFO, title: str = "") -> None:
        self.state.notices.append(Notice(text, title, severity))

    def _error(self, text: str, title: str = "") -> list[Request]:
        self._notify(text, Severity.ERROR, title)
        return []

    # -- Navigation --

    def _cursor(self, tab: Tab) -> Cursor:
        return {
            Tab.LOG: self.state.log.cursor,
            Tab.FILES: self.state.files.cursor,
            Tab.BOOKMARKS: self.state.bookmarks.cursor,
            Tab.COMMAND_LOG: self.state.command_log.cursor,
            Tab.HELP: self.state.help.cursor,
        }[tab]

    def _length(self, tab: Tab) -> int:
        if tab is Tab.LOG:
            return len(self.state.log.changes)
        if tab is Tab.FILES:
            return len(self.state.files.files)
        if tab is Tab.BOOKMARKS:
            return len(self.state.bookmarks.bookmarks)
        if tab is Tab.COMMAND_LOG:
            return len(self.command_log)
        return self.help_lines

    def _reveal(self, tab: Tab) -> None:
        """Scroll only as far as needed for the selection to be visible."""
        cursor = self._cursor(tab)
        if tab is Tab.HELP:
            cursor.scroll = nav.clamp_scroll(cursor.scroll, cursor.height, self.help_lines)
            return
        if tab is Tab.LOG:
            snapshot = self.state.log.snapshot
            total = len(snapshot.line_changes) if snapshot else 0
            if snapshot is None or cursor.selected is None:
                cursor.scroll = nav.clamp_scroll(cursor.scroll, cursor.height, total)
                return
            first, last = snapshot.line_span(cursor.selected)
            cursor.scroll = nav.ensure_visible(cursor.scroll, first, last, cursor.height, total)
            return
        total = self._length(tab)
        if cursor.selected is None:
            cursor.scroll = nav.clamp_scroll(cursor.scroll, cursor.height, total)
            return
        cursor.scroll = nav.ensure_visible(
            cursor.scroll, cursor.selected, cursor.selected + 1, cursor.height, total
        )

    def _step(self, tab: Tab, lines: int) -> int:
        """Convert a line count into entries for panels with multi-line entries."""
        snapshot = self.state.log.snapshot
        if tab is not Tab.LOG or snapshot is None or not snapshot.changes:
            return max(1, lines)
        per_entry = max(1, len(snapshot.line_changes) // len(snapshot.changes))
        return max(1, lines // per_entry)

    def _navigate(self, action: Action) -> None:
        tab = self.state.tab
        if action in (Action.DETAILS_DOWN, Action.DETAILS_UP):
            self._scroll_details(_DETAILS_STEP if action is Action.DETAILS_DOWN else -_DETAILS_STEP)
            return
        cursor = self._cursor(tab)
        height = cursor.height
        delta = {
            Action.SCROLL_DOWN: 1,
            Action.SCROLL_UP: -1,
            Action.SCROLL_DOWN_HALF: self._step(tab, nav.half_page(height)),
            Action.SCROLL_UP_HALF: -self._step(tab, nav.half_page(height)),
            Action.PAGE_DOWN: self._step(tab, nav.full_page(height)),
            Action.PAGE_UP: -self._step(tab, nav.full_page(height)),
        }.get(action, 0)
        if tab is Tab.HELP:
            if action is Action.TOP:
                cursor.scroll = 0
            elif action is Action.BOTTOM:
                cursor.scroll = self.help_lines
            else:
                cursor.scroll += delta
            self._reveal(tab)
            return
        length = self._length(tab)
        if action is Action.TOP:
            cursor.selected = nav.clamp_index(0, length)
        elif action is Action.BOTTOM:
            cursor.selected = nav.clamp_index(length - 1, length)
        else:
            cursor.selected = nav.move(cursor.selected, length, delta)
        self._reveal(tab)

    def _record_appended(self, record: CommandRecord) -> None:
        # The list is newest first: a new record pushes every row down one.
        cursor = self.state.command_log.cursor
        if cursor.selected is None:
            return
        cursor.selected += 1
        if cursor.scroll > 0:
            cursor.scroll += 1
        self._reveal(Tab.COMMAND_LOG)

    def _scroll_details(self, delta: int) -> None:
        tab = self.state.tab
        height = self.state.details_height
        if tab is Tab.LOG:
            log = self.state.log
            total = len(log.details) if log.details else 0
            log.details_scroll = nav.clamp_scroll(log.details_scroll + delta, height, total)
        elif tab is Tab.FILES:
            files = self.state.files
            total = len(files.diff) if files.diff else 0
            files.diff_scroll = nav.clamp_scroll(files.diff_scroll + delta, height, total)
        elif tab is Tab.BOOKMARKS:
            bm = self.state.bookmarks
            total = len(bm.details) if bm.details else 0
            bm.details_scroll = nav.clamp_scroll(bm.details_scroll + delta, height, total)
        elif tab is Tab.COMMAND_LOG:
            self.state.command_log.output_scroll = max(
                0, self.state.command_log.output_scroll + delta
            )

    # -- Tabs --

    def _switch(self, tab: Tab) -> list[Request]:
        self.state.tab = tab
        if tab is Tab.LOG and not self.state.log.loaded:
            return [self._log_query()]
        if tab is Tab.FILES and self.state.files.change is None:
            change = self.state.log.selected_change or self.state.head
            if change is None:
                return []
            self.state.files.change = change
            return self._files_query()
        if tab is Tab.BOOKMARKS and not self.state.bookmarks.loaded:
            return [self._bookmarks_query()]
        return []

    def _do_next_tab(self) -> list[Request]:
        index = TAB_ORDER.index(self.state.tab)
        return self._switch(TAB_ORDER[(index + 1) % len(TAB_ORDER)])

    def _do_prev_tab(self) -> list[Request]:
        index = TAB_ORDER.index(self.state.tab)
        return self._switch(TAB_ORDER[(index - 1) % len(TAB_ORDER)])

    # -- Global actions --

    def _do_quit(self) -> list[Request]:
        self.state.quit_requested = True
        return []

    def _do_refresh(self) -> list[Request]:
        tab = self.state.tab
        if tab is Tab.LOG:
            return [self._log_query()]
        if tab is Tab.FILES:
            return self._files_query()
        if tab is Tab.BOOKMARKS:
            return [self._bookmarks_query()]
        return []

    def _do_toggle_diff_format(self) -> list[Request]:
        self.state.diff_format = self.state.diff_format.toggled()
        return self._details_query(force=True)

    def _do_toggle_wrap(self) -> list[Request]:
        self.state.wrap = not self.state.wrap
        return []

    def _do_command_prompt(self) -> list[Request]:
        self.state.popup = TextPrompt(PromptPurpose.COMMAND, "Run jj command", buffer="")
        return []

    def _do_cancel_command(self) -> list[Request]:
        cancellable = [t for t, op in self.state.running.items() if op.cancellable]
        if not cancellable:
            self._notify("No running command can be cancelled")
            return []
        return [CancelCall(max(cancellable))]

    def _do_focus_current(self) -> list[Request]:
        tab = self.state.tab
        head = self.state.head
        if tab is Tab.LOG:
            snapshot = self.state.log.snapshot
            index = snapshot.find(head.change_id, head.commit_id) if snapshot and head else None
            if index is None:
                self._notify("The working-copy change is not in the current revset")
                return []
            self.state.log.cursor.selected = index
            self._reveal(Tab.LOG)
            return []
        if tab is Tab.FILES:
            if head is None:
                return []
            self.state.files.change = head
            return self._files_query()
        if tab is Tab.COMMAND_LOG:
            self.state.command_log.cursor.selected = nav.clamp_index(0, len(self.command_log))
            self.state.command_log.output_scroll = 0
            self._reveal(Tab.COMMAND_LOG)
        return []

    # -- Log actions --

    def _selected(self) -> Change | None:
        return self.state.log.selected_change if self.state.tab is Tab.LOG else None

    def _guard_mutable(self, change: Change, verb: str) -> bool:
        if change.immutable:
            self._notify(
                f"The change cannot be {verb} because it is immutable.",
                Severity.ERROR,
                "Immutable change",
            )
            return False
        return True

    def _confirm(self, title: str, prompt: str, operation: Operation) -> list[Request]:
        self.state.popup = ConfirmPopup(title, prompt, operation)
        return []

    def _do_new(self) -> list[Request]:
        change = self._selected()
        if change is None:
            return []
        return self._confirm(
            "New change",
            f"Create a new change on top of {change.short_id}?",
            Operation(commands.new(revision_of(change)), "new"),
        )

    def _do_new_describe(self) -> list[Request]:
        change = self._selected()
        if change is None:
            return []
        self.state.popup = TextPrompt(
            PromptPurpose.NEW_DESCRIBE,
            f"Message for new change on {change.short_id}",
            target=revision_of(change),
            multiline=True,
        )
        return []

    def _squash(self, ignore_immutable: bool) -> list[Request]:
        change = self._selected()
        head = self.state.head
        if change is None:
            return []
        if head is None:
            return self._error("The working-copy change is unknown; refresh first.")
        if change.commit_id == head.commit_id:
            return self._error("Cannot squash the working-copy change into itself.")
        if not ignore_immutable and not self._guard_mutable(change, "squashed into"):
            return []
        return self._confirm(
            "Squash",
            f"Squash @ into {change.short_id}?",
            Operation(commands.squash_into(revision_of(change), ignore_immutable), "squash"),
        )

    def _do_squash(self) -> list[Request]:
        return self._squash(ignore_immutable=False)

    def _do_squash_ignore_immutable(self) -> list[Request]:
        return self._squash(ignore_immutable=True)

    def _edit(self, ignore_immutable: bool) -> list[Request]:
        change = self._selected()
        if change is None:
            return []
        if not ignore_immutable and not self._guard_mutable(change, "edited"):
            return []
        return self._confirm(
            "Edit change",
            f"Edit {change.short_id}? The working copy will move to it.",
            Operation(commands.edit(revision_of(change), ignore_immutable), "edit"),
        )

    def _do_edit(self) -> list[Request]:
        return self._edit(ignore_immutable=False)

    def _do_edit_ignore_immutable(self) -> list[Request]:
        return self._edit(ignore_immutable=True)

    def _do_abandon(self) -> list[Request]:
        change = self._selected()
        if change is None or not self._guard_mutable(change, "abandoned"):
            return []
        return self._confirm(
            "Abandon change",
            f"Abandon {change.short_id} ({change.title})?",
            Operation(commands.abandon(revision_of(change)), "abandon", refresh_bookmarks=True),
        )

    def _do_describe(self) -> list[Request]:
        change = self._selected()
        if change is None or not self._guard_mutable(change, "described"):
            return []
        rev = revision_of(change)
        self.state.popup = TextPrompt(
            PromptPurpose.DESCRIBE,
            f"Describe {change.short_id}",
            target=rev,
            multiline=True,
            loading=True,
        )
        return [self._query(QueryOp.DESCRIPTION, SLOT_DESCRIPTION, rev=rev)]

    def _do_edit_revset(self) -> list[Request]:
        if self.state.tab is not Tab.LOG:
            return []
        self.state.popup = TextPrompt(
            PromptPurpose.REVSET, "Revset", buffer=self.state.log.revset or ""
        )
        return []

    def _do_set_bookmark(self) -> list[Request]:
        change = self._selected()
        if change is None:
            return []
        picker = BookmarkPicker(change=change, rev=revision_of(change))
        picker.options = self._picker_options(picker)
        self.state.popup = picker
        return [self._bookmarks_query()]

    def _picker_options(self, picker: BookmarkPicker) -> list[PickerOption]:
        local = [b.name for b in self.state.bookmarks.bookmarks if b.is_local]
        generated = f"{self.bookmark_prefix}{picker.change.change_id[:_GENERATED_ID_LENGTH]}"
        options = [
            PickerOption(PickerKind.CREATE),
            PickerOption(PickerKind.GENERATED, generated, exists=generated in local),
        ]
        seen = {generated}
        for name in local:
            if name not in seen:
                seen.add(name)
                options.append(PickerOption(PickerKind.EXISTING, name, exists=True))
        return options

    def _do_open_files(self) -> list[Request]:
        change = self._selected()
        if change is None:
            return []
        self.state.files.change = change
        self.state.tab = Tab.FILES
        return self._files_query()

    def _push(self, *, all_bookmarks: bool, allow_new: bool) -> list[Request]:
        rev = None
        if not all_bookmarks:
            change = self._selected()
            if change is None:
                return []
            rev = revision_of(change)
        operation = Operation(
            commands.git_push(rev, all_bookmarks=all_bookmarks, allow_new=allow_new),
            "push",
            refresh_bookmarks=True,
            cancellable=True,
            show_output=True,
        )
        return [self._mutation(operation)]

    def _do_push(self) -> list[Request]:
        return self._push(all_bookmarks=False, allow_new=False)

    def _do_push_new(self) -> list[Request]:
        return self._push(all_bookmarks=False, allow_new=True)

    def _do_push_all(self) -> list[Request]:
        return self._push(all_bookmarks=True, allow_new=False)

    def _do_push_all_new(self) -> list[Request]:
        return self._push(all_bookmarks=True, allow_new=True)

    def _fetch(self, all_remotes: bool) -> list[Request]:
        operation = Operation(
            commands.git_fetch(all_remotes),
            "fetch",
            refresh_bookmarks=True,
            cancellable=True,
            show_output=True,
        )
        return [self._mutation(operation)]

    def _do_fetch(self) -> list[Request]:
        return self._fetch(all_remotes=False)

    def _do_fetch_all_remotes(self) -> list[Request]:
        return self._fetch(all_remotes=True)

    # -- Files actions --

    def _do_untrack_file(self) -> list[Request]:
        files = self.state.files
        file = files.selected_file
        if self.state.tab is not Tab.FILES or file is None or files.change is None:
            return []
        head = self.state.head
        if head is None or files.change.change_id != head.change_id:
            return self._error("Only files of the working-copy change can be untracked.")
        return self._confirm(
            "Untrack file",
            f"Stop tracking {file.path}? It must be ignored to stay untracked.",
            Operation(commands.file_untrack(file.path), "untrack"),
        )

    # -- Bookmark actions --

    def _bookmark(self, *, local: bool | None = None) -> Bookmark | None:
        if self.state.tab is not Tab.BOOKMARKS:
            return None
        bookmark = self.state.bookmarks.selected_bookmark
        if bookmark is None:
            return None
        if local is True and not bookmark.is_local:
            self._notify(f"{bookmark.ref} is a remote bookmark", Severity.WARNING)
            return None
        if local is False and bookmark.is_local:
            self._notify(f"{bookmark.ref} is a local bookmark", Severity.WARNING)
            return None
        return bookmark

    def _do_create_bookmark(self) -> list[Request]:
        if self.state.tab is not Tab.BOOKMARKS:
            return []
        self.state.popup = TextPrompt(PromptPurpose.CREATE_BOOKMARK, "Create bookmark at @")
        return []

    def _do_rename_bookmark(self) -> list[Request]:
        bookmark = self._bookmark(local=True)
        if bookmark is None:
            return []
        self.state.popup = TextPrompt(
            PromptPurpose.RENAME_BOOKMARK,
            f"Rename {bookmark.name}",
            buffer=bookmark.name,
            target=bookmark.name,
        )
        return []

    def _do_delete_bookmark(self) -> list[Request]:
        bookmark = self._bookmark(local=True)
        if bookmark is None:
            return []
        return self._confirm(
            "Delete bookmark",
            f"Delete {bookmark.name}? The deletion is pushed on the next push.",
            Operation(commands.bookmark_delete(bookmark.name), "delete", refresh_bookmarks=True),
        )

    def _do_forget_bookmark(self) -> list[Request]:
        bookmark = self._bookmark()
        if bookmark is None:
            return []
        return self._confirm(
            "Forget bookmark",
            f"Forget {bookmark.name}? It will be recreated on the next fetch.",
            Operation(commands.bookmark_forget(bookmark.name), "forget", refresh_bookmarks=True),
        )

    def _do_track_bookmark(self) -> list[Request]:
        bookmark = self._bookmark(local=False)
        if bookmark is None:
            return []
        if bookmark.tracked or bookmark.is_git_remote:
            self._notify(f"{bookmark.ref} cannot be tracked", Severity.WARNING)
            return []
        op = Operation(commands.bookmark_track(bookmark.ref), "track", refresh_bookmarks=True)
        return [self._mutation(op)]

    def _do_untrack_bookmark(self) -> list[Request]:
        bookmark = self._bookmark(local=False)
        if bookmark is None:
            return []
        if not bookmark.tracked or bookmark.is_git_remote:
            self._notify(f"{bookmark.ref} is not tracked", Severity.WARNING)
            return []
        op = Operation(commands.bookmark_untrack(bookmark.ref), "untrack", refresh_bookmarks=True)
        return [self._mutation(op)]

    def _do_new_at_bookmark(self) -> list[Request]:
        bookmark = self._bookmark()
        if bookmark is None or bookmark.target is None:
            return []
        return self._confirm(
            "New change",
            f"Create a new change on top of {bookmark.ref}?",
            Operation(commands.new(bookmark.ref), "new"),
        )

    def _do_new_describe_at_bookmark(self) -> list[Request]:
        bookmark = self._bookmark()
        if bookmark is None or bookmark.target is None:
            return []
        self.state.popup = TextPrompt(
            PromptPurpose.NEW_DESCRIBE,
            f"Message for new change on {bookmark.ref}",
            target=bookmark.ref,
            multiline=True,
        )
        return []

    def _edit_at_bookmark(self, ignore_immutable: bool) -> list[Request]:
        bookmark = self._bookmark()
        if bookmark is None or bookmark.target is None:
            return []
        if bookmark.immutable and not ignore_immutable:
            self._notify(
                "The change cannot be edited because it is immutable.",
                Severity.ERROR,
                "Immutable change",
            )
            return []
        return self._confirm(
            "Edit change",
            f"Edit the change {bookmark.ref} points to?",
            Operation(commands.edit(bookmark.ref, ignore_immutable), "edit"),
        )

    def _do_edit_at_bookmark(self) -> list[Request]:
        return self._edit_at_bookmark(ignore_immutable=False)

    def _do_edit_at_bookmark_ignore_immutable(self) -> list[Request]:
        return self._edit_at_bookmark(ignore_immutable=True)

    def _do_toggle_all_remotes(self) -> list[Request]:
        if self.state.tab is not Tab.BOOKMARKS:
            return []
        self.state.bookmarks.all_remotes = not self.state.bookmarks.all_remotes
        return [self._bookmarks_query()]

    def _do_open_in_log(self) -> list[Request]:
        bookmark = self._bookmark()
        if bookmark is None or bookmark.target is None:
            return []
        snapshot = self.state.log.snapshot
        index = snapshot.find(bookmark.target) if snapshot else None
        if index is None:
            self._notify(f"{bookmark.ref} is not in the current revset")
            return []
        self.state.tab = Tab.LOG
        self.state.log.cursor.selected = index
        self._reveal(Tab.LOG)
        return self._log_details_query()

    # -- Popups --

    def _popup_action(self, popup: Popup, action: Action) -> list[Request]:
        if action is Action.CANCEL:
            self.state.popup = None
            return []
        if isinstance(popup, ConfirmPopup):
            if action is Action.ACCEPT:
                return self._submit(popup, popup.operation)
            return []
        if isinstance(popup, TextPrompt):
            if action is Action.SAVE:
                return self._submit_prompt(popup)
            return []
        return self._picker_action(popup, action)

    def _submit(self, popup: Popup, operation: Operation) -> list[Request]:
        """Issue *operation* for *popup*; the popup stays open until it ends."""
        if popup.pending_token is not None:
            return []
        mutation = self._mutation(operation)
        popup.pending_token = mutation.token
        popup.error = None
        return [mutation]

    def _submit_prompt(self, prompt: TextPrompt) -> list[Request]:
        if prompt.loading or prompt.pending_token is not None:
            return []
        text = prompt.buffer
        purpose = prompt.purpose
        if purpose is PromptPurpose.REVSET:
            self.state.popup = None
            self.state.log.revset = text.strip() or self.default_revset
            return [self._log_query()]
        if purpose is PromptPurpose.DESCRIBE:
            return self._submit(
                prompt, Operation(commands.describe(prompt.target or "@", text), "describe")
            )
        if purpose is PromptPurpose.NEW_DESCRIBE:
            return self._submit(
                prompt, Operation(commands.new(prompt.target or "@", text.strip() or None), "new")
            )
        if purpose is PromptPurpose.COMMAND:
            try:
                args = commands.parse_command_line(text)
            except ValueError as exc:
                prompt.error = str(exc)
                return []
            operation = Operation(
                args, args[0], refresh_bookmarks=True, cancellable=True, show_output=True
            )
            return self._submit(prompt, operation)

        name = text.strip()
        if not name:
            prompt.error = "Bookmark name cannot be empty"
            return []
        if purpose is PromptPurpose.CREATE_BOOKMARK:
            op = Operation(commands.bookmark_create(name), "bookmark", refresh_bookmarks=True)
        elif purpose is PromptPurpose.RENAME_BOOKMARK:
            if name == prompt.target:
                self.state.popup = None
                return []
            op = Operation(
                commands.bookmark_rename(prompt.target or "", name),
                "bookmark",
                refresh_bookmarks=True,
            )
        else:
            op = self._bookmark_operation(name, prompt.target or "@")
        return self._submit(prompt, op)

    def _bookmark_operation(self, name: str, rev: str) -> Operation:
        exists = any(b.is_local and b.name == name for b in self.state.bookmarks.bookmarks)
        args = commands.bookmark_set(name, rev) if exists else commands.bookmark_create(name, rev)
        return Operation(args, "bookmark", refresh_bookmarks=True)

    def _picker_action(self, picker: BookmarkPicker, action: Action) -> list[Request]:
        if action in (Action.SCROLL_DOWN, Action.SCROLL_UP):
            if picker.options:
                step = 1 if action is Action.SCROLL_DOWN else -1
                picker.selected = nav.move(picker.selected, len(picker.options), step) or 0
            return []
        if action is Action.PICKER_CREATE:
            return self._picker_accept(picker, PickerOption(PickerKind.CREATE))
        if action is Action.PICKER_GENERATE:
            generated = next(
                (o for o in picker.options if o.kind is PickerKind.GENERATED), None
            )
            return self._picker_accept(picker, generated) if generated else []
        if action is Action.ACCEPT and picker.current is not None:
            return self._picker_accept(picker, picker.current)
        return []

    def _picker_accept(self, picker: BookmarkPicker, option: PickerOption) -> list[Request]:
        if picker.pending_token is not None:
            return []
        if option.kind is PickerKind.CREATE:
            self.state.popup = TextPrompt(
                PromptPurpose.PICKER_NAME,
                f"Bookmark name for {picker.change.short_id}",
                target=picker.rev,
            )
            return []
        return self._submit(picker, self._bookmark_operation(option.name, picker.rev))

    # -- Completions --

    def _complete_mutation(self, mutation: Mutation, completion: Completion) -> list[Request]:
        operation = self.state.running.pop(mutation.token, mutation.operation)
        popup = self.state.popup
        gated = popup is not None and popup.pending_token == mutation.token

        if completion.cancelled:
            if gated:
                popup.pending_token = None
                popup.error = "Cancelled"
            self._notify(f"{operation.label} cancelled", Severity.WARNING)
            return []

        if completion.error is not None:
            message = str(completion.error)
            if gated:
                popup.pending_token = None
                popup.error = message
            else:
                self._notify(message, Severity.ERROR, f"{operation.label} failed")
            return []

        if gated:
            self.state.popup = None
        if operation.show_output:
            text = _output_text(completion.value)
            if text:
                self._notify(text, Severity.INFO, operation.label)
        return self._refresh_after_mutation(operation)

    def _refresh_after_mutation(self, operation: Operation) -> list[Request]:
        requests: list[Request] = [self._log_query()]
        if operation.refresh_bookmarks or self.state.bookmarks.loaded:
            requests.append(self._bookmarks_query())
        requests.extend(self._files_query())
        return requests

    def _complete_query(self, query: Query, completion: Completion) -> list[Request]:
        newest = self._applied.get(query.slot, 0)
        if query.token < newest:
            _log.debug(
                "dropping stale %s result (token %d < %d)", query.slot, query.token, newest
            )
            return []
        self._applied[query.slot] = query.token
        apply = {
            QueryOp.LOG: self._apply_log,
            QueryOp.SHOW: self._apply_log_details,
            QueryOp.DESCRIPTION: self._apply_description,
            QueryOp.FILES: self._apply_files,
            QueryOp.FILE_DIFF: self._apply_file_diff,
            QueryOp.BOOKMARKS: self._apply_bookmarks,
            QueryOp.BOOKMARK_SHOW: self._apply_bookmark_details,
        }[query.op]
        return apply(query, completion)

    def _apply_log(self, query: Query, completion: Completion) -> list[Request]:
        log = self.state.log
        log.loaded = True
        if completion.error is not None:
            log.error = str(completion.error)
            return []
        snapshot: LogSnapshot = completion.value
        previous = log.selected_change
        log.snapshot = snapshot
        log.error = None
        self.state.head = snapshot.head
        log.cursor.selected = self._reselect(snapshot, previous)
        self._reveal(Tab.LOG)
        return self._log_details_query(force=True)

    def _reselect(self, snapshot: LogSnapshot, previous: Change | None) -> int | None:
        """Same change if still listed, else the head, else the first entry."""
        if previous is not None:
            index = snapshot.find(previous.change_id, previous.commit_id)
            if index is not None:
                return index
        head = snapshot.head
        if head is not None:
            index = snapshot.find(head.change_id, head.commit_id)
            if index is not None:
                return index
        return 0 if snapshot.changes else None

    def _apply_log_details(self, query: Query, completion: Completion) -> list[Request]:
        log = self.state.log
        key = query.params["key"]
        if log.details_for != key:
            log.details_scroll = 0
        log.details = _details(completion)
        log.details_for = key
        if log.details_requested == key:
            log.details_requested = None
        return []

    def _apply_description(self, query: Query, completion: Completion) -> list[Request]:
        prompt = self.state.popup
        if (
            not isinstance(prompt, TextPrompt)
            or prompt.purpose is not PromptPurpose.DESCRIBE
            or prompt.target != query.params["rev"]
        ):
            return []
        prompt.loading = False
        if completion.error is not None:
            prompt.error = str(completion.error)
            return []
        prompt.buffer = completion.value
        prompt.revision += 1
        return []

    def _apply_files(self, query: Query, completion: Completion) -> list[Request]:
        files = self.state.files
        if completion.error is not None:
            files.error = str(completion.error)
            return []
        listing: FileListing = completion.value
        previous = files.selected_file
        files.listing = listing
        files.error = None
        index = None
        if previous is not None:
            index = next(
                (i for i, f in enumerate(listing.files) if f.path == previous.path), None
            )
        if index is None:
            index = nav.clamp_index(files.cursor.selected or 0, len(listing.files))
        files.cursor.selected = index
        self._reveal(Tab.FILES)
        if files.selected_file is None:
            files.diff = None
            files.diff_for = None
            return []
        return self._file_diff_query(force=True)

    def _apply_file_diff(self, query: Query, completion: Completion) -> list[Request]:
        files = self.state.files
        key = query.params["key"]
        if files.diff_for != key:
            files.diff_scroll = 0
        files.diff = _details(completion)
        files.diff_for = key
        if files.diff_requested == key:
            files.diff_requested = None
        return []

    def _apply_bookmarks(self, query: Query, completion: Completion) -> list[Request]:
        tab = self.state.bookmarks
        tab.loaded = True
        if completion.error is not None:
            tab.error = str(completion.error)
            return []
        previous = tab.selected_bookmark
        tab.bookmarks = completion.value
        tab.error = None
        index = None
        if previous is not None:
            index = next(
                (
                    i
                    for i, b in enumerate(tab.bookmarks)
                    if (b.name, b.remote) == (previous.name, previous.remote)
                ),
                None,
            )
        if index is None:
            index = nav.clamp_index(tab.cursor.selected or 0, len(tab.bookmarks))
        tab.cursor.selected = index
        self._reveal(Tab.BOOKMARKS)

        picker = self.state.popup
        if isinstance(picker, BookmarkPicker):
            current = picker.current
            picker.options = self._picker_options(picker)
            if current is not None:
                picker.selected = next(
                    (
                        i
                        for i, o in enumerate(picker.options)
                        if (o.kind, o.name) == (current.kind, current.name)
                    ),
                    0,
                )
        if self.state.tab is Tab.BOOKMARKS:
            return self._bookmark_details_query(force=True)
        return []

    def _apply_bookmark_details(self, query: Query, completion: Completion) -> list[Request]:
        tab = self.state.bookmarks
        key = query.params["key"]
        if tab.details_for != key:
            tab.details_scroll = 0
        tab.details = _details(completion)
        tab.details_for = key
        if tab.details_requested == key:
            tab.details_requested = None
        return []


def _details(completion: Completion) -> StyledText:
    if completion.error is not None:
        return plain_lines(str(completion.error).splitlines() or ["Error"])
    return completion.value


def _output_text(output: object) -> str:
    """Plain text of a mutation's stdout and stderr (jj reports on stderr)."""
    stdout = getattr(output, "stdout", "") or ""
    stderr = getattr(output, "stderr", "") or ""
    parts = [decode_ansi(s).plain.strip() for s in (stdout, stderr)]
    return "\n".join(p for p in parts if p)
