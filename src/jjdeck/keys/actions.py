"""Logical actions and the contexts keys are resolved in."""

from __future__ import annotations

from enum import Enum


class Context(Enum):
    """Where a chord is looked up.  Popup contexts are exclusive."""

    GLOBAL = "global"
    LOG = "log"
    FILES = "files"
    BOOKMARKS = "bookmarks"
    COMMAND_LOG = "command_log"
    HELP = "help"
    CONFIRM = "confirm"
    PROMPT = "prompt"
    PICKER = "picker"

    @property
    def is_popup(self) -> bool:
        return self in (Context.CONFIRM, Context.PROMPT, Context.PICKER)

    @classmethod
    def parse(cls, name: str) -> Context:
        return cls(name.strip().lower().replace("-", "_"))


class Action(Enum):
    # -- Global --
    QUIT = "quit"
    TAB_LOG = "tab-log"
    TAB_FILES = "tab-files"
    TAB_BOOKMARKS = "tab-bookmarks"
    TAB_COMMAND_LOG = "tab-command-log"
    TAB_HELP = "tab-help"
    NEXT_TAB = "next-tab"
    PREV_TAB = "prev-tab"
    REFRESH = "refresh"
    TOGGLE_DIFF_FORMAT = "toggle-diff-format"
    TOGGLE_WRAP = "toggle-wrap"
    COMMAND_PROMPT = "command-prompt"
    CANCEL_COMMAND = "cancel-command"
    # -- Navigation --
    SCROLL_DOWN = "scroll-down"
    SCROLL_UP = "scroll-up"
    SCROLL_DOWN_HALF = "scroll-down-half"
    SCROLL_UP_HALF = "scroll-up-half"
    PAGE_DOWN = "page-down"
    PAGE_UP = "page-up"
    TOP = "top"
    BOTTOM = "bottom"
    DETAILS_DOWN = "details-down"
    DETAILS_UP = "details-up"
    FOCUS_CURRENT = "focus-current"
    # -- Log --
    NEW = "new"
    NEW_DESCRIBE = "new-describe"
    SQUASH = "squash"
    SQUASH_IGNORE_IMMUTABLE = "squash-ignore-immutable"
    EDIT = "edit"
    EDIT_IGNORE_IMMUTABLE = "edit-ignore-immutable"
    ABANDON = "abandon"
    DESCRIBE = "describe"
    EDIT_REVSET = "edit-revset"
    SET_BOOKMARK = "set-bookmark"
    OPEN_FILES = "open-files"
    PUSH = "push"
    PUSH_NEW = "push-new"
    PUSH_ALL = "push-all"
    PUSH_ALL_NEW = "push-all-new"
    FETCH = "fetch"
    FETCH_ALL_REMOTES = "fetch-all-remotes"
    # -- Files --
    UNTRACK_FILE = "untrack-file"
    # -- Bookmarks --
    CREATE_BOOKMARK = "create-bookmark"
    RENAME_BOOKMARK = "rename-bookmark"
    DELETE_BOOKMARK = "delete-bookmark"
    FORGET_BOOKMARK = "forget-bookmark"
    TRACK_BOOKMARK = "track-bookmark"
    UNTRACK_BOOKMARK = "untrack-bookmark"
    NEW_AT_BOOKMARK = "new-at-bookmark"
    NEW_DESCRIBE_AT_BOOKMARK = "new-describe-at-bookmark"
    EDIT_AT_BOOKMARK = "edit-at-bookmark"
    EDIT_AT_BOOKMARK_IGNORE_IMMUTABLE = "edit-at-bookmark-ignore-immutable"
    TOGGLE_ALL_REMOTES = "toggle-all-remotes"
    OPEN_IN_LOG = "open-in-log"
    # -- Popups --
    ACCEPT = "accept"
    CANCEL = "cancel"
    SAVE = "save"
    PICKER_CREATE = "picker-create"
    PICKER_GENERATE = "picker-generate"

    @classmethod
    def parse(cls, name: str) -> Action:
        return cls(name.strip().lower().replace("_", "-"))


ACTION_HELP: dict[Action, str] = {
    Action.QUIT: "Quit",
    Action.TAB_LOG: "Show log tab",
    Action.TAB_FILES: "Show files tab",
    Action.TAB_BOOKMARKS: "Show bookmarks tab",
    Action.TAB_COMMAND_LOG: "Show command log tab",
    Action.TAB_HELP: "Show help tab",
    Action.NEXT_TAB: "Next tab",
    Action.PREV_TAB: "Previous tab",
    Action.REFRESH: "Refresh",
    Action.TOGGLE_DIFF_FORMAT: "Toggle diff format",
    Action.TOGGLE_WRAP: "Toggle line wrapping",
    Action.COMMAND_PROMPT: "Run a jj command",
    Action.CANCEL_COMMAND: "Cancel running command",
    Action.SCROLL_DOWN: "Move down",
    Action.SCROLL_UP: "Move up",
    Action.SCROLL_DOWN_HALF: "Move down half a page",
    Action.SCROLL_UP_HALF: "Move up half a page",
    Action.PAGE_DOWN: "Page down",
    Action.PAGE_UP: "Page up",
    Action.TOP: "Go to first entry",
    Action.BOTTOM: "Go to last entry",
    Action.DETAILS_DOWN: "Scroll details down",
    Action.DETAILS_UP: "Scroll details up",
    Action.FOCUS_CURRENT: "Select current change",
    Action.NEW: "New change after selected",
    Action.NEW_DESCRIBE: "New change with message",
    Action.SQUASH: "Squash @ into selected",
    Action.SQUASH_IGNORE_IMMUTABLE: "Squash @ into selected (ignore immutable)",
    Action.EDIT: "Edit selected change",
    Action.EDIT_IGNORE_IMMUTABLE: "Edit selected change (ignore immutable)",
    Action.ABANDON: "Abandon selected change",
    Action.DESCRIBE: "Describe selected change",
    Action.EDIT_REVSET: "Set log revset",
    Action.SET_BOOKMARK: "Set bookmark on selected change",
    Action.OPEN_FILES: "Show files of selected change",
    Action.PUSH: "Push selected change",
    Action.PUSH_NEW: "Push selected change (allow new)",
    Action.PUSH_ALL: "Push all bookmarks",
    Action.PUSH_ALL_NEW: "Push all bookmarks (allow new)",
    Action.FETCH: "Fetch",
    Action.FETCH_ALL_REMOTES: "Fetch from all remotes",
    Action.UNTRACK_FILE: "Untrack selected file",
    Action.CREATE_BOOKMARK: "Create bookmark at @",
    Action.RENAME_BOOKMARK: "Rename bookmark",
    Action.DELETE_BOOKMARK: "Delete bookmark",
    Action.FORGET_BOOKMARK: "Forget bookmark",
    Action.TRACK_BOOKMARK: "Track remote bookmark",
    Action.UNTRACK_BOOKMARK: "Untrack remote bookmark",
    Action.NEW_AT_BOOKMARK: "New change on bookmark",
    Action.NEW_DESCRIBE_AT_BOOKMARK: "New change on bookmark with message",
    Action.EDIT_AT_BOOKMARK: "Edit bookmark target",
    Action.EDIT_AT_BOOKMARK_IGNORE_IMMUTABLE: "Edit bookmark target (ignore immutable)",
    Action.TOGGLE_ALL_REMOTES: "Show/hide remote bookmarks",
    Action.OPEN_IN_LOG: "Show bookmark in log",
    Action.ACCEPT: "Accept",
    Action.CANCEL: "Cancel",
    Action.SAVE: "Save",
    Action.PICKER_CREATE: "Create new bookmark",
    Action.PICKER_GENERATE: "Use generated name",
}
