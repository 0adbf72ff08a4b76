"""Built-in key table.  User config overrides entries per (context, action)."""

from __future__ import annotations

from jjdeck.keys.actions import Action, Context

A = Action

DEFAULT_BINDINGS: dict[Context, dict[Action, tuple[str, ...]]] = {
    Context.GLOBAL: {
        A.QUIT: ("q", "ctrl+c"),
        A.TAB_LOG: ("1",),
        A.TAB_FILES: ("2",),
        A.TAB_BOOKMARKS: ("3",),
        A.TAB_COMMAND_LOG: ("4",),
        A.TAB_HELP: ("5", "?"),
        A.NEXT_TAB: ("l", "tab"),
        A.PREV_TAB: ("h", "shift+tab"),
        A.REFRESH: ("shift+r", "f5"),
        A.TOGGLE_DIFF_FORMAT: ("w",),
        A.TOGGLE_WRAP: ("shift+w",),
        A.COMMAND_PROMPT: (":",),
        A.CANCEL_COMMAND: ("ctrl+x",),
        A.SCROLL_DOWN: ("j", "down"),
        A.SCROLL_UP: ("k", "up"),
        A.SCROLL_DOWN_HALF: ("shift+j", "ctrl+d"),
        A.SCROLL_UP_HALF: ("shift+k", "ctrl+u"),
        A.PAGE_DOWN: ("pagedown", "ctrl+f"),
        A.PAGE_UP: ("pageup", "ctrl+b"),
        A.TOP: ("g", "home"),
        A.BOTTOM: ("shift+g", "end"),
        A.DETAILS_DOWN: ("ctrl+e",),
        A.DETAILS_UP: ("ctrl+y",),
    },
    Context.LOG: {
        A.FOCUS_CURRENT: ("@",),
        A.NEW: ("n",),
        A.NEW_DESCRIBE: ("shift+n",),
        A.SQUASH: ("s",),
        A.SQUASH_IGNORE_IMMUTABLE: ("shift+s",),
        A.EDIT: ("e",),
        A.EDIT_IGNORE_IMMUTABLE: ("shift+e",),
        A.ABANDON: ("a",),
        A.DESCRIBE: ("d",),
        A.EDIT_REVSET: ("r",),
        A.SET_BOOKMARK: ("b",),
        A.OPEN_FILES: ("enter",),
        A.PUSH: ("p",),
        A.PUSH_NEW: ("ctrl+p",),
        A.PUSH_ALL: ("shift+p",),
        A.PUSH_ALL_NEW: ("ctrl+shift+p",),
        A.FETCH: ("f",),
        A.FETCH_ALL_REMOTES: ("shift+f",),
    },
    Context.FILES: {
        A.FOCUS_CURRENT: ("@",),
        A.UNTRACK_FILE: ("x",),
    },
    Context.BOOKMARKS: {
        A.CREATE_BOOKMARK: ("c",),
        A.RENAME_BOOKMARK: ("r",),
        A.DELETE_BOOKMARK: ("d",),
        A.FORGET_BOOKMARK: ("f",),
        A.TRACK_BOOKMARK: ("t",),
        A.UNTRACK_BOOKMARK: ("shift+t",),
        A.NEW_AT_BOOKMARK: ("n",),
        A.NEW_DESCRIBE_AT_BOOKMARK: ("shift+n",),
        A.EDIT_AT_BOOKMARK: ("e",),
        A.EDIT_AT_BOOKMARK_IGNORE_IMMUTABLE: ("shift+e",),
        A.TOGGLE_ALL_REMOTES: ("a",),
        A.OPEN_IN_LOG: ("enter",),
    },
    Context.COMMAND_LOG: {
        A.FOCUS_CURRENT: ("@",),
    },
    Context.HELP: {},
    Context.CONFIRM: {
        A.ACCEPT: ("y", "enter"),
        A.CANCEL: ("n", "escape", "q"),
    },
    Context.PROMPT: {
        A.SAVE: ("ctrl+s",),
        A.CANCEL: ("escape",),
    },
    Context.PICKER: {
        A.SCROLL_DOWN: ("j", "down"),
        A.SCROLL_UP: ("k", "up"),
        A.ACCEPT: ("enter",),
        A.PICKER_CREATE: ("c",),
        A.PICKER_GENERATE: ("g",),
        A.CANCEL: ("escape", "q"),
    },
}
