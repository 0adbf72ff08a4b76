"""UI state: the active tab, per-tab selection and data, and the open popup."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from jjdeck.keys.actions import Context
from jjdeck.state.requests import Operation
from jjdeck.vcs.models import Bookmark, Change, DiffFormat, FileChange, FileListing, LogSnapshot
from jjdeck.vcs.styled import StyledText


class Tab(Enum):
    LOG = "log"
    FILES = "files"
    BOOKMARKS = "bookmarks"
    COMMAND_LOG = "command_log"
    HELP = "help"

    @property
    def title(self) -> str:
        return _TAB_TITLES[self]

    @property
    def context(self) -> Context:
        return Context(self.value)


_TAB_TITLES = {
    Tab.LOG: "Log",
    Tab.FILES: "Files",
    Tab.BOOKMARKS: "Bookmarks",
    Tab.COMMAND_LOG: "Command log",
    Tab.HELP: "Help",
}

TAB_ORDER = list(Tab)


@dataclass
class Cursor:
    """Selected entry and first visible line of a list panel."""

    selected: int | None = None
    scroll: int = 0
    height: int = 20


@dataclass
class LogTab:
    revset: str | None = None
    snapshot: LogSnapshot | None = None
    cursor: Cursor = field(default_factory=Cursor)
    error: str | None = None
    loaded: bool = False
    details: StyledText | None = None
    details_for: str | None = None
    details_requested: str | None = None
    details_scroll: int = 0

    @property
    def changes(self) -> tuple[Change, ...]:
        return self.snapshot.changes if self.snapshot else ()

    @property
    def selected_change(self) -> Change | None:
        if self.cursor.selected is None or self.cursor.selected >= len(self.changes):
            return None
        return self.changes[self.cursor.selected]


@dataclass
class FilesTab:
    change: Change | None = None
    listing: FileListing | None = None
    cursor: Cursor = field(default_factory=Cursor)
    error: str | None = None
    diff: StyledText | None = None
    diff_for: str | None = None
    diff_requested: str | None = None
    diff_scroll: int = 0

    @property
    def files(self) -> list[FileChange]:
        return self.listing.files if self.listing else []

    @property
    def selected_file(self) -> FileChange | None:
        if self.cursor.selected is None or self.cursor.selected >= len(self.files):
            return None
        return self.files[self.cursor.selected]


@dataclass
class BookmarksTab:
    bookmarks: list[Bookmark] = field(default_factory=list)
    all_remotes: bool = False
    cursor: Cursor = field(default_factory=Cursor)
    error: str | None = None
    loaded: bool = False
    details: StyledText | None = None
    details_for: str | None = None
    details_requested: str | None = None
    details_scroll: int = 0

    @property
    def selected_bookmark(self) -> Bookmark | None:
        if self.cursor.selected is None or self.cursor.selected >= len(self.bookmarks):
            return None
        return self.bookmarks[self.cursor.selected]


@dataclass
class CommandLogTab:
    cursor: Cursor = field(default_factory=Cursor)
    output_scroll: int = 0


@dataclass
class HelpTab:
    cursor: Cursor = field(default_factory=Cursor)


# -- Popups --


class PromptPurpose(Enum):
    DESCRIBE = "describe"
    NEW_DESCRIBE = "new-describe"
    REVSET = "revset"
    CREATE_BOOKMARK = "create-bookmark"
    RENAME_BOOKMARK = "rename-bookmark"
    PICKER_NAME = "picker-name"
    COMMAND = "command"


@dataclass
class ConfirmPopup:
    title: str
    prompt: str
    operation: Operation
    pending_token: int | None = None
    error: str | None = None

    context = Context.CONFIRM


@dataclass
class TextPrompt:
    """Editable text popup.  ``revision`` bumps whenever the buffer is
    replaced from outside the editor (e.g. a loaded description)."""

    purpose: PromptPurpose
    title: str
    buffer: str = ""
    target: str | None = None
    multiline: bool = False
    loading: bool = False
    revision: int = 0
    pending_token: int | None = None
    error: str | None = None

    context = Context.PROMPT


class PickerKind(Enum):
    CREATE = "create"
    GENERATED = "generated"
    EXISTING = "existing"


@dataclass(frozen=True)
class PickerOption:
    kind: PickerKind
    name: str = ""
    exists: bool = False

    @property
    def label(self) -> str:
        if self.kind is PickerKind.CREATE:
            return "Create new bookmark…"
        if self.kind is PickerKind.GENERATED:
            return f"{self.name} (generated{', exists' if self.exists else ''})"
        return self.name


@dataclass
class BookmarkPicker:
    change: Change
    rev: str
    options: list[PickerOption] = field(default_factory=list)
    selected: int = 0
    pending_token: int | None = None
    error: str | None = None

    context = Context.PICKER

    @property
    def current(self) -> PickerOption | None:
        if not self.options:
            return None
        return self.options[min(self.selected, len(self.options) - 1)]


Popup = ConfirmPopup | TextPrompt | BookmarkPicker


# -- Notices --


class Severity(Enum):
    INFO = "information"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    text: str
    title: str = ""
    severity: Severity = Severity.INFO


@dataclass
class UIState:
    tab: Tab = Tab.LOG
    log: LogTab = field(default_factory=LogTab)
    files: FilesTab = field(default_factory=FilesTab)
    bookmarks: BookmarksTab = field(default_factory=BookmarksTab)
    command_log: CommandLogTab = field(default_factory=CommandLogTab)
    help: HelpTab = field(default_factory=HelpTab)
    diff_format: DiffFormat = DiffFormat.COLOR_WORDS
    wrap: bool = True
    head: Change | None = None
    popup: Popup | None = None
    notices: list[Notice] = field(default_factory=list)
    running: dict[int, Operation] = field(default_factory=dict)
    details_height: int = 20
    quit_requested: bool = False
