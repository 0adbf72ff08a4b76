"""Modal screens mirroring the state machine's popups.

The modals hold no decisions: keys bubble up to the app, which resolves
them in the popup's context and re-syncs the modal from the new state.
"""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Label, Static, TextArea

from jjdeck.keys.keymap import Keymap
from jjdeck.state.model import BookmarkPicker, ConfirmPopup, Popup, TextPrompt
from jjdeck.ui import render


class PopupModal(ModalScreen[None]):
    """Base for the three popup screens."""

    def __init__(self, popup: Popup) -> None:
        self.popup = popup
        super().__init__()

    def sync(self, popup: Popup) -> None:
        self.popup = popup


class ConfirmModal(PopupModal):
    def __init__(self, popup: ConfirmPopup) -> None:
        super().__init__(popup)

    def compose(self) -> ComposeResult:
        with Vertical(id="popup-dialog"):
            yield Label(f"[bold]{self.popup.title}[/bold]", id="popup-title")
            yield Static(render.confirm_body(self.popup), id="popup-body")

    def sync(self, popup: Popup) -> None:
        super().sync(popup)
        self.query_one("#popup-body", Static).update(render.confirm_body(popup))


class PromptModal(PopupModal):
    """Single-line :class:`Input` or multi-line :class:`TextArea` editor."""

    def __init__(self, popup: TextPrompt, keymap: Keymap) -> None:
        self._keymap = keymap
        self._revision = popup.revision
        super().__init__(popup)

    def compose(self) -> ComposeResult:
        with Vertical(id="popup-dialog"):
            yield Label(f"[bold]{self.popup.title}[/bold]", id="popup-title")
            if self.popup.multiline:
                yield TextArea(self.popup.buffer, id="prompt-editor")
            else:
                yield Input(self.popup.buffer, id="prompt-editor")
            yield Static(render.prompt_footer(self.popup, self._keymap), id="popup-footer")

    def on_mount(self) -> None:
        editor = self.query_one("#prompt-editor")
        editor.disabled = self.popup.loading
        editor.focus()

    def sync(self, popup: Popup) -> None:
        super().sync(popup)
        editor = self.query_one("#prompt-editor")
        if popup.revision != self._revision:
            self._revision = popup.revision
            if isinstance(editor, TextArea):
                editor.load_text(popup.buffer)
            else:
                editor.value = popup.buffer
        editor.disabled = popup.loading
        if not popup.loading:
            editor.focus()
        self.query_one("#popup-footer", Static).update(render.prompt_footer(popup, self._keymap))


class PickerModal(PopupModal):
    def __init__(self, popup: BookmarkPicker, highlight: str) -> None:
        self._highlight = highlight
        super().__init__(popup)

    def compose(self) -> ComposeResult:
        with Vertical(id="popup-dialog"):
            yield Label(f"[bold]Set bookmark on {self.popup.change.short_id}[/bold]", id="popup-title")
            yield Static(render.picker_body(self.popup, self._highlight), id="popup-body")

    def sync(self, popup: Popup) -> None:
        super().sync(popup)
        self.query_one("#popup-body", Static).update(render.picker_body(popup, self._highlight))


def modal_for(popup: Popup, keymap: Keymap, highlight: str) -> PopupModal:
    if isinstance(popup, ConfirmPopup):
        return ConfirmModal(popup)
    if isinstance(popup, TextPrompt):
        return PromptModal(popup, keymap)
    return PickerModal(popup, highlight)
