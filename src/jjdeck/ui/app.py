"""DeckApp: the Textual front-end driving the state machine."""

from __future__ import annotations

import os

# Ensure 24-bit truecolor so jj's colours and the highlight render as configured.
os.environ.setdefault("COLORTERM", "truecolor")

from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.timer import Timer
from textual.widgets import Input, Static, TextArea

from jjdeck.config import DeckConfig
from jjdeck.effects import EffectRunner
from jjdeck.keys.actions import Action
from jjdeck.keys.chord import Chord
from jjdeck.keys.keymap import Keymap
from jjdeck.logging import get_logger
from jjdeck.state.machine import StateMachine
from jjdeck.state.model import Popup, Severity
from jjdeck.state.requests import CancelCall, Completion, Mutation, Query, Request
from jjdeck.ui import render
from jjdeck.ui.popups import PopupModal, modal_for
from jjdeck.vcs.client import VcsClient

_log = get_logger("ui.app")

# Delay before details are loaded for a new selection.
_SETTLE_DELAY = 0.12


class CommandCompleted(Message):
    """Posted by a worker when a request has finished."""

    def __init__(self, completion: Completion) -> None:
        self.completion = completion
        super().__init__()


class DeckApp(App, inherit_bindings=False):
    """jjdeck: the jj terminal front-end."""

    CSS_PATH = "styles.tcss"
    TITLE = "jjdeck"
    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        client: VcsClient,
        config: DeckConfig,
        keymap: Keymap,
        machine: StateMachine,
    ) -> None:
        self.client = client
        self.config = config
        self.keymap = keymap
        self.machine = machine
        self.runner = EffectRunner(client)
        self._help = render.help_lines(keymap)
        self._settle_timer: Timer | None = None
        self._modal: PopupModal | None = None
        self._quitting = False
        super().__init__()
        # Held directly: queries only search the active screen, which may be a modal.
        self._tab_bar = Static(id="tab-bar")
        self._main = Static(id="main-panel")
        self._side = Static(id="side-panel")
        self._status = Static(id="status-bar")

    def compose(self) -> ComposeResult:
        yield self._tab_bar
        container = Horizontal if self.config.layout == "horizontal" else Vertical
        with container(id="panels"):
            yield self._main
            yield self._side
        yield self._status

    def on_mount(self) -> None:
        main, side = self._main, self._side
        percent = self.config.layout_percent
        if self.config.layout == "horizontal":
            main.styles.width = f"{percent}%"
            side.styles.width = f"{100 - percent}%"
        else:
            main.styles.height = f"{percent}%"
            side.styles.height = f"{100 - percent}%"
        self.machine.help_lines = len(self._help)
        self.client.gateway.command_log.on("append", self._on_command_logged)
        self.client.gateway.command_log.on("pending", self._on_command_pending)
        for warning in self.config.warnings + self.keymap.warnings:
            self.notify(warning, title="Configuration", severity="warning", timeout=8)
        self.call_after_refresh(self._update_viewport)
        self._issue(self.machine.start())
        self._render()

    # --- Events ---

    def on_key(self, event: events.Key) -> None:
        chord = Chord.from_event(event.key, event.character)
        popup = self.machine.popup
        action = self.keymap.resolve(
            chord,
            self.machine.state.tab.context,
            popup.context if popup is not None else None,
        )
        if action is None:
            return
        event.stop()
        event.prevent_default()
        _log.debug("key %s -> %s", chord, action.value)
        self._dispatch(action)

    def on_resize(self, event: events.Resize) -> None:
        self.call_after_refresh(self._update_viewport)

    def on_command_completed(self, message: CommandCompleted) -> None:
        self._issue(self.machine.complete(message.completion))
        self._render()

    def on_input_changed(self, event: Input.Changed) -> None:
        self.machine.edit_prompt(event.value)

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        self.machine.edit_prompt(event.text_area.text)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.machine.edit_prompt(event.value)
        self._dispatch(Action.SAVE)

    def _on_command_logged(self, record) -> None:
        self._render()

    def _on_command_pending(self, pending) -> None:
        self._render_status()

    # --- State machine plumbing ---

    def _dispatch(self, action: Action) -> None:
        self._issue(self.machine.dispatch(action))
        if self.machine.state.quit_requested:
            self._quit()
            return
        self._schedule_settle()
        self._render()

    def _schedule_settle(self) -> None:
        if self._settle_timer is not None:
            self._settle_timer.stop()
        self._settle_timer = self.set_timer(_SETTLE_DELAY, self._on_settled)

    def _on_settled(self) -> None:
        self._settle_timer = None
        requests = self.machine.selection_settled()
        if requests:
            self._issue(requests)
            self._render()

    def _issue(self, requests: list[Request]) -> None:
        for request in requests:
            if isinstance(request, Query):
                self.run_worker(self._run_query(request), group="queries")
            elif isinstance(request, Mutation):
                # Enqueue synchronously so the lane sees submission order.
                self.runner.submit_mutation(request)
                self.run_worker(self._run_mutation(request), group="mutations")
            elif isinstance(request, CancelCall):
                if not self.runner.cancel(request):
                    self.notify("The command already finished", timeout=3)

    async def _run_query(self, query: Query) -> None:
        self.post_message(CommandCompleted(await self.runner.run_query(query)))

    async def _run_mutation(self, mutation: Mutation) -> None:
        self.post_message(CommandCompleted(await self.runner.wait_mutation(mutation)))

    def _quit(self) -> None:
        if self._quitting:
            return
        self._quitting = True
        self.client.gateway.shutdown()
        self.exit()

    # --- Rendering ---

    def _update_viewport(self) -> None:
        self.machine.set_viewport(
            max(1, self._main.content_size.height),
            max(1, self._side.content_size.height),
        )
        self._render()

    def _render(self) -> None:
        state = self.machine.state
        command_log = self.client.gateway.command_log
        highlight = self.config.highlight_color
        self._tab_bar.update(render.tab_bar(state))
        main_text, side_text = render.main_and_side(state, command_log, highlight, self._help)
        main_title, side_title = render.panel_titles(state)
        main, side = self._main, self._side
        main.update(main_text)
        main.border_title = main_title
        side.display = side_text is not None
        if side_text is not None:
            side.update(side_text)
            side.border_title = side_title
        self._render_status()
        self._sync_popup(state.popup)
        self._show_notices()

    def _render_status(self) -> None:
        self._status.update(
            render.status_bar(self.machine.state, self.client.gateway.command_log)
        )

    def _sync_popup(self, popup: Popup | None) -> None:
        current = self._modal
        if current is not None and current.popup is popup:
            current.sync(popup)
            return
        if current is not None:
            self._modal = None
            self.pop_screen()
        if popup is not None:
            self._modal = modal_for(popup, self.keymap, self.config.highlight_color)
            self.push_screen(self._modal)

    def _show_notices(self) -> None:
        for notice in self.machine.drain_notices():
            self.notify(
                notice.text,
                title=notice.title,
                severity=notice.severity.value,
                timeout=8 if notice.severity is Severity.ERROR else 4,
            )
