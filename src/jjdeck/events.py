"""EventEmitter mixin: in-process pub/sub between the gateway and the UI."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from jjdeck.logging import get_logger

_log = get_logger("events")


class EventEmitter:
    """Mixin that adds event registration and emission.

    Usage::

        class CommandLog(EventEmitter):
            def append(self, record):
                self.emit("append", record)

        log = CommandLog()
        log.on("append", lambda r: print(r.command_line))
    """

    def __init_emitter__(self) -> None:
        """Call from subclass __init__ to initialize the listener store."""
        self._event_listeners: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """Register a callback for *event*."""
        if not hasattr(self, "_event_listeners"):
            self.__init_emitter__()
        self._event_listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        """Remove a previously registered callback (no-op if absent)."""
        listeners = getattr(self, "_event_listeners", {}).get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event: str, *args: Any, **kwargs: Any) -> None:
        """Fire all callbacks registered for *event*.

        A failing listener is logged and skipped so the others still run.
        """
        if not hasattr(self, "_event_listeners"):
            return
        for cb in list(self._event_listeners.get(event, [])):
            try:
                cb(*args, **kwargs)
            except Exception:
                _log.warning("listener for event %r failed", event, exc_info=True)
