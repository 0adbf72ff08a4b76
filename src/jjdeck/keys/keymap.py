"""Keymap: merges the built-in table with user overrides and resolves chords.

Resolution rules:

- While a popup is open only that popup's context is consulted.
- Otherwise the active tab's context wins over the global context.
- An override replaces the whole chord set of one (context, action) entry
  and takes its chords away from other actions of the same context;
  ``false`` leaves the entry with no chords, which also blocks the global
  binding of that action while the context is active; unrecognized entries
  fall back to the default for that entry and produce a warning.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from jjdeck.keys.actions import ACTION_HELP, Action, Context
from jjdeck.keys.chord import Chord, ChordError
from jjdeck.keys.defaults import DEFAULT_BINDINGS
from jjdeck.logging import get_logger

_log = get_logger("keys.keymap")

BindingTable = dict[Context, dict[Action, tuple[Chord, ...]]]


def _parse_chords(value: Any) -> tuple[Chord, ...]:
    if isinstance(value, str):
        return (Chord.parse(value),)
    if isinstance(value, (list, tuple)) and value:
        return tuple(Chord.parse(v) for v in value)
    raise ChordError(f"expected a key, a list of keys or false, got {value!r}")


def merge_bindings(
    defaults: Mapping[Context, Mapping[Action, Iterable[str]]],
    overrides: Mapping[str, Any] | None = None,
) -> tuple[BindingTable, list[str]]:
    """Build the effective table.  Pure: inputs are not modified.

    Returns the table and a list of warnings for entries that were ignored.
    """
    table: BindingTable = {
        ctx: {action: tuple(Chord.parse(k) for k in keys) for action, keys in actions.items()}
        for ctx, actions in defaults.items()
    }
    warnings: list[str] = []
    if not overrides:
        return table, warnings
    if not isinstance(overrides, Mapping):
        return table, [f"keybinds: expected a mapping of contexts, got {type(overrides).__name__}"]

    for ctx_name, entries in overrides.items():
        try:
            ctx = Context.parse(str(ctx_name))
        except ValueError:
            warnings.append(f"keybinds: unknown context {ctx_name!r}")
            continue
        if not isinstance(entries, Mapping):
            warnings.append(f"keybinds.{ctx_name}: expected a mapping of actions")
            continue
        bindings = table.setdefault(ctx, {})
        for action_name, value in entries.items():
            where = f"keybinds.{ctx_name}.{action_name}"
            try:
                action = Action.parse(str(action_name))
            except ValueError:
                warnings.append(f"{where}: unknown action")
                continue
            if value is True:
                continue
            if value is False or value is None:
                bindings[action] = ()
                continue
            try:
                chords = _parse_chords(value)
            except ChordError as exc:
                warnings.append(f"{where}: {exc}; keeping default")
                continue
            # An overridden chord is taken away from whatever held it before.
            for other, held in list(bindings.items()):
                if other is action or not held:
                    continue
                remaining = tuple(c for c in held if c not in chords)
                if remaining:
                    bindings[other] = remaining
                else:
                    del bindings[other]
            bindings[action] = chords
    for warning in warnings:
        _log.warning(warning)
    return table, warnings


@dataclass(frozen=True)
class HelpEntry:
    action: Action
    chords: tuple[Chord, ...]

    @property
    def keys(self) -> str:
        return ", ".join(c.label for c in self.chords)

    @property
    def description(self) -> str:
        return ACTION_HELP.get(self.action, self.action.value)


@dataclass
class Keymap:
    """Effective bindings plus a reverse index for lookups."""

    table: BindingTable
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._index: dict[Context, dict[Chord, Action]] = {}
        self._disabled: dict[Context, frozenset[Action]] = {
            ctx: frozenset(action for action, chords in actions.items() if not chords)
            for ctx, actions in self.table.items()
        }
        for ctx, actions in self.table.items():
            index: dict[Chord, Action] = {}
            for action, chords in actions.items():
                for chord in chords:
                    if chord in index and index[chord] is not action:
                        _log.info(
                            "%s: %s bound to both %s and %s; using %s",
                            ctx.value,
                            chord,
                            index[chord].value,
                            action.value,
                            action.value,
                        )
                    index[chord] = action
            self._index[ctx] = index

    @classmethod
    def from_config(cls, overrides: Mapping[str, Any] | None = None) -> Keymap:
        table, warnings = merge_bindings(DEFAULT_BINDINGS, overrides)
        return cls(table, warnings)

    def resolve(self, chord: Chord, context: Context, popup: Context | None = None) -> Action | None:
        """Map *chord* to an action, or None when nothing is bound."""
        if popup is not None:
            return self._index.get(popup, {}).get(chord)
        if context.is_popup:
            return self._index.get(context, {}).get(chord)
        action = self._index.get(context, {}).get(chord)
        if action is None and context is not Context.GLOBAL:
            action = self._index.get(Context.GLOBAL, {}).get(chord)
            if action in self.disabled_in(context):
                return None
        return action

    def disabled_in(self, context: Context) -> frozenset[Action]:
        """Actions switched off with ``false`` in *context*."""
        return self._disabled.get(context, frozenset())

    def chords_for(self, action: Action, context: Context) -> tuple[Chord, ...]:
        """All chords bound to *action* in *context* (no global fallback)."""
        return self.table.get(context, {}).get(action, ())

    def help_entries(self, context: Context) -> list[HelpEntry]:
        """Bindings of *context* in declaration order, for the help tab."""
        return [
            HelpEntry(action, chords)
            for action, chords in self.table.get(context, {}).items()
            if chords
        ]
