"""Key chords: a key plus modifiers, parsed from config strings or Textual events."""

from __future__ import annotations

from dataclasses import dataclass

# Config spellings -> canonical key names.
_KEY_ALIASES = {
    "esc": "escape",
    "return": "enter",
    "ret": "enter",
    "del": "delete",
    "ins": "insert",
    "pgup": "pageup",
    "page_up": "pageup",
    "pgdn": "pagedown",
    "pgdown": "pagedown",
    "page_down": "pagedown",
    "space": " ",
    "plus": "+",
    "bs": "backspace",
}

# Textual key names for printable characters -> the character itself.
_TEXTUAL_NAMES = {
    "at": "@",
    "question_mark": "?",
    "colon": ":",
    "semicolon": ";",
    "exclamation_mark": "!",
    "number_sign": "#",
    "dollar_sign": "$",
    "percent_sign": "%",
    "ampersand": "&",
    "asterisk": "*",
    "plus": "+",
    "minus": "-",
    "full_stop": ".",
    "comma": ",",
    "slash": "/",
    "backslash": "\\",
    "equals_sign": "=",
    "underscore": "_",
    "tilde": "~",
    "grave_accent": "`",
    "apostrophe": "'",
    "quotation_mark": '"',
    "left_square_bracket": "[",
    "right_square_bracket": "]",
    "left_curly_bracket": "{",
    "right_curly_bracket": "}",
    "left_parenthesis": "(",
    "right_parenthesis": ")",
    "less_than_sign": "<",
    "greater_than_sign": ">",
    "vertical_line": "|",
    "circumflex_accent": "^",
    "space": " ",
}

_MODIFIERS = {"ctrl", "control", "alt", "meta", "shift"}

_DISPLAY_NAMES = {" ": "space", "escape": "esc"}


class ChordError(ValueError):
    """Raised for key strings that cannot be parsed."""


@dataclass(frozen=True, slots=True)
class Chord:
    """A single key press.

    Letters are stored lowercase; an uppercase letter is ``shift`` plus the
    lowercase key so ``"J"`` and ``"shift+j"`` compare equal.
    """

    key: str
    ctrl: bool = False
    alt: bool = False
    shift: bool = False

    @classmethod
    def parse(cls, text: str) -> Chord:
        """Parse ``"j"``, ``"shift+j"``, ``"J"``, ``"ctrl+s"``, ``"f5"``, ``"@"``."""
        if not isinstance(text, str) or not text:
            raise ChordError(f"invalid key: {text!r}")
        if text == "+":
            return cls("+")
        parts = text.split("+")
        key = parts[-1]
        if not key:
            # "ctrl++"
            if len(parts) >= 2 and parts[-2] == "":
                key = "+"
                parts = parts[:-1]
            else:
                raise ChordError(f"invalid key: {text!r}")
        ctrl = alt = shift = False
        for mod in parts[:-1]:
            mod = mod.strip().lower()
            if mod in ("ctrl", "control"):
                ctrl = True
            elif mod in ("alt", "meta"):
                alt = True
            elif mod == "shift":
                shift = True
            elif mod:
                raise ChordError(f"unknown modifier {mod!r} in {text!r}")
        return cls._normalize(key, ctrl, alt, shift, text)

    @classmethod
    def _normalize(cls, key: str, ctrl: bool, alt: bool, shift: bool, source: str) -> Chord:
        if len(key) == 1:
            if key.isalpha() and key.isupper():
                return cls(key.lower(), ctrl, alt, True)
            return cls(key if not key.isalpha() else key.lower(), ctrl, alt, shift)
        name = key.lower()
        name = _KEY_ALIASES.get(name, name)
        if name in _MODIFIERS:
            raise ChordError(f"modifier without key: {source!r}")
        if len(name) > 1 and not (name.isalnum() or name in _KEY_ALIASES.values()):
            raise ChordError(f"unknown key {key!r} in {source!r}")
        return cls(name, ctrl, alt, shift)

    @classmethod
    def from_event(cls, key: str, character: str | None = None) -> Chord:
        """Build a chord from a Textual ``Key`` event's ``key``/``character``."""
        if character and len(character) == 1 and character.isprintable() and "+" not in key:
            return cls._normalize(character, False, False, False, key)
        parts = key.split("+")
        name = _TEXTUAL_NAMES.get(parts[-1], parts[-1])
        mods = {p.lower() for p in parts[:-1]}
        return cls._normalize(
            name,
            "ctrl" in mods,
            "alt" in mods or "meta" in mods,
            "shift" in mods,
            key,
        )

    def __str__(self) -> str:
        mods = [m for m, on in (("ctrl", self.ctrl), ("alt", self.alt), ("shift", self.shift)) if on]
        return "+".join((*mods, _DISPLAY_NAMES.get(self.key, self.key)))

    @property
    def label(self) -> str:
        """Short form for help screens: ``J`` rather than ``shift+j``."""
        if self.shift and not (self.ctrl or self.alt) and len(self.key) == 1 and self.key.isalpha():
            return self.key.upper()
        return str(self)
