"""Styled-text decoding of terminal-colored jj output.

jj is invoked with ``--color always`` for anything shown verbatim (the
graph, ``show`` output, diffs).  This module turns those byte streams into
lines of :class:`StyledRun` values that the UI can render and that tests
can inspect without a terminal.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from rich.ansi import AnsiDecoder
from rich.style import Style
from rich.text import Text

REPLACEMENT_CHAR = "�"

# Complete escape sequences: CSI, OSC (BEL or ST terminated), charset
# selection and two-byte escapes.  Anything else starting with ESC is
# treated as truncated.
_COMPLETE_ESCAPE = re.compile(
    r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|\([0-~]|[@-Z\\-_])"
)
_OSC_BEL = re.compile(r"\x1b\]([^\x07\x1b]*)\x07")


@dataclass(frozen=True, slots=True)
class StyledRun:
    """A span of text sharing a single style."""

    text: str
    style: Style = Style.null()

    @property
    def color(self) -> str | None:
        """Foreground colour name, e.g. ``"color(1)"`` or ``"#ff0000"``."""
        return self.style.color.name if self.style.color else None

    @property
    def bold(self) -> bool:
        return bool(self.style.bold)


StyledLine = tuple[StyledRun, ...]


@dataclass(frozen=True, slots=True)
class StyledText:
    """Decoded output: an ordered sequence of styled lines."""

    lines: tuple[StyledLine, ...] = ()

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def plain(self) -> str:
        return "\n".join(line_text(line) for line in self.lines)

    def line(self, index: int) -> Text:
        return _line_to_text(self.lines[index])

    def to_text(self, start: int = 0, stop: int | None = None) -> Text:
        """Render lines ``[start, stop)`` to a single rich ``Text``."""
        return Text("\n").join(_line_to_text(line) for line in self.lines[start:stop])


def line_text(line: StyledLine) -> str:
    return "".join(run.text for run in line)


def _line_to_text(line: StyledLine) -> Text:
    text = Text()
    for run in line:
        text.append(run.text, run.style or None)
    return text


def decode_bytes(data: bytes) -> tuple[str, bool]:
    """Decode UTF-8, substituting U+FFFD for invalid bytes.

    Returns the text and whether any substitution happened.
    """
    try:
        return data.decode("utf-8"), False
    except UnicodeDecodeError:
        return data.decode("utf-8", errors="replace"), True


def sanitize_escapes(text: str) -> str:
    """Drop the ESC of any escape sequence that is not complete.

    The characters after a stray ESC are kept as plain text so a truncated
    sequence only affects its own run.  BEL-terminated OSC sequences are
    rewritten to the ST form the decoder understands.
    """
    if "\x1b" not in text:
        return text
    text = _OSC_BEL.sub(lambda m: f"\x1b]{m.group(1)}\x1b\\", text)
    out: list[str] = []
    pos = 0
    for match in _COMPLETE_ESCAPE.finditer(text):
        out.append(text[pos : match.start()].replace("\x1b", ""))
        out.append(match.group(0))
        pos = match.end()
    out.append(text[pos:].replace("\x1b", ""))
    return "".join(out)


def _runs(text: Text) -> StyledLine:
    plain = text.plain
    runs: list[StyledRun] = []

    def add(chunk: str, style: Style) -> None:
        if not chunk:
            return
        if runs and runs[-1].style == style:
            runs[-1] = StyledRun(runs[-1].text + chunk, style)
        else:
            runs.append(StyledRun(chunk, style))

    pos = 0
    for span in sorted(text.spans, key=lambda s: s.start):
        if span.start > pos:
            add(plain[pos : span.start], Style.null())
        style = span.style if isinstance(span.style, Style) else Style.parse(span.style)
        add(plain[max(pos, span.start) : span.end], style)
        pos = max(pos, span.end)
    add(plain[pos:], Style.null())
    return tuple(runs)


def decode_ansi(text: str) -> StyledText:
    """Decode ANSI-styled *text* into :class:`StyledText`.

    Styles carry across line breaks the way a terminal would render them.
    A trailing newline does not produce an empty last line.
    """
    decoder = AnsiDecoder()
    lines = sanitize_escapes(text).splitlines()
    return StyledText(tuple(_runs(decoder.decode_line(line)) for line in lines))


def plain_lines(lines: Iterable[str]) -> StyledText:
    """Wrap unstyled lines, e.g. messages synthesized by the UI."""
    return StyledText(tuple((StyledRun(line),) if line else () for line in lines))
