"""Pure helpers for list selection and scrolling."""

from __future__ import annotations


def half_page(height: int) -> int:
    return max(1, height // 2)


def full_page(height: int) -> int:
    return max(1, height - 1)


def clamp_index(index: int, length: int) -> int | None:
    """*index* limited to ``[0, length)``; None for an empty list."""
    if length <= 0:
        return None
    return min(max(index, 0), length - 1)


def move(selected: int | None, length: int, delta: int) -> int | None:
    """Selection after moving *delta* entries.  Never wraps around."""
    if length <= 0:
        return None
    if selected is None:
        return 0
    return clamp_index(selected + delta, length)


def clamp_scroll(scroll: int, height: int, total: int) -> int:
    return max(0, min(scroll, max(0, total - max(1, height))))


def ensure_visible(scroll: int, first: int, last: int, height: int, total: int) -> int:
    """Adjust *scroll* as little as possible so lines ``[first, last)`` show.

    When the span is taller than the viewport its first line wins.
    """
    height = max(1, height)
    if first < scroll:
        scroll = first
    elif last > scroll + height:
        scroll = first if last - first > height else last - height
    return clamp_scroll(scroll, height, total)
