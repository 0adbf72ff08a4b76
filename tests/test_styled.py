"""Tests for vcs/styled.py: ANSI decoding into styled lines."""

from __future__ import annotations

from jjdeck.vcs.styled import (
    REPLACEMENT_CHAR,
    StyledRun,
    decode_ansi,
    decode_bytes,
    plain_lines,
    sanitize_escapes,
)


class TestDecodeAnsi:
    def test_plain_text_single_run(self):
        styled = decode_ansi("hello world")
        assert len(styled) == 1
        assert [run.text for run in styled.lines[0]] == ["hello world"]

    def test_colour_then_reset_gives_two_runs(self):
        styled = decode_ansi("\x1b[31mfail\x1b[0mok")
        [line] = styled.lines
        assert [run.text for run in line] == ["fail", "ok"]
        assert line[0].style.color.number == 1
        assert line[1].color is None

    def test_bold(self):
        [line] = decode_ansi("\x1b[1mbold\x1b[0m plain").lines
        assert line[0].bold
        assert not line[1].bold

    def test_multiple_lines(self):
        styled = decode_ansi("one\ntwo\nthree")
        assert len(styled) == 3
        assert styled.plain == "one\ntwo\nthree"

    def test_trailing_newline_adds_no_line(self):
        styled = decode_ansi("a\nb\n")
        assert len(styled) == 2
        assert styled.plain == "a\nb"

    def test_blank_lines_inside_are_kept(self):
        assert len(decode_ansi("a\n\nb\n")) == 3

    def test_empty_output_has_no_lines(self):
        assert len(decode_ansi("")) == 0

    def test_style_carries_across_lines(self):
        styled = decode_ansi("\x1b[31mone\ntwo\x1b[0m\n")
        assert [line[0].style.color.number for line in styled.lines] == [1, 1]

    def test_adjacent_runs_with_same_style_merge(self):
        [line] = decode_ansi("\x1b[32mab\x1b[32mcd\x1b[0m").lines
        assert [run.text for run in line] == ["abcd"]

    def test_truncated_escape_keeps_following_text(self):
        styled = decode_ansi("before\x1b[3")
        assert styled.plain == "before[3"

    def test_truncated_escape_does_not_affect_earlier_runs(self):
        [line] = decode_ansi("\x1b[31mred\x1b[0m tail\x1b").lines
        assert line[0].text == "red"
        assert line[0].style.color.number == 1
        assert "".join(run.text for run in line) == "red tail"

    def test_to_text_slices_lines(self):
        styled = decode_ansi("a\nb\nc")
        assert styled.to_text(1, 3).plain == "b\nc"

    def test_line_returns_rich_text(self):
        styled = decode_ansi("\x1b[31mx\x1b[0m")
        assert styled.line(0).plain == "x"


class TestSanitizeEscapes:
    def test_no_escape_is_unchanged(self):
        assert sanitize_escapes("abc") == "abc"

    def test_complete_csi_is_kept(self):
        assert sanitize_escapes("\x1b[1;31mx") == "\x1b[1;31mx"

    def test_stray_esc_dropped(self):
        assert sanitize_escapes("a\x1bb") == "ab"

    def test_osc_bel_converted_to_st(self):
        text = "\x1b]8;;https://example.com\x07link"
        assert sanitize_escapes(text) == "\x1b]8;;https://example.com\x1b\\link"


class TestDecodeBytes:
    def test_valid_utf8(self):
        assert decode_bytes("naïve".encode()) == ("naïve", False)

    def test_invalid_bytes_replaced(self):
        text, bad = decode_bytes(b"ab\xffcd")
        assert text == f"ab{REPLACEMENT_CHAR}cd"
        assert bad


def test_plain_lines():
    styled = plain_lines(["first", "", "third"])
    assert len(styled) == 3
    assert styled.lines[0] == (StyledRun("first"),)
    assert styled.lines[1] == ()
    assert styled.plain == "first\n\nthird"
