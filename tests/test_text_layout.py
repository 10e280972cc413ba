from __future__ import annotations

import pytest

from fillengine.layout.fonts import AdvanceWidthTable, Base14Font
from fillengine.layout.text_layout import layout, place_lines

# Every glyph is 0.5 em wide, so at size 10 a character is 5pt.
FIXED = AdvanceWidthTable(default_width=500)


def test_text_that_fits_stays_on_one_line() -> None:
    assert layout("short text", FIXED, 10, 200) == ["short text"]


def test_greedy_wrap_breaks_between_words() -> None:
    lines = layout("aaaa bbbb cccc dddd", FIXED, 10, 50)

    assert lines == ["aaaa bbbb", "cccc dddd"]
    assert all(FIXED.text_width(line, 10) <= 50 for line in lines)


def test_word_wider_than_box_gets_its_own_line() -> None:
    lines = layout("a supercalifragilistic b", FIXED, 10, 30)

    assert lines == ["a", "supercalifragilistic", "b"]


def test_empty_and_whitespace_text_produce_no_lines() -> None:
    assert layout("", FIXED, 10, 50) == []
    assert layout("   \n ", FIXED, 10, 50) == []


def test_wrap_is_idempotent() -> None:
    text = "Leading a team of six engineers building the payments platform for retail clients"
    first = layout(text, FIXED, 11, 120)

    again = layout(" ".join(first), FIXED, 11, 120)

    assert again == first


def test_place_lines_steps_down_by_line_height() -> None:
    placed = place_lines(["one", "two", "three"], 40, 700, 10, line_height_factor=1.2)

    assert [line.y for line in placed] == pytest.approx([700, 688, 676])
    assert {line.x for line in placed} == {40}


def test_place_lines_clips_to_max_lines() -> None:
    placed = place_lines(["one", "two", "three"], 40, 700, 10, max_lines=2)

    assert [line.text for line in placed] == ["one", "two"]


def test_base14_font_measures_with_pymupdf() -> None:
    font = Base14Font("helv")

    narrow = font.text_width("iii", 12)
    wide = font.text_width("WWW", 12)

    assert 0 < narrow < wide
    assert font.text_width("WWW", 24) == pytest.approx(2 * wide)
