import pytest

from domain.models import LockPosition
from services.text_layout import (
    first_baseline,
    layout_text,
    line_height,
    text_height,
    wrap_text,
)


def measure(text):
    return len(text) * 10


def test_wrap_packs_words_greedily():
    assert wrap_text("aaa bbb ccc", 70, measure) == ["aaa bbb", "ccc"]


def test_wrap_never_splits_a_long_word():
    assert wrap_text("a verylongword b", 50, measure) == ["a", "verylongword", "b"]


def test_wrap_keeps_explicit_and_empty_lines():
    assert wrap_text("first\n\nsecond", 500, measure) == ["first", "", "second"]
    assert wrap_text("one\r\ntwo", 500, measure) == ["one", "two"]


def test_wrap_collapses_repeated_spaces():
    assert wrap_text("a    b", 500, measure) == ["a b"]


def test_text_height_is_zero_for_empty_text():
    assert text_height("", 200, 16, measure) == 0
    assert text_height("anything", 0, 16, measure) == 0


def test_text_height_counts_wrapped_lines():
    assert text_height("aaa bbb ccc", 70, 10, measure) == pytest.approx(2 * 12)
    assert line_height(20) == pytest.approx(24)


def test_text_height_never_shrinks_when_width_shrinks():
    text = "the quick brown fox jumps over the lazy dog " * 3
    heights = [text_height(text, width, 16, measure) for width in range(600, 40, -20)]
    assert heights == sorted(heights)


def test_text_height_never_shrinks_when_text_grows():
    pieces = ["alpha", "beta", "\n", "gamma", "delta", "\n", "\n", "epsilon", "zeta", "eta"]
    text = ""
    line_counts = []
    heights = []
    for piece in pieces:
        text = text + piece if piece == "\n" or not text or text.endswith("\n") else f"{text} {piece}"
        line_counts.append(len(wrap_text(text, 110, measure)))
        heights.append(text_height(text, 110, 16, measure))
    assert line_counts == sorted(line_counts)
    assert heights == sorted(heights)
    assert heights[-1] > heights[0]


def test_layout_text_clamps_to_max_height():
    block = layout_text("a b c d e", 10, 10, measure, max_height=30)
    assert len(block.lines) == 5
    assert block.line_count == 2
    assert block.drawn_lines == ["a", "b"]
    assert block.height == pytest.approx(24)


def test_layout_text_without_limit_uses_every_line():
    block = layout_text("a b c d e", 10, 10, measure)
    assert block.line_count == 5
    assert block.height == pytest.approx(60)


def test_layout_text_with_exact_fit_keeps_all_lines():
    block = layout_text("a b c", 10, 10, measure, max_height=36)
    assert block.line_count == 3


def test_layout_text_short_text_fills_every_slot_of_the_box():
    block = layout_text("one", 100, 10, measure, max_height=60)
    assert block.lines == ["one"]
    assert block.line_count == 5
    assert block.drawn_lines == ["one", "", "", "", ""]
    assert block.height == pytest.approx(60)


def test_layout_text_height_stays_within_box_with_partial_slot():
    block = layout_text("", 100, 10, measure, max_height=30)
    assert block.line_count == 2
    assert block.height == pytest.approx(24)
    assert first_baseline(100, 10, block.height, 30, LockPosition.BOTTOM) == pytest.approx(118)


def test_first_baseline_top_and_unlocked():
    assert first_baseline(100, 10, 12, 30, LockPosition.TOP) == 110
    assert first_baseline(100, 10, 12, 30, None) == 110


def test_first_baseline_bottom_lock_hugs_box_bottom():
    assert first_baseline(100, 10, 12, 30, LockPosition.BOTTOM) == pytest.approx(130)


def test_first_baseline_bottom_lock_when_block_fills_box():
    assert first_baseline(100, 10, 30, 30, LockPosition.BOTTOM) == 110
