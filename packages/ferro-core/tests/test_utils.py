"""Tests for ferro.core.utils -- terminal text utilities."""

from __future__ import annotations

from ferro.core.utils import (
    grapheme_width,
    iter_cells,
    strip_ansi,
    truncate_to_width,
    visible_width,
)


# ---------------------------------------------------------------------------
# visible_width
# ---------------------------------------------------------------------------


class TestVisibleWidth:
    """Measure the visible terminal width of text."""

    def test_plain_ascii(self) -> None:
        assert visible_width("hello") == 5

    def test_empty_string(self) -> None:
        assert visible_width("") == 0

    def test_sgr_codes_do_not_count(self) -> None:
        assert visible_width("\x1b[1m\x1b[31mabc\x1b[0m") == 3

    def test_wide_cjk_characters_count_as_two(self) -> None:
        assert visible_width("A世B") == 4

    def test_tab_counts_as_three_columns(self) -> None:
        assert visible_width("\t") == 3

    def test_osc8_hyperlink_does_not_count(self) -> None:
        text = "\x1b]8;;https://example.com\x07link\x1b]8;;\x07"
        assert visible_width(text) == 4

    def test_combining_mark_is_zero_width(self) -> None:
        assert visible_width("é") == 1


def test_grapheme_width_emoji() -> None:
    assert grapheme_width("\U0001F44D") == 2
    assert grapheme_width("") == 0
    assert grapheme_width("\x07") == 0


def test_strip_ansi() -> None:
    assert strip_ansi("\x1b[31mred\x1b[0m plain") == "red plain"


# ---------------------------------------------------------------------------
# iter_cells
# ---------------------------------------------------------------------------


class TestIterCells:
    def test_codes_attach_to_following_cluster(self) -> None:
        assert list(iter_cells("a\x1b[31mb")) == [("", "a", 1), ("\x1b[31m", "b", 1)]

    def test_trailing_codes_are_yielded(self) -> None:
        assert list(iter_cells("a\x1b[0m")) == [("", "a", 1), ("\x1b[0m", "", 0)]

    def test_tab_expands_to_three_cells(self) -> None:
        assert [cluster for _, cluster, _ in iter_cells("\t")] == [" ", " ", " "]

    def test_wide_cluster(self) -> None:
        assert list(iter_cells("日")) == [("", "日", 2)]


# ---------------------------------------------------------------------------
# truncate_to_width
# ---------------------------------------------------------------------------


class TestTruncateToWidth:
    """Truncate text to a maximum visible width."""

    def test_short_text_unchanged(self) -> None:
        assert truncate_to_width("hi", 10) == "hi"

    def test_exact_width_unchanged(self) -> None:
        assert truncate_to_width("hello", 5) == "hello"

    def test_plain_cut(self) -> None:
        assert truncate_to_width("hello world", 5) == "hello"

    def test_with_ellipsis(self) -> None:
        assert truncate_to_width("hello world", 5, "...") == "he..."

    def test_ellipsis_wider_than_limit(self) -> None:
        assert truncate_to_width("hello", 2, "...") == ".."

    def test_zero_width(self) -> None:
        assert truncate_to_width("hello", 0) == ""

    def test_escape_codes_are_preserved(self) -> None:
        assert truncate_to_width("\x1b[1mhello\x1b[0m", 3) == "\x1b[1mhel\x1b[0m"

    def test_wide_character_is_not_split(self) -> None:
        assert truncate_to_width("日本語", 3) == "日"
