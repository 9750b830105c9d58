"""
Tests for gemini_tasks.engine.prompts module.

Tests prompt loading and {{CURRENT_DATE}} substitution.
"""

from datetime import date

import pytest

from gemini_tasks.engine.prompts import (
    PromptEmptyError,
    PromptError,
    PromptNotFoundError,
    PromptUnreadableError,
    format_current_date,
    load_prompt,
)

FIXED_DAY = date(2026, 1, 28)


class TestFormatCurrentDate:
    """Test format_current_date function."""

    def test_long_english_form(self):
        """Should render 'Month D, YYYY'."""
        assert format_current_date(FIXED_DAY) == "January 28, 2026"

    def test_single_digit_day_is_not_padded(self):
        assert format_current_date(date(2026, 3, 5)) == "March 5, 2026"

    def test_december(self):
        assert format_current_date(date(2025, 12, 31)) == "December 31, 2025"


class TestLoadPrompt:
    """Test load_prompt function."""

    def test_substitutes_token(self, tmp_path):
        """Should replace the date token with today's date."""
        path = tmp_path / "p.txt"
        path.write_text("Report for {{CURRENT_DATE}}.", encoding="utf-8")

        assert load_prompt(path, today=FIXED_DAY) == "Report for January 28, 2026."

    def test_substitutes_every_occurrence(self, tmp_path):
        """Should replace all occurrences, not just the first."""
        path = tmp_path / "p.txt"
        path.write_text("{{CURRENT_DATE}} / {{CURRENT_DATE}}", encoding="utf-8")

        assert load_prompt(path, today=FIXED_DAY) == "January 28, 2026 / January 28, 2026"

    def test_text_without_token_is_unchanged(self, tmp_path):
        path = tmp_path / "p.txt"
        path.write_text("No templating here {{OTHER}}", encoding="utf-8")

        assert load_prompt(path, today=FIXED_DAY) == "No templating here {{OTHER}}"

    def test_trims_surrounding_whitespace(self, tmp_path):
        path = tmp_path / "p.txt"
        path.write_text("\n\n  Hello  \n", encoding="utf-8")

        assert load_prompt(path) == "Hello"

    def test_missing_file(self, tmp_path):
        """Should raise PromptNotFoundError for a missing file."""
        with pytest.raises(PromptNotFoundError):
            load_prompt(tmp_path / "missing.txt")

    def test_directory_is_not_a_prompt(self, tmp_path):
        with pytest.raises(PromptNotFoundError):
            load_prompt(tmp_path)

    def test_blank_file(self, tmp_path):
        """Should raise PromptEmptyError when only whitespace is left."""
        path = tmp_path / "blank.txt"
        path.write_text("   \n\t\n", encoding="utf-8")

        with pytest.raises(PromptEmptyError):
            load_prompt(path)

    def test_invalid_utf8(self, tmp_path):
        """Should raise PromptUnreadableError for bytes that are not UTF-8."""
        path = tmp_path / "p.txt"
        path.write_bytes(b"Hi \xff\xfe {{CURRENT_DATE}}")

        with pytest.raises(PromptUnreadableError, match="unreadable"):
            load_prompt(path)

    def test_errors_share_base_class(self, tmp_path):
        with pytest.raises(PromptError):
            load_prompt(tmp_path / "missing.txt")

    def test_utf8_content(self, tmp_path):
        path = tmp_path / "p.txt"
        path.write_text("Zażółć gęślą jaźń - {{CURRENT_DATE}}", encoding="utf-8")

        assert load_prompt(path, today=FIXED_DAY) == "Zażółć gęślą jaźń - January 28, 2026"
