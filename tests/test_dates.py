"""Tests for the shared date parser."""

from datetime import date

import pytest

from tasklens.query.dates import (
    keyword_window,
    normalize_due_value,
    parse_date,
    resolve_anchor,
    start_of_week,
)


class TestParseDate:
    """Test parse_date against a fixed Wednesday, 2025-01-15."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("2025-01-22", date(2025, 1, 22)),
            ("2025/2/3", date(2025, 2, 3)),
            ("today", date(2025, 1, 15)),
            ("Tomorrow", date(2025, 1, 16)),
            ("yesterday", date(2025, 1, 14)),
            ("+3d", date(2025, 1, 18)),
            ("-1w", date(2025, 1, 8)),
            ("+1m", date(2025, 2, 15)),
            ("1y", date(2026, 1, 15)),
            ("in 2 weeks", date(2025, 1, 29)),
            ("3 days ago", date(2025, 1, 12)),
            ("next week", date(2025, 1, 20)),
            ("this month", date(2025, 1, 1)),
            ("friday", date(2025, 1, 17)),
            ("wednesday", date(2025, 1, 15)),
            ("next monday", date(2025, 1, 20)),
            ("last friday", date(2025, 1, 10)),
        ],
    )
    def test_recognized_forms(self, today, text, expected):
        """Absolute and natural-language forms resolve deterministically."""
        assert parse_date(text, today) == expected

    def test_invalid_iso_date(self, today):
        """An impossible calendar date is not a date."""
        assert parse_date("2025-02-30", today) is None

    def test_empty_text(self, today):
        """Empty input yields None."""
        assert parse_date("", today) is None
        assert parse_date("   ", today) is None

    def test_dateparser_fallback(self, today):
        """Formats the built-in rules do not cover go through dateparser."""
        assert parse_date("January 20, 2025", today) == date(2025, 1, 20)

    def test_bare_number_is_not_a_date(self, today):
        """Bare numbers are never handed to dateparser."""
        assert parse_date("42", today) is None


class TestAnchors:
    """Test symbolic anchors and period windows."""

    @pytest.mark.parametrize(
        "anchor, expected",
        [
            ("week-start", date(2025, 1, 13)),
            ("week-end", date(2025, 1, 19)),
            ("next-week-start", date(2025, 1, 20)),
            ("last-week-end", date(2025, 1, 12)),
            ("month-end", date(2025, 1, 31)),
            ("last-month-start", date(2024, 12, 1)),
            ("next-month-end", date(2025, 2, 28)),
            ("next-year-end", date(2026, 12, 31)),
        ],
    )
    def test_resolve_anchor(self, today, anchor, expected):
        """Anchors resolve relative to today."""
        assert resolve_anchor(anchor, today) == expected

    def test_week_start_setting(self, today):
        """A Sunday-based week starts on 2025-01-12."""
        assert start_of_week(today, week_start=6) == date(2025, 1, 12)
        assert resolve_anchor("week-start", today, week_start=6) == date(2025, 1, 12)

    def test_keyword_window(self, today):
        """Period keywords map to inclusive windows."""
        assert keyword_window("week", today) == (date(2025, 1, 13), date(2025, 1, 19))
        assert keyword_window("next-week", today) == (date(2025, 1, 20), date(2025, 1, 26))
        assert keyword_window("month", today) == (date(2025, 1, 1), date(2025, 1, 31))
        assert keyword_window("overdue", today) is None


class TestNormalizeDueValue:
    """Test normalization of due-date filter values."""

    def test_keywords_stay_symbolic(self, today):
        """Keywords and offsets are kept so they resolve at filter time."""
        assert normalize_due_value("Today", today) == "today"
        assert normalize_due_value("+3D", today) == "+3d"
        assert normalize_due_value("next week", today) == "next-week"
        assert normalize_due_value("no date", today) == "no date"

    def test_negation_is_kept(self, today):
        """A leading '!' survives normalization."""
        assert normalize_due_value("!overdue", today) == "!overdue"

    def test_dates_become_iso(self, today):
        """Anything else that parses becomes an ISO date."""
        assert normalize_due_value("2025/1/20", today) == "2025-01-20"
        assert normalize_due_value("friday", today) == "2025-01-17"
