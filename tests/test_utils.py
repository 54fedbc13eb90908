"""
Tests for utility functions in actionmap.utils module.
"""

from datetime import date, datetime

import pytest

from actionmap.utils import format_date, parse_date, to_date, validate_period


class TestParseDate:
    """Tests for the parse_date function."""

    @pytest.mark.parametrize(
        "text",
        [
            "2024-12-31",
            "2024/12/31",
            "31-12-2024",
            "31/12/2024",
            "20241231",
            "31 December 2024",
            "31 Dec 2024",
            "December 31, 2024",
            "Dec 31, 2024",
        ],
    )
    def test_supported_formats(self, text):
        assert parse_date(text) == date(2024, 12, 31)

    def test_invalid_date_returns_none(self):
        assert parse_date("not a date") is None
        assert parse_date("2024-02-30") is None

    def test_empty_string_returns_none(self):
        assert parse_date("") is None


class TestToDate:
    """Tests for to_date."""

    def test_datetime_is_truncated(self):
        assert to_date(datetime(2025, 1, 2, 23, 59)) == date(2025, 1, 2)

    def test_date_passes_through(self):
        assert to_date(date(2025, 1, 2)) == date(2025, 1, 2)

    def test_none(self):
        assert to_date(None) is None


class TestValidatePeriod:
    """Tests for validate_period."""

    def test_valid_period(self):
        assert validate_period(date(2025, 1, 1), date(2025, 3, 31)) == (True, None)

    def test_single_day_period(self):
        assert validate_period(date(2025, 1, 1), date(2025, 1, 1))[0] is True

    def test_open_ended_periods(self):
        assert validate_period(None, date(2025, 1, 1))[0] is True
        assert validate_period(date(2025, 1, 1), None)[0] is True

    def test_end_before_start(self):
        is_valid, message = validate_period(date(2025, 3, 1), date(2025, 1, 1))
        assert is_valid is False
        assert "before its start" in message


class TestFormatDate:
    """Tests for format_date."""

    def test_format(self):
        assert format_date(date(2025, 1, 2)) == "2025-01-02"
        assert format_date(datetime(2025, 1, 2, 10, 30)) == "2025-01-02"

    def test_none_is_empty(self):
        assert format_date(None) == ""
