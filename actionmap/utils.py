"""
Utility functions for the actionmap application.
"""

from datetime import date, datetime
from typing import Optional, Tuple, Union

from actionmap.constants import get_date_formats


def parse_date(date_string: str) -> Optional[date]:
    """
    Parse a date string using multiple supported formats.

    Args:
        date_string: The date string to parse.

    Returns:
        A date object if parsing succeeds, None otherwise.

    Examples:
        >>> parse_date("2024-12-31")  # ISO 8601
        >>> parse_date("31/12/2024")  # DD/MM/YYYY
        >>> parse_date("31 December 2024")  # DD Month YYYY
        >>> parse_date("December 31, 2024")  # Month DD, YYYY
    """
    if not date_string:
        return None
    for fmt in get_date_formats():
        try:
            return datetime.strptime(date_string, fmt).date()
        except ValueError:
            continue
    return None


def to_date(value: Union[date, datetime, None]) -> Optional[date]:
    """Truncate a datetime to its calendar date; dates pass through unchanged."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def validate_period(
    start: Optional[date], end: Optional[date]
) -> Tuple[bool, Optional[str]]:
    """
    Validate that a target period is well formed.

    Args:
        start: Period start date (optional).
        end: Period end date (optional).

    Returns:
        A tuple of (is_valid, error_message). If valid, error_message is None.
    """
    if start is not None and end is not None and end < start:
        return False, (
            f"Target period end {format_date(end)} is before its start {format_date(start)}."
        )
    return True, None


def format_date(value: Union[date, datetime, None]) -> str:
    """
    Format a date to the standard ISO 8601 format.

    Args:
        value: The date to format.

    Returns:
        A string in YYYY-MM-DD format, or an empty string when there is no date.
    """
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d")
