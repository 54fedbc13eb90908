"""
Due-date classifier.

Maps an optional due date and "today" to a DueDateWarningLevel.
Colours and icons for each level belong to the presentation layer.
"""

from datetime import date, datetime
from typing import Optional, Union

from actionmap.constants import get_critical_days, get_warning_days
from actionmap.models.base import DueDateWarningLevel
from actionmap.utils import to_date

DateLike = Union[date, datetime]


def remaining_days(due_date: Optional[DateLike], today: Optional[DateLike] = None) -> Optional[int]:
    """Calendar days from today until the due date (negative when past due).

    Datetimes are truncated to their dates before subtracting.

    Returns:
        Remaining days, or None when there is no due date.
    """
    if due_date is None:
        return None
    today_date = to_date(today) if today is not None else date.today()
    return (to_date(due_date) - today_date).days


def classify_due_date(
    due_date: Optional[DateLike],
    today: Optional[DateLike] = None,
    critical_days: Optional[int] = None,
    warning_days: Optional[int] = None,
) -> DueDateWarningLevel:
    """Classify a due date by urgency.

    Args:
        due_date: The item's due date, if any.
        today: Reference date; defaults to the current date.
        critical_days: Upper bound (inclusive) of the critical band. Defaults to config.
        warning_days: Upper bound (inclusive) of the warning band. Defaults to config.

    Returns:
        none (no date), overdue (< 0 days), critical (0..critical_days),
        warning (..warning_days) or normal.
    """
    days = remaining_days(due_date, today)
    if days is None:
        return DueDateWarningLevel.NONE

    critical = get_critical_days() if critical_days is None else critical_days
    warning = get_warning_days() if warning_days is None else warning_days

    if days < 0:
        return DueDateWarningLevel.OVERDUE
    if days <= critical:
        return DueDateWarningLevel.CRITICAL
    if days <= warning:
        return DueDateWarningLevel.WARNING
    return DueDateWarningLevel.NORMAL
