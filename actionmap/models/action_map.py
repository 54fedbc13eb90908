"""
ActionMap model for the actionmap application.

A top-level plan owned by a workspace, optionally linked to one KeyResult.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from actionmap.models.base import VersionedEntity
from actionmap.utils import to_date, validate_period


class ActionMap(VersionedEntity):
    """ActionMap model - a plan containing ActionItems.

    item_count, completed_item_count and progress_rate are derived values.
    They are recomputed from the item set on every read and never trusted
    from storage.
    """

    key_result_id: Optional[str] = None
    target_period_start: Optional[date] = None
    target_period_end: Optional[date] = None
    is_archived: bool = False

    item_count: int = 0
    completed_item_count: int = 0
    progress_rate: int = Field(default=0, ge=0, le=100)

    @field_validator("target_period_start", "target_period_end", mode="before")
    @classmethod
    def truncate_datetimes(cls, v):
        """Accept datetimes by truncating them to calendar dates."""
        if isinstance(v, datetime):
            return to_date(v)
        return v

    @model_validator(mode="after")
    def check_period(self) -> "ActionMap":
        """Target period end must not precede its start."""
        is_valid, error_msg = validate_period(
            self.target_period_start, self.target_period_end
        )
        if not is_valid:
            raise ValueError(error_msg)
        return self
