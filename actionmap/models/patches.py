"""
Patch models for versioned writes.

Every field is optional; only fields explicitly set are applied.
A field explicitly set to None clears it (where the field is nullable).
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from actionmap.constants import (
    VALIDATION_EMPTY_PATCH,
    VALIDATION_TITLE_REQUIRED,
    get_max_linked_tasks,
)
from actionmap.models.base import (
    ActionItemPriority,
    ActionItemStatus,
    validate_description_value,
    validate_title_value,
)
from actionmap.utils import to_date


class BasePatch(BaseModel):
    """Common behaviour for entity patches."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        """Title may be omitted but never cleared or blanked."""
        if v is None:
            raise ValueError(VALIDATION_TITLE_REQUIRED)
        return validate_title_value(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return validate_description_value(v)

    @model_validator(mode="after")
    def check_not_empty(self) -> "BasePatch":
        if not self.model_fields_set:
            raise ValueError(VALIDATION_EMPTY_PATCH)
        return self

    def changes(self) -> Dict[str, Any]:
        """Get only the fields that were explicitly set."""
        return self.model_dump(exclude_unset=True)


class ActionMapPatch(BasePatch):
    """Patch for an ActionMap."""

    target_period_start: Optional[date] = None
    target_period_end: Optional[date] = None
    is_archived: Optional[bool] = None
    key_result_id: Optional[str] = None

    @field_validator("target_period_start", "target_period_end", mode="before")
    @classmethod
    def truncate_datetimes(cls, v):
        if isinstance(v, datetime):
            return to_date(v)
        return v

    @field_validator("is_archived")
    @classmethod
    def validate_is_archived(cls, v: Optional[bool]) -> bool:
        if v is None:
            raise ValueError("is_archived cannot be cleared.")
        return v


class ActionItemPatch(BasePatch):
    """Patch for an ActionItem."""

    due_date: Optional[date] = None
    priority: Optional[ActionItemPriority] = None
    status: Optional[ActionItemStatus] = None
    parent_item_id: Optional[str] = None
    sort_order: Optional[int] = None
    linked_task_ids: Optional[List[str]] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def truncate_datetime(cls, v):
        if isinstance(v, datetime):
            return to_date(v)
        return v

    @field_validator("priority", "status", "sort_order", "linked_task_ids")
    @classmethod
    def not_nullable(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be cleared.")
        return v

    @field_validator("linked_task_ids")
    @classmethod
    def within_link_limit(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        unique = list(dict.fromkeys(v))
        max_links = get_max_linked_tasks()
        if len(unique) > max_links:
            raise ValueError(
                f"An action item can link at most {max_links} tasks, got {len(unique)}."
            )
        return unique
