"""
Base models for the actionmap application.

Common enumerations and the versioned base shared by ActionMap and ActionItem.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from actionmap.constants import (
    DEFAULT_DESCRIPTION_MAX_LENGTH,
    VALIDATION_TITLE_REQUIRED,
    get_title_max_length,
)


class ActionItemStatus(str, Enum):
    """Valid status values for action items."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class ActionItemPriority(str, Enum):
    """Valid priority values for action items."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    """Valid status values for ground-level tasks."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class Suit(str, Enum):
    """Quadrant classification tag carried by tasks."""

    SPADE = "spade"
    HEART = "heart"
    DIAMOND = "diamond"
    CLUB = "club"


class DueDateWarningLevel(str, Enum):
    """Urgency of an item derived from its due date."""

    NONE = "none"
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    OVERDUE = "overdue"


# Validation context for data already in the store. Configured limits only
# bind new input, so lowering one never makes stored entities unreadable.
STORED = {"stored": True}


def enforces_limits(info: Optional[ValidationInfo]) -> bool:
    return info is None or not (info.context or {}).get("stored", False)


def validate_title_value(v: str, check_length: bool = True) -> str:
    """Shared title rule: non-blank and within the configured length."""
    if v is None or not v.strip():
        raise ValueError(VALIDATION_TITLE_REQUIRED)
    if not check_length:
        return v
    max_length = get_title_max_length()
    if len(v) > max_length:
        raise ValueError(f"Title must be {max_length} characters or less.")
    return v


def validate_description_value(v: Optional[str]) -> Optional[str]:
    """Shared description rule: optional, bounded length."""
    if v is not None and len(v) > DEFAULT_DESCRIPTION_MAX_LENGTH:
        raise ValueError(
            f"Description must be {DEFAULT_DESCRIPTION_MAX_LENGTH} characters or less."
        )
    return v


class VersionedEntity(BaseModel):
    """
    Base model for every mutable entity (ActionMap, ActionItem).

    Common fields:
    - id: Unique identifier
    - workspace_id: Owning workspace (resolved outside the core)
    - title / description
    - version: Optimistic concurrency stamp, incremented by the store on every write
    - timestamps: created_at, updated_at
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str, info: ValidationInfo) -> str:
        """Validate title is present and, for new input, not too long."""
        return validate_title_value(v, check_length=enforces_limits(info))

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        """Validate description length."""
        return validate_description_value(v)

    @property
    def entity_type(self) -> str:
        """Get the entity type name used in events and messages."""
        return type(self).__name__
