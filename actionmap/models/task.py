"""
Task model for the actionmap application.

Tasks are owned by an external collaborator; the core only reads them
to compute progress and keeps the item <-> task link consistent.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from actionmap.models.base import (
    ActionItemPriority,
    Suit,
    TaskStatus,
    enforces_limits,
    validate_title_value,
)


class Task(BaseModel):
    """Task model - a ground-level to-do, optionally linked back to one ActionItem."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    status: TaskStatus = TaskStatus.NOT_STARTED
    suit: Optional[Suit] = None
    action_item_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str, info: ValidationInfo) -> str:
        return validate_title_value(v, check_length=enforces_limits(info))

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE


def priority_to_suit(priority: Optional[ActionItemPriority]) -> Suit:
    """Get the recommended suit for a task created from an item of this priority."""
    if priority == ActionItemPriority.HIGH:
        return Suit.SPADE
    if priority == ActionItemPriority.MEDIUM:
        return Suit.HEART
    return Suit.DIAMOND
