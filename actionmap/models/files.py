"""
File models for the actionmap reference store.

Models representing the structure of JSON files in the .actionmap/ directory.
"""

from typing import List

from pydantic import BaseModel, Field

from actionmap.constants import (
    DEFAULT_CRITICAL_DAYS,
    DEFAULT_DATE_FORMATS,
    DEFAULT_MAX_LINKED_TASKS,
    DEFAULT_TITLE_MAX_LENGTH,
    DEFAULT_WARNING_DAYS,
)

from .action_item import ActionItem
from .action_map import ActionMap
from .task import Task


class MapsFile(BaseModel):
    """Model for maps.json file."""

    maps: List[ActionMap] = Field(default_factory=list)


class ItemsFile(BaseModel):
    """Model for items.json file.

    Flat list of all items of all maps with parent_item_id references.
    """

    items: List[ActionItem] = Field(default_factory=list)


class TasksFile(BaseModel):
    """Model for tasks.json file."""

    tasks: List[Task] = Field(default_factory=list)


class ConfigFile(BaseModel):
    """Model for config.json file."""

    schema_version: str = "0.1.0"

    # Due-date settings
    critical_days: int = Field(default=DEFAULT_CRITICAL_DAYS, ge=0)
    warning_days: int = Field(default=DEFAULT_WARNING_DAYS, ge=0)

    # Field settings
    title_max_length: int = Field(default=DEFAULT_TITLE_MAX_LENGTH, ge=1)
    max_linked_tasks: int = Field(default=DEFAULT_MAX_LINKED_TASKS, ge=1)
    date_formats: List[str] = Field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))
