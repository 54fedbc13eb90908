"""
ActionItem model for the actionmap application.

Flat structure with id references for parent-child relationships.
The tree is materialised as ActionItemNode wrappers, rebuilt on every read.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator

from actionmap.constants import get_max_linked_tasks
from actionmap.models.base import (
    ActionItemPriority,
    ActionItemStatus,
    VersionedEntity,
    enforces_limits,
)
from actionmap.utils import format_date, to_date


class ActionItem(VersionedEntity):
    """ActionItem model - a hierarchical unit of work inside a map.

    parent_item_id, when set, references another item in the same map.
    task_count, completed_task_count and progress_rate are derived from
    linked_task_ids by the progress aggregator.
    """

    action_map_id: str
    parent_item_id: Optional[str] = None
    status: ActionItemStatus = ActionItemStatus.NOT_STARTED
    priority: ActionItemPriority = ActionItemPriority.MEDIUM
    due_date: Optional[date] = None
    sort_order: int = 0
    linked_task_ids: List[str] = Field(default_factory=list)

    task_count: int = 0
    completed_task_count: int = 0
    progress_rate: int = Field(default=0, ge=0, le=100)

    @field_validator("due_date", mode="before")
    @classmethod
    def truncate_datetime(cls, v):
        """Accept datetimes by truncating them to calendar dates."""
        if isinstance(v, datetime):
            return to_date(v)
        return v

    @field_validator("linked_task_ids")
    @classmethod
    def validate_linked_task_ids(cls, v: List[str], info: ValidationInfo) -> List[str]:
        """Drop duplicates (keeping first occurrence) and enforce the link limit."""
        unique = list(dict.fromkeys(v))
        if not enforces_limits(info):
            return unique
        max_links = get_max_linked_tasks()
        if len(unique) > max_links:
            raise ValueError(
                f"An action item can link at most {max_links} tasks, got {len(unique)}."
            )
        return unique

    @property
    def is_done(self) -> bool:
        return self.status == ActionItemStatus.DONE

    def sort_key(self):
        """Sibling ordering key: sort_order, then id for determinism."""
        return (self.sort_order, self.id)


class ActionItemNode:
    """
    Read-only tree node wrapping one ActionItem.

    Holds the item and its direct children in sibling order. Nodes are
    created by the tree builder from a flat item list and never written
    back to storage.
    """

    def __init__(self, item: ActionItem, depth: int = 0):
        self.item = item
        self.depth = depth
        self.children: List["ActionItemNode"] = []

    @property
    def id(self) -> str:
        return self.item.id

    def add_child(self, child: "ActionItemNode") -> None:
        self.children.append(child)

    def walk(self):
        """Yield this node and all descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON output."""
        return {
            "id": self.item.id,
            "title": self.item.title,
            "status": self.item.status.value,
            "priority": self.item.priority.value,
            "due_date": format_date(self.item.due_date) or None,
            "sort_order": self.item.sort_order,
            "version": self.item.version,
            "task_count": self.item.task_count,
            "completed_task_count": self.item.completed_task_count,
            "progress_rate": self.item.progress_rate,
            "children": [child.to_dict() for child in self.children],
        }

    def __repr__(self) -> str:
        return f"ActionItemNode({self.item.id!r}, children={len(self.children)})"
