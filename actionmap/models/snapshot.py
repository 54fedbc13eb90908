"""
Snapshot model: one map with its items and the tasks they link to.

A snapshot is what the persistence collaborator hands to the core and
what the aggregator and projections derive from.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from .action_item import ActionItem
from .action_map import ActionMap
from .task import Task


@dataclass
class MapSnapshot:
    """A consistent read of one action map."""

    action_map: ActionMap
    items: List[ActionItem] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)

    @property
    def map_id(self) -> str:
        return self.action_map.id

    def tasks_by_id(self) -> Dict[str, Task]:
        return {task.id: task for task in self.tasks}

    def get_item(self, item_id: str) -> Optional[ActionItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def with_items(self, items: List[ActionItem]) -> "MapSnapshot":
        return replace(self, items=list(items))
