"""
ProgressAggregator for leaf-to-root progress rollups.

Computes derived counts and rates for items (from linked tasks) and maps
(from their direct item set). All functions are pure: inputs are never
mutated and repeated runs on the same snapshot give identical output.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping

from actionmap.constants import PROGRESS_MAX, PROGRESS_MIN
from actionmap.models.action_item import ActionItem
from actionmap.models.action_map import ActionMap
from actionmap.models.base import ActionItemStatus
from actionmap.models.snapshot import MapSnapshot
from actionmap.models.task import Task


def calculate_progress_rate(completed: int, total: int) -> int:
    """Calculate a completion percentage.

    Args:
        completed: Number of completed children.
        total: Number of children.

    Returns:
        0 when total is 0, otherwise completed/total*100 rounded half-up,
        clamped to [0, 100].
    """
    if total <= 0:
        return 0
    rate = (Decimal(completed) * 100 / Decimal(total)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return max(PROGRESS_MIN, min(PROGRESS_MAX, int(rate)))


def aggregate_item(item: ActionItem, tasks_by_id: Mapping[str, Task]) -> ActionItem:
    """Compute task_count, completed_task_count and progress_rate for one item.

    Only the item's own linked_task_ids are trusted. Ids that do not resolve
    to a known task are ignored.

    Args:
        item: The item to aggregate.
        tasks_by_id: Known tasks indexed by id.

    Returns:
        A copy of the item with derived fields set.
    """
    linked = [tasks_by_id[task_id] for task_id in item.linked_task_ids if task_id in tasks_by_id]
    task_count = len(linked)
    completed_task_count = sum(1 for task in linked if task.is_done)
    return item.model_copy(
        update={
            "task_count": task_count,
            "completed_task_count": completed_task_count,
            "progress_rate": calculate_progress_rate(completed_task_count, task_count),
        }
    )


def aggregate_map(action_map: ActionMap, items: Iterable[ActionItem]) -> ActionMap:
    """Compute item_count, completed_item_count and progress_rate for a map.

    Counts the map's direct item set flat: nested items are counted as
    independent members, not weighted by their descendants. Items of other
    maps are ignored.
    """
    members = [item for item in items if item.action_map_id == action_map.id]
    item_count = len(members)
    completed_item_count = sum(1 for item in members if item.status == ActionItemStatus.DONE)
    return action_map.model_copy(
        update={
            "item_count": item_count,
            "completed_item_count": completed_item_count,
            "progress_rate": calculate_progress_rate(completed_item_count, item_count),
        }
    )


class ProgressAggregator:
    """
    Calculates progress figures for a whole map snapshot.

    Handles:
    - Item rollups from linked tasks
    - Map rollups from direct items
    - Status breakdowns for summaries
    """

    def aggregate_items(self, items: Iterable[ActionItem], tasks: Iterable[Task]) -> List[ActionItem]:
        """Aggregate every item against the given task set."""
        tasks_by_id = {task.id: task for task in tasks}
        return [aggregate_item(item, tasks_by_id) for item in items]

    def aggregate(self, snapshot: MapSnapshot) -> MapSnapshot:
        """Aggregate a snapshot.

        Args:
            snapshot: Raw snapshot from the store.

        Returns:
            New snapshot with derived fields on the map and every item.
        """
        items = self.aggregate_items(snapshot.items, snapshot.tasks)
        action_map = aggregate_map(snapshot.action_map, items)
        return MapSnapshot(action_map=action_map, items=items, tasks=list(snapshot.tasks))

    def completion_stats(self, items: Iterable[ActionItem]) -> Dict[str, int]:
        """Get item counts by status.

        Returns:
            Dictionary with one count per status plus 'total'.
        """
        stats = {status.value: 0 for status in ActionItemStatus}
        total = 0
        for item in items:
            stats[item.status.value] += 1
            total += 1
        stats["total"] = total
        return stats
