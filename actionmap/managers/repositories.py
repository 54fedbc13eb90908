"""
JSON-file repositories for the reference store.

Implement the Repository interface over StorageManager with a
compare-and-swap version check, plus the create/delete commands and the
item <-> task link bookkeeping the persistence collaborator owns.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from actionmap.exceptions import NotFoundError, ValidationError, VersionConflictError
from actionmap.managers.repository import ItemRepository, MapRepository, TaskSource
from actionmap.managers.storage_manager import StorageManager
from actionmap.managers.tree_builder import find_descendant_ids, would_create_cycle
from actionmap.models.action_item import ActionItem
from actionmap.models.action_map import ActionMap
from actionmap.models.base import STORED, Suit, TaskStatus, VersionedEntity
from actionmap.models.files import ItemsFile, TasksFile
from actionmap.models.patches import BasePatch
from actionmap.models.task import Task


def _format_validation_error(error: PydanticValidationError) -> str:
    """Flatten a pydantic error into one readable line."""
    parts = []
    for detail in error.errors():
        location = ".".join(str(loc) for loc in detail.get("loc", ()))
        message = detail.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or str(error)


def _apply_patch(entity: VersionedEntity, changes: Dict[str, Any]) -> VersionedEntity:
    """Build the next stored version of an entity from a patch.

    Raises:
        ValidationError: If the patched entity fails model validation.
    """
    data = entity.model_dump()
    data.update(changes)
    data["version"] = entity.version + 1
    data["updated_at"] = datetime.now()
    try:
        # The patch already checked configured limits on the fields it sets
        return type(entity).model_validate(data, context=STORED)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {entity.entity_type}: {_format_validation_error(e)}")


def _check_version(entity: VersionedEntity, expected_version: int, force_overwrite: bool) -> None:
    if not force_overwrite and entity.version != expected_version:
        raise VersionConflictError(
            current_version=entity.version, expected_version=expected_version
        )


def _find_index(entities: List[VersionedEntity], entity_id: str) -> int:
    for index, entity in enumerate(entities):
        if entity.id == entity_id:
            return index
    return -1


class JsonMapRepository(MapRepository):
    """ActionMap repository backed by maps.json."""

    def __init__(self, storage: StorageManager, workspace_id: Optional[str] = None) -> None:
        self.storage = storage
        self.workspace_id = workspace_id

    def fetch_all(self, map_id: Optional[str] = None) -> List[ActionMap]:
        """Fetch all maps of the workspace (or only map_id when given)."""
        maps = self.storage.load_maps().maps
        if map_id is not None:
            maps = [m for m in maps if m.id == map_id]
            if not maps:
                raise NotFoundError(f"ActionMap not found: '{map_id}'.")
        return maps

    def fetch_one(self, entity_id: str) -> ActionMap:
        for action_map in self.storage.load_maps().maps:
            if action_map.id == entity_id:
                return action_map
        raise NotFoundError(f"ActionMap not found: '{entity_id}'.")

    def write(
        self,
        entity_id: str,
        patch: BasePatch,
        expected_version: int,
        force_overwrite: bool = False,
    ) -> ActionMap:
        maps_file = self.storage.load_maps()
        index = _find_index(maps_file.maps, entity_id)
        if index < 0:
            raise NotFoundError(f"ActionMap not found: '{entity_id}'.")

        current = maps_file.maps[index]
        _check_version(current, expected_version, force_overwrite)

        updated = _apply_patch(current, patch.changes())
        maps_file.maps[index] = updated
        self.storage.save_maps(maps_file)
        return updated

    def create_map(
        self,
        title: str,
        description: Optional[str] = None,
        target_period_start: Optional[date] = None,
        target_period_end: Optional[date] = None,
        key_result_id: Optional[str] = None,
    ) -> ActionMap:
        """Create a new map at version 1.

        Raises:
            ValidationError: If title or target period is invalid.
        """
        try:
            action_map = ActionMap(
                title=title,
                description=description,
                target_period_start=target_period_start,
                target_period_end=target_period_end,
                key_result_id=key_result_id,
                workspace_id=self.workspace_id,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid ActionMap: {_format_validation_error(e)}")

        maps_file = self.storage.load_maps()
        maps_file.maps.append(action_map)
        self.storage.save_maps(maps_file)
        return action_map

    def delete_map(self, map_id: str, items: "JsonItemRepository") -> List[str]:
        """Delete a map after cascading to its items.

        Returns:
            Ids of the removed items.

        Raises:
            NotFoundError: If the map does not exist.
        """
        maps_file = self.storage.load_maps()
        index = _find_index(maps_file.maps, map_id)
        if index < 0:
            raise NotFoundError(f"ActionMap not found: '{map_id}'.")

        removed = items.delete_items_of_map(map_id)

        # Reload: the item cascade does not touch maps.json, but keep the read fresh
        maps_file = self.storage.load_maps()
        maps_file.maps = [m for m in maps_file.maps if m.id != map_id]
        self.storage.save_maps(maps_file)
        return removed


class JsonItemRepository(ItemRepository):
    """ActionItem repository backed by items.json, keeping tasks.json links in sync."""

    def __init__(self, storage: StorageManager, workspace_id: Optional[str] = None) -> None:
        self.storage = storage
        self.workspace_id = workspace_id

    def _map_exists(self, map_id: str) -> bool:
        return any(m.id == map_id for m in self.storage.load_maps().maps)

    def fetch_all(self, map_id: Optional[str] = None) -> List[ActionItem]:
        """Fetch all items of a map, ordered by sort_order.

        Raises:
            NotFoundError: If the map does not exist.
        """
        if map_id is not None and not self._map_exists(map_id):
            raise NotFoundError(f"ActionMap not found: '{map_id}'.")
        items = self.storage.load_items().items
        if map_id is not None:
            items = [item for item in items if item.action_map_id == map_id]
        return sorted(items, key=ActionItem.sort_key)

    def fetch_one(self, entity_id: str) -> ActionItem:
        for item in self.storage.load_items().items:
            if item.id == entity_id:
                return item
        raise NotFoundError(f"ActionItem not found: '{entity_id}'.")

    def _validate_parent(
        self, items: List[ActionItem], map_id: str, item_id: Optional[str], parent_id: Optional[str]
    ) -> None:
        """Parent must be another item of the same map, never a descendant."""
        if parent_id is None:
            return
        parent = next((i for i in items if i.id == parent_id), None)
        if parent is None:
            raise ValidationError(f"Parent item not found: '{parent_id}'.")
        if parent.action_map_id != map_id:
            raise ValidationError(
                f"Parent item '{parent_id}' belongs to another map. "
                "Items can only be nested under items of the same map."
            )
        if item_id is not None and would_create_cycle(
            [i for i in items if i.action_map_id == map_id], item_id, parent_id
        ):
            raise ValidationError(
                f"Cannot move item '{item_id}' under '{parent_id}': it would create a cycle."
            )

    def write(
        self,
        entity_id: str,
        patch: BasePatch,
        expected_version: int,
        force_overwrite: bool = False,
    ) -> ActionItem:
        items_file = self.storage.load_items()
        index = _find_index(items_file.items, entity_id)
        if index < 0:
            raise NotFoundError(f"ActionItem not found: '{entity_id}'.")

        current = items_file.items[index]
        _check_version(current, expected_version, force_overwrite)

        changes = patch.changes()
        if "parent_item_id" in changes:
            self._validate_parent(
                items_file.items, current.action_map_id, current.id, changes["parent_item_id"]
            )

        updated = _apply_patch(current, changes)

        if "linked_task_ids" in changes:
            tasks_file = self.storage.load_tasks()
            self._sync_task_links(items_file, tasks_file, current, updated)
            self.storage.save_tasks(tasks_file)

        items_file.items[_find_index(items_file.items, entity_id)] = updated
        self.storage.save_items(items_file)
        return updated

    def _sync_task_links(
        self,
        items_file: ItemsFile,
        tasks_file: TasksFile,
        before: ActionItem,
        after: ActionItem,
    ) -> None:
        """Keep task back-references consistent with the item's linked set.

        A task newly linked here is detached from the item that held it
        before (that item's version is bumped). Unlinked tasks lose their
        back-reference.

        Raises:
            ValidationError: If a linked task does not exist.
        """
        tasks_by_id = {task.id: task for task in tasks_file.tasks}
        unknown = [task_id for task_id in after.linked_task_ids if task_id not in tasks_by_id]
        if unknown:
            raise ValidationError(f"Task not found: {', '.join(unknown)}.")

        added = set(after.linked_task_ids) - set(before.linked_task_ids)
        removed = set(before.linked_task_ids) - set(after.linked_task_ids)

        for task_id in added:
            task = tasks_by_id[task_id]
            previous_owner = task.action_item_id
            if previous_owner and previous_owner != after.id:
                self._detach_task(items_file, previous_owner, task_id)
            task.action_item_id = after.id

        for task_id in removed:
            task = tasks_by_id.get(task_id)
            if task is not None and task.action_item_id == after.id:
                task.action_item_id = None

    def _detach_task(self, items_file: ItemsFile, item_id: str, task_id: str) -> None:
        index = _find_index(items_file.items, item_id)
        if index < 0:
            return
        owner = items_file.items[index]
        if task_id not in owner.linked_task_ids:
            return
        items_file.items[index] = owner.model_copy(
            update={
                "linked_task_ids": [t for t in owner.linked_task_ids if t != task_id],
                "version": owner.version + 1,
                "updated_at": datetime.now(),
            }
        )

    def create_item(
        self,
        action_map_id: str,
        title: str,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
        priority: Optional[str] = None,
        status: Optional[str] = None,
        parent_item_id: Optional[str] = None,
        sort_order: Optional[int] = None,
    ) -> ActionItem:
        """Create a new item at version 1.

        sort_order defaults to one past the highest sort_order in the map.

        Raises:
            NotFoundError: If the map does not exist.
            ValidationError: If fields or the parent reference are invalid.
        """
        if not self._map_exists(action_map_id):
            raise NotFoundError(f"ActionMap not found: '{action_map_id}'.")

        items_file = self.storage.load_items()
        self._validate_parent(items_file.items, action_map_id, None, parent_item_id)

        if sort_order is None:
            siblings = [i.sort_order for i in items_file.items if i.action_map_id == action_map_id]
            sort_order = (max(siblings) if siblings else -1) + 1

        fields: Dict[str, Any] = {
            "action_map_id": action_map_id,
            "workspace_id": self.workspace_id,
            "title": title,
            "description": description,
            "due_date": due_date,
            "parent_item_id": parent_item_id,
            "sort_order": sort_order,
        }
        if priority is not None:
            fields["priority"] = priority
        if status is not None:
            fields["status"] = status

        try:
            item = ActionItem(**fields)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid ActionItem: {_format_validation_error(e)}")

        items_file.items.append(item)
        self.storage.save_items(items_file)
        return item

    def _remove_items(self, items_file: ItemsFile, removed_ids: Set[str]) -> None:
        items_file.items = [i for i in items_file.items if i.id not in removed_ids]
        tasks_file = self.storage.load_tasks()
        for task in tasks_file.tasks:
            if task.action_item_id in removed_ids:
                task.action_item_id = None
        self.storage.save_tasks(tasks_file)
        self.storage.save_items(items_file)

    def delete_item(self, item_id: str) -> List[str]:
        """Delete an item, cascading to its descendants and unlinking tasks.

        Returns:
            Ids of every removed item, the item itself first.

        Raises:
            NotFoundError: If the item does not exist.
        """
        items_file = self.storage.load_items()
        index = _find_index(items_file.items, item_id)
        if index < 0:
            raise NotFoundError(f"ActionItem not found: '{item_id}'.")

        map_id = items_file.items[index].action_map_id
        same_map = [i for i in items_file.items if i.action_map_id == map_id]
        descendants = find_descendant_ids(same_map, item_id)

        self._remove_items(items_file, {item_id} | descendants)
        return [item_id] + sorted(descendants)

    def delete_items_of_map(self, map_id: str) -> List[str]:
        """Delete every item of a map and unlink their tasks."""
        items_file = self.storage.load_items()
        removed = {i.id for i in items_file.items if i.action_map_id == map_id}
        if removed:
            self._remove_items(items_file, removed)
        return sorted(removed)


class JsonTaskRepository(TaskSource):
    """Task source backed by tasks.json.

    Tasks belong to an external collaborator; this class only offers what
    the CLI needs to exercise progress rollups.
    """

    def __init__(self, storage: StorageManager) -> None:
        self.storage = storage

    def fetch_tasks(self, task_ids: Iterable[str]) -> List[Task]:
        wanted = set(task_ids)
        return [task for task in self.storage.load_tasks().tasks if task.id in wanted]

    def fetch_all_tasks(self) -> List[Task]:
        return self.storage.load_tasks().tasks

    def fetch_task(self, task_id: str) -> Task:
        for task in self.storage.load_tasks().tasks:
            if task.id == task_id:
                return task
        raise NotFoundError(f"Task not found: '{task_id}'.")

    def create_task(
        self,
        title: str,
        suit: Optional[Suit] = None,
        status: TaskStatus = TaskStatus.NOT_STARTED,
    ) -> Task:
        """Create a task with no item link.

        Raises:
            ValidationError: If the title is invalid.
        """
        try:
            task = Task(title=title, suit=suit, status=status)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid Task: {_format_validation_error(e)}")
        tasks_file = self.storage.load_tasks()
        tasks_file.tasks.append(task)
        self.storage.save_tasks(tasks_file)
        return task

    def set_status(self, task_id: str, status: TaskStatus) -> Task:
        """Change a task's status.

        Raises:
            NotFoundError: If the task does not exist.
        """
        tasks_file = self.storage.load_tasks()
        for task in tasks_file.tasks:
            if task.id == task_id:
                task.status = status
                self.storage.save_tasks(tasks_file)
                return task
        raise NotFoundError(f"Task not found: '{task_id}'.")
