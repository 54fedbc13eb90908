"""
ActionMapCore - Core business logic for actionmap using .actionmap/ storage.

Orchestrates manager classes for all business operations.
Every public operation returns Success, Conflict or Failure.
Uses EventBus to keep cached projections in step with committed writes.
"""

import functools
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from actionmap.constants import ConfigManager, using_config
from actionmap.exceptions import ActionMapError, InvalidOperationError, NotFoundError
from actionmap.managers import (
    ConcurrencyController,
    EditSession,
    EntityEvent,
    Event,
    EventListener,
    EventType,
    JsonItemRepository,
    JsonMapRepository,
    JsonTaskRepository,
    ProgressAggregator,
    StorageManager,
    ViewProjection,
    classify_due_date,
    get_event_bus,
    subscribe_listener,
    unsubscribe_listener,
)
from actionmap.managers.progress_aggregator import aggregate_map
from actionmap.models.action_item import ActionItem, ActionItemNode
from actionmap.models.action_map import ActionMap
from actionmap.models.base import (
    ActionItemPriority,
    ActionItemStatus,
    DueDateWarningLevel,
    Suit,
    TaskStatus,
)
from actionmap.models.patches import BasePatch
from actionmap.models.results import Result, Success, failure_from_error
from actionmap.models.snapshot import MapSnapshot
from actionmap.models.task import priority_to_suit

PatchInput = Union[BasePatch, Dict[str, Any]]


def with_store_config(method: Callable[..., Any]) -> Callable[..., Any]:
    """Run a core method with the core's own config active."""
    @functools.wraps(method)
    def wrapper(self: "ActionMapCore", *args: Any, **kwargs: Any) -> Any:
        with using_config(self.config):
            return method(self, *args, **kwargs)
    return wrapper


class SnapshotRefreshListener(EventListener):
    """Drops cached projections of a map whenever one of its entities changes."""

    def __init__(self, core: "ActionMapCore") -> None:
        self.core = core

    @property
    def subscribed_events(self) -> List[EventType]:
        return [
            EventType.ENTITY_CREATED,
            EventType.ENTITY_COMMITTED,
            EventType.ENTITY_DELETED,
            EventType.ENTITY_REMOVED,
            EventType.CONFLICT_RESOLVED,
        ]

    def handle(self, event: Event) -> None:
        if not isinstance(event, EntityEvent):
            return
        self.core.invalidate(event.map_id)


class ActionMapCore:
    """
    Core class for business logic operations.

    Orchestrates manager classes:
    - StorageManager: Persistence to .actionmap/ folder
    - Json*Repository: Versioned reads and writes of maps, items and tasks
    - ProgressAggregator: Derived progress figures
    - ConcurrencyController: One per mutable entity type (maps, items)
    - ViewProjection: Cached tree and board per map
    - EventBus: Event-driven cache invalidation
    """

    def __init__(self, store_dir: Optional[Path] = None, today: Optional[date] = None):
        """
        Initialize the ActionMapCore with a .actionmap/ directory.

        Args:
            store_dir: Path to .actionmap/ directory. Defaults to .actionmap/ in current directory.
            today: Fixed reference date for due-date warnings. Defaults to the current date.
        """
        self.storage = StorageManager(store_dir)
        self.config = ConfigManager(store_dir=self.storage.store_dir)
        self.maps = JsonMapRepository(self.storage)
        self.items = JsonItemRepository(self.storage)
        self.tasks = JsonTaskRepository(self.storage)
        self.aggregator = ProgressAggregator()
        self._today = today

        self.event_bus = get_event_bus()
        self.map_controller = ConcurrencyController(self.maps, self.event_bus)
        self.item_controller = ConcurrencyController(self.items, self.event_bus)

        self._projections: Dict[str, ViewProjection] = {}
        self.refresh_listener = SnapshotRefreshListener(self)
        subscribe_listener(self.refresh_listener)

    def close(self) -> None:
        """Stop listening for events. The core must not be used afterwards."""
        unsubscribe_listener(self.refresh_listener)
        self._projections.clear()

    def __enter__(self) -> "ActionMapCore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def today(self) -> date:
        return self._today or date.today()

    @with_store_config
    def _attempt(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Result:
        """Run a store operation, turning expected errors into a Failure."""
        try:
            return Success(operation(*args, **kwargs))
        except ActionMapError as e:
            return failure_from_error(e)

    def _publish(self, event_type: EventType, entity_id: str, entity_type: str, map_id: Optional[str], **data) -> None:
        self.event_bus.publish(
            EntityEvent(
                type=event_type,
                entity_id=entity_id,
                entity_type=entity_type,
                map_id=map_id,
                data=data,
            )
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def invalidate(self, map_id: Optional[str] = None) -> None:
        """Forget cached projections of one map (or of all maps)."""
        if map_id is None:
            self._projections.clear()
        else:
            self._projections.pop(map_id, None)

    def _read_snapshot(self, map_id: str) -> MapSnapshot:
        action_map = self.maps.fetch_one(map_id)
        items = self.items.fetch_all(map_id)
        linked_ids = {task_id for item in items for task_id in item.linked_task_ids}
        tasks = self.tasks.fetch_tasks(linked_ids)
        snapshot = self.aggregator.aggregate(
            MapSnapshot(action_map=action_map, items=items, tasks=tasks)
        )

        self.map_controller.open(action_map)
        for item in items:
            self.item_controller.open(item)
        return snapshot

    def _projection(self, map_id: str) -> ViewProjection:
        projection = self._projections.get(map_id)
        if projection is None:
            projection = ViewProjection(self._read_snapshot(map_id))
            self._projections[map_id] = projection
        return projection

    def list_maps(self, include_archived: bool = False) -> Result:
        """List maps with their progress figures.

        Returns:
            Success(List[ActionMap]) ordered by creation time.
        """
        def _list() -> List[ActionMap]:
            maps = self.maps.fetch_all()
            if not include_archived:
                maps = [m for m in maps if not m.is_archived]
            items = self.items.fetch_all()
            return [aggregate_map(m, items) for m in sorted(maps, key=lambda m: m.created_at)]

        return self._attempt(_list)

    def load_map(self, map_id: str) -> Result:
        """Load an aggregated snapshot of a map.

        Returns:
            Success(MapSnapshot), or Failure(not_found) if the map is missing.
        """
        return self._attempt(lambda: self._projection(map_id).snapshot)

    def tree(self, map_id: str) -> Result:
        """Returns: Success(List[ActionItemNode]) of root nodes."""
        return self._attempt(lambda: self._projection(map_id).tree())

    def flat_tree(self, map_id: str) -> Result:
        """Returns: Success(List[ActionItemNode]) in display order."""
        return self._attempt(lambda: self._projection(map_id).flat_tree())

    def board(self, map_id: str) -> Result:
        """Returns: Success(Dict[ActionItemStatus, List[ActionItem]])."""
        return self._attempt(lambda: self._projection(map_id).board())

    def projection(self, map_id: str) -> Result:
        return self._attempt(self._projection, map_id)

    @with_store_config
    def warning_level(self, item: Union[ActionItem, ActionItemNode]) -> DueDateWarningLevel:
        """Due-date warning level of an item as of today."""
        if isinstance(item, ActionItemNode):
            item = item.item
        return classify_due_date(item.due_date, self.today)

    def status_summary(self, include_archived: bool = False) -> Result:
        """Progress and status breakdown of every map.

        Returns:
            Success(List[dict]) with one entry per map.
        """
        listed = self.list_maps(include_archived)
        if not listed.ok:
            return listed

        summary = []
        for action_map in listed.value:
            loaded = self.load_map(action_map.id)
            if not loaded.ok:
                return loaded
            snapshot = loaded.value
            warnings = {level.value: 0 for level in DueDateWarningLevel}
            for item in snapshot.items:
                if item.is_done:
                    continue
                warnings[self.warning_level(item).value] += 1
            summary.append(
                {
                    "map": snapshot.action_map,
                    "stats": self.aggregator.completion_stats(snapshot.items),
                    "warnings": warnings,
                }
            )
        return Success(summary)

    # =========================================================================
    # Create / delete
    # =========================================================================

    def create_map(
        self,
        title: str,
        description: Optional[str] = None,
        target_period_start: Optional[date] = None,
        target_period_end: Optional[date] = None,
        key_result_id: Optional[str] = None,
    ) -> Result:
        """Create a map. Returns: Success(ActionMap)."""
        result = self._attempt(
            self.maps.create_map,
            title,
            description,
            target_period_start,
            target_period_end,
            key_result_id,
        )
        if result.ok:
            self._publish(EventType.ENTITY_CREATED, result.value.id, "ActionMap", result.value.id)
        return result

    def create_item(
        self,
        map_id: str,
        title: str,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
        priority: Optional[ActionItemPriority] = None,
        status: Optional[ActionItemStatus] = None,
        parent_item_id: Optional[str] = None,
        sort_order: Optional[int] = None,
    ) -> Result:
        """Create an item in a map. Returns: Success(ActionItem)."""
        result = self._attempt(
            self.items.create_item,
            map_id,
            title,
            description=description,
            due_date=due_date,
            priority=priority,
            status=status,
            parent_item_id=parent_item_id,
            sort_order=sort_order,
        )
        if result.ok:
            self._publish(EventType.ENTITY_CREATED, result.value.id, "ActionItem", map_id)
        return result

    def create_task(
        self,
        title: str,
        suit: Optional[Suit] = None,
        action_item_id: Optional[str] = None,
    ) -> Result:
        """Create a task, optionally linking it to an item.

        When linked and no suit is given, the suit follows the item's priority.

        Returns:
            Success(Task), or the link's Conflict/Failure.
        """
        item = None
        if action_item_id is not None:
            fetched = self._attempt(self.items.fetch_one, action_item_id)
            if not fetched.ok:
                return fetched
            item = fetched.value
            if suit is None:
                suit = priority_to_suit(item.priority)

        created = self._attempt(self.tasks.create_task, title, suit)
        if not created.ok or item is None:
            return created

        linked = self.link_task(item.id, created.value.id, version=item.version)
        if not linked.ok:
            return linked
        return self._attempt(self.tasks.fetch_task, created.value.id)

    def set_task_status(self, task_id: str, status: TaskStatus) -> Result:
        """Change a task's status. Returns: Success(Task)."""
        result = self._attempt(self.tasks.set_status, task_id, status)
        if result.ok:
            owner = result.value.action_item_id
            if owner is None:
                return result
            try:
                self.invalidate(self.items.fetch_one(owner).action_map_id)
            except NotFoundError:
                self.invalidate()
        return result

    def delete_map(self, map_id: str) -> Result:
        """Delete a map and all of its items.

        Returns:
            Success(List[str]) of removed item ids.
        """
        result = self._attempt(self.maps.delete_map, map_id, self.items)
        if result.ok:
            self.map_controller.close(map_id)
            for item_id in result.value:
                self.item_controller.close(item_id)
            self._publish(EventType.ENTITY_DELETED, map_id, "ActionMap", map_id, removed=result.value)
        return result

    def delete_item(self, item_id: str) -> Result:
        """Delete an item and its descendants.

        Returns:
            Success(List[str]) of removed ids, the item first.
        """
        fetched = self._attempt(self.items.fetch_one, item_id)
        if not fetched.ok:
            return fetched
        map_id = fetched.value.action_map_id

        result = self._attempt(self.items.delete_item, item_id)
        if result.ok:
            for removed_id in result.value:
                self.item_controller.close(removed_id)
            self._publish(EventType.ENTITY_DELETED, item_id, "ActionItem", map_id, removed=result.value)
        return result

    # =========================================================================
    # Versioned edits
    # =========================================================================

    @with_store_config
    def _submit(
        self,
        controller: ConcurrencyController,
        entity_id: str,
        patch: Union[PatchInput, Callable[[Any], PatchInput]],
        version: Optional[int],
    ) -> Result:
        """Open a session for the entity and submit a patch through it.

        version is the version the caller last read; when omitted the
        session's known version is used. patch may be a callable building
        the patch from the entity as last read.

        A session entity read at another version than the caller's is
        refetched first, so a callable patch never combines stale fields
        with a current version.
        """
        session = controller.session(entity_id)
        if session is None or session.is_closed:
            fetched = self._attempt(controller.repository.fetch_one, entity_id)
            if not fetched.ok:
                return fetched
            session = controller.open(fetched.value)

        if (
            version is not None
            and version != session.known_version
            and not session.has_pending_edit
            and session.conflict is None
        ):
            fetched = self._attempt(controller.repository.fetch_one, entity_id)
            if not fetched.ok:
                return fetched
            session = controller.open(fetched.value)
            # Store moved past the caller's read: the write must conflict
            session.known_version = version

        if callable(patch):
            patch = patch(session.entity)
            if patch is None:
                return Success(session.entity)
        return controller.submit(entity_id, patch)

    def edit_map(self, map_id: str, patch: PatchInput, version: Optional[int] = None) -> Result:
        """Edit a map. Returns: Success(ActionMap), Conflict or Failure."""
        return self._submit(self.map_controller, map_id, patch, version)

    def archive_map(self, map_id: str, archived: bool = True, version: Optional[int] = None) -> Result:
        return self._submit(self.map_controller, map_id, {"is_archived": archived}, version)

    def edit_item(self, item_id: str, patch: PatchInput, version: Optional[int] = None) -> Result:
        """Edit an item. Returns: Success(ActionItem), Conflict or Failure."""
        return self._submit(self.item_controller, item_id, patch, version)

    def move_item(
        self,
        item_id: str,
        parent_item_id: Optional[str],
        sort_order: Optional[int] = None,
        version: Optional[int] = None,
    ) -> Result:
        """Re-parent an item (None makes it a root), optionally reordering it."""
        patch: Dict[str, Any] = {"parent_item_id": parent_item_id}
        if sort_order is not None:
            patch["sort_order"] = sort_order
        return self._submit(self.item_controller, item_id, patch, version)

    def set_item_status(
        self, item_id: str, status: ActionItemStatus, version: Optional[int] = None
    ) -> Result:
        """Move an item to another board column."""
        return self._submit(self.item_controller, item_id, {"status": status}, version)

    def link_task(self, item_id: str, task_id: str, version: Optional[int] = None) -> Result:
        """Link a task to an item, detaching it from any previous item."""
        def _patch(item: ActionItem) -> Optional[Dict[str, Any]]:
            if task_id in item.linked_task_ids:
                return None
            return {"linked_task_ids": item.linked_task_ids + [task_id]}

        return self._submit(self.item_controller, item_id, _patch, version)

    def unlink_task(self, item_id: str, task_id: str, version: Optional[int] = None) -> Result:
        """Remove a task from an item's linked set."""
        def _patch(item: ActionItem) -> Optional[Dict[str, Any]]:
            if task_id not in item.linked_task_ids:
                return None
            return {"linked_task_ids": [t for t in item.linked_task_ids if t != task_id]}

        return self._submit(self.item_controller, item_id, _patch, version)

    # =========================================================================
    # Sessions and conflict resolution
    # =========================================================================

    def _controller_for(self, entity_id: str) -> Optional[ConcurrencyController]:
        for controller in (self.item_controller, self.map_controller):
            if controller.session(entity_id) is not None:
                return controller
        return None

    def session(self, entity_id: str) -> Optional[EditSession]:
        """Current edit session of an entity, if any."""
        controller = self._controller_for(entity_id)
        return controller.session(entity_id) if controller else None

    @with_store_config
    def _resolve(self, entity_id: str, action: str) -> Result:
        controller = self._controller_for(entity_id)
        if controller is None:
            return failure_from_error(InvalidOperationError(f"No edit session for '{entity_id}'."))
        return getattr(controller, action)(entity_id)

    def reload(self, entity_id: str) -> Result:
        """Resolve a conflict by adopting the server's version."""
        return self._resolve(entity_id, "reload")

    def force_overwrite(self, entity_id: str) -> Result:
        """Resolve a conflict by writing the local edit over the server's."""
        return self._resolve(entity_id, "force_overwrite")

    def cancel(self, entity_id: str) -> Result:
        """Close the conflict without writing; the local edit stays pending."""
        return self._resolve(entity_id, "cancel")

    def retry(self, entity_id: str) -> Result:
        """Resubmit the pending edit of an entity."""
        return self._resolve(entity_id, "retry")
