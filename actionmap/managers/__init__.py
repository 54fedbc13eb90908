"""
Managers for the actionmap engine.

This package contains focused modules that each handle one aspect of the engine:
- tree_builder: Build an ordered forest from flat, parent-referencing items
- ProgressAggregator: Derive item and map progress from task completion
- due_date: Classify due dates into warning levels
- ConcurrencyController: Version-stamped edit sessions and conflict resolution
- ViewProjection: Tree and board shapes of a snapshot
- StorageManager: Persistence to the .actionmap/ folder
- Json*Repository: Reference store implementing the repository interfaces
- EventBus: Event-driven architecture for decoupled communication
"""

from actionmap.managers.concurrency import (
    ConcurrencyController,
    EditSession,
    ResolutionChoice,
    SessionOutcome,
    SessionState,
)
from actionmap.managers.due_date import classify_due_date, remaining_days
from actionmap.managers.events import (
    EntityEvent,
    Event,
    EventBus,
    EventListener,
    EventType,
    get_event_bus,
    publish_event,
    subscribe_listener,
    unsubscribe_listener,
)
from actionmap.managers.progress_aggregator import ProgressAggregator, calculate_progress_rate
from actionmap.managers.repositories import (
    JsonItemRepository,
    JsonMapRepository,
    JsonTaskRepository,
)
from actionmap.managers.repository import ItemRepository, MapRepository, Repository, TaskSource
from actionmap.managers.storage_manager import StorageManager
from actionmap.managers.tree_builder import build_tree, flatten_tree
from actionmap.managers.view_projection import ViewProjection, project_board, project_tree

__all__ = [
    "ConcurrencyController",
    "EditSession",
    "ResolutionChoice",
    "SessionOutcome",
    "SessionState",
    "classify_due_date",
    "remaining_days",
    "EntityEvent",
    "Event",
    "EventBus",
    "EventListener",
    "EventType",
    "get_event_bus",
    "publish_event",
    "subscribe_listener",
    "unsubscribe_listener",
    "ProgressAggregator",
    "calculate_progress_rate",
    "JsonItemRepository",
    "JsonMapRepository",
    "JsonTaskRepository",
    "ItemRepository",
    "MapRepository",
    "Repository",
    "TaskSource",
    "StorageManager",
    "build_tree",
    "flatten_tree",
    "ViewProjection",
    "project_board",
    "project_tree",
]
