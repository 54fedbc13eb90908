"""
Test fixtures for the actionmap test suite.

Provides:
- Temporary directory fixtures (isolated from any real .actionmap/)
- Mock data builders for creating maps, items and tasks
- Event bus and config isolation between tests
"""

import shutil
import tempfile
from datetime import date
from pathlib import Path
from typing import Generator, List, Optional

import pytest

from actionmap.constants import reset_config_manager
from actionmap.managers.events import get_event_bus
from actionmap.models.action_item import ActionItem
from actionmap.models.action_map import ActionMap
from actionmap.models.base import ActionItemStatus, TaskStatus
from actionmap.models.snapshot import MapSnapshot
from actionmap.models.task import Task


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolate_globals() -> Generator[None, None, None]:
    """Reset the config singleton and the event bus around every test."""
    reset_config_manager()
    get_event_bus().clear()
    yield
    reset_config_manager()
    get_event_bus().clear()


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = Path(tempfile.mkdtemp(prefix="actionmap_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def store_dir(temp_dir: Path) -> Path:
    """Create a temporary .actionmap/ directory and return its path."""
    store_path = temp_dir / ".actionmap"
    store_path.mkdir(parents=True)
    return store_path


# =============================================================================
# Mock Data Builders
# =============================================================================


class MockDataBuilder:
    """Helper class for building mock actionmap entities for testing."""

    @staticmethod
    def create_map(
        title: str = "Test Map",
        map_id: Optional[str] = None,
        version: int = 1,
        description: Optional[str] = None,
    ) -> ActionMap:
        """Create a mock ActionMap for testing."""
        fields = {"title": title, "version": version, "description": description}
        if map_id:
            fields["id"] = map_id
        return ActionMap(**fields)

    @staticmethod
    def create_item(
        item_id: str,
        map_id: str = "map-1",
        title: Optional[str] = None,
        parent_item_id: Optional[str] = None,
        status: ActionItemStatus = ActionItemStatus.NOT_STARTED,
        sort_order: int = 0,
        due_date: Optional[date] = None,
        linked_task_ids: Optional[List[str]] = None,
        version: int = 1,
    ) -> ActionItem:
        """Create a mock ActionItem for testing."""
        return ActionItem(
            id=item_id,
            action_map_id=map_id,
            title=title or f"Item {item_id}",
            parent_item_id=parent_item_id,
            status=status,
            sort_order=sort_order,
            due_date=due_date,
            linked_task_ids=linked_task_ids or [],
            version=version,
        )

    @staticmethod
    def create_task(
        task_id: str,
        title: Optional[str] = None,
        status: TaskStatus = TaskStatus.NOT_STARTED,
        action_item_id: Optional[str] = None,
    ) -> Task:
        """Create a mock Task for testing."""
        return Task(
            id=task_id,
            title=title or f"Task {task_id}",
            status=status,
            action_item_id=action_item_id,
        )


@pytest.fixture
def mock_data() -> MockDataBuilder:
    """Provide mock data builder for test entity creation."""
    return MockDataBuilder()


# =============================================================================
# Snapshot Fixtures
# =============================================================================


@pytest.fixture
def sample_snapshot(mock_data: MockDataBuilder) -> MapSnapshot:
    """Create a sample map snapshot for testing.

    Structure:
        Map 1
        ├── A (2 tasks, 1 done)
        │   ├── A1 (done)
        │   └── A2
        └── B (blocked)
    """
    action_map = mock_data.create_map(title="Map 1", map_id="map-1")
    items = [
        mock_data.create_item("A", sort_order=0, linked_task_ids=["t1", "t2"]),
        mock_data.create_item("A1", parent_item_id="A", sort_order=0, status=ActionItemStatus.DONE),
        mock_data.create_item("A2", parent_item_id="A", sort_order=1),
        mock_data.create_item("B", sort_order=1, status=ActionItemStatus.BLOCKED),
    ]
    tasks = [
        mock_data.create_task("t1", status=TaskStatus.DONE, action_item_id="A"),
        mock_data.create_task("t2", action_item_id="A"),
    ]
    return MapSnapshot(action_map=action_map, items=items, tasks=tasks)
