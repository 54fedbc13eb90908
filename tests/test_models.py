"""
Tests for actionmap models: entities, patches, tasks and results.
"""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from actionmap.constants import ConfigManager, set_config_manager
from actionmap.exceptions import NotFoundError, StorageError, TransientError
from actionmap.models.action_item import ActionItem, ActionItemNode
from actionmap.models.action_map import ActionMap
from actionmap.models.base import STORED, ActionItemPriority, ActionItemStatus, Suit
from actionmap.models.patches import ActionItemPatch, ActionMapPatch
from actionmap.models.results import Conflict, FailureKind, failure_from_error
from actionmap.models.task import Task, priority_to_suit


class TestActionMap:
    """Tests for the ActionMap model."""

    def test_defaults(self):
        action_map = ActionMap(title="Q1 plan")
        assert action_map.version == 1
        assert action_map.is_archived is False
        assert action_map.progress_rate == 0
        assert action_map.entity_type == "ActionMap"

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            ActionMap(title="   ")

    def test_title_too_long_rejected(self):
        with pytest.raises(ValidationError):
            ActionMap(title="x" * 101)

    def test_period_end_before_start_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            ActionMap(
                title="Plan",
                target_period_start=date(2025, 3, 1),
                target_period_end=date(2025, 1, 1),
            )
        assert "before its start" in str(exc_info.value)

    def test_period_datetimes_are_truncated(self):
        action_map = ActionMap(title="Plan", target_period_start=datetime(2025, 1, 1, 12, 0))
        assert action_map.target_period_start == date(2025, 1, 1)

    def test_version_must_be_positive(self):
        with pytest.raises(ValidationError):
            ActionMap(title="Plan", version=0)


class TestActionItem:
    """Tests for the ActionItem model."""

    def test_defaults(self):
        item = ActionItem(title="Write report", action_map_id="m")
        assert item.status == ActionItemStatus.NOT_STARTED
        assert item.priority == ActionItemPriority.MEDIUM
        assert item.parent_item_id is None
        assert item.linked_task_ids == []
        assert item.is_done is False

    def test_linked_task_ids_deduplicated(self):
        item = ActionItem(title="I", action_map_id="m", linked_task_ids=["a", "b", "a"])
        assert item.linked_task_ids == ["a", "b"]

    def test_linked_task_limit_from_config(self, store_dir):
        (store_dir / "config.json").write_text('{"max_linked_tasks": 2}')
        set_config_manager(ConfigManager(store_dir=store_dir))
        with pytest.raises(ValidationError):
            ActionItem(title="I", action_map_id="m", linked_task_ids=["a", "b", "c"])

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError):
            ActionItem(title="I", action_map_id="m", status="archived")

    def test_due_datetime_truncated(self):
        item = ActionItem(title="I", action_map_id="m", due_date=datetime(2025, 5, 1, 18, 0))
        assert item.due_date == date(2025, 5, 1)

    def test_sort_key(self):
        item = ActionItem(id="x", title="I", action_map_id="m", sort_order=3)
        assert item.sort_key() == (3, "x")


class TestActionItemNode:
    """Tests for ActionItemNode."""

    def test_walk_is_pre_order(self, mock_data):
        root = ActionItemNode(mock_data.create_item("r"))
        a = ActionItemNode(mock_data.create_item("a"), depth=1)
        b = ActionItemNode(mock_data.create_item("b"), depth=1)
        a1 = ActionItemNode(mock_data.create_item("a1"), depth=2)
        root.add_child(a)
        root.add_child(b)
        a.add_child(a1)
        assert [node.id for node in root.walk()] == ["r", "a", "a1", "b"]

    def test_to_dict(self, mock_data):
        root = ActionItemNode(mock_data.create_item("r", due_date=date(2025, 1, 2)))
        root.add_child(ActionItemNode(mock_data.create_item("c"), depth=1))
        data = root.to_dict()
        assert data["id"] == "r"
        assert data["due_date"] == "2025-01-02"
        assert [child["id"] for child in data["children"]] == ["c"]


class TestPatches:
    """Tests for patch models."""

    def test_only_set_fields_are_changes(self):
        patch = ActionItemPatch(title="New")
        assert patch.changes() == {"title": "New"}

    def test_explicit_none_clears_nullable_field(self):
        patch = ActionItemPatch(due_date=None)
        assert patch.changes() == {"due_date": None}

    def test_empty_patch_rejected(self):
        with pytest.raises(ValidationError):
            ActionItemPatch()

    def test_title_cannot_be_cleared(self):
        with pytest.raises(ValidationError):
            ActionMapPatch(title=None)

    def test_status_cannot_be_cleared(self):
        with pytest.raises(ValidationError):
            ActionItemPatch(status=None)

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            ActionItemPatch(version=3)

    def test_archive_patch(self):
        assert ActionMapPatch(is_archived=True).changes() == {"is_archived": True}


class TestTask:
    """Tests for Task and the suit mapping."""

    def test_is_done(self):
        assert Task(title="T", status="done").is_done is True
        assert Task(title="T").is_done is False

    @pytest.mark.parametrize(
        "priority,suit",
        [
            (ActionItemPriority.HIGH, Suit.SPADE),
            (ActionItemPriority.MEDIUM, Suit.HEART),
            (ActionItemPriority.LOW, Suit.DIAMOND),
            (None, Suit.DIAMOND),
        ],
    )
    def test_priority_to_suit(self, priority, suit):
        assert priority_to_suit(priority) == suit


class TestResults:
    """Tests for result types."""

    def test_failure_kinds(self):
        assert failure_from_error(NotFoundError("x")).kind == FailureKind.NOT_FOUND
        assert failure_from_error(StorageError("x")).kind == FailureKind.STORAGE
        transient = failure_from_error(TransientError("x"))
        assert transient.kind == FailureKind.TRANSIENT
        assert transient.retryable is True

    def test_conflict_message(self):
        conflict = Conflict(entity_id="i", client_version=3, server_version=4)
        assert conflict.ok is False
        assert "v3" in conflict.message and "v4" in conflict.message


class TestStoredData:
    """Tests for validating data already in the store."""

    def test_stored_items_skip_configured_limits(self, store_dir):
        (store_dir / "config.json").write_text('{"max_linked_tasks": 1, "title_max_length": 3}')
        set_config_manager(ConfigManager(store_dir=store_dir))

        item = ActionItem.model_validate(
            {"title": "Long title", "action_map_id": "m", "linked_task_ids": ["a", "b"]},
            context=STORED,
        )

        assert item.linked_task_ids == ["a", "b"]
        with pytest.raises(ValidationError):
            ActionItemPatch(linked_task_ids=["a", "b"])
