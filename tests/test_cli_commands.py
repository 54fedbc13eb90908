"""
Tests for actionmap CLI commands.

Tests cover:
- map commands (add, list, show, edit, archive, delete)
- item commands (add, edit, move, status, delete)
- task commands (add, link, unlink, done)
- tree, board and status views
- config commands
- conflict resolution options on edit commands

Uses Click's CliRunner inside a temporary working directory.
"""

import json

import pytest
from click.testing import CliRunner

from actionmap.cli import cli
from actionmap.commands.config import apply_config_value
from actionmap.core import ActionMapCore
from actionmap.exceptions import ConfigurationError
from actionmap.models.files import ConfigFile

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def runner(temp_dir, monkeypatch):
    """CliRunner running in a temporary directory (so .actionmap/ lands there)."""
    monkeypatch.chdir(temp_dir)
    return CliRunner()


@pytest.fixture
def core(runner, temp_dir):
    """Core over the same store the CLI uses."""
    return ActionMapCore(store_dir=temp_dir / ".actionmap")


@pytest.fixture
def action_map(core):
    return core.create_map("Launch").value


def _invoke(runner, args, **kwargs):
    return runner.invoke(cli, args, catch_exceptions=False, **kwargs)


# =============================================================================
# Map Commands
# =============================================================================


class TestMapCommands:
    """Test map command group."""

    def test_add_and_list(self, runner):
        result = _invoke(runner, ["map", "add", "-t", "Q3 plan", "--start", "2025-07-01", "--end", "2025-09-30"])
        assert result.exit_code == 0
        assert "✓ Map 'Q3 plan' created" in result.output

        listed = _invoke(runner, ["map", "list"])
        assert "Q3 plan (0%)" in listed.output

    def test_add_with_bad_date(self, runner):
        result = runner.invoke(cli, ["map", "add", "-t", "Plan", "--start", "someday"])
        assert result.exit_code != 0
        assert "Invalid date format" in result.output

    def test_add_with_inverted_period(self, runner):
        result = runner.invoke(cli, ["map", "add", "-t", "Plan", "--start", "2025-09-30", "--end", "2025-07-01"])
        assert result.exit_code != 0
        assert "Validation Error" in result.output

    def test_list_empty(self, runner):
        assert "No action maps found." in _invoke(runner, ["map", "list"]).output

    def test_list_json(self, runner, action_map):
        data = json.loads(_invoke(runner, ["map", "list", "--json"]).output)
        assert [m["id"] for m in data] == [action_map.id]

    def test_show(self, runner, action_map):
        result = _invoke(runner, ["map", "show", action_map.id])
        assert "Title: Launch" in result.output
        assert "Version: 1" in result.output

    def test_show_missing(self, runner):
        result = runner.invoke(cli, ["map", "show", "missing"])
        assert result.exit_code != 0
        assert "ActionMap not found" in result.output

    def test_edit(self, runner, core, action_map):
        result = _invoke(runner, ["map", "edit", action_map.id, "-t", "Launch v2"])
        assert "updated (v2)" in result.output
        assert core.maps.fetch_one(action_map.id).title == "Launch v2"

    def test_edit_without_fields(self, runner, action_map):
        result = runner.invoke(cli, ["map", "edit", action_map.id])
        assert result.exit_code != 0
        assert "No update parameters provided" in result.output

    def test_archive_and_restore(self, runner, core, action_map):
        assert "archived" in _invoke(runner, ["map", "archive", action_map.id]).output
        assert core.maps.fetch_one(action_map.id).is_archived is True
        assert "restored" in _invoke(runner, ["map", "archive", action_map.id, "--restore"]).output
        assert core.maps.fetch_one(action_map.id).is_archived is False

    def test_delete(self, runner, core, action_map):
        core.create_item(action_map.id, "Item")
        result = _invoke(runner, ["map", "delete", action_map.id, "--yes"])
        assert "1 items removed" in result.output
        assert core.maps.fetch_all() == []


# =============================================================================
# Item Commands
# =============================================================================


class TestItemCommands:
    """Test item command group."""

    def test_add_item(self, runner, core, action_map):
        result = _invoke(runner, ["item", "add", action_map.id, "-t", "Design", "-p", "high", "--due", "2025-12-31"])
        assert "✓ Item 'Design' created" in result.output
        item = core.items.fetch_all(action_map.id)[0]
        assert item.priority.value == "high"
        assert str(item.due_date) == "2025-12-31"

    def test_add_item_to_missing_map(self, runner):
        result = runner.invoke(cli, ["item", "add", "missing", "-t", "Orphan"])
        assert result.exit_code != 0
        assert "ActionMap not found" in result.output

    def test_edit_item(self, runner, core, action_map):
        item = core.create_item(action_map.id, "Draft").value
        result = _invoke(runner, ["item", "edit", item.id, "-t", "Final", "--json"])
        data = json.loads(result.output)
        assert data["title"] == "Final"
        assert data["version"] == 2

    def test_clear_due_date(self, runner, core, action_map):
        item = core.create_item(action_map.id, "Dated", due_date=None).value
        core.edit_item(item.id, {"due_date": "2025-01-01"})
        _invoke(runner, ["item", "edit", item.id, "--clear-due"])
        assert core.items.fetch_one(item.id).due_date is None

    def test_move_under_parent_and_back(self, runner, core, action_map):
        parent = core.create_item(action_map.id, "Parent").value
        child = core.create_item(action_map.id, "Child").value

        _invoke(runner, ["item", "move", child.id, "--parent", parent.id])
        assert core.items.fetch_one(child.id).parent_item_id == parent.id

        _invoke(runner, ["item", "move", child.id, "--root"])
        assert core.items.fetch_one(child.id).parent_item_id is None

    def test_move_into_own_child_fails(self, runner, core, action_map):
        parent = core.create_item(action_map.id, "Parent").value
        child = core.create_item(action_map.id, "Child", parent_item_id=parent.id).value
        result = runner.invoke(cli, ["item", "move", parent.id, "--parent", child.id])
        assert result.exit_code != 0
        assert "cycle" in result.output

    def test_move_requires_target(self, runner, core, action_map):
        item = core.create_item(action_map.id, "Item").value
        result = runner.invoke(cli, ["item", "move", item.id])
        assert result.exit_code != 0
        assert "exactly one of --parent or --root" in result.output

    def test_status(self, runner, core, action_map):
        item = core.create_item(action_map.id, "Card").value
        result = _invoke(runner, ["item", "status", item.id, "in_progress"])
        assert "moved to in_progress" in result.output
        assert core.items.fetch_one(item.id).status.value == "in_progress"

    def test_delete(self, runner, core, action_map):
        parent = core.create_item(action_map.id, "Parent").value
        core.create_item(action_map.id, "Child", parent_item_id=parent.id)
        result = _invoke(runner, ["item", "delete", parent.id, "--yes"])
        assert "2 items removed" in result.output


# =============================================================================
# Conflict Handling
# =============================================================================


class TestConflictOptions:
    """Test --version and --on-conflict on edit commands."""

    @pytest.fixture
    def stale_item(self, core, action_map):
        """An item edited elsewhere: the caller still holds version 1."""
        item = core.create_item(action_map.id, "Draft").value
        core.edit_item(item.id, {"title": "Theirs"})
        return item

    def test_reload(self, runner, core, stale_item):
        result = _invoke(runner, ["item", "edit", stale_item.id, "-t", "Mine", "--version", "1", "--on-conflict", "reload"])
        assert "Conflict" in result.output
        assert "Reloaded 'Theirs' at v2" in result.output
        assert core.items.fetch_one(stale_item.id).title == "Theirs"

    def test_overwrite(self, runner, core, stale_item):
        result = _invoke(runner, ["item", "edit", stale_item.id, "-t", "Mine", "--version", "1", "--on-conflict", "overwrite"])
        assert "updated (v3)" in result.output
        assert core.items.fetch_one(stale_item.id).title == "Mine"

    def test_cancel(self, runner, core, stale_item):
        result = _invoke(runner, ["item", "edit", stale_item.id, "-t", "Mine", "--version", "1", "--on-conflict", "cancel"])
        assert "Edit cancelled" in result.output
        stored = core.items.fetch_one(stale_item.id)
        assert (stored.title, stored.version) == ("Theirs", 2)

    def test_ask_prompts(self, runner, core, stale_item):
        result = _invoke(runner, ["item", "edit", stale_item.id, "-t", "Mine", "--version", "1"], input="overwrite\n")
        assert "Resolve by" in result.output
        assert core.items.fetch_one(stale_item.id).title == "Mine"

    def test_current_version_needs_no_resolution(self, runner, core, stale_item):
        result = _invoke(runner, ["item", "edit", stale_item.id, "-t", "Mine", "--version", "2"])
        assert "Conflict" not in result.output
        assert "updated (v3)" in result.output


# =============================================================================
# Task Commands
# =============================================================================


class TestTaskCommands:
    """Test task command group."""

    def test_add_linked_task_and_done(self, runner, core, action_map):
        item = core.create_item(action_map.id, "Item").value
        added = _invoke(runner, ["task", "add", "-t", "Write tests", "-i", item.id, "--json"])
        task_id = json.loads(added.output)["id"]

        result = _invoke(runner, ["task", "done", task_id])

        assert "✓ Completed task: Write tests" in result.output
        snapshot = ActionMapCore(store_dir=core.storage.store_dir).load_map(action_map.id).value
        assert snapshot.get_item(item.id).progress_rate == 100

    def test_link_and_unlink(self, runner, core, action_map):
        item = core.create_item(action_map.id, "Item").value
        task = core.create_task("Loose task").value

        assert "✓ Task linked" in _invoke(runner, ["task", "link", item.id, task.id]).output
        assert core.items.fetch_one(item.id).linked_task_ids == [task.id]

        assert "✓ Task unlinked" in _invoke(runner, ["task", "unlink", item.id, task.id]).output
        assert core.items.fetch_one(item.id).linked_task_ids == []

    def test_link_unknown_task(self, runner, core, action_map):
        item = core.create_item(action_map.id, "Item").value
        result = runner.invoke(cli, ["task", "link", item.id, "ghost"])
        assert result.exit_code != 0
        assert "Task not found" in result.output


# =============================================================================
# Views
# =============================================================================


class TestViews:
    """Test tree, board and status commands."""

    def test_tree(self, runner, core, action_map):
        parent = core.create_item(action_map.id, "Parent").value
        core.create_item(action_map.id, "Child", parent_item_id=parent.id)

        output = _invoke(runner, ["tree", action_map.id]).output

        assert "Launch (0%)" in output
        assert "  [ ] Parent" in output
        assert "    [ ] Child" in output

    def test_tree_json(self, runner, core, action_map):
        parent = core.create_item(action_map.id, "Parent").value
        core.create_item(action_map.id, "Child", parent_item_id=parent.id)

        data = json.loads(_invoke(runner, ["tree", action_map.id, "-j"]).output)

        assert data["tree"][0]["title"] == "Parent"
        assert data["tree"][0]["children"][0]["title"] == "Child"
        assert data["tree"][0]["warning_level"] == "none"

    def test_tree_empty_map(self, runner, action_map):
        assert "No items." in _invoke(runner, ["tree", action_map.id]).output

    def test_board(self, runner, core, action_map):
        core.create_item(action_map.id, "Blocked card", status="blocked")
        output = _invoke(runner, ["board", action_map.id]).output
        assert "Not Started (0)" in output
        assert "Blocked (1)" in output
        assert "Blocked card" in output

    def test_board_json(self, runner, core, action_map):
        core.create_item(action_map.id, "Done card", status="done")
        data = json.loads(_invoke(runner, ["board", action_map.id, "--json"]).output)
        assert [card["title"] for card in data["done"]] == ["Done card"]
        assert data["in_progress"] == []

    def test_status(self, runner, core, action_map):
        core.create_item(action_map.id, "Done", status="done")
        core.create_item(action_map.id, "Late", due_date="2000-01-01")
        output = _invoke(runner, ["status"]).output
        assert "Launch (50%)" in output
        assert "1 overdue item(s)" in output


# =============================================================================
# Config Commands
# =============================================================================


class TestConfigCommands:
    """Test config command group."""

    def test_show_defaults(self, runner):
        output = _invoke(runner, ["config", "show"]).output
        assert "critical_days: 2" in output
        assert "warning_days: 7" in output

    def test_set_and_get(self, runner):
        assert "✓ warning_days set to 10" in _invoke(runner, ["config", "set", "warning_days", "10"]).output
        assert _invoke(runner, ["config", "get", "warning_days"]).output.strip() == "10"

    def test_set_unknown_key(self, runner):
        result = runner.invoke(cli, ["config", "set", "colour", "blue"])
        assert result.exit_code != 0
        assert "Unknown config key" in result.output

    def test_set_invalid_value(self, runner):
        result = runner.invoke(cli, ["config", "set", "warning_days", "soon"])
        assert result.exit_code != 0
        assert "Validation Error" in result.output

    def test_critical_cannot_exceed_warning(self, runner):
        result = runner.invoke(cli, ["config", "set", "critical_days", "9"])
        assert result.exit_code != 0
        assert "cannot be greater than warning_days" in result.output

    def test_apply_config_value_splits_lists(self):
        updated = apply_config_value(ConfigFile(), "date_formats", "%Y-%m-%d, %d.%m.%Y")
        assert updated.date_formats == ["%Y-%m-%d", "%d.%m.%Y"]

    def test_apply_config_value_rejects_schema_version(self):
        with pytest.raises(ConfigurationError):
            apply_config_value(ConfigFile(), "schema_version", "9")

    def test_negative_threshold_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            apply_config_value(ConfigFile(), "critical_days", "-3")
        assert "critical_days" in str(exc_info.value)

    def test_set_negative_threshold_via_cli(self, runner):
        result = runner.invoke(cli, ["config", "set", "--", "warning_days", "-1"])
        assert result.exit_code != 0
        assert "Validation Error" in result.output
        assert _invoke(runner, ["config", "get", "warning_days"]).output.strip() == "7"
