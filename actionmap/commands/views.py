"""
View commands for the actionmap CLI.

Render a map as an indented tree or as status columns, and summarise
progress across maps.
"""

import click

from actionmap.commands.common import (
    STATUS_MARKS,
    WARNING_MARKS,
    echo_json,
    json_option,
    open_core,
    unwrap,
)
from actionmap.core import ActionMapCore
from actionmap.models.base import ActionItemStatus
from actionmap.utils import format_date

STATUS_HEADER_WIDTH = 40


def _item_line(core: ActionMapCore, item) -> str:
    due = f" due {format_date(item.due_date)}" if item.due_date else ""
    warning = WARNING_MARKS[core.warning_level(item)]
    progress = (
        f" ({item.completed_task_count}/{item.task_count} tasks, {item.progress_rate}%)"
        if item.task_count
        else ""
    )
    return f"[{STATUS_MARKS[item.status.value]}] {item.title}{progress}{due}{warning}"


@click.command(name="tree")
@click.argument("map_id")
@json_option
def tree(map_id: str, json_output: bool):
    """Show the items of a map as a tree."""
    core = open_core()
    snapshot = unwrap(core.load_map(map_id))
    forest = unwrap(core.tree(map_id))

    if json_output:
        data = []
        for root in forest:
            node = root.to_dict()
            pending = [(node, root)]
            while pending:
                node_dict, node_obj = pending.pop()
                node_dict["warning_level"] = core.warning_level(node_obj).value
                pending.extend(zip(node_dict["children"], node_obj.children))
            data.append(node)
        echo_json({"map": snapshot.action_map.model_dump(mode="json"), "tree": data})
        return

    action_map = snapshot.action_map
    click.echo(f"{action_map.title} ({action_map.progress_rate}%)")
    if not forest:
        click.echo("No items.")
        return
    for node in unwrap(core.flat_tree(map_id)):
        indent = "  " * (node.depth + 1)
        click.echo(f"{indent}{_item_line(core, node.item)}")


@click.command(name="board")
@click.argument("map_id")
@json_option
def board(map_id: str, json_output: bool):
    """Show the items of a map in status columns."""
    core = open_core()
    projection = unwrap(core.projection(map_id))

    if json_output:
        echo_json(projection.board_dict())
        return

    for status, column in projection.board().items():
        label = status.value.replace("_", " ").title()
        click.echo(f"{label} ({len(column)})")
        click.echo("-" * STATUS_HEADER_WIDTH)
        for item in column:
            click.echo(f"  {_item_line(core, item)}")
        click.echo("")


@click.command(name="status")
@click.option("-a", "--all", "include_archived", is_flag=True, help="Include archived maps.")
@json_option
def status(include_archived: bool, json_output: bool):
    """Displays a summary of progress across maps."""
    core = open_core()
    summary = unwrap(core.status_summary(include_archived=include_archived))

    if json_output:
        echo_json(
            [
                {
                    "map": entry["map"].model_dump(mode="json"),
                    "stats": entry["stats"],
                    "warnings": entry["warnings"],
                }
                for entry in summary
            ]
        )
        return

    if not summary:
        click.echo("No action maps found.")
        return

    for entry in summary:
        action_map = entry["map"]
        stats = entry["stats"]
        warnings = entry["warnings"]
        click.echo("=" * STATUS_HEADER_WIDTH)
        click.echo(f"{action_map.title} ({action_map.progress_rate}%)")
        click.echo("=" * STATUS_HEADER_WIDTH)
        click.echo(
            "  " + ", ".join(
                f"{status.value.replace('_', ' ')}: {stats[status.value]}"
                for status in ActionItemStatus
            )
        )
        overdue = warnings["overdue"]
        urgent = warnings["critical"] + warnings["warning"]
        if overdue:
            click.echo(f"  ✗ {overdue} overdue item(s)")
        if urgent:
            click.echo(f"  ⚠ {urgent} item(s) due soon")
