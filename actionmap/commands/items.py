"""
Item commands for the actionmap CLI.

Add, edit, move, re-status and delete action items. Every change is a
versioned write that may hit a conflict.
"""
from typing import Optional

import click

from actionmap.commands.common import (
    echo_json,
    json_option,
    on_conflict_option,
    open_core,
    parse_date_option,
    resolve_write,
    unwrap,
    version_option,
)
from actionmap.constants import VALID_ITEM_STATUSES, VALID_PRIORITIES


@click.group(name="item")
def item_group():
    """Manage action items."""
    pass


def _report(item, verb: str, json_output: bool) -> None:
    if item is None:
        return
    if json_output:
        echo_json(item.model_dump(mode="json"))
    else:
        click.echo(f"✓ Item '{item.title}' {verb} (v{item.version}).")


@item_group.command(name="add")
@click.argument("map_id")
@click.option("-t", "--title", required=True, help="Item title.")
@click.option("-d", "--desc", help="Item description.")
@click.option("--due", help="Due date.")
@click.option("-p", "--priority", type=click.Choice(VALID_PRIORITIES), help="Priority (default: medium).")
@click.option("-s", "--status", type=click.Choice(VALID_ITEM_STATUSES), help="Initial status (default: not_started).")
@click.option("--parent", "parent_id", help="Parent item id (omit for a root item).")
@click.option("-o", "--order", "sort_order", type=int, help="Sort order among siblings.")
@json_option
def add_item(map_id: str, title: str, desc: Optional[str], due: Optional[str],
             priority: Optional[str], status: Optional[str], parent_id: Optional[str],
             sort_order: Optional[int], json_output: bool):
    """Add a new item to a map."""
    core = open_core()
    item = unwrap(
        core.create_item(
            map_id,
            title,
            description=desc,
            due_date=parse_date_option(due),
            priority=priority,
            status=status,
            parent_item_id=parent_id,
            sort_order=sort_order,
        )
    )
    if json_output:
        echo_json(item.model_dump(mode="json"))
    else:
        click.echo(f"✓ Item '{item.title}' created ({item.id}).")


@item_group.command(name="edit")
@click.argument("item_id")
@click.option("-t", "--title", help="New title.")
@click.option("-d", "--desc", help="New description.")
@click.option("--due", help="New due date.")
@click.option("--clear-due", is_flag=True, help="Remove the due date.")
@click.option("-p", "--priority", type=click.Choice(VALID_PRIORITIES), help="New priority.")
@click.option("-o", "--order", "sort_order", type=int, help="New sort order.")
@version_option
@on_conflict_option
@json_option
def edit_item(item_id: str, title: Optional[str], desc: Optional[str], due: Optional[str],
              clear_due: bool, priority: Optional[str], sort_order: Optional[int],
              expected_version: Optional[int], on_conflict: str, json_output: bool):
    """Edit an action item.

    Only specified fields are updated.
    """
    patch = {}
    if title is not None:
        patch["title"] = title
    if desc is not None:
        patch["description"] = desc
    if due is not None:
        patch["due_date"] = parse_date_option(due)
    elif clear_due:
        patch["due_date"] = None
    if priority is not None:
        patch["priority"] = priority
    if sort_order is not None:
        patch["sort_order"] = sort_order
    if not patch:
        raise click.ClickException(
            "No update parameters provided. "
            "Specify at least one of: -t/--title, -d/--desc, --due, --clear-due, -p/--priority, -o/--order."
        )

    core = open_core()
    item = resolve_write(core, core.edit_item(item_id, patch, expected_version), on_conflict)
    _report(item, "updated", json_output)


@item_group.command(name="move")
@click.argument("item_id")
@click.option("--parent", "parent_id", help="New parent item id.")
@click.option("--root", is_flag=True, help="Make the item a root item.")
@click.option("-o", "--order", "sort_order", type=int, help="New sort order among siblings.")
@version_option
@on_conflict_option
@json_option
def move_item(item_id: str, parent_id: Optional[str], root: bool, sort_order: Optional[int],
              expected_version: Optional[int], on_conflict: str, json_output: bool):
    """Move an item under another parent (or to the root)."""
    if root == (parent_id is not None):
        raise click.ClickException("Specify exactly one of --parent or --root.")

    core = open_core()
    result = core.move_item(
        item_id, None if root else parent_id, sort_order=sort_order, version=expected_version
    )
    item = resolve_write(core, result, on_conflict)
    _report(item, "moved", json_output)


@item_group.command(name="status")
@click.argument("item_id")
@click.argument("status", type=click.Choice(VALID_ITEM_STATUSES))
@version_option
@on_conflict_option
@json_option
def set_status(item_id: str, status: str, expected_version: Optional[int], on_conflict: str,
               json_output: bool):
    """Move an item to another board column."""
    core = open_core()
    item = resolve_write(
        core, core.set_item_status(item_id, status, version=expected_version), on_conflict
    )
    _report(item, f"moved to {status}", json_output)


@item_group.command(name="delete")
@click.argument("item_id")
@click.confirmation_option(prompt="Are you sure you want to delete this item and its children?")
def delete_item(item_id: str):
    """Delete an action item.

    WARNING: This will delete all child items as well.
    """
    core = open_core()
    removed = unwrap(core.delete_item(item_id))
    click.echo(f"✓ Item deleted ({len(removed)} items removed).")
