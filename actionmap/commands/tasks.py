"""
Task commands for the actionmap CLI.

Tasks feed item progress; linking one to an item is a versioned write on
the item.
"""
from typing import Optional

import click

from actionmap.commands.common import (
    echo_json,
    json_option,
    on_conflict_option,
    open_core,
    resolve_write,
    unwrap,
    version_option,
)
from actionmap.models.base import Suit, TaskStatus


@click.group(name="task")
def task_group():
    """Manage tasks linked to action items."""
    pass


@task_group.command(name="add")
@click.option("-t", "--title", required=True, help="Task title.")
@click.option("-i", "--item", "item_id", help="Item to link the task to.")
@click.option("--suit", type=click.Choice([s.value for s in Suit]),
              help="Task suit (defaults to the item's priority).")
@json_option
def add_task(title: str, item_id: Optional[str], suit: Optional[str], json_output: bool):
    """Create a task, optionally linked to an item."""
    core = open_core()
    task = unwrap(core.create_task(title, suit=Suit(suit) if suit else None, action_item_id=item_id))
    if json_output:
        echo_json(task.model_dump(mode="json"))
    else:
        click.echo(f"✓ Task '{task.title}' created ({task.id}).")


@task_group.command(name="link")
@click.argument("item_id")
@click.argument("task_id")
@version_option
@on_conflict_option
def link_task(item_id: str, task_id: str, expected_version: Optional[int], on_conflict: str):
    """Link a task to an item (moving it from any previous item)."""
    core = open_core()
    item = resolve_write(core, core.link_task(item_id, task_id, version=expected_version), on_conflict)
    if item is not None:
        click.echo(f"✓ Task linked to '{item.title}'.")


@task_group.command(name="unlink")
@click.argument("item_id")
@click.argument("task_id")
@version_option
@on_conflict_option
def unlink_task(item_id: str, task_id: str, expected_version: Optional[int], on_conflict: str):
    """Remove a task from an item."""
    core = open_core()
    item = resolve_write(core, core.unlink_task(item_id, task_id, version=expected_version), on_conflict)
    if item is not None:
        click.echo(f"✓ Task unlinked from '{item.title}'.")


@task_group.command(name="done")
@click.argument("task_id")
@click.option("--undo", is_flag=True, help="Mark the task as not started again.")
def done(task_id: str, undo: bool):
    """Mark a task as done."""
    core = open_core()
    status = TaskStatus.NOT_STARTED if undo else TaskStatus.DONE
    task = unwrap(core.set_task_status(task_id, status))
    if undo:
        click.echo(f"Task '{task.title}' reopened.")
    else:
        click.echo(f"✓ Completed task: {task.title}")
