"""
Map commands for the actionmap CLI.

Create, list, show, edit, archive and delete action maps.
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
from actionmap.utils import format_date


@click.group(name="map")
def map_group():
    """Manage action maps."""
    pass


def _display_map(action_map) -> None:
    click.echo(f"Title: {action_map.title}")
    click.echo(f"ID: {action_map.id}")
    click.echo(f"Description: {action_map.description or ''}")
    if action_map.target_period_start or action_map.target_period_end:
        click.echo(
            f"Target period: {format_date(action_map.target_period_start) or '?'}"
            f" → {format_date(action_map.target_period_end) or '?'}"
        )
    if action_map.key_result_id:
        click.echo(f"Key result: {action_map.key_result_id}")
    click.echo(
        f"Progress: {action_map.progress_rate}% "
        f"({action_map.completed_item_count}/{action_map.item_count} items done)"
    )
    click.echo(f"Version: {action_map.version}")
    if action_map.is_archived:
        click.echo("Archived: yes")


@map_group.command(name="add")
@click.option("-t", "--title", required=True, help="Map title.")
@click.option("-d", "--desc", help="Map description.")
@click.option("--start", help="Target period start date.")
@click.option("--end", help="Target period end date.")
@click.option("-k", "--key-result", help="Id of the key result this map serves.")
@json_option
def add_map(title: str, desc: Optional[str], start: Optional[str], end: Optional[str],
            key_result: Optional[str], json_output: bool):
    """Create a new action map."""
    core = open_core()
    action_map = unwrap(
        core.create_map(
            title,
            description=desc,
            target_period_start=parse_date_option(start),
            target_period_end=parse_date_option(end),
            key_result_id=key_result,
        )
    )
    if json_output:
        echo_json(action_map.model_dump(mode="json"))
    else:
        click.echo(f"✓ Map '{action_map.title}' created ({action_map.id}).")


@map_group.command(name="list")
@click.option("-a", "--all", "include_archived", is_flag=True, help="Include archived maps.")
@json_option
def list_maps(include_archived: bool, json_output: bool):
    """List action maps with their progress."""
    core = open_core()
    maps = unwrap(core.list_maps(include_archived=include_archived))

    if json_output:
        echo_json([m.model_dump(mode="json") for m in maps])
        return

    if not maps:
        click.echo("No action maps found.")
        return
    for action_map in maps:
        archived = " [archived]" if action_map.is_archived else ""
        click.echo(
            f"{action_map.id}  {action_map.title} ({action_map.progress_rate}%)"
            f" v{action_map.version}{archived}"
        )


@map_group.command(name="show")
@click.argument("map_id")
@json_option
def show_map(map_id: str, json_output: bool):
    """Show details for an action map."""
    core = open_core()
    snapshot = unwrap(core.load_map(map_id))
    if json_output:
        data = snapshot.action_map.model_dump(mode="json")
        data["items"] = [item.model_dump(mode="json") for item in snapshot.items]
        echo_json(data)
    else:
        _display_map(snapshot.action_map)


@map_group.command(name="edit")
@click.argument("map_id")
@click.option("-t", "--title", help="New title.")
@click.option("-d", "--desc", help="New description.")
@click.option("--start", help="New target period start date.")
@click.option("--end", help="New target period end date.")
@click.option("-k", "--key-result", help="New key result id.")
@version_option
@on_conflict_option
@json_option
def edit_map(map_id: str, title: Optional[str], desc: Optional[str], start: Optional[str],
             end: Optional[str], key_result: Optional[str], expected_version: Optional[int],
             on_conflict: str, json_output: bool):
    """Edit an action map.

    Only specified fields are updated.
    """
    patch = {}
    if title is not None:
        patch["title"] = title
    if desc is not None:
        patch["description"] = desc
    if start is not None:
        patch["target_period_start"] = parse_date_option(start)
    if end is not None:
        patch["target_period_end"] = parse_date_option(end)
    if key_result is not None:
        patch["key_result_id"] = key_result
    if not patch:
        raise click.ClickException(
            "No update parameters provided. "
            "Specify at least one of: -t/--title, -d/--desc, --start, --end, -k/--key-result."
        )

    core = open_core()
    action_map = resolve_write(core, core.edit_map(map_id, patch, expected_version), on_conflict)
    if action_map is None:
        return
    if json_output:
        echo_json(action_map.model_dump(mode="json"))
    else:
        click.echo(f"✓ Map '{action_map.title}' updated (v{action_map.version}).")


@map_group.command(name="archive")
@click.argument("map_id")
@click.option("--restore", is_flag=True, help="Unarchive the map instead.")
@version_option
@on_conflict_option
def archive_map(map_id: str, restore: bool, expected_version: Optional[int], on_conflict: str):
    """Archive (or restore) an action map."""
    core = open_core()
    action_map = resolve_write(
        core, core.archive_map(map_id, archived=not restore, version=expected_version), on_conflict
    )
    if action_map is None:
        return
    verb = "restored" if restore else "archived"
    click.echo(f"✓ Map '{action_map.title}' {verb}.")


@map_group.command(name="delete")
@click.argument("map_id")
@click.confirmation_option(prompt="Are you sure you want to delete this map and all its items?")
def delete_map(map_id: str):
    """Delete an action map.

    WARNING: This will delete all of its items as well.
    """
    core = open_core()
    removed = unwrap(core.delete_map(map_id))
    click.echo(f"✓ Map deleted ({len(removed)} items removed).")
