"""
Helpers shared by the actionmap CLI commands.

Turns core results into console output and click exceptions, and runs the
interactive conflict-resolution prompt for versioned edits.
"""
import json
from datetime import date
from typing import Any, Optional

import click

from actionmap.constants import DATE_FORMAT_ERROR
from actionmap.core import ActionMapCore
from actionmap.models.base import DueDateWarningLevel
from actionmap.models.results import Conflict, Failure, FailureKind, Result
from actionmap.utils import parse_date

ON_CONFLICT_CHOICES = ["ask", "reload", "overwrite", "cancel"]

WARNING_MARKS = {
    DueDateWarningLevel.NONE: "",
    DueDateWarningLevel.NORMAL: "",
    DueDateWarningLevel.WARNING: " ⚠ due soon",
    DueDateWarningLevel.CRITICAL: " ⚠ due very soon",
    DueDateWarningLevel.OVERDUE: " ✗ overdue",
}

STATUS_MARKS = {
    "not_started": " ",
    "in_progress": "⏳",
    "blocked": "⛔",
    "done": "✓",
}

_FAILURE_PREFIXES = {
    FailureKind.VALIDATION: "Validation Error",
    FailureKind.INVALID_OPERATION: "Operation Error",
    FailureKind.TRANSIENT: "Temporary Error",
    FailureKind.STORAGE: "Storage Error",
}


def version_option(f):
    return click.option(
        "-v",
        "--version",
        "expected_version",
        type=int,
        help="Version you last read (defaults to the current version).",
    )(f)


def on_conflict_option(f):
    return click.option(
        "--on-conflict",
        type=click.Choice(ON_CONFLICT_CHOICES),
        default="ask",
        show_default=True,
        help="How to resolve a version conflict.",
    )(f)


def json_option(f):
    return click.option(
        "-j", "--json", "json_output", is_flag=True, help="Output in JSON format."
    )(f)


def open_core() -> ActionMapCore:
    """Core for the current directory's store, closed with the click context."""
    core = ActionMapCore()
    click.get_current_context().call_on_close(core.close)
    return core


def failure_message(failure: Failure) -> str:
    """Format a Failure for display."""
    prefix = _FAILURE_PREFIXES.get(failure.kind)
    message = f"{prefix}: {failure.message}" if prefix else failure.message
    if failure.retryable:
        message += " Please try again."
    return message


def unwrap(result: Result) -> Any:
    """Get the value of a Success or raise a ClickException."""
    if isinstance(result, Conflict):
        raise click.ClickException(result.message)
    if isinstance(result, Failure):
        raise click.ClickException(failure_message(result))
    return result.value


def parse_date_option(value: Optional[str]) -> Optional[date]:
    """Parse a date option, raising a ClickException on bad input."""
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise click.ClickException(DATE_FORMAT_ERROR)
    return parsed


def resolve_write(core: ActionMapCore, result: Result, on_conflict: str) -> Optional[Any]:
    """Finish a versioned write, resolving a conflict if one occurred.

    Args:
        core: The core that performed the write.
        result: Result of the write.
        on_conflict: One of ask, reload, overwrite or cancel.

    Returns:
        The written entity, or None when the edit was not applied
        (reloaded or cancelled).

    Raises:
        click.ClickException: If the write or its resolution failed.
    """
    if not isinstance(result, Conflict):
        return unwrap(result)

    click.echo(f"  ⚠ {result.message}", err=True)

    choice = on_conflict
    if choice == "ask":
        choice = click.prompt(
            "Resolve by",
            type=click.Choice(["reload", "overwrite", "cancel"]),
            default="reload",
        )

    if choice == "reload":
        entity = unwrap(core.reload(result.entity_id))
        click.echo(
            f"Reloaded '{entity.title}' at v{entity.version}. Your changes were discarded."
        )
        return None

    if choice == "overwrite":
        entity = unwrap(core.force_overwrite(result.entity_id))
        click.echo(f"  ⚠ Overwrote changes made in v{result.server_version}.", err=True)
        return entity

    unwrap(core.cancel(result.entity_id))
    click.echo("Edit cancelled. Nothing was written.")
    return None


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))
