"""
Config command group for the actionmap CLI.

Commands for viewing and editing .actionmap/config.json.
"""
import json

import click
from pydantic import ValidationError as PydanticValidationError

from actionmap.constants import reset_config_manager
from actionmap.exceptions import ConfigurationError, StorageError
from actionmap.managers.storage_manager import StorageManager
from actionmap.models.files import ConfigFile

_LIST_KEYS = {"date_formats"}


@click.group()
def config():
    """View and edit configuration.

    Configuration is stored in .actionmap/config.json.
    """
    pass


def _load(storage: StorageManager) -> ConfigFile:
    try:
        return storage.load_config()
    except StorageError as e:
        raise click.ClickException(f"Error: {e}")


def apply_config_value(current: ConfigFile, key: str, value: str) -> ConfigFile:
    """Return current with key set to value, validated as a whole.

    Raises:
        ConfigurationError: For unknown keys, bad values or inconsistent thresholds.
    """
    data = current.model_dump(mode="json")
    if key not in data or key == "schema_version":
        raise ConfigurationError(f"Unknown config key '{key}'.")

    data[key] = [v.strip() for v in value.split(",") if v.strip()] if key in _LIST_KEYS else value
    try:
        updated = ConfigFile.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Validation Error: invalid value for {key}: {e.errors()[0]['msg']}")
    if updated.critical_days > updated.warning_days:
        raise ConfigurationError("Validation Error: critical_days cannot be greater than warning_days.")
    return updated


@config.command(name="show")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
def show_config(json_output: bool):
    """Show current configuration."""
    storage = StorageManager()
    current = _load(storage)
    if json_output:
        click.echo(json.dumps(current.model_dump(mode="json"), indent=2))
        return
    for key, value in current.model_dump(mode="json").items():
        if isinstance(value, list):
            value = ", ".join(value)
        click.echo(f"{key}: {value}")


@config.command(name="get")
@click.argument("key")
def get_config(key: str):
    """Get a configuration value."""
    current = _load(StorageManager()).model_dump(mode="json")
    if key not in current:
        raise click.ClickException(f"Unknown config key '{key}'.")
    value = current[key]
    click.echo(", ".join(value) if isinstance(value, list) else value)


@config.command(name="set")
@click.argument("key")
@click.argument("value")
def set_config(key: str, value: str):
    """Set a configuration value.

    List values (date_formats) are given comma-separated.
    """
    storage = StorageManager()
    try:
        updated = apply_config_value(_load(storage), key, value)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    try:
        storage.save_config(updated)
    except StorageError as e:
        raise click.ClickException(f"Error: {e}")
    reset_config_manager()
    click.echo(f"✓ {key} set to {value}")
