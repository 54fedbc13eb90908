"""
CLI for actionmap using .actionmap/ folder-based storage.

Uses ActionMapCore and managers exclusively.
"""
import click

from actionmap.commands.config import config
from actionmap.commands.items import item_group
from actionmap.commands.maps import map_group
from actionmap.commands.tasks import task_group
from actionmap.commands.views import board, status, tree


@click.group()
def cli():
    """A command-line interface for action maps: hierarchical items, progress and due dates."""
    pass


cli.add_command(map_group)
cli.add_command(item_group)
cli.add_command(task_group)
cli.add_command(tree)
cli.add_command(board)
cli.add_command(status)
cli.add_command(config)


if __name__ == '__main__':
    cli()
