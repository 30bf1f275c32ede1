# minecraft_world_manager/cli/world.py
"""
Defines the `world` command group for exporting, importing and inspecting the
server world.
"""

import os
import logging

import click
import questionary

from minecraft_world_manager.api import world as world_api
from minecraft_world_manager.cli.utils import handle_api_response
from minecraft_world_manager.error import WorldManagerError

logger = logging.getLogger(__name__)


@click.group()
def world():
    """Exports, imports and inspects the server world."""
    pass


@world.command("info")
def world_info():
    """Shows the world's name, size and whether an operation is running."""
    response = world_api.get_world_info()
    handle_api_response(response)

    if not response.get("exists"):
        click.secho(f"No world found (expected '{response.get('name')}').", fg="yellow")
        return
    click.echo(f"World: {response['name']}")
    click.echo(f"Size:  {response['size_formatted']}")
    if response.get("busy"):
        click.secho("A world operation is in progress.", fg="yellow")


@world.command("backups")
def list_backups():
    """Lists backups of previous worlds, newest first."""
    response = world_api.list_backups()
    handle_api_response(response)

    backups = response.get("backups", [])
    if not backups:
        click.echo("No backups found.")
        return
    for backup in backups:
        click.echo(
            f"{backup['created_at']}  {backup['size_formatted']:>10}  {backup['name']}"
        )


@world.command("export")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(file_okay=True, dir_okay=True, writable=True),
    default=".",
    show_default=True,
    help="Archive file to write, or a directory to write it into.",
)
def export_world(output_path: str):
    """Exports the world to a .tar archive."""
    click.echo("Exporting world...")
    try:
        response = world_api.export_world(os.path.abspath(output_path))
        handle_api_response(response, "World exported.")
    except WorldManagerError as e:
        click.secho(f"An error occurred during export: {e}", fg="red")
        raise click.Abort()


@world.command("import")
@click.argument(
    "archive_path", type=click.Path(exists=True, dir_okay=False, resolve_path=True)
)
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
def import_world(archive_path: str, yes: bool):
    """Replaces the world with the one inside ARCHIVE_PATH.

    The server is stopped for the swap and restarted if it was running. The
    current world is moved to the backup directory first. The archive itself
    is left in place.
    """
    if not yes:
        confirmed = questionary.confirm(
            f"Replace the current world with '{os.path.basename(archive_path)}'?",
            default=False,
        ).ask()
        if not confirmed:
            click.secho("Import cancelled.", fg="yellow")
            return

    click.echo("Importing world...")
    try:
        response = world_api.import_world(archive_path, consume=False)
        handle_api_response(response, "World imported.")
    except WorldManagerError as e:
        click.secho(f"An error occurred during import: {e}", fg="red")
        raise click.Abort()

    if response.get("degraded"):
        click.secho(
            "Warning: the server did not restart. Start it manually.", fg="yellow"
        )
