# minecraft_world_manager/__main__.py
"""
Main entry point for the Minecraft World Manager command-line interface.

Sets up logging from the settings, assembles the `click` command groups and
runs the requested command.
"""

import logging
import sys

import click

from . import __version__
from .cli import service, web, world
from .config import app_name_title
from .logging import log_separator, setup_logging
from .instances import get_app_context


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(
    __version__, "-v", "--version", message=f"{app_name_title} %(version)s"
)
@click.pass_context
def cli(ctx: click.Context):
    """Exports, imports and backs up the world of a Minecraft server.

    The server runs as an external service; imports stop it for the swap and
    restart it afterwards.
    """
    try:
        settings = get_app_context().settings
        logger = setup_logging(
            log_dir=settings.get("paths.logs"),
            log_keep=settings.get("retention.logs"),
            file_log_level=settings.get("logging.file_level"),
            cli_log_level=settings.get("logging.cli_level"),
            force_reconfigure=True,
        )
        log_separator(logger, app_name=app_name_title, app_version=__version__)
        logger.info(f"Starting {app_name_title} v{__version__} (CLI context)...")
    except Exception as setup_e:
        logging.getLogger("minecraft_world_manager_setup").critical(
            f"An unrecoverable error occurred during CLI startup: {setup_e}",
            exc_info=True,
        )
        click.secho(f"CRITICAL STARTUP ERROR: {setup_e}", fg="red", bold=True)
        sys.exit(1)

    ctx.obj = {"cli": cli}


cli.add_command(world.world)
cli.add_command(service.service)
cli.add_command(web.web)


def main():
    """Main execution function wrapped for final, fatal exception handling."""
    try:
        cli()
    except Exception as e:
        logger = logging.getLogger("minecraft_world_manager_fatal")
        logger.critical("A fatal, unhandled error occurred.", exc_info=True)
        click.secho(
            f"\nFATAL UNHANDLED ERROR: {type(e).__name__}: {e}", fg="red", bold=True
        )
        click.secho("Please check the logs for more details.", fg="yellow")
        sys.exit(1)


if __name__ == "__main__":
    main()
