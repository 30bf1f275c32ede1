# minecraft_world_manager/cli/web.py
"""
Defines the `web` command group for running the HTTP interface.
"""

import logging
from typing import Optional

import click

from minecraft_world_manager.instances import get_app_context

logger = logging.getLogger(__name__)


@click.group()
def web():
    """Runs the web interface."""
    pass


@web.command("start")
@click.option("-H", "--host", help="Host address to bind to.")
@click.option("-p", "--port", type=int, help="Port to listen on.")
def start_web_server(host: Optional[str], port: Optional[int]):
    """Starts the web server in this terminal. Press Ctrl+C to stop."""
    from minecraft_world_manager.web.main import run_web_server

    settings = get_app_context().settings
    host = host or settings.get("web.host")
    port = port or int(settings.get("web.port"))

    click.secho(f"Serving on http://{host}:{port}. Press Ctrl+C to stop.", fg="cyan")
    try:
        run_web_server(host, port)
    except OSError as e:
        click.secho(f"Failed to start web server: {e}", fg="red")
        raise click.Abort()
