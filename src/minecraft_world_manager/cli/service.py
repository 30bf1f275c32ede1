# minecraft_world_manager/cli/service.py
"""
Defines the `service` command group for controlling the game service.

Start, stop and restart are refused while a world import is running.
"""

import logging

import click

from minecraft_world_manager.api import world as world_api
from minecraft_world_manager.cli.utils import handle_api_response

logger = logging.getLogger(__name__)


@click.group()
def service():
    """Starts, stops and inspects the game service."""
    pass


@service.command("status")
def service_status():
    """Shows whether the game service is running."""
    response = world_api.get_service_status()
    handle_api_response(response)
    click.echo(f"Service: {response['service']}")
    click.echo(f"State:   {response['state']}")


@service.command("start")
def start_service():
    """Starts the game service."""
    click.echo("Starting service...")
    response = world_api.start_service()
    handle_api_response(response, "Service started.")


@service.command("stop")
def stop_service():
    """Stops the game service."""
    click.echo("Stopping service...")
    response = world_api.stop_service()
    handle_api_response(response, "Service stopped.")


@service.command("restart")
def restart_service():
    """Stops the game service and starts it again."""
    click.echo("Restarting service...")
    response = world_api.restart_service()
    handle_api_response(response, "Service restarted.")
