# minecraft_world_manager/cli/utils.py
"""
Helpers shared by the click commands.
"""
import logging
from typing import Any, Dict, Optional

import click

logger = logging.getLogger(__name__)


def handle_api_response(
    response: Dict[str, Any], success_msg: Optional[str] = None
) -> Dict[str, Any]:
    """
    Prints the outcome of an API call and aborts the command on error.

    Args:
        response: The status dictionary returned by an API function.
        success_msg: Printed on success when the response carries no message.

    Returns:
        The response, for callers that need its data.

    Raises:
        click.Abort: If the response status is "error".
    """
    logger.debug(f"API response: {response}")
    if response.get("status") == "error":
        message = response.get("message", "An unknown error occurred.")
        click.secho(f"Error: {message}", fg="red")
        backup_path = response.get("backup_path")
        if backup_path:
            click.secho(
                f"The previous world is preserved at: {backup_path}",
                fg="yellow",
                bold=True,
            )
        raise click.Abort()

    message = response.get("message", success_msg)
    if message:
        click.secho(f"Success: {message}", fg="green")
    return response
