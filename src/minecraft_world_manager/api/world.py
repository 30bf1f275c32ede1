# minecraft_world_manager/api/world.py
"""
Provides API-level functions for managing the server world.

Each function wraps the world swap orchestrator and returns a dictionary with a
``status`` of ``"success"`` or ``"error"``. Error dictionaries carry a stable
``code`` and an ``http_status`` hint; stack traces are logged, never returned.
"""

import os
import logging
from typing import Any, Dict, Optional

from minecraft_world_manager.context import AppContext
from minecraft_world_manager.instances import get_app_context
from minecraft_world_manager.core.system.service import ServiceState
from minecraft_world_manager.error import (
    MissingArgumentError,
    UserInputError,
    WorldManagerError,
)
from minecraft_world_manager.utils.general import format_size

logger = logging.getLogger(__name__)


def _error_response(error: WorldManagerError, prefix: str) -> Dict[str, Any]:
    response = {
        "status": "error",
        "message": f"{prefix}: {error}",
        "code": error.code,
        "http_status": error.http_status,
    }
    backup_path = getattr(error, "backup_path", None)
    if backup_path:
        response["backup_path"] = backup_path
    return response


def _unexpected_response() -> Dict[str, Any]:
    return {
        "status": "error",
        "message": "An unexpected server error occurred.",
        "code": "internal_error",
        "http_status": 500,
    }


def get_world_info(app_context: Optional[AppContext] = None) -> Dict[str, Any]:
    """
    Reports whether the world exists, its name and its size on disk.
    """
    app_context = app_context or get_app_context()
    logger.debug("API: Getting world info...")
    try:
        orchestrator = app_context.orchestrator
        info = orchestrator.get_world_info()
        return {
            "status": "success",
            "exists": info.exists,
            "name": info.name,
            "size": info.size,
            "size_formatted": format_size(info.size),
            "busy": orchestrator.busy,
        }
    except WorldManagerError as e:
        logger.error(f"API: Failed to get world info: {e}", exc_info=True)
        return _error_response(e, "Failed to get world info")
    except Exception as e:
        logger.error(f"API: Unexpected error getting world info: {e}", exc_info=True)
        return _unexpected_response()


def list_backups(app_context: Optional[AppContext] = None) -> Dict[str, Any]:
    """
    Lists backups of previous worlds, newest first.
    """
    app_context = app_context or get_app_context()
    try:
        backups = app_context.orchestrator.list_backups()
        return {
            "status": "success",
            "backups": [
                {
                    "name": b.name,
                    "path": b.path,
                    "created_at": b.created_at.isoformat(),
                    "size": b.size,
                    "size_formatted": format_size(b.size),
                }
                for b in backups
            ],
        }
    except WorldManagerError as e:
        logger.error(f"API: Failed to list backups: {e}", exc_info=True)
        return _error_response(e, "Failed to list backups")
    except OSError as e:
        logger.error(f"API: Could not read backup directory: {e}", exc_info=True)
        return {
            "status": "error",
            "message": f"Could not read backup directory: {e}",
            "code": "filesystem_error",
            "http_status": 500,
        }
    except Exception as e:
        logger.error(f"API: Unexpected error listing backups: {e}", exc_info=True)
        return _unexpected_response()


def get_service_status(app_context: Optional[AppContext] = None) -> Dict[str, Any]:
    """
    Queries the managed game service. ``running`` is None when unknown.
    """
    app_context = app_context or get_app_context()
    try:
        state = app_context.orchestrator.service_state()
        running = None if state == ServiceState.UNKNOWN else state == ServiceState.RUNNING
        return {
            "status": "success",
            "service": app_context.service_controller.service_name,
            "state": state.value,
            "running": running,
        }
    except WorldManagerError as e:
        logger.error(f"API: Failed to query service: {e}", exc_info=True)
        return _error_response(e, "Failed to query service")
    except Exception as e:
        logger.error(f"API: Unexpected error querying service: {e}", exc_info=True)
        return _unexpected_response()


def export_world(
    output_path: str, app_context: Optional[AppContext] = None
) -> Dict[str, Any]:
    """
    Exports the active world to a tar archive at ``output_path``.

    If ``output_path`` is an existing directory, the archive is written into it
    under the default ``world-backup-<date>.tar`` name.
    """
    if not output_path:
        raise MissingArgumentError("Export output path cannot be empty.")
    app_context = app_context or get_app_context()
    logger.info(f"API: Initiating world export to '{output_path}'...")
    try:
        with app_context.orchestrator.export_world() as exported:
            dest = output_path
            if os.path.isdir(output_path):
                dest = os.path.join(output_path, exported.filename)
            exported.save_as(dest)
        logger.info(f"API: World exported to '{dest}'.")
        return {
            "status": "success",
            "export_file": dest,
            "message": f"World exported successfully to {os.path.basename(dest)}.",
        }
    except UserInputError as e:
        logger.warning(f"API: World export rejected: {e}")
        return _error_response(e, "Failed to export world")
    except WorldManagerError as e:
        logger.error(f"API: Failed to export world: {e}", exc_info=True)
        return _error_response(e, "Failed to export world")
    except OSError as e:
        logger.error(f"API: Could not save exported world: {e}", exc_info=True)
        return {
            "status": "error",
            "message": f"Failed to export world: {e}",
            "code": "filesystem_error",
            "http_status": 500,
        }
    except Exception as e:
        logger.error(f"API: Unexpected error exporting world: {e}", exc_info=True)
        return _unexpected_response()


def import_world(
    archive_path: str,
    consume: bool = False,
    lock_timeout: Optional[float] = None,
    app_context: Optional[AppContext] = None,
) -> Dict[str, Any]:
    """
    Imports a world from a tar archive, replacing the active world.

    Args:
        archive_path: Path to the tar archive.
        consume: Delete the archive afterwards whatever the outcome (uploads).
        lock_timeout: Seconds to wait for a running world operation.
        app_context: Application context; defaults to the process-wide one.
    """
    if not archive_path:
        raise MissingArgumentError("World archive path cannot be empty.")
    app_context = app_context or get_app_context()

    archive_name = os.path.basename(archive_path)
    logger.info(f"API: Initiating world import from '{archive_name}'...")
    try:
        if not os.path.isfile(archive_path):
            raise MissingArgumentError(f"World archive not found: {archive_path}")
        result = app_context.orchestrator.import_world(
            archive_path, consume=consume, lock_timeout=lock_timeout
        )
        logger.info(f"API: World import from '{archive_name}' completed.")
        return {
            "status": "success",
            "message": result.message,
            "world_name": result.world_name,
            "backup_path": result.backup_path,
            "service_restarted": result.service_restarted,
            "degraded": result.degraded,
            "warning_code": result.warning_code,
        }
    except UserInputError as e:
        logger.warning(f"API: World import from '{archive_name}' rejected: {e}")
        return _error_response(e, "Failed to import world")
    except WorldManagerError as e:
        logger.error(
            f"API: Failed to import world from '{archive_name}': {e}", exc_info=True
        )
        return _error_response(e, "Failed to import world")
    except Exception as e:
        logger.error(
            f"API: Unexpected error importing world from '{archive_name}': {e}",
            exc_info=True,
        )
        return _unexpected_response()


def _service_action(action: str, app_context: Optional[AppContext]) -> Dict[str, Any]:
    app_context = app_context or get_app_context()
    orchestrator = app_context.orchestrator
    service_name = app_context.service_controller.service_name
    logger.info(f"API: Attempting to {action} service '{service_name}'...")
    try:
        result = getattr(orchestrator, f"{action}_service")()
        logger.info(f"API: Service '{service_name}' {action}: {result.message}")
        return {
            "status": "success",
            "message": result.message,
            "service": service_name,
            "state": result.state.value,
            "changed": result.changed,
        }
    except WorldManagerError as e:
        logger.error(f"API: Failed to {action} service '{service_name}': {e}")
        return _error_response(e, f"Failed to {action} service '{service_name}'")
    except Exception as e:
        logger.error(
            f"API: Unexpected error during service {action}: {e}", exc_info=True
        )
        return _unexpected_response()


def start_service(app_context: Optional[AppContext] = None) -> Dict[str, Any]:
    """
    Starts the game service. Refused with ``world_busy`` while an import runs.
    """
    return _service_action("start", app_context)


def stop_service(app_context: Optional[AppContext] = None) -> Dict[str, Any]:
    """
    Stops the game service. Refused with ``world_busy`` while an import runs.
    """
    return _service_action("stop", app_context)


def restart_service(app_context: Optional[AppContext] = None) -> Dict[str, Any]:
    """
    Stops and starts the game service. If the stop fails it is not started.
    """
    return _service_action("restart", app_context)
