# minecraft_world_manager/web/routers/world.py
"""
FastAPI router for exporting, importing and inspecting the server world.

Blocking work (archiving, extraction, service control) runs in the threadpool.
Failures reported by the API layer are turned into ``{success: false, message,
code}`` bodies with the HTTP status carried by the error.
"""
import os
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from ..dependencies import get_app_context
from ..schemas import (
    BackupListResponse,
    ErrorResponse,
    ImportResponse,
    ServiceActionResponse,
    ServiceStatusResponse,
    WorldInfoResponse,
)
from ...api import world as world_api
from ...context import AppContext
from ...core.world_store import remove_path
from ...core.world_swap import ExportedArchive
from ...error import UploadRejectedError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/world",
    tags=["World"],
)

UPLOAD_CHUNK_SIZE = 1024 * 1024
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def _error_json(result: Dict[str, Any]) -> JSONResponse:
    body = ErrorResponse(
        message=result.get("message", "An unknown error occurred."),
        code=result.get("code"),
        backup_path=result.get("backup_path"),
    )
    return JSONResponse(
        status_code=result.get("http_status", 500),
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.get("/info", response_model=WorldInfoResponse)
async def get_world_info_route(app_context: AppContext = Depends(get_app_context)):
    """
    Reports whether the world exists, its name and size.
    """
    result = await run_in_threadpool(
        world_api.get_world_info, app_context=app_context
    )
    if result.get("status") != "success":
        return _error_json(result)
    return WorldInfoResponse(
        exists=result["exists"],
        name=result["name"],
        size=result["size"],
        size_formatted=result["size_formatted"],
        busy=result["busy"],
    )


@router.get("/backups", response_model=BackupListResponse)
async def list_backups_route(app_context: AppContext = Depends(get_app_context)):
    result = await run_in_threadpool(world_api.list_backups, app_context=app_context)
    if result.get("status") != "success":
        return _error_json(result)
    return BackupListResponse(backups=result["backups"])


@router.get("/service", response_model=ServiceStatusResponse)
async def service_status_route(app_context: AppContext = Depends(get_app_context)):
    result = await run_in_threadpool(
        world_api.get_service_status, app_context=app_context
    )
    if result.get("status") != "success":
        return _error_json(result)
    return ServiceStatusResponse(
        service=result["service"], state=result["state"], running=result["running"]
    )


async def _service_action_route(api_func, app_context: AppContext):
    result = await run_in_threadpool(api_func, app_context=app_context)
    if result.get("status") != "success":
        return _error_json(result)
    return ServiceActionResponse(
        success=True,
        message=result["message"],
        service=result["service"],
        state=result["state"],
        changed=result["changed"],
    )


@router.post("/service/start", response_model=ServiceActionResponse)
async def start_service_route(app_context: AppContext = Depends(get_app_context)):
    """
    Starts the game service. Answers 423 while an import is running.
    """
    return await _service_action_route(world_api.start_service, app_context)


@router.post("/service/stop", response_model=ServiceActionResponse)
async def stop_service_route(app_context: AppContext = Depends(get_app_context)):
    return await _service_action_route(world_api.stop_service, app_context)


@router.post("/service/restart", response_model=ServiceActionResponse)
async def restart_service_route(app_context: AppContext = Depends(get_app_context)):
    return await _service_action_route(world_api.restart_service, app_context)


async def _stream_archive(exported: ExportedArchive) -> AsyncIterator[bytes]:
    try:
        with exported.open() as f:
            while True:
                chunk = await run_in_threadpool(f.read, DOWNLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
    finally:
        exported.cleanup()


@router.get("/export")
async def export_world_route(app_context: AppContext = Depends(get_app_context)):
    """
    Streams a tar archive of the world as a download.

    The archive is a snapshot taken under the world lock; it is deleted once the
    response has been sent or the client went away.
    """
    exported = await run_in_threadpool(app_context.orchestrator.export_world)
    try:
        size = exported.size
    except OSError:
        exported.cleanup()
        raise
    logger.info(f"Web: Sending world export '{exported.filename}' ({size} bytes).")
    return StreamingResponse(
        _stream_archive(exported),
        media_type="application/x-tar",
        headers={
            "Content-Disposition": f'attachment; filename="{exported.filename}"',
            "Content-Length": str(size),
        },
        background=BackgroundTask(exported.cleanup),
    )


def _check_upload_name(filename: str, allowed_extensions) -> None:
    extension = os.path.splitext(filename or "")[1].lower()
    allowed = [ext.lower() for ext in allowed_extensions]
    if extension not in allowed:
        raise UploadRejectedError(
            f"Invalid file type '{extension or filename}'. "
            f"Allowed: {', '.join(allowed)}."
        )


def _too_large(max_size: int) -> UploadRejectedError:
    return UploadRejectedError(
        f"Upload exceeds the maximum size of {max_size} bytes.", http_status=413
    )


@router.post("/import", response_model=ImportResponse)
async def import_world_route(
    world: UploadFile = File(...),
    app_context: AppContext = Depends(get_app_context),
):
    """
    Replaces the world with the one inside the uploaded tar archive.

    The upload is written to the temp area first and always removed afterwards.
    """
    settings = app_context.settings
    max_size = int(settings.get("upload.max_size_bytes"))
    _check_upload_name(world.filename, settings.get("upload.allowed_extensions"))
    if world.size is not None and world.size > max_size:
        raise _too_large(max_size)

    store = app_context.world_store
    temp_path = await run_in_threadpool(store.create_temp_file, ".tar", "upload_")
    try:
        written = 0
        with open(temp_path, "wb") as out:
            while True:
                chunk = await world.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_size:
                    raise _too_large(max_size)
                await run_in_threadpool(out.write, chunk)
    except BaseException:
        remove_path(temp_path, "uploaded archive")
        raise
    finally:
        await world.close()

    logger.info(f"Web: Received world upload '{world.filename}' ({written} bytes).")
    result = await run_in_threadpool(
        world_api.import_world, temp_path, consume=True, app_context=app_context
    )
    if result.get("status") != "success":
        return _error_json(result)
    return ImportResponse(
        success=True,
        message=result["message"],
        world_name=result.get("world_name"),
        backup_path=result.get("backup_path"),
        service_restarted=result.get("service_restarted", False),
        degraded=result.get("degraded", False),
        warning_code=result.get("warning_code"),
    )
