# minecraft_world_manager/web/main.py
"""
Creates the FastAPI application and runs it with uvicorn.
"""
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import app_name_title
from ..error import WorldManagerError
from .routers import world
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)


async def world_manager_error_handler(request: Request, exc: WorldManagerError):
    if exc.http_status >= 500:
        logger.error(
            f"Web: {request.method} {request.url.path} failed: {exc}", exc_info=exc
        )
    else:
        logger.warning(f"Web: {request.method} {request.url.path} rejected: {exc}")
    body = ErrorResponse(
        message=exc.message,
        code=exc.code,
        backup_path=getattr(exc, "backup_path", None),
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


def create_app() -> FastAPI:
    """
    Builds the application with the world router and error handlers installed.
    """
    app = FastAPI(
        title=app_name_title,
        version=__version__,
    )
    app.add_exception_handler(WorldManagerError, world_manager_error_handler)
    app.include_router(world.router)
    return app


app = create_app()


def run_web_server(host: str, port: int) -> None:
    """Serves the application until interrupted."""
    logger.info(f"Starting web server on http://{host}:{port} ...")
    uvicorn.run(app, host=host, port=port, log_config=None)
