# minecraft_world_manager/web/dependencies.py
from minecraft_world_manager.context import AppContext
from minecraft_world_manager.instances import get_app_context as _get_app_context


async def get_app_context() -> AppContext:
    """FastAPI dependency returning the shared application context.

    Tests replace it through ``app.dependency_overrides``.
    """
    return _get_app_context()
