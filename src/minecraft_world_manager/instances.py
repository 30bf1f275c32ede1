# minecraft_world_manager/instances.py
from typing import Optional

from .context import AppContext

_app_context: Optional[AppContext] = None


def get_app_context() -> AppContext:
    """Returns the process-wide AppContext, creating and loading it on first use."""
    global _app_context
    if _app_context is None:
        _app_context = AppContext()
        _app_context.load()
    return _app_context


def set_app_context(app_context: Optional[AppContext]) -> None:
    """Replaces the process-wide AppContext (None resets it)."""
    global _app_context
    _app_context = app_context
