# minecraft_world_manager/__init__.py
import logging

from minecraft_world_manager.config.const import get_installed_version

logger = logging.getLogger(__name__)

__version__ = get_installed_version()
