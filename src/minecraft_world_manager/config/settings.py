# minecraft_world_manager/config/settings.py
"""Manages application-wide configuration settings.

This module provides the `Settings` class, which is responsible for loading
settings from a JSON file, providing default values for missing keys, saving
changes back to the file, and applying environment-variable overrides for the
deployment-specific paths (world, backups, temp area) and limits.

The configuration is stored in a nested JSON format. Settings are accessed
programmatically using dot-notation (e.g., `settings.get('paths.world')`).
"""

import os
import json
import logging
import collections.abc
from typing import Any, Dict, Mapping, Optional

from appdirs import user_config_dir, user_data_dir

from minecraft_world_manager.error import ConfigurationError
from minecraft_world_manager.config.const import (
    package_name,
    app_author,
    env_name,
    WORLD_MARKER_FILENAME,
    ARCHIVE_EXTENSION,
    get_installed_version,
)

logger = logging.getLogger(__name__)

# The schema version for the configuration file.
CONFIG_SCHEMA_VERSION = 1
CONFIG_FILE_NAME = "minecraft_world_manager.json"


def _parse_size(value: str) -> int:
    """Parses a byte count with an optional K/M/G suffix (e.g. ``500M``)."""
    text = value.strip().upper().rstrip("B")
    multipliers = {"K": 1024, "M": 1024**2, "G": 1024**3}
    if text and text[-1] in multipliers:
        return int(float(text[:-1]) * multipliers[text[-1]])
    return int(text)


# Setting key -> (environment variable names in priority order, converter)
ENV_OVERRIDES: Dict[str, Any] = {
    "paths.world": ((f"{env_name}_WORLD_PATH", "WORLD_PATH"), str),
    "paths.backups": ((f"{env_name}_BACKUP_DIR", "BACKUP_DIR"), str),
    "paths.temp": ((f"{env_name}_TEMP_DIR", "TEMP_PATH"), str),
    "upload.max_size_bytes": ((f"{env_name}_MAX_UPLOAD_SIZE",), _parse_size),
    "service.name": ((f"{env_name}_SERVICE_NAME",), str),
}


def deep_merge(source: Mapping, destination: Dict) -> Dict:
    """
    Recursively merges the `source` dictionary into the `destination` dictionary.

    Nested dictionaries are merged, while other values in `source` overwrite
    those in `destination`.

    Args:
        source: The dictionary with new or updated values.
        destination: The dictionary to be updated.

    Returns:
        The merged dictionary (`destination`).
    """
    for key, value in source.items():
        if isinstance(value, collections.abc.Mapping):
            node = destination.setdefault(key, {})
            deep_merge(value, node)
        else:
            destination[key] = value
    return destination


class Settings:
    """Manages loading, accessing, and saving application settings.

    This class acts as a single source of truth for configuration. It handles
    the logic for determining application data and config directories, provides
    sensible defaults in a nested structure, and ensures critical directories
    exist. Values taken from the environment override the file but are never
    written back to it.
    """

    def __init__(
        self,
        config_dir: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initializes the Settings object.

        Args:
            config_dir: Directory holding the JSON settings file. Defaults to the
                platform user config directory located with ``appdirs``.
            environ: Mapping used for overrides. Defaults to ``os.environ``.
        """
        logger.debug("Initializing Settings")
        self._environ = os.environ if environ is None else environ
        self._app_data_dir_path = self._determine_app_data_dir()
        self._config_dir_path = config_dir or user_config_dir(package_name, app_author)
        self.config_path = os.path.join(self._config_dir_path, CONFIG_FILE_NAME)
        self._version_val = get_installed_version()

        self._settings: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}
        self.load()

    def _determine_app_data_dir(self) -> str:
        """Determines the main application data directory.

        It prioritizes the `MINECRAFT_WORLD_MANAGER_DATA_DIR` environment
        variable if set, otherwise the platform user data directory.
        """
        data_dir = self._environ.get(f"{env_name}_DATA_DIR")
        if not data_dir:
            data_dir = user_data_dir(package_name, app_author)
        return data_dir

    @property
    def default_config(self) -> dict:
        """Provides the default configuration values for the application."""
        app_data_dir_val = self._app_data_dir_path
        return {
            "config_version": CONFIG_SCHEMA_VERSION,
            "paths": {
                "world": os.path.join(app_data_dir_val, "server", "world"),
                "backups": os.path.join(app_data_dir_val, "backups"),
                "temp": os.path.join(app_data_dir_val, ".tmp"),
                "logs": os.path.join(app_data_dir_val, ".logs"),
            },
            "world": {
                "marker": WORLD_MARKER_FILENAME,
                "marker_search_depth": 2,
            },
            "upload": {
                "max_size_bytes": 2 * 1024**3,
                "allowed_extensions": [ARCHIVE_EXTENSION],
            },
            "service": {
                "name": "minecraft-server",
                "user_mode": False,
                "query_timeout": 5,
                "stop_timeout": 30,
                "start_timeout": 30,
                "poll_interval": 0.5,
                "start_attempts": 1,
            },
            "retention": {
                "logs": 3,
            },
            "logging": {
                "file_level": logging.INFO,
                "cli_level": logging.WARN,
            },
            "web": {
                "host": "127.0.0.1",
                "port": 3001,
            },
        }

    def load(self):
        """Loads settings from the JSON configuration file.

        If the file doesn't exist, it's created with defaults. User settings
        are merged over the defaults, then environment overrides are applied.

        Raises:
            ConfigurationError: If the file exists but cannot be parsed.
        """
        self._settings = self.default_config

        if not os.path.exists(self.config_path):
            logger.info(
                f"Configuration file not found at {self.config_path}. "
                "Creating with default settings."
            )
            self._write_config()
        else:
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    user_config = json.load(f)
            except (ValueError, OSError) as e:
                raise ConfigurationError(
                    f"Could not load config file at {self.config_path}: {e}"
                ) from e
            if not isinstance(user_config, dict):
                raise ConfigurationError(
                    f"Config file at {self.config_path} must contain a JSON object."
                )
            deep_merge(user_config, self._settings)

        self._overrides = self._read_env_overrides()
        self._ensure_dirs_exist()

    def _read_env_overrides(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        for key, (var_names, convert) in ENV_OVERRIDES.items():
            for var_name in var_names:
                raw = self._environ.get(var_name)
                if not raw:
                    continue
                try:
                    overrides[key] = convert(raw)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid value for environment variable {var_name}: '{raw}'"
                    ) from e
                logger.debug(f"Setting '{key}' overridden by environment {var_name}.")
                break
        return overrides

    def _ensure_dirs_exist(self):
        """Ensures that the backup, temp and log directories exist.

        The world directory itself is deliberately not created: its absence is
        a meaningful state.

        Raises:
            ConfigurationError: If a directory cannot be created.
        """
        for key in ("paths.backups", "paths.temp", "paths.logs"):
            dir_path = self.get(key)
            if dir_path and isinstance(dir_path, str):
                try:
                    os.makedirs(dir_path, exist_ok=True)
                except OSError as e:
                    raise ConfigurationError(
                        f"Could not create critical directory: {dir_path}"
                    ) from e

    def _write_config(self):
        """Writes the current settings dictionary to the JSON configuration file.

        Raises:
            ConfigurationError: If writing the configuration fails.
        """
        try:
            os.makedirs(self._config_dir_path, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, indent=4, sort_keys=True)
        except (OSError, TypeError) as e:
            raise ConfigurationError(f"Failed to write configuration: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieves a setting value using dot-notation for nested access.

        Example: `settings.get("paths.world")`

        Args:
            key: The dot-separated configuration key.
            default: The value to return if the key is not found.

        Returns:
            The value associated with the key, or the default value.
        """
        if key in self._overrides:
            return self._overrides[key]
        d = self._settings
        try:
            for k in key.split("."):
                d = d[k]
            return d
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """Sets a configuration value using dot-notation and saves the change.

        Intermediate dictionaries are created if they do not exist. The
        configuration is only written to disk if the new value is different
        from the old one.

        Example: `settings.set("service.stop_timeout", 60)`
        """
        if self.get(key) == value and key not in self._overrides:
            return

        keys = key.split(".")
        d = self._settings
        for k in keys[:-1]:
            d = d.setdefault(k, {})

        d[keys[-1]] = value
        if key in self._overrides:
            logger.warning(
                f"Setting '{key}' is overridden by the environment; "
                "the saved value takes effect once the override is removed."
            )
        logger.info(f"Setting '{key}' updated to '{value}'. Saving configuration.")
        self._write_config()

    @property
    def config_dir(self) -> str:
        """The absolute path to the application's configuration directory."""
        return self._config_dir_path

    @property
    def app_data_dir(self) -> str:
        """The absolute path to the application's main data directory."""
        return self._app_data_dir_path

    @property
    def version(self) -> str:
        """The installed version of the application package."""
        return self._version_val
