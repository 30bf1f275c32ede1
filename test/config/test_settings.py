import json
import os

import pytest

from minecraft_world_manager.config.const import env_name
from minecraft_world_manager.config.settings import (
    CONFIG_FILE_NAME,
    CONFIG_SCHEMA_VERSION,
    Settings,
    _parse_size,
    deep_merge,
)
from minecraft_world_manager.error import ConfigurationError


def test_initialization_with_defaults(settings, tmp_path):
    assert settings.get("config_version") == CONFIG_SCHEMA_VERSION
    assert settings.get("world.marker") == "level.dat"
    assert settings.get("upload.allowed_extensions") == [".tar"]
    assert settings.get("service.start_attempts") == 1
    assert settings.get("paths.world") == str(tmp_path / "data" / "server" / "world")
    assert os.path.isfile(settings.config_path)


def test_critical_dirs_created_but_not_world(settings):
    assert os.path.isdir(settings.get("paths.backups"))
    assert os.path.isdir(settings.get("paths.temp"))
    assert os.path.isdir(settings.get("paths.logs"))
    assert not os.path.exists(settings.get("paths.world"))


def test_setting_is_persisted(settings, tmp_path):
    settings.set("service.stop_timeout", 60)
    reloaded = Settings(
        config_dir=settings.config_dir,
        environ={f"{env_name}_DATA_DIR": str(tmp_path / "data")},
    )
    assert reloaded.get("service.stop_timeout") == 60


def test_missing_key_returns_default(settings):
    assert settings.get("nope.nothing", "fallback") == "fallback"


def test_user_file_merged_over_defaults(tmp_path):
    config_dir = tmp_path / "cfg"
    config_dir.mkdir()
    (config_dir / CONFIG_FILE_NAME).write_text(
        json.dumps({"service": {"name": "survival"}})
    )
    settings = Settings(
        config_dir=str(config_dir), environ={f"{env_name}_DATA_DIR": str(tmp_path)}
    )
    assert settings.get("service.name") == "survival"
    assert settings.get("service.stop_timeout") == 30


def test_malformed_file_raises(tmp_path):
    config_dir = tmp_path / "cfg"
    config_dir.mkdir()
    (config_dir / CONFIG_FILE_NAME).write_text("{not json")
    with pytest.raises(ConfigurationError):
        Settings(config_dir=str(config_dir), environ={})


def test_environment_overrides(tmp_path):
    environ = {
        f"{env_name}_DATA_DIR": str(tmp_path / "data"),
        f"{env_name}_WORLD_PATH": str(tmp_path / "srv" / "world"),
        "BACKUP_DIR": str(tmp_path / "bk"),
        f"{env_name}_MAX_UPLOAD_SIZE": "500M",
    }
    settings = Settings(config_dir=str(tmp_path / "cfg"), environ=environ)

    assert settings.get("paths.world") == str(tmp_path / "srv" / "world")
    assert settings.get("paths.backups") == str(tmp_path / "bk")
    assert settings.get("upload.max_size_bytes") == 500 * 1024**2
    with open(settings.config_path) as f:
        saved = json.load(f)
    assert saved["paths"]["world"] != str(tmp_path / "srv" / "world")


def test_prefixed_variable_wins_over_plain(tmp_path):
    environ = {
        f"{env_name}_DATA_DIR": str(tmp_path),
        f"{env_name}_TEMP_DIR": str(tmp_path / "a"),
        "TEMP_PATH": str(tmp_path / "b"),
    }
    settings = Settings(config_dir=str(tmp_path / "cfg"), environ=environ)
    assert settings.get("paths.temp") == str(tmp_path / "a")


def test_invalid_size_override(tmp_path):
    environ = {f"{env_name}_MAX_UPLOAD_SIZE": "lots"}
    with pytest.raises(ConfigurationError):
        Settings(config_dir=str(tmp_path / "cfg"), environ=environ)


@pytest.mark.parametrize(
    "text, expected",
    [("1024", 1024), ("2K", 2048), ("1.5M", int(1.5 * 1024**2)), ("2GB", 2 * 1024**3)],
)
def test_parse_size(text, expected):
    assert _parse_size(text) == expected


def test_deep_merge():
    destination = {"a": {"b": 1, "c": 2}, "d": 3}
    deep_merge({"a": {"b": 10}, "e": 5}, destination)
    assert destination == {"a": {"b": 10, "c": 2}, "d": 3, "e": 5}
