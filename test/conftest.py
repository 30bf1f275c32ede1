import os
import tarfile

import pytest

from minecraft_world_manager.config.const import env_name
from minecraft_world_manager.config.settings import Settings
from minecraft_world_manager.context import AppContext
from minecraft_world_manager.core.system.service import (
    ServiceController,
    ServiceState,
)
from minecraft_world_manager.core.world_store import WorldStore
from minecraft_world_manager.core.world_swap import WorldSwapOrchestrator
from minecraft_world_manager.instances import set_app_context


class FakeServiceController(ServiceController):
    """In-memory service with switchable stop/start outcomes."""

    def __init__(self, running=True, stop_succeeds=True, start_succeeds=True):
        super().__init__(
            "minecraft-server", stop_timeout=0.05, start_timeout=0.05, poll_interval=0.01
        )
        self.state = ServiceState.RUNNING if running else ServiceState.STOPPED
        self.stop_succeeds = stop_succeeds
        self.start_succeeds = start_succeeds
        self.calls = []

    def query_state(self):
        return self.state

    def _request(self, action):
        self.calls.append(action)
        if action == "stop":
            if not self.stop_succeeds:
                return "stop refused"
            self.state = ServiceState.STOPPED
        else:
            if not self.start_succeeds:
                return "start refused"
            self.state = ServiceState.RUNNING
        return None


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """
    Keeps settings files, data directories and environment overrides of the
    machine running the tests out of every test.
    """
    for var in (
        "WORLD_PATH",
        "BACKUP_DIR",
        "TEMP_PATH",
        f"{env_name}_WORLD_PATH",
        f"{env_name}_BACKUP_DIR",
        f"{env_name}_TEMP_DIR",
        f"{env_name}_MAX_UPLOAD_SIZE",
        f"{env_name}_SERVICE_NAME",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv(f"{env_name}_DATA_DIR", str(tmp_path / "env_data"))
    monkeypatch.setattr(
        "minecraft_world_manager.config.settings.user_config_dir",
        lambda *args, **kwargs: str(tmp_path / "env_config"),
    )
    yield
    set_app_context(None)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        config_dir=str(tmp_path / "config"),
        environ={f"{env_name}_DATA_DIR": str(tmp_path / "data")},
    )


@pytest.fixture
def fake_controller():
    return FakeServiceController()


@pytest.fixture
def world_store(settings):
    return WorldStore(
        settings.get("paths.world"),
        settings.get("paths.backups"),
        settings.get("paths.temp"),
    )


@pytest.fixture
def orchestrator(world_store, fake_controller):
    return WorldSwapOrchestrator(world_store, fake_controller)


@pytest.fixture
def app_context(settings, fake_controller, world_store, orchestrator):
    ctx = AppContext(
        settings=settings,
        service_controller=fake_controller,
        world_store=world_store,
        orchestrator=orchestrator,
    )
    set_app_context(ctx)
    return ctx


@pytest.fixture
def make_world():
    """Creates a world directory with a marker and some region data."""

    def _make(path, files=None):
        files = files or {
            "level.dat": b"level-data",
            "region/r.0.0.mca": b"\x00" * 2048,
            "playerdata/steve.dat": b"steve",
        }
        for rel, content in files.items():
            full = os.path.join(str(path), rel)
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(content)
        return str(path)

    return _make


@pytest.fixture
def make_tar(tmp_path):
    """Packs a directory into a tar file, rooted at ``arcname``."""

    def _make(source_dir, arcname, name="upload.tar"):
        dest = tmp_path / "archives" / name
        dest.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(dest, "w") as tar:
            tar.add(str(source_dir), arcname=arcname)
        return str(dest)

    return _make


@pytest.fixture
def snapshot():
    """Returns ``{relative path: bytes}`` for every file below a directory."""

    def _snapshot(root):
        result = {}
        for dirpath, _dirnames, filenames in os.walk(root):
            for filename in filenames:
                full = os.path.join(dirpath, filename)
                with open(full, "rb") as f:
                    result[os.path.relpath(full, root)] = f.read()
        return result

    return _snapshot
