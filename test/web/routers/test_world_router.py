import io
import os
import tarfile

import pytest

from minecraft_world_manager.core.system.service import ServiceState


@pytest.fixture
def upload_bytes(tmp_path, make_world, make_tar):
    source = make_world(
        tmp_path / "src" / "myworld",
        {"level.dat": b"new-level", "region/r.0.0.mca": b"new-region"},
    )
    with open(make_tar(source, "myworld"), "rb") as f:
        return f.read()


def _upload(client, data, filename="myworld.tar"):
    return client.post(
        "/api/world/import",
        files={"world": (filename, data, "application/x-tar")},
    )


class TestInfo:
    def test_info_without_world(self, client):
        response = client.get("/api/world/info")
        assert response.status_code == 200
        assert response.json() == {
            "exists": False,
            "name": "world",
            "size": 0,
            "sizeFormatted": "0 B",
            "busy": False,
        }

    def test_info_with_world(self, client, world_store, make_world):
        make_world(world_store.world_path, {"level.dat": b"x" * 2048})
        body = client.get("/api/world/info").json()
        assert body["exists"] is True
        assert body["sizeFormatted"] == "2.0 KB"


class TestExport:
    def test_export_streams_archive(self, client, world_store, make_world, snapshot, tmp_path):
        make_world(world_store.world_path)

        response = client.get("/api/world/export")

        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="world-backup-')
        assert disposition.endswith('.tar"')
        dest = tmp_path / "downloaded"
        dest.mkdir()
        with tarfile.open(fileobj=io.BytesIO(response.content)) as tar:
            tar.extractall(dest, filter="data")
        assert snapshot(str(dest / "world")) == snapshot(world_store.world_path)
        assert os.listdir(world_store.temp_dir) == []

    def test_export_without_world(self, client):
        response = client.get("/api/world/export")
        assert response.status_code == 404
        assert response.json()["success"] is False
        assert response.json()["code"] == "world_not_found"

    def test_export_while_busy(self, client, orchestrator, world_store, make_world):
        make_world(world_store.world_path)
        orchestrator._lock.acquire()
        try:
            response = client.get("/api/world/export")
        finally:
            orchestrator._lock.release()
        assert response.status_code == 423
        assert response.json()["code"] == "world_busy"


class TestImport:
    def test_import_success(self, client, world_store, fake_controller, make_world, upload_bytes):
        make_world(world_store.world_path)

        response = _upload(client, upload_bytes)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "restarted" in body["message"]
        assert body["serviceRestarted"] is True
        assert os.path.basename(body["backupPath"]).startswith("world_backup_")
        with open(os.path.join(world_store.world_path, "level.dat"), "rb") as f:
            assert f.read() == b"new-level"
        assert fake_controller.query_state() == ServiceState.RUNNING
        assert os.listdir(world_store.temp_dir) == []

    def test_archive_without_marker(self, client, world_store, fake_controller, make_world, make_tar, tmp_path, snapshot):
        make_world(world_store.world_path)
        before = snapshot(world_store.world_path)
        junk = make_world(tmp_path / "junk", {"notes.txt": b"nothing"})
        with open(make_tar(junk, "junk"), "rb") as f:
            data = f.read()

        response = _upload(client, data)

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["code"] == "invalid_archive"
        assert snapshot(world_store.world_path) == before
        assert world_store.list_backups() == []
        assert fake_controller.calls == []
        assert os.listdir(world_store.temp_dir) == []

    def test_wrong_extension(self, client, world_store, upload_bytes):
        response = _upload(client, upload_bytes, filename="myworld.zip")
        assert response.status_code == 400
        assert response.json()["code"] == "upload_rejected"
        assert os.listdir(world_store.temp_dir) == []

    def test_oversized_upload(self, client, settings, world_store, upload_bytes):
        settings.set("upload.max_size_bytes", 1024)
        response = _upload(client, upload_bytes)
        assert response.status_code == 413
        assert response.json()["code"] == "upload_rejected"
        assert os.listdir(world_store.temp_dir) == []

    def test_stop_failure(self, client, world_store, fake_controller, make_world, upload_bytes):
        fake_controller.stop_succeeds = False
        make_world(world_store.world_path)
        response = _upload(client, upload_bytes)
        assert response.status_code == 503
        assert response.json()["code"] == "service_stop_failed"
        assert world_store.list_backups() == []

    def test_degraded_restart(self, client, world_store, fake_controller, make_world, upload_bytes):
        fake_controller.start_succeeds = False
        make_world(world_store.world_path)
        response = _upload(client, upload_bytes)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["degraded"] is True
        assert body["warningCode"] == "service_start_failed"

    def test_busy_upload_is_removed(self, client, orchestrator, world_store, upload_bytes, mocker):
        real_import = orchestrator.import_world

        def import_without_waiting(archive, consume=False, lock_timeout=None):
            return real_import(archive, consume=consume, lock_timeout=0)

        mocker.patch.object(orchestrator, "import_world", side_effect=import_without_waiting)
        orchestrator._lock.acquire()
        try:
            response = _upload(client, upload_bytes)
        finally:
            orchestrator._lock.release()
        assert response.status_code == 423
        assert os.listdir(world_store.temp_dir) == []


class TestBackupsAndService:
    def test_list_backups(self, client, world_store, make_world):
        make_world(world_store.world_path)
        world_store.backup_world("20240102_030405")
        body = client.get("/api/world/backups").json()
        assert body["success"] is True
        assert body["backups"][0]["name"] == "world_backup_20240102_030405"
        assert "sizeFormatted" in body["backups"][0]
        assert "createdAt" in body["backups"][0]

    def test_service_status(self, client, fake_controller):
        assert client.get("/api/world/service").json()["running"] is True
        fake_controller.state = ServiceState.STOPPED
        body = client.get("/api/world/service").json()
        assert body["running"] is False
        assert body["state"] == "stopped"

    def test_service_start(self, client, fake_controller):
        fake_controller.state = ServiceState.STOPPED
        response = client.post("/api/world/service/start")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["state"] == "running"
        assert body["changed"] is True

    def test_service_stop_failure(self, client, fake_controller):
        fake_controller.stop_succeeds = False
        response = client.post("/api/world/service/stop")
        assert response.status_code == 503
        assert response.json()["code"] == "service_stop_failed"

    def test_service_restart(self, client, fake_controller):
        response = client.post("/api/world/service/restart")
        assert response.status_code == 200
        assert fake_controller.calls == ["stop", "start"]

    @pytest.mark.parametrize("action", ["start", "stop", "restart"])
    def test_service_action_while_busy(self, client, orchestrator, fake_controller, action):
        orchestrator._lock.acquire()
        try:
            response = client.post(f"/api/world/service/{action}")
        finally:
            orchestrator._lock.release()
        assert response.status_code == 423
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "world_busy"
        assert fake_controller.calls == []
