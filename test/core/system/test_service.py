import subprocess
from unittest.mock import MagicMock

import pytest

from minecraft_world_manager.core.system.service import (
    ServiceState,
    SystemdServiceController,
)


@pytest.fixture
def mock_which(mocker):
    return mocker.patch(
        "minecraft_world_manager.core.system.service.shutil.which",
        return_value="/usr/bin/systemctl",
    )


@pytest.fixture
def mock_run(mocker):
    return mocker.patch("minecraft_world_manager.core.system.service.subprocess.run")


@pytest.fixture
def controller():
    return SystemdServiceController(
        "minecraft-server", stop_timeout=0.05, start_timeout=0.05, poll_interval=0.01
    )


def _is_active(output):
    return MagicMock(stdout=f"{output}\n", returncode=0 if output == "active" else 3)


class TestQueryState:
    @pytest.mark.parametrize(
        "output, expected",
        [
            ("active", ServiceState.RUNNING),
            ("reloading", ServiceState.RUNNING),
            ("inactive", ServiceState.STOPPED),
            ("failed", ServiceState.STOPPED),
            ("activating", ServiceState.UNKNOWN),
        ],
    )
    def test_states(self, controller, mock_which, mock_run, output, expected):
        mock_run.return_value = _is_active(output)
        assert controller.query_state() == expected
        cmd = mock_run.call_args[0][0]
        assert cmd == ["/usr/bin/systemctl", "is-active", "minecraft-server.service"]
        assert mock_run.call_args[1]["timeout"] == controller.query_timeout

    def test_user_mode(self, mock_which, mock_run):
        mock_run.return_value = _is_active("active")
        controller = SystemdServiceController("mc.service", user_mode=True)
        controller.query_state()
        assert mock_run.call_args[0][0] == [
            "/usr/bin/systemctl",
            "--user",
            "is-active",
            "mc.service",
        ]

    def test_timeout_is_unknown(self, controller, mock_which, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired("systemctl", 5)
        assert controller.query_state() == ServiceState.UNKNOWN

    def test_no_systemctl(self, controller, mocker, mock_run):
        mocker.patch(
            "minecraft_world_manager.core.system.service.shutil.which",
            return_value=None,
        )
        assert controller.query_state() == ServiceState.UNKNOWN
        mock_run.assert_not_called()


class TestStopStart:
    def test_stop_running_service(self, controller, mock_which, mock_run):
        mock_run.side_effect = [
            _is_active("active"),
            MagicMock(returncode=0),
            _is_active("inactive"),
        ]
        result = controller.stop()
        assert result.success is True
        assert result.changed is True
        assert result.state == ServiceState.STOPPED
        assert mock_run.call_args_list[1][0][0][1:] == ["stop", "minecraft-server.service"]

    def test_stop_already_stopped(self, controller, mock_which, mock_run):
        mock_run.return_value = _is_active("inactive")
        result = controller.stop()
        assert result.success is True
        assert result.changed is False
        assert mock_run.call_count == 1

    def test_stop_command_fails(self, controller, mock_which, mock_run):
        mock_run.side_effect = [
            _is_active("active"),
            subprocess.CalledProcessError(1, "systemctl", stderr="Access denied"),
            _is_active("active"),
        ]
        result = controller.stop()
        assert result.success is False
        assert "Access denied" in result.message

    def test_start_times_out(self, controller, mock_which, mock_run):
        def run(cmd, **kwargs):
            if "is-active" in cmd:
                return _is_active("inactive")
            return MagicMock(returncode=0)

        mock_run.side_effect = run
        result = controller.start()
        assert result.success is False
        assert result.state == ServiceState.STOPPED
        assert "did not become running" in result.message

    def test_start_without_systemctl(self, controller, mocker, mock_run):
        mocker.patch(
            "minecraft_world_manager.core.system.service.shutil.which",
            return_value=None,
        )
        result = controller.start()
        assert result.success is False
        assert "not found" in result.message
