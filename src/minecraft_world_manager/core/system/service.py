# minecraft_world_manager/core/system/service.py
"""
Observes and drives the externally managed game-server service.

`ServiceController` defines the contract used by the world swap: a bounded
point-in-time state query plus stop/start requests that poll until the service
reaches the wanted state or a fixed deadline passes. `SystemdServiceController`
implements it with `systemctl`.
"""

import enum
import logging
import shutil
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


class ServiceState(str, enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ServiceActionResult:
    """Outcome of a stop or start request."""

    success: bool
    state: ServiceState
    message: str = ""
    # False when the service was already in the requested state.
    changed: bool = False


class ServiceController(ABC):
    """Base class for service controllers.

    Subclasses implement `query_state` and `_request`; stopping and starting
    with a bounded wait is shared.
    """

    def __init__(
        self,
        service_name: str,
        stop_timeout: float = 30,
        start_timeout: float = 30,
        poll_interval: float = 0.5,
    ):
        self.service_name = service_name
        self.stop_timeout = stop_timeout
        self.start_timeout = start_timeout
        self.poll_interval = poll_interval

    @abstractmethod
    def query_state(self) -> ServiceState:
        """Returns the current state. Must return within a short, bounded time."""

    @abstractmethod
    def _request(self, action: str) -> Optional[str]:
        """Asks the service manager to perform ``action`` ("stop" or "start").

        Returns None on success or an error message.
        """

    def is_running(self) -> bool:
        """True only if the service is confirmed running."""
        return self.query_state() == ServiceState.RUNNING

    def stop(self) -> ServiceActionResult:
        return self._transition("stop", ServiceState.STOPPED, self.stop_timeout)

    def start(self) -> ServiceActionResult:
        return self._transition("start", ServiceState.RUNNING, self.start_timeout)

    def _transition(
        self, action: str, target: ServiceState, timeout: float
    ) -> ServiceActionResult:
        current = self.query_state()
        if current == target:
            logger.info(
                f"Service '{self.service_name}' is already {target.value}; "
                f"nothing to {action}."
            )
            return ServiceActionResult(True, current, f"Already {target.value}.")

        logger.info(f"Requesting {action} of service '{self.service_name}'...")
        error = self._request(action)
        if error:
            logger.error(f"Service '{self.service_name}' {action} failed: {error}")
            return ServiceActionResult(False, self.query_state(), error, changed=True)

        state = self._wait_for(target, timeout)
        if state == target:
            logger.info(f"Service '{self.service_name}' is now {target.value}.")
            return ServiceActionResult(
                True, state, f"Service {target.value}.", changed=True
            )

        message = (
            f"Service '{self.service_name}' did not become {target.value} within "
            f"{timeout}s (last state: {state.value})."
        )
        logger.error(message)
        return ServiceActionResult(False, state, message, changed=True)

    def _wait_for(self, target: ServiceState, timeout: float) -> ServiceState:
        deadline = time.monotonic() + timeout
        state = self.query_state()
        while state != target and time.monotonic() < deadline:
            time.sleep(self.poll_interval)
            state = self.query_state()
        return state


class SystemdServiceController(ServiceController):
    """Controls a systemd unit through `systemctl`."""

    def __init__(
        self,
        service_name: str,
        user_mode: bool = False,
        query_timeout: float = 5,
        stop_timeout: float = 30,
        start_timeout: float = 30,
        poll_interval: float = 0.5,
    ):
        super().__init__(service_name, stop_timeout, start_timeout, poll_interval)
        self.user_mode = user_mode
        self.query_timeout = query_timeout

    @property
    def service_name_full(self) -> str:
        """The unit name with its ``.service`` suffix."""
        return (
            self.service_name
            if self.service_name.endswith(".service")
            else f"{self.service_name}.service"
        )

    def _systemctl(self, *args: str) -> Optional[List[str]]:
        systemctl_cmd = shutil.which("systemctl")
        if not systemctl_cmd:
            return None
        cmd = [systemctl_cmd]
        if self.user_mode:
            cmd.append("--user")
        cmd.extend(args)
        return cmd

    def query_state(self) -> ServiceState:
        cmd = self._systemctl("is-active", self.service_name_full)
        if cmd is None:
            logger.warning("'systemctl' not found; service state is unknown.")
            return ServiceState.UNKNOWN
        try:
            process = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.query_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(
                f"Timed out querying service '{self.service_name_full}' after "
                f"{self.query_timeout}s."
            )
            return ServiceState.UNKNOWN
        except OSError as e:
            logger.warning(f"Error querying service '{self.service_name_full}': {e}")
            return ServiceState.UNKNOWN

        status_output = process.stdout.strip()
        logger.debug(
            f"'systemctl is-active {self.service_name_full}' status: {status_output}, "
            f"return code: {process.returncode}"
        )
        if status_output in ("active", "reloading"):
            return ServiceState.RUNNING
        if status_output in ("inactive", "failed"):
            return ServiceState.STOPPED
        return ServiceState.UNKNOWN

    def _request(self, action: str) -> Optional[str]:
        cmd = self._systemctl(action, self.service_name_full)
        if cmd is None:
            return "'systemctl' command not found."
        timeout = self.stop_timeout if action == "stop" else self.start_timeout
        try:
            subprocess.run(
                cmd, check=True, capture_output=True, text=True, timeout=timeout
            )
        except subprocess.CalledProcessError as e:
            return f"systemctl {action} exited with {e.returncode}: {(e.stderr or '').strip()}"
        except subprocess.TimeoutExpired:
            return f"systemctl {action} did not return within {timeout}s."
        except OSError as e:
            return f"systemctl {action} could not be run: {e}"
        return None
