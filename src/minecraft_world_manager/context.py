from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .config.settings import Settings
    from .core.system.service import ServiceController
    from .core.world_store import WorldStore
    from .core.world_swap import WorldSwapOrchestrator


class AppContext:
    """
    A context object that holds application-wide instances.

    Every collaborator can be injected; anything left as None is built lazily
    from the settings on first use.
    """

    def __init__(
        self,
        settings: Optional["Settings"] = None,
        service_controller: Optional["ServiceController"] = None,
        world_store: Optional["WorldStore"] = None,
        orchestrator: Optional["WorldSwapOrchestrator"] = None,
    ):
        self.settings: Optional["Settings"] = settings
        self._service_controller = service_controller
        self._world_store = world_store
        self._orchestrator = orchestrator

    def load(self):
        """
        Loads the settings if they were not injected.
        """
        from .config.settings import Settings

        if self.settings is None:
            self.settings = Settings()

    def _require_settings(self) -> "Settings":
        if self.settings is None:
            self.load()
        return self.settings

    @property
    def service_controller(self) -> "ServiceController":
        """
        Lazily builds the systemd controller for the configured service.
        """
        if self._service_controller is None:
            from .core.system.service import SystemdServiceController

            settings = self._require_settings()
            self._service_controller = SystemdServiceController(
                settings.get("service.name"),
                user_mode=bool(settings.get("service.user_mode", False)),
                query_timeout=float(settings.get("service.query_timeout", 5)),
                stop_timeout=float(settings.get("service.stop_timeout", 30)),
                start_timeout=float(settings.get("service.start_timeout", 30)),
                poll_interval=float(settings.get("service.poll_interval", 0.5)),
            )
        return self._service_controller

    @service_controller.setter
    def service_controller(self, value: "ServiceController"):
        self._service_controller = value

    @property
    def world_store(self) -> "WorldStore":
        if self._world_store is None:
            from .core.world_store import WorldStore

            settings = self._require_settings()
            self._world_store = WorldStore(
                settings.get("paths.world"),
                settings.get("paths.backups"),
                settings.get("paths.temp"),
            )
        return self._world_store

    @property
    def orchestrator(self) -> "WorldSwapOrchestrator":
        """
        Lazily builds the single orchestrator shared by every caller, so that
        all requests contend for the same world lock.
        """
        if self._orchestrator is None:
            from .core.world_swap import WorldSwapOrchestrator

            settings = self._require_settings()
            self._orchestrator = WorldSwapOrchestrator(
                self.world_store,
                self.service_controller,
                marker=settings.get("world.marker"),
                marker_search_depth=int(settings.get("world.marker_search_depth", 2)),
                start_attempts=int(settings.get("service.start_attempts", 1)),
            )
        return self._orchestrator

    @orchestrator.setter
    def orchestrator(self, value: "WorldSwapOrchestrator"):
        self._orchestrator = value
