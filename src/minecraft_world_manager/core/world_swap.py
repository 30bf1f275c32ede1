# minecraft_world_manager/core/world_swap.py
"""
Exports the active world and safely replaces it from an uploaded archive.

`WorldSwapOrchestrator.import_world` runs the sequence

    Validating -> StoppingService -> BackingUp -> Swapping -> StartingService

under a single per-world lock. Validation and the service stop are the only
abortable steps: on failure there the active world is untouched and the caller
may retry. Once the backup rename has moved the previous world out of the way
the import is committed. A failure while swapping is reported as fatal and the
operator restores the world by hand from the backup named in the error. A
service that fails to come back after a completed swap only degrades the
result; the new world is kept.

Staging extractions and consumed uploads are removed on every exit path.
"""

import enum
import logging
import os
import shutil
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Union

from minecraft_world_manager.config.const import (
    EXPORT_FILENAME_TEMPLATE,
    WORLD_MARKER_FILENAME,
)
from minecraft_world_manager.core import archive as core_archive
from minecraft_world_manager.core.system.service import (
    ServiceActionResult,
    ServiceController,
    ServiceState,
)
from minecraft_world_manager.core.world_store import (
    BackupEntry,
    WorldInfo,
    WorldStore,
    atomic_replace,
    remove_path,
)
from minecraft_world_manager.error import (
    ArchiveExtractionError,
    FilesystemError,
    InvalidArchiveError,
    ServiceError,
    ServiceStartError,
    ServiceStopError,
    WorldBusyError,
    WorldNotFoundError,
)
from minecraft_world_manager.utils.general import get_iso_date, get_timestamp

logger = logging.getLogger(__name__)

# Directories that archiving tools add and that never hold a world.
_IGNORED_DIR_NAMES = {"__MACOSX"}


class SwapState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    STOPPING_SERVICE = "stopping_service"
    BACKING_UP = "backing_up"
    SWAPPING = "swapping"
    STARTING_SERVICE = "starting_service"
    ABORTING = "aborting"


@dataclass
class ImportResult:
    success: bool
    message: str
    world_name: str
    backup_path: Optional[str] = None
    service_restarted: bool = False
    # True when the world was swapped but the service failed to restart.
    degraded: bool = False
    warning_code: Optional[str] = None


class ExportedArchive:
    """A temporary archive of the world. Removed by `cleanup` or on exit."""

    def __init__(self, path: str, filename: str):
        self.path = path
        self.filename = filename

    @property
    def size(self) -> int:
        return os.path.getsize(self.path)

    def open(self) -> BinaryIO:
        return open(self.path, "rb")

    def save_as(self, dest_path: str) -> str:
        """Moves the archive to ``dest_path``; nothing is left to clean up."""
        shutil.move(self.path, dest_path)
        logger.info(f"Exported archive saved to '{dest_path}'.")
        return dest_path

    def cleanup(self) -> None:
        remove_path(self.path, "temporary export archive")

    def __enter__(self) -> "ExportedArchive":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


def find_world_root(
    staging_dir: str, marker: str = WORLD_MARKER_FILENAME, max_depth: int = 2
) -> Optional[str]:
    """Locates the world root inside an extracted archive.

    Subdirectories are searched breadth-first, down to ``max_depth`` levels;
    the first one containing ``marker`` wins. If none does, the staging
    directory itself is the root when it holds the marker.
    """
    queue = deque([(staging_dir, 0)])
    while queue:
        current, depth = queue.popleft()
        if depth >= max_depth:
            continue
        try:
            children = sorted(
                entry.path
                for entry in os.scandir(current)
                if entry.is_dir(follow_symlinks=False)
                and entry.name not in _IGNORED_DIR_NAMES
            )
        except OSError as e:
            logger.debug(f"Cannot list '{current}' while searching for world: {e}")
            continue
        for child in children:
            if os.path.isfile(os.path.join(child, marker)):
                return child
            queue.append((child, depth + 1))

    if os.path.isfile(os.path.join(staging_dir, marker)):
        return staging_dir
    return None


class WorldSwapOrchestrator:
    """Serializes export and import of one world directory."""

    def __init__(
        self,
        store: WorldStore,
        controller: ServiceController,
        marker: str = WORLD_MARKER_FILENAME,
        marker_search_depth: int = 2,
        start_attempts: int = 1,
    ):
        self.store = store
        self.controller = controller
        self.marker = marker
        self.marker_search_depth = marker_search_depth
        self.start_attempts = max(1, int(start_attempts))
        self._lock = threading.Lock()
        self._state = SwapState.IDLE

    @property
    def state(self) -> SwapState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _set_state(self, state: SwapState) -> None:
        logger.info(f"World swap: {self._state.value} -> {state.value}")
        self._state = state

    @contextmanager
    def _world_lock(self, blocking: bool, timeout: Optional[float] = None):
        if not blocking:
            acquired = self._lock.acquire(blocking=False)
        else:
            acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise WorldBusyError(
                "Another world operation is in progress. Try again later."
            )
        try:
            yield
        finally:
            self._state = SwapState.IDLE
            self._lock.release()

    # --- Read-only operations ---

    def get_world_info(self) -> WorldInfo:
        return self.store.get_world_info()

    def list_backups(self) -> List[BackupEntry]:
        return self.store.list_backups()

    def service_state(self) -> ServiceState:
        return self.controller.query_state()

    # --- Service control ---

    def start_service(self) -> ServiceActionResult:
        """Starts the game service.

        Takes the world lock so the service cannot be started in the middle
        of an import.

        Raises:
            WorldBusyError: If a world operation is in progress.
            ServiceStartError: If the service did not start.
        """
        with self._world_lock(blocking=False):
            self._set_state(SwapState.STARTING_SERVICE)
            return self._checked_start()

    def stop_service(self) -> ServiceActionResult:
        """Stops the game service.

        Raises:
            WorldBusyError: If a world operation is in progress.
            ServiceStopError: If the service did not stop.
        """
        with self._world_lock(blocking=False):
            self._set_state(SwapState.STOPPING_SERVICE)
            return self._checked_stop()

    def restart_service(self) -> ServiceActionResult:
        """Stops the game service, then starts it again.

        Raises:
            WorldBusyError: If a world operation is in progress.
            ServiceStopError: If the service did not stop; it is not started.
            ServiceStartError: If the service stopped but did not start.
        """
        with self._world_lock(blocking=False):
            self._set_state(SwapState.STOPPING_SERVICE)
            self._checked_stop()
            self._set_state(SwapState.STARTING_SERVICE)
            result = self._checked_start()
        return ServiceActionResult(
            True,
            result.state,
            f"Service '{self.controller.service_name}' restarted.",
            changed=True,
        )

    def _checked_stop(self) -> ServiceActionResult:
        result = self.controller.stop()
        if not result.success:
            raise ServiceStopError(self.controller.service_name, result.message)
        return result

    def _checked_start(self) -> ServiceActionResult:
        result = self.controller.start()
        if not result.success:
            raise ServiceStartError(self.controller.service_name, result.message)
        return result

    # --- Export ---

    def export_world(self) -> ExportedArchive:
        """Archives the active world into a temporary file.

        Fails fast with `WorldBusyError` while an import runs. The caller
        owns the returned archive and must call `cleanup` (or use it as a
        context manager) once it has been transmitted.

        Raises:
            WorldBusyError: If the world lock is held.
            WorldNotFoundError: If there is no active world.
            ArchiveCreationError: If archiving fails.
        """
        with self._world_lock(blocking=False):
            if not self.store.world_exists():
                raise WorldNotFoundError(
                    f"No world found at '{self.store.world_path}'."
                )
            temp_path = self.store.create_temp_file(suffix=".tar", prefix="export_")
            try:
                core_archive.create_archive(self.store.world_path, temp_path)
            except BaseException:
                remove_path(temp_path, "temporary export archive")
                raise
        filename = EXPORT_FILENAME_TEMPLATE.format(date=get_iso_date())
        logger.info(f"World '{self.store.world_name}' exported as '{filename}'.")
        return ExportedArchive(temp_path, filename)

    # --- Import ---

    def import_world(
        self,
        archive: Union[str, "os.PathLike[str]", BinaryIO],
        consume: bool = False,
        lock_timeout: Optional[float] = None,
    ) -> ImportResult:
        """Replaces the active world with the world inside ``archive``.

        Args:
            archive: Path to a tar archive, or a readable binary stream.
            consume: Delete the archive file when done, whatever the outcome.
            lock_timeout: Seconds to wait for a running operation to finish.
                None waits indefinitely.

        Raises:
            WorldBusyError: If the lock could not be acquired in time.
            InvalidArchiveError: Malformed archive or no world marker found.
                Nothing was changed.
            ServiceStopError: The service did not stop. Nothing was changed.
            ArchiveExtractionError: Extraction failed for local reasons.
                Nothing was changed.
            FilesystemError: A rename or remove failed. If ``backup_path`` is
                set, the previous world is only available in the backup area.
        """
        archive_path = (
            os.fspath(archive) if isinstance(archive, (str, os.PathLike)) else None
        )
        try:
            with self._world_lock(blocking=True, timeout=lock_timeout):
                return self._run_import(archive)
        finally:
            if consume and archive_path:
                try:
                    remove_path(archive_path, "uploaded archive")
                except FilesystemError:
                    logger.error(f"Uploaded archive '{archive_path}' was left behind.")

    def _run_import(self, archive) -> ImportResult:
        staging_dir: Optional[str] = None
        try:
            self._set_state(SwapState.VALIDATING)
            staging_dir = self.store.create_staging_dir()
            candidate = self._extract_and_locate(archive, staging_dir)

            self._set_state(SwapState.STOPPING_SERVICE)
            was_running = self._stop_for_import()

            self._set_state(SwapState.BACKING_UP)
            try:
                backup = self.store.backup_world(get_timestamp())
            except FilesystemError:
                # The rename did not happen, so the old world is still active.
                self._restart_after_abort(was_running)
                raise

            # Committed: the previous world now lives only in the backup area.
            self._set_state(SwapState.SWAPPING)
            self._swap_in(candidate, backup)

            self._set_state(SwapState.STARTING_SERVICE)
            return self._finish(was_running, backup)
        except BaseException:
            self._set_state(SwapState.ABORTING)
            raise
        finally:
            if staging_dir:
                try:
                    remove_path(staging_dir, "staging directory")
                except FilesystemError:
                    logger.error(f"Staging directory '{staging_dir}' was left behind.")

    def _extract_and_locate(self, archive, staging_dir: str) -> str:
        try:
            core_archive.extract_archive(archive, staging_dir)
        except ArchiveExtractionError as e:
            if e.malformed:
                raise InvalidArchiveError(f"Invalid world archive: {e}") from e
            raise

        candidate = find_world_root(
            staging_dir, self.marker, self.marker_search_depth
        )
        if candidate is None:
            logger.warning(f"Uploaded archive contains no '{self.marker}'.")
            raise InvalidArchiveError(
                f"Archive does not contain a world ('{self.marker}' not found)."
            )
        logger.info(
            f"World root located at '{os.path.relpath(candidate, staging_dir)}' "
            "inside the archive."
        )
        return candidate

    def _stop_for_import(self) -> bool:
        """Stops the service unless it is confirmed stopped.

        Returns True if it was (or may have been) running before.
        """
        initial = self.controller.query_state()
        if initial == ServiceState.STOPPED:
            logger.info(f"Service '{self.controller.service_name}' is not running.")
            return False

        result = self.controller.stop()
        if not result.success:
            raise ServiceStopError(
                self.controller.service_name,
                f"Could not stop the server before import: {result.message}",
            )
        return initial == ServiceState.RUNNING or result.changed

    def _swap_in(self, candidate: str, backup: Optional[BackupEntry]) -> None:
        try:
            atomic_replace(self.store.world_path, candidate)
        except FilesystemError as e:
            backup_path = backup.path if backup else None
            if backup_path:
                logger.critical(
                    f"World swap failed after the previous world was moved to "
                    f"'{backup_path}'. Restore it manually to '{self.store.world_path}'."
                )
                raise FilesystemError(
                    f"World swap failed: {e}. The previous world is preserved at "
                    f"'{backup_path}' and must be restored manually.",
                    backup_path=backup_path,
                ) from e
            raise

    def _start_with_retry(self) -> Optional[str]:
        """Starts the service. Returns None on success or the last error."""
        error = None
        for attempt in range(1, self.start_attempts + 1):
            try:
                result = self.controller.start()
            except (ServiceError, OSError) as e:
                logger.error(f"Service start raised: {e}", exc_info=True)
                error = str(e)
                continue
            if result.success:
                return None
            error = result.message
            logger.warning(
                f"Service start attempt {attempt}/{self.start_attempts} failed: {error}"
            )
        return error

    def _restart_after_abort(self, was_running: bool) -> None:
        if not was_running:
            return
        error = self._start_with_retry()
        if error:
            logger.error(f"Service could not be restarted after aborted import: {error}")

    def _finish(self, was_running: bool, backup: Optional[BackupEntry]) -> ImportResult:
        world_name = self.store.world_name
        backup_path = backup.path if backup else None
        backup_note = f" Previous world saved as '{backup.name}'." if backup else ""

        if not was_running:
            return ImportResult(
                success=True,
                message=f"World '{world_name}' imported successfully.{backup_note}",
                world_name=world_name,
                backup_path=backup_path,
            )

        error = self._start_with_retry()
        if error:
            warning = ServiceStartError(self.controller.service_name, error)
            logger.warning(f"World imported but service did not restart: {warning}")
            return ImportResult(
                success=True,
                message=(
                    f"World '{world_name}' imported, but service failed to restart."
                    f"{backup_note}"
                ),
                world_name=world_name,
                backup_path=backup_path,
                degraded=True,
                warning_code=warning.code,
            )

        return ImportResult(
            success=True,
            message=(
                f"World '{world_name}' imported successfully.{backup_note} "
                "The server was restarted."
            ),
            world_name=world_name,
            backup_path=backup_path,
            service_restarted=True,
        )
