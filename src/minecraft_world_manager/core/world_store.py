# minecraft_world_manager/core/world_store.py
"""
On-disk locations and directory primitives for the active world.

The store knows three areas: the active world directory, the backup area that
receives the previous world before every swap, and the temp area used for
uploads and staging extractions. Replacing a directory is always a rename so
that it is a single metadata change on one filesystem.
"""

import os
import re
import stat
import shutil
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from minecraft_world_manager.config.const import BACKUP_NAME_TEMPLATE
from minecraft_world_manager.error import FilesystemError, MissingArgumentError
from minecraft_world_manager.utils.general import get_timestamp

logger = logging.getLogger(__name__)

_BACKUP_NAME_RE = re.compile(r"^(?P<world>.+)_backup_(?P<ts>\d{8}_\d{6})(?:_\d+)?$")


@dataclass(frozen=True)
class WorldInfo:
    exists: bool
    name: str
    size: int
    path: str


@dataclass(frozen=True)
class BackupEntry:
    name: str
    path: str
    created_at: datetime
    size: int


_DIR_FLAGS = os.O_RDONLY | os.O_DIRECTORY


def _directory_size_fd(dir_fd: int, label: str) -> int:
    total = 0
    try:
        entries = list(os.scandir(dir_fd))
    except OSError as e:
        logger.debug(f"Skipping unreadable directory '{label}': {e}")
        return 0
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                child_fd = os.open(entry.name, _DIR_FLAGS | os.O_NOFOLLOW, dir_fd=dir_fd)
                try:
                    total += _directory_size_fd(
                        child_fd, os.path.join(label, entry.name)
                    )
                finally:
                    os.close(child_fd)
            elif entry.is_file(follow_symlinks=False):
                total += entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            logger.debug(
                f"Skipping unreadable entry '{os.path.join(label, entry.name)}': {e}"
            )
    return total


def directory_size(path: str) -> int:
    """Recursively sums file sizes below ``path``.

    The tree is walked through directory file descriptors, so a walk that
    overlaps a rename of ``path`` keeps counting the tree it started in.
    Entries that cannot be read are skipped. Symlinks are not followed.
    """
    try:
        fd = os.open(path, _DIR_FLAGS)
    except OSError as e:
        logger.debug(f"Skipping unreadable directory '{path}': {e}")
        return 0
    try:
        return _directory_size_fd(fd, path)
    finally:
        os.close(fd)


def _handle_remove_readonly_onexc(func, path, exc):
    """An error handler for `shutil.rmtree` to handle read-only files.

    If an `OSError` occurs because a file is read-only, this handler attempts
    to change its permissions to be writable and then retries the operation.
    """
    if isinstance(exc, FileNotFoundError):
        return
    if not os.access(path, os.W_OK):
        logger.debug(f"Path '{path}' is read-only. Attempting to make it writable.")
        os.chmod(path, stat.S_IWUSR | stat.S_IREAD | stat.S_IEXEC)
        func(path)
    else:
        raise exc


def remove_path(path: str, item_description: str) -> None:
    """Removes a file or directory tree. A missing path is not an error.

    Raises:
        FilesystemError: If the path exists and cannot be removed.
    """
    if not path:
        raise MissingArgumentError("Path to remove cannot be empty.")
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path, onexc=_handle_remove_readonly_onexc)
        else:
            os.remove(path)
    except FileNotFoundError:
        logger.debug(f"{item_description.capitalize()} at '{path}' already gone.")
        return
    except OSError as e:
        logger.error(
            f"Failed to delete {item_description} at '{path}': {e}", exc_info=True
        )
        raise FilesystemError(f"Failed to delete {item_description}: {e}") from e
    logger.debug(f"Deleted {item_description}: {path}")


def atomic_replace(old_path: str, new_path: str) -> None:
    """Moves ``new_path`` into ``old_path``'s location with a single rename.

    ``old_path`` must not exist any more; callers move the previous directory
    out of the way first.

    Raises:
        FilesystemError: If the rename fails, including when the two paths are
            on different filesystems.
    """
    if not old_path or not new_path:
        raise MissingArgumentError("Both paths are required for a replace.")
    if os.path.lexists(old_path):
        raise FilesystemError(f"Cannot replace '{old_path}': it still exists.")
    logger.debug(f"Renaming '{new_path}' -> '{old_path}'")
    try:
        os.rename(new_path, old_path)
    except OSError as e:
        logger.error(
            f"Failed to rename '{new_path}' to '{old_path}': {e}", exc_info=True
        )
        raise FilesystemError(
            f"Failed to move '{os.path.basename(new_path)}' into place: {e}"
        ) from e


def same_filesystem(path_a: str, path_b: str) -> bool:
    """True if both paths (or their nearest existing parents) share a device."""

    def _device(path: str) -> Optional[int]:
        path = os.path.abspath(path)
        while True:
            try:
                return os.stat(path).st_dev
            except FileNotFoundError:
                parent = os.path.dirname(path)
                if parent == path:
                    return None
                path = parent
            except OSError:
                return None

    dev_a, dev_b = _device(path_a), _device(path_b)
    return dev_a is not None and dev_a == dev_b


class WorldStore:
    """Paths and directory operations for one world."""

    def __init__(self, world_path: str, backup_dir: str, temp_dir: str):
        if not world_path:
            raise MissingArgumentError("World path cannot be empty.")
        if not backup_dir:
            raise MissingArgumentError("Backup directory cannot be empty.")
        if not temp_dir:
            raise MissingArgumentError("Temp directory cannot be empty.")
        self.world_path = os.path.abspath(world_path).rstrip(os.sep)
        self.backup_dir = os.path.abspath(backup_dir)
        self.temp_dir = os.path.abspath(temp_dir)

    @property
    def world_name(self) -> str:
        return os.path.basename(self.world_path)

    @property
    def world_parent(self) -> str:
        return os.path.dirname(self.world_path)

    def world_exists(self) -> bool:
        return os.path.isdir(self.world_path)

    def get_world_info(self) -> WorldInfo:
        """Existence and size of the world, read from one open directory."""
        try:
            fd = os.open(self.world_path, _DIR_FLAGS)
        except OSError as e:
            exists = os.path.isdir(self.world_path)
            if exists:
                logger.warning(f"Cannot read world directory '{self.world_path}': {e}")
            return WorldInfo(
                exists=exists, name=self.world_name, size=0, path=self.world_path
            )
        try:
            size = _directory_size_fd(fd, self.world_path)
        finally:
            os.close(fd)
        return WorldInfo(
            exists=True, name=self.world_name, size=size, path=self.world_path
        )

    # --- Temp area ---

    def staging_root(self) -> str:
        """Directory in which staging extractions are created.

        The temp area is used when it shares a filesystem with the world's
        parent; otherwise the world's parent is used so the final swap stays a
        rename.
        """
        os.makedirs(self.world_parent, exist_ok=True)
        if same_filesystem(self.temp_dir, self.world_parent):
            os.makedirs(self.temp_dir, exist_ok=True)
            return self.temp_dir
        logger.warning(
            f"Temp area '{self.temp_dir}' is on a different filesystem than "
            f"'{self.world_parent}'. Staging next to the world instead."
        )
        return self.world_parent

    def create_staging_dir(self) -> str:
        try:
            path = tempfile.mkdtemp(
                prefix=f".{self.world_name}_staging_", dir=self.staging_root()
            )
            # The staging root itself may become the world directory.
            os.chmod(path, 0o755)
        except OSError as e:
            raise FilesystemError(f"Could not create staging directory: {e}") from e
        logger.debug(f"Created staging directory: {path}")
        return path

    def create_temp_file(self, suffix: str = ".tar", prefix: str = "upload_") -> str:
        """Creates an empty file in the temp area and returns its path."""
        try:
            os.makedirs(self.temp_dir, exist_ok=True)
            fd, path = tempfile.mkstemp(suffix=suffix, prefix=prefix, dir=self.temp_dir)
            os.close(fd)
        except OSError as e:
            raise FilesystemError(f"Could not create temporary file: {e}") from e
        return path

    # --- Backups ---

    def _next_backup_path(self, timestamp: str) -> str:
        base_name = BACKUP_NAME_TEMPLATE.format(
            world_name=self.world_name, timestamp=timestamp
        )
        candidate = os.path.join(self.backup_dir, base_name)
        counter = 1
        while os.path.lexists(candidate):
            candidate = os.path.join(self.backup_dir, f"{base_name}_{counter}")
            counter += 1
        return candidate

    def backup_world(self, timestamp: Optional[str] = None) -> Optional[BackupEntry]:
        """Moves the active world into the backup area.

        Returns None if there is no active world. Existing backups are never
        overwritten.

        Raises:
            FilesystemError: If the backup area cannot be created or the rename
                fails. The active world is untouched in that case.
        """
        if not self.world_exists():
            logger.info(f"No active world at '{self.world_path}'; skipping backup.")
            return None

        timestamp = timestamp or get_timestamp()
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Cannot create backup directory '{self.backup_dir}': {e}"
            ) from e

        size = directory_size(self.world_path)
        backup_path = self._next_backup_path(timestamp)
        logger.info(f"Moving world '{self.world_path}' to backup '{backup_path}'...")
        try:
            os.rename(self.world_path, backup_path)
        except FileNotFoundError:
            logger.info(
                f"World at '{self.world_path}' disappeared before backup; skipping."
            )
            return None
        except OSError as e:
            logger.error(
                f"Failed to move world to backup '{backup_path}': {e}", exc_info=True
            )
            raise FilesystemError(f"Failed to back up the current world: {e}") from e

        return BackupEntry(
            name=os.path.basename(backup_path),
            path=backup_path,
            created_at=_parse_backup_time(timestamp) or datetime.now(),
            size=size,
        )

    def list_backups(self) -> List[BackupEntry]:
        """Returns this world's backups, newest first."""
        if not os.path.isdir(self.backup_dir):
            return []
        backups = []
        for entry in os.scandir(self.backup_dir):
            match = _BACKUP_NAME_RE.match(entry.name)
            if not match or match.group("world") != self.world_name:
                continue
            if not entry.is_dir(follow_symlinks=False):
                continue
            created_at = _parse_backup_time(match.group("ts"))
            if created_at is None:
                created_at = datetime.fromtimestamp(entry.stat().st_mtime)
            backups.append(
                BackupEntry(
                    name=entry.name,
                    path=entry.path,
                    created_at=created_at,
                    size=directory_size(entry.path),
                )
            )
        backups.sort(key=lambda b: (b.created_at, b.name), reverse=True)
        return backups


def _parse_backup_time(timestamp: str) -> Optional[datetime]:
    try:
        return datetime.strptime(timestamp, "%Y%m%d_%H%M%S")
    except ValueError:
        return None
