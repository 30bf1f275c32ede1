# minecraft_world_manager/error.py
"""
Custom exception hierarchy for the world manager.

Every exception carries a stable ``code`` string and an ``http_status`` hint so
that the API and web layers can report failures consistently without leaking
internal details to callers.
"""

from typing import Optional


class WorldManagerError(Exception):
    """Base class for all application errors."""

    code = "world_manager_error"
    http_status = 500

    def __init__(self, message: str = "", *args):
        super().__init__(message, *args)
        self.message = message or self.__class__.__doc__ or self.code

    def __str__(self) -> str:
        return self.message


# --- Input / client errors ---


class UserInputError(WorldManagerError):
    """Base class for errors caused by the caller's input."""

    code = "invalid_input"
    http_status = 400


class MissingArgumentError(UserInputError):
    """A required argument was empty or not provided."""

    code = "missing_argument"


class InvalidArchiveError(UserInputError):
    """The uploaded archive is malformed or does not contain a world."""

    code = "invalid_archive"


class UploadRejectedError(UserInputError):
    """An upload was refused before extraction (wrong type or too large)."""

    code = "upload_rejected"

    def __init__(self, message: str, http_status: int = 400):
        super().__init__(message)
        self.http_status = http_status


class WorldNotFoundError(UserInputError):
    """No active world directory exists."""

    code = "world_not_found"
    http_status = 404


class WorldBusyError(WorldManagerError):
    """Another world operation currently holds the world lock."""

    code = "world_busy"
    http_status = 423


# --- Service errors ---


class ServiceError(WorldManagerError):
    """Base class for failures talking to the managed game service."""

    code = "service_error"
    http_status = 503

    def __init__(self, service_name: str, message: str = ""):
        self.service_name = service_name
        super().__init__(message or f"Service '{service_name}' error")


class ServiceStopError(ServiceError):
    """The service did not reach the stopped state in time."""

    code = "service_stop_failed"


class ServiceStartError(ServiceError):
    """The service did not reach the running state in time."""

    code = "service_start_failed"


# --- Archive and filesystem errors ---


class ArchiveCreationError(WorldManagerError):
    """Creating an archive from a directory failed."""

    code = "archive_creation_failed"


class ArchiveExtractionError(WorldManagerError):
    """Extracting an archive failed."""

    code = "archive_extraction_failed"

    def __init__(self, message: str, malformed: bool = False):
        super().__init__(message)
        # True when the stream itself is bad, False for local write failures.
        self.malformed = malformed


class FilesystemError(WorldManagerError):
    """A rename or remove on the world store failed."""

    code = "filesystem_error"

    def __init__(self, message: str, backup_path: Optional[str] = None):
        super().__init__(message)
        self.backup_path = backup_path


class ConfigurationError(WorldManagerError):
    """Settings could not be loaded or are invalid."""

    code = "configuration_error"
