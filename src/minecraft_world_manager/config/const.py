# minecraft_world_manager/config/const.py
from importlib.metadata import version, PackageNotFoundError

# --- Package Constants ---
package_name = "minecraft-world-manager"
app_name_title = package_name.replace("-", " ").title()
app_author = "minecraft-world-manager"
env_name = package_name.replace("-", "_").upper()

# --- World Constants ---
WORLD_MARKER_FILENAME = "level.dat"
ARCHIVE_EXTENSION = ".tar"
EXPORT_FILENAME_TEMPLATE = "world-backup-{date}.tar"
BACKUP_NAME_TEMPLATE = "{world_name}_backup_{timestamp}"


def get_installed_version() -> str:
    try:
        installed_version = version(package_name)
        return installed_version
    except PackageNotFoundError:
        installed_version = "0.0.0"
        return installed_version
