# minecraft_world_manager/core/archive.py
"""
Creates and extracts tar archives of a single-root directory tree.

The codec knows nothing about worlds. Archives produced here contain exactly one
top-level directory named after the source directory. Extraction refuses any
entry that would land outside the destination directory, since uploaded
archives are untrusted.
"""

import os
import logging
import tarfile
from typing import BinaryIO, Union

from minecraft_world_manager.error import (
    ArchiveCreationError,
    ArchiveExtractionError,
    MissingArgumentError,
)

logger = logging.getLogger(__name__)

ArchiveSource = Union[str, "os.PathLike[str]", BinaryIO]


def create_archive(source_dir: str, output_path: str) -> str:
    """
    Writes ``source_dir`` into an uncompressed tar archive at ``output_path``.

    Entries are rooted at the basename of ``source_dir``. The source is only
    read. If writing fails, the partial archive is removed.

    Args:
        source_dir: The directory to archive.
        output_path: Path of the archive file to create.

    Returns:
        ``output_path``.

    Raises:
        MissingArgumentError: If either argument is empty.
        ArchiveCreationError: If the source is not a directory or tar fails.
    """
    if not source_dir:
        raise MissingArgumentError("Source directory cannot be empty.")
    if not output_path:
        raise MissingArgumentError("Archive output path cannot be empty.")

    source_dir = os.path.abspath(source_dir)
    if not os.path.isdir(source_dir):
        raise ArchiveCreationError(
            f"Source directory not found or is not a directory: '{source_dir}'"
        )

    root_name = os.path.basename(source_dir.rstrip(os.sep))
    logger.info(f"Creating archive '{output_path}' from '{source_dir}'...")
    try:
        with tarfile.open(output_path, "w") as tar:
            tar.add(source_dir, arcname=root_name, recursive=True)
    except (tarfile.TarError, OSError) as e:
        logger.error(
            f"Failed to create archive '{output_path}' from '{source_dir}': {e}",
            exc_info=True,
        )
        _remove_partial_file(output_path)
        raise ArchiveCreationError(
            f"Failed to create archive from '{root_name}': {e}"
        ) from e

    logger.info(f"Archive created: {output_path}")
    return output_path


def _remove_partial_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove partial archive '{path}': {e}")


def _is_within_directory(dest_dir: str, target: str) -> bool:
    dest_dir = os.path.realpath(dest_dir)
    target = os.path.realpath(target)
    return os.path.commonpath([dest_dir, target]) == dest_dir


def _check_member(member: tarfile.TarInfo, dest_dir: str) -> None:
    """Raises ArchiveExtractionError if ``member`` would escape ``dest_dir``."""
    name = member.name
    parts = name.replace("\\", "/").split("/")
    if os.path.isabs(name) or name.startswith(("/", "\\")) or ".." in parts:
        raise ArchiveExtractionError(
            f"Archive entry '{name}' points outside the extraction directory.",
            malformed=True,
        )
    if not _is_within_directory(dest_dir, os.path.join(dest_dir, name)):
        raise ArchiveExtractionError(
            f"Archive entry '{name}' points outside the extraction directory.",
            malformed=True,
        )
    if member.issym() or member.islnk():
        link_base = (
            os.path.dirname(os.path.join(dest_dir, name))
            if member.issym()
            else dest_dir
        )
        if os.path.isabs(member.linkname) or not _is_within_directory(
            dest_dir, os.path.join(link_base, member.linkname)
        ):
            raise ArchiveExtractionError(
                f"Archive link '{name}' -> '{member.linkname}' points outside "
                "the extraction directory.",
                malformed=True,
            )
    if member.isdev():
        raise ArchiveExtractionError(
            f"Archive entry '{name}' is a device file.", malformed=True
        )


def extract_archive(source: ArchiveSource, dest_dir: str) -> None:
    """
    Extracts every entry of a tar archive into ``dest_dir``.

    ``source`` may be a path or a readable binary stream; streams are read
    sequentially so they need not be seekable. Compressed tars are accepted.

    On failure, files already written stay in ``dest_dir``; the caller owns
    cleanup.

    Args:
        source: Archive path or binary stream.
        dest_dir: Existing, empty destination directory.

    Raises:
        MissingArgumentError: If ``dest_dir`` is empty.
        ArchiveExtractionError: On a malformed or truncated archive, an entry
            that escapes ``dest_dir`` (``malformed=True``), or a local write
            failure (``malformed=False``).
    """
    if not dest_dir:
        raise MissingArgumentError("Destination directory cannot be empty.")
    if not os.path.isdir(dest_dir):
        raise ArchiveExtractionError(
            f"Extraction directory does not exist: '{dest_dir}'"
        )

    if isinstance(source, (str, os.PathLike)):
        open_kwargs = {"name": os.fspath(source), "mode": "r:*"}
        source_label = os.fspath(source)
    else:
        open_kwargs = {"fileobj": source, "mode": "r|*"}
        source_label = "<stream>"

    logger.info(f"Extracting archive '{source_label}' into '{dest_dir}'...")
    count = 0
    try:
        with tarfile.open(**open_kwargs) as tar:
            for member in tar:
                _check_member(member, dest_dir)
                tar.extract(member, dest_dir, filter="data")
                count += 1
    except ArchiveExtractionError:
        raise
    except (tarfile.TarError, EOFError) as e:
        logger.warning(f"Archive '{source_label}' is malformed or truncated: {e}")
        raise ArchiveExtractionError(
            f"Archive is malformed or truncated: {e}", malformed=True
        ) from e
    except OSError as e:
        logger.error(
            f"Failed writing extracted files into '{dest_dir}': {e}", exc_info=True
        )
        raise ArchiveExtractionError(f"Failed to write extracted files: {e}") from e

    logger.info(f"Extracted {count} entries from '{source_label}'.")
