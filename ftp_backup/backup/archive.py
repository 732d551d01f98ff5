"""
Archive creation for content backups.

A backup is a single zip of the content directory. Archives are named
``{prefix}{YYYY-MM-DD-HHMMSS}.zip`` so their creation time can be recovered
from the name alone on remote servers.
"""

import logging
import os
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from .dates import format_backup_timestamp


logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = 'zip'


class ArchiveError(Exception):
    """Raised when archive creation fails."""
    pass


def create_archive(source_dir: str, archive_path: str, exclude: Optional[str] = None) -> str:
    """
    Zip a directory tree into a single archive.

    Every directory is stored as its own entry so empty directories survive a
    restore. Symlinked directories are not descended into.

    Args:
        source_dir: Directory to archive
        archive_path: Full path of the zip file to write
        exclude: Optional path (absolute, or relative to source_dir) left out
            of the archive together with everything below it

    Returns:
        Path to the created archive file

    Raises:
        ArchiveError: If the source is missing or the archive cannot be written
    """
    source = Path(source_dir)
    if not source.is_dir():
        raise ArchiveError(f"Source directory does not exist: {source_dir}")

    source = source.resolve()
    excluded = None
    if exclude:
        excluded = Path(exclude)
        if not excluded.is_absolute():
            excluded = source / excluded
        excluded = excluded.resolve()

    target = Path(archive_path).resolve()

    try:
        with zipfile.ZipFile(target, 'w', zipfile.ZIP_DEFLATED) as zipf:
            _add_directory_to_zip(zipf, source, excluded, target)
        return str(archive_path)
    except Exception as e:
        # Clean up partial archive on failure
        if target.exists():
            target.unlink()
        raise ArchiveError(f"Cannot create zip file: {e}")


def _is_excluded(path: Path, excluded: Optional[Path]) -> bool:
    if excluded is None:
        return False
    return path == excluded or excluded in path.parents


def _add_directory_to_zip(zipf: zipfile.ZipFile, source: Path, excluded: Optional[Path], target: Path):
    """
    Walk the source tree and add directories and files to the archive.

    Args:
        zipf: Open ZipFile object
        source: Resolved source directory
        excluded: Resolved path to leave out, or None
        target: Resolved path of the archive being written
    """
    for dirpath, dirnames, filenames in os.walk(source, followlinks=False):
        current = Path(dirpath)

        kept_dirs = []
        for name in sorted(dirnames):
            path = current / name
            if _is_excluded(path, excluded):
                continue
            if path.is_symlink():
                logger.debug("Skipping symlinked directory: %s", path)
                continue
            zipf.write(path, path.relative_to(source).as_posix() + '/')
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            path = current / name
            if path == target or _is_excluded(path, excluded):
                continue
            if not path.exists():
                logger.warning("Skipping broken link: %s", path)
                continue
            zipf.write(path, path.relative_to(source).as_posix())


def generate_archive_filename(prefix: str = 'backup-', now: Optional[datetime] = None) -> str:
    """
    Generate a standardized archive filename.

    Format: {prefix}{YYYY-MM-DD-HHMMSS}.zip

    Args:
        prefix: Filename prefix
        now: Creation time (default: current local time)

    Returns:
        Filename (without path)
    """
    moment = now or datetime.now()
    return f"{prefix}{format_backup_timestamp(moment)}.{ARCHIVE_EXTENSION}"


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        ArchiveError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError:
        raise ArchiveError(f"Archive not found: {archive_path}")
    except OSError as e:
        raise ArchiveError(f"Failed to get archive size: {e}")
