"""
Storage handlers for backup archives.

Supports:
- LocalStorage: the backup directory on this machine
- RemoteStorage: the backup directory on the remote server, through a
  connected transport
"""

import os
import posixpath
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .archive import ARCHIVE_EXTENSION
from .transport import Transport, TransportOperationError


SIZE_UNITS = ['B', 'KB', 'MB', 'GB', 'TB']


class StorageError(Exception):
    """Raised when a local storage operation fails."""
    pass


def format_size(num_bytes: int) -> str:
    """
    Format a byte count for humans, e.g. ``1.5 MB``.

    Args:
        num_bytes: Size in bytes (negative values count as 0)
    """
    value = float(max(num_bytes, 0))
    power = 0
    while value >= 1024 and power < len(SIZE_UNITS) - 1:
        value /= 1024
        power += 1
    return f"{round(value, 2):g} {SIZE_UNITS[power]}"


def format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).strftime('%Y-%m-%d %H:%M:%S')


def is_backup_file(filename: str) -> bool:
    return filename.endswith(f'.{ARCHIVE_EXTENSION}')


class LocalStorage:
    """
    Handler for backups stored in the local backup directory.

    Only top-level ``.zip`` files count as backups; anything else in the
    directory is left alone.
    """

    def __init__(self, base_path: str):
        """
        Initialize local storage handler.

        Args:
            base_path: Backup directory (created if it doesn't exist)

        Raises:
            StorageError: If the directory cannot be created
        """
        self.base_path = Path(base_path)

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create backup directory {self.base_path}: {e}")

    def list_backups(self) -> List[Dict[str, Any]]:
        """
        List backup archives, newest first.

        Returns:
            List of dicts with 'filename', 'path', 'size' and 'modified'
            (epoch seconds) keys

        Raises:
            StorageError: If listing fails
        """
        try:
            backups = []

            for file_path in self.base_path.iterdir():
                if file_path.is_file() and is_backup_file(file_path.name):
                    stat = file_path.stat()
                    backups.append({
                        'filename': file_path.name,
                        'path': str(file_path),
                        'size': stat.st_size,
                        'modified': int(stat.st_mtime)
                    })

        except OSError as e:
            raise StorageError(f"Failed to list local backups: {e}")

        backups.sort(key=lambda b: (b['modified'], b['filename']), reverse=True)
        return backups

    def delete(self, filename: str):
        """
        Delete a backup from the backup directory.

        Raises:
            StorageError: If the name is not a plain filename or deletion fails
        """
        full_path = Path(self.get_full_path(filename))

        try:
            if full_path.exists():
                full_path.unlink()
        except PermissionError as e:
            raise StorageError(f"Permission denied deleting {full_path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to delete local backup {filename}: {e}")

    def exists(self, filename: str) -> bool:
        return Path(self.get_full_path(filename)).is_file()

    def get_full_path(self, filename: str) -> str:
        """
        Get full filesystem path of a backup.

        Raises:
            StorageError: If filename contains a path component
        """
        if not filename or os.path.basename(filename) != filename or filename in ('.', '..'):
            raise StorageError(f"Invalid backup filename: {filename}")
        return str(self.base_path / filename)

    def stats(self) -> Dict[str, Any]:
        """Count, total size and latest backup of the local directory."""
        backups = self.list_backups()
        total_size = sum(b['size'] for b in backups)
        latest = backups[0] if backups else None

        return {
            'count': len(backups),
            'total_size': total_size,
            'formatted_total_size': format_size(total_size),
            'latest_backup': {
                'filename': latest['filename'],
                'size': latest['size'],
                'modified': latest['modified'],
                'formatted_date': format_timestamp(latest['modified'])
            } if latest else None
        }


class RemoteStorage:
    """
    Handler for backups on the remote server.

    Wraps an already connected transport; connection lifetime is owned by
    the caller.
    """

    def __init__(self, transport: Transport, directory: str = '/'):
        self.transport = transport
        self.directory = directory or '/'

    def remote_path(self, filename: str) -> str:
        return posixpath.join(self.directory, filename)

    def upload(self, local_path: str) -> str:
        """
        Upload an archive into the remote directory.

        Returns:
            Remote path of the uploaded file

        Raises:
            TransportError: If the upload fails
        """
        remote_path = self.remote_path(os.path.basename(local_path))
        self.transport.upload(local_path, remote_path)
        return remote_path

    def delete(self, filename: str):
        self.transport.delete(self.remote_path(filename))

    def list_backups(self) -> List[str]:
        """
        List backup filenames in the remote directory.

        Raises:
            TransportError: If listing fails
        """
        return [name for name in self.transport.list(self.directory) if is_backup_file(name)]

    def stats(self) -> Dict[str, Any]:
        """
        Size and modification time of every remote backup.

        Files whose details cannot be read are still listed, with size 0 and
        an 'Unknown' date.

        Raises:
            TransportError: If listing fails
        """
        files = []
        total_size = 0
        latest_modified = 0

        for filename in self.list_backups():
            path = self.remote_path(filename)
            try:
                size = self.transport.stat_size(path)
                modified = self.transport.stat_mtime(path)
            except TransportOperationError:
                files.append({
                    'filename': filename,
                    'size': 0,
                    'formatted_size': 'Unknown',
                    'modified': 0,
                    'formatted_date': 'Unknown'
                })
                continue

            files.append({
                'filename': filename,
                'size': size,
                'formatted_size': format_size(size),
                'modified': modified,
                'formatted_date': format_timestamp(modified)
            })
            total_size += size
            latest_modified = max(latest_modified, modified)

        files.sort(key=lambda f: f['modified'], reverse=True)

        return {
            'files': files,
            'count': len(files),
            'total_size': total_size,
            'formatted_total_size': format_size(total_size),
            'latest_modified': format_timestamp(latest_modified) if latest_modified else 'None'
        }
