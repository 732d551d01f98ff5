"""
Backup executor - orchestrates the complete backup workflow.

Workflow:
1. Create the zip archive of the content directory
2. Upload it to the remote server (optional, non-fatal on failure)
3. Apply retention to the local backup directory
4. Apply retention to the remote directory (if enabled)
5. Release the remote connection and report one BackupResult

Only a failure to create the archive fails the run. Remote problems are
recorded in the result and never undo the local backup.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .archive import create_archive, generate_archive_filename, get_archive_size, ArchiveError
from .results import BackupResult, StepResult
from .retention import RetentionManager
from .settings import BackupSettings, ConfigurationError, TransportConfig
from .storage import LocalStorage, RemoteStorage, StorageError
from .transport import Transport, TransportError, create_transport


logger = logging.getLogger(__name__)


class BackupExecutor:
    """
    Orchestrates a backup run against one BackupSettings.

    The remote connection is opened at most once per run, shared by upload
    and remote retention, and always closed before the result is returned.
    """

    def __init__(
        self,
        settings: BackupSettings,
        transport_factory: Callable[[TransportConfig], Transport] = create_transport
    ):
        """
        Initialize backup executor.

        Args:
            settings: BackupSettings for this run
            transport_factory: Builds an unconnected transport from a
                TransportConfig (default: create_transport)
        """
        self.settings = settings
        self.transport_factory = transport_factory
        self.transport = None
        self.archive_path = None
        self.logs = []
        self._connect_error = None

    def execute(self, upload: bool = True) -> BackupResult:
        """
        Create a backup, upload it and apply retention.

        Args:
            upload: Whether to upload the new archive to the remote server

        Returns:
            BackupResult; success is False only if the archive couldn't be created
        """
        self._log("Starting backup")

        try:
            storage = LocalStorage(self.settings.backup_directory)
            self.archive_path = self._create_archive()
            size = get_archive_size(self.archive_path)
        except (ArchiveError, StorageError) as e:
            self._log(f"Backup failed: {e}")
            return BackupResult(success=False, message=f"Backup failed: {e}", logs=self.logs)

        filename = os.path.basename(self.archive_path)
        self._log(f"Archive created: {filename} ({size / 1024 / 1024:.2f} MB)")

        try:
            upload_result = self._upload() if upload else None
            local_result, remote_result = self._apply_retention(storage)
        finally:
            self._disconnect()

        if upload_result is None:
            message = 'Backup created successfully'
        elif upload_result.ok:
            message = 'Backup created successfully and uploaded to remote server'
        else:
            message = f"Backup created successfully, but not uploaded: {upload_result.message}"

        message = self._join_messages(message, local_result, remote_result)
        self._log(message)

        return BackupResult(
            success=True,
            message=message,
            filename=filename,
            size_bytes=size,
            upload=upload_result,
            local_cleanup=local_result,
            remote_cleanup=remote_result,
            logs=self.logs
        )

    def cleanup(self) -> BackupResult:
        """
        Apply retention to existing backups without creating a new one.

        Returns:
            BackupResult; success is False only if the local directory is unusable
        """
        self._log("Starting retention cleanup")

        try:
            storage = LocalStorage(self.settings.backup_directory)
        except StorageError as e:
            self._log(f"Cleanup failed: {e}")
            return BackupResult(success=False, message=f"Cleanup failed: {e}", logs=self.logs)

        try:
            local_result, remote_result = self._apply_retention(storage)
        finally:
            self._disconnect()

        message = self._join_messages('Cleanup finished', local_result, remote_result)
        self._log(message)

        return BackupResult(
            success=local_result.ok,
            message=message,
            local_cleanup=local_result,
            remote_cleanup=remote_result,
            logs=self.logs
        )

    def remote_stats(self) -> Dict[str, Any]:
        """
        Collect file list and totals from the remote server.

        Returns:
            Dict with 'status' ('success' or 'error') and either 'data' or 'message'
        """
        try:
            stats = self._remote_storage().stats()
        except ConfigurationError as e:
            return {'status': 'error', 'message': f"Failed to connect to remote server: {e}"}
        except TransportError as e:
            return {'status': 'error', 'message': f"Error retrieving remote server stats: {e}"}
        finally:
            self._disconnect()

        return {'status': 'success', 'data': stats}

    def _create_archive(self) -> str:
        """
        Create the zip archive in the backup directory.

        The backup directory itself is excluded when it lies inside the
        content directory.

        Returns:
            Path to created archive file

        Raises:
            ArchiveError: If archive creation fails
        """
        filename = generate_archive_filename(self.settings.file_prefix)
        archive_path = os.path.join(self.settings.backup_directory, filename)
        self._log(f"Creating archive of {self.settings.content_directory}")

        return create_archive(
            self.settings.content_directory,
            archive_path,
            exclude=self.settings.backup_directory
        )

    def _upload(self) -> StepResult:
        """Upload the archive; failures become a non-ok StepResult."""
        self._log("Uploading to remote server")

        try:
            remote_path = self._remote_storage().upload(self.archive_path)
        except ConfigurationError as e:
            self._log(f"Upload skipped: {e}")
            return StepResult(False, str(e))
        except TransportError as e:
            self._log(f"Upload failed: {e}")
            return StepResult(False, f"Upload failed: {e}")

        self._log(f"Uploaded to remote server: {remote_path}")
        return StepResult(True, f"Uploaded to {remote_path}", count=1)

    def _apply_retention(self, storage: LocalStorage):
        """
        Run local retention, then remote retention if enabled.

        Returns:
            Tuple of (local StepResult, remote StepResult or None)
        """
        manager = RetentionManager(self.settings.retention)
        local_result = manager.cleanup_local(storage)
        self._merge_logs(manager)

        remote_result = None
        if self.settings.retention.delete_remote:
            try:
                remote_storage = self._remote_storage()
            except ConfigurationError as e:
                self._log(f"Remote cleanup skipped: {e}")
                remote_result = StepResult(False, f"Remote cleanup skipped: {e}")
            except TransportError as e:
                self._log(f"Remote cleanup skipped: {e}")
                remote_result = StepResult(False, f"Failed to connect to remote server: {e}")
            else:
                remote_result = manager.cleanup_remote(remote_storage)
                self._merge_logs(manager)
        else:
            self._log("Remote cleanup disabled")

        return local_result, remote_result

    def _merge_logs(self, manager: RetentionManager):
        """Move the manager's log lines into the run log, keeping their order."""
        self.logs.extend(manager.logs)
        manager.logs = []

    def _remote_storage(self) -> RemoteStorage:
        """
        Connect on first use and wrap the transport in a RemoteStorage.

        A failed connection is remembered so later steps don't retry it.

        Raises:
            ConfigurationError: If credentials are incomplete
            TransportError: If connecting or logging in fails
        """
        if self._connect_error is not None:
            raise self._connect_error

        config = self.settings.transport
        if self.transport is None:
            try:
                transport = self.transport_factory(config)
                self._log(f"Connecting to {config.protocol.upper()} server {config.host}:{config.effective_port}")
                transport.connect()
            except (ConfigurationError, TransportError) as e:
                self._connect_error = e
                raise
            self.transport = transport

        return RemoteStorage(self.transport, config.directory)

    def _disconnect(self):
        if self.transport is not None:
            self.transport.disconnect()
            self.transport = None

    @staticmethod
    def _join_messages(message: str, local_result: StepResult, remote_result: Optional[StepResult]) -> str:
        parts = [message, local_result.message]
        if remote_result is not None:
            parts.append(remote_result.message)
        return '. '.join(parts)

    def _log(self, message: str):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(message)
