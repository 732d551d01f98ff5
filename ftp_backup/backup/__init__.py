"""
Backup module for ftp-backup.

This module handles the core backup functionality including:
- Archive creation
- Filename date extraction
- Retention policy selection (simple and tiered)
- Remote transports (FTP, FTPS, SFTP)
- Storage (local directory and remote server)
- Execution orchestration
"""

from .archive import create_archive, ArchiveError
from .dates import extract_timestamp
from .executor import BackupExecutor
from .results import BackupResult, StepResult
from .retention import (
    BackupRecord,
    RetentionManager,
    apply_tiered_retention,
    partition_tiered,
    records_from_filenames,
    select_for_deletion,
)
from .settings import BackupSettings, ConfigurationError, RetentionPolicy, RetentionStrategy, TransportConfig
from .storage import LocalStorage, RemoteStorage, StorageError
from .transport import FtpTransport, SftpTransport, TransportError, create_transport

__all__ = [
    'create_archive',
    'ArchiveError',
    'extract_timestamp',
    'BackupExecutor',
    'BackupResult',
    'StepResult',
    'BackupRecord',
    'RetentionManager',
    'apply_tiered_retention',
    'partition_tiered',
    'records_from_filenames',
    'select_for_deletion',
    'BackupSettings',
    'ConfigurationError',
    'RetentionPolicy',
    'RetentionStrategy',
    'TransportConfig',
    'LocalStorage',
    'RemoteStorage',
    'StorageError',
    'FtpTransport',
    'SftpTransport',
    'TransportError',
    'create_transport'
]
