"""
Immutable settings for backup runs.

The flat application config (Flask ``app.config`` or any mapping with the same
keys) is read once and turned into frozen objects that are handed to each
component, so nothing below the app layer looks settings up on its own.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


# Connect/operation timeout for remote transports, in seconds
TRANSPORT_TIMEOUT = 60

VALID_PROTOCOLS = ('ftp', 'ftps', 'sftp')


class ConfigurationError(Exception):
    """Raised when settings are missing or incomplete for an operation."""
    pass


class RetentionStrategy(Enum):
    """Retention policy strategies."""

    SIMPLE = 'simple'  # Keep the N most recent backups
    TIERED = 'tiered'  # Daily, then one per week, then one per month


def _as_bool(value: Any, default: bool) -> bool:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _as_int(value: Any, default: int) -> int:
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Expected an integer setting, got: {value!r}")


@dataclass(frozen=True)
class RetentionPolicy:
    """How many backups to keep, locally and on the remote server."""

    strategy: RetentionStrategy = RetentionStrategy.SIMPLE
    keep_count: int = 10
    daily_days: int = 10
    weekly_periods: int = 4
    monthly_periods: int = 6
    delete_remote: bool = True

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> 'RetentionPolicy':
        """
        Build a policy from flat config keys.

        Raises:
            ValueError: If the strategy name or a number is invalid
        """
        strategy_name = str(settings.get('RETENTION_STRATEGY') or 'simple').strip().lower()
        try:
            strategy = RetentionStrategy(strategy_name)
        except ValueError:
            raise ValueError(
                f"Invalid retention strategy: {strategy_name}. "
                f"Valid options: {[s.value for s in RetentionStrategy]}"
            )

        return cls(
            strategy=strategy,
            keep_count=_as_int(settings.get('BACKUP_RETENTION'), 10),
            daily_days=_as_int(settings.get('TIERED_RETENTION_DAILY'), 10),
            weekly_periods=_as_int(settings.get('TIERED_RETENTION_WEEKLY'), 4),
            monthly_periods=_as_int(settings.get('TIERED_RETENTION_MONTHLY'), 6),
            delete_remote=_as_bool(settings.get('DELETE_FROM_FTP'), True),
        )


@dataclass(frozen=True)
class TransportConfig:
    """Connection settings for the remote FTP/FTPS/SFTP server."""

    protocol: str = 'ftp'
    host: str = ''
    port: Optional[int] = None
    username: str = ''
    password: str = ''
    directory: str = '/'
    passive: bool = True
    private_key: Optional[str] = None
    passphrase: Optional[str] = None
    timeout: int = TRANSPORT_TIMEOUT

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> 'TransportConfig':
        protocol = str(settings.get('FTP_PROTOCOL') or 'ftp').strip().lower()
        if protocol not in VALID_PROTOCOLS:
            raise ValueError(
                f"Invalid transport protocol: {protocol}. "
                f"Valid options: {list(VALID_PROTOCOLS)}"
            )

        port = settings.get('FTP_PORT')
        return cls(
            protocol=protocol,
            host=settings.get('FTP_HOST') or '',
            port=_as_int(port, 0) or None,
            username=settings.get('FTP_USERNAME') or '',
            password=settings.get('FTP_PASSWORD') or '',
            directory=settings.get('FTP_DIRECTORY') or '/',
            passive=_as_bool(settings.get('FTP_PASSIVE'), True),
            private_key=settings.get('FTP_PRIVATE_KEY') or None,
            passphrase=settings.get('FTP_PASSPHRASE') or None,
        )

    @property
    def effective_port(self) -> int:
        if self.port:
            return self.port
        return 22 if self.protocol == 'sftp' else 21

    @property
    def is_configured(self) -> bool:
        """True if enough credentials are present to attempt a connection."""
        if not self.host or not self.username:
            return False
        if self.protocol == 'sftp':
            return bool(self.password or self.private_key)
        return bool(self.password)

    def validate(self):
        """
        Check credentials before any connection is attempted.

        Raises:
            ConfigurationError: If host, username or secret are missing
        """
        if self.is_configured:
            return
        if self.protocol == 'sftp':
            raise ConfigurationError('Incomplete SFTP settings. Unable to perform SFTP operations.')
        raise ConfigurationError('Incomplete FTP settings. Unable to perform FTP operations.')


@dataclass(frozen=True)
class BackupSettings:
    """Everything a backup run needs to know."""

    content_directory: str
    backup_directory: str
    file_prefix: str = 'backup-'
    site_url: str = ''
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
    transport: TransportConfig = field(default_factory=TransportConfig)

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> 'BackupSettings':
        """
        Build backup settings from flat config keys.

        A relative BACKUP_DIRECTORY is resolved against the parent of the
        content directory; when unset, backups live in ``<content>/.backups``.

        Raises:
            ConfigurationError: If CONTENT_DIRECTORY is not set
            ValueError: If a retention or transport value is invalid
        """
        content_directory = settings.get('CONTENT_DIRECTORY')
        if not content_directory:
            raise ConfigurationError('CONTENT_DIRECTORY is not configured')
        content_directory = os.path.abspath(content_directory)

        backup_directory = settings.get('BACKUP_DIRECTORY') or os.path.join(content_directory, '.backups')
        if not os.path.isabs(backup_directory):
            site_root = os.path.dirname(content_directory)
            backup_directory = os.path.join(site_root, backup_directory)

        return cls(
            content_directory=content_directory,
            backup_directory=os.path.abspath(backup_directory),
            file_prefix=settings.get('FILE_PREFIX', 'backup-') or '',
            site_url=settings.get('SITE_URL') or '',
            retention=RetentionPolicy.from_mapping(settings),
            transport=TransportConfig.from_mapping(settings),
        )
