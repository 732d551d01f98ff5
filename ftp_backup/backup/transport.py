"""
Remote transports for shipping backups off-site.

Supports:
- FtpTransport: plain FTP or explicit FTPS (FTP over TLS)
- SftpTransport: SFTP over SSH with a password or a private key

Both expose the same capability set: connect, upload, delete, list,
stat_size, stat_mtime and disconnect. Every failure is raised as a
TransportError subclass.
"""

import ftplib
import logging
import os
import posixpath
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import paramiko
from paramiko import SSHClient, AutoAddPolicy

from .settings import ConfigurationError, TransportConfig


logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when a remote operation fails."""
    pass


class TransportConnectError(TransportError):
    """Raised when the remote server cannot be reached."""
    pass


class TransportAuthError(TransportError):
    """Raised when the remote server rejects the credentials."""
    pass


class TransportOperationError(TransportError):
    """Raised when an operation fails inside an open session."""
    pass


def _normalize_directory(directory: str) -> str:
    directory = directory.rstrip('/')
    return directory or '/'


class Transport:
    """
    Capability interface shared by the remote backends.

    Usable as a context manager; the connection is released on exit.
    """

    protocol = None

    def __init__(self, config: TransportConfig):
        self.host = config.host
        self.port = config.effective_port
        self.username = config.username
        self.password = config.password
        self.timeout = config.timeout

    def connect(self):
        raise NotImplementedError

    def upload(self, local_path: str, remote_path: str):
        raise NotImplementedError

    def delete(self, remote_path: str):
        raise NotImplementedError

    def list(self, remote_dir: str) -> List[str]:
        raise NotImplementedError

    def stat_size(self, remote_path: str) -> int:
        raise NotImplementedError

    def stat_mtime(self, remote_path: str) -> int:
        raise NotImplementedError

    def disconnect(self):
        raise NotImplementedError

    @property
    def is_connected(self) -> bool:
        raise NotImplementedError

    def _require_connection(self):
        if not self.is_connected:
            raise TransportOperationError(f"Not connected to {self.protocol.upper()} server")

    def _check_local_file(self, local_path: str):
        if not os.path.exists(local_path):
            raise TransportOperationError(f"Local file does not exist: {local_path}")
        if os.path.getsize(local_path) == 0:
            raise TransportOperationError(f"Local file is empty: {local_path}")


class FtpTransport(Transport):
    """
    FTP transport with optional explicit TLS.

    Passive mode is on by default; FTPS switches the data channel to
    protected mode after login.
    """

    def __init__(self, config: TransportConfig):
        super().__init__(config)
        self.use_tls = config.protocol == 'ftps'
        self.passive = config.passive
        self.protocol = 'ftps' if self.use_tls else 'ftp'
        self.ftp = None

    @property
    def is_connected(self) -> bool:
        return self.ftp is not None

    def connect(self):
        """
        Connect and log in to the FTP server.

        Raises:
            TransportConnectError: If the server cannot be reached
            TransportAuthError: If login fails
        """
        ftp = ftplib.FTP_TLS(timeout=self.timeout) if self.use_tls else ftplib.FTP(timeout=self.timeout)

        try:
            ftp.connect(self.host, self.port, timeout=self.timeout)
        except (OSError, EOFError, ftplib.Error) as e:
            ftp.close()
            raise TransportConnectError(f"Failed to connect to FTP server {self.host}:{self.port}: {e}")

        try:
            ftp.login(self.username, self.password)
            if self.use_tls:
                ftp.prot_p()
        except ftplib.error_perm as e:
            ftp.close()
            raise TransportAuthError(f"Failed to login to FTP server: Invalid credentials ({e})")
        except (OSError, EOFError, ftplib.Error) as e:
            ftp.close()
            raise TransportConnectError(f"FTP login to {self.host}:{self.port} failed: {e}")

        ftp.set_pasv(self.passive)
        self.ftp = ftp
        logger.debug("Connected to %s server %s:%s", self.protocol.upper(), self.host, self.port)

    def upload(self, local_path: str, remote_path: str):
        """
        Upload a file, creating the remote directory first if needed.

        Raises:
            TransportOperationError: If the local file is unusable or the upload fails
        """
        self._require_connection()
        self._check_local_file(local_path)

        try:
            self.make_dirs(posixpath.dirname(remote_path))
            with open(local_path, 'rb') as f:
                self.ftp.storbinary(f'STOR {remote_path}', f)
        except (OSError, EOFError, ftplib.Error) as e:
            raise TransportOperationError(f"Failed to upload file to FTP server: {remote_path} ({e})")

    def make_dirs(self, directory: str):
        """Create a remote directory and its parents if they don't exist."""
        if directory in ('', '/', '.'):
            return

        start = self.ftp.pwd()
        path = '/' if directory.startswith('/') else ''
        try:
            for part in directory.split('/'):
                if not part:
                    continue
                path = posixpath.join(path, part) if path else part
                try:
                    self.ftp.cwd(path)
                except ftplib.error_perm:
                    self.ftp.mkd(path)
                else:
                    self.ftp.cwd(start)
        finally:
            self.ftp.cwd(start)

    def delete(self, remote_path: str):
        self._require_connection()
        try:
            self.ftp.delete(remote_path)
        except (OSError, EOFError, ftplib.Error) as e:
            raise TransportOperationError(f"Failed to delete file from FTP server: {remote_path} ({e})")

    def list(self, remote_dir: str) -> List[str]:
        """
        List filenames (not paths) in a remote directory.

        Raises:
            TransportOperationError: If the listing fails
        """
        self._require_connection()
        directory = _normalize_directory(remote_dir)

        try:
            raw_list = self.ftp.nlst(directory)
        except (OSError, EOFError, ftplib.Error) as e:
            raise TransportOperationError(f"Failed to list directory on FTP server: {directory} ({e})")

        names = []
        for item in raw_list:
            name = posixpath.basename(item.rstrip('/'))
            if name and name not in ('.', '..'):
                names.append(name)
        return names

    def stat_size(self, remote_path: str) -> int:
        self._require_connection()
        try:
            self.ftp.voidcmd('TYPE I')
            size = self.ftp.size(remote_path)
        except (OSError, EOFError, ftplib.Error) as e:
            raise TransportOperationError(f"Failed to get file size from FTP server: {remote_path} ({e})")

        if size is None or size < 0:
            raise TransportOperationError(f"Failed to get file size from FTP server: {remote_path}")
        return size

    def stat_mtime(self, remote_path: str) -> int:
        """Modification time via MDTM, which servers report in UTC."""
        self._require_connection()
        try:
            response = self.ftp.voidcmd(f'MDTM {remote_path}')
            value = response.split(' ', 1)[1].strip()[:14]
            modified = datetime.strptime(value, '%Y%m%d%H%M%S').replace(tzinfo=timezone.utc)
        except (OSError, EOFError, ftplib.Error, IndexError, ValueError) as e:
            raise TransportOperationError(f"Failed to get modified time from FTP server: {remote_path} ({e})")
        return int(modified.timestamp())

    def disconnect(self):
        """Close the connection. Safe to call when not connected."""
        if self.ftp is None:
            return
        try:
            self.ftp.quit()
        except (OSError, EOFError, ftplib.Error) as e:
            logger.debug("FTP quit failed, closing socket: %s", e)
            self.ftp.close()
        finally:
            self.ftp = None


class SftpTransport(Transport):
    """
    SFTP transport over SSH.

    A private key (with optional passphrase) takes precedence over the
    password when both are configured.
    """

    protocol = 'sftp'

    def __init__(self, config: TransportConfig):
        super().__init__(config)
        self.private_key_path = config.private_key
        self.passphrase = config.passphrase
        self.ssh_client = None
        self.sftp_client = None

    @property
    def is_connected(self) -> bool:
        return self.sftp_client is not None

    def connect(self):
        """
        Establish the SSH connection and open an SFTP session.

        Raises:
            ConfigurationError: If the private key file does not exist
            TransportAuthError: If authentication fails
            TransportConnectError: If the server cannot be reached
        """
        connect_kwargs = {
            'hostname': self.host,
            'port': self.port,
            'username': self.username,
            'timeout': self.timeout,
            'allow_agent': False,
            'look_for_keys': False,
        }

        if self.private_key_path:
            key_path = Path(self.private_key_path).expanduser()
            if not key_path.exists():
                raise ConfigurationError(f"SFTP key error: private key not found: {self.private_key_path}")
            connect_kwargs['key_filename'] = str(key_path)
            if self.passphrase:
                connect_kwargs['passphrase'] = self.passphrase
        else:
            connect_kwargs['password'] = self.password

        client = SSHClient()
        client.set_missing_host_key_policy(AutoAddPolicy())

        try:
            client.connect(**connect_kwargs)
            sftp_client = client.open_sftp()
        except paramiko.AuthenticationException as e:
            client.close()
            raise TransportAuthError(f"SFTP authentication failed: {e}")
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise TransportConnectError(f"SFTP connection to {self.host}:{self.port} failed: {e}")

        self.ssh_client = client
        self.sftp_client = sftp_client
        logger.debug("Connected to SFTP server %s:%s", self.host, self.port)

    def upload(self, local_path: str, remote_path: str):
        """
        Upload a file; paramiko confirms the remote size matches afterwards.

        Raises:
            TransportOperationError: If the local file is unusable or the upload fails
        """
        self._require_connection()
        self._check_local_file(local_path)

        try:
            self.make_dirs(posixpath.dirname(remote_path))
            self.sftp_client.put(local_path, remote_path, confirm=True)
        except (OSError, paramiko.SSHException) as e:
            raise TransportOperationError(f"Failed to upload file to SFTP server: {remote_path} ({e})")

    def make_dirs(self, directory: str):
        """Create a remote directory and its parents if they don't exist."""
        directory = directory.rstrip('/')
        if directory in ('', '.'):
            return

        path = '/' if directory.startswith('/') else ''
        for part in directory.split('/'):
            if not part:
                continue
            path = posixpath.join(path, part) if path else part
            try:
                self.sftp_client.stat(path)
            except FileNotFoundError:
                self.sftp_client.mkdir(path)

    def delete(self, remote_path: str):
        self._require_connection()
        try:
            self.sftp_client.remove(remote_path)
        except (OSError, paramiko.SSHException) as e:
            raise TransportOperationError(f"Failed to delete file from SFTP server: {remote_path} ({e})")

    def list(self, remote_dir: str) -> List[str]:
        self._require_connection()
        directory = _normalize_directory(remote_dir)
        try:
            listing = self.sftp_client.listdir(directory)
        except (OSError, paramiko.SSHException) as e:
            raise TransportOperationError(f"Failed to list directory on SFTP server: {directory} ({e})")
        return [name for name in listing if name not in ('.', '..')]

    def stat_size(self, remote_path: str) -> int:
        return self._stat(remote_path).st_size

    def stat_mtime(self, remote_path: str) -> int:
        return int(self._stat(remote_path).st_mtime)

    def _stat(self, remote_path: str):
        self._require_connection()
        try:
            return self.sftp_client.stat(remote_path)
        except (OSError, paramiko.SSHException) as e:
            raise TransportOperationError(f"File does not exist on SFTP server: {remote_path} ({e})")

    def disconnect(self):
        """Close SFTP and SSH connections. Safe to call when not connected."""
        if self.sftp_client is not None:
            self.sftp_client.close()
            self.sftp_client = None

        if self.ssh_client is not None:
            self.ssh_client.close()
            self.ssh_client = None


def create_transport(config: TransportConfig) -> Transport:
    """
    Factory function to create the transport for the configured protocol.

    Args:
        config: TransportConfig with protocol and credentials

    Returns:
        FtpTransport or SftpTransport instance (not yet connected)

    Raises:
        ConfigurationError: If credentials are incomplete
        ValueError: If the protocol is invalid
    """
    config.validate()

    if config.protocol == 'sftp':
        return SftpTransport(config)
    elif config.protocol in ('ftp', 'ftps'):
        return FtpTransport(config)
    else:
        raise ValueError(f"Invalid transport protocol: {config.protocol}")
