"""
Shared pytest fixtures for ftp-backup tests.

This module provides fixtures for:
- Flask app, test client and CLI runner
- Content tree and backup directory
- Backup settings built from the app config
- A fake transport recording remote operations
- Mock fixtures for external services (SSH)
"""

import os
from unittest.mock import MagicMock, patch

import pytest

from ftp_backup import create_app
from ftp_backup.backup.settings import BackupSettings
from ftp_backup.backup.transport import Transport, TransportOperationError


class FakeTransport(Transport):
    """
    In-memory transport.

    ``files`` maps remote paths to (size, mtime). Paths listed in
    ``fail_delete`` raise on delete; ``fail_upload`` makes every upload fail.
    """

    protocol = 'ftp'

    def __init__(self, config, files=None, fail_upload=False, fail_delete=()):
        super().__init__(config)
        self.files = dict(files or {})
        self.fail_upload = fail_upload
        self.fail_delete = set(fail_delete)
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.uploaded = []
        self.deleted = []

    @property
    def is_connected(self):
        return self.connected

    def connect(self):
        self.connect_calls += 1
        self.connected = True

    def upload(self, local_path, remote_path):
        self._require_connection()
        if self.fail_upload:
            raise TransportOperationError(f"Failed to upload file to FTP server: {remote_path}")
        self.files[remote_path] = (os.path.getsize(local_path), 0)
        self.uploaded.append(remote_path)

    def delete(self, remote_path):
        self._require_connection()
        if remote_path in self.fail_delete:
            raise TransportOperationError(f"Failed to delete file from FTP server: {remote_path}")
        self.files.pop(remote_path, None)
        self.deleted.append(remote_path)

    def list(self, remote_dir):
        self._require_connection()
        prefix = remote_dir.rstrip('/') + '/'
        return [path[len(prefix):] for path in self.files if path.startswith(prefix)]

    def stat_size(self, remote_path):
        if remote_path not in self.files:
            raise TransportOperationError(f"File does not exist: {remote_path}")
        return self.files[remote_path][0]

    def stat_mtime(self, remote_path):
        if remote_path not in self.files:
            raise TransportOperationError(f"File does not exist: {remote_path}")
        return self.files[remote_path][1]

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False


@pytest.fixture
def content_dir(tmp_path):
    """
    Create a content tree to back up.

    Creates:
    - home/home.txt
    - blog/post-1/article.txt
    - empty/ (empty directory)
    """
    content = tmp_path / 'content'
    (content / 'home').mkdir(parents=True)
    (content / 'home' / 'home.txt').write_text('Title: Home')
    (content / 'blog' / 'post-1').mkdir(parents=True)
    (content / 'blog' / 'post-1' / 'article.txt').write_text('Title: First post')
    (content / 'empty').mkdir()
    return content


@pytest.fixture
def backup_dir(content_dir):
    """Default backup directory inside the content tree."""
    return content_dir / '.backups'


@pytest.fixture(scope='function')
def app(content_dir, backup_dir):
    """
    Create Flask app with test configuration.

    Remote settings point at a dummy FTP server; tests that reach it patch
    the transport.
    """
    app = create_app('testing')

    app.config.update({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'CONTENT_DIRECTORY': str(content_dir),
        'BACKUP_DIRECTORY': str(backup_dir),
        'SITE_URL': 'https://example.com',
        'FTP_HOST': 'ftp.example.com',
        'FTP_USERNAME': 'backup',
        'FTP_PASSWORD': 'secret',
        'FTP_DIRECTORY': '/backups',
    })

    yield app


@pytest.fixture(scope='function')
def client(app):
    """Flask test client for making HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Flask CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def settings(app):
    """BackupSettings built from the test app config."""
    return BackupSettings.from_mapping(app.config)


@pytest.fixture
def make_transport(settings):
    """Factory for FakeTransports on the test transport config."""
    def _make(**kwargs):
        return FakeTransport(settings.transport, **kwargs)
    return _make


@pytest.fixture
def fake_transport(make_transport):
    """FakeTransport with no remote files."""
    return make_transport()


@pytest.fixture
def mock_ssh_client():
    """
    Mock paramiko SSHClient for SFTP testing.

    Returns a MagicMock that simulates SSH connections.
    """
    with patch('ftp_backup.backup.transport.SSHClient') as mock_ssh:
        # Mock SFTP client
        mock_sftp = MagicMock()
        mock_ssh.return_value.open_sftp.return_value = mock_sftp

        # Mock connection success
        mock_ssh.return_value.connect.return_value = None

        yield mock_ssh
