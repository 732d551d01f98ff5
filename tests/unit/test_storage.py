"""
Unit tests for storage handlers (ftp_backup/backup/storage.py).

Tests LocalStorage and RemoteStorage.
"""

import os
from unittest.mock import MagicMock

import pytest

from ftp_backup.backup.storage import LocalStorage, RemoteStorage, StorageError, format_size
from ftp_backup.backup.transport import TransportOperationError


class TestFormatSize:
    """Test format_size()."""

    @pytest.mark.parametrize('num_bytes,expected', [
        (0, '0 B'),
        (512, '512 B'),
        (1024, '1 KB'),
        (1536, '1.5 KB'),
        (1048576, '1 MB'),
        (5 * 1024 ** 3, '5 GB'),
    ])
    def test_format_size(self, num_bytes, expected):
        assert format_size(num_bytes) == expected


class TestLocalStorage:
    """Test LocalStorage class."""

    def test_creates_directory(self, tmp_path):
        base = tmp_path / 'nested' / 'backups'

        LocalStorage(str(base))

        assert base.is_dir()

    def test_list_backups_newest_first(self, tmp_path):
        """Test only top-level zip files are listed, newest first."""
        for name, mtime in [('a.zip', 1000), ('b.zip', 3000), ('c.zip', 2000)]:
            path = tmp_path / name
            path.write_bytes(b'PK')
            os.utime(path, (mtime, mtime))
        (tmp_path / 'notes.txt').write_text('x')
        (tmp_path / 'sub').mkdir()
        (tmp_path / 'sub' / 'd.zip').write_bytes(b'PK')

        backups = LocalStorage(str(tmp_path)).list_backups()

        assert [b['filename'] for b in backups] == ['b.zip', 'c.zip', 'a.zip']
        assert backups[0]['modified'] == 3000
        assert backups[0]['size'] == 2
        assert backups[0]['path'] == str(tmp_path / 'b.zip')

    def test_delete(self, tmp_path):
        (tmp_path / 'a.zip').write_bytes(b'PK')
        storage = LocalStorage(str(tmp_path))

        storage.delete('a.zip')

        assert not (tmp_path / 'a.zip').exists()
        assert storage.exists('a.zip') is False

    def test_rejects_path_components(self, tmp_path):
        storage = LocalStorage(str(tmp_path))

        with pytest.raises(StorageError, match='Invalid backup filename'):
            storage.get_full_path('../secret.zip')

        with pytest.raises(StorageError):
            storage.delete('..')

    def test_stats(self, tmp_path):
        for name, mtime in [('a.zip', 1000), ('b.zip', 2000)]:
            path = tmp_path / name
            path.write_bytes(b'x' * 1024)
            os.utime(path, (mtime, mtime))

        stats = LocalStorage(str(tmp_path)).stats()

        assert stats['count'] == 2
        assert stats['total_size'] == 2048
        assert stats['formatted_total_size'] == '2 KB'
        assert stats['latest_backup']['filename'] == 'b.zip'

    def test_stats_empty(self, tmp_path):
        stats = LocalStorage(str(tmp_path)).stats()

        assert stats['count'] == 0
        assert stats['latest_backup'] is None


class TestRemoteStorage:
    """Test RemoteStorage class."""

    def test_upload_into_directory(self, tmp_path, fake_transport):
        local = tmp_path / 'backup-2024-01-15-000000.zip'
        local.write_bytes(b'PK')
        fake_transport.connect()

        remote_path = RemoteStorage(fake_transport, '/backups').upload(str(local))

        assert remote_path == '/backups/backup-2024-01-15-000000.zip'
        assert fake_transport.uploaded == [remote_path]

    def test_list_backups_only_zip(self):
        transport = MagicMock()
        transport.list.return_value = ['a.zip', 'index.html', 'b.zip']

        names = RemoteStorage(transport, '/backups').list_backups()

        assert names == ['a.zip', 'b.zip']
        transport.list.assert_called_once_with('/backups')

    def test_stats_with_unreadable_file(self):
        """Test a file whose details fail is still listed as Unknown."""
        transport = MagicMock()
        transport.list.return_value = ['a.zip', 'b.zip']
        transport.stat_size.side_effect = [2048, TransportOperationError('SIZE not supported')]
        transport.stat_mtime.return_value = 1700000000

        stats = RemoteStorage(transport, '/backups').stats()

        assert stats['count'] == 2
        assert stats['total_size'] == 2048
        assert stats['formatted_total_size'] == '2 KB'
        by_name = {f['filename']: f for f in stats['files']}
        assert by_name['a.zip']['modified'] == 1700000000
        assert by_name['b.zip']['formatted_date'] == 'Unknown'
        assert stats['latest_modified'] != 'None'

    def test_stats_empty(self):
        transport = MagicMock()
        transport.list.return_value = []

        stats = RemoteStorage(transport, '/').stats()

        assert stats['count'] == 0
        assert stats['latest_modified'] == 'None'
