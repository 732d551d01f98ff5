"""
Unit tests for archive creation (ftp_backup/backup/archive.py).
"""

import os
import zipfile
from datetime import datetime
from unittest.mock import patch

import pytest

from ftp_backup.backup.archive import (
    ArchiveError,
    create_archive,
    generate_archive_filename,
    get_archive_size,
)


class TestCreateArchive:
    """Test create_archive()."""

    def test_archive_contents(self, content_dir, tmp_path):
        """Test files and directories are stored relative to the source."""
        archive_path = tmp_path / 'out.zip'

        result = create_archive(str(content_dir), str(archive_path))

        assert result == str(archive_path)
        with zipfile.ZipFile(archive_path) as zipf:
            names = set(zipf.namelist())
            assert zipf.read('home/home.txt') == b'Title: Home'

        assert {'home/', 'home/home.txt', 'blog/', 'blog/post-1/', 'blog/post-1/article.txt'} <= names

    def test_empty_directory_preserved(self, content_dir, tmp_path):
        archive_path = tmp_path / 'out.zip'

        create_archive(str(content_dir), str(archive_path))

        with zipfile.ZipFile(archive_path) as zipf:
            assert 'empty/' in zipf.namelist()

    def test_excludes_backup_directory(self, content_dir, backup_dir):
        """Test the backup directory and the archive itself are left out."""
        backup_dir.mkdir()
        (backup_dir / 'backup-old.zip').write_bytes(b'old')
        archive_path = backup_dir / 'backup-new.zip'

        create_archive(str(content_dir), str(archive_path), exclude=str(backup_dir))

        with zipfile.ZipFile(archive_path) as zipf:
            names = zipf.namelist()
        assert not any(name.startswith('.backups') for name in names)
        assert 'home/home.txt' in names

    def test_relative_exclude(self, content_dir, tmp_path):
        archive_path = tmp_path / 'out.zip'

        create_archive(str(content_dir), str(archive_path), exclude='blog')

        with zipfile.ZipFile(archive_path) as zipf:
            names = zipf.namelist()
        assert not any(name.startswith('blog') for name in names)

    def test_symlinked_directory_not_followed(self, content_dir, tmp_path):
        outside = tmp_path / 'outside'
        outside.mkdir()
        (outside / 'secret.txt').write_text('secret')
        os.symlink(outside, content_dir / 'link')
        archive_path = tmp_path / 'out.zip'

        create_archive(str(content_dir), str(archive_path))

        with zipfile.ZipFile(archive_path) as zipf:
            names = zipf.namelist()
        assert not any(name.startswith('link') for name in names)

    def test_missing_source(self, tmp_path):
        with pytest.raises(ArchiveError, match='Source directory does not exist'):
            create_archive(str(tmp_path / 'missing'), str(tmp_path / 'out.zip'))

    def test_failure_removes_partial_archive(self, content_dir, tmp_path):
        """Test a write error leaves no partial archive behind."""
        archive_path = tmp_path / 'out.zip'

        with patch('ftp_backup.backup.archive.zipfile.ZipFile.write', side_effect=OSError('disk full')):
            with pytest.raises(ArchiveError, match='Cannot create zip file'):
                create_archive(str(content_dir), str(archive_path))

        assert not archive_path.exists()


class TestArchiveHelpers:
    """Test archive naming and size helpers."""

    def test_generate_archive_filename(self):
        filename = generate_archive_filename('site-', now=datetime(2024, 1, 15, 14, 30, 22))

        assert filename == 'site-2024-01-15-143022.zip'

    def test_generate_archive_filename_default_prefix(self):
        filename = generate_archive_filename()

        assert filename.startswith('backup-')
        assert filename.endswith('.zip')

    def test_get_archive_size(self, tmp_path):
        path = tmp_path / 'a.zip'
        path.write_bytes(b'x' * 42)

        assert get_archive_size(str(path)) == 42

    def test_get_archive_size_missing(self, tmp_path):
        with pytest.raises(ArchiveError, match='Archive not found'):
            get_archive_size(str(tmp_path / 'missing.zip'))
