"""
Unit tests for scheduler (ftp_backup/scheduler.py).

Tests APScheduler configuration and job scheduling.
"""

from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger

from ftp_backup import scheduler as scheduler_module


class TestSchedulerInitialization:
    """Test scheduler initialization."""

    def teardown_method(self):
        """Clean up after each test."""
        # Reset global scheduler
        scheduler_module.scheduler = None
        scheduler_module.flask_app = None

    @patch('ftp_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler(self, mock_scheduler_class, app):
        """Test scheduler initialization with a cron expression."""
        app.config['SCHEDULE_CRON'] = '0 2 * * *'
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler

        result = scheduler_module.init_scheduler(app)

        assert result == mock_scheduler
        assert scheduler_module.scheduler == mock_scheduler
        assert scheduler_module.flask_app == app

        call_kwargs = mock_scheduler_class.call_args[1]
        assert call_kwargs['job_defaults']['max_instances'] == 1
        assert call_kwargs['job_defaults']['coalesce'] is True
        assert call_kwargs['timezone'] == 'UTC'

        add_kwargs = mock_scheduler.add_job.call_args[1]
        assert add_kwargs['id'] == scheduler_module.BACKUP_JOB_ID
        assert isinstance(add_kwargs['trigger'], CronTrigger)

    @patch('ftp_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler_without_cron(self, mock_scheduler_class, app):
        """Test no job is added when SCHEDULE_CRON is empty."""
        app.config['SCHEDULE_CRON'] = ''

        scheduler_module.init_scheduler(app)

        mock_scheduler_class.return_value.add_job.assert_not_called()

    @patch('ftp_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler_invalid_cron(self, mock_scheduler_class, app):
        app.config['SCHEDULE_CRON'] = 'every day'

        with pytest.raises(ValueError):
            scheduler_module.init_scheduler(app)

    @patch('ftp_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler_only_once(self, mock_scheduler_class, app):
        """Test scheduler is only initialized once."""
        result1 = scheduler_module.init_scheduler(app)
        result2 = scheduler_module.init_scheduler(app)

        assert result1 == result2
        mock_scheduler_class.assert_called_once()


class TestSchedulerLifecycle:
    """Test scheduler start/stop operations."""

    def setup_method(self):
        """Set up before each test."""
        self.mock_scheduler = MagicMock()
        self.mock_scheduler.running = False
        self.mock_scheduler.state = 0
        scheduler_module.scheduler = self.mock_scheduler

    def teardown_method(self):
        """Clean up after each test."""
        scheduler_module.scheduler = None
        scheduler_module.flask_app = None

    def test_start_scheduler(self):
        """Test starting the scheduler."""
        self.mock_scheduler.get_jobs.return_value = []

        scheduler_module.start_scheduler()

        self.mock_scheduler.start.assert_called_once()

    def test_start_scheduler_not_initialized(self):
        """Test starting scheduler before initialization raises error."""
        scheduler_module.scheduler = None

        with pytest.raises(RuntimeError, match="not initialized"):
            scheduler_module.start_scheduler()

    def test_start_scheduler_already_running(self):
        """Test starting scheduler when already running."""
        self.mock_scheduler.running = True

        scheduler_module.start_scheduler()

        self.mock_scheduler.start.assert_not_called()

    def test_stop_scheduler(self):
        """Test stopping the scheduler."""
        self.mock_scheduler.running = True

        scheduler_module.stop_scheduler()

        self.mock_scheduler.shutdown.assert_called_once()

    def test_stop_scheduler_not_running(self):
        """Test stopping scheduler when not running."""
        scheduler_module.stop_scheduler()

        self.mock_scheduler.shutdown.assert_not_called()

    def test_is_scheduler_running(self):
        assert scheduler_module.is_scheduler_running() is False

        self.mock_scheduler.running = True

        assert scheduler_module.is_scheduler_running() is True


class TestBackupExecution:
    """Test the scheduled backup wrapper and manual triggers."""

    def setup_method(self):
        """Set up before each test."""
        self.mock_scheduler = MagicMock()
        scheduler_module.scheduler = self.mock_scheduler

    def teardown_method(self):
        """Clean up after each test."""
        scheduler_module.scheduler = None
        scheduler_module.flask_app = None

    @patch('ftp_backup.scheduler.BackupExecutor')
    def test_wrapper_runs_executor(self, mock_executor_class, app):
        """Test the wrapper builds settings from the app and runs a backup."""
        scheduler_module.flask_app = app
        mock_result = MagicMock(success=True, message='Backup created successfully')
        mock_executor_class.return_value.execute.return_value = mock_result

        result = scheduler_module._execute_backup_wrapper()

        assert result == mock_result
        settings = mock_executor_class.call_args[0][0]
        assert settings.transport.host == 'ftp.example.com'
        mock_executor_class.return_value.execute.assert_called_once_with(upload=True)

    @patch('ftp_backup.scheduler.BackupExecutor')
    def test_wrapper_skips_invalid_settings(self, mock_executor_class, app):
        scheduler_module.flask_app = app
        app.config['RETENTION_STRATEGY'] = 'weekly'

        assert scheduler_module._execute_backup_wrapper() is None
        mock_executor_class.assert_not_called()

    def test_get_scheduled_jobs(self):
        mock_job = MagicMock()
        mock_job.id = scheduler_module.BACKUP_JOB_ID
        mock_job.name = 'Backup (0 2 * * *)'
        mock_job.next_run_time = None
        self.mock_scheduler.get_jobs.return_value = [mock_job]

        jobs = scheduler_module.get_scheduled_jobs()

        assert jobs[0]['id'] == scheduler_module.BACKUP_JOB_ID
        assert jobs[0]['next_run'] is None

    def test_get_scheduled_jobs_not_initialized(self):
        scheduler_module.scheduler = None

        assert scheduler_module.get_scheduled_jobs() == []
