"""
APScheduler configuration and job scheduling for ftp-backup.

Manages:
- The scheduled backup job (based on the SCHEDULE_CRON expression)
- Scheduler state for the status endpoint
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.executors.pool import ThreadPoolExecutor

from ftp_backup.backup.executor import BackupExecutor
from ftp_backup.backup.settings import BackupSettings, ConfigurationError


logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'scheduled_backup'

# Global scheduler instance and Flask app reference
scheduler = None
flask_app = None


def init_scheduler(app):
    """
    Initialize and configure APScheduler.

    Adds the cron backup job when SCHEDULE_CRON is set.

    Args:
        app: Flask app instance

    Raises:
        ValueError: If SCHEDULE_CRON is not a valid crontab expression
    """
    global scheduler, flask_app

    if scheduler is not None:
        return scheduler

    # Store Flask app reference for use in background threads
    flask_app = app

    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one backup at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BackgroundScheduler(
        executors=executors,
        job_defaults=job_defaults,
        timezone=app.config.get('SCHEDULER_TIMEZONE', 'UTC')
    )

    cron = app.config.get('SCHEDULE_CRON')
    if cron:
        trigger = CronTrigger.from_crontab(cron, timezone=app.config.get('SCHEDULER_TIMEZONE', 'UTC'))
        scheduler.add_job(
            func=_execute_backup_wrapper,
            trigger=trigger,
            id=BACKUP_JOB_ID,
            name=f"Backup ({cron})",
            replace_existing=True
        )
        logger.info("Scheduled backup job: %s", cron)
    else:
        logger.info("SCHEDULE_CRON not set, no backup job scheduled")

    return scheduler


def start_scheduler():
    """
    Start the APScheduler.

    Should be called after Flask app is initialized.
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started (state=%s)", scheduler.state)

        for job in scheduler.get_jobs():
            next_run = job.next_run_time.isoformat() if job.next_run_time else 'N/A'
            logger.info("  - %s: %s (next run: %s)", job.id, job.name, next_run)
    else:
        logger.info("Scheduler already running (state=%s)", scheduler.state)


def stop_scheduler():
    """Stop the APScheduler."""
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")


def _execute_backup_wrapper(upload: bool = True):
    """
    Run a backup inside the stored app's context.

    Failures are logged; the scheduler thread never sees an exception.

    Args:
        upload: Whether to upload the archive to the remote server

    Returns:
        BackupResult, or None if the settings were invalid
    """
    with flask_app.app_context():
        try:
            settings = BackupSettings.from_mapping(flask_app.config)
        except (ConfigurationError, ValueError) as e:
            logger.error("Scheduled backup skipped, invalid configuration: %s", e)
            return None

        logger.info("Scheduler executing backup (upload=%s)", upload)
        result = BackupExecutor(settings).execute(upload=upload)

        if result.success:
            logger.info("Scheduled backup finished: %s", result.message)
        else:
            logger.error("Scheduled backup failed: %s", result.message)
        return result


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs.

    Returns:
        List of dicts with job information
    """
    if scheduler is None:
        return []

    jobs = []

    for job in scheduler.get_jobs():
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': job.next_run_time.isoformat() if job.next_run_time else None,
            'trigger': str(job.trigger)
        })

    return jobs


def is_scheduler_running() -> bool:
    """Check if the in-process scheduler is running."""
    return scheduler is not None and scheduler.running
