"""
Command line interface, registered on the app as ``flask backup``.

Commands:
- create: create a backup (and upload it unless --no-upload)
- cleanup: apply retention without creating a backup
- list: show local backups
- remote: show backups on the remote server

Every command exits with 0 on success and 1 on failure, so it can run
from a system crontab.
"""

import click
from flask import current_app
from flask.cli import AppGroup

from ftp_backup.backup.executor import BackupExecutor
from ftp_backup.backup.settings import BackupSettings, ConfigurationError
from ftp_backup.backup.storage import LocalStorage, StorageError, format_size, format_timestamp


backup_cli = AppGroup('backup', help='Create and manage content backups.')


def _load_settings() -> BackupSettings:
    try:
        return BackupSettings.from_mapping(current_app.config)
    except (ConfigurationError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")


def _print_logs(logs, verbose: bool):
    if verbose:
        for line in logs:
            click.echo(line)


@backup_cli.command('create')
@click.option('--no-upload', is_flag=True, help='Keep the backup local only.')
@click.option('-v', '--verbose', is_flag=True, help='Print the run log.')
@click.pass_context
def create_command(ctx, no_upload, verbose):
    """Create a backup of the content directory."""
    settings = _load_settings()
    result = BackupExecutor(settings).execute(upload=not no_upload)

    _print_logs(result.logs, verbose)
    click.echo(result.message, err=not result.success)
    ctx.exit(result.exit_code)


@backup_cli.command('cleanup')
@click.option('-v', '--verbose', is_flag=True, help='Print the run log.')
@click.pass_context
def cleanup_command(ctx, verbose):
    """Apply the retention policy to existing backups."""
    settings = _load_settings()
    result = BackupExecutor(settings).cleanup()

    _print_logs(result.logs, verbose)
    click.echo(result.message, err=not result.success)
    ctx.exit(result.exit_code)


@backup_cli.command('list')
def list_command():
    """List local backups, newest first."""
    settings = _load_settings()

    try:
        storage = LocalStorage(settings.backup_directory)
        backups = storage.list_backups()
        stats = storage.stats()
    except StorageError as e:
        raise click.ClickException(str(e))

    if not backups:
        click.echo(f"No backups in {settings.backup_directory}")
        return

    for backup in backups:
        click.echo(f"{backup['filename']}  {format_size(backup['size']):>10}  {format_timestamp(backup['modified'])}")
    click.echo(f"{stats['count']} backups, {stats['formatted_total_size']} total")


@backup_cli.command('remote')
@click.pass_context
def remote_command(ctx):
    """List backups on the remote server."""
    settings = _load_settings()
    stats = BackupExecutor(settings).remote_stats()

    if stats['status'] != 'success':
        click.echo(stats['message'], err=True)
        ctx.exit(1)

    data = stats['data']
    for entry in data['files']:
        click.echo(f"{entry['filename']}  {entry['formatted_size']:>10}  {entry['formatted_date']}")
    click.echo(
        f"{data['count']} backups, {data['formatted_total_size']} total, "
        f"latest: {data['latest_modified']}"
    )
