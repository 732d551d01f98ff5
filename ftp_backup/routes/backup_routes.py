"""
Backup routes - listing, creation, remote stats and downloads.
"""

from flask import Blueprint, current_app, jsonify, request, send_file, url_for

from ftp_backup.auth import api_token_required, verify_token
from ftp_backup.backup.executor import BackupExecutor
from ftp_backup.backup.settings import BackupSettings, ConfigurationError
from ftp_backup.backup.storage import LocalStorage, StorageError, format_size, format_timestamp, is_backup_file
from ftp_backup.scheduler import get_scheduled_jobs, is_scheduler_running
from ftp_backup.utils.keys import generate_download_key, validate_download_key


bp = Blueprint('backup', __name__)


def _load_settings():
    """
    Build BackupSettings from the app config.

    Returns:
        Tuple of (settings, None) or (None, error response)
    """
    try:
        return BackupSettings.from_mapping(current_app.config), None
    except (ConfigurationError, ValueError) as e:
        current_app.logger.error(f"Invalid backup configuration: {e}")
        return None, (jsonify({'status': 'error', 'message': str(e)}), 500)


def _result_response(result):
    return jsonify(result.to_dict()), 200 if result.success else 500


@bp.route('/api/backups', methods=['GET'])
@api_token_required
def list_backups():
    """
    Get local backups with stats and download links.

    Returns:
        JSON with 'stats' and a 'data' array of backups, newest first
    """
    settings, error = _load_settings()
    if error:
        return error

    try:
        storage = LocalStorage(settings.backup_directory)
        stats = storage.stats()
        backups = storage.list_backups()
    except StorageError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 500

    data = []
    for backup in backups:
        key = generate_download_key(backup['filename'], settings.site_url)
        data.append({
            'filename': backup['filename'],
            'size': backup['size'],
            'formatted_size': format_size(backup['size']),
            'modified': backup['modified'],
            'formatted_date': format_timestamp(backup['modified']),
            'download_url': url_for('backup.download_backup', filename=backup['filename'], key=key)
        })

    return jsonify({'status': 'success', 'stats': stats, 'data': data})


@bp.route('/api/backups', methods=['POST'])
@api_token_required
def create_backup():
    """
    Create a backup now.

    Request body (optional):
        - upload: Upload to the remote server (default: true)

    Returns:
        JSON BackupResult; 400 if upload is not a boolean, 500 if the
        archive could not be created
    """
    data = request.get_json(silent=True) or {}
    upload = data.get('upload', True)
    if not isinstance(upload, bool):
        return jsonify({'status': 'error', 'message': "'upload' must be true or false"}), 400

    settings, error = _load_settings()
    if error:
        return error

    result = BackupExecutor(settings).execute(upload=upload)
    return _result_response(result)


@bp.route('/api/backups/remote', methods=['GET'])
@api_token_required
def remote_backups():
    """
    Get backup files and totals from the remote server.

    Returns:
        JSON with file list, count, total size and latest modification
    """
    settings, error = _load_settings()
    if error:
        return error

    stats = BackupExecutor(settings).remote_stats()
    return jsonify(stats), 200 if stats['status'] == 'success' else 500


@bp.route('/api/settings-status', methods=['GET'])
@api_token_required
def settings_status():
    """
    Report whether remote transport settings are complete.

    Secrets are never returned, only whether they are set.
    """
    settings, error = _load_settings()
    if error:
        return error

    transport = settings.transport
    return jsonify({
        'status': 'success',
        'data': {
            'configured': transport.is_configured,
            'protocol': transport.protocol,
            'host': transport.host or None,
            'port': transport.effective_port,
            'username': transport.username or None,
            'has_password': bool(transport.password),
            'has_private_key': bool(transport.private_key),
            'retention_strategy': settings.retention.strategy.value,
            'scheduler_status': 'running' if is_scheduler_running() else 'stopped',
            'scheduled_jobs': get_scheduled_jobs()
        }
    })


@bp.route('/backup/execute', methods=['GET'])
def execute_backup():
    """
    Run a backup for external cron services.

    Query params:
        - token: Must match EXECUTE_TOKEN

    Returns:
        JSON BackupResult; 503 if no token is configured, 403 on a bad token
    """
    expected = current_app.config.get('EXECUTE_TOKEN')
    if not expected:
        return jsonify({'status': 'error', 'message': 'Backup execution via URL is not enabled'}), 503

    if not verify_token(expected, request.args.get('token')):
        current_app.logger.warning("Rejected backup execution with invalid token")
        return jsonify({'status': 'error', 'message': 'Invalid token'}), 403

    settings, error = _load_settings()
    if error:
        return error

    result = BackupExecutor(settings).execute(upload=True)
    return _result_response(result)


@bp.route('/backup/download/<filename>', methods=['GET'])
def download_backup(filename):
    """
    Download a local backup archive.

    Query params:
        - key: Download key for this file and day
    """
    settings, error = _load_settings()
    if error:
        return error

    if not validate_download_key(filename, request.args.get('key'), settings.site_url):
        return jsonify({'status': 'error', 'message': 'Invalid download key'}), 403

    try:
        storage = LocalStorage(settings.backup_directory)
        path = storage.get_full_path(filename)
        exists = storage.exists(filename)
    except StorageError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 403

    if not exists:
        return jsonify({'status': 'error', 'message': 'File not found'}), 404

    if not is_backup_file(filename):
        return jsonify({'status': 'error', 'message': 'Invalid file type'}), 403

    return send_file(path, mimetype='application/zip', as_attachment=True, download_name=filename)
