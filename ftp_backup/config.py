import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()

    # Content and local backups
    CONTENT_DIRECTORY = os.environ.get('CONTENT_DIRECTORY') or '/data/content'
    BACKUP_DIRECTORY = os.environ.get('BACKUP_DIRECTORY')  # default: <content>/.backups
    FILE_PREFIX = os.environ.get('FILE_PREFIX', 'backup-')
    SITE_URL = os.environ.get('SITE_URL', '')

    # Remote server
    FTP_PROTOCOL = os.environ.get('FTP_PROTOCOL', 'ftp')  # ftp, ftps or sftp
    FTP_HOST = os.environ.get('FTP_HOST', '')
    FTP_PORT = os.environ.get('FTP_PORT')  # default: 21, or 22 for sftp
    FTP_USERNAME = os.environ.get('FTP_USERNAME', '')
    FTP_PASSWORD = os.environ.get('FTP_PASSWORD', '')
    FTP_DIRECTORY = os.environ.get('FTP_DIRECTORY', '/')
    FTP_PASSIVE = _env_bool('FTP_PASSIVE', True)
    FTP_PRIVATE_KEY = os.environ.get('FTP_PRIVATE_KEY')
    FTP_PASSPHRASE = os.environ.get('FTP_PASSPHRASE')

    # Retention
    RETENTION_STRATEGY = os.environ.get('RETENTION_STRATEGY', 'simple')  # simple or tiered
    BACKUP_RETENTION = int(os.environ.get('BACKUP_RETENTION', 10))
    TIERED_RETENTION_DAILY = int(os.environ.get('TIERED_RETENTION_DAILY', 10))
    TIERED_RETENTION_WEEKLY = int(os.environ.get('TIERED_RETENTION_WEEKLY', 4))
    TIERED_RETENTION_MONTHLY = int(os.environ.get('TIERED_RETENTION_MONTHLY', 6))
    DELETE_FROM_FTP = _env_bool('DELETE_FROM_FTP', True)

    # Access tokens
    EXECUTE_TOKEN = os.environ.get('EXECUTE_TOKEN')
    API_TOKEN = os.environ.get('API_TOKEN')

    # Scheduler
    SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', True)
    SCHEDULE_CRON = os.environ.get('SCHEDULE_CRON', '')  # e.g. "0 2 * * *"
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE', 'UTC')

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR') or '/data/logs'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    CONTENT_DIRECTORY = os.environ.get('CONTENT_DIRECTORY') or os.path.join(DATA_DIR, 'content')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SCHEDULER_ENABLED = False
    LOG_DIR = None
    EXECUTE_TOKEN = None
    API_TOKEN = None


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}
