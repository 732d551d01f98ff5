"""
Download keys for backup archives.

A key is bound to one filename, the current local date and the site URL, so
links handed out today stop working tomorrow.
"""

import hashlib
import hmac
from datetime import datetime
from typing import Optional


KEY_SALT = 'ftp-backup-secure-key'


def generate_download_key(filename: str, site_url: str = '', now: Optional[datetime] = None) -> str:
    """
    Generate the download key for a backup file.

    Args:
        filename: Backup filename (without path)
        site_url: Public URL of the site serving the download
        now: Moment to compute the key for (default: current local time)

    Returns:
        Hex-encoded sha256 digest
    """
    day = (now or datetime.now()).strftime('%Y-%m-%d')
    payload = f"{filename}{day}{site_url}{KEY_SALT}"
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


def validate_download_key(filename: str, key: Optional[str], site_url: str = '') -> bool:
    """
    Check a download key in constant time.

    Returns:
        True if the key matches today's key for this file
    """
    if not key:
        return False
    expected = generate_download_key(filename, site_url)
    return hmac.compare_digest(expected, key)
