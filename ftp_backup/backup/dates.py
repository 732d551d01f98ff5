"""
Timestamp extraction from backup filenames.

Remote listings only carry names, so the age of a remote backup is read back
out of the name it was uploaded with. Archives are named with
``format_backup_timestamp`` so the two stay in step.
"""

import re
from datetime import datetime
from typing import Tuple


BACKUP_TIMESTAMP_FORMAT = '%Y-%m-%d-%H%M%S'

# YYYY[-_]?MM[-_]?DD, then optional HH, MM, SS with the same separators
DATE_PATTERN = re.compile(
    r'(\d{4})[-_]?(\d{2})[-_]?(\d{2})'
    r'(?:[-_]?(\d{2})(?:[-_]?(\d{2})(?:[-_]?(\d{2}))?)?)?'
)


def format_backup_timestamp(moment: datetime) -> str:
    """Render a datetime the way it appears in archive filenames."""
    return moment.strftime(BACKUP_TIMESTAMP_FORMAT)


def extract_timestamp(filename: str) -> Tuple[int, bool]:
    """
    Find a date (and optional time) anywhere in a filename.

    The captured groups are read as local time. A match that does not form a
    valid date is skipped and scanning continues with the next one.

    Args:
        filename: Name to scan, e.g. ``backup-2024-01-15-143022.zip``

    Returns:
        Tuple of (timestamp, matched); ``(0, False)`` if no valid date was found
    """
    for match in DATE_PATTERN.finditer(filename):
        year, month, day, hour, minute, second = match.groups()
        try:
            moment = datetime(
                int(year), int(month), int(day),
                int(hour or 0), int(minute or 0), int(second or 0)
            )
            timestamp = int(moment.timestamp())
        except (ValueError, OverflowError, OSError):
            continue

        if timestamp < 0:
            continue
        return timestamp, True

    return 0, False
