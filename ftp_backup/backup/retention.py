"""
Retention policy enforcement for backups.

Decides which backup archives to keep, using either a simple keep-count or a
tiered daily/weekly/monthly policy, and applies that decision to the local
backup directory and to the remote server.

The selection functions are pure: they take BackupRecords and return
BackupRecords. Local records are dated by file modification time, remote
records by the date embedded in their filename.
"""

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .dates import extract_timestamp
from .results import StepResult
from .settings import RetentionPolicy, RetentionStrategy
from .storage import LocalStorage, RemoteStorage, StorageError
from .transport import TransportError


logger = logging.getLogger(__name__)

DAY = 86400
WEEK = 7 * DAY
MONTH = 30 * DAY

TAG_NEWEST = 'newest'
TAG_DAILY = 'daily'
TAG_OLDEST_ANCHOR = 'oldest-anchor'
TAG_TOO_OLD = 'too-old'


@dataclass(frozen=True)
class BackupRecord:
    """One backup archive as seen by a retention pass."""

    filename: str
    timestamp: int
    size_bytes: int = 0
    retention_tag: Optional[str] = None

    def tagged(self, tag: Optional[str]) -> 'BackupRecord':
        return replace(self, retention_tag=tag)


def sort_newest_first(records: Iterable[BackupRecord]) -> List[BackupRecord]:
    """Sort by timestamp descending; equal timestamps by filename descending."""
    return sorted(records, key=lambda r: (r.timestamp, r.filename), reverse=True)


def records_from_filenames(filenames: Iterable[str]) -> List[BackupRecord]:
    """
    Build records for names whose only date source is the name itself.

    Names without a recognizable date get timestamp 0, which sorts them as
    the oldest backups.
    """
    records = []
    for filename in filenames:
        timestamp, _ = extract_timestamp(filename)
        records.append(BackupRecord(filename=filename, timestamp=timestamp))
    return records


def records_from_listing(entries: Iterable[Dict[str, Any]]) -> List[BackupRecord]:
    """Build records from LocalStorage.list_backups() entries."""
    return [
        BackupRecord(
            filename=entry['filename'],
            timestamp=max(int(entry['modified']), 0),
            size_bytes=entry.get('size', 0)
        )
        for entry in entries
    ]


def select_for_deletion(records: Iterable[BackupRecord], keep_count: int) -> List[BackupRecord]:
    """
    Simple strategy: keep the keep_count most recent backups.

    A keep_count of zero or less keeps everything.

    Returns:
        Records to delete, newest first
    """
    if keep_count <= 0:
        return []
    return sort_newest_first(records)[keep_count:]


def _pick_tier(
    candidates: List[BackupRecord],
    upper: int,
    lower: int,
    window: int,
    periods: int
) -> List[BackupRecord]:
    """
    Pick one record per rolling window inside [lower, upper), at most periods.

    The first window ends at ``upper``. Each window keeps its oldest record
    and the next window ends at that record. When a window is empty, the
    newest record below it is kept instead, so the gap between two picks is
    never wider than a window unless nothing lies between them.

    Args:
        candidates: Records inside [lower, upper), newest first
        periods: Maximum number of picks

    Returns:
        Picked records, newest first
    """
    picked = []
    anchor = upper
    remaining = candidates

    while remaining and anchor > lower and len(picked) < periods:
        window_start = max(anchor - window, lower)
        in_window = [r for r in remaining if r.timestamp >= window_start]
        choice = in_window[-1] if in_window else remaining[0]

        picked.append(choice)
        anchor = choice.timestamp
        remaining = [r for r in remaining if r.timestamp < anchor]

    return picked


def partition_tiered(
    records: Iterable[BackupRecord],
    policy: RetentionPolicy,
    now: Optional[int] = None
) -> Tuple[List[BackupRecord], List[BackupRecord]]:
    """
    Tiered strategy: split records into those to keep and those to delete.

    - The newest backup is always kept.
    - Everything newer than ``now - daily_days`` is kept.
    - Below that, one backup per 7 days for weekly_periods weeks, keeping
      at most weekly_periods.
    - Below that, one backup per 30 days for monthly_periods months, keeping
      at most monthly_periods.
    - If no monthly backup was kept but older ones exist, the oldest backup
      is kept as an anchor.

    A tier with zero periods is skipped. Negative policy values count as 0.

    Args:
        records: Backups to evaluate (filenames unique)
        policy: Retention policy with daily/weekly/monthly settings
        now: Reference time in epoch seconds (default: current time)

    Returns:
        Tuple of (keep, delete), both newest first and tagged with the rule
        that decided their fate
    """
    ordered = sort_newest_first(records)
    if not ordered:
        return [], []

    if now is None:
        now = int(time.time())

    daily_days = max(policy.daily_days, 0)
    weekly_periods = max(policy.weekly_periods, 0)
    monthly_periods = max(policy.monthly_periods, 0)

    daily_cutoff = now - daily_days * DAY
    weekly_cutoff = daily_cutoff - weekly_periods * WEEK
    monthly_cutoff = weekly_cutoff - monthly_periods * MONTH

    keep_tags = {ordered[0].filename: TAG_NEWEST}
    delete_tags = {}

    for record in ordered:
        if record.timestamp >= daily_cutoff:
            keep_tags.setdefault(record.filename, TAG_DAILY)

    tiers = (
        ('weekly', weekly_periods, daily_cutoff, weekly_cutoff, WEEK),
        ('monthly', monthly_periods, weekly_cutoff, monthly_cutoff, MONTH),
    )
    monthly_picked = False

    for name, periods, upper, lower, window in tiers:
        if periods == 0:
            continue

        candidates = [r for r in ordered if lower <= r.timestamp < upper]
        picked = _pick_tier(candidates, upper, lower, window, periods)

        for index, record in enumerate(picked):
            keep_tags.setdefault(record.filename, f'{name}-period-{index}')
        for record in candidates:
            if record.filename not in keep_tags:
                delete_tags[record.filename] = f'{name}-duplicate'

        if name == 'monthly':
            monthly_picked = bool(picked)

    oldest = ordered[-1]
    if not monthly_picked and oldest.timestamp < monthly_cutoff:
        keep_tags.setdefault(oldest.filename, TAG_OLDEST_ANCHOR)

    keep = [r.tagged(keep_tags[r.filename]) for r in ordered if r.filename in keep_tags]
    delete = [
        r.tagged(delete_tags.get(r.filename, TAG_TOO_OLD))
        for r in ordered if r.filename not in keep_tags
    ]
    return keep, delete


def apply_tiered_retention(
    records: Iterable[BackupRecord],
    policy: RetentionPolicy,
    now: Optional[int] = None
) -> List[BackupRecord]:
    """
    Tiered strategy: return only the records to keep.

    See partition_tiered() for the rules.
    """
    keep, _ = partition_tiered(records, policy, now)
    return keep


class RetentionManager:
    """
    Applies a retention policy to local and remote backup storage.

    A failed delete is logged and the sweep continues with the next file.
    """

    def __init__(self, policy: RetentionPolicy):
        """
        Initialize retention manager.

        Args:
            policy: RetentionPolicy to enforce
        """
        self.policy = policy
        self.logs = []

    def partition(
        self,
        records: Iterable[BackupRecord],
        now: Optional[int] = None
    ) -> Tuple[List[BackupRecord], List[BackupRecord]]:
        """
        Split records into (keep, delete) according to the policy strategy.
        """
        if self.policy.strategy is RetentionStrategy.TIERED:
            return partition_tiered(records, self.policy, now)

        ordered = sort_newest_first(records)
        delete = select_for_deletion(ordered, self.policy.keep_count)
        delete_names = {r.filename for r in delete}
        keep = [r for r in ordered if r.filename not in delete_names]
        return keep, [r.tagged(TAG_TOO_OLD) for r in delete]

    def cleanup_local(self, storage: LocalStorage, now: Optional[int] = None) -> StepResult:
        """
        Delete local backups the policy doesn't keep.

        Args:
            storage: LocalStorage for the backup directory
            now: Reference time for the tiered strategy

        Returns:
            StepResult with the number of deleted backups
        """
        self._log(f"Local retention: {self._describe_policy()}")

        try:
            records = records_from_listing(storage.list_backups())
        except StorageError as e:
            self._log(f"Failed to list local backups: {e}")
            return StepResult(False, f"Local cleanup failed: {e}")

        _, delete = self.partition(records, now)

        deleted_count = 0
        errors = []
        for record in delete:
            try:
                storage.delete(record.filename)
                deleted_count += 1
                self._log(f"Deleted local backup: {record.filename} ({record.retention_tag})")
            except StorageError as e:
                errors.append(record.filename)
                self._log(f"Failed to delete local backup {record.filename}: {e}")

        return self._summarize('local', deleted_count, errors)

    def cleanup_remote(self, storage: RemoteStorage, now: Optional[int] = None) -> StepResult:
        """
        Delete remote backups the policy doesn't keep.

        Remote backups are dated by the timestamp in their filename.

        Args:
            storage: RemoteStorage on a connected transport
            now: Reference time for the tiered strategy

        Returns:
            StepResult with the number of deleted backups
        """
        self._log(f"Remote retention: {self._describe_policy()}")

        try:
            records = records_from_filenames(storage.list_backups())
        except TransportError as e:
            self._log(f"Failed to list remote backups: {e}")
            return StepResult(False, f"Remote cleanup failed: {e}")

        unparsable = [r.filename for r in records if r.timestamp == 0]
        if unparsable:
            self._log(f"No date found in {len(unparsable)} remote filename(s), treating as oldest")

        _, delete = self.partition(records, now)

        deleted_count = 0
        errors = []
        for record in delete:
            try:
                storage.delete(record.filename)
                deleted_count += 1
                self._log(f"Deleted remote backup: {record.filename} ({record.retention_tag})")
            except TransportError as e:
                errors.append(record.filename)
                self._log(f"Failed to delete remote backup {record.filename}: {e}")

        return self._summarize('remote', deleted_count, errors)

    def _summarize(self, location: str, deleted_count: int, errors: List[str]) -> StepResult:
        where = 'locally' if location == 'local' else 'from remote server'
        message = f"Deleted {deleted_count} old backups {where}"
        if errors:
            message += f", failed to delete {len(errors)}: {', '.join(errors)}"
        self._log(message)
        return StepResult(not errors, message, count=deleted_count)

    def _describe_policy(self) -> str:
        if self.policy.strategy is RetentionStrategy.TIERED:
            return (
                f"tiered (daily: {self.policy.daily_days} days, "
                f"weekly: {self.policy.weekly_periods}, "
                f"monthly: {self.policy.monthly_periods})"
            )
        return f"keep {self.policy.keep_count} most recent"

    def _log(self, message: str):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(message)
