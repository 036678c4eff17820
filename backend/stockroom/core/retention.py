"""Retention — decides which catalog entries have outlived the retention policy.

Invariants:
    - Pure: entries and `now` in, expired entries out
    - PENDING / IN_PROGRESS entries are never expired (the stale sweep owns them)
    - COMPLETED entries younger than daily_days are always kept
    - Older COMPLETED entries survive as the newest of their ISO week (within
      weekly_weeks) or of their calendar month (within monthly_months)
    - FAILED entries are expired once older than daily_days
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from stockroom.core.backup_entry import BackupEntry
from stockroom.core.domain_types import BackupStatus


@dataclass(frozen=True)
class RetentionPolicy:
    daily_days: int = 7
    weekly_weeks: int = 4
    monthly_months: int = 6


def select_expired(
    entries: list[BackupEntry], now: datetime, policy: RetentionPolicy,
) -> list[BackupEntry]:
    """Return entries to prune, oldest first."""
    daily_cutoff = now - timedelta(days=policy.daily_days)
    weekly_cutoff = now - timedelta(weeks=policy.weekly_weeks)

    expired: list[BackupEntry] = []
    weeks_kept: set[tuple[int, int]] = set()
    months_kept: set[tuple[int, int]] = set()

    newest_first = sorted(entries, key=lambda e: e.created_at, reverse=True)
    for entry in newest_first:
        if entry.status is BackupStatus.FAILED:
            if entry.created_at < daily_cutoff:
                expired.append(entry)
            continue
        if entry.status is not BackupStatus.COMPLETED:
            continue

        iso = entry.created_at.isocalendar()
        week = (iso[0], iso[1])
        month = (entry.created_at.year, entry.created_at.month)

        if entry.created_at >= daily_cutoff:
            keep = True
        elif entry.created_at >= weekly_cutoff and week not in weeks_kept:
            keep = True
        elif _months_between(entry.created_at, now) < policy.monthly_months \
                and month not in months_kept:
            keep = True
        else:
            keep = False

        if keep:
            weeks_kept.add(week)
            months_kept.add(month)
        else:
            expired.append(entry)

    expired.reverse()
    return expired


def _months_between(earlier: datetime, later: datetime) -> int:
    return (later.year - earlier.year) * 12 + later.month - earlier.month
