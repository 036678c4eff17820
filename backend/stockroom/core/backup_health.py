"""Backup Health — pure projection of catalog entries into operational signals.

Invariants:
    - No IO and no caching: the caller passes the current catalog entries and `now`
    - streak counts consecutive UTC days with >= 1 COMPLETED backup, walking back
      from today; today having none yet does not break it, any earlier empty day does
    - failed_last_30_days counts FAILED entries created in (now - 30d, now]
    - storage_used sums file_size over every entry that is not FAILED
    - alerts are ordered: errors first, then warnings
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from stockroom.core.backup_entry import BackupEntry
from stockroom.core.domain_types import AlertLevel, BackupStatus

FAILURE_WINDOW = timedelta(days=30)


@dataclass(frozen=True)
class HealthThresholds:
    storage_limit_bytes: int = 10 * 1024 * 1024 * 1024
    storage_warning_ratio: float = 0.8
    failed_warning_threshold: int = 1
    failed_error_threshold: int = 3
    max_age_hours: int = 24


@dataclass(frozen=True)
class HealthAlert:
    level: AlertLevel
    message: str

    def to_dict(self) -> dict:
        return {"type": self.level.value, "message": self.message}


@dataclass
class BackupHealth:
    last_successful_backup: datetime | None
    backup_streak: int
    failed_backups_last_30_days: int
    average_backup_duration: float
    total_storage_used: int
    storage_limit: int
    alerts: list[HealthAlert] = field(default_factory=list)

    @property
    def storage_ratio(self) -> float:
        if self.storage_limit <= 0:
            return 0.0
        return self.total_storage_used / self.storage_limit

    def to_dict(self) -> dict:
        return {
            "last_successful_backup": (
                self.last_successful_backup.isoformat()
                if self.last_successful_backup else None
            ),
            "backup_streak": self.backup_streak,
            "failed_backups_last_30_days": self.failed_backups_last_30_days,
            "average_backup_duration": self.average_backup_duration,
            "total_storage_used": self.total_storage_used,
            "storage_limit": self.storage_limit,
            "storage_ratio": round(self.storage_ratio, 4),
            "alerts": [a.to_dict() for a in self.alerts],
        }


def compute_backup_health(
    entries: list[BackupEntry], now: datetime, thresholds: HealthThresholds,
) -> BackupHealth:
    """Aggregate catalog entries into a health snapshot. Pure, no IO."""
    completed = [e for e in entries if e.status is BackupStatus.COMPLETED]
    last_success = max((e.created_at for e in completed), default=None)

    failed_recent = sum(
        1 for e in entries
        if e.status is BackupStatus.FAILED and now - e.created_at <= FAILURE_WINDOW
    )
    durations = [d for d in (e.duration_seconds for e in completed) if d is not None]
    average = sum(durations) / len(durations) if durations else 0.0
    storage = sum(e.file_size for e in entries if e.status is not BackupStatus.FAILED)

    health = BackupHealth(
        last_successful_backup=last_success,
        backup_streak=compute_streak([e.created_at for e in completed], now),
        failed_backups_last_30_days=failed_recent,
        average_backup_duration=round(average, 3),
        total_storage_used=storage,
        storage_limit=thresholds.storage_limit_bytes,
    )
    health.alerts = _alerts(health, now, thresholds)
    return health


def compute_streak(completed_at: list[datetime], now: datetime) -> int:
    """Consecutive UTC calendar days with at least one completed backup."""
    days = {_utc_day(moment) for moment in completed_at}
    today = _utc_day(now)
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def _utc_day(moment: datetime) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def _alerts(
    health: BackupHealth, now: datetime, thresholds: HealthThresholds,
) -> list[HealthAlert]:
    errors: list[HealthAlert] = []
    warnings: list[HealthAlert] = []

    ratio = health.storage_ratio
    if ratio >= 1.0:
        errors.append(HealthAlert(AlertLevel.ERROR, "Backup storage limit exceeded"))
    elif ratio >= thresholds.storage_warning_ratio:
        warnings.append(HealthAlert(
            AlertLevel.WARNING,
            f"Backup storage is over {int(thresholds.storage_warning_ratio * 100)}% full",
        ))

    failed = health.failed_backups_last_30_days
    if failed >= thresholds.failed_error_threshold:
        errors.append(HealthAlert(
            AlertLevel.ERROR, f"{failed} backups failed in the last 30 days",
        ))
    elif failed >= thresholds.failed_warning_threshold:
        warnings.append(HealthAlert(
            AlertLevel.WARNING, f"{failed} backup(s) failed in the last 30 days",
        ))

    if health.last_successful_backup is None:
        warnings.append(HealthAlert(AlertLevel.WARNING, "No successful backup on record"))
    elif now - health.last_successful_backup > timedelta(hours=thresholds.max_age_hours):
        warnings.append(HealthAlert(
            AlertLevel.WARNING,
            f"Last backup was more than {thresholds.max_age_hours} hours ago",
        ))
    return errors + warnings
