"""Backup Health — streak, failure window, averages, storage and alerts.

Tests:
    - Streak counts consecutive UTC days; a gap breaks it; an empty today does not
    - Failed count only covers the trailing 30 days
    - Storage sums non-failed entries and raises warning / error alerts
    - Missing or stale last success yields a warning
"""

from datetime import timedelta
from uuid import uuid4

from stockroom.core.backup_entry import BackupEntry
from stockroom.core.backup_health import (
    HealthThresholds, compute_backup_health, compute_streak,
)
from stockroom.core.domain_types import AlertLevel, BackupFormat, BackupStatus
from tests.factories import T0, USER_ID

NOW = T0 + timedelta(hours=3)


def _entry(status=BackupStatus.COMPLETED, created_at=T0, seconds=30, size=1000):
    return BackupEntry(
        id=uuid4(), name="b", file_name="b.json", file_type=BackupFormat.JSON,
        file_size=size, record_count=3,
        checksum="0" * 64 if status is BackupStatus.COMPLETED else None,
        status=status, storage_path="x/b.json", created_by=USER_ID,
        created_at=created_at,
        completed_at=created_at + timedelta(seconds=seconds) if status.is_terminal else None,
    )


def test_streak_counts_consecutive_days():
    days = [NOW - timedelta(days=d) for d in (0, 1, 2)]
    assert compute_streak(days, NOW) == 3


def test_streak_breaks_on_gap():
    days = [NOW, NOW - timedelta(days=1), NOW - timedelta(days=3)]
    assert compute_streak(days, NOW) == 2


def test_streak_survives_today_without_backup_yet():
    days = [NOW - timedelta(days=1), NOW - timedelta(days=2)]
    assert compute_streak(days, NOW) == 2


def test_streak_zero_when_yesterday_missing():
    assert compute_streak([NOW - timedelta(days=2)], NOW) == 0


def test_health_aggregates():
    entries = [
        _entry(seconds=10, size=400),
        _entry(created_at=T0 - timedelta(days=1), seconds=30, size=600),
        _entry(status=BackupStatus.FAILED, created_at=T0 - timedelta(days=2), size=0),
        _entry(status=BackupStatus.FAILED, created_at=T0 - timedelta(days=45), size=0),
    ]

    health = compute_backup_health(entries, NOW, HealthThresholds(storage_limit_bytes=10_000))

    assert health.last_successful_backup == T0
    assert health.backup_streak == 2
    assert health.failed_backups_last_30_days == 1
    assert health.average_backup_duration == 20.0
    assert health.total_storage_used == 1000
    assert [a.level for a in health.alerts] == [AlertLevel.WARNING]


def test_storage_thresholds():
    thresholds = HealthThresholds(storage_limit_bytes=1000)

    warning = compute_backup_health([_entry(size=850)], NOW, thresholds)
    error = compute_backup_health([_entry(size=1000)], NOW, thresholds)

    assert [a.level for a in warning.alerts] == [AlertLevel.WARNING]
    assert [a.level for a in error.alerts] == [AlertLevel.ERROR]


def test_failure_threshold_escalates_to_error():
    entries = [_entry()] + [
        _entry(status=BackupStatus.FAILED, created_at=T0 - timedelta(days=d)) for d in (1, 2, 3)
    ]
    health = compute_backup_health(entries, NOW, HealthThresholds())
    assert health.alerts[0].level is AlertLevel.ERROR


def test_no_success_ever_is_a_warning():
    health = compute_backup_health([], NOW, HealthThresholds())
    assert health.last_successful_backup is None
    assert health.backup_streak == 0
    assert [a.level for a in health.alerts] == [AlertLevel.WARNING]


def test_stale_last_success_is_a_warning():
    health = compute_backup_health(
        [_entry(created_at=NOW - timedelta(hours=30))], NOW, HealthThresholds(),
    )
    assert [a.message for a in health.alerts] == ["Last backup was more than 24 hours ago"]


def test_to_dict_shape():
    data = compute_backup_health([_entry()], NOW, HealthThresholds()).to_dict()
    assert set(data) == {
        "last_successful_backup", "backup_streak", "failed_backups_last_30_days",
        "average_backup_duration", "total_storage_used", "storage_limit",
        "storage_ratio", "alerts",
    }
