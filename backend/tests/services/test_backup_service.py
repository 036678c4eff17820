"""Backup Service — facade wiring, safety backups, health, retention and sweep."""

import pytest

from stockroom.core.backup_entry import BackupDraft
from stockroom.core.backup_options import BackupOptions
from stockroom.core.domain_types import BackupFormat, BackupStatus, RestoreMode
from stockroom.core.errors import BackupFailedError, CorruptBackupError
from tests.factories import USER_ID, scenario_records


@pytest.fixture
async def seeded(backup_service, store):
    for record in scenario_records():
        await store.upsert_inventory_record(record)
    return (await backup_service.create_backup(USER_ID, BackupOptions(name="nightly"))).entry


async def test_safety_backup_precedes_writing_restore(backup_service, seeded):
    outcome = await backup_service.restore_backup(
        seeded.id, RestoreMode.FULL, USER_ID, create_backup_before_restore=True,
    )

    assert outcome.safety_backup_id is not None
    safety = await backup_service.get_backup(outcome.safety_backup_id)
    assert safety.status is BackupStatus.COMPLETED
    assert safety.name.startswith("pre-restore-")
    assert safety.record_count == 3
    assert outcome.to_audit_value()["safetyBackupId"] == str(safety.id)


async def test_no_safety_backup_for_previews(backup_service, seeded):
    outcome = await backup_service.restore_backup(
        seeded.id, RestoreMode.PREVIEW, USER_ID, create_backup_before_restore=True,
    )

    assert outcome.safety_backup_id is None
    assert (await backup_service.list_backups()).total == 1


async def test_corrupt_target_creates_no_safety_backup(backup_service, storage, seeded):
    storage.files[seeded.storage_path] = b"not a backup"

    with pytest.raises(CorruptBackupError):
        await backup_service.restore_backup(
            seeded.id, RestoreMode.MERGE, USER_ID, create_backup_before_restore=True,
        )

    assert (await backup_service.list_backups()).total == 1


async def test_health_reflects_catalog(backup_service, seeded, storage):
    storage.fail_writes_for.add(".csv")
    with pytest.raises(BackupFailedError):
        await backup_service.create_backup(
            USER_ID, BackupOptions(formats=(BackupFormat.CSV,)),
        )

    health = await backup_service.get_backup_health()

    assert health.last_successful_backup == seeded.created_at
    assert health.backup_streak == 1
    assert health.failed_backups_last_30_days == 1
    assert health.total_storage_used == seeded.file_size
    assert health.storage_limit == 1_000_000
    assert [a.level.value for a in health.alerts] == ["warning"]


async def test_sweep_fails_stale_in_progress(backup_service, catalog, clock):
    draft = BackupDraft(
        name="stuck", file_name="stuck.json", file_type=BackupFormat.JSON,
        created_by=USER_ID,
    )
    stuck = await catalog.create(draft)
    clock.advance(hours=2)

    swept = await backup_service.sweep_stale_backups()

    assert swept == [stuck.id]
    assert (await catalog.get(stuck.id)).status is BackupStatus.FAILED


async def test_retention_prunes_artifacts_then_entry(backup_service, storage, clock, seeded):
    clock.advance(days=400)
    fresh = (await backup_service.create_backup(USER_ID, BackupOptions(name="fresh"))).entry

    report = await backup_service.apply_retention()

    assert report.removed == [seeded.id]
    assert report.freed_bytes == seeded.file_size
    assert report.errors == []
    assert seeded.storage_path not in storage.files
    assert fresh.storage_path in storage.files
    remaining = (await backup_service.list_backups()).items
    assert [e.id for e in remaining] == [fresh.id]
