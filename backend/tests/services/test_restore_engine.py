"""Restore Engine — FULL / MERGE / preview against verified artifacts.

Tests:
    - Reference scenario on SQLite: back up 3, delete 1, FULL restores exactly 3;
      MERGE with two older live copies and one newer -> added 0, updated 2, skipped 1
    - FULL is idempotent; MERGE never replaces a newer live copy
    - Preview modes report the plan and issue no writes
    - A record the store rejects is reported, the rest are still applied
    - Corrupt artifacts are refused before any write
    - Concurrent FULL restores of one backup are serialized
"""

import asyncio
from datetime import timedelta

import pytest

from stockroom.core.backup_options import BackupOptions
from stockroom.core.domain_types import RestoreMode
from stockroom.core.errors import CorruptBackupError
from stockroom.services.backup_creator import BackupCreator
from stockroom.services.restore_engine import RestoreEngine
from tests.factories import T0, USER_ID, MemoryInventoryStore, make_record, scenario_records


async def _backup_of(catalog, storage, clock, records):
    creator = BackupCreator(catalog, MemoryInventoryStore(records), storage, clock)
    return (await creator.create_backup(USER_ID, BackupOptions())).entry


def _engine(verifier, clock, live=None):
    target = MemoryInventoryStore(live)
    return RestoreEngine(verifier, target, clock), target


async def test_reference_scenario_full_then_merge(creator, store, restore_engine):
    records = scenario_records()
    for record in records:
        await store.upsert_inventory_record(record)
    entry = (await creator.create_backup(USER_ID, BackupOptions())).entry
    bolts, nuts, washers = records
    await store.delete_inventory_record(nuts.id)

    full = await restore_engine.restore(entry.id, RestoreMode.FULL, USER_ID)

    assert full.success
    assert (full.added, full.updated, full.deleted) == (1, 2, 0)
    assert {r.id: r for r in await store.read_inventory_snapshot()} == {
        r.id: r for r in records
    }

    await store.upsert_inventory_record(bolts.touched(T0 - timedelta(hours=1), quantity=7))
    await store.upsert_inventory_record(nuts.touched(T0 - timedelta(hours=1), quantity=4))
    newer = washers.touched(T0 + timedelta(hours=1), quantity=25)
    await store.upsert_inventory_record(newer)

    merge = await restore_engine.restore(entry.id, RestoreMode.MERGE, USER_ID)

    assert (merge.added, merge.updated, merge.skipped, merge.deleted) == (0, 2, 1, 0)
    live = {r.id: r for r in await store.read_inventory_snapshot()}
    assert live[bolts.id].quantity == 10
    assert live[nuts.id].quantity == 5
    assert live[washers.id] == newer


async def test_full_is_idempotent(catalog, storage, clock, verifier):
    records = scenario_records()
    entry = await _backup_of(catalog, storage, clock, records)
    stray = make_record(item_name="Stray")
    engine, target = _engine(verifier, clock, [stray])

    first = await engine.restore(entry.id, RestoreMode.FULL, USER_ID)
    after_first = dict(target.records)
    second = await engine.restore(entry.id, RestoreMode.FULL, USER_ID)

    assert (first.added, first.deleted) == (3, 1)
    assert (second.added, second.updated, second.deleted) == (0, 3, 0)
    assert target.records == after_first
    assert set(target.records) == {r.id for r in records}


async def test_merge_keeps_newer_live_copies(catalog, storage, clock, verifier):
    original = make_record(quantity=10)
    entry = await _backup_of(catalog, storage, clock, [original])
    edited = original.touched(T0 + timedelta(minutes=5), quantity=12)
    extra = make_record(item_name="Live only")
    engine, target = _engine(verifier, clock, [edited, extra])

    outcome = await engine.restore(entry.id, RestoreMode.MERGE, USER_ID)

    assert (outcome.added, outcome.updated, outcome.skipped, outcome.deleted) == (0, 0, 1, 0)
    assert target.records[original.id] == edited
    assert extra.id in target.records


async def test_merge_tie_goes_to_live_copy(catalog, storage, clock, verifier):
    original = make_record(quantity=10)
    entry = await _backup_of(catalog, storage, clock, [original])
    same_time = original.touched(original.updated_at, quantity=3, reject=0)
    engine, target = _engine(verifier, clock, [same_time])

    outcome = await engine.restore(entry.id, RestoreMode.MERGE, USER_ID)

    assert outcome.skipped == 1
    assert target.records[original.id] == same_time


@pytest.mark.parametrize("mode", [RestoreMode.PREVIEW, RestoreMode.PREVIEW_FULL])
async def test_preview_modes_never_write(catalog, storage, clock, verifier, mode):
    entry = await _backup_of(catalog, storage, clock, scenario_records())
    stray = make_record(item_name="Stray")
    engine, target = _engine(verifier, clock, [stray])

    outcome = await engine.restore(entry.id, mode, USER_ID)

    assert target.writes == 0
    assert list(target.records) == [stray.id]
    assert outcome.dry_run
    assert outcome.added == 3
    assert outcome.deleted == (1 if mode is RestoreMode.PREVIEW_FULL else 0)
    assert len(outcome.planned) == 3 + outcome.deleted


async def test_rejected_record_does_not_stop_the_rest(catalog, storage, clock, verifier):
    good = scenario_records()
    bad = make_record(item_name="Broken", quantity=2, reject=5)
    entry = await _backup_of(catalog, storage, clock, good + [bad])
    engine, target = _engine(verifier, clock)

    outcome = await engine.restore(entry.id, RestoreMode.FULL, USER_ID)

    assert not outcome.success
    assert outcome.added == 3
    assert outcome.updated == 0
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith(str(bad.id))
    assert bad.id not in target.records


async def test_corrupt_backup_is_refused_without_writes(catalog, storage, clock, verifier):
    entry = await _backup_of(catalog, storage, clock, scenario_records())
    storage.files[entry.storage_path] = storage.files[entry.storage_path][:-10]
    engine, target = _engine(verifier, clock, [make_record()])

    with pytest.raises(CorruptBackupError):
        await engine.restore(entry.id, RestoreMode.FULL, USER_ID)

    assert target.writes == 0
    assert len(target.records) == 1


async def test_concurrent_restores_of_one_backup_are_serialized(
    catalog, storage, clock, verifier,
):
    entry = await _backup_of(catalog, storage, clock, scenario_records())
    active = 0
    peak = 0

    class SlowStore(MemoryInventoryStore):
        async def upsert_inventory_record(self, record):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.005)
            active -= 1
            return await super().upsert_inventory_record(record)

    engine = RestoreEngine(verifier, SlowStore(), clock)

    first, second = await asyncio.gather(
        engine.restore(entry.id, RestoreMode.FULL, USER_ID),
        engine.restore(entry.id, RestoreMode.FULL, USER_ID),
    )

    assert peak == 1
    assert sorted([first.added, second.added]) == [0, 3]
    assert not engine.is_restoring(entry.id)
