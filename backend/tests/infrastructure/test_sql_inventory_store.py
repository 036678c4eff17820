"""SQL Inventory Store — upsert / delete / snapshot against SQLite.

Tests:
    - upsert reports insert vs overwrite and keeps the given timestamps
    - constraint violations are rejected before SQL with RecordConstraintError
    - snapshot honours the date range and returns UTC-aware records
"""

from datetime import timedelta

import pytest

from stockroom.core.backup_options import DateRange
from stockroom.core.errors import RecordConstraintError
from stockroom.core.repository_protocols import SnapshotFilter
from tests.factories import T0, USER_ID, make_record, scenario_records


async def test_upsert_inserts_then_overwrites(store):
    record = make_record()
    assert await store.upsert_inventory_record(record) is True

    changed = record.touched(T0 + timedelta(hours=1), quantity=42)
    assert await store.upsert_inventory_record(changed) is False

    [stored] = await store.read_inventory_snapshot()
    assert stored == changed


async def test_round_trip_keeps_all_fields(store):
    records = scenario_records()
    for record in records:
        await store.upsert_inventory_record(record)

    snapshot = await store.read_inventory_snapshot()

    assert {r.id: r for r in snapshot} == {r.id: r for r in records}
    assert all(r.updated_at.tzinfo is not None for r in snapshot)


async def test_constraint_violation_is_rejected(store):
    bad = make_record(quantity=2, reject=5)
    with pytest.raises(RecordConstraintError):
        await store.upsert_inventory_record(bad)
    assert await store.read_inventory_snapshot() == []


async def test_delete_reports_whether_a_row_existed(store):
    record = make_record()
    await store.upsert_inventory_record(record)
    assert await store.delete_inventory_record(record.id) is True
    assert await store.delete_inventory_record(record.id) is False


async def test_snapshot_date_range(store):
    early = make_record(created_at=T0 - timedelta(days=10))
    late = make_record(created_at=T0)
    await store.upsert_inventory_record(early)
    await store.upsert_inventory_record(late)

    snapshot = await store.read_inventory_snapshot(
        SnapshotFilter(date_range=DateRange(date_from=T0 - timedelta(days=1))),
    )

    assert [r.id for r in snapshot] == [late.id]


async def test_describe_user(store):
    assert await store.describe_user(USER_ID) == "Dana Ops"
