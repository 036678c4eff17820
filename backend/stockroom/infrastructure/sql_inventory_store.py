"""SQL Inventory Store — SQLAlchemy implementation of the InventoryStore protocol.

Invariants:
    - Each upsert/delete runs in its own session and commits on its own, so a
      failed record never rolls back the records written before it
    - Records violating constraint_violations() are rejected before any SQL is
      issued; IntegrityError from the database is mapped to RecordConstraintError
    - Snapshot reads are a single SELECT ordered by (created_at, id); they are not
      isolated from concurrent writers beyond what that statement provides
    - Timestamps read back from backends without tz support are treated as UTC
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError

from stockroom.core.domain_types import Destination
from stockroom.core.errors import RecordConstraintError
from stockroom.core.inventory_record import InventoryRecord
from stockroom.core.repository_protocols import SnapshotFilter
from stockroom.infrastructure.database import SessionProvider
from stockroom.models.audit_log import AuditLog
from stockroom.models.inventory_item import InventoryItem
from stockroom.models.system_setting import SystemSetting
from stockroom.models.user import User

logger = logging.getLogger(__name__)


def as_utc(moment: datetime | None) -> datetime | None:
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def to_record(item: InventoryItem) -> InventoryRecord:
    return InventoryRecord(
        id=item.id,
        item_name=item.item_name,
        batch=item.batch,
        quantity=item.quantity,
        reject=item.reject,
        destination=Destination(item.destination),
        category=item.category,
        notes=item.notes,
        entered_by=item.entered_by,
        created_at=as_utc(item.created_at),
        updated_at=as_utc(item.updated_at),
    )


def _apply(item: InventoryItem, record: InventoryRecord) -> None:
    item.item_name = record.item_name
    item.batch = record.batch
    item.quantity = record.quantity
    item.reject = record.reject
    item.destination = record.destination.value
    item.category = record.category
    item.notes = record.notes
    item.entered_by = record.entered_by
    item.created_at = record.created_at
    item.updated_at = record.updated_at


class SqlInventoryStore:
    """Live inventory data access over an async SQLAlchemy session provider."""

    def __init__(self, sessions: SessionProvider):
        self._sessions = sessions

    async def read_inventory_snapshot(
        self, snapshot_filter: SnapshotFilter | None = None,
    ) -> list[InventoryRecord]:
        query = select(InventoryItem).order_by(
            InventoryItem.created_at, InventoryItem.id,
        )
        date_range = snapshot_filter.date_range if snapshot_filter else None
        if date_range and date_range.date_from:
            query = query.where(InventoryItem.created_at >= date_range.date_from)
        if date_range and date_range.date_to:
            query = query.where(InventoryItem.created_at <= date_range.date_to)
        async with self._sessions() as db:
            result = await db.execute(query)
            return [to_record(item) for item in result.scalars().all()]

    async def upsert_inventory_record(self, record: InventoryRecord) -> bool:
        problems = record.constraint_violations()
        if problems:
            raise RecordConstraintError(str(record.id), "; ".join(problems))

        async with self._sessions() as db:
            item = await db.get(InventoryItem, record.id)
            inserted = item is None
            if inserted:
                item = InventoryItem(id=record.id)
                db.add(item)
            _apply(item, record)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise RecordConstraintError(str(record.id), str(e.orig))
        return inserted

    async def delete_inventory_record(self, record_id: UUID) -> bool:
        async with self._sessions() as db:
            result = await db.execute(
                delete(InventoryItem).where(InventoryItem.id == record_id),
            )
            await db.commit()
            return result.rowcount > 0

    async def read_audit_history(
        self, snapshot_filter: SnapshotFilter | None = None,
    ) -> list[dict]:
        query = select(AuditLog).order_by(AuditLog.created_at, AuditLog.id)
        date_range = snapshot_filter.date_range if snapshot_filter else None
        if date_range and date_range.date_from:
            query = query.where(AuditLog.created_at >= date_range.date_from)
        if date_range and date_range.date_to:
            query = query.where(AuditLog.created_at <= date_range.date_to)
        async with self._sessions() as db:
            result = await db.execute(query)
            return [
                {
                    "id": str(log.id),
                    "userId": str(log.user_id),
                    "action": log.action,
                    "entityType": log.entity_type,
                    "entityId": log.entity_id,
                    "oldValue": log.old_value,
                    "newValue": log.new_value,
                    "createdAt": as_utc(log.created_at).isoformat(),
                }
                for log in result.scalars().all()
            ]

    async def read_users(self) -> list[dict]:
        async with self._sessions() as db:
            result = await db.execute(select(User).order_by(User.created_at, User.id))
            return [
                {
                    "id": str(user.id),
                    "email": user.email,
                    "name": user.name,
                    "role": user.role,
                    "isActive": user.is_active,
                    "createdAt": as_utc(user.created_at).isoformat(),
                }
                for user in result.scalars().all()
            ]

    async def read_system_settings(self) -> list[dict]:
        async with self._sessions() as db:
            result = await db.execute(select(SystemSetting).order_by(SystemSetting.key))
            return [
                {
                    "key": setting.key,
                    "value": setting.value,
                    "category": setting.category,
                    "updatedAt": as_utc(setting.updated_at).isoformat(),
                }
                for setting in result.scalars().all()
            ]

    async def describe_user(self, user_id: UUID) -> str | None:
        async with self._sessions() as db:
            user = await db.get(User, user_id)
            return user.name if user else None
