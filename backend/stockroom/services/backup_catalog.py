"""Backup Catalog — persisted ledger of backups; sole owner of BackupRecord lifecycle.

Invariants:
    - create() inserts IN_PROGRESS with a fresh id; storage_path is <id>/<file_name>
    - complete() / fail() are single conditional UPDATEs (WHERE status allows the
      transition) committed in one transaction together with artifact rows, so a
      reader never sees COMPLETED without checksum and artifacts
    - A rejected transition raises ResourceNotFoundError (unknown id) or
      InvalidTransitionError (wrong current status); nothing is written
    - Mutations of one id are serialized in-process by KeyedLocks; the
      conditional UPDATE keeps transitions safe across processes too
    - fail() clears the checksum: a FAILED entry has no trusted digest

Design Decisions:
    - The catalog returns BackupEntry values, never ORM objects, so callers cannot
      mutate catalog rows behind its back
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update, func

from stockroom.core.backup_entry import (
    ArtifactEntry, BackupDraft, BackupEntry, artifact_path,
)
from stockroom.core.domain_types import ALLOWED_TRANSITIONS, BackupFormat, BackupStatus
from stockroom.core.errors import (
    BackupOptionsError, InvalidTransitionError, ResourceNotFoundError,
)
from stockroom.core.repository_protocols import Clock
from stockroom.infrastructure.database import SessionProvider
from stockroom.infrastructure.sql_inventory_store import as_utc
from stockroom.models.backup import Backup, BackupArtifact
from stockroom.services.keyed_locks import KeyedLocks

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": Backup.created_at,
    "file_size": Backup.file_size,
    "record_count": Backup.record_count,
    "status": Backup.status,
    "name": Backup.name,
}
MAX_PAGE_SIZE = 200


@dataclass
class BackupPage:
    items: list[BackupEntry]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> dict:
        return {
            "data": [e.to_dict() for e in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
            },
        }


def to_entry(backup: Backup) -> BackupEntry:
    return BackupEntry(
        id=backup.id,
        name=backup.name,
        file_name=backup.file_name,
        file_type=BackupFormat(backup.file_type),
        file_size=backup.file_size,
        record_count=backup.record_count,
        checksum=backup.checksum,
        status=BackupStatus(backup.status),
        storage_path=backup.storage_path,
        created_by=backup.created_by,
        created_at=as_utc(backup.created_at),
        completed_at=as_utc(backup.completed_at),
        verified=backup.verified,
        verified_at=as_utc(backup.verified_at),
        encrypted=backup.encrypted,
        includes_audit=backup.includes_audit,
        failure_reason=backup.failure_reason,
        notes=backup.notes,
        warnings=list(backup.warnings or []),
        artifacts=[
            ArtifactEntry(
                format=BackupFormat(a.file_type),
                file_name=a.file_name,
                storage_path=a.storage_path,
                file_size=a.file_size,
                checksum=a.checksum,
                is_primary=a.is_primary,
            )
            for a in backup.artifacts
        ],
    )


class BackupCatalog:
    """Catalog of backup records over an async SQLAlchemy session provider."""

    def __init__(self, sessions: SessionProvider, clock: Clock):
        self._sessions = sessions
        self._clock = clock
        self._locks = KeyedLocks()

    # ─── Reads ──────────────────────────────────────────────────

    async def find(self, backup_id: UUID) -> BackupEntry | None:
        async with self._sessions() as db:
            backup = await db.get(Backup, backup_id)
            return to_entry(backup) if backup else None

    async def get(self, backup_id: UUID) -> BackupEntry:
        entry = await self.find(backup_id)
        if entry is None:
            raise ResourceNotFoundError("Backup", str(backup_id))
        return entry

    async def list_backups(
        self,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> BackupPage:
        if sort_by not in SORT_COLUMNS:
            raise BackupOptionsError(
                f"sort_by must be one of {sorted(SORT_COLUMNS)}", "sort_by",
            )
        if sort_order not in ("asc", "desc"):
            raise BackupOptionsError("sort_order must be 'asc' or 'desc'", "sort_order")
        page = max(1, page)
        limit = min(MAX_PAGE_SIZE, max(1, limit))

        column = SORT_COLUMNS[sort_by]
        ordering = column.asc() if sort_order == "asc" else column.desc()
        query = (
            select(Backup)
            .order_by(ordering, Backup.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        async with self._sessions() as db:
            total = await db.scalar(select(func.count()).select_from(Backup))
            result = await db.execute(query)
            items = [to_entry(b) for b in result.scalars().all()]
        return BackupPage(items=items, total=total or 0, page=page, limit=limit)

    async def all_entries(self) -> list[BackupEntry]:
        async with self._sessions() as db:
            result = await db.execute(select(Backup).order_by(Backup.created_at))
            return [to_entry(b) for b in result.scalars().all()]

    # ─── Mutations ──────────────────────────────────────────────

    async def create(self, draft: BackupDraft) -> BackupEntry:
        """Insert a new IN_PROGRESS entry for the draft."""
        backup_id = uuid.uuid4()
        async with self._sessions() as db:
            db.add(Backup(
                id=backup_id,
                name=draft.name,
                file_name=draft.file_name,
                file_type=draft.file_type.value,
                storage_path=artifact_path(backup_id, draft.file_name),
                status=BackupStatus.IN_PROGRESS.value,
                created_by=draft.created_by,
                encrypted=draft.encrypted,
                includes_audit=draft.includes_audit,
                notes=draft.notes,
                warnings=[],
                created_at=self._clock.now(),
            ))
            await db.commit()
        logger.info("Backup entry created", extra={"backup_id": str(backup_id)})
        return await self.get(backup_id)

    async def complete(
        self,
        backup_id: UUID,
        file_size: int,
        record_count: int,
        checksum: str,
        artifacts: list[ArtifactEntry],
        warnings: list[str] | None = None,
    ) -> BackupEntry:
        """IN_PROGRESS -> COMPLETED, storing aggregate size and the primary checksum."""
        primary = next((a for a in artifacts if a.is_primary), None)
        if file_size <= 0 or not checksum or primary is None:
            raise ValueError("A completed backup needs size > 0, a checksum and a primary artifact")

        async with self._locks.hold(backup_id):
            async with self._sessions() as db:
                result = await db.execute(
                    update(Backup)
                    .where(Backup.id == backup_id)
                    .where(Backup.status.in_(_sources_of(BackupStatus.COMPLETED)))
                    .values(
                        status=BackupStatus.COMPLETED.value,
                        file_size=file_size,
                        record_count=record_count,
                        checksum=checksum,
                        file_name=primary.file_name,
                        file_type=primary.format.value,
                        storage_path=primary.storage_path,
                        warnings=list(warnings or []),
                        failure_reason=None,
                        completed_at=self._clock.now(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await self._raise_rejected(db, backup_id, BackupStatus.COMPLETED)
                for position, artifact in enumerate(artifacts):
                    db.add(BackupArtifact(
                        backup_id=backup_id,
                        position=position,
                        file_type=artifact.format.value,
                        file_name=artifact.file_name,
                        storage_path=artifact.storage_path,
                        file_size=artifact.file_size,
                        checksum=artifact.checksum,
                        is_primary=artifact.is_primary,
                    ))
                await db.commit()
        logger.info("Backup completed", extra={"backup_id": str(backup_id)})
        return await self.get(backup_id)

    async def fail(self, backup_id: UUID, reason: str) -> BackupEntry:
        """Move a non-terminal entry to FAILED (terminal) and clear its checksum."""
        async with self._locks.hold(backup_id):
            async with self._sessions() as db:
                result = await db.execute(
                    update(Backup)
                    .where(Backup.id == backup_id)
                    .where(Backup.status.in_(_sources_of(BackupStatus.FAILED)))
                    .values(
                        status=BackupStatus.FAILED.value,
                        checksum=None,
                        failure_reason=reason[:2000],
                        completed_at=self._clock.now(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await self._raise_rejected(db, backup_id, BackupStatus.FAILED)
                await db.commit()
        logger.warning(
            f"Backup failed: {reason}", extra={"backup_id": str(backup_id)},
        )
        return await self.get(backup_id)

    async def mark_verified(self, backup_id: UUID, valid: bool) -> None:
        async with self._locks.hold(backup_id):
            async with self._sessions() as db:
                result = await db.execute(
                    update(Backup)
                    .where(Backup.id == backup_id)
                    .values(verified=valid, verified_at=self._clock.now())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise ResourceNotFoundError("Backup", str(backup_id))
                await db.commit()

    async def remove(self, backup_id: UUID) -> None:
        """Delete a terminal entry and its artifact rows (retention pruning)."""
        async with self._locks.hold(backup_id):
            async with self._sessions() as db:
                backup = await db.get(Backup, backup_id)
                if backup is None:
                    raise ResourceNotFoundError("Backup", str(backup_id))
                if not BackupStatus(backup.status).is_terminal:
                    raise InvalidTransitionError(str(backup_id), backup.status, "REMOVED")
                await db.delete(backup)
                await db.commit()
        logger.info("Backup entry removed", extra={"backup_id": str(backup_id)})

    async def sweep_stale(self, older_than: datetime) -> list[UUID]:
        """Fail every non-terminal entry created before `older_than`."""
        async with self._sessions() as db:
            result = await db.execute(
                select(Backup.id)
                .where(Backup.status.in_(_sources_of(BackupStatus.FAILED)))
                .where(Backup.created_at < older_than),
            )
            stale_ids = list(result.scalars().all())

        swept = []
        for backup_id in stale_ids:
            try:
                await self.fail(backup_id, "Stale: still in progress past the sweep threshold")
            except InvalidTransitionError:
                # Finished between the SELECT and the UPDATE
                logger.info("Stale candidate already terminal", extra={"backup_id": str(backup_id)})
                continue
            swept.append(backup_id)
        return swept

    @staticmethod
    async def _raise_rejected(db, backup_id: UUID, target: BackupStatus) -> None:
        current = await db.scalar(select(Backup.status).where(Backup.id == backup_id))
        if current is None:
            raise ResourceNotFoundError("Backup", str(backup_id))
        raise InvalidTransitionError(str(backup_id), current, target.value)


def _sources_of(target: BackupStatus) -> list[str]:
    """Statuses from which `target` may be reached."""
    return [
        source.value for source, targets in ALLOWED_TRANSITIONS.items()
        if target in targets
    ]
