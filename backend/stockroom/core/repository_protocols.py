"""Boundary Protocols — contracts between the backup core and its collaborators.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - The data store, audit sink, artifact storage and clock are reached only
      through these Protocols and are injected at construction
    - InventoryStore methods are already-authorized and transactional per record

Design Decisions:
    - Protocol over ABC: structural subtyping, test doubles need no inheritance
    - Async in Protocol: implementations do IO; the pure core never awaits
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from stockroom.core.backup_options import DateRange
from stockroom.core.domain_types import AuditAction
from stockroom.core.inventory_record import InventoryRecord


@dataclass(frozen=True)
class SnapshotFilter:
    """Restricts which inventory / audit rows a snapshot read returns."""
    date_range: DateRange | None = None


class InventoryStore(Protocol):
    """Data-access layer for the live inventory set — implemented by shell."""
    async def read_inventory_snapshot(
        self, snapshot_filter: SnapshotFilter | None = None,
    ) -> list[InventoryRecord]: ...
    async def upsert_inventory_record(self, record: InventoryRecord) -> bool:
        """Insert or overwrite by id. Returns True when a row was inserted.

        Raises RecordConstraintError when the record violates a store constraint.
        """
        ...
    async def delete_inventory_record(self, record_id: UUID) -> bool: ...
    async def read_audit_history(
        self, snapshot_filter: SnapshotFilter | None = None,
    ) -> list[dict]: ...
    async def read_users(self) -> list[dict]: ...
    async def read_system_settings(self) -> list[dict]: ...
    async def describe_user(self, user_id: UUID) -> str | None: ...


class AuditSink(Protocol):
    """Audit trail writer — called by API callers after create/verify/restore."""
    async def record_action(
        self,
        actor_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: str | None = None,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
    ) -> None: ...


class ArtifactStorage(Protocol):
    """Byte storage for artifacts — paths are storage-relative keys."""
    async def write_bytes(self, path: str, data: bytes) -> None: ...
    async def read_bytes(self, path: str) -> bytes: ...
    async def exists(self, path: str) -> bool: ...
    async def delete(self, path: str) -> None: ...


class Clock(Protocol):
    def now(self) -> datetime: ...
