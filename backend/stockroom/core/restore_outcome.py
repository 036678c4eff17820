"""Restore Outcome — per-invocation result of the restore engine.

Invariants:
    - A record that failed to write is in `errors` and in neither `added` nor `updated`
    - success is False iff at least one write failed
    - Never persisted by the core; callers turn to_audit_value() into an audit entry
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from stockroom.core.domain_types import RestoreMode


@dataclass
class RestoreOutcome:
    backup_id: UUID
    mode: RestoreMode
    started_at: datetime
    finished_at: datetime | None = None
    added: int = 0
    updated: int = 0
    skipped: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)
    # Per-record plan summary; filled only for dry runs
    planned: list[dict] = field(default_factory=list)
    safety_backup_id: UUID | None = None

    @property
    def dry_run(self) -> bool:
        return self.mode.is_dry_run

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def duration_ms(self) -> int:
        if self.finished_at is None:
            return 0
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict:
        return {
            "backup_id": str(self.backup_id),
            "mode": self.mode.value,
            "dry_run": self.dry_run,
            "success": self.success,
            "items_added": self.added,
            "items_updated": self.updated,
            "items_skipped": self.skipped,
            "items_deleted": self.deleted,
            "errors": list(self.errors),
            "planned": list(self.planned),
            "safety_backup_id": str(self.safety_backup_id) if self.safety_backup_id else None,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }

    def to_audit_value(self) -> dict:
        """Compact summary for the audit sink's new_value column."""
        return {
            "action": "restore",
            "backupId": str(self.backup_id),
            "mode": self.mode.value,
            "itemsAdded": self.added,
            "itemsUpdated": self.updated,
            "itemsSkipped": self.skipped,
            "itemsDeleted": self.deleted,
            "errorCount": len(self.errors),
            "safetyBackupId": str(self.safety_backup_id) if self.safety_backup_id else None,
        }
