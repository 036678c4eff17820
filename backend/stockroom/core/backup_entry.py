"""Backup Entry — ORM-independent view of a catalog row.

Invariants:
    - BackupEntry is read-only; only the catalog service writes catalog rows
    - status COMPLETED implies file_size > 0 and checksum is set
    - artifacts lists every successfully written format; exactly one is primary
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from stockroom.core.domain_types import BackupFormat, BackupStatus


def artifact_path(backup_id: UUID, file_name: str) -> str:
    """Storage key of an artifact: one directory per backup id."""
    return f"{backup_id}/{file_name}"


@dataclass(frozen=True)
class ArtifactEntry:
    """One stored file belonging to a backup."""
    format: BackupFormat
    file_name: str
    storage_path: str
    file_size: int
    checksum: str
    is_primary: bool = False

    def to_dict(self) -> dict:
        return {
            "format": self.format.value,
            "file_name": self.file_name,
            "storage_path": self.storage_path,
            "file_size": self.file_size,
            "checksum": self.checksum,
            "is_primary": self.is_primary,
        }


@dataclass(frozen=True)
class BackupDraft:
    """What the creator knows before the first artifact is written."""
    name: str
    file_name: str
    file_type: BackupFormat
    created_by: UUID
    encrypted: bool = False
    includes_audit: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class BackupEntry:
    id: UUID
    name: str
    file_name: str
    file_type: BackupFormat
    file_size: int
    record_count: int
    checksum: str | None
    status: BackupStatus
    storage_path: str
    created_by: UUID
    created_at: datetime
    completed_at: datetime | None = None
    verified: bool = False
    verified_at: datetime | None = None
    encrypted: bool = False
    includes_audit: bool = False
    failure_reason: str | None = None
    notes: str | None = None
    warnings: list[str] = field(default_factory=list)
    artifacts: list[ArtifactEntry] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.created_at).total_seconds()

    @property
    def primary_artifact(self) -> ArtifactEntry | None:
        for artifact in self.artifacts:
            if artifact.is_primary:
                return artifact
        return None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "file_name": self.file_name,
            "file_type": self.file_type.value,
            "file_size": self.file_size,
            "record_count": self.record_count,
            "checksum": self.checksum,
            "status": self.status.value,
            "storage_path": self.storage_path,
            "created_by": str(self.created_by),
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "verified": self.verified,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "encrypted": self.encrypted,
            "includes_audit": self.includes_audit,
            "failure_reason": self.failure_reason,
            "notes": self.notes,
            "warnings": list(self.warnings),
            "artifacts": [a.to_dict() for a in self.artifacts],
        }
