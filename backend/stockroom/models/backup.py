"""Backup ORM — the catalog ledger of backups and their stored artifacts.

Invariants:
    - id is UUID primary key
    - status transitions: IN_PROGRESS -> COMPLETED | FAILED (terminal), enforced
      by the catalog service with conditional UPDATEs
    - COMPLETED rows always have file_size > 0 and a checksum; FAILED rows have
      checksum NULL
    - verified / verified_at are the only columns written after a terminal status

Design Decisions:
    - file_name / file_type / checksum / storage_path describe the primary artifact;
      every written format (primary included) also gets a BackupArtifact row
    - warnings as JSON list: per-format failures of a partially successful backup
    - cascade delete for artifacts (retention pruning removes both)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, BigInteger, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from stockroom.db.base import Base


class Backup(Base):
    """Catalog row — one logical snapshot, one or more artifacts."""
    __tablename__ = "backups"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(10), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="IN_PROGRESS", index=True,
    )
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    encrypted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_audit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    warnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    artifacts: Mapped[list["BackupArtifact"]] = relationship(
        "BackupArtifact", back_populates="backup",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="BackupArtifact.position",
    )


class BackupArtifact(Base):
    """One stored file of a backup (one per successfully written format)."""
    __tablename__ = "backup_artifacts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    backup_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("backups.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_type: Mapped[str] = mapped_column(String(10), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    backup: Mapped["Backup"] = relationship("Backup", back_populates="artifacts")
