"""Backup Creator — snapshot the live set once, write one artifact per format.

Invariants:
    - The catalog entry exists (IN_PROGRESS) before any data is read
    - The live set is read exactly once; every artifact encodes the same Snapshot
    - The checksum is computed over the stored bytes (after encryption, if any)
    - One failing format becomes a warning; the backup still completes
    - No format written -> entry FAILED, BackupFailedError raised
    - Cancellation or an unexpected error -> entry FAILED (never left IN_PROGRESS),
      artifacts already written are removed, the exception propagates

Design Decisions:
    - The first successfully written format (in request order) is primary: it
      carries the catalog checksum and is the artifact restores read
    - Snapshot reads are not isolated from concurrent writers: a backup is as of
      the read, not a frozen transaction
    - Only JSON carries audit history, users and system settings; other formats
      add an explicit warning when those categories were requested
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from uuid import UUID

from stockroom.core import artifact_codec
from stockroom.core.artifact_codec import ArtifactMetadata, Snapshot
from stockroom.core.backup_entry import ArtifactEntry, BackupDraft, BackupEntry, artifact_path
from stockroom.core.backup_options import BackupOptions
from stockroom.core.domain_types import BackupFormat
from stockroom.core.errors import (
    BackupFailedError, BackupOptionsError, InvalidTransitionError, StockroomError,
)
from stockroom.core.repository_protocols import (
    ArtifactStorage, Clock, InventoryStore, SnapshotFilter,
)
from stockroom.infrastructure.artifact_cipher import ArtifactCipher
from stockroom.services.backup_catalog import BackupCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupProgress:
    step: str
    percent: int


ProgressCallback = Callable[[BackupProgress], None]


@dataclass
class BackupCreation:
    """Result of create_backup: the completed entry plus per-format warnings."""
    entry: BackupEntry
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"backup": self.entry.to_dict(), "warnings": list(self.warnings)}


def artifact_file_name(name: str, fmt: BackupFormat, encrypted: bool) -> str:
    file_name = f"{name}.{fmt.extension}"
    return f"{file_name}.enc" if encrypted else file_name


class BackupCreator:

    def __init__(
        self,
        catalog: BackupCatalog,
        store: InventoryStore,
        storage: ArtifactStorage,
        clock: Clock,
        cipher: ArtifactCipher | None = None,
    ):
        self._catalog = catalog
        self._store = store
        self._storage = storage
        self._clock = clock
        self._cipher = cipher

    async def create_backup(
        self,
        requester_id: UUID,
        options: BackupOptions,
        on_progress: ProgressCallback | None = None,
    ) -> BackupCreation:
        if options.encrypted and self._cipher is None:
            raise BackupOptionsError(
                "Encryption requested but no backup encryption key is configured",
                "encrypted",
            )

        name = options.name or f"stockroom-backup-{self._clock.now():%Y%m%d-%H%M%S}"
        entry = await self._catalog.create(BackupDraft(
            name=name,
            file_name=artifact_file_name(name, options.primary_format, options.encrypted),
            file_type=options.primary_format,
            created_by=requester_id,
            encrypted=options.encrypted,
            includes_audit=options.include.audit_logs,
            notes=options.notes,
        ))
        log_extra = {"backup_id": str(entry.id), "requester_id": str(requester_id)}
        logger.info(f"Creating backup '{name}'", extra=log_extra)

        written: list[ArtifactEntry] = []
        try:
            _report(on_progress, "Reading inventory snapshot", 10)
            snapshot = await self._read_snapshot(options)
            metadata = ArtifactMetadata(
                backup_id=entry.id,
                created_at=entry.created_at,
                created_by=await self._store.describe_user(requester_id) or str(requester_id),
                record_count=len(snapshot.records),
                includes_audit=snapshot.audit_entries is not None,
            )

            warnings: list[str] = []
            for index, fmt in enumerate(options.formats):
                _report(
                    on_progress, f"Writing {fmt.value} artifact",
                    20 + 70 * index // len(options.formats),
                )
                try:
                    artifact = await self._write_artifact(
                        entry.id, name, fmt, snapshot, metadata, options.encrypted,
                    )
                except Exception as e:
                    logger.warning(
                        f"Artifact write failed: {e}",
                        extra={**log_extra, "format": fmt.value}, exc_info=True,
                    )
                    warnings.append(f"{fmt.value}: {e}")
                    continue
                written.append(artifact)
                if fmt is not BackupFormat.JSON and _has_extra_categories(snapshot):
                    warnings.append(
                        f"{fmt.value}: only inventory items are written to this format",
                    )

            if not written:
                reason = "; ".join(warnings) or "no format could be written"
                await self._catalog.fail(entry.id, reason)
                raise BackupFailedError(str(entry.id), reason)

            _report(on_progress, "Recording backup", 95)
            written[0] = replace(written[0], is_primary=True)
            completed = await self._catalog.complete(
                entry.id,
                file_size=sum(a.file_size for a in written),
                record_count=len(snapshot.records),
                checksum=written[0].checksum,
                artifacts=written,
                warnings=warnings,
            )
        except asyncio.CancelledError:
            logger.info("Backup creation cancelled", extra=log_extra)
            await asyncio.shield(self._abandon(entry.id, "Cancelled", written))
            raise
        except BackupFailedError:
            raise
        except Exception as e:
            logger.error(f"Backup creation failed: {e}", extra=log_extra, exc_info=True)
            await self._abandon(entry.id, f"Unexpected error: {e}", written)
            raise

        _report(on_progress, "Backup completed", 100)
        logger.info(
            f"Backup completed with {len(written)} artifact(s)",
            extra={**log_extra, "duration_ms": int((completed.duration_seconds or 0) * 1000)},
        )
        return BackupCreation(entry=completed, warnings=warnings)

    async def _read_snapshot(self, options: BackupOptions) -> Snapshot:
        snapshot_filter = SnapshotFilter(date_range=options.date_range)
        include = options.include
        records = (
            await self._store.read_inventory_snapshot(snapshot_filter)
            if include.inventory_items else []
        )
        return Snapshot(
            records=records,
            audit_entries=(
                await self._store.read_audit_history(snapshot_filter)
                if include.audit_logs else None
            ),
            users=await self._store.read_users() if include.users else None,
            system_settings=(
                await self._store.read_system_settings()
                if include.system_settings else None
            ),
        )

    async def _write_artifact(
        self,
        backup_id: UUID,
        name: str,
        fmt: BackupFormat,
        snapshot: Snapshot,
        metadata: ArtifactMetadata,
        encrypted: bool,
    ) -> ArtifactEntry:
        data = artifact_codec.encode(snapshot, metadata, fmt)
        if encrypted:
            data = self._cipher.encrypt(data)
        file_name = artifact_file_name(name, fmt, encrypted)
        path = artifact_path(backup_id, file_name)
        await self._storage.write_bytes(path, data)
        return ArtifactEntry(
            format=fmt,
            file_name=file_name,
            storage_path=path,
            file_size=len(data),
            checksum=artifact_codec.checksum(data),
        )

    async def _abandon(
        self, backup_id: UUID, reason: str, written: list[ArtifactEntry],
    ) -> None:
        """Mark the entry FAILED and remove whatever artifacts were stored."""
        for artifact in written:
            try:
                await self._storage.delete(artifact.storage_path)
            except StockroomError as e:
                logger.warning(
                    f"Could not remove artifact: {e.message}",
                    extra={"backup_id": str(backup_id), "path": artifact.storage_path},
                )
        try:
            await self._catalog.fail(backup_id, reason)
        except InvalidTransitionError:
            logger.info(
                "Entry already terminal, leaving it as is",
                extra={"backup_id": str(backup_id)},
            )


def _has_extra_categories(snapshot: Snapshot) -> bool:
    return any(
        part is not None
        for part in (snapshot.audit_entries, snapshot.users, snapshot.system_settings)
    )


def _report(callback: ProgressCallback | None, step: str, percent: int) -> None:
    if callback is not None:
        callback(BackupProgress(step=step, percent=percent))
