"""Backup Verifier — recompute checksums and decode artifacts against the catalog.

Invariants:
    - Unknown backup id raises ResourceNotFoundError; every other problem is a
      finding (valid=False with a reason), never an exception
    - A storage read error is a finding too, and still clears the verified flag
    - valid=True only when every artifact exists, matches its recorded checksum,
      decodes without structural errors, and the primary matches the catalog
      checksum and record count
    - Each artifact is read once; the primary's decoded contents are what
      load_verified() hands to the restore engine, so restore never reads bytes
      that were not checked
    - The only catalog write is the verified flag
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from stockroom.core import artifact_codec
from stockroom.core.artifact_codec import ArtifactContents
from stockroom.core.backup_entry import ArtifactEntry, BackupEntry
from stockroom.core.domain_types import BackupStatus
from stockroom.core.errors import (
    CorruptBackupError, MalformedArtifactError, SchemaMismatchError, StorageError,
)
from stockroom.core.repository_protocols import ArtifactStorage
from stockroom.infrastructure.artifact_cipher import ArtifactCipher
from stockroom.services.backup_catalog import BackupCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    backup_id: UUID
    valid: bool
    reason: str | None = None
    checked_artifacts: int = 0

    def to_dict(self) -> dict:
        return {
            "backup_id": str(self.backup_id),
            "valid": self.valid,
            "reason": self.reason,
            "checked_artifacts": self.checked_artifacts,
        }


class _Finding(Exception):
    """Internal: one artifact failed a check."""


class BackupVerifier:

    def __init__(
        self,
        catalog: BackupCatalog,
        storage: ArtifactStorage,
        cipher: ArtifactCipher | None = None,
    ):
        self._catalog = catalog
        self._storage = storage
        self._cipher = cipher

    async def verify(self, backup_id: UUID) -> VerificationResult:
        result, _ = await self._inspect(backup_id)
        return result

    async def load_verified(
        self, backup_id: UUID,
    ) -> tuple[BackupEntry, ArtifactContents]:
        """Verify, then return the primary artifact's decoded contents.

        Raises CorruptBackupError when verification fails.
        """
        result, loaded = await self._inspect(backup_id)
        if not result.valid:
            raise CorruptBackupError(str(backup_id), result.reason or "verification failed")
        return loaded

    async def _inspect(self, backup_id: UUID):
        entry = await self._catalog.get(backup_id)
        checked = 0
        contents = None
        try:
            if entry.status is not BackupStatus.COMPLETED:
                raise _Finding(f"backup status is {entry.status.value}, not COMPLETED")
            primary = entry.primary_artifact
            if not entry.checksum or primary is None:
                raise _Finding("catalog entry has no recorded checksum")
            if primary.checksum != entry.checksum:
                raise _Finding("primary artifact checksum disagrees with the catalog")

            for artifact in entry.artifacts:
                decoded = await self._check_artifact(entry, artifact)
                checked += 1
                if artifact.is_primary:
                    contents = decoded
            if contents.metadata is not None and contents.metadata.backup_id != entry.id:
                raise _Finding("artifact metadata belongs to a different backup")
            if len(contents.records) != entry.record_count:
                raise _Finding(
                    f"artifact holds {len(contents.records)} records, "
                    f"catalog expects {entry.record_count}"
                )
        except _Finding as finding:
            result = VerificationResult(entry.id, False, str(finding), checked)
        else:
            result = VerificationResult(entry.id, True, None, checked)

        await self._catalog.mark_verified(entry.id, result.valid)
        log = logger.info if result.valid else logger.warning
        log(
            f"Verification {'passed' if result.valid else 'failed'}"
            + (f": {result.reason}" if result.reason else ""),
            extra={"backup_id": str(entry.id)},
        )
        return result, (entry, contents)

    async def _check_artifact(
        self, entry: BackupEntry, artifact: ArtifactEntry,
    ) -> ArtifactContents:
        if not await self._storage.exists(artifact.storage_path):
            raise _Finding(f"artifact file is missing: {artifact.file_name}")
        try:
            data = await self._storage.read_bytes(artifact.storage_path)
        except StorageError as e:
            logger.warning(
                f"Artifact read failed: {e.message}",
                extra={"backup_id": str(entry.id), "path": artifact.storage_path},
            )
            raise _Finding(f"artifact unreadable: {artifact.file_name}")
        if artifact_codec.checksum(data) != artifact.checksum:
            raise _Finding(f"checksum mismatch for {artifact.file_name}")
        if entry.encrypted:
            if self._cipher is None:
                raise _Finding("artifact is encrypted and no key is configured")
            try:
                data = self._cipher.decrypt(data)
            except MalformedArtifactError as e:
                raise _Finding(f"{artifact.file_name}: {e.message}")
        try:
            return artifact_codec.decode(data, artifact.format)
        except (MalformedArtifactError, SchemaMismatchError) as e:
            raise _Finding(f"{artifact.file_name}: {e.message}")
