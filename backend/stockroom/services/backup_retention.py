"""Backup Retention — prune expired backups: artifacts first, then the catalog row.

Invariants:
    - Only terminal entries chosen by select_expired() are touched
    - A catalog row is removed only after all of its artifacts were deleted, so a
      storage failure leaves a visible entry rather than an orphaned file
    - One failing entry does not stop the pass; failures are reported
"""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from stockroom.core.errors import StockroomError
from stockroom.core.repository_protocols import ArtifactStorage, Clock
from stockroom.core.retention import RetentionPolicy, select_expired
from stockroom.services.backup_catalog import BackupCatalog

logger = logging.getLogger(__name__)


@dataclass
class RetentionReport:
    removed: list[UUID] = field(default_factory=list)
    freed_bytes: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "removed": [str(i) for i in self.removed],
            "freed_bytes": self.freed_bytes,
            "errors": list(self.errors),
        }


class BackupRetention:

    def __init__(
        self,
        catalog: BackupCatalog,
        storage: ArtifactStorage,
        clock: Clock,
        policy: RetentionPolicy,
    ):
        self._catalog = catalog
        self._storage = storage
        self._clock = clock
        self._policy = policy

    async def apply(self) -> RetentionReport:
        entries = await self._catalog.all_entries()
        report = RetentionReport()
        for entry in select_expired(entries, self._clock.now(), self._policy):
            paths = [a.storage_path for a in entry.artifacts] or [entry.storage_path]
            try:
                for path in paths:
                    await self._storage.delete(path)
                await self._catalog.remove(entry.id)
            except StockroomError as e:
                logger.warning(
                    f"Retention could not prune backup: {e.message}",
                    extra={"backup_id": str(entry.id), "error_code": e.code},
                )
                report.errors.append(f"{entry.id}: {e.message}")
                continue
            report.removed.append(entry.id)
            report.freed_bytes += entry.file_size
        if report.removed:
            logger.info(f"Retention pruned {len(report.removed)} backup(s)")
        return report
