"""Backup Service — the operations exposed to the API, wired from settings.

Invariants:
    - Every collaborator is passed in at construction; nothing reaches for a
      process-wide database handle
    - A safety backup is taken only for writing restores, and only after the
      target backup verified cleanly (a corrupt target creates nothing)
    - Audit entries are the caller's job; results carry what the caller needs

Design Decisions:
    - One facade over catalog / creator / verifier / engine / monitor / retention so
      routes depend on a single object held in app.state
"""

import logging
from datetime import timedelta
from uuid import UUID

from stockroom.config import Settings
from stockroom.core.backup_entry import BackupEntry
from stockroom.core.backup_health import BackupHealth
from stockroom.core.backup_options import BackupOptions
from stockroom.core.domain_types import RestoreMode
from stockroom.core.errors import CorruptBackupError
from stockroom.core.repository_protocols import ArtifactStorage, Clock, InventoryStore
from stockroom.core.restore_outcome import RestoreOutcome
from stockroom.infrastructure.artifact_cipher import ArtifactCipher
from stockroom.infrastructure.artifact_storage import LocalArtifactStorage
from stockroom.infrastructure.clock import SystemClock
from stockroom.infrastructure.database import SessionProvider
from stockroom.infrastructure.sql_inventory_store import SqlInventoryStore
from stockroom.services.backup_catalog import BackupCatalog, BackupPage
from stockroom.services.backup_creator import BackupCreation, BackupCreator, ProgressCallback
from stockroom.services.backup_monitor import BackupMonitor
from stockroom.services.backup_retention import BackupRetention, RetentionReport
from stockroom.services.backup_sweeper import sweep_stale_backups
from stockroom.services.backup_verifier import BackupVerifier, VerificationResult
from stockroom.services.restore_engine import RestoreEngine

logger = logging.getLogger(__name__)


class BackupService:

    def __init__(
        self,
        catalog: BackupCatalog,
        store: InventoryStore,
        storage: ArtifactStorage,
        clock: Clock,
        settings: Settings,
        cipher: ArtifactCipher | None = None,
    ):
        self.catalog = catalog
        self.clock = clock
        self.stale_after = timedelta(minutes=settings.stale_backup_minutes)
        self.creator = BackupCreator(catalog, store, storage, clock, cipher)
        self.verifier = BackupVerifier(catalog, storage, cipher)
        self.engine = RestoreEngine(self.verifier, store, clock)
        self.monitor = BackupMonitor(catalog, clock, settings.health_thresholds())
        self.retention = BackupRetention(
            catalog, storage, clock, settings.retention_policy(),
        )

    @classmethod
    def from_settings(cls, settings: Settings, sessions: SessionProvider) -> "BackupService":
        clock = SystemClock()
        cipher = (
            ArtifactCipher(settings.backup_encryption_key)
            if settings.backup_encryption_key else None
        )
        return cls(
            catalog=BackupCatalog(sessions, clock),
            store=SqlInventoryStore(sessions),
            storage=LocalArtifactStorage(settings.backup_dir),
            clock=clock,
            settings=settings,
            cipher=cipher,
        )

    async def create_backup(
        self,
        requester_id: UUID,
        options: BackupOptions,
        on_progress: ProgressCallback | None = None,
    ) -> BackupCreation:
        return await self.creator.create_backup(requester_id, options, on_progress)

    async def list_backups(
        self,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> BackupPage:
        return await self.catalog.list_backups(page, limit, sort_by, sort_order)

    async def get_backup(self, backup_id: UUID) -> BackupEntry:
        return await self.catalog.get(backup_id)

    async def verify_backup(self, backup_id: UUID) -> VerificationResult:
        return await self.verifier.verify(backup_id)

    async def restore_backup(
        self,
        backup_id: UUID,
        mode: RestoreMode,
        requester_id: UUID,
        create_backup_before_restore: bool = False,
    ) -> RestoreOutcome:
        safety_backup_id = None
        if create_backup_before_restore and not mode.is_dry_run:
            check = await self.verifier.verify(backup_id)
            if not check.valid:
                raise CorruptBackupError(str(backup_id), check.reason or "verification failed")
            stamp = f"{self.clock.now():%Y%m%d-%H%M%S}"
            safety = await self.creator.create_backup(requester_id, BackupOptions(
                name=f"pre-restore-{stamp}",
                notes=f"Automatic backup before restoring {backup_id}",
            ))
            safety_backup_id = safety.entry.id
            logger.info(
                "Safety backup created before restore",
                extra={"backup_id": str(safety_backup_id)},
            )

        outcome = await self.engine.restore(backup_id, mode, requester_id)
        outcome.safety_backup_id = safety_backup_id
        return outcome

    async def get_backup_health(self) -> BackupHealth:
        return await self.monitor.get_backup_health()

    async def sweep_stale_backups(self) -> list[UUID]:
        return await sweep_stale_backups(self.catalog, self.clock, self.stale_after)

    async def apply_retention(self) -> RetentionReport:
        return await self.retention.apply()
