"""Backup Monitor — health snapshot computed fresh from the catalog on every call."""

from stockroom.core.backup_health import BackupHealth, HealthThresholds, compute_backup_health
from stockroom.core.repository_protocols import Clock
from stockroom.services.backup_catalog import BackupCatalog


class BackupMonitor:

    def __init__(self, catalog: BackupCatalog, clock: Clock, thresholds: HealthThresholds):
        self._catalog = catalog
        self._clock = clock
        self._thresholds = thresholds

    async def get_backup_health(self) -> BackupHealth:
        entries = await self._catalog.all_entries()
        return compute_backup_health(entries, self._clock.now(), self._thresholds)
