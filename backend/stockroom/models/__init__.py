"""ORM Models — SQLAlchemy declarative models for the catalog and the live data set.

Invariants:
    - All models inherit from Base (db/base.py)
    - Backup / BackupArtifact are owned by the catalog service only
    - InventoryItem / User / AuditLog / SystemSetting belong to the host
      application; the backup core reaches them through infrastructure adapters

Design Decisions:
    - One file per entity for locality
    - All models imported here so string-based relationship() references resolve
      before any query runs
"""

from stockroom.models.user import User  # noqa: F401
from stockroom.models.inventory_item import InventoryItem  # noqa: F401
from stockroom.models.audit_log import AuditLog  # noqa: F401
from stockroom.models.system_setting import SystemSetting  # noqa: F401
from stockroom.models.backup import Backup, BackupArtifact  # noqa: F401
