"""Backup Options — validated, immutable description of what a backup should contain.

Invariants:
    - formats is a non-empty tuple of distinct BackupFormat values
    - at least one data category is included
    - date_from <= date_to when both are given; either bound may be open
    - name, when given, is a bare file stem (no path separators, no leading dot)
    - every violation raises BackupOptionsError at construction, never later

Design Decisions:
    - Frozen dataclasses over option dicts: an invalid BackupOptions cannot exist
"""

import re
from dataclasses import dataclass, field
from datetime import datetime

from stockroom.core.domain_types import BackupFormat
from stockroom.core.errors import BackupOptionsError

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,119}$")


@dataclass(frozen=True)
class IncludedData:
    inventory_items: bool = True
    audit_logs: bool = False
    users: bool = False
    system_settings: bool = False

    def __post_init__(self):
        if not any((self.inventory_items, self.audit_logs, self.users, self.system_settings)):
            raise BackupOptionsError(
                "At least one data category must be included", "include_data",
            )


@dataclass(frozen=True)
class DateRange:
    date_from: datetime | None = None
    date_to: datetime | None = None

    def __post_init__(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise BackupOptionsError(
                "date_range.from must not be after date_range.to", "date_range",
            )

    def contains(self, moment: datetime) -> bool:
        if self.date_from and moment < self.date_from:
            return False
        if self.date_to and moment > self.date_to:
            return False
        return True


@dataclass(frozen=True)
class BackupOptions:
    formats: tuple[BackupFormat, ...] = (BackupFormat.JSON,)
    include: IncludedData = field(default_factory=IncludedData)
    date_range: DateRange | None = None
    encrypted: bool = False
    name: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if not self.formats:
            raise BackupOptionsError("At least one format is required", "formats")
        for fmt in self.formats:
            if not isinstance(fmt, BackupFormat):
                raise BackupOptionsError(f"Unknown backup format: {fmt!r}", "formats")
        if len(set(self.formats)) != len(self.formats):
            raise BackupOptionsError("Formats must not repeat", "formats")
        if self.name is not None and not _NAME_PATTERN.match(self.name):
            raise BackupOptionsError(
                "Name may contain letters, digits, '.', '_' and '-' only", "name",
            )

    @property
    def primary_format(self) -> BackupFormat:
        return self.formats[0]
