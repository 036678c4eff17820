"""Backup Schemas — request validation for the backup API.

Invariants:
    - Formats and restore modes are closed Literal sets; unknown values are 400s
    - to_options() is the only path from request JSON to BackupOptions, so
      cross-field rules (date order, non-empty categories) stay in core/

Design Decisions:
    - Pydantic for shape and types, core dataclasses for domain rules: a
      BackupOptionsError from to_options() surfaces through the domain handler
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from stockroom.core.backup_options import BackupOptions, DateRange, IncludedData
from stockroom.core.domain_types import BackupFormat, RestoreMode


class IncludeData(BaseModel):
    inventory_items: bool = True
    audit_logs: bool = False
    users: bool = False
    system_settings: bool = False


class DateRangeModel(BaseModel):
    date_from: datetime | None = Field(None, alias="from")
    date_to: datetime | None = Field(None, alias="to")

    model_config = {"populate_by_name": True}

    @field_validator("date_from", "date_to")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class BackupCreateRequest(BaseModel):
    """Backup creation — formats, categories, optional date range and encryption."""
    formats: list[Literal["json", "csv", "sql"]] = Field(
        default_factory=lambda: ["json"], min_length=1, max_length=3,
    )
    include_data: IncludeData = Field(default_factory=IncludeData)
    date_range: DateRangeModel | None = None
    encrypted: bool = False
    name: str | None = Field(None, max_length=120)
    notes: str | None = Field(None, max_length=2000)

    @field_validator("name", "notes")
    @classmethod
    def strip_blank(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def to_options(self) -> BackupOptions:
        """Build validated domain options. Raises BackupOptionsError."""
        date_range = None
        if self.date_range and (self.date_range.date_from or self.date_range.date_to):
            date_range = DateRange(self.date_range.date_from, self.date_range.date_to)
        return BackupOptions(
            formats=tuple(BackupFormat(f.upper()) for f in self.formats),
            include=IncludedData(**self.include_data.model_dump()),
            date_range=date_range,
            encrypted=self.encrypted,
            name=self.name,
            notes=self.notes,
        )


class RestoreRequest(BaseModel):
    mode: Literal["full", "merge", "preview", "preview_full"]
    create_backup_before_restore: bool = False

    @property
    def restore_mode(self) -> RestoreMode:
        return RestoreMode(self.mode)
