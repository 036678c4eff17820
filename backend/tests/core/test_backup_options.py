"""Backup Options — invalid combinations are rejected at construction."""

from datetime import timedelta

import pytest

from stockroom.core.backup_options import BackupOptions, DateRange, IncludedData
from stockroom.core.domain_types import BackupFormat
from stockroom.core.errors import BackupOptionsError
from tests.factories import T0


def test_defaults_are_a_json_inventory_backup():
    options = BackupOptions()
    assert options.formats == (BackupFormat.JSON,)
    assert options.primary_format is BackupFormat.JSON
    assert options.include.inventory_items
    assert not options.encrypted


def test_primary_format_is_the_first_requested():
    options = BackupOptions(formats=(BackupFormat.CSV, BackupFormat.JSON))
    assert options.primary_format is BackupFormat.CSV


def test_empty_formats_rejected():
    with pytest.raises(BackupOptionsError) as exc_info:
        BackupOptions(formats=())
    assert exc_info.value.field == "formats"


def test_unknown_format_rejected():
    with pytest.raises(BackupOptionsError):
        BackupOptions(formats=("xml",))


def test_repeated_format_rejected():
    with pytest.raises(BackupOptionsError):
        BackupOptions(formats=(BackupFormat.CSV, BackupFormat.CSV))


def test_nothing_included_rejected():
    with pytest.raises(BackupOptionsError):
        IncludedData(inventory_items=False)


def test_inverted_date_range_rejected():
    with pytest.raises(BackupOptionsError):
        DateRange(date_from=T0, date_to=T0 - timedelta(days=1))


def test_open_ended_date_range_contains():
    since = DateRange(date_from=T0)
    assert since.contains(T0 + timedelta(days=3))
    assert not since.contains(T0 - timedelta(seconds=1))


@pytest.mark.parametrize("name", ["../etc/passwd", ".hidden", "a/b", "", "x" * 121])
def test_unsafe_names_rejected(name):
    with pytest.raises(BackupOptionsError):
        BackupOptions(name=name)


def test_plain_name_accepted():
    assert BackupOptions(name="nightly-2026.03.02_a").name == "nightly-2026.03.02_a"
