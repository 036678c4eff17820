"""Backup request schemas — shape checks in pydantic, domain rules via to_options().

Invariants:
    - Unknown formats / restore modes fail pydantic validation
    - Duplicate formats and inverted date ranges raise BackupOptionsError
    - Naive date bounds are read as UTC
"""

from datetime import timezone

import pytest
from pydantic import ValidationError

from stockroom.core.domain_types import BackupFormat, RestoreMode
from stockroom.core.errors import BackupOptionsError
from stockroom.schemas.backup import BackupCreateRequest, RestoreRequest


def test_defaults_to_single_json_inventory_backup():
    options = BackupCreateRequest().to_options()

    assert options.formats == (BackupFormat.JSON,)
    assert options.include.inventory_items
    assert not options.include.audit_logs
    assert options.date_range is None
    assert not options.encrypted


def test_formats_keep_request_order():
    request = BackupCreateRequest(formats=["sql", "json"])
    assert request.to_options().formats == (BackupFormat.SQL, BackupFormat.JSON)


def test_unknown_format_is_rejected():
    with pytest.raises(ValidationError):
        BackupCreateRequest(formats=["xml"])


def test_empty_format_list_is_rejected():
    with pytest.raises(ValidationError):
        BackupCreateRequest(formats=[])


def test_duplicate_formats_fail_domain_validation():
    with pytest.raises(BackupOptionsError):
        BackupCreateRequest(formats=["json", "json"]).to_options()


def test_no_category_fails_domain_validation():
    request = BackupCreateRequest(include_data={"inventory_items": False})
    with pytest.raises(BackupOptionsError):
        request.to_options()


def test_date_range_uses_from_to_aliases():
    request = BackupCreateRequest.model_validate({
        "date_range": {"from": "2026-01-01T00:00:00", "to": "2026-02-01T00:00:00Z"},
    })
    date_range = request.to_options().date_range

    assert date_range.date_from.tzinfo == timezone.utc
    assert date_range.date_to.month == 2


def test_inverted_date_range_is_rejected():
    request = BackupCreateRequest.model_validate({
        "date_range": {"from": "2026-03-01T00:00:00Z", "to": "2026-01-01T00:00:00Z"},
    })
    with pytest.raises(BackupOptionsError):
        request.to_options()


def test_empty_date_range_means_unbounded():
    request = BackupCreateRequest.model_validate({"date_range": {}})
    assert request.to_options().date_range is None


def test_blank_name_becomes_default():
    assert BackupCreateRequest(name="   ").name is None


def test_name_with_path_separator_is_rejected():
    with pytest.raises(BackupOptionsError):
        BackupCreateRequest(name="../etc/passwd").to_options()


@pytest.mark.parametrize("mode", ["full", "merge", "preview", "preview_full"])
def test_restore_modes(mode):
    assert RestoreRequest(mode=mode).restore_mode is RestoreMode(mode)


def test_unknown_restore_mode_is_rejected():
    with pytest.raises(ValidationError):
        RestoreRequest(mode="replace")


def test_safety_backup_defaults_off():
    assert RestoreRequest(mode="full").create_backup_before_restore is False
