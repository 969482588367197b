"""Tests for the ordered account upgrade steps."""

from phonereg.accounts.models import OWNER_SCOPE, AccountHandle, ComponentName, Icon
from phonereg.config import LEGACY_SIP_COMPONENT
from phonereg.storage.upgrades import (
    UPGRADE_STEPS,
    AccountRecord,
    UpgradeContext,
    icon_resource_from_package,
    upgrade_record,
)

CONTEXT = UpgradeContext(legacy_sip_component=LEGACY_SIP_COMPONENT)
VOIP = AccountHandle(ComponentName("com.example.voip", "com.example.voip.Service"), "1", OWNER_SCOPE)


def test_steps_are_ordered_by_version():
    versions = [step.introduced_in for step in UPGRADE_STEPS]
    assert versions == sorted(versions)


def test_current_records_are_untouched():
    record = AccountRecord(handle=VOIP, supported_uri_schemes=("sip",), icon_res_id=4)
    assert upgrade_record(record, 5, CONTEXT) == record


def test_version_one_runs_every_step():
    record = upgrade_record(AccountRecord(handle=VOIP, icon_res_id=4), 1, CONTEXT)
    assert record.supported_uri_schemes == ("tel", "voicemail")
    assert record.icon_package_name == "com.example.voip"
    assert record.to_account().icon == Icon.from_resource("com.example.voip", 4)


def test_steps_do_not_mutate_their_input():
    record = AccountRecord(handle=VOIP)
    upgraded = icon_resource_from_package(record, CONTEXT)
    assert record.icon_package_name is None
    assert upgraded.icon_package_name == "com.example.voip"


def test_inline_payload_wins_over_resource():
    record = AccountRecord(
        handle=VOIP, icon_payload=b"new", icon_bitmap=b"old", icon_package_name="pkg"
    )
    assert record.to_account().icon == Icon.from_bytes(b"new")
