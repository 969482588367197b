"""Schema upgrades applied to account records read from older state files.

Decoding happens in two stages: the codec parses raw fields into an
``AccountRecord``, then every step whose ``introduced_in`` version is newer
than the file's version rewrites the record. Steps are pure and run in order.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from phonereg.accounts.models import (
    NO_HIGHLIGHT_COLOR,
    NO_ICON_TINT,
    NO_RESOURCE_ID,
    SCHEME_SIP,
    SCHEME_TEL,
    SCHEME_VOICEMAIL,
    Account,
    AccountHandle,
    ComponentName,
    Icon,
)


@dataclass(frozen=True)
class AccountRecord:
    """Raw account fields as found in the state file, before upgrades."""

    handle: AccountHandle
    address: str | None = None
    subscription_address: str | None = None
    capabilities: int = 0
    icon_payload: bytes | None = None
    icon_bitmap: bytes | None = None  # Inline payload written before version 5
    icon_package_name: str | None = None
    icon_res_id: int = NO_RESOURCE_ID
    icon_tint: int = NO_ICON_TINT
    highlight_color: int = NO_HIGHLIGHT_COLOR
    label: str | None = None
    short_description: str | None = None
    supported_uri_schemes: tuple[str, ...] | None = None
    enabled: bool = False

    def to_account(self) -> Account:
        if self.icon_payload is not None:
            icon = Icon.from_bytes(self.icon_payload)
        elif self.icon_bitmap is not None:
            icon = Icon.from_bytes(self.icon_bitmap)
        elif self.icon_package_name:
            icon = Icon.from_resource(self.icon_package_name, self.icon_res_id, self.icon_tint)
        else:
            icon = None

        return Account(
            handle=self.handle,
            label=self.label,
            address=self.address,
            subscription_address=self.subscription_address,
            capabilities=self.capabilities,
            icon=icon,
            highlight_color=self.highlight_color,
            short_description=self.short_description,
            supported_uri_schemes=self.supported_uri_schemes or (),
            enabled=self.enabled,
        )


@dataclass(frozen=True)
class UpgradeContext:
    """Device facts some upgrades depend on."""

    legacy_sip_component: ComponentName
    use_sip_for_pstn: bool = False


@dataclass(frozen=True)
class UpgradeStep:
    introduced_in: int  # Runs for records written by any earlier version
    name: str
    apply: Callable[[AccountRecord, UpgradeContext], AccountRecord]


def synthesize_uri_schemes(record: AccountRecord, context: UpgradeContext) -> AccountRecord:
    """Version 1 files carry no URI schemes; derive them from the component."""
    if record.handle.component == context.legacy_sip_component:
        schemes = [SCHEME_SIP]
        if context.use_sip_for_pstn:
            schemes.append(SCHEME_TEL)
    else:
        schemes = [SCHEME_TEL, SCHEME_VOICEMAIL]
    return replace(record, supported_uri_schemes=tuple(schemes))


def icon_resource_from_package(record: AccountRecord, context: UpgradeContext) -> AccountRecord:
    """Before version 5 resource icons did not name their package."""
    if record.icon_bitmap is None:
        return replace(record, icon_package_name=record.handle.package)
    return record


UPGRADE_STEPS: list[UpgradeStep] = [
    UpgradeStep(introduced_in=2, name="supported_uri_schemes", apply=synthesize_uri_schemes),
    UpgradeStep(introduced_in=5, name="icon_package_name", apply=icon_resource_from_package),
]


def upgrade_record(record: AccountRecord, version: int, context: UpgradeContext) -> AccountRecord:
    """Bring ``record``, read from a version ``version`` file, up to date."""
    for step in UPGRADE_STEPS:
        if version < step.introduced_in:
            record = step.apply(record, context)
    return record
