"""Interfaces of the external collaborators used by the registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from phonereg.accounts.models import Account, ComponentName, UserScope

BIND_TELECOM_CONNECTION_SERVICE = "android.permission.BIND_TELECOM_CONNECTION_SERVICE"
BIND_CONNECTION_SERVICE = "android.permission.BIND_CONNECTION_SERVICE"  # Deprecated alias

BIND_PERMISSIONS = frozenset({BIND_TELECOM_CONNECTION_SERVICE, BIND_CONNECTION_SERVICE})

SIP_ADDRESS_ONLY = "SIP_ADDRESS_ONLY"
SIP_ALWAYS = "SIP_ALWAYS"
SIP_ASK_ME_EACH_TIME = "SIP_ASK_ME_EACH_TIME"


@dataclass(frozen=True)
class ResolvedService:
    """A component that answered a connection-service resolution query."""

    component: ComponentName
    permission: str | None = None  # Permission required to bind to the service


class ComponentResolver(Protocol):
    def resolve(
        self, component: ComponentName, scope: UserScope | None = None
    ) -> list[ResolvedService]:
        """Return the installed services matching ``component``, empty if none.

        With ``scope`` set, only services installed for that scope are returned.
        """
        ...


class SubscriptionService(Protocol):
    def subscription_id_for(self, account: Account) -> int:
        """Subscription id backing ``account``, or ``INVALID_SUBSCRIPTION_ID``."""
        ...

    def set_default_voice_subscription(self, subscription_id: int) -> None: ...

    def default_sms_subscription(self) -> int: ...

    def is_voicemail_number(self, subscription_id: int, number: str) -> bool: ...


class ScopeIdentity(Protocol):
    def serial_number_for(self, scope: UserScope) -> int:
        """Stable cross-reboot serial number of ``scope``, ``-1`` if it does not exist."""
        ...

    def scope_for_serial_number(self, serial_number: int) -> UserScope | None: ...

    def profiles_of(self, scope: UserScope) -> list[UserScope]:
        """Profiles nested under ``scope``, including ``scope`` itself."""
        ...


class PlatformConfig(Protocol):
    def default_connection_manager_component(self) -> str:
        """Flattened component name of the device default connection manager, or ``""``."""
        ...

    def sip_call_option(self) -> str | None:
        """The user's SIP call option, ``None`` when never set."""
        ...

    def legacy_sip_component(self) -> ComponentName:
        """Component of the SIP connection service that predates URI scheme support."""
        ...


def use_sip_for_pstn_calls(config: PlatformConfig) -> bool:
    """True when the SIP settings route every call, PSTN included, over SIP."""
    option = config.sip_call_option() or SIP_ADDRESS_ONLY
    return option == SIP_ALWAYS
