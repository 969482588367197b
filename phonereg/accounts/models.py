"""Phone account data models: scopes, handles, accounts, and registry state.

Covers: user scopes, component names, account handles (the registry's primary
key), icons, capability flags, the persisted registry state, and the result
type returned by mutations that can be silently refused.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag

CURRENT_STATE_VERSION = 5

SCHEME_TEL = "tel"
SCHEME_VOICEMAIL = "voicemail"
SCHEME_SIP = "sip"

NO_RESOURCE_ID = -1
NO_ICON_TINT = 0
NO_HIGHLIGHT_COLOR = 0
INVALID_SUBSCRIPTION_ID = -1


class Capability(IntFlag):
    """What a phone account can do. Values match the persisted bit layout."""

    CONNECTION_MANAGER = 0x1
    CALL_PROVIDER = 0x2
    SIM_SUBSCRIPTION = 0x4
    VIDEO_CALLING = 0x8
    PLACE_EMERGENCY_CALLS = 0x10
    MULTI_USER = 0x20  # Visible across all scopes


# --- Scopes ---


@dataclass(frozen=True)
class UserScope:
    """An isolated ownership domain (a device user or one of its profiles)."""

    id: int

    @property
    def is_owner(self) -> bool:
        return self.id == OWNER_SCOPE.id

    def __str__(self) -> str:
        return f"UserScope{{{self.id}}}"


OWNER_SCOPE = UserScope(0)


# --- Identity ---


@dataclass(frozen=True)
class ComponentName:
    """A package plus the class inside it that implements a connection service."""

    package: str
    class_name: str

    def flatten_to_string(self) -> str:
        return f"{self.package}/{self.class_name}"

    def flatten_to_short_string(self) -> str:
        if self.class_name.startswith(self.package + "."):
            return f"{self.package}/{self.class_name[len(self.package):]}"
        return self.flatten_to_string()

    @classmethod
    def unflatten_from_string(cls, value: str | None) -> ComponentName | None:
        """Parse ``pkg/cls`` (or ``pkg/.Cls`` shorthand); ``None`` if malformed."""
        if not value:
            return None
        sep = value.find("/")
        if sep < 0 or sep + 1 >= len(value):
            return None
        package = value[:sep]
        class_name = value[sep + 1:]
        if class_name.startswith("."):
            class_name = package + class_name
        return cls(package=package, class_name=class_name)

    def __str__(self) -> str:
        return f"ComponentInfo{{{self.flatten_to_short_string()}}}"


@dataclass(frozen=True)
class AccountHandle:
    """Identity of a phone account: component, id within it, and owning scope."""

    component: ComponentName
    id: str
    scope: UserScope | None = None

    @property
    def package(self) -> str:
        return self.component.package

    @property
    def is_none_selected(self) -> bool:
        """True for the explicit "no account selected" sentinel, whatever its scope."""
        return (
            self.component == NO_ACCOUNT_SELECTED.component
            and self.id == NO_ACCOUNT_SELECTED.id
        )

    def with_scope(self, scope: UserScope | None) -> AccountHandle:
        return AccountHandle(component=self.component, id=self.id, scope=scope)

    def __str__(self) -> str:
        return f"{self.component}, {self.id}, {self.scope}"


NO_ACCOUNT_SELECTED = AccountHandle(
    component=ComponentName("null", "null"), id="NO_ACCOUNT_SELECTED"
)


# --- Icon ---


@dataclass(frozen=True)
class Icon:
    """Display icon: either an opaque inline payload or an app resource reference."""

    data: bytes | None = None
    package: str | None = None
    resource_id: int = NO_RESOURCE_ID
    tint: int = NO_ICON_TINT

    @classmethod
    def from_bytes(cls, data: bytes) -> Icon:
        return cls(data=bytes(data))

    @classmethod
    def from_resource(cls, package: str, resource_id: int, tint: int = NO_ICON_TINT) -> Icon:
        return cls(package=package, resource_id=resource_id, tint=tint)

    @property
    def is_resource(self) -> bool:
        return self.data is None and bool(self.package)


# --- Account ---


@dataclass(frozen=True)
class Account:
    """A registered call-capable endpoint."""

    handle: AccountHandle
    label: str | None = None
    address: str | None = None  # URI, e.g. "tel:5551234"
    subscription_address: str | None = None
    capabilities: int = 0
    icon: Icon | None = None
    highlight_color: int = NO_HIGHLIGHT_COLOR
    short_description: str | None = None
    supported_uri_schemes: tuple[str, ...] = ()
    enabled: bool = False

    def has_capabilities(self, capabilities: int) -> bool:
        """True when every requested capability bit is set on this account."""
        return (self.capabilities & capabilities) == capabilities

    def supports_uri_scheme(self, scheme: str | None) -> bool:
        if not scheme:
            return False
        return scheme in self.supported_uri_schemes

    @property
    def is_sim_subscription(self) -> bool:
        return self.has_capabilities(Capability.SIM_SUBSCRIPTION)


# --- State ---


@dataclass
class RegistryState:
    """The persisted aggregate owned by the registry."""

    default_outgoing: AccountHandle | None = None
    sim_call_manager: AccountHandle | None = None  # NO_ACCOUNT_SELECTED when cleared
    accounts: list[Account] = field(default_factory=list)
    version: int = CURRENT_STATE_VERSION

    def find(self, handle: AccountHandle | None) -> Account | None:
        if handle is None:
            return None
        for account in self.accounts:
            if account.handle == handle:
                return account
        return None

    def copy(self) -> RegistryState:
        return RegistryState(
            default_outgoing=self.default_outgoing,
            sim_call_manager=self.sim_call_manager,
            accounts=list(self.accounts),
            version=self.version,
        )


# --- Mutation results ---


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a mutation that may be refused without raising."""

    applied: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> MutationResult:
        return cls(applied=True)

    @classmethod
    def rejected(cls, reason: str) -> MutationResult:
        return cls(applied=False, reason=reason)

    def __bool__(self) -> bool:
        return self.applied
