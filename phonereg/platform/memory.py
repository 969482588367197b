"""In-memory collaborator implementations.

Used by the command line tool (which works on state files outside of a
running device) and by the test suite.
"""

from __future__ import annotations

from phonereg.accounts.models import (
    INVALID_SUBSCRIPTION_ID,
    OWNER_SCOPE,
    Account,
    AccountHandle,
    ComponentName,
    UserScope,
)
from phonereg.platform.interfaces import BIND_TELECOM_CONNECTION_SERVICE, ResolvedService


class InMemoryComponentResolver:
    """Tracks which connection-service components are installed, and for which scopes.

    A component installed with ``scope=None`` is available to every scope, and is
    the only kind a query without a scope sees.
    """

    def __init__(self) -> None:
        self._installed: dict[ComponentName, dict[UserScope | None, str | None]] = {}

    def install(
        self,
        component: ComponentName,
        scope: UserScope | None = None,
        permission: str | None = BIND_TELECOM_CONNECTION_SERVICE,
    ) -> None:
        self._installed.setdefault(component, {})[scope] = permission

    def uninstall(self, component: ComponentName, scope: UserScope | None = None) -> None:
        installs = self._installed.get(component)
        if installs is None:
            return
        installs.pop(scope, None)
        if not installs:
            del self._installed[component]

    def resolve(
        self, component: ComponentName, scope: UserScope | None = None
    ) -> list[ResolvedService]:
        installs = self._installed.get(component, {})
        if scope is None:
            permissions = [p for s, p in installs.items() if s is None]
        else:
            permissions = [p for s, p in installs.items() if s is None or s == scope]
        return [ResolvedService(component=component, permission=p) for p in permissions]


class InMemoryScopeDirectory:
    """Scopes known to the device, their serial numbers, and profile parents.

    With ``auto_create`` set, any serial number resolves to a scope with the
    same id (useful when inspecting a state file from another device).
    """

    def __init__(self, auto_create: bool = False) -> None:
        self._auto_create = auto_create
        self._serials: dict[UserScope, int] = {}
        self._parents: dict[UserScope, UserScope] = {}
        self.add_scope(OWNER_SCOPE, serial_number=0)

    def add_scope(
        self,
        scope: UserScope,
        serial_number: int | None = None,
        parent: UserScope | None = None,
    ) -> UserScope:
        self._serials[scope] = scope.id if serial_number is None else serial_number
        if parent is not None:
            self._parents[scope] = parent
        return scope

    def remove_scope(self, scope: UserScope) -> None:
        self._serials.pop(scope, None)
        self._parents.pop(scope, None)

    def serial_number_for(self, scope: UserScope) -> int:
        if scope not in self._serials and self._auto_create:
            return scope.id
        return self._serials.get(scope, -1)

    def scope_for_serial_number(self, serial_number: int) -> UserScope | None:
        for scope, serial in self._serials.items():
            if serial == serial_number:
                return scope
        if self._auto_create:
            return UserScope(serial_number)
        return None

    def profiles_of(self, scope: UserScope) -> list[UserScope]:
        if scope not in self._serials and not self._auto_create:
            return []
        return [scope] + [s for s, parent in self._parents.items() if parent == scope]


class InMemorySubscriptionService:
    """Subscription bookkeeping for SIM-backed accounts."""

    def __init__(self) -> None:
        self._subscriptions: dict[AccountHandle, int] = {}
        self._voicemail_numbers: dict[int, set[str]] = {}
        self.default_voice_subscription = INVALID_SUBSCRIPTION_ID
        self.default_sms = INVALID_SUBSCRIPTION_ID

    def assign(self, handle: AccountHandle, subscription_id: int) -> None:
        self._subscriptions[handle] = subscription_id

    def add_voicemail_number(self, subscription_id: int, number: str) -> None:
        self._voicemail_numbers.setdefault(subscription_id, set()).add(number)

    def subscription_id_for(self, account: Account) -> int:
        return self._subscriptions.get(account.handle, INVALID_SUBSCRIPTION_ID)

    def set_default_voice_subscription(self, subscription_id: int) -> None:
        self.default_voice_subscription = subscription_id

    def default_sms_subscription(self) -> int:
        return self.default_sms

    def is_voicemail_number(self, subscription_id: int, number: str) -> bool:
        return number in self._voicemail_numbers.get(subscription_id, set())
