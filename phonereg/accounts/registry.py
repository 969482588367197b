"""Phone account registry: the authoritative catalog of call-capable accounts.

Stores the accounts of every scope in one place, together with the user's
default outgoing account and sim call manager. Every read path filters by
scope visibility (see ``visibility``); every committed mutation is persisted
and then announced on the notification bus once the registry lock is released.

Authority over the components named in a handle is checked by the caller,
except for the bind-permission check ``register`` performs itself.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

from phonereg.accounts.caller import get_calling_scope
from phonereg.accounts.errors import PermissionDeniedError, PersistenceError
from phonereg.accounts.models import (
    CURRENT_STATE_VERSION,
    INVALID_SUBSCRIPTION_ID,
    NO_ACCOUNT_SELECTED,
    OWNER_SCOPE,
    Account,
    AccountHandle,
    Capability,
    ComponentName,
    MutationResult,
    RegistryState,
    UserScope,
)
from phonereg.accounts.notifications import NotificationBus, RegistryListener
from phonereg.accounts.visibility import VisibilityFilter
from phonereg.config import RegistryConfig, StaticPlatformConfig
from phonereg.platform.interfaces import (
    BIND_PERMISSIONS,
    ComponentResolver,
    PlatformConfig,
    ResolvedService,
    ScopeIdentity,
    SubscriptionService,
    use_sip_for_pstn_calls,
)
from phonereg.storage.codec import StateCodec
from phonereg.storage.durable_store import DurableStore, LoadStatus
from phonereg.storage.upgrades import UpgradeContext

logger = logging.getLogger(__name__)


class AccountRegistry:
    """In-memory registry state behind a single lock, persisted on every mutation."""

    def __init__(
        self,
        store: DurableStore,
        resolver: ComponentResolver,
        subscriptions: SubscriptionService,
        scopes: ScopeIdentity,
        platform: PlatformConfig,
        process_scope: UserScope = OWNER_SCOPE,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._subscriptions = subscriptions
        self._scopes = scopes
        self._platform = platform
        self._process_scope = process_scope
        self._current_scope: UserScope | None = process_scope
        self._visibility = VisibilityFilter(scopes)
        self._bus = NotificationBus()
        self._lock = threading.RLock()
        self._state = RegistryState()
        self._read()

    # ------------------------------------------------------------------
    # Scopes and listeners
    # ------------------------------------------------------------------

    @property
    def current_scope(self) -> UserScope | None:
        return self._current_scope

    def set_current_scope(self, scope: UserScope | None) -> None:
        """Track the foreground scope so reads do not leak across users."""
        if scope is None:
            logger.debug("set_current_scope: None, using process scope")
            scope = self._process_scope
        logger.debug("set_current_scope: %s", scope)
        self._current_scope = scope

    def add_listener(self, listener: RegistryListener) -> None:
        self._bus.add(listener)

    def remove_listener(self, listener: RegistryListener | None) -> None:
        self._bus.remove(listener)

    @property
    def state(self) -> RegistryState:
        """A snapshot copy of the current state."""
        with self._lock:
            return self._state.copy()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, account: Account) -> None:
        """Add ``account``, replacing any account with the same handle.

        The caller's ``enabled`` value is ignored: a replaced account keeps its
        previous state, a new one starts disabled unless it is SIM-backed.
        Raises ``PermissionDeniedError`` if the connection service does not
        require the bind permission.
        """
        if not self.requires_bind_permission(account.handle):
            logger.warning(
                "Account %s does not have BIND_TELECOM_CONNECTION_SERVICE permission",
                account.handle,
            )
            raise PermissionDeniedError(
                "Account connection service requires "
                "BIND_TELECOM_CONNECTION_SERVICE permission."
            )

        with self._lock:
            self._add_or_replace(account)
        self._bus.fire_accounts_changed(self)

    def _add_or_replace(self, account: Account) -> None:
        logger.debug("add_or_replace(%s -> %s)", account.handle, account)
        enabled = False
        index = None
        for i, existing in enumerate(self._state.accounts):
            if existing.handle == account.handle:
                index = i
                enabled = existing.enabled
                break

        stored = replace(account, enabled=enabled or account.is_sim_subscription)
        if index is None:
            self._state.accounts.append(stored)
        else:
            self._state.accounts[index] = stored

        self._write()

    def unregister(self, handle: AccountHandle) -> MutationResult:
        with self._lock:
            account = self._state.find(handle)
            if account is None:
                return self._rejected("unregister: unknown account %s", handle)
            self._state.accounts.remove(account)
            self._write()
        self._bus.fire_accounts_changed(self)
        return MutationResult.ok()

    def clear_by_owner(self, package: str, scope: UserScope | None) -> MutationResult:
        """Remove every account registered by ``package`` under ``scope``."""
        with self._lock:
            kept = []
            removed = 0
            for account in self._state.accounts:
                if account.handle.package == package and account.handle.scope == scope:
                    logger.info("Removing phone account %s", account.label)
                    removed += 1
                else:
                    kept.append(account)

            if not removed:
                return self._rejected("clear_by_owner: no accounts for %s in %s", package, scope)

            self._state.accounts = kept
            self._write()
        self._bus.fire_accounts_changed(self)
        return MutationResult.ok()

    def set_enabled(self, handle: AccountHandle, enabled: bool) -> MutationResult:
        with self._lock:
            account = self._state.find(handle)
            if account is None:
                return self._rejected("set_enabled: unknown account %s", handle)
            if account.is_sim_subscription:
                # SIM-backed accounts are always enabled
                return self._rejected("set_enabled: %s is a SIM subscription", handle)
            if account.enabled == enabled:
                return MutationResult.rejected("enabled state unchanged")

            index = self._state.accounts.index(account)
            self._state.accounts[index] = replace(account, enabled=enabled)
            self._write()
        self._bus.fire_accounts_changed(self)
        return MutationResult.ok()

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def set_default_outgoing(self, handle: AccountHandle | None) -> MutationResult:
        """Set the account used for outgoing calls by default; ``None`` clears it."""
        with self._lock:
            if handle is None:
                self._state.default_outgoing = None
            else:
                account = self._state.find(handle)
                if account is None:
                    return self._rejected(
                        "Trying to set nonexistent default outgoing %s", handle
                    )
                if not account.has_capabilities(Capability.CALL_PROVIDER):
                    return self._rejected(
                        "Trying to set non-call-provider default outgoing %s", handle
                    )
                if account.is_sim_subscription:
                    self._subscriptions.set_default_voice_subscription(
                        self.get_subscription_id(handle)
                    )
                self._state.default_outgoing = handle

            self._write()
        self._bus.fire_default_outgoing_changed(self)
        return MutationResult.ok()

    def set_sim_call_manager(self, handle: AccountHandle | None) -> MutationResult:
        """Select the connection manager; ``None`` records an explicit "none selected"."""
        with self._lock:
            if handle is None:
                handle = NO_ACCOUNT_SELECTED
            else:
                account = self._state.find(handle)
                if account is None:
                    return self._rejected("set_sim_call_manager: nonexistent %s", handle)
                if not account.has_capabilities(Capability.CONNECTION_MANAGER):
                    return self._rejected("set_sim_call_manager: not a call manager %s", handle)

            self._state.sim_call_manager = handle
            self._write()
        self._bus.fire_sim_call_manager_changed(self)
        return MutationResult.ok()

    def get_user_selected_outgoing(self) -> AccountHandle | None:
        """The user-selected default, or ``None`` if unset or not visible to the caller."""
        with self._lock:
            handle = self._state.default_outgoing
            if self.get_account_visible_to_caller(handle) is not None:
                return handle
            return None

    def get_default_outgoing_for_scheme(self, scheme: str) -> AccountHandle | None:
        with self._lock:
            selected = self.get_user_selected_outgoing()
            if selected is not None:
                account = self.get_account_visible_to_caller(selected)
                if account is not None and account.supports_uri_scheme(scheme):
                    return selected

            outgoing = self.get_call_capable_handles(scheme, include_disabled=False)
            # Exactly one candidate is the default by definition; several are ambiguous
            if len(outgoing) == 1:
                return outgoing[0]
            return None

    def get_sim_call_manager(self) -> AccountHandle | None:
        with self._lock:
            configured = self._state.sim_call_manager
            account = self.get_account_visible_to_caller(configured)

            # The setting is sticky across uninstall/reinstall, so require it to resolve
            if account is not None and self._resolve_handle(configured):
                return configured

            flat = self._platform.default_connection_manager_component()
            if not flat:
                logger.debug("No default connection manager specified")
                return None

            component = ComponentName.unflatten_from_string(flat)
            if component is None:
                return None

            resolved = self._resolve(component, None)
            if not resolved:
                resolved = self._resolve(component, get_calling_scope())
            if not resolved:
                logger.debug("%s could not be resolved; not using as default", component)
                return None

            for handle in self.get_all_handles():
                if handle.component == component:
                    return handle
            logger.debug("%s does not have an account; not using as default", component)
            return None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def get_subscription_id(self, handle: AccountHandle | None) -> int:
        """Subscription id of a visible SIM-backed account, else ``INVALID_SUBSCRIPTION_ID``."""
        account = self.get_account_visible_to_caller(handle)
        if account is not None and account.is_sim_subscription:
            return self._subscriptions.subscription_id_for(account)
        return INVALID_SUBSCRIPTION_ID

    def is_user_selected_sms_account(self, handle: AccountHandle) -> bool:
        return self.get_subscription_id(handle) == self._subscriptions.default_sms_subscription()

    def is_voicemail_number(self, handle: AccountHandle, number: str) -> bool:
        return self._subscriptions.is_voicemail_number(self.get_subscription_id(handle), number)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_account(self, handle: AccountHandle | None) -> Account | None:
        """Raw lookup with no visibility check. For privileged callers only."""
        with self._lock:
            return self._state.find(handle)

    def get_account_visible_to_caller(self, handle: AccountHandle | None) -> Account | None:
        with self._lock:
            account = self._state.find(handle)
            if account is not None and self._is_visible(account):
                return account
            return None

    def get_all_accounts(self) -> list[Account]:
        return self._query()

    def get_all_handles(self) -> list[AccountHandle]:
        return self._query_handles()

    def get_call_capable_handles(
        self, scheme: str | None = None, include_disabled: bool = False
    ) -> list[AccountHandle]:
        return self._query_handles(
            Capability.CALL_PROVIDER, scheme=scheme, include_disabled=include_disabled
        )

    def get_sim_handles(self) -> list[AccountHandle]:
        return self._query_handles(Capability.CALL_PROVIDER | Capability.SIM_SUBSCRIPTION)

    def get_handles_for_owner(self, package: str) -> list[AccountHandle]:
        return self._query_handles(package=package)

    def get_connection_manager_handles(self) -> list[AccountHandle]:
        return self._query_handles(Capability.CONNECTION_MANAGER, include_disabled=True)

    def requires_bind_permission(self, handle: AccountHandle) -> bool:
        """True if every service resolved for ``handle`` requires a bind permission."""
        resolved = self._resolve_handle(handle)
        if not resolved:
            logger.warning("Account component %s not found", handle.component)
            return False
        return all(service.permission in BIND_PERMISSIONS for service in resolved)

    def _query_handles(
        self,
        capabilities: int = 0,
        scheme: str | None = None,
        package: str | None = None,
        include_disabled: bool = False,
    ) -> list[AccountHandle]:
        return [
            a.handle for a in self._query(capabilities, scheme, package, include_disabled)
        ]

    def _query(
        self,
        capabilities: int = 0,
        scheme: str | None = None,
        package: str | None = None,
        include_disabled: bool = False,
    ) -> list[Account]:
        """Accounts passing every filter, cheapest checks first."""
        with self._lock:
            results = []
            for account in self._state.accounts:
                if not (account.enabled or include_disabled):
                    continue
                if capabilities and not account.has_capabilities(capabilities):
                    continue
                if scheme is not None and not account.supports_uri_scheme(scheme):
                    continue
                # Uninstalled components stop resolving before they are cleared
                if not self._resolve_handle(account.handle):
                    continue
                if package is not None and account.handle.package != package:
                    continue
                if not self._is_visible(account):
                    continue
                results.append(account)
            return results

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_visible(self, account: Account) -> bool:
        return self._visibility.is_visible(account, self._current_scope, get_calling_scope())

    def _resolve_handle(self, handle: AccountHandle) -> list[ResolvedService]:
        return self._resolve(handle.component, handle.scope)

    def _resolve(self, component: ComponentName, scope: UserScope | None) -> list[ResolvedService]:
        return self._resolver.resolve(component, scope)

    @staticmethod
    def _rejected(message: str, *args: object) -> MutationResult:
        logger.warning(message, *args)
        return MutationResult.rejected(message % args)

    def _read(self) -> None:
        result = self._store.load()
        upgraded = False
        if result.status == LoadStatus.LOADED:
            self._state = result.state
            upgraded = self._state.version < CURRENT_STATE_VERSION
            if upgraded:
                logger.info(
                    "Upgrading registry state from version %d to %d",
                    self._state.version,
                    CURRENT_STATE_VERSION,
                )
                self._state.version = CURRENT_STATE_VERSION
            elif self._state.version > CURRENT_STATE_VERSION:
                # The next write stamps the current version
                logger.warning(
                    "Registry state version %d is newer than supported version %d",
                    self._state.version,
                    CURRENT_STATE_VERSION,
                )
                self._state.version = CURRENT_STATE_VERSION
        else:
            if result.status == LoadStatus.CORRUPT:
                logger.error("Discarding unreadable registry state at %s", self._store.path)
            self._state = RegistryState()

        stale = []
        for account in self._state.accounts:
            scope = account.handle.scope
            if scope is None:
                logger.warning("Missing scope for %s", account.handle)
                stale.append(account)
            elif self._scopes.serial_number_for(scope) == -1:
                logger.warning("Scope does not exist for %s", account.handle)
                stale.append(account)
        if stale:
            self._state.accounts = [a for a in self._state.accounts if a not in stale]

        # Later entries win, keeping the position of the first
        unique: dict[AccountHandle, Account] = {}
        for account in self._state.accounts:
            if account.handle in unique:
                logger.warning("Dropping duplicate entry for %s", account.handle)
            unique[account.handle] = account
        duplicates = len(self._state.accounts) - len(unique)
        if duplicates:
            self._state.accounts = list(unique.values())

        if upgraded or stale or duplicates:
            self._write()

    def _write(self) -> None:
        try:
            self._store.save(self._state)
        except PersistenceError:
            logger.exception("Writing registry state")


def create_registry(
    config: RegistryConfig,
    resolver: ComponentResolver,
    subscriptions: SubscriptionService,
    scopes: ScopeIdentity,
    process_scope: UserScope = OWNER_SCOPE,
) -> AccountRegistry:
    """Build a registry persisted at ``config.state_file``."""
    platform = StaticPlatformConfig(config)
    codec = StateCodec(
        scopes,
        UpgradeContext(
            legacy_sip_component=platform.legacy_sip_component(),
            use_sip_for_pstn=use_sip_for_pstn_calls(platform),
        ),
        process_scope=process_scope,
    )
    store = DurableStore(config.state_file, codec)
    return AccountRegistry(
        store, resolver, subscriptions, scopes, platform, process_scope=process_scope
    )
