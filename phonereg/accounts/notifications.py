"""Change notifications fired by the registry after each committed mutation."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from phonereg.accounts.registry import AccountRegistry

logger = logging.getLogger(__name__)


class RegistryListener:
    """Observer of registry changes. Override the events you care about.

    Callbacks run on the mutating thread after the change is persisted and the
    registry lock is released, so they may query the registry or wait on other
    threads that do.
    """

    def on_accounts_changed(self, registry: AccountRegistry) -> None:
        pass

    def on_default_outgoing_changed(self, registry: AccountRegistry) -> None:
        pass

    def on_sim_call_manager_changed(self, registry: AccountRegistry) -> None:
        pass


class NotificationBus:
    """Ordered, fault-isolated fan-out to registered listeners.

    The listener list is copy-on-write: dispatch iterates the snapshot taken
    when it started, so listeners may add or remove listeners (themselves
    included) from inside a callback.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: tuple[RegistryListener, ...] = ()

    @property
    def listeners(self) -> tuple[RegistryListener, ...]:
        return self._listeners

    def add(self, listener: RegistryListener) -> None:
        with self._lock:
            self._listeners = self._listeners + (listener,)

    def remove(self, listener: RegistryListener | None) -> None:
        if listener is None:
            return
        with self._lock:
            if listener in self._listeners:
                remaining = list(self._listeners)
                remaining.remove(listener)
                self._listeners = tuple(remaining)

    def fire_accounts_changed(self, registry: AccountRegistry) -> None:
        self._dispatch("on_accounts_changed", registry)

    def fire_default_outgoing_changed(self, registry: AccountRegistry) -> None:
        self._dispatch("on_default_outgoing_changed", registry)

    def fire_sim_call_manager_changed(self, registry: AccountRegistry) -> None:
        self._dispatch("on_sim_call_manager_changed", registry)

    def _dispatch(self, event: str, registry: AccountRegistry) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, event)(registry)
            except Exception:
                logger.exception("Listener %r failed handling %s", listener, event)
