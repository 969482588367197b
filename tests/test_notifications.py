"""Tests for the registry notification bus."""

from phonereg.accounts.notifications import NotificationBus, RegistryListener


class RecordingListener(RegistryListener):
    def __init__(self, name: str, log: list):
        self.name = name
        self.log = log

    def on_accounts_changed(self, registry):
        self.log.append((self.name, "accounts"))

    def on_default_outgoing_changed(self, registry):
        self.log.append((self.name, "default_outgoing"))

    def on_sim_call_manager_changed(self, registry):
        self.log.append((self.name, "sim_call_manager"))


class FailingListener(RegistryListener):
    def on_accounts_changed(self, registry):
        raise RuntimeError("listener bug")


def test_dispatch_in_registration_order():
    log: list = []
    bus = NotificationBus()
    bus.add(RecordingListener("a", log))
    bus.add(RecordingListener("b", log))

    bus.fire_accounts_changed(None)
    bus.fire_default_outgoing_changed(None)
    bus.fire_sim_call_manager_changed(None)

    assert log == [
        ("a", "accounts"),
        ("b", "accounts"),
        ("a", "default_outgoing"),
        ("b", "default_outgoing"),
        ("a", "sim_call_manager"),
        ("b", "sim_call_manager"),
    ]


def test_failing_listener_does_not_block_others():
    log: list = []
    bus = NotificationBus()
    bus.add(FailingListener())
    bus.add(RecordingListener("after", log))

    bus.fire_accounts_changed(None)
    assert log == [("after", "accounts")]


def test_default_listener_methods_are_no_ops():
    bus = NotificationBus()
    bus.add(RegistryListener())
    bus.fire_accounts_changed(None)
    bus.fire_default_outgoing_changed(None)
    bus.fire_sim_call_manager_changed(None)


def test_listener_can_remove_itself_during_dispatch():
    log: list = []
    bus = NotificationBus()

    class OneShot(RegistryListener):
        def on_accounts_changed(self, registry):
            log.append("one-shot")
            bus.remove(self)

    bus.add(OneShot())
    bus.add(RecordingListener("steady", log))

    bus.fire_accounts_changed(None)
    bus.fire_accounts_changed(None)

    assert log == ["one-shot", ("steady", "accounts"), ("steady", "accounts")]


def test_listener_added_during_dispatch_sees_next_event():
    log: list = []
    bus = NotificationBus()
    late = RecordingListener("late", log)

    class Adder(RegistryListener):
        def on_accounts_changed(self, registry):
            if late not in bus.listeners:
                bus.add(late)

    bus.add(Adder())
    bus.fire_accounts_changed(None)
    assert log == []

    bus.fire_accounts_changed(None)
    assert log == [("late", "accounts")]


def test_remove_unknown_or_none_is_a_no_op():
    bus = NotificationBus()
    listener = RegistryListener()
    bus.remove(None)
    bus.remove(listener)
    bus.add(listener)
    bus.remove(listener)
    assert bus.listeners == ()
