"""Tests for phone account data models."""

from phonereg.accounts.models import (
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


def _handle(id: str = "1", scope: UserScope | None = OWNER_SCOPE) -> AccountHandle:
    return AccountHandle(ComponentName("com.example", "com.example.Service"), id, scope)


def test_handle_equality_is_structural():
    assert _handle() == _handle()
    assert _handle() != _handle(id="2")
    assert _handle() != _handle(scope=UserScope(10))
    assert len({_handle(), _handle()}) == 1


def test_component_name_flatten_round_trip():
    component = ComponentName("com.example", "com.example.Service")
    assert component.flatten_to_string() == "com.example/com.example.Service"
    assert component.flatten_to_short_string() == "com.example/.Service"
    assert ComponentName.unflatten_from_string(component.flatten_to_string()) == component


def test_component_name_unflatten_short_form():
    component = ComponentName.unflatten_from_string("com.example/.Service")
    assert component == ComponentName("com.example", "com.example.Service")


def test_component_name_unflatten_malformed():
    assert ComponentName.unflatten_from_string("") is None
    assert ComponentName.unflatten_from_string(None) is None
    assert ComponentName.unflatten_from_string("no-slash") is None
    assert ComponentName.unflatten_from_string("pkg/") is None


def test_has_capabilities_requires_all_bits():
    account = Account(
        handle=_handle(),
        capabilities=Capability.CALL_PROVIDER | Capability.SIM_SUBSCRIPTION,
    )
    assert account.has_capabilities(Capability.CALL_PROVIDER)
    assert account.has_capabilities(Capability.CALL_PROVIDER | Capability.SIM_SUBSCRIPTION)
    assert not account.has_capabilities(Capability.CALL_PROVIDER | Capability.CONNECTION_MANAGER)
    assert account.is_sim_subscription


def test_supports_uri_scheme():
    account = Account(handle=_handle(), supported_uri_schemes=("tel", "voicemail"))
    assert account.supports_uri_scheme("tel")
    assert not account.supports_uri_scheme("sip")
    assert not account.supports_uri_scheme(None)


def test_none_selected_sentinel_ignores_scope():
    assert NO_ACCOUNT_SELECTED.is_none_selected
    assert NO_ACCOUNT_SELECTED.with_scope(OWNER_SCOPE).is_none_selected
    assert not _handle().is_none_selected


def test_state_find_and_copy():
    account = Account(handle=_handle())
    state = RegistryState(accounts=[account])
    assert state.find(_handle()) is account
    assert state.find(_handle(id="missing")) is None
    assert state.find(None) is None

    snapshot = state.copy()
    snapshot.accounts.clear()
    assert state.accounts == [account]


def test_mutation_result_truthiness():
    assert MutationResult.ok()
    rejected = MutationResult.rejected("unknown account")
    assert not rejected
    assert rejected.reason == "unknown account"
