"""Shared fixtures: in-memory collaborators and a registry factory."""

from pathlib import Path

import pytest

from phonereg.accounts.models import (
    OWNER_SCOPE,
    SCHEME_TEL,
    Account,
    AccountHandle,
    Capability,
    ComponentName,
    UserScope,
)
from phonereg.accounts.registry import AccountRegistry
from phonereg.config import RegistryConfig, StaticPlatformConfig
from phonereg.platform.memory import (
    InMemoryComponentResolver,
    InMemoryScopeDirectory,
    InMemorySubscriptionService,
)
from phonereg.storage.codec import StateCodec
from phonereg.storage.durable_store import DurableStore
from phonereg.storage.upgrades import UpgradeContext

SECONDARY = UserScope(10)
WORK_PROFILE = UserScope(11)


@pytest.fixture
def scopes() -> InMemoryScopeDirectory:
    directory = InMemoryScopeDirectory()
    directory.add_scope(SECONDARY, serial_number=110)
    directory.add_scope(WORK_PROFILE, serial_number=111, parent=OWNER_SCOPE)
    return directory


@pytest.fixture
def resolver() -> InMemoryComponentResolver:
    return InMemoryComponentResolver()


@pytest.fixture
def subscriptions() -> InMemorySubscriptionService:
    return InMemorySubscriptionService()


@pytest.fixture
def config(tmp_path: Path) -> RegistryConfig:
    return RegistryConfig(state_file=tmp_path / "state.yaml")


@pytest.fixture
def codec(scopes, config) -> StateCodec:
    return StateCodec(
        scopes,
        UpgradeContext(legacy_sip_component=config.legacy_sip_component),
        process_scope=OWNER_SCOPE,
    )


@pytest.fixture
def store(codec, config) -> DurableStore:
    return DurableStore(config.state_file, codec)


@pytest.fixture
def make_registry(store, resolver, subscriptions, scopes, config):
    """Build a registry over the shared store; call again to simulate a restart."""

    def _make() -> AccountRegistry:
        return AccountRegistry(
            store, resolver, subscriptions, scopes, StaticPlatformConfig(config)
        )

    return _make


@pytest.fixture
def registry(make_registry) -> AccountRegistry:
    return make_registry()


@pytest.fixture
def make_account(resolver):
    """Build an account whose component is installed with the bind permission."""

    def _make(
        id: str = "acct",
        package: str = "com.example.voip",
        scope: UserScope | None = OWNER_SCOPE,
        capabilities: int = Capability.CALL_PROVIDER,
        schemes: tuple[str, ...] = (SCHEME_TEL,),
        install: bool = True,
        **kwargs,
    ) -> Account:
        component = ComponentName(package, f"{package}.ConnectionService")
        if install:
            resolver.install(component)
        return Account(
            handle=AccountHandle(component=component, id=id, scope=scope),
            label=kwargs.pop("label", id.title()),
            capabilities=int(capabilities),
            supported_uri_schemes=schemes,
            **kwargs,
        )

    return _make
