"""phonereg CLI: inspect and migrate phone account registry state files."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from phonereg import __version__

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log registry decisions to stderr")
def main(verbose: bool):
    """phonereg: phone account registry tools.

    Works directly on a registry state file. Scope serial numbers in the file
    are taken as scope ids, since the device user manager is not available.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load_config(config_path: str | None, state_file: str):
    from phonereg.config import RegistryConfig, load_config

    config = load_config(config_path) if config_path else RegistryConfig()
    config.state_file = Path(state_file)
    return config


def _store_for(config):
    from phonereg.accounts.models import OWNER_SCOPE
    from phonereg.config import StaticPlatformConfig
    from phonereg.platform.interfaces import use_sip_for_pstn_calls
    from phonereg.platform.memory import InMemoryScopeDirectory
    from phonereg.storage.codec import StateCodec
    from phonereg.storage.durable_store import DurableStore
    from phonereg.storage.upgrades import UpgradeContext

    platform = StaticPlatformConfig(config)
    codec = StateCodec(
        InMemoryScopeDirectory(auto_create=True),
        UpgradeContext(
            legacy_sip_component=platform.legacy_sip_component(),
            use_sip_for_pstn=use_sip_for_pstn_calls(platform),
        ),
        process_scope=OWNER_SCOPE,
    )
    return DurableStore(config.state_file, codec)


# ── Inspect ──────────────────────────────────────────────────────────


@main.command()
@click.argument("state_file", type=click.Path(dir_okay=False))
@click.option("--config", "-c", "config_path", default=None, help="Registry config YAML")
def inspect(state_file: str, config_path: str | None):
    """Decode STATE_FILE and show its accounts and defaults."""
    from phonereg.accounts.models import Capability

    config = _load_config(config_path, state_file)
    result = _store_for(config).load()

    if not result.loaded:
        console.print(f"[red]State file is {result.status.value}:[/] {state_file}")
        raise SystemExit(1)

    state = result.state
    console.print(
        Panel(
            f"Schema version: {state.version}\n"
            f"Default outgoing: {state.default_outgoing or 'none'}\n"
            f"Sim call manager: {state.sim_call_manager or 'none'}",
            title=f"Registry state ({len(state.accounts)} accounts)",
        )
    )

    if not state.accounts:
        console.print("[yellow]No accounts registered.[/]")
        return

    table = Table()
    table.add_column("Component", style="cyan")
    table.add_column("Id")
    table.add_column("Scope", justify="right")
    table.add_column("Label")
    table.add_column("Capabilities")
    table.add_column("Schemes")
    table.add_column("Enabled", justify="center")

    for account in state.accounts:
        handle = account.handle
        caps = [c.name for c in Capability if account.has_capabilities(c)]
        enabled = "[green]Y[/]" if account.enabled else "[red]N[/]"
        table.add_row(
            handle.component.flatten_to_short_string(),
            handle.id,
            str(handle.scope.id) if handle.scope else "-",
            account.label or "",
            ", ".join(caps),
            ", ".join(account.supported_uri_schemes),
            enabled,
        )

    console.print(table)


# ── Migrate ──────────────────────────────────────────────────────────


@main.command()
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_path", default=None, help="Registry config YAML")
def migrate(state_file: str, config_path: str | None):
    """Upgrade STATE_FILE in place to the current schema version."""
    from phonereg.accounts.models import CURRENT_STATE_VERSION
    from phonereg.accounts.registry import create_registry
    from phonereg.platform.memory import (
        InMemoryComponentResolver,
        InMemoryScopeDirectory,
        InMemorySubscriptionService,
    )

    config = _load_config(config_path, state_file)
    result = _store_for(config).load()
    if not result.loaded:
        console.print(f"[red]State file is {result.status.value}; not migrating:[/] {state_file}")
        raise SystemExit(1)

    before = result.state.version
    if before >= CURRENT_STATE_VERSION:
        console.print(f"[green]Already at version {before}.[/]")
        return

    registry = create_registry(
        config,
        InMemoryComponentResolver(),
        InMemorySubscriptionService(),
        InMemoryScopeDirectory(auto_create=True),
    )
    console.print(
        f"  [green]v[/] Migrated {state_file} from version {before} "
        f"to {registry.state.version} ({len(registry.state.accounts)} accounts)"
    )


if __name__ == "__main__":
    main()
