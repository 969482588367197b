"""Registry configuration loaded from YAML.

Example ``phonereg.yaml``::

    state_file: /data/telecom/phone-account-registrar-state.yaml
    default_connection_manager: com.example.wifi/.WifiCallingService
    sip_call_option: SIP_ADDRESS_ONLY
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from phonereg.accounts.errors import ConfigError
from phonereg.accounts.models import ComponentName
from phonereg.platform.interfaces import SIP_ADDRESS_ONLY, SIP_ALWAYS, SIP_ASK_ME_EACH_TIME

STATE_FILE_NAME = "phone-account-registrar-state.yaml"

LEGACY_SIP_COMPONENT = ComponentName(
    "com.android.phone", "com.android.services.telephony.sip.SipConnectionService"
)

_SIP_OPTIONS = {SIP_ADDRESS_ONLY, SIP_ALWAYS, SIP_ASK_ME_EACH_TIME}


def _default_state_file() -> Path:
    return Path.home() / ".phonereg" / STATE_FILE_NAME


@dataclass
class RegistryConfig:
    """Device-level settings consumed by the registry."""

    state_file: Path = field(default_factory=_default_state_file)
    default_connection_manager: str = ""  # Flattened component name
    sip_call_option: str | None = None
    legacy_sip_component: ComponentName = LEGACY_SIP_COMPONENT


def load_config(path: str | Path) -> RegistryConfig:
    """Load a registry configuration from a YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping")

    config = RegistryConfig()
    if data.get("state_file"):
        config.state_file = Path(data["state_file"]).expanduser()
    config.default_connection_manager = str(data.get("default_connection_manager") or "")

    option = data.get("sip_call_option")
    if option is not None and option not in _SIP_OPTIONS:
        raise ConfigError(f"Unknown sip_call_option: {option!r}")
    config.sip_call_option = option

    if data.get("legacy_sip_component"):
        component = ComponentName.unflatten_from_string(str(data["legacy_sip_component"]))
        if component is None:
            raise ConfigError(
                f"Invalid legacy_sip_component: {data['legacy_sip_component']!r}"
            )
        config.legacy_sip_component = component

    return config


class StaticPlatformConfig:
    """PlatformConfig backed by a fixed RegistryConfig."""

    def __init__(self, config: RegistryConfig | None = None) -> None:
        self.config = config or RegistryConfig()

    def default_connection_manager_component(self) -> str:
        return self.config.default_connection_manager

    def sip_call_option(self) -> str | None:
        return self.config.sip_call_option

    def legacy_sip_component(self) -> ComponentName:
        return self.config.legacy_sip_component
