"""Tests for YAML registry configuration."""

import tempfile
from pathlib import Path

import pytest
import yaml

from phonereg.accounts.errors import ConfigError
from phonereg.accounts.models import ComponentName
from phonereg.config import LEGACY_SIP_COMPONENT, RegistryConfig, StaticPlatformConfig, load_config
from phonereg.platform.interfaces import use_sip_for_pstn_calls


def _write_config(tmpdir: str, data) -> Path:
    path = Path(tmpdir) / "phonereg.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


def test_defaults():
    config = RegistryConfig()
    assert config.state_file.name == "phone-account-registrar-state.yaml"
    assert config.default_connection_manager == ""
    assert config.legacy_sip_component == LEGACY_SIP_COMPONENT


def test_load_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_config(
            tmpdir,
            {
                "state_file": f"{tmpdir}/state.yaml",
                "default_connection_manager": "com.oem/.Manager",
                "sip_call_option": "SIP_ALWAYS",
                "legacy_sip_component": "com.sip/.Legacy",
            },
        )
        config = load_config(path)

        assert config.state_file == Path(tmpdir) / "state.yaml"
        assert config.default_connection_manager == "com.oem/.Manager"
        assert config.legacy_sip_component == ComponentName("com.sip", "com.sip.Legacy")

        platform = StaticPlatformConfig(config)
        assert platform.default_connection_manager_component() == "com.oem/.Manager"
        assert use_sip_for_pstn_calls(platform)


def test_empty_config_file_uses_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "empty.yaml"
        path.write_text("")
        config = load_config(path)
        assert config.sip_call_option is None
        assert not use_sip_for_pstn_calls(StaticPlatformConfig(config))


@pytest.mark.parametrize(
    "data",
    [
        ["not", "a", "mapping"],
        {"sip_call_option": "SIP_SOMETIMES"},
        {"legacy_sip_component": "no-slash"},
    ],
)
def test_invalid_config(data):
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            load_config(_write_config(tmpdir, data))


def test_missing_config_file():
    with pytest.raises(ConfigError):
        load_config("/nonexistent/phonereg.yaml")


def test_sip_address_only_does_not_route_pstn():
    config = RegistryConfig(sip_call_option="SIP_ADDRESS_ONLY")
    assert not use_sip_for_pstn_calls(StaticPlatformConfig(config))
