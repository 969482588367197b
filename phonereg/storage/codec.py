"""Versioned YAML codec for the registry state.

The state file is a tagged tree rooted at ``phone_account_registrar_state``.
Encoding always stamps the current schema version; decoding reads whatever
version the file declares and runs the account upgrades in ``upgrades``.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import yaml

from phonereg.accounts.errors import CodecError
from phonereg.accounts.models import (
    CURRENT_STATE_VERSION,
    NO_HIGHLIGHT_COLOR,
    NO_ICON_TINT,
    NO_RESOURCE_ID,
    Account,
    AccountHandle,
    ComponentName,
    RegistryState,
    UserScope,
)
from phonereg.platform.interfaces import ScopeIdentity
from phonereg.storage.upgrades import AccountRecord, UpgradeContext, upgrade_record

logger = logging.getLogger(__name__)

# Tree tags
ROOT = "phone_account_registrar_state"
VERSION = "version"
DEFAULT_OUTGOING = "default_outgoing"
SIM_CALL_MANAGER = "sim_call_manager"
ACCOUNTS = "accounts"

ACCOUNT_HANDLE = "account_handle"
ADDRESS = "address"
SUBSCRIPTION_ADDRESS = "subscription_number"
CAPABILITIES = "capabilities"
ICON = "icon"
ICON_BITMAP = "icon_bitmap"
ICON_PACKAGE_NAME = "icon_package_name"
ICON_RES_ID = "icon_res_id"
ICON_TINT = "icon_tint"
HIGHLIGHT_COLOR = "highlight_color"
LABEL = "label"
SHORT_DESCRIPTION = "short_description"
SUPPORTED_URI_SCHEMES = "supported_uri_schemes"
ENABLED = "enabled"

COMPONENT_NAME = "component_name"
ID = "id"
USER_SERIAL_NUMBER = "user_serial_number"

LENGTH = "length"
VALUES = "values"


class StateCodec:
    """Encodes ``RegistryState`` to bytes and back.

    Scopes are persisted as their serial numbers (stable across reboots),
    resolved through ``scopes``. ``process_scope`` back-fills sim call manager
    handles written before handles carried a scope.
    """

    def __init__(
        self,
        scopes: ScopeIdentity,
        upgrade_context: UpgradeContext,
        process_scope: UserScope,
    ) -> None:
        self.scopes = scopes
        self.upgrade_context = upgrade_context
        self.process_scope = process_scope

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, state: RegistryState) -> bytes:
        body: dict[str, Any] = {VERSION: CURRENT_STATE_VERSION}
        if state.default_outgoing is not None:
            body[DEFAULT_OUTGOING] = self._encode_handle(state.default_outgoing)
        if state.sim_call_manager is not None:
            body[SIM_CALL_MANAGER] = self._encode_handle(state.sim_call_manager)
        body[ACCOUNTS] = [self._encode_account(a) for a in state.accounts]

        text = yaml.safe_dump({ROOT: body}, sort_keys=False, allow_unicode=True)
        return text.encode("utf-8")

    def _encode_handle(self, handle: AccountHandle) -> dict[str, Any]:
        data: dict[str, Any] = {
            COMPONENT_NAME: handle.component.flatten_to_string(),
            ID: handle.id,
        }
        if handle.scope is not None:
            data[USER_SERIAL_NUMBER] = self.scopes.serial_number_for(handle.scope)
        return data

    def _encode_account(self, account: Account) -> dict[str, Any]:
        data: dict[str, Any] = {ACCOUNT_HANDLE: self._encode_handle(account.handle)}
        if account.address is not None:
            data[ADDRESS] = account.address
        if account.subscription_address is not None:
            data[SUBSCRIPTION_ADDRESS] = account.subscription_address
        data[CAPABILITIES] = int(account.capabilities)

        icon = account.icon
        if icon is not None:
            if icon.data is not None:
                data[ICON] = base64.b64encode(icon.data).decode("ascii")
            elif icon.package:
                data[ICON_PACKAGE_NAME] = icon.package
                data[ICON_RES_ID] = icon.resource_id
                data[ICON_TINT] = icon.tint

        data[HIGHLIGHT_COLOR] = account.highlight_color
        if account.label is not None:
            data[LABEL] = account.label
        if account.short_description is not None:
            data[SHORT_DESCRIPTION] = account.short_description
        schemes = list(account.supported_uri_schemes)
        data[SUPPORTED_URI_SCHEMES] = {LENGTH: len(schemes), VALUES: schemes}
        data[ENABLED] = account.enabled
        return data

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, data: bytes) -> RegistryState | None:
        """Decode a state file.

        Returns ``None`` when the document is not a registry state at all.
        Raises ``CodecError`` when it is one but a field is malformed.
        """
        try:
            tree = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise CodecError(f"Unparseable state document: {e}") from e

        if not isinstance(tree, dict) or ROOT not in tree:
            return None

        body = tree[ROOT] or {}
        if not isinstance(body, dict):
            raise CodecError(f"{ROOT} must be a mapping")

        state = RegistryState()
        raw_version = body.get(VERSION)
        state.version = 1 if raw_version in (None, "") else _int(raw_version, VERSION)

        if body.get(DEFAULT_OUTGOING) is not None:
            state.default_outgoing = self._decode_handle(body[DEFAULT_OUTGOING])

        if body.get(SIM_CALL_MANAGER) is not None:
            manager = self._decode_handle(body[SIM_CALL_MANAGER])
            if manager is not None and manager.scope is None and not manager.is_none_selected:
                logger.debug("Back-filling scope of sim call manager %s", manager)
                manager = manager.with_scope(self.process_scope)
            state.sim_call_manager = manager

        accounts = body.get(ACCOUNTS) or []
        if not isinstance(accounts, list):
            raise CodecError(f"{ACCOUNTS} must be a list")
        for raw in accounts:
            account = self._decode_account(raw, state.version)
            if account is not None:
                state.accounts.append(account)

        return state

    def _decode_handle(self, raw: Any) -> AccountHandle | None:
        if not isinstance(raw, dict):
            raise CodecError("account handle must be a mapping")

        flat = _str(raw.get(COMPONENT_NAME), COMPONENT_NAME)
        if flat is None:
            return None
        component = ComponentName.unflatten_from_string(flat)
        if component is None:
            raise CodecError(f"Malformed component name: {flat!r}")

        scope = None
        if raw.get(USER_SERIAL_NUMBER) is not None:
            serial = _int(raw[USER_SERIAL_NUMBER], USER_SERIAL_NUMBER)
            scope = self.scopes.scope_for_serial_number(serial)

        return AccountHandle(
            component=component, id=_str(raw.get(ID), ID) or "", scope=scope
        )

    def _decode_account(self, raw: Any, version: int) -> Account | None:
        if not isinstance(raw, dict):
            raise CodecError("account must be a mapping")

        handle = None
        if raw.get(ACCOUNT_HANDLE) is not None:
            handle = self._decode_handle(raw[ACCOUNT_HANDLE])
        if handle is None:
            logger.warning("Skipping account record without a handle: %r", raw.get(LABEL))
            return None

        schemes = None
        if raw.get(SUPPORTED_URI_SCHEMES) is not None:
            schemes = _string_list(raw[SUPPORTED_URI_SCHEMES], SUPPORTED_URI_SCHEMES)

        record = AccountRecord(
            handle=handle,
            address=_str(raw.get(ADDRESS), ADDRESS),
            subscription_address=_str(raw.get(SUBSCRIPTION_ADDRESS), SUBSCRIPTION_ADDRESS),
            capabilities=_int(raw.get(CAPABILITIES, 0), CAPABILITIES),
            icon_payload=_base64(raw.get(ICON), ICON),
            icon_bitmap=_base64(raw.get(ICON_BITMAP), ICON_BITMAP),
            icon_package_name=_str(raw.get(ICON_PACKAGE_NAME), ICON_PACKAGE_NAME),
            icon_res_id=_int(raw.get(ICON_RES_ID, NO_RESOURCE_ID), ICON_RES_ID),
            icon_tint=_int(raw.get(ICON_TINT, NO_ICON_TINT), ICON_TINT),
            highlight_color=_int(raw.get(HIGHLIGHT_COLOR, NO_HIGHLIGHT_COLOR), HIGHLIGHT_COLOR),
            label=_str(raw.get(LABEL), LABEL),
            short_description=_str(raw.get(SHORT_DESCRIPTION), SHORT_DESCRIPTION),
            supported_uri_schemes=schemes,
            enabled=_bool(raw.get(ENABLED, False), ENABLED),
        )
        return upgrade_record(record, version, self.upgrade_context).to_account()


# ---------------------------------------------------------------------------
# Primitive field readers
# ---------------------------------------------------------------------------


def _int(value: Any, tag: str) -> int:
    # bool is an int subclass; a flag where a number belongs is still malformed
    if isinstance(value, bool):
        raise CodecError(f"{tag}: expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise CodecError(f"{tag}: expected integer, got {value!r}")


def _str(value: Any, tag: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise CodecError(f"{tag}: expected string, got {value!r}")


def _bool(value: Any, tag: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise CodecError(f"{tag}: expected boolean, got {value!r}")


def _base64(value: Any, tag: str) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value
    if not isinstance(value, str):
        raise CodecError(f"{tag}: expected base64 text, got {type(value).__name__}")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"{tag}: invalid base64 payload") from e


def _string_list(value: Any, tag: str) -> tuple[str, ...]:
    if not isinstance(value, dict):
        raise CodecError(f"{tag}: expected a length-prefixed list")
    length = _int(value.get(LENGTH, 0), f"{tag}.{LENGTH}")
    values = value.get(VALUES) or []
    if not isinstance(values, list) or len(values) != length:
        raise CodecError(f"{tag}: declared length {length} does not match values")
    return tuple(_str(v, tag) or "" for v in values)
