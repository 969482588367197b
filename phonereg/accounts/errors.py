"""Error types raised by the phone account registry."""

from __future__ import annotations


class PhoneRegistryError(Exception):
    """Base class for registry errors."""


class PermissionDeniedError(PhoneRegistryError):
    """The account's connection service lacks the required bind permission."""


class CodecError(PhoneRegistryError):
    """Persisted registry data is malformed and cannot be decoded."""


class PersistenceError(PhoneRegistryError):
    """Writing the registry state to durable storage failed."""


class ConfigError(PhoneRegistryError):
    """The registry configuration file is unreadable or invalid."""
