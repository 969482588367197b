"""Storage: durable persistence of the registry state.

This package provides:
- Codec: versioned YAML encoding of the full registry state
- Upgrades: ordered rewrites of records written by older schema versions
- Durable store: crash-safe load/save of the state file
"""
