"""Phone accounts: the registry core.

This package provides:
- Models: handles, accounts, capabilities, and the persisted registry state
- Visibility: per-scope filtering of what a caller may see
- Notifications: fan-out of registry change events to listeners
- Registry: the query/mutation API tying it all together
"""
