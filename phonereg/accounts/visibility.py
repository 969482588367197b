"""Per-scope visibility of phone accounts.

Three scopes are involved in every check:
1. The current scope: the user active in the foreground of the device.
2. The owning scope: the user that registered the account (part of its handle).
3. The calling scope: the user running the code asking for the account.

Accounts must never leak across users; crossing into a profile of the current
user is allowed when the caller is the owner.
"""

from __future__ import annotations

import logging

from phonereg.accounts.models import Account, Capability, UserScope
from phonereg.platform.interfaces import ScopeIdentity

logger = logging.getLogger(__name__)


class VisibilityFilter:
    """Decides whether an account is visible to a (current, calling) scope pair."""

    def __init__(self, scopes: ScopeIdentity) -> None:
        self.scopes = scopes

    def is_visible(
        self,
        account: Account | None,
        current_scope: UserScope | None,
        calling_scope: UserScope,
    ) -> bool:
        if account is None:
            return False

        # Reserved for platform telephony and SIP accounts
        if account.has_capabilities(Capability.MULTI_USER):
            return True

        owner = account.handle.scope
        if owner is None:
            return False

        if current_scope is None:
            logger.debug("Current scope is unknown; treating %s as visible", account.handle)
            return True

        if owner == calling_scope:
            return True

        # Profiles only, never other users
        if calling_scope.is_owner:
            return owner in self.scopes.profiles_of(current_scope)

        return False
