"""The scope on whose behalf the current call into the registry is made.

Read paths filter by the calling scope. Service entry points set it for the
duration of a request::

    with calling_as(UserScope(10)):
        handles = registry.get_all_handles()
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from phonereg.accounts.models import OWNER_SCOPE, UserScope

_calling_scope: ContextVar[UserScope] = ContextVar("calling_scope", default=OWNER_SCOPE)


def get_calling_scope() -> UserScope:
    return _calling_scope.get()


@contextmanager
def calling_as(scope: UserScope) -> Iterator[UserScope]:
    token = _calling_scope.set(scope)
    try:
        yield scope
    finally:
        _calling_scope.reset(token)
