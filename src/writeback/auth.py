"""Ambient caller context for authorization checks."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextvars import ContextVar
from dataclasses import dataclass

from writeback.errors import Unauthorized


@dataclass(frozen=True)
class User:
    id: int
    email: str = ""
    is_superuser: bool = False


# Unset outside of request handling (internal calls, tests)
current_user: ContextVar[User | None] = ContextVar("writeback_current_user", default=None)


@contextlib.contextmanager
def as_user(user: User | None) -> Iterator[User | None]:
    """Bind ``user`` as the current caller for the duration of the block."""
    token = current_user.set(user)
    try:
        yield user
    finally:
        current_user.reset(token)


def require_superuser(user: User) -> None:
    """Raise Unauthorized unless ``user`` is an administrator."""
    if not user.is_superuser:
        raise Unauthorized("You don't have permissions to do that.")
