"""Authentication handle.

Wren does not authenticate anyone. Upstream middleware decides who the
caller is and attaches an ``Auth`` handle to the request; handlers and
controllers receive it by annotating a parameter with ``Auth``.
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Auth(Protocol):
    """What handlers may ask of the current authentication state."""

    @property
    def is_authenticated(self) -> bool: ...

    @property
    def identity(self) -> Any: ...

    def has_permission(self, permission: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class AnonymousAuth:
    """The default handle: nobody is logged in, nothing is permitted."""

    identity: Any = None

    @property
    def is_authenticated(self) -> bool:
        return False

    def has_permission(self, permission: str) -> bool:  # noqa: ARG002
        return False


@dataclass(frozen=True, slots=True)
class StaticAuth:
    """An authenticated identity with a fixed permission set.

    Convenient for middleware that resolves permissions once per request,
    and for tests.
    """

    identity: Any
    permissions: frozenset[str] = frozenset()

    @property
    def is_authenticated(self) -> bool:
        return True

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions
