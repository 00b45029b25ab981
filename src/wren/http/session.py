"""Session handle.

The request carries a ``Session`` for the duration of one request.
Storage is the concern of upstream middleware: it builds a ``Session``
from whatever backend it uses, attaches it with ``request.replace()``,
and inspects ``modified`` after the response comes back.
"""

from collections.abc import Iterator, MutableMapping
from typing import Any


class Session(MutableMapping[str, Any]):
    """A dict-like session handle that tracks modification.

    Usage::

        def login(session: Session, user: str):
            session["user"] = user
            return redirect("/")
    """

    __slots__ = ("_data", "id", "modified")

    def __init__(self, data: dict[str, Any] | None = None, *, id: str | None = None) -> None:  # noqa: A002
        self._data: dict[str, Any] = dict(data or {})
        self.id = id
        self.modified = False

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self.modified = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Session({self._data!r}, id={self.id!r})"

    def clear(self) -> None:
        """Drop every key. Marks the session modified even when already empty."""
        self._data.clear()
        self.modified = True
