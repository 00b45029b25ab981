"""Ordered, multi-valued request parameter bag.

Implements ``Mapping[str, str]`` and the ``MultiValueMapping`` protocol.
Keys keep first-insertion order and each key may carry several values,
in the order they were supplied.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from urllib.parse import parse_qsl


class ParamBag(Mapping[str, str]):
    """Immutable parameter bag built from query strings or form bodies.

    ``__getitem__`` returns the first value for a key.
    ``get_list`` returns all values for a key.
    ``merged`` returns a new bag with extra pairs appended.
    """

    _data: dict[str, list[str]]

    __slots__ = ("_data",)

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        data: dict[str, list[str]] = {}
        for key, value in pairs:
            data.setdefault(key, []).append(value)
        object.__setattr__(self, "_data", data)

    @classmethod
    def from_query_string(cls, query_string: bytes | str) -> ParamBag:
        """Parse a raw query string, keeping blank values."""
        if isinstance(query_string, bytes):
            query_string = query_string.decode("latin-1")
        return cls(parse_qsl(query_string, keep_blank_values=True))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str | list[str]]) -> ParamBag:
        """Build a bag from a plain mapping; list values become multiple entries."""
        pairs: list[tuple[str, str]] = []
        for key, value in mapping.items():
            if isinstance(value, list):
                pairs.extend((key, v) for v in value)
            else:
                pairs.append((key, value))
        return cls(pairs)

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {v!r}" for k, v in self._data.items())
        return f"ParamBag({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._data.get(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        return list(self._data.get(key, []))

    def multi_items(self) -> Iterator[tuple[str, str]]:
        """Yield every ``(key, value)`` pair in insertion order."""
        for key, values in self._data.items():
            for value in values:
                yield key, value

    def merged(self, pairs: Iterable[tuple[str, str]]) -> ParamBag:
        """Return a new bag with *pairs* appended after the current values."""
        return ParamBag([*self.multi_items(), *pairs])
