"""Write-once keyed containers.

``WormMap`` is an immutable, insertion-ordered mapping. New entries are only
added through :meth:`WormMap.put`, which returns a new map and refuses to
overwrite an existing key. There is no deletion API. ``WormMap.builder()``
collects entries incrementally and finalises into a ``WormMap``.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator, Mapping
from types import MappingProxyType
from typing import Generic, TypeVar

from conreg.core.errors import DuplicateKeyError

__all__ = ["WormMap", "WormMapBuilder"]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class WormMap(Mapping[K, V], Generic[K, V]):
    """Immutable mapping whose keys can be added once and never removed."""

    __slots__ = ("_data",)

    def __init__(self, items: Mapping[K, V] | None = None) -> None:
        self._data: Mapping[K, V] = MappingProxyType(dict(items or {}))

    @staticmethod
    def builder() -> WormMapBuilder[K, V]:
        return WormMapBuilder()

    def __getitem__(self, key: K) -> V:
        return self._data[key]

    def __iter__(self) -> Iterator[K]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"WormMap({dict(self._data)!r})"

    def put(self, key: K, value: V) -> WormMap[K, V]:
        """Return a new map with ``key -> value`` appended.

        Raises DuplicateKeyError if ``key`` is already present.
        """
        if key in self._data:
            msg = f"Duplicate key: '{key}'."
            raise DuplicateKeyError(msg)
        data = dict(self._data)
        data[key] = value
        return WormMap(data)


class WormMapBuilder(Generic[K, V]):
    """Mutable staging area for a ``WormMap``; ``put`` never overwrites."""

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data: dict[K, V] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def put(self, key: K, value: V) -> WormMapBuilder[K, V]:
        if key in self._data:
            msg = f"Duplicate key: '{key}'."
            raise DuplicateKeyError(msg)
        self._data[key] = value
        return self

    def build(self) -> WormMap[K, V]:
        return WormMap(self._data)
