"""Bounded time-series table keyed by tuples."""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, Generic, Hashable, Iterator, List, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class HistoryTable(Generic[K, V]):
    """One FIFO series per key, each capped at ``maxlen`` entries.

    Entries are ``(t, value)`` with ``t`` in seconds from session start.
    """

    def __init__(self, maxlen: int = 300) -> None:
        if maxlen < 1:
            raise ValueError("maxlen must be positive")
        self.maxlen = int(maxlen)
        self._rows: Dict[K, Deque[Tuple[float, V]]] = {}

    def append(self, key: K, t: float, value: V) -> None:
        row = self._rows.get(key)
        if row is None:
            row = self._rows[key] = deque(maxlen=self.maxlen)
        row.append((float(t), value))

    def series(self, key: K) -> List[Tuple[float, V]]:
        return list(self._rows.get(key, ()))

    def recent(self, key: K, n: int) -> List[Tuple[float, V]]:
        row = self._rows.get(key)
        if not row or n <= 0:
            return []
        return list(row)[-n:]

    def values(self, key: K) -> List[V]:
        return [v for _, v in self._rows.get(key, ())]

    def last(self, key: K) -> Tuple[float, V] | None:
        row = self._rows.get(key)
        return row[-1] if row else None

    def keys(self) -> List[K]:
        return list(self._rows)

    def __contains__(self, key: object) -> bool:
        return key in self._rows

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._rows))

    def __len__(self) -> int:
        return len(self._rows)

    def count(self, key: K) -> int:
        return len(self._rows.get(key, ()))

    def clear(self) -> None:
        self._rows.clear()
