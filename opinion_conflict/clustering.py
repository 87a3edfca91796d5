"""Disjoint-set forest for grouping related cards into topics."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable

K = TypeVar("K")


class DisjointSet(Generic[K]):
    """Union-find keyed by arbitrary hashable IDs.

    Uses path halving and union by rank, so grouping N items over any number
    of unions stays near-linear without recursion.
    """

    def __init__(self, items: Iterable[K] = ()) -> None:
        self._parent: dict[K, K] = {}
        self._rank: dict[K, int] = {}
        for item in items:
            self.add(item)

    def add(self, item: K) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._rank[item] = 0

    def find(self, item: K) -> K:
        """Return the representative of the item's set.

        Raises:
            KeyError: If the item was never added
        """
        parent = self._parent
        if item not in parent:
            raise KeyError(item)
        while parent[item] != item:
            parent[item] = parent[parent[item]]
            item = parent[item]
        return item

    def union(self, a: K, b: K) -> bool:
        """Merge the sets containing ``a`` and ``b``.

        Returns:
            True if two distinct sets were merged
        """
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return False
        if self._rank[root_a] < self._rank[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if self._rank[root_a] == self._rank[root_b]:
            self._rank[root_a] += 1
        return True

    def connected(self, a: K, b: K) -> bool:
        return self.find(a) == self.find(b)

    def groups(self) -> list[list[K]]:
        """All sets, each in insertion order, ordered by first member."""
        grouped: dict[K, list[K]] = {}
        for item in self._parent:
            grouped.setdefault(self.find(item), []).append(item)
        return list(grouped.values())

    def __len__(self) -> int:
        return len(self._parent)

    def __contains__(self, item: object) -> bool:
        return item in self._parent

    def __repr__(self) -> str:
        return f"DisjointSet(items={len(self)}, groups={len(self.groups())})"
