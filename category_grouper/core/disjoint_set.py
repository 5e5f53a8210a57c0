"""Disjoint-set (union-find) over integer item indices."""

from typing import List


class DisjointSet:
    """
    Union-find with iterative path compression and union by size.

    Used for cycle avoidance while building the spanning tree and for
    component tracking during cluster extraction.
    """

    def __init__(self, n: int):
        self.parent: List[int] = list(range(n))
        self.size: List[int] = [1] * n

    def __len__(self) -> int:
        return len(self.parent)

    def find(self, item: int) -> int:
        """Return the root of item's component."""
        root = item
        while self.parent[root] != root:
            root = self.parent[root]

        # Path compression
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]

        return root

    def union(self, a: int, b: int) -> bool:
        """
        Merge the components of a and b.

        Returns:
            True if two different components were merged
        """
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return False

        if self.size[root_a] < self.size[root_b]:
            root_a, root_b = root_b, root_a

        self.parent[root_b] = root_a
        self.size[root_a] += self.size[root_b]
        return True

    def component_size(self, item: int) -> int:
        """Number of items in item's component."""
        return self.size[self.find(item)]
