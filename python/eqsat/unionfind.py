from __future__ import annotations

from dataclasses import dataclass, field

from .declarations import Id

__all__ = ["UnionFind"]


@dataclass
class UnionFind:
    """
    Disjoint sets of class ids, where every set is named by its root.
    """

    parents: list[Id] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.parents)

    def make_set(self) -> Id:
        id = len(self.parents)
        self.parents.append(id)
        return id

    def find(self, id: Id) -> Id:
        parents = self.parents
        # Path halving, every other node on the path is pointed at its grandparent
        while (parent := parents[id]) != id:
            grandparent = parents[parent]
            parents[id] = grandparent
            id = grandparent
        return id

    def union(self, root1: Id, root2: Id) -> Id:
        """
        Makes `root1` the root of `root2`'s set. Both must already be roots.
        """
        assert self.parents[root1] == root1, f"{root1} is not a root"
        assert self.parents[root2] == root2, f"{root2} is not a root"
        self.parents[root2] = root1
        return root1
