"""
Dynamic TOM (DTOM)

Extends the totally ordered model with temporal arcs running from a variable
in the previous time slice to a variable in the current slice. Temporal arcs
are not constrained by the order: previous-slice values are always available,
so they can never close a cycle.
"""

import numpy as np
from bisect import insort
from typing import List, Optional, Sequence, Tuple

from .tom import Node, TOM


class DNode(Node):
    """Node with separate intraslice and temporal parent lists"""

    __slots__ = ('temporal_parents',)

    def __init__(self, var: int):
        super().__init__(var)
        self.temporal_parents: List[int] = []

    @property
    def num_parents(self) -> int:
        return len(self.parents) + len(self.temporal_parents)

    def get_num_parents(self) -> int:
        return len(self.parents) + len(self.temporal_parents)

    def get_num_intraslice_parents(self) -> int:
        return len(self.parents)

    def get_num_temporal_parents(self) -> int:
        return len(self.temporal_parents)

    def get_temporal_parent_copy(self) -> List[int]:
        return list(self.temporal_parents)

    def __repr__(self):
        return f"DNode({self.var}, parents={self.parents}, temporal={self.temporal_parents})"


class DTOM(TOM):
    """
    Dynamic totally ordered model.

    A node C may have up to N temporal candidate parents (every variable in the
    previous slice, including itself) plus pos(C) intraslice candidates.
    """

    node_class = DNode

    def __init__(
        self,
        num_nodes: int,
        max_num_parents: Optional[int] = None,
        names: Optional[Sequence[str]] = None
    ):
        if max_num_parents is None:
            max_num_parents = 2 * num_nodes - 1
        super().__init__(num_nodes, max_num_parents=max_num_parents, names=names)

        # _temporal[parent][child]: parent in slice t-1, child in slice t
        self._temporal = [[False] * num_nodes for _ in range(num_nodes)]
        self.num_temporal_arcs = 0

    def is_temporal_arc(self, parent: int, child: int) -> bool:
        return self._temporal[parent][child]

    def max_parents_available(self, var: int) -> int:
        return self.num_nodes + self.positions[var]

    def temporal_arcs(self) -> List[Tuple[int, int]]:
        return [
            (parent, child)
            for child in range(self.num_nodes)
            for parent in self.nodes[child].temporal_parents
        ]

    def temporal_adjacency_matrix(self) -> np.ndarray:
        """Boolean matrix with entry [child, parent] set for each temporal arc"""
        adj = np.zeros((self.num_nodes, self.num_nodes), dtype=bool)
        for parent, child in self.temporal_arcs():
            adj[child, parent] = True
        return adj

    def add_temporal_arc(self, parent: int, child: int):
        if self._temporal[parent][child]:
            raise ValueError(f"Temporal arc {parent} -> {child} already exists.")
        self._temporal[parent][child] = True
        insort(self.nodes[child].temporal_parents, parent)
        self.num_temporal_arcs += 1

    def remove_temporal_arc(self, parent: int, child: int):
        if not self._temporal[parent][child]:
            raise ValueError(f"Temporal arc {parent} -> {child} does not exist.")
        self._temporal[parent][child] = False
        self.nodes[child].temporal_parents.remove(parent)
        self.num_temporal_arcs -= 1

    def toggle_temporal_arc(self, parent: int, child: int) -> bool:
        """
        Add the temporal arc if absent, remove it if present.

        Returns:
            True if the temporal arc exists after the call
        """
        if self._temporal[parent][child]:
            self.remove_temporal_arc(parent, child)
            return False
        self.add_temporal_arc(parent, child)
        return True

    def clear(self):
        super().clear()
        for parent, child in self.temporal_arcs():
            self.remove_temporal_arc(parent, child)

    def copy(self) -> 'DTOM':
        other = super().copy()
        other._temporal = [list(row) for row in self._temporal]
        other.num_temporal_arcs = self.num_temporal_arcs
        for clone, node in zip(other.nodes, self.nodes):
            clone.temporal_parents = list(node.temporal_parents)
        return other

    def snapshot(self):
        state = super().snapshot()
        state['temporal_arcs'] = frozenset(self.temporal_arcs())
        return state

    def check_invariants(self):
        super().check_invariants()
        total = 0
        for child in range(self.num_nodes):
            node = self.nodes[child]
            for parent in range(self.num_nodes):
                present = self._temporal[parent][child]
                if present != (parent in node.temporal_parents):
                    raise ValueError(
                        f"Temporal parent list of {child} disagrees with arc {parent} -> {child}."
                    )
                total += present
        if total != self.num_temporal_arcs:
            raise ValueError("Temporal arc counter is out of sync.")

    def __repr__(self):
        base = super().__repr__()[:-1]
        temporal = ", ".join(
            f"{self.names[p]}[t-1]->{self.names[c]}" for p, c in self.temporal_arcs()
        )
        return f"{base}, temporal=[{temporal}])"
