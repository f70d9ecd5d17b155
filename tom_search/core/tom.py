"""
Totally Ordered Model (TOM)

A mutable DAG representation constrained by an explicit total ordering of the
variables. An arc A -> B may only exist when A precedes B in the order, which
makes the graph acyclic by construction.

Every mutation is its own inverse: toggling the same arc twice, or swapping
the same pair of adjacent positions twice, restores the model exactly. The
search movers rely on this to revert rejected proposals in place.
"""

import numpy as np
from bisect import insort
from typing import Dict, List, Optional, Sequence, Tuple


class Node:
    """A variable together with its current (intraslice) parent list, kept sorted"""

    __slots__ = ('var', 'parents')

    def __init__(self, var: int):
        self.var = var
        self.parents: List[int] = []

    @property
    def num_parents(self) -> int:
        return len(self.parents)

    def get_num_parents(self) -> int:
        return len(self.parents)

    def get_parent_copy(self) -> List[int]:
        return list(self.parents)

    def __repr__(self):
        return f"Node({self.var}, parents={self.parents})"


class TOM:
    """
    Totally ordered model over `num_nodes` variables.

    Attributes:
        order: order[pos] is the variable at position pos
        positions: positions[var] is the position of var (inverse of order)
        nodes: Node objects indexed by variable
    """

    node_class = Node

    def __init__(
        self,
        num_nodes: int,
        max_num_parents: Optional[int] = None,
        names: Optional[Sequence[str]] = None
    ):
        """
        Initialize an arc-free model with the identity order.

        Args:
            num_nodes: Number of variables
            max_num_parents: Maximum parents per node (default: num_nodes - 1)
            names: Optional variable names (default: "X0", "X1", ...)
        """
        if num_nodes < 1:
            raise ValueError("A TOM needs at least one variable.")

        self.num_nodes = num_nodes
        if max_num_parents is None:
            max_num_parents = max(num_nodes - 1, 0)
        if max_num_parents < 0:
            raise ValueError("max_num_parents must be non-negative.")
        self.max_num_parents = max_num_parents

        if names is None:
            names = [f"X{i}" for i in range(num_nodes)]
        if len(names) != num_nodes:
            raise ValueError(f"Expected {num_nodes} names, got {len(names)}.")
        self.names = list(names)

        self.order: List[int] = list(range(num_nodes))
        self.positions: List[int] = list(range(num_nodes))
        self.nodes = [self.node_class(v) for v in range(num_nodes)]

        # _arc[parent][child]
        self._arc = [[False] * num_nodes for _ in range(num_nodes)]
        self.num_arcs = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_num_nodes(self) -> int:
        return self.num_nodes

    def get_max_num_parents(self) -> int:
        return self.max_num_parents

    def get_node(self, var: int) -> Node:
        return self.nodes[var]

    def get_node_pos(self, var: int) -> int:
        return self.positions[var]

    def node_at(self, pos: int) -> int:
        return self.order[pos]

    def is_arc(self, parent: int, child: int) -> bool:
        return self._arc[parent][child]

    def max_parents_available(self, var: int) -> int:
        """Number of candidate parents of var (the variables preceding it)"""
        return self.positions[var]

    def arcs(self) -> List[Tuple[int, int]]:
        """All arcs as (parent, child) pairs, ordered by child position"""
        return [
            (parent, child)
            for child in self.order
            for parent in sorted(self.nodes[child].parents, key=self.positions.__getitem__)
        ]

    def adjacency_matrix(self) -> np.ndarray:
        """Boolean matrix with entry [child, parent] set for each arc"""
        adj = np.zeros((self.num_nodes, self.num_nodes), dtype=bool)
        for parent, child in self.arcs():
            adj[child, parent] = True
        return adj

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_arc(self, parent: int, child: int):
        if parent == child:
            raise ValueError(f"Self arc on variable {parent} is not allowed.")
        if self.positions[parent] > self.positions[child]:
            raise ValueError(
                f"Arc {parent} -> {child} violates the total order "
                f"(positions {self.positions[parent]} > {self.positions[child]})."
            )
        if self._arc[parent][child]:
            raise ValueError(f"Arc {parent} -> {child} already exists.")
        self._arc[parent][child] = True
        insort(self.nodes[child].parents, parent)
        self.num_arcs += 1

    def remove_arc(self, parent: int, child: int):
        if not self._arc[parent][child]:
            raise ValueError(f"Arc {parent} -> {child} does not exist.")
        self._arc[parent][child] = False
        self.nodes[child].parents.remove(parent)
        self.num_arcs -= 1

    def toggle_arc(self, parent: int, child: int) -> bool:
        """
        Add the arc if absent, remove it if present.

        Returns:
            True if the arc exists after the call
        """
        if self._arc[parent][child]:
            self.remove_arc(parent, child)
            return False
        self.add_arc(parent, child)
        return True

    def swap_order(self, pos: int):
        """
        Swap the variables at positions pos and pos + 1.

        An arc between the two variables is reversed so that it stays
        consistent with the new order. Calling this twice is a no-op.
        """
        if not 0 <= pos < self.num_nodes - 1:
            raise ValueError(f"Cannot swap position {pos} with its successor.")

        first = self.order[pos]
        second = self.order[pos + 1]

        reverse = self._arc[first][second]
        if reverse:
            self.remove_arc(first, second)

        self.order[pos], self.order[pos + 1] = second, first
        self.positions[first] = pos + 1
        self.positions[second] = pos

        if reverse:
            self.add_arc(second, first)

    def set_order(self, order: Sequence[int]):
        """Replace the total order; every existing arc must remain consistent with it"""
        order = list(order)
        if sorted(order) != list(range(self.num_nodes)):
            raise ValueError("Order must be a permutation of the variables.")

        positions = [0] * self.num_nodes
        for pos, var in enumerate(order):
            positions[var] = pos

        for parent, child in self.arcs():
            if positions[parent] > positions[child]:
                raise ValueError(
                    f"New order is inconsistent with existing arc {parent} -> {child}."
                )

        self.order = order
        self.positions = positions

    def randomize_order(self, rng):
        """Draw a uniformly random order (the model must be arc-free)"""
        if self.num_arcs:
            raise ValueError("Cannot randomize the order of a TOM that has arcs.")
        self.set_order(rng.permutation(self.num_nodes).tolist())

    def clear(self):
        """Remove every arc"""
        for parent, child in self.arcs():
            self.remove_arc(parent, child)

    # ------------------------------------------------------------------
    # Copies and checks
    # ------------------------------------------------------------------

    def copy(self) -> 'TOM':
        other = type(self).__new__(type(self))
        other.num_nodes = self.num_nodes
        other.max_num_parents = self.max_num_parents
        other.names = list(self.names)
        other.order = list(self.order)
        other.positions = list(self.positions)
        other._arc = [list(row) for row in self._arc]
        other.num_arcs = self.num_arcs
        other.nodes = []
        for node in self.nodes:
            clone = self.node_class(node.var)
            clone.parents = list(node.parents)
            other.nodes.append(clone)
        return other

    def snapshot(self) -> Dict:
        """Comparable summary of the model state"""
        return {
            'order': tuple(self.order),
            'arcs': frozenset(self.arcs()),
            'num_parents': tuple(node.num_parents for node in self.nodes),
        }

    def check_invariants(self):
        """Raise ValueError if the order, arc relation or parent lists disagree"""
        for pos, var in enumerate(self.order):
            if self.positions[var] != pos:
                raise ValueError(f"Position table is out of sync for variable {var}.")

        total = 0
        for child in range(self.num_nodes):
            node = self.nodes[child]
            if len(set(node.parents)) != len(node.parents):
                raise ValueError(f"Duplicate parents recorded for variable {child}.")
            if node.num_parents > self.max_num_parents:
                raise ValueError(
                    f"Variable {child} has {node.num_parents} parents "
                    f"(maximum {self.max_num_parents})."
                )
            for parent in range(self.num_nodes):
                present = self._arc[parent][child]
                if present != (parent in node.parents):
                    raise ValueError(f"Parent list of {child} disagrees with arc {parent} -> {child}.")
                if present and self.positions[parent] >= self.positions[child]:
                    raise ValueError(f"Arc {parent} -> {child} violates the total order.")
                total += present
        if total != self.num_arcs:
            raise ValueError("Arc counter is out of sync.")

    def __repr__(self):
        arcs = ", ".join(f"{self.names[p]}->{self.names[c]}" for p, c in self.arcs())
        order = " < ".join(self.names[v] for v in self.order)
        return f"{type(self).__name__}(order=[{order}], arcs=[{arcs}])"
