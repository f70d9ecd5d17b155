"""
Structural Cost of Totally Ordered Models

Computes the model-complexity (prior) part of the message: stating the total
order plus, for each node, which of its candidate parents are actual parents.
Nothing here looks at the data.

The per-node term is a parent-set prior cost(k, m) with k the number of
parents and m the number of candidates (pos(C) intraslice candidates, N
temporal candidates). Movers only ever need the change caused by toggling a
few arcs, so the costers read the current parent counts and positions at call
time and must be called before the graph is mutated.
"""

import logging
import math
import numpy as np
from collections import defaultdict
from typing import Iterable, NamedTuple, Sequence
from scipy.special import gammaln

logger = logging.getLogger(__name__)

# Non-finite structural deltas are replaced by this many nits (with the sign kept)
MAX_TOGGLE_COST = 1.0e6


class ArcToggle(NamedTuple):
    """One arc to flip between present and absent"""
    parent: int
    child: int
    temporal: bool = False


class BernoulliArcPrior:
    """
    Every candidate arc is present independently with probability arc_prob.

    cost(k, m) = -k log p - (m - k) log(1 - p); a single toggle therefore costs
    +-log((1 - p) / p) whatever the topology.
    """

    def __init__(self, arc_prob: float = 0.5):
        self.arc_prob = arc_prob
        with np.errstate(divide='ignore'):
            self._log_p = float(np.log(arc_prob))
            self._log_q = float(np.log1p(-arc_prob))

    def cost(self, k: int, m: int) -> float:
        if k == 0:
            present = 0.0
        else:
            present = -k * self._log_p
        if m - k == 0:
            absent = 0.0
        else:
            absent = -(m - k) * self._log_q
        return present + absent

    def __repr__(self):
        return f"BernoulliArcPrior(arc_prob={self.arc_prob})"


class UniformParentSetPrior:
    """
    Uniform over the number of parents, then uniform over subsets of that size.

    cost(k, m) = log(m + 1) + log C(m, k). Adding a parent to a node with k
    of m candidates changes the cost by log((m - k) / (k + 1)).
    """

    def cost(self, k: int, m: int) -> float:
        return float(
            np.log(m + 1) + gammaln(m + 1) - gammaln(k + 1) - gammaln(m - k + 1)
        )

    def __repr__(self):
        return "UniformParentSetPrior()"


PARENT_SET_PRIORS = {
    'bernoulli': BernoulliArcPrior,
    'uniform': UniformParentSetPrior,
}


def _capped(value: float, what: str) -> float:
    """Replace a non-finite cost with a large finite one and report it"""
    if math.isfinite(value):
        return value
    if math.isnan(value):
        logger.warning(f"Structure cost for {what} is undefined (NaN); using {MAX_TOGGLE_COST}")
        return MAX_TOGGLE_COST
    capped = math.copysign(MAX_TOGGLE_COST, value)
    logger.warning(f"Structure cost for {what} is {value}; capping at {capped}")
    return capped


class TOMCoster:
    """Structural cost of a static TOM"""

    def __init__(self, prior=None):
        """
        Args:
            prior: Parent-set prior for intraslice parents (default: Bernoulli(0.5))
        """
        self.prior = prior if prior is not None else BernoulliArcPrior(0.5)

    # -- helpers -------------------------------------------------------

    def _intraslice_delta(self, tom, child: int, change: int) -> float:
        k = len(tom.get_node(child).parents)
        m = tom.get_node_pos(child)
        return self.prior.cost(k + change, m) - self.prior.cost(k, m)

    @staticmethod
    def _net_changes(is_present, children: Sequence[int], parents: Sequence[int]):
        if len(children) != len(parents):
            raise ValueError("children and parents must have the same length.")
        changes = defaultdict(int)
        seen = set()
        for child, parent in zip(children, parents):
            if (parent, child) in seen:
                raise ValueError(f"Arc {parent} -> {child} listed twice in one toggle.")
            seen.add((parent, child))
            changes[child] += -1 if is_present(parent, child) else 1
        return changes

    # -- intraslice ----------------------------------------------------

    def cost_to_toggle_arc(self, tom, parent: int, child: int) -> float:
        """Change in structure cost from toggling parent -> child"""
        change = -1 if tom.is_arc(parent, child) else 1
        return _capped(
            self._intraslice_delta(tom, child, change),
            f"toggling {parent} -> {child}"
        )

    def cost_to_toggle_arcs(self, tom, children: Sequence[int], parents: Sequence[int]) -> float:
        """Change in structure cost from toggling parents[i] -> children[i] jointly"""
        changes = self._net_changes(tom.is_arc, children, parents)
        delta = sum(self._intraslice_delta(tom, child, change) for child, change in changes.items())
        return _capped(delta, f"toggling {len(children)} arcs")

    def cost_to_toggle(self, tom, toggles: Iterable[ArcToggle]) -> float:
        """Change in structure cost from a mixed set of toggles"""
        toggles = list(toggles)
        if any(t.temporal for t in toggles):
            raise TypeError("Temporal arcs need a DTOMCoster.")
        return self.cost_to_toggle_arcs(
            tom, [t.child for t in toggles], [t.parent for t in toggles]
        )

    # -- order ---------------------------------------------------------

    def cost_to_swap_order(self, tom, pos: int) -> float:
        """Change in structure cost from TOM.swap_order(pos)"""
        first = tom.node_at(pos)
        second = tom.node_at(pos + 1)
        k_first = len(tom.get_node(first).parents)
        k_second = len(tom.get_node(second).parents)
        arc = 1 if tom.is_arc(first, second) else 0

        before = self.prior.cost(k_first, pos) + self.prior.cost(k_second, pos + 1)
        # first moves to pos + 1 and may gain second as a parent; second moves to pos
        after = self.prior.cost(k_first + arc, pos + 1) + self.prior.cost(k_second - arc, pos)
        return _capped(after - before, f"swapping positions {pos} and {pos + 1}")

    # -- totals --------------------------------------------------------

    def order_cost(self, tom) -> float:
        """Cost of stating the total order: log(N!)"""
        return float(gammaln(tom.get_num_nodes() + 1))

    def cost(self, tom) -> float:
        """Full structural cost of the model"""
        total = self.order_cost(tom)
        for var in range(tom.get_num_nodes()):
            total += self.prior.cost(len(tom.get_node(var).parents), tom.get_node_pos(var))
        return float(total)


class DTOMCoster(TOMCoster):
    """Structural cost of a DTOM: intraslice parents plus temporal parents"""

    def __init__(self, prior=None, temporal_prior=None):
        """
        Args:
            prior: Parent-set prior for intraslice parents
            temporal_prior: Parent-set prior for temporal parents (N candidates each)
        """
        super().__init__(prior)
        self.temporal_prior = temporal_prior if temporal_prior is not None else BernoulliArcPrior(0.5)

    def _temporal_delta(self, dtom, child: int, change: int) -> float:
        k = dtom.get_node(child).get_num_temporal_parents()
        m = dtom.get_num_nodes()
        return self.temporal_prior.cost(k + change, m) - self.temporal_prior.cost(k, m)

    def cost_to_toggle_temporal_arc(self, dtom, parent: int, child: int) -> float:
        """Change in structure cost from toggling temporal arc parent[t-1] -> child[t]"""
        change = -1 if dtom.is_temporal_arc(parent, child) else 1
        return _capped(
            self._temporal_delta(dtom, child, change),
            f"toggling temporal {parent} -> {child}"
        )

    def cost_to_toggle_temporal_arcs(
        self,
        dtom,
        children: Sequence[int],
        parents: Sequence[int]
    ) -> float:
        """Change in structure cost from toggling temporal arcs jointly"""
        changes = self._net_changes(dtom.is_temporal_arc, children, parents)
        delta = sum(self._temporal_delta(dtom, child, change) for child, change in changes.items())
        return _capped(delta, f"toggling {len(children)} temporal arcs")

    def cost_to_toggle(self, dtom, toggles: Iterable[ArcToggle]) -> float:
        toggles = list(toggles)
        intraslice = [t for t in toggles if not t.temporal]
        temporal = [t for t in toggles if t.temporal]
        delta = 0.0
        if intraslice:
            delta += self.cost_to_toggle_arcs(
                dtom, [t.child for t in intraslice], [t.parent for t in intraslice]
            )
        if temporal:
            delta += self.cost_to_toggle_temporal_arcs(
                dtom, [t.child for t in temporal], [t.parent for t in temporal]
            )
        return delta

    def cost(self, dtom) -> float:
        total = super().cost(dtom)
        n = dtom.get_num_nodes()
        for var in range(n):
            total += self.temporal_prior.cost(dtom.get_node(var).get_num_temporal_parents(), n)
        return float(total)
