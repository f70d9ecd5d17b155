"""
Chain Context (CaseInfo)

Run-scoped state shared by every mover of one Markov chain: the data, the
node cost cache, the structural coster, the annealing temperature and the
arc-weight accumulators used for posterior arc probabilities.

One CaseInfo belongs to exactly one chain. It is passed explicitly into each
step; independent chains each build their own.

Arc weights integrate the time each arc spends in the chain. total_weight is
the cumulative weight of all states visited so far. When an accepted move
makes an arc present, total_weight is subtracted from its accumulator; when
it makes the arc absent, total_weight is added back. The accumulated presence
of an arc is therefore arc_weights + total_weight * present.
"""

import numpy as np
from typing import Optional

from ..core.node_cache import NodeCache
from ..core.tom_coster import ArcToggle, TOMCoster
from ..utils.data import DiscreteDataset


class CaseInfo:
    """Mutable context for one search chain"""

    def __init__(
        self,
        dataset: Optional[DiscreteDataset],
        node_cache: NodeCache,
        tom_coster: TOMCoster,
        num_nodes: int,
        temperature: float = 1.0,
        update_arc_weights: bool = True
    ):
        """
        Initialize chain context.

        Args:
            dataset: Data the node costs are computed from
            node_cache: Memoized node cost oracle
            tom_coster: Structural coster (DTOMCoster for dynamic models)
            num_nodes: Number of variables
            temperature: Annealing temperature for the acceptance test
            update_arc_weights: Whether accepted moves update the arc statistics
        """
        self.dataset = dataset
        self.node_cache = node_cache
        self.tom_coster = tom_coster
        self.num_nodes = num_nodes
        self.temperature = temperature
        self.update_arc_weights = update_arc_weights

        self.arc_weights = np.zeros((num_nodes, num_nodes))
        self.arc_weights_dbn = np.zeros((num_nodes, num_nodes))
        self.total_weight = 0.0

    def record_toggle(self, toggle: ArcToggle, now_present: bool):
        """Fold an accepted arc toggle into the weight accumulators"""
        if not self.update_arc_weights:
            return
        weights = self.arc_weights_dbn if toggle.temporal else self.arc_weights
        if now_present:
            weights[toggle.child, toggle.parent] -= self.total_weight
        else:
            weights[toggle.child, toggle.parent] += self.total_weight

    def advance(self, weight: float = 1.0):
        """Credit the current chain state with `weight` (e.g. one step)"""
        if self.update_arc_weights:
            self.total_weight += weight

    def reset_arc_weights(self):
        """Discard accumulated statistics (e.g. at the end of burn-in)"""
        self.arc_weights[:] = 0.0
        self.arc_weights_dbn[:] = 0.0
        self.total_weight = 0.0

    def arc_portions(self, tom) -> np.ndarray:
        """
        Fraction of chain weight during which each intraslice arc was present.

        Returns:
            (N, N) array indexed [child, parent]
        """
        if self.total_weight <= 0:
            return tom.adjacency_matrix().astype(float)
        present = tom.adjacency_matrix().astype(float)
        return (self.arc_weights + self.total_weight * present) / self.total_weight

    def arc_portions_dbn(self, dtom) -> np.ndarray:
        """Fraction of chain weight during which each temporal arc was present"""
        present = dtom.temporal_adjacency_matrix().astype(float)
        if self.total_weight <= 0:
            return present
        return (self.arc_weights_dbn + self.total_weight * present) / self.total_weight

    def __repr__(self):
        return (
            f"CaseInfo(num_nodes={self.num_nodes}, temperature={self.temperature}, "
            f"total_weight={self.total_weight})"
        )
