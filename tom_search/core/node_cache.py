"""
Node Cost Cache

Memoized MML cost of each node's local conditional distribution given its
current parent set. The search queries a node's cost before and after every
mutation, so repeated lookups of an unchanged parent configuration must be
O(1). The cache key is the parent configuration itself, so a parent-set
mutation is picked up on the very next lookup.

The leaf model is pluggable: any object with a
`cost(var, parents, temporal_parents) -> float` method can be cached.
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple
from scipy.special import gammaln

from ..utils.data import DiscreteDataset

logger = logging.getLogger(__name__)


def _parent_configurations(
    parent_columns: Sequence[np.ndarray],
    parent_arities: Sequence[int],
    n_rows: int
) -> np.ndarray:
    """Mixed-radix index of each row's joint parent state"""
    config = np.zeros(n_rows, dtype=np.int64)
    for column, arity in zip(parent_columns, parent_arities):
        config = config * arity + column
    return config


class LeafCost(ABC):
    """
    Base class for leaf cost models reading discrete data.

    Subclasses implement `_cost_from_counts`. Parent columns are gathered from
    the current slice for intraslice parents and from the previous slice for
    temporal parents.
    """

    def __init__(self, dataset: DiscreteDataset, dynamic: bool = False):
        """
        Args:
            dataset: Integer-coded data
            dynamic: If True, rows are consecutive time steps
        """
        self.dataset = dataset
        self.dynamic = dynamic
        self.current, self.previous = dataset.slices(dynamic)
        self.arities = dataset.arities
        self.n_cases = self.current.shape[0]

    def _counts(
        self,
        var: int,
        parents: Sequence[int],
        temporal_parents: Sequence[int]
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Contingency counts of the child given observed parent configurations.

        Returns:
            Tuple of (n_jk, n_j): n_jk is (observed configs, child arity),
            n_j the row totals
        """
        if temporal_parents and self.previous is None:
            raise ValueError("Temporal parents require a dynamic data set.")

        columns = [self.current[:, p] for p in parents]
        arities = [self.arities[p] for p in parents]
        for p in temporal_parents:
            columns.append(self.previous[:, p])
            arities.append(self.arities[p])

        r = self.arities[var]
        child = self.current[:, var]

        if not columns:
            n_jk = np.bincount(child, minlength=r).reshape(1, r)
            return n_jk, n_jk.sum(axis=1)

        config = _parent_configurations(columns, arities, self.n_cases)
        observed, config_index = np.unique(config, return_inverse=True)
        n_jk = np.zeros((len(observed), r), dtype=np.int64)
        np.add.at(n_jk, (config_index.ravel(), child), 1)
        return n_jk, n_jk.sum(axis=1)

    def cost(
        self,
        var: int,
        parents: Sequence[int] = (),
        temporal_parents: Sequence[int] = ()
    ) -> float:
        n_jk, n_j = self._counts(var, parents, temporal_parents)
        n_configs = 1
        for p in list(parents) + list(temporal_parents):
            n_configs *= self.arities[p]
        return float(self._cost_from_counts(n_jk, n_j, self.arities[var], n_configs))

    @abstractmethod
    def _cost_from_counts(self, n_jk, n_j, arity, n_configs) -> float:
        """Message length (nits) of the child column given its contingency counts"""
        pass


class MultinomialCost(LeafCost):
    """
    Adaptive-code message length of a multinomial per parent configuration.

    With a uniform Dirichlet prior the cost of stating the child column given
    a configuration seen N_j times is
        lnG(N_j + r) - lnG(r) - sum_k lnG(n_jk + 1)
    nits. Unobserved configurations cost nothing.
    """

    def _cost_from_counts(self, n_jk, n_j, arity, n_configs) -> float:
        return float(
            np.sum(gammaln(n_j + arity) - gammaln(arity))
            - np.sum(gammaln(n_jk + 1))
        )


class MDLCost(LeafCost):
    """
    Two-part MDL cost: N * H(child | parents) + 0.5 * log(N) * (r - 1) * q.

    Entropy and penalty are in nits. q counts every possible parent
    configuration, observed or not.
    """

    def _cost_from_counts(self, n_jk, n_j, arity, n_configs) -> float:
        total = float(n_j.sum())
        if total == 0:
            return 0.0
        with np.errstate(divide='ignore', invalid='ignore'):
            p_cond = n_jk / n_j[:, None]
            log_terms = np.where(n_jk > 0, np.log(p_cond), 0.0)
        data_cost = -float(np.sum(n_jk * log_terms))
        penalty = 0.5 * np.log(total) * (arity - 1) * n_configs
        return data_cost + penalty


LEAF_COSTS = {
    'multinomial': MultinomialCost,
    'mdl': MDLCost,
}


class NodeCache:
    """
    Memoizing front end to a leaf cost model.

    Keys are (var, sorted intraslice parents, sorted temporal parents).
    """

    def __init__(self, leaf_cost, max_entries: Optional[int] = None):
        """
        Args:
            leaf_cost: Object with a cost(var, parents, temporal_parents) method
            max_entries: Clear the cache when it grows past this size (None = unbounded)
        """
        self.leaf_cost = leaf_cost
        self.max_entries = max_entries
        self._cache: Dict[Tuple, float] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(node) -> Tuple:
        temporal = getattr(node, 'temporal_parents', ())
        return (node.var, tuple(node.parents), tuple(temporal))

    def get_mml_cost(self, node) -> float:
        """MML cost (nits) of the node given its current parents"""
        key = self._key(node)
        cost = self._cache.get(key)
        if cost is not None:
            self.hits += 1
            return cost

        self.misses += 1
        cost = self.leaf_cost.cost(key[0], key[1], key[2])
        if self.max_entries is not None and len(self._cache) >= self.max_entries:
            logger.debug(f"Node cache reached {len(self._cache)} entries; clearing")
            self._cache.clear()
        self._cache[key] = cost
        return cost

    def total_cost(self, tom) -> float:
        """Sum of node costs over the whole model"""
        return float(sum(self.get_mml_cost(node) for node in tom.nodes))

    def clear(self):
        self._cache.clear()

    def __len__(self):
        return len(self._cache)

    def stats(self) -> Dict:
        lookups = self.hits + self.misses
        return {
            'entries': len(self._cache),
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / lookups if lookups else 0.0,
        }
