"""
Metropolis Search Driver

Runs one Markov chain over (dynamic) totally ordered models: repeatedly picks
a move kind, applies one transformation step and folds the outcome into the
running chain statistics.

The chain keeps the total message length (structure + data) up to date from
the accepted cost deltas instead of recomputing it, remembers the cheapest
model seen, and accumulates arc weights after burn-in for posterior arc
probabilities.
"""

import logging
import numpy as np
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..core.dtom import DTOM
from ..core.node_cache import LEAF_COSTS, NodeCache
from ..core.tom import TOM
from ..core.tom_coster import DTOMCoster, PARENT_SET_PRIORS, TOMCoster
from ..utils.data import DiscreteDataset
from .case_info import CaseInfo
from .transformations import MoveKind, StepResult, move_table

logger = logging.getLogger(__name__)


@dataclass
class ChainResult:
    """Results of one Markov chain"""
    arc_portions: np.ndarray  # [child, parent]
    arc_portions_dbn: Optional[np.ndarray]  # [child, parent], dynamic chains only
    best_order: List[int]
    best_arcs: List[Tuple[int, int]]
    best_temporal_arcs: List[Tuple[int, int]]
    best_cost: float
    final_cost: float
    proposals: Dict[str, int]
    acceptances: Dict[str, int]
    cost_trace: List[float] = field(default_factory=list)
    cache_stats: Dict = field(default_factory=dict)
    seed: Optional[int] = None

    @property
    def acceptance_rates(self) -> Dict[str, float]:
        return {
            kind: (self.acceptances[kind] / n if n else 0.0)
            for kind, n in self.proposals.items()
        }


def build_coster(config) -> TOMCoster:
    """Structural coster for the configured prior and model type"""
    prior_class = PARENT_SET_PRIORS[config.structure_prior]
    if config.structure_prior == 'bernoulli':
        prior = prior_class(config.arc_prob)
        temporal_prior = prior_class(config.arc_prob_temporal)
    else:
        prior = prior_class()
        temporal_prior = prior_class()
    if config.dynamic:
        return DTOMCoster(prior, temporal_prior)
    return TOMCoster(prior)


class MetropolisSearch:
    """
    Single-chain Metropolis sampler over TOMs.

    Each instance owns its model, its CaseInfo and its random generator, so
    several instances can run side by side as independent chains.
    """

    def __init__(self, dataset: DiscreteDataset, config, seed: Optional[int] = None):
        """
        Initialize the chain.

        Args:
            dataset: Integer-coded data
            config: SearchConfig with the run parameters
            seed: Seed for this chain's random generator
        """
        self.dataset = dataset
        self.config = config
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.dynamic = config.dynamic

        model_class = DTOM if self.dynamic else TOM
        self.tom = model_class(
            dataset.n_vars,
            max_num_parents=config.max_num_parents,
            names=dataset.names
        )
        if config.random_order:
            self.tom.randomize_order(self.rng)

        leaf_cost = LEAF_COSTS[config.leaf_cost](dataset, dynamic=self.dynamic)
        self.case_info = CaseInfo(
            dataset=dataset,
            node_cache=NodeCache(leaf_cost, max_entries=config.cache_max_entries),
            tom_coster=build_coster(config),
            num_nodes=dataset.n_vars,
            temperature=config.temperature,
            update_arc_weights=False
        )

        table = move_table(self.dynamic)
        weights = config.normalized_move_weights()
        self.kinds = [MoveKind(name) for name in weights]
        self.movers = [table[kind] for kind in self.kinds]
        self._cumulative = np.cumsum([weights[k.value] for k in self.kinds]).tolist()

        self.proposals = {kind.value: 0 for kind in self.kinds}
        self.acceptances = {kind.value: 0 for kind in self.kinds}

        self.current_cost = self.total_cost()
        self.best_cost = self.current_cost
        self.best_tom = self.tom.copy()

    def total_cost(self) -> float:
        """Full message length of the current model, recomputed (nits)"""
        return (
            self.case_info.tom_coster.cost(self.tom)
            + self.case_info.node_cache.total_cost(self.tom)
        )

    def _temperature_at(self, i: int, total: int) -> float:
        start = self.config.temperature
        end = self.config.final_temperature
        if end is None or total <= 1:
            return start
        return float(start * (end / start) ** (i / (total - 1)))

    def _pick_mover(self) -> int:
        index = bisect_right(self._cumulative, self.rng.random() * self._cumulative[-1])
        return min(index, len(self.movers) - 1)

    def step(self) -> StepResult:
        """Run one proposal and update chain statistics"""
        index = self._pick_mover()
        result = self.movers[index](self.tom, self.case_info, self.rng)
        kind = self.kinds[index].value
        self.proposals[kind] += 1

        if result.accepted:
            self.acceptances[kind] += 1
            self.current_cost += result.cost_delta
            if self.current_cost < self.best_cost:
                self.best_cost = self.current_cost
                self.best_tom = self.tom.copy()

        self.case_info.advance(1.0)
        return result

    def run(self) -> ChainResult:
        """Burn in, then sample with arc-weight tracking enabled"""
        config = self.config
        total = config.burn_in_steps + config.n_steps
        trace = []
        log_every = max(1, total // 10)

        logger.info(
            f"Chain seed={self.seed}: {total} steps over {self.dataset.n_vars} variables "
            f"({'dynamic' if self.dynamic else 'static'}), initial cost {self.current_cost:.2f}"
        )

        for i in range(total):
            if i == config.burn_in_steps:
                self.case_info.reset_arc_weights()
                self.case_info.update_arc_weights = True

            self.case_info.temperature = self._temperature_at(i, total)
            self.step()

            if (i + 1) % log_every == 0:
                trace.append(self.current_cost)
                logger.debug(
                    f"step {i + 1}/{total}: cost={self.current_cost:.2f} "
                    f"best={self.best_cost:.2f} T={self.case_info.temperature:.3f}"
                )

        recomputed = self.total_cost()
        if not np.isclose(recomputed, self.current_cost, rtol=1e-9, atol=1e-6):
            logger.warning(
                f"Running cost {self.current_cost:.6f} drifted from recomputed {recomputed:.6f}"
            )
        self.current_cost = recomputed

        arc_portions_dbn = self.case_info.arc_portions_dbn(self.tom) if self.dynamic else None
        best_temporal = self.best_tom.temporal_arcs() if self.dynamic else []

        result = ChainResult(
            arc_portions=self.case_info.arc_portions(self.tom),
            arc_portions_dbn=arc_portions_dbn,
            best_order=list(self.best_tom.order),
            best_arcs=self.best_tom.arcs(),
            best_temporal_arcs=best_temporal,
            best_cost=float(self.best_cost),
            final_cost=float(self.current_cost),
            proposals=dict(self.proposals),
            acceptances=dict(self.acceptances),
            cost_trace=trace,
            cache_stats=self.case_info.node_cache.stats(),
            seed=self.seed
        )
        logger.info(
            f"Chain seed={self.seed} done: best cost {result.best_cost:.2f}, "
            f"acceptance {result.acceptance_rates}"
        )
        return result


def run_chain(dataset: DiscreteDataset, config, seed: Optional[int]) -> ChainResult:
    """
    Run one independent chain.

    Defined at module level so it can be pickled for multiprocessing.
    """
    return MetropolisSearch(dataset, config, seed=seed).run()
