"""
Structure Search - Main Public API

Learns (dynamic) Bayesian network structure from discrete data with an MML
criterion and Metropolis sampling over totally ordered models.

Usage:
    config = SearchConfig(max_num_parents=3, n_steps=20000)
    results = StructureSearch(config).fit(df)
    print(results.arc_probabilities.round(2))
    graph = results.to_networkx()
"""

import logging
from dataclasses import dataclass, field
from multiprocessing import Pool, cpu_count
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from ..base import BaseConfig, BaseSearch, SearchResults
from ..core.node_cache import LEAF_COSTS
from ..core.tom_coster import PARENT_SET_PRIORS
from ..search.metropolis import ChainResult, run_chain
from ..search.transformations import MoveKind
from ..utils.arc_probabilities import average_portions, most_probable_network, portions_to_frame
from ..utils.data import DiscreteDataset

logger = logging.getLogger(__name__)


def _default_move_weights() -> Dict[str, float]:
    return {
        MoveKind.SINGLE_ARC.value: 0.4,
        MoveKind.DOUBLE_ARC.value: 0.2,
        MoveKind.PARENT_SWAP.value: 0.2,
        MoveKind.ORDER_SWAP.value: 0.2,
    }


@dataclass
class SearchConfig(BaseConfig):
    """
    Configuration for a structure search run.

    Attributes:
        max_num_parents: Maximum parents per node (intraslice + temporal). Default is 3.
        dynamic: If True, learn a DBN from time-ordered rows (row t-1 -> row t).
        structure_prior: "bernoulli" (independent arcs) or "uniform" (uniform parent-set size).
        arc_prob: Prior probability of each intraslice arc (bernoulli prior only).
        arc_prob_temporal: Prior probability of each temporal arc (bernoulli prior only).
        leaf_cost: Node cost model, "multinomial" (adaptive code) or "mdl".
        temperature: Metropolis temperature at the start of the chain.
        final_temperature: If set, temperature decays geometrically to this value.
        n_steps: Proposals per chain after burn-in.
        burn_in_steps: Proposals per chain before arc statistics are collected.
        move_weights: Relative frequency of each move kind (by MoveKind value).
        n_chains: Number of independent chains.
        use_parallel: Run chains in separate processes.
        n_jobs: Number of processes (-1 = all CPUs but one).
        random_seed: Base seed; chain i uses random_seed + i.
        random_order: Start each chain from a random total order.
        cache_max_entries: Node cache size limit (None = unbounded).
        n_bins: Quantile bins used for continuous DataFrame columns.
        arc_threshold: Probability threshold for the most probable network.
    """

    max_num_parents: int = 3
    dynamic: bool = False
    structure_prior: str = "bernoulli"
    arc_prob: float = 0.5
    arc_prob_temporal: float = 0.5
    leaf_cost: str = "multinomial"
    temperature: float = 1.0
    final_temperature: Optional[float] = None
    n_steps: int = 10000
    burn_in_steps: int = 1000
    move_weights: Dict[str, float] = field(default_factory=_default_move_weights)
    n_chains: int = 1
    use_parallel: bool = False
    n_jobs: int = -1
    random_seed: Optional[int] = None
    random_order: bool = True
    cache_max_entries: Optional[int] = None
    n_bins: int = 5
    arc_threshold: float = 0.5

    def __post_init__(self):
        """Validate settings and normalize names"""
        self.structure_prior = self.structure_prior.lower()
        self.leaf_cost = self.leaf_cost.lower()

        if self.structure_prior not in PARENT_SET_PRIORS:
            raise ValueError(
                f"Unknown structure_prior {self.structure_prior}; "
                f"choose from {sorted(PARENT_SET_PRIORS)}"
            )
        if self.leaf_cost not in LEAF_COSTS:
            raise ValueError(f"Unknown leaf_cost {self.leaf_cost}; choose from {sorted(LEAF_COSTS)}")
        if self.max_num_parents < 0:
            raise ValueError("max_num_parents must be non-negative.")
        for name in ("arc_prob", "arc_prob_temporal"):
            value = getattr(self, name)
            if not 0.0 < value < 1.0:
                raise ValueError(f"{name} must lie strictly between 0 and 1, got {value}.")
        if self.temperature <= 0:
            raise ValueError("temperature must be positive.")
        if self.final_temperature is not None and self.final_temperature <= 0:
            raise ValueError("final_temperature must be positive.")
        if self.n_steps < 0 or self.burn_in_steps < 0:
            raise ValueError("n_steps and burn_in_steps must be non-negative.")
        if self.n_chains < 1:
            raise ValueError("n_chains must be at least 1.")

        weights = {}
        for name, weight in self.move_weights.items():
            key = name.value if isinstance(name, MoveKind) else str(name).lower()
            MoveKind(key)  # raises ValueError for unknown move kinds
            if weight < 0:
                raise ValueError(f"Move weight for {key} must be non-negative.")
            weights[key] = float(weight)
        if sum(weights.values()) <= 0:
            raise ValueError("At least one move kind needs a positive weight.")
        self.move_weights = weights

    def normalized_move_weights(self) -> Dict[str, float]:
        """Move weights scaled to sum to 1, zero-weight kinds dropped"""
        total = sum(self.move_weights.values())
        return {k: w / total for k, w in self.move_weights.items() if w > 0}


def _run_chain_worker(args) -> ChainResult:
    """Pool worker: unpack (dataset, config, seed) and run one chain"""
    dataset, config, seed = args
    return run_chain(dataset, config, seed)


class StructureSearch(BaseSearch):
    """
    MML structure search over (dynamic) Bayesian networks.

    Runs one or more independent Metropolis chains and combines their arc
    statistics into posterior arc probabilities.
    """

    config_class = SearchConfig

    def __init__(self, config: Optional[SearchConfig] = None):
        self.config = config or SearchConfig()
        self.dataset: Optional[DiscreteDataset] = None
        self.chain_results: List[ChainResult] = []
        self.results: Optional[SearchResults] = None

        if self.config.n_jobs == -1:
            self.n_jobs = max(1, cpu_count() - 1)
        else:
            self.n_jobs = max(1, min(self.config.n_jobs, cpu_count()))

    def _prepare(
        self,
        data: Union[pd.DataFrame, DiscreteDataset, np.ndarray],
        n_bins: Optional[int] = None
    ) -> DiscreteDataset:
        if isinstance(data, DiscreteDataset):
            return data
        if isinstance(data, pd.DataFrame):
            if n_bins is None:
                n_bins = self.config.n_bins
            return DiscreteDataset.from_dataframe(data, n_bins=n_bins)
        return DiscreteDataset.from_codes(np.asarray(data))

    def _chain_seeds(self) -> List[Optional[int]]:
        base = self.config.random_seed
        if base is None:
            return [None] * self.config.n_chains
        return [base + i for i in range(self.config.n_chains)]

    def fit(self, data, n_bins: Optional[int] = None) -> SearchResults:
        """
        Search for structures supported by the data.

        Args:
            data: DataFrame, DiscreteDataset or integer code array. For a dynamic
                search rows must be consecutive time steps.
            n_bins: Quantile bins for continuous DataFrame columns (default: config.n_bins)

        Returns:
            SearchResults
        """
        self.dataset = self._prepare(data, n_bins=n_bins)
        config = self.config
        if self.dataset.n_vars < 1:
            raise ValueError("Data has no variables.")

        seeds = self._chain_seeds()
        logger.info(
            f"Searching {self.dataset.n_vars} variables x {self.dataset.n_rows} rows "
            f"with {config.n_chains} chain(s)"
        )

        if config.use_parallel and config.n_chains > 1 and self.n_jobs > 1:
            jobs = [(self.dataset, config, seed) for seed in seeds]
            with Pool(processes=min(self.n_jobs, config.n_chains)) as pool:
                self.chain_results = pool.map(_run_chain_worker, jobs)
        else:
            self.chain_results = [run_chain(self.dataset, config, seed) for seed in seeds]

        self.results = self._combine(self.chain_results)
        return self.results

    def _combine(self, chains: List[ChainResult]) -> SearchResults:
        names = self.dataset.names
        best = min(chains, key=lambda c: c.best_cost)

        arc_probs = portions_to_frame(average_portions([c.arc_portions for c in chains]), names)
        temporal = average_portions([c.arc_portions_dbn for c in chains])
        temporal_probs = portions_to_frame(temporal, names) if temporal is not None else None

        summaries = [
            {
                'seed': c.seed,
                'best_cost': c.best_cost,
                'final_cost': c.final_cost,
                'proposals': c.proposals,
                'acceptance_rates': c.acceptance_rates,
                'cache': c.cache_stats,
            }
            for c in chains
        ]

        return SearchResults(
            names=list(names),
            arc_probabilities=arc_probs,
            temporal_arc_probabilities=temporal_probs,
            best_order=[names[v] for v in best.best_order],
            best_arcs=[(names[p], names[c]) for p, c in best.best_arcs],
            best_temporal_arcs=[(names[p], names[c]) for p, c in best.best_temporal_arcs],
            best_cost=best.best_cost,
            chain_summaries=summaries
        )

    def most_probable_network(self, threshold: Optional[float] = None):
        """Thresholded, acyclic network of posterior intraslice arcs"""
        if self.results is None:
            raise RuntimeError("Search has not been run. Call fit() first.")
        if threshold is None:
            threshold = self.config.arc_threshold
        return most_probable_network(self.results.arc_probabilities, threshold)
