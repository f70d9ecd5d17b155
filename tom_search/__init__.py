"""
TOM Search - MML Bayesian Network Structure Discovery

Learns the structure of Bayesian networks, and of dynamic Bayesian networks
for time-series data, by Metropolis sampling over totally ordered models
scored with a Minimum Message Length criterion.

Main Components:
    - StructureSearch: Main public API
    - TOM / DTOM: Totally ordered (dynamic) graph models
    - NodeCache: Memoized per-node MML cost oracle
    - TOMCoster / DTOMCoster: Structural prior costs
    - CaseInfo: Per-chain search context and arc statistics
    - TOMTransformation: Metropolis proposal moves

Quick Start:
    >>> from tom_search import StructureSearch, SearchConfig
    >>>
    >>> config = SearchConfig(max_num_parents=2, n_steps=20000, random_seed=0)
    >>> results = StructureSearch(config).fit(df)
    >>>
    >>> print(results.arc_probabilities.round(2))
    >>> for parent, child, p in results.edges(threshold=0.5):
    ...     print(f"{parent} -> {child}: {p:.2f}")

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Causal AI Team"

from .api.structure_search import StructureSearch, SearchConfig
from .base import SearchResults
from .core.tom import TOM, Node
from .core.dtom import DTOM, DNode
from .core.node_cache import NodeCache, MultinomialCost, MDLCost
from .core.tom_coster import (
    TOMCoster,
    DTOMCoster,
    ArcToggle,
    BernoulliArcPrior,
    UniformParentSetPrior
)
from .search.case_info import CaseInfo
from .search.transformations import MoveKind, StepResult, TOMTransformation, step
from .search.metropolis import MetropolisSearch, ChainResult
from .utils.data import DiscreteDataset

__all__ = [
    # Main API
    'StructureSearch',
    'SearchConfig',
    'SearchResults',

    # Graph model
    'TOM',
    'Node',
    'DTOM',
    'DNode',

    # Costs
    'NodeCache',
    'MultinomialCost',
    'MDLCost',
    'TOMCoster',
    'DTOMCoster',
    'ArcToggle',
    'BernoulliArcPrior',
    'UniformParentSetPrior',

    # Search
    'CaseInfo',
    'MoveKind',
    'StepResult',
    'TOMTransformation',
    'step',
    'MetropolisSearch',
    'ChainResult',

    # Data
    'DiscreteDataset',
]
