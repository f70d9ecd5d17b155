"""Core components: graph models and cost calculators"""

from .tom import TOM, Node
from .dtom import DTOM, DNode
from .node_cache import NodeCache, LeafCost, MultinomialCost, MDLCost
from .tom_coster import (
    TOMCoster,
    DTOMCoster,
    ArcToggle,
    BernoulliArcPrior,
    UniformParentSetPrior,
    MAX_TOGGLE_COST
)

__all__ = [
    'TOM',
    'Node',
    'DTOM',
    'DNode',
    'NodeCache',
    'LeafCost',
    'MultinomialCost',
    'MDLCost',
    'TOMCoster',
    'DTOMCoster',
    'ArcToggle',
    'BernoulliArcPrior',
    'UniformParentSetPrior',
    'MAX_TOGGLE_COST',
]
