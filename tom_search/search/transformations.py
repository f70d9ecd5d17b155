"""
TOM Transformations

Proposal moves for the Metropolis search over (dynamic) totally ordered
models. One step follows the same path for every move kind:

    propose -> feasibility check -> old node cost -> structural toggle cost
            -> mutate -> new node cost -> Metropolis test -> commit | revert

Infeasible proposals (too many parents, no candidate to swap) return without
touching the model. Rejected proposals are undone by re-applying the same
self-inverse mutation, so the model is always valid when a step returns.

The move set is closed (MoveKind). Static and dynamic models get separate
dispatch tables, chosen once per run with move_table().
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ..core.dtom import DTOM
from ..core.tom import TOM
from ..core.tom_coster import ArcToggle
from .case_info import CaseInfo

logger = logging.getLogger(__name__)


class MoveKind(Enum):
    """Shapes of graph edit the search can propose"""
    SINGLE_ARC = 'single_arc'
    DOUBLE_ARC = 'double_arc'
    PARENT_SWAP = 'parent_swap'
    ORDER_SWAP = 'order_swap'


@dataclass
class StepResult:
    """Outcome of one proposal"""
    kind: MoveKind
    accepted: bool
    feasible: bool
    nodes_changed: Tuple[int, ...] = ()
    cost_delta: float = 0.0  # proposed change in total cost (nits)
    toggles: Tuple[ArcToggle, ...] = ()


def metropolis_accept(delta: float, temperature: float, rng) -> bool:
    """
    Metropolis acceptance test on a cost (negative log probability) change.

    Improvements are always accepted; a worse state is accepted with
    probability exp(-delta / temperature). A non-positive temperature rejects
    every worsening move.
    """
    if not math.isfinite(delta):
        logger.warning(f"Rejecting proposal with non-finite cost change {delta}")
        return False
    if delta <= 0:
        return True
    if temperature <= 0:
        return False
    return rng.random() < math.exp(-delta / temperature)


# ----------------------------------------------------------------------
# Candidate parents
# ----------------------------------------------------------------------

def _random_index(rng, n: int) -> int:
    """Uniform integer in [0, n) from a single uniform draw"""
    return min(int(n * rng.random()), n - 1)


def _pool_size(tom: TOM, child: int, dynamic: bool) -> int:
    """Number of candidate parents of child"""
    if dynamic:
        return tom.num_nodes + tom.positions[child]
    return tom.positions[child]


def _candidate(tom: TOM, child: int, index: int, dynamic: bool) -> ArcToggle:
    """
    The index-th candidate arc into child.

    Static pools are the variables preceding child in the order. Dynamic pools
    put the N temporal candidates first (variable = index) followed by the
    intraslice candidates (node_at(index - N)).
    """
    if dynamic:
        n = tom.num_nodes
        if index < n:
            return ArcToggle(index, child, True)
        return ArcToggle(tom.order[index - n], child, False)
    return ArcToggle(tom.order[index], child, False)


def _is_present(tom: TOM, toggle: ArcToggle) -> bool:
    if toggle.temporal:
        return tom.is_temporal_arc(toggle.parent, toggle.child)
    return tom.is_arc(toggle.parent, toggle.child)


def _flip(tom: TOM, toggle: ArcToggle) -> bool:
    if toggle.temporal:
        return tom.toggle_temporal_arc(toggle.parent, toggle.child)
    return tom.toggle_arc(toggle.parent, toggle.child)


# ----------------------------------------------------------------------
# Shared evaluate / accept / revert skeleton
# ----------------------------------------------------------------------

def _apply_toggles(
    kind: MoveKind,
    tom: TOM,
    case_info: CaseInfo,
    rng,
    child: int,
    toggles: List[ArcToggle]
) -> StepResult:
    """Jointly toggle arcs into one child and accept or revert the change"""
    node = tom.nodes[child]

    change = 0
    for toggle in toggles:
        change += -1 if _is_present(tom, toggle) else 1
    if node.num_parents + change > tom.max_num_parents:
        return StepResult(kind, accepted=False, feasible=False, nodes_changed=(child,))

    node_cache = case_info.node_cache
    old_child_cost = node_cache.get_mml_cost(node)
    # candidate counts depend on the pre-mutation topology
    toggle_cost = case_info.tom_coster.cost_to_toggle(tom, toggles)

    for toggle in toggles:
        _flip(tom, toggle)

    new_child_cost = node_cache.get_mml_cost(node)
    delta = new_child_cost - old_child_cost + toggle_cost

    if metropolis_accept(delta, case_info.temperature, rng):
        for toggle in toggles:
            case_info.record_toggle(toggle, _is_present(tom, toggle))
        return StepResult(kind, True, True, (child,), delta, tuple(toggles))

    for toggle in reversed(toggles):
        _flip(tom, toggle)
    return StepResult(kind, False, True, (child,), delta, tuple(toggles))


# ----------------------------------------------------------------------
# Movers
# ----------------------------------------------------------------------

def single_arc_change(tom: TOM, case_info: CaseInfo, rng, dynamic: bool = False) -> StepResult:
    """Toggle one candidate arc into a random child"""
    kind = MoveKind.SINGLE_ARC
    child = _random_index(rng, tom.num_nodes)
    pool = _pool_size(tom, child, dynamic)
    if pool < 1:
        return StepResult(kind, accepted=False, feasible=False, nodes_changed=(child,))

    toggle = _candidate(tom, child, _random_index(rng, pool), dynamic)
    return _apply_toggles(kind, tom, case_info, rng, child, [toggle])


def double_arc_change(tom: TOM, case_info: CaseInfo, rng, dynamic: bool = False) -> StepResult:
    """
    Toggle two distinct candidate arcs A -> C and B -> C as one proposal.

    For a dynamic model the pair is temporal/temporal, temporal/intraslice or
    intraslice/intraslice depending on where the two indices fall in the pool.
    """
    kind = MoveKind.DOUBLE_ARC
    child = _random_index(rng, tom.num_nodes)
    pool = _pool_size(tom, child, dynamic)
    if pool < 2:
        return StepResult(kind, accepted=False, feasible=False, nodes_changed=(child,))

    a = _random_index(rng, pool)
    b = _random_index(rng, pool)
    while b == a:
        b = _random_index(rng, pool)

    toggles = [_candidate(tom, child, a, dynamic), _candidate(tom, child, b, dynamic)]
    return _apply_toggles(kind, tom, case_info, rng, child, toggles)


def parent_swap_change(tom: TOM, case_info: CaseInfo, rng, dynamic: bool = False) -> StepResult:
    """Replace one existing parent of a random child with a non-parent candidate"""
    kind = MoveKind.PARENT_SWAP
    child = _random_index(rng, tom.num_nodes)
    node = tom.nodes[child]
    # a static mover only sees intraslice parents
    num_parents = node.num_parents if dynamic else len(node.parents)
    pool = _pool_size(tom, child, dynamic)

    # nothing to swap out, or nothing to swap in
    if num_parents < 1 or num_parents == pool:
        return StepResult(kind, accepted=False, feasible=False, nodes_changed=(child,))

    p = _random_index(rng, num_parents)
    num_intraslice = len(node.parents)
    if p < num_intraslice:
        old_parent = ArcToggle(node.parents[p], child, False)
    else:
        old_parent = ArcToggle(node.temporal_parents[p - num_intraslice], child, True)

    new_parent = _candidate(tom, child, _random_index(rng, pool), dynamic)
    while _is_present(tom, new_parent):
        new_parent = _candidate(tom, child, _random_index(rng, pool), dynamic)

    return _apply_toggles(kind, tom, case_info, rng, child, [old_parent, new_parent])


def order_swap_change(tom: TOM, case_info: CaseInfo, rng, dynamic: bool = False) -> StepResult:
    """
    Swap two adjacent variables in the total order.

    An arc between them is reversed, so both nodes are re-costed. Temporal arcs
    are unaffected by the order.
    """
    kind = MoveKind.ORDER_SWAP
    n = tom.num_nodes
    if n < 2:
        return StepResult(kind, accepted=False, feasible=False)

    pos = _random_index(rng, n - 1)
    first = tom.order[pos]
    second = tom.order[pos + 1]
    first_node = tom.nodes[first]
    second_node = tom.nodes[second]

    reverse = tom.is_arc(first, second)
    if reverse and first_node.num_parents + 1 > tom.max_num_parents:
        return StepResult(kind, accepted=False, feasible=False, nodes_changed=(first, second))

    node_cache = case_info.node_cache
    old_cost = node_cache.get_mml_cost(first_node) + node_cache.get_mml_cost(second_node)
    swap_cost = case_info.tom_coster.cost_to_swap_order(tom, pos)

    tom.swap_order(pos)

    new_cost = node_cache.get_mml_cost(first_node) + node_cache.get_mml_cost(second_node)
    delta = new_cost - old_cost + swap_cost

    toggles = (ArcToggle(first, second), ArcToggle(second, first)) if reverse else ()

    if metropolis_accept(delta, case_info.temperature, rng):
        if reverse:
            case_info.record_toggle(toggles[0], False)
            case_info.record_toggle(toggles[1], True)
        return StepResult(kind, True, True, (first, second), delta, toggles)

    tom.swap_order(pos)
    return StepResult(kind, False, True, (first, second), delta, toggles)


# ----------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------

MoveFunction = Callable[[TOM, CaseInfo, object], StepResult]


def _bind(move, dynamic: bool) -> MoveFunction:
    def run(tom, case_info, rng):
        return move(tom, case_info, rng, dynamic)
    run.__name__ = f"{move.__name__}_{'dynamic' if dynamic else 'static'}"
    return run


_MOVES = {
    MoveKind.SINGLE_ARC: single_arc_change,
    MoveKind.DOUBLE_ARC: double_arc_change,
    MoveKind.PARENT_SWAP: parent_swap_change,
    MoveKind.ORDER_SWAP: order_swap_change,
}

STATIC_MOVES: Dict[MoveKind, MoveFunction] = {k: _bind(m, False) for k, m in _MOVES.items()}
DYNAMIC_MOVES: Dict[MoveKind, MoveFunction] = {k: _bind(m, True) for k, m in _MOVES.items()}


def move_table(dynamic: bool) -> Dict[MoveKind, MoveFunction]:
    """Movers for a static or a dynamic model; pick once per run"""
    return DYNAMIC_MOVES if dynamic else STATIC_MOVES


def step(
    kind: MoveKind,
    tom: TOM,
    case_info: CaseInfo,
    rng,
    moves: Optional[Dict[MoveKind, MoveFunction]] = None
) -> StepResult:
    """
    Run one proposal of the given kind.

    Hot loops should pass the table from move_table() once per run. Without
    it the table is looked up from the model type on every call, which is
    only meant for one-off steps.
    """
    if moves is None:
        moves = move_table(isinstance(tom, DTOM))
    return moves[kind](tom, case_info, rng)


class TOMTransformation:
    """
    A mover bound to one move kind, one chain context and one random source.

    Usage:
        mover = TOMTransformation(MoveKind.DOUBLE_ARC, case_info, rng, dynamic=True)
        accepted = mover.transform(dtom)
    """

    def __init__(
        self,
        kind: MoveKind,
        case_info: CaseInfo,
        rng,
        dynamic: bool = False
    ):
        self.kind = kind
        self.case_info = case_info
        self.rng = rng
        self.dynamic = dynamic
        self._move = move_table(dynamic)[kind]
        self.last_result: Optional[StepResult] = None

    def transform(self, tom: TOM, ljp: float = 0.0) -> bool:
        """
        Propose, evaluate and commit or revert one change to tom.

        Args:
            tom: Model to mutate in place
            ljp: Current log joint probability of the chain (unused by these moves)

        Returns:
            True if the proposal was accepted
        """
        if self.dynamic != isinstance(tom, DTOM):
            expected = "a DTOM" if self.dynamic else "a static TOM"
            raise TypeError(f"{self.kind.value} mover expects {expected}; got {type(tom).__name__}")
        self.last_result = self._move(tom, self.case_info, self.rng)
        return self.last_result.accepted

    def get_nodes_changed(self) -> Tuple[int, ...]:
        """Nodes whose parent set the last proposal touched"""
        if self.last_result is None:
            return ()
        return self.last_result.nodes_changed

    def __repr__(self):
        kind = 'dynamic' if self.dynamic else 'static'
        return f"TOMTransformation({self.kind.value}, {kind})"
