"""
Tests for the TOM / DTOM graph models:
1. Toggles are self-inverse
2. Arcs always respect the total order
3. Order swaps reverse arcs and undo themselves
4. Invariant violations raise
"""

import numpy as np
import pytest

from tom_search.core.tom import TOM
from tom_search.core.dtom import DTOM


def make_chain_tom():
    """0 -> 1 -> 2, 0 -> 2 over four variables"""
    tom = TOM(4, max_num_parents=3, names=['A', 'B', 'C', 'D'])
    tom.add_arc(0, 1)
    tom.add_arc(1, 2)
    tom.add_arc(0, 2)
    return tom


# ----------------------------------------------------------------------
# Toggle primitives
# ----------------------------------------------------------------------

def test_toggle_arc_twice_restores_state():
    tom = make_chain_tom()
    before = tom.snapshot()
    parents_before = [list(n.parents) for n in tom.nodes]

    for parent, child in [(0, 1), (0, 3), (2, 3), (1, 2)]:
        tom.toggle_arc(parent, child)
        tom.toggle_arc(parent, child)

    assert tom.snapshot() == before
    assert [list(n.parents) for n in tom.nodes] == parents_before
    tom.check_invariants()


def test_toggle_arc_reports_new_state():
    tom = TOM(3)
    assert tom.toggle_arc(0, 2) is True
    assert tom.is_arc(0, 2)
    assert tom.get_node(2).get_num_parents() == 1
    assert tom.toggle_arc(0, 2) is False
    assert not tom.is_arc(0, 2)
    assert tom.get_node(2).get_num_parents() == 0


def test_temporal_toggle_twice_restores_state():
    dtom = DTOM(3, max_num_parents=4)
    dtom.add_arc(0, 1)
    dtom.add_temporal_arc(2, 0)
    before = dtom.snapshot()

    for parent, child in [(2, 0), (0, 0), (1, 2)]:
        dtom.toggle_temporal_arc(parent, child)
        dtom.toggle_temporal_arc(parent, child)

    assert dtom.snapshot() == before
    dtom.check_invariants()


# ----------------------------------------------------------------------
# Order invariant
# ----------------------------------------------------------------------

def test_arc_against_order_is_rejected():
    tom = TOM(3)
    tom.set_order([2, 0, 1])
    with pytest.raises(ValueError):
        tom.add_arc(0, 2)
    tom.add_arc(2, 0)
    assert tom.arcs() == [(2, 0)]


def test_add_existing_or_remove_missing_arc_raises():
    tom = TOM(3)
    tom.add_arc(0, 1)
    with pytest.raises(ValueError):
        tom.add_arc(0, 1)
    with pytest.raises(ValueError):
        tom.remove_arc(1, 2)
    with pytest.raises(ValueError):
        tom.add_arc(1, 1)


def test_node_at_and_get_node_pos_are_inverse():
    tom = TOM(5)
    tom.set_order([3, 1, 4, 0, 2])
    for pos in range(5):
        assert tom.get_node_pos(tom.node_at(pos)) == pos


def test_set_order_must_keep_arcs_consistent():
    tom = TOM(3)
    tom.add_arc(0, 1)
    with pytest.raises(ValueError):
        tom.set_order([1, 0, 2])
    with pytest.raises(ValueError):
        tom.set_order([0, 0, 1])
    tom.set_order([0, 2, 1])
    assert tom.get_node_pos(2) == 1


def test_randomize_order_needs_empty_model():
    tom = TOM(4)
    tom.randomize_order(np.random.default_rng(1))
    assert sorted(tom.order) == [0, 1, 2, 3]
    tom.add_arc(tom.node_at(0), tom.node_at(3))
    with pytest.raises(ValueError):
        tom.randomize_order(np.random.default_rng(2))


# ----------------------------------------------------------------------
# Order swaps
# ----------------------------------------------------------------------

def test_swap_order_reverses_arc_between_neighbours():
    tom = make_chain_tom()
    tom.swap_order(1)  # B and C trade places

    assert tom.order == [0, 2, 1, 3]
    assert tom.is_arc(2, 1)
    assert not tom.is_arc(1, 2)
    assert tom.get_node(1).parents == [0, 2]
    assert tom.get_node(2).parents == [0]
    tom.check_invariants()


def test_swap_order_twice_restores_state():
    tom = make_chain_tom()
    before = tom.snapshot()
    for pos in range(3):
        tom.swap_order(pos)
        tom.swap_order(pos)
    assert tom.snapshot() == before


def test_swap_order_out_of_range():
    tom = TOM(3)
    with pytest.raises(ValueError):
        tom.swap_order(2)


def test_random_toggles_and_swaps_keep_invariants():
    rng = np.random.default_rng(7)
    dtom = DTOM(5, max_num_parents=10)
    for _ in range(500):
        choice = rng.integers(3)
        if choice == 0:
            pos = int(rng.integers(4))
            dtom.swap_order(pos)
        elif choice == 1:
            a, b = sorted(rng.choice(5, size=2, replace=False), key=dtom.get_node_pos)
            dtom.toggle_arc(int(a), int(b))
        else:
            dtom.toggle_temporal_arc(int(rng.integers(5)), int(rng.integers(5)))
        dtom.check_invariants()
        for parent, child in dtom.arcs():
            assert dtom.get_node_pos(parent) < dtom.get_node_pos(child)


# ----------------------------------------------------------------------
# DTOM specifics
# ----------------------------------------------------------------------

def test_dnode_parent_split():
    dtom = DTOM(3, max_num_parents=2, names=['X', 'Y', 'Z'])
    dtom.add_temporal_arc(0, 2)
    dtom.add_arc(1, 2)

    node = dtom.get_node(2)
    assert node.get_num_intraslice_parents() == 1
    assert node.get_num_temporal_parents() == 1
    assert node.get_num_parents() == 2
    assert dtom.max_parents_available(2) == 3 + 2


def test_copy_is_independent():
    dtom = DTOM(3)
    dtom.add_arc(0, 1)
    dtom.add_temporal_arc(1, 1)
    clone = dtom.copy()

    dtom.toggle_temporal_arc(1, 1)
    dtom.toggle_arc(0, 2)

    assert clone.is_temporal_arc(1, 1)
    assert not clone.is_arc(0, 2)
    clone.check_invariants()


def test_adjacency_matrices_are_child_by_parent():
    dtom = DTOM(3)
    dtom.add_arc(0, 2)
    dtom.add_temporal_arc(2, 1)
    assert dtom.adjacency_matrix()[2, 0]
    assert dtom.temporal_adjacency_matrix()[1, 2]
    assert dtom.adjacency_matrix().sum() == 1
    assert dtom.temporal_adjacency_matrix().sum() == 1
