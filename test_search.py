"""
End-to-end tests for the search driver and the public API:
1. The running chain cost tracks the recomputed cost
2. Strong dependencies receive high posterior arc probability
3. Temporal dependencies are found by dynamic searches
4. Configuration and data preparation validate their input
5. Result containers and the most probable network
"""

import numpy as np
import pandas as pd
import pytest

from tom_search import SearchConfig, SearchResults, StructureSearch
from tom_search.search.metropolis import MetropolisSearch, run_chain
from tom_search.search.transformations import MoveKind
from tom_search.utils.arc_probabilities import most_probable_network
from tom_search.utils.data import DiscreteDataset


def noisy_copy_data(n_rows=300, noise=0.05, seed=0):
    """A random, B a noisy copy of A, C independent"""
    rng = np.random.default_rng(seed)
    a = rng.integers(0, 2, n_rows)
    b = a ^ (rng.random(n_rows) < noise)
    c = rng.integers(0, 2, n_rows)
    return pd.DataFrame({'A': a, 'B': b.astype(int), 'C': c})


def lagged_data(n_rows=300, noise=0.05, seed=1):
    """Y[t] is a noisy copy of X[t-1]"""
    rng = np.random.default_rng(seed)
    x = rng.integers(0, 2, n_rows)
    y = np.zeros(n_rows, dtype=int)
    y[1:] = x[:-1] ^ (rng.random(n_rows - 1) < noise)
    return pd.DataFrame({'X': x, 'Y': y})


# ----------------------------------------------------------------------
# Chain driver
# ----------------------------------------------------------------------

@pytest.mark.parametrize('dynamic', [False, True])
def test_running_cost_matches_recomputed_cost(dynamic):
    data = DiscreteDataset.from_dataframe(noisy_copy_data())
    config = SearchConfig(dynamic=dynamic, max_num_parents=2, structure_prior='uniform')
    chain = MetropolisSearch(data, config, seed=3)

    for _ in range(500):
        chain.step()

    assert chain.current_cost == pytest.approx(chain.total_cost())
    assert chain.best_cost <= chain.current_cost + 1e-9
    chain.tom.check_invariants()


def test_run_chain_reports_statistics():
    data = DiscreteDataset.from_dataframe(noisy_copy_data())
    config = SearchConfig(n_steps=400, burn_in_steps=100, random_seed=0)
    result = run_chain(data, config, seed=0)

    assert sum(result.proposals.values()) == 500
    assert set(result.proposals) == {kind.value for kind in MoveKind}
    assert all(0.0 <= r <= 1.0 for r in result.acceptance_rates.values())
    assert result.arc_portions.shape == (3, 3)
    assert result.arc_portions_dbn is None
    assert ((result.arc_portions >= -1e-9) & (result.arc_portions <= 1 + 1e-9)).all()
    assert result.best_cost <= result.final_cost + 1e-9
    assert result.cache_stats['hits'] > 0


def test_annealing_schedule():
    data = DiscreteDataset.from_dataframe(noisy_copy_data(n_rows=50))
    config = SearchConfig(temperature=4.0, final_temperature=1.0)
    chain = MetropolisSearch(data, config, seed=0)
    assert chain._temperature_at(0, 3) == pytest.approx(4.0)
    assert chain._temperature_at(1, 3) == pytest.approx(2.0)
    assert chain._temperature_at(2, 3) == pytest.approx(1.0)


def test_disabled_move_kinds_are_never_proposed():
    data = DiscreteDataset.from_dataframe(noisy_copy_data(n_rows=50))
    config = SearchConfig(move_weights={'single_arc': 1.0, 'order_swap': 0.0})
    chain = MetropolisSearch(data, config, seed=0)
    for _ in range(50):
        assert chain.step().kind == MoveKind.SINGLE_ARC


# ----------------------------------------------------------------------
# Structure recovery
# ----------------------------------------------------------------------

def test_static_search_finds_strong_dependency():
    config = SearchConfig(max_num_parents=2, n_steps=3000, burn_in_steps=500, n_chains=2, random_seed=0)
    search = StructureSearch(config)
    results = search.fit(noisy_copy_data())

    probs = results.arc_probabilities
    assert list(probs.index) == ['A', 'B', 'C']
    assert probs.loc['A', 'B'] + probs.loc['B', 'A'] > 0.8
    assert probs.loc['A', 'C'] + probs.loc['C', 'A'] < 0.5
    assert probs.loc['B', 'C'] + probs.loc['C', 'B'] < 0.5
    assert results.temporal_arc_probabilities is None
    assert len(results.chain_summaries) == 2

    graph = search.most_probable_network()
    assert graph.has_edge('A', 'B') or graph.has_edge('B', 'A')
    assert 'C' in graph.nodes


def test_dynamic_search_finds_temporal_dependency():
    config = SearchConfig(dynamic=True, max_num_parents=2, n_steps=3000, burn_in_steps=500, random_seed=0)
    results = StructureSearch(config).fit(lagged_data())

    temporal = results.temporal_arc_probabilities
    assert temporal.loc['X', 'Y'] > 0.8
    assert temporal.loc['Y', 'X'] < 0.5
    assert ('X', 'Y') in results.best_temporal_arcs
    assert ('X', 'Y', temporal.loc['X', 'Y']) in results.edges(threshold=0.8, temporal=True)


def test_same_seed_gives_same_results():
    data = noisy_copy_data(n_rows=100)
    config = SearchConfig(n_steps=300, burn_in_steps=50, random_seed=42)
    first = StructureSearch(config).fit(data)
    second = StructureSearch(config).fit(data)
    pd.testing.assert_frame_equal(first.arc_probabilities, second.arc_probabilities)
    assert first.best_cost == second.best_cost


def test_fit_accepts_code_arrays():
    codes = noisy_copy_data(n_rows=80).to_numpy()
    results = StructureSearch(SearchConfig(n_steps=100, burn_in_steps=10, random_seed=0)).fit(codes)
    assert results.names == ['X0', 'X1', 'X2']


def test_fit_n_bins_overrides_config():
    rng = np.random.default_rng(0)
    df = pd.DataFrame({'level': rng.normal(size=120), 'flag': rng.integers(0, 2, 120)})
    search = StructureSearch(SearchConfig(n_steps=50, burn_in_steps=10, n_bins=5, random_seed=0))
    with pytest.warns(UserWarning):
        search.fit(df, n_bins=3)
    assert search.dataset.arities == [3, 2]

    with pytest.raises(TypeError):
        search.fit(df, bins=3)


def test_most_probable_network_before_fit():
    with pytest.raises(RuntimeError):
        StructureSearch().most_probable_network()


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------

def test_config_normalizes_names_and_weights():
    config = SearchConfig(
        structure_prior='UNIFORM',
        move_weights={MoveKind.SINGLE_ARC: 3.0, 'parent_swap': 1.0, 'order_swap': 0.0}
    )
    assert config.structure_prior == 'uniform'
    assert config.normalized_move_weights() == {'single_arc': 0.75, 'parent_swap': 0.25}


@pytest.mark.parametrize('kwargs', [
    {'arc_prob': 1.0},
    {'arc_prob_temporal': 0.0},
    {'structure_prior': 'dirichlet'},
    {'leaf_cost': 'bdeu'},
    {'max_num_parents': -1},
    {'temperature': 0.0},
    {'n_chains': 0},
    {'move_weights': {'teleport': 1.0}},
    {'move_weights': {'single_arc': 0.0}},
])
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        SearchConfig(**kwargs)


# ----------------------------------------------------------------------
# Data preparation
# ----------------------------------------------------------------------

def test_from_dataframe_codes_columns():
    rng = np.random.default_rng(0)
    df = pd.DataFrame({
        'colour': rng.choice(['red', 'green', 'blue'], 100),
        'count': rng.integers(0, 4, 100),
        'level': rng.normal(size=100),
    })
    with pytest.warns(UserWarning, match='level'):
        data = DiscreteDataset.from_dataframe(df, n_bins=4)

    assert data.names == ['colour', 'count', 'level']
    assert data.arities[0] == 3
    assert data.arities[1] == df['count'].nunique()
    assert data.arities[2] == 4
    assert data.codes.min() >= 0
    assert (data.codes.max(axis=0) < np.array(data.arities)).all()
    assert data.state_labels['colour'] == ['blue', 'green', 'red']


def test_from_dataframe_rejects_missing_values():
    df = pd.DataFrame({'A': [0, 1, None]})
    with pytest.raises(ValueError):
        DiscreteDataset.from_dataframe(df)


def test_dataset_validates_codes():
    with pytest.raises(ValueError):
        DiscreteDataset(codes=np.array([[0, 3]]), arities=[2, 2], names=['A', 'B'])
    with pytest.raises(ValueError):
        DiscreteDataset.from_codes(np.array([[0, 1]])).slices(dynamic=True)


# ----------------------------------------------------------------------
# Results
# ----------------------------------------------------------------------

def make_results():
    names = ['A', 'B', 'C']
    probs = pd.DataFrame(
        [[0.0, 0.9, 0.2], [0.1, 0.0, 0.8], [0.6, 0.0, 0.0]],
        index=names, columns=names
    )
    return SearchResults(
        names=names,
        arc_probabilities=probs,
        best_order=['A', 'B', 'C'],
        best_arcs=[('A', 'B'), ('B', 'C')],
        best_temporal_arcs=[('C', 'A')],
        best_cost=12.5
    )


def test_most_probable_network_breaks_cycles():
    graph = most_probable_network(make_results().arc_probabilities, threshold=0.5)
    assert graph.has_edge('A', 'B') and graph.has_edge('B', 'C')
    assert not graph.has_edge('C', 'A')


def test_results_edges_and_graph():
    results = make_results()
    assert results.edges(threshold=0.7) == [('A', 'B', 0.9), ('B', 'C', 0.8)]
    assert results.edges(temporal=True) == []

    graph = results.to_networkx()
    assert graph.has_edge('C[t-1]', 'A')
    assert graph.edges['C[t-1]', 'A']['temporal']
    assert not graph.edges['A', 'B']['temporal']

    as_dict = results.to_dict()
    assert as_dict['arc_probabilities']['A']['B'] == 0.9
    assert as_dict['temporal_arc_probabilities'] is None
    assert as_dict['best_temporal_arcs'] == [['C', 'A']]
