"""
Posterior Arc Probabilities

Turns the arc-weight statistics of one or more chains into labelled
probability tables and a single most-probable network.
"""

import logging
import numpy as np
import pandas as pd
import networkx as nx
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


def portions_to_frame(portions: np.ndarray, names: Sequence[str]) -> pd.DataFrame:
    """
    Label an arc-portion matrix.

    Args:
        portions: (N, N) array indexed [child, parent]

    Returns:
        DataFrame with parents as rows and children as columns
    """
    portions = np.clip(np.asarray(portions, dtype=float), 0.0, 1.0)
    return pd.DataFrame(portions.T, index=list(names), columns=list(names))


def average_portions(portion_list: List[Optional[np.ndarray]]) -> Optional[np.ndarray]:
    """Mean of per-chain arc portions (each chain weighted equally)"""
    arrays = [p for p in portion_list if p is not None]
    if not arrays:
        return None
    return np.mean(np.stack(arrays), axis=0)


def most_probable_network(
    arc_probabilities: pd.DataFrame,
    threshold: float = 0.5
) -> nx.DiGraph:
    """
    Keep every intraslice arc with probability >= threshold, then break any
    cycles by dropping the least probable arc on each.

    Arc probabilities are averaged over different total orders, so the
    thresholded graph is not guaranteed to be acyclic.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(arc_probabilities.index)
    for parent in arc_probabilities.index:
        for child in arc_probabilities.columns:
            p = float(arc_probabilities.loc[parent, child])
            if parent != child and p >= threshold:
                graph.add_edge(parent, child, probability=p)

    while not nx.is_directed_acyclic_graph(graph):
        cycle = nx.find_cycle(graph)
        weakest = min(cycle, key=lambda e: graph.edges[e[0], e[1]]['probability'])
        logger.info(
            f"Dropping arc {weakest[0]} -> {weakest[1]} "
            f"(p={graph.edges[weakest[0], weakest[1]]['probability']:.3f}) to break a cycle"
        )
        graph.remove_edge(weakest[0], weakest[1])

    return graph
