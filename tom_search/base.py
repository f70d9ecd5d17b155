# base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import networkx as nx
import pandas as pd


class BaseConfig:
    """A minimal base configuration class."""

    pass


@dataclass
class SearchResults:
    """
    Container for structure search results.

    Attributes:
        names: Variable names, in data column order.
        arc_probabilities: DataFrame [parent, child] of posterior intraslice arc probabilities.
        temporal_arc_probabilities: DataFrame [parent, child] of posterior temporal
            arc probabilities (None for static searches).
        best_order: Total order of the cheapest model found.
        best_arcs: (parent, child) name pairs of the cheapest model found.
        best_temporal_arcs: (parent, child) name pairs of its temporal arcs.
        best_cost: Message length of the cheapest model (nits).
        chain_summaries: One dict of statistics per chain.
    """

    names: list = field(default_factory=list)
    arc_probabilities: pd.DataFrame = None
    temporal_arc_probabilities: pd.DataFrame = None
    best_order: list = field(default_factory=list)
    best_arcs: list = field(default_factory=list)
    best_temporal_arcs: list = field(default_factory=list)
    best_cost: float = None
    chain_summaries: list = field(default_factory=list)

    def to_dict(self):
        def _matrix(df):
            if df is None:
                return None
            return {
                parent: {child: float(p) for child, p in row.items()}
                for parent, row in df.iterrows()
            }

        return {
            "names": list(self.names),
            "best_order": list(self.best_order),
            "best_arcs": [list(a) for a in self.best_arcs],
            "best_temporal_arcs": [list(a) for a in self.best_temporal_arcs],
            "best_cost": self.best_cost,
            "arc_probabilities": _matrix(self.arc_probabilities),
            "temporal_arc_probabilities": _matrix(self.temporal_arc_probabilities),
            "chains": self.chain_summaries,
        }

    def to_networkx(self):
        """Cheapest model as a DiGraph; temporal arcs are edges from '<name>[t-1]' nodes."""
        graph = nx.DiGraph()
        graph.add_nodes_from(self.names)
        graph.add_edges_from(self.best_arcs, temporal=False)
        for parent, child in self.best_temporal_arcs:
            graph.add_edge(f"{parent}[t-1]", child, temporal=True)
        return graph

    def edges(self, threshold=0.5, temporal=False):
        """(parent, child, probability) triples at or above threshold, most probable first."""
        probs = self.temporal_arc_probabilities if temporal else self.arc_probabilities
        if probs is None:
            return []
        stacked = probs.stack()
        selected = stacked[stacked >= threshold].sort_values(ascending=False)
        return [(parent, child, float(p)) for (parent, child), p in selected.items()]


class BaseSearch(ABC):
    """Abstract base class for structure search algorithms."""

    @abstractmethod
    def fit(self, data) -> SearchResults:
        """Search for network structures supported by the data."""
        pass
