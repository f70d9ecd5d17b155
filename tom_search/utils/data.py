"""
Discrete Dataset Preparation

Converts a pandas DataFrame into the fixed-width integer code matrix consumed
by the cost oracles. Every column ends up coded 0..arity-1.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from sklearn.preprocessing import KBinsDiscretizer, LabelEncoder
import warnings


@dataclass
class DiscreteDataset:
    """
    Integer-coded data set.

    Attributes:
        codes: (n_rows, n_vars) int64 array of state codes
        arities: Number of states of each variable
        names: Variable names
        state_labels: Original value (or bin edges) behind each code, per variable
    """
    codes: np.ndarray
    arities: List[int]
    names: List[str]
    state_labels: Dict[str, List] = field(default_factory=dict)

    def __post_init__(self):
        self.codes = np.asarray(self.codes, dtype=np.int64)
        if self.codes.ndim != 2:
            raise ValueError("codes must be a 2-D array (rows x variables).")
        if self.codes.shape[1] != len(self.names):
            raise ValueError(
                f"{self.codes.shape[1]} columns of codes but {len(self.names)} names."
            )
        self.arities = [int(a) for a in self.arities]
        if len(self.arities) != len(self.names):
            raise ValueError("One arity per variable is required.")
        if self.codes.size:
            if self.codes.min() < 0:
                raise ValueError("State codes must be non-negative.")
            too_big = self.codes.max(axis=0) >= np.asarray(self.arities)
            if too_big.any():
                bad = [self.names[i] for i in np.flatnonzero(too_big)]
                raise ValueError(f"Codes exceed the declared arity for: {bad}")

    @property
    def n_rows(self) -> int:
        return self.codes.shape[0]

    @property
    def n_vars(self) -> int:
        return self.codes.shape[1]

    def slices(self, dynamic: bool = False) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """
        Arrays the cost oracles read parent configurations from.

        For a static model every row is a case and there is no previous slice.
        For a dynamic model consecutive rows form (t-1, t) pairs: the current
        slice is rows 1..n-1 and the previous slice is rows 0..n-2.

        Returns:
            Tuple of (current, previous)
        """
        if not dynamic:
            return self.codes, None
        if self.n_rows < 2:
            raise ValueError("A dynamic model needs at least two consecutive rows.")
        return self.codes[1:], self.codes[:-1]

    @classmethod
    def from_codes(
        cls,
        codes: np.ndarray,
        names: Optional[List[str]] = None,
        arities: Optional[List[int]] = None
    ) -> 'DiscreteDataset':
        """Wrap an already integer-coded array"""
        codes = np.asarray(codes, dtype=np.int64)
        if names is None:
            names = [f"X{i}" for i in range(codes.shape[1])]
        if arities is None:
            arities = [int(codes[:, i].max()) + 1 if len(codes) else 1 for i in range(codes.shape[1])]
        return cls(codes=codes, arities=arities, names=list(names))

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        n_bins: int = 5,
        max_integer_states: int = 20
    ) -> 'DiscreteDataset':
        """
        Code every column of a DataFrame.

        Args:
            df: Input data, one row per case (or per time step for a DBN)
            n_bins: Number of quantile bins for continuous columns
            max_integer_states: Integer columns with at most this many distinct
                values are treated as categorical

        Returns:
            DiscreteDataset
        """
        if df.isnull().values.any():
            raise ValueError("Missing values are not supported; impute or drop them first.")

        names = [str(c) for c in df.columns]
        columns = []
        arities = []
        labels = {}

        for name, col in zip(names, df.columns):
            series = df[col]
            if _is_categorical(series, max_integer_states):
                encoder = LabelEncoder()
                coded = encoder.fit_transform(series if pd.api.types.is_numeric_dtype(series) else series.astype(str))
                labels[name] = list(encoder.classes_)
                arities.append(len(encoder.classes_))
            else:
                warnings.warn(
                    f"Column '{name}' looks continuous; discretizing into {n_bins} quantile bins."
                )
                binner = KBinsDiscretizer(n_bins=n_bins, encode='ordinal', strategy='quantile')
                coded = binner.fit_transform(series.to_numpy(dtype=float).reshape(-1, 1)).ravel()
                edges = binner.bin_edges_[0]
                labels[name] = [(float(lo), float(hi)) for lo, hi in zip(edges[:-1], edges[1:])]
                arities.append(len(edges) - 1)
            columns.append(np.asarray(coded, dtype=np.int64))

        codes = np.column_stack(columns) if columns else np.zeros((len(df), 0), dtype=np.int64)
        return cls(codes=codes, arities=arities, names=names, state_labels=labels)


def _is_categorical(series: pd.Series, max_integer_states: int) -> bool:
    """Decide whether a column is used as-is (categorical) or binned (continuous)"""
    if isinstance(series.dtype, pd.CategoricalDtype):
        return True
    if pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series):
        return True
    if pd.api.types.is_bool_dtype(series):
        return True
    if pd.api.types.is_integer_dtype(series):
        return series.nunique() <= max_integer_states
    return False
