"""Utility functions for data preparation and arc statistics"""

from .data import DiscreteDataset
from .arc_probabilities import (
    portions_to_frame,
    average_portions,
    most_probable_network
)

__all__ = [
    'DiscreteDataset',
    'portions_to_frame',
    'average_portions',
    'most_probable_network',
]
