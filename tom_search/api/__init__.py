"""Public API for structure search"""

from .structure_search import StructureSearch, SearchConfig

__all__ = [
    'StructureSearch',
    'SearchConfig',
]
