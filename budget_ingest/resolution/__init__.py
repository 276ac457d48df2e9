"""
Resolution Module

Matches parsed line items against a supplier's material catalog
(exact, then token-set similarity) and records inserts and updates.
"""

from .resolver import CatalogResolver, ItemError, ResolutionOutcome, ResolutionState
from .similarity import jaccard_similarity, normalize_name

__all__ = [
    "CatalogResolver",
    "ItemError",
    "ResolutionOutcome",
    "ResolutionState",
    "jaccard_similarity",
    "normalize_name",
]
