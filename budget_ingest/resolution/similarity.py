"""
Name normalization and token-set similarity for material names.
"""

import re
from typing import Iterable, Optional, Tuple, TypeVar

T = TypeVar("T")

_NON_WORD_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """
    Lower-case, turn punctuation into spaces and collapse whitespace.

    Accented letters are kept: "Cimento Portland CP-II" -> "cimento portland cp ii".
    """
    text = _NON_WORD_RE.sub(" ", name.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def display_name(name: str) -> str:
    """Whitespace-collapsed original name, punctuation preserved."""
    return _WHITESPACE_RE.sub(" ", name).strip()


def jaccard_similarity(a: str, b: str) -> float:
    """|A ∩ B| / |A ∪ B| over the whitespace tokens of two normalized names."""
    tokens_a = set(a.split())
    tokens_b = set(b.split())
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def best_match(
    name: str,
    candidates: Iterable[Tuple[str, T]],
    threshold: float
) -> Optional[Tuple[T, float]]:
    """
    Find the closest entry for a normalized name.

    Args:
        name: Normalized name to look up
        candidates: (normalized name, value) pairs
        threshold: Minimum similarity accepted (inclusive)

    Returns:
        (value, similarity) of an exact match, else of the highest-scoring
        entry at or above the threshold, else None. Ties keep the first entry.
    """
    pairs = list(candidates)

    for candidate_name, value in pairs:
        if candidate_name == name:
            return value, 1.0

    best: Optional[Tuple[T, float]] = None
    for candidate_name, value in pairs:
        score = jaccard_similarity(name, candidate_name)
        if score >= threshold and (best is None or score > best[1]):
            best = (value, score)
    return best
