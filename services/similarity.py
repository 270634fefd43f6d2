"""
services/similarity.py – Normalised edit-distance similarity between two names.
"""

from rapidfuzz.distance import Levenshtein


def similarity(first: str, second: str) -> float:
    """
    Return a similarity ratio in [0, 1] between *first* and *second*.

    Both strings are lower-cased and trimmed.  Identical strings (including two
    empty ones) score 1.0; otherwise the score is ``(L - distance) / L`` where
    L is the length of the longer string.
    """
    s1 = first.lower().strip()
    s2 = second.lower().strip()
    if s1 == s2:
        return 1.0
    return Levenshtein.normalized_similarity(s1, s2)
