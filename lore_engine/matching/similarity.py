"""
String similarity helpers for approximate keyword matching.

Similarity is normalized Levenshtein: 1 - distance / max(len(a), len(b)),
so two empty strings are identical (1.0) and disjoint strings score 0.0.
"""

from typing import Optional, Tuple

from rapidfuzz.distance import Levenshtein


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning a into b."""
    return Levenshtein.distance(a, b)


def levenshtein_similarity(a: str, b: str) -> float:
    """Edit distance normalized to [0, 1], 1.0 meaning identical."""
    return float(Levenshtein.normalized_similarity(a, b))


def best_window_similarity(keyword: str, text: str) -> Tuple[float, Optional[int]]:
    """
    Best similarity between the keyword and any window of the text.

    Windows are one character shorter, equal to, and one character longer
    than the keyword, so a single insertion or deletion is scored as fairly
    as a substitution. Returns (score, offset of the best window); ties keep
    the earliest window.
    """
    if not keyword or not text:
        return 0.0, None

    exact_at = text.find(keyword)
    if exact_at >= 0:
        return 1.0, exact_at

    if len(text) < len(keyword) - 1:
        return levenshtein_similarity(keyword, text), 0

    best_score = 0.0
    best_offset: Optional[int] = None
    for size in (len(keyword) - 1, len(keyword), len(keyword) + 1):
        if size < 1 or size > len(text):
            continue
        for start in range(len(text) - size + 1):
            score = levenshtein_similarity(keyword, text[start:start + size])
            if score > best_score or (
                score == best_score and best_offset is not None and start < best_offset
            ):
                best_score = score
                best_offset = start
    return best_score, best_offset
