"""String similarity metrics for comparing error sets between attempts.

Two metrics are kept on purpose:
- similarity: word-set Jaccard overlap, used by pattern classification
- edit_similarity: normalized Levenshtein, used by retry feedback

The loop and stall thresholds are calibrated against each metric separately.
"""

from __future__ import annotations

from collections.abc import Sequence


def _word_set(errors: Sequence[str]) -> set[str]:
    return set(" ".join(errors).lower().split())


def similarity(a: Sequence[str], b: Sequence[str]) -> float:
    """Jaccard overlap of the word sets of two error lists.

    Args:
        a: First list of error messages.
        b: Second list of error messages.

    Returns:
        1.0 if both lists are empty, 0.0 if exactly one is empty,
        otherwise |intersection| / |union| of lower-cased words.
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0

    words_a = _word_set(a)
    words_b = _word_set(b)
    union = words_a | words_b
    if not union:
        # Only whitespace on both sides
        return 1.0
    return len(words_a & words_b) / len(union)


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance with unit-cost insertion, deletion and substitution."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, 1):
        current = [i]
        for j, c2 in enumerate(s2, 1):
            cost = 0 if c1 == c2 else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def edit_similarity(s1: str, s2: str) -> float:
    """Normalized edit similarity: 1 - distance / max(len).

    Two empty strings are identical (1.0).
    """
    longest = max(len(s1), len(s2))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(s1, s2) / longest
