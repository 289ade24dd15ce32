"""
Similarity measures.

Two complementary scores are used by the retrieval engine:

- weighted similarity: cosine similarity between embedding vectors,
  used to rank items by conceptual closeness
- overlap similarity: Jaccard index between term sets, used to catch
  literal restatements

They are kept separate on purpose and never blended into one score.
"""

import math
from typing import Sequence

from ..exceptions import DimensionMismatch
from .tokenizer import term_set


def vector_magnitude(vector: Sequence[float]) -> float:
    """Euclidean length of a vector."""
    return math.sqrt(sum(x * x for x in vector))


def weighted_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        vec1: First vector
        vec2: Second vector

    Returns:
        Similarity in [0, 1]; 0 when either vector has zero magnitude

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    if len(vec1) != len(vec2):
        raise DimensionMismatch(len(vec1), len(vec2))

    dot = 0.0
    mag1 = 0.0
    mag2 = 0.0
    for a, b in zip(vec1, vec2):
        dot += a * b
        mag1 += a * a
        mag2 += b * b

    magnitude = math.sqrt(mag1) * math.sqrt(mag2)
    if magnitude == 0:
        return 0.0

    cosine = dot / magnitude
    return max(0.0, min(1.0, cosine))


def overlap_similarity(text1: str, text2: str) -> float:
    """
    Calculate the Jaccard index between the term sets of two texts.

    Case and punctuation are ignored because both texts go through
    the shared tokenizer.

    Returns:
        |intersection| / |union|, or 0 if either text has no terms
    """
    terms1 = term_set(text1)
    terms2 = term_set(text2)

    if not terms1 or not terms2:
        return 0.0

    intersection = len(terms1 & terms2)
    union = len(terms1) + len(terms2) - intersection
    return intersection / union
