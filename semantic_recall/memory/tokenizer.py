"""
Text tokenization shared by the embedder and the overlap measure.
"""

import re
from collections import Counter
from typing import List, Set

# Tokens of this length or shorter are discarded
MIN_TERM_LENGTH = 3

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> List[str]:
    """
    Split text into normalized terms.

    Lower-cases the text, replaces every non-word character with
    whitespace, splits on whitespace runs and drops terms shorter
    than three characters.

    Args:
        text: The text to tokenize

    Returns:
        Terms in their original order, duplicates kept
    """
    if not text:
        return []

    words = _NON_WORD.sub(" ", text.lower()).split()
    return [w for w in words if len(w) >= MIN_TERM_LENGTH]


def term_set(text: str) -> Set[str]:
    """Distinct terms of a text."""
    return set(tokenize(text))


def term_frequencies(text: str) -> Counter:
    """Raw count of each term in a text."""
    return Counter(tokenize(text))
