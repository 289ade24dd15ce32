"""
Embedding providers for semantic search.

Provides corpus-trained vector embeddings for memory items to enable
semantic similarity search without model files or network access.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

from .similarity import weighted_similarity
from .tokenizer import term_frequencies, tokenize

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    @abstractmethod
    def train(self, documents: Sequence[str]) -> None:
        """
        Learn the embedding space from a corpus.

        Args:
            documents: Training documents
        """
        pass

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """
        Generate an embedding vector for text.

        Args:
            text: The text to embed

        Returns:
            A list of floats representing the embedding vector
        """
        pass

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts."""
        return [self.embed(text) for text in texts]

    def similarity(self, vec1: List[float], vec2: List[float]) -> float:
        """
        Calculate similarity between two embedding vectors.

        Returns:
            Similarity score between 0 and 1
        """
        return weighted_similarity(vec1, vec2)

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Get the embedding dimension."""
        pass


class TfidfEmbedding(EmbeddingProvider):
    """
    TF-IDF embedding provider trained on a local corpus.

    Training builds a vocabulary (term -> dense index) and an inverse
    document frequency table ``ln(N / df)``. Embedding a text counts its
    known terms, weights each count by the term's IDF and scales the
    result to unit length.

    Features:
    - No model file, no network access
    - Low-millisecond embedding for corpora of a few thousand short texts
    - Output length always equals the current vocabulary size

    Retraining replaces the vocabulary entirely, so vectors produced
    before a retrain must not be compared with vectors produced after.
    """

    def __init__(self):
        self._vocabulary: Dict[str, int] = {}
        self._idf: Dict[str, float] = {}
        self._document_count = 0
        self._trained = False

    @property
    def dimension(self) -> int:
        """Get the embedding dimension."""
        return len(self._vocabulary)

    @property
    def vocabulary_size(self) -> int:
        """Number of terms in the trained vocabulary."""
        return len(self._vocabulary)

    @property
    def document_count(self) -> int:
        """Number of documents seen by the last training pass."""
        return self._document_count

    @property
    def is_trained(self) -> bool:
        """Whether train() has been called at least once."""
        return self._trained

    def idf(self, term: str) -> float:
        """IDF weight of a term, 0.0 for unknown terms."""
        return self._idf.get(term, 0.0)

    def train(self, documents: Sequence[str]) -> None:
        """
        Build the vocabulary and IDF table from documents.

        An empty corpus produces an empty vocabulary. Any previous
        vocabulary is discarded.
        """
        document_frequency: Dict[str, int] = {}

        for doc in documents:
            # dict.fromkeys keeps first-appearance order, so indices are stable
            for term in dict.fromkeys(tokenize(doc)):
                document_frequency[term] = document_frequency.get(term, 0) + 1

        ordered = list(document_frequency)
        count = len(documents)

        self._vocabulary = {term: index for index, term in enumerate(ordered)}
        self._idf = {
            term: math.log(count / document_frequency[term]) for term in ordered
        }
        self._document_count = count
        self._trained = True

        logger.debug(
            f"Trained embedder on {count} documents "
            f"({len(self._vocabulary)} terms)"
        )

    def embed(self, text: str) -> List[float]:
        """
        Generate a TF-IDF embedding for text.

        Unknown terms contribute nothing. Text without known terms
        yields the zero vector.
        """
        vector = [0.0] * len(self._vocabulary)
        if not text or not self._vocabulary:
            return vector

        for term, tf in term_frequencies(text).items():
            index = self._vocabulary.get(term)
            if index is not None:
                vector[index] = tf * self._idf[term]

        return self._normalize(vector)

    def _normalize(self, vector: List[float]) -> List[float]:
        """L2 normalize a vector."""
        magnitude = math.sqrt(sum(x * x for x in vector))
        if magnitude == 0:
            return vector
        return [x / magnitude for x in vector]
