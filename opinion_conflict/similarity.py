"""Lexical similarity between short texts.

TF-IDF cosine similarity for free text, Jaccard similarity for keyword tags,
and the topic gate built on top of them. All scores are in [0, 1] and empty
input scores 0.0 instead of raising.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from opinion_conflict.tokenizer import Tokenizer
from opinion_conflict.vectorizer import term_frequency, vectorize_pair

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


def _norm(vector: Mapping[str, float]) -> float:
    return math.sqrt(sum(w * w for w in vector.values()))


def parse_keywords(keywords: str | None) -> set[str]:
    """Split a comma-delimited tag string into a case-folded set."""
    if not keywords:
        return set()
    return {k.strip().casefold() for k in keywords.split(",") if k.strip()}


class TextSimilarity:
    """Similarity metrics over a shared tokenizer.

    The engine holds no corpus state: every cosine comparison builds its own
    two-document corpus, so instances are safe to share across threads.
    """

    def __init__(
        self,
        tokenizer: Tokenizer | None = None,
        max_matrix_size: int = 200,
    ) -> None:
        """Initialize the similarity engine.

        Args:
            tokenizer: Tokenizer to use (default settings if None)
            max_matrix_size: Largest N accepted by ``similarity_matrix``
        """
        self.tokenizer = tokenizer or Tokenizer()
        self.max_matrix_size = max_matrix_size

    def cosine_similarity(self, text_a: str | None, text_b: str | None) -> float:
        """TF-IDF cosine similarity of two texts.

        Args:
            text_a: First text
            text_b: Second text

        Returns:
            Similarity in [0, 1], rounded to 4 decimal places
        """
        tokens_a = self.tokenizer.tokenize(text_a)
        tokens_b = self.tokenizer.tokenize(text_b)
        if not tokens_a or not tokens_b:
            return 0.0

        vec_a, vec_b = vectorize_pair(tokens_a, tokens_b)
        norm_a, norm_b = _norm(vec_a), _norm(vec_b)
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0

        # Iterate over the smaller vector
        if len(vec_a) > len(vec_b):
            vec_a, vec_b = vec_b, vec_a
        dot = sum(w * vec_b.get(term, 0.0) for term, w in vec_a.items())

        similarity = dot / (norm_a * norm_b)
        return round(max(0.0, min(1.0, similarity)), 4)

    def jaccard_similarity(self, keywords_a: str | None, keywords_b: str | None) -> float:
        """Jaccard similarity of two comma-delimited keyword sets.

        Two empty sets score 0.0: missing keywords are no evidence of
        similarity.
        """
        set_a = parse_keywords(keywords_a)
        set_b = parse_keywords(keywords_b)
        if not set_a or not set_b:
            return 0.0
        return round(len(set_a & set_b) / len(set_a | set_b), 4)

    def extract_keywords(self, text: str | None, top_n: int = 5) -> list[str]:
        """Most frequent tokens of a text.

        Args:
            text: Text to analyze
            top_n: Maximum number of keywords

        Returns:
            Tokens by descending frequency, ties in order of first occurrence
        """
        if top_n <= 0:
            return []
        counts = term_frequency(self.tokenizer.tokenize(text))
        # Counter keeps first-occurrence order and sorted() is stable
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        return [token for token, _ in ranked[:top_n]]

    def is_topic_related(self, text_a: str | None, text_b: str | None, threshold: float) -> bool:
        """Topic gate: cosine similarity at or above ``threshold``."""
        return self.cosine_similarity(text_a, text_b) >= threshold

    def similarity_matrix(self, texts: Sequence[str]) -> np.ndarray:
        """Pairwise cosine similarity of N texts.

        Makes N*(N-1)/2 cosine calls, so N is capped by ``max_matrix_size``.

        Args:
            texts: Texts to compare

        Returns:
            Symmetric N x N array with 1.0 on the diagonal

        Raises:
            ValueError: If more than ``max_matrix_size`` texts are given
        """
        n = len(texts)
        if n > self.max_matrix_size:
            raise ValueError(
                f"similarity_matrix accepts at most {self.max_matrix_size} texts, got {n}"
            )

        matrix = np.eye(n, dtype=float)
        for i in range(n):
            for j in range(i + 1, n):
                matrix[i, j] = matrix[j, i] = self.cosine_similarity(texts[i], texts[j])
        return matrix

    def __repr__(self) -> str:
        return f"TextSimilarity(tokenizer={self.tokenizer!r}, max_matrix={self.max_matrix_size})"
