"""TF-IDF weighting over tiny, comparison-local corpora.

A pairwise comparison vectorizes exactly its two texts, so IDF only says
which of the two documents contain a term. There is no global corpus index.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


def term_frequency(tokens: Sequence[str]) -> Counter[str]:
    """Count occurrences of each token."""
    return Counter(tokens)


def inverse_document_frequency(corpus: Sequence[Sequence[str]]) -> dict[str, float]:
    """Smoothed IDF for every term in the corpus.

    Uses ``log((N + 1) / (df + 1)) + 1``, which stays positive and finite
    even for a single-document corpus.

    Args:
        corpus: One token sequence per document

    Returns:
        Mapping of term to IDF weight
    """
    n_docs = len(corpus)
    document_frequency: Counter[str] = Counter()
    for tokens in corpus:
        document_frequency.update(set(tokens))

    return {
        term: math.log((n_docs + 1) / (df + 1)) + 1.0
        for term, df in document_frequency.items()
    }


def vectorize(tokens: Sequence[str], idf: Mapping[str, float]) -> dict[str, float]:
    """Sparse TF-IDF vector for one document.

    Term frequency is normalized by document length. Terms absent from
    ``idf`` take the largest IDF present (the weight of the rarest term).

    Args:
        tokens: Document tokens
        idf: IDF weights from ``inverse_document_frequency``

    Returns:
        Mapping of term to weight, empty for an empty document
    """
    if not tokens:
        return {}

    length = len(tokens)
    unseen_idf = max(idf.values()) if idf else 1.0
    return {
        term: (count / length) * idf.get(term, unseen_idf)
        for term, count in term_frequency(tokens).items()
    }


def vectorize_pair(
    tokens_a: Sequence[str],
    tokens_b: Sequence[str],
) -> tuple[dict[str, float], dict[str, float]]:
    """Vectorize two documents against their joint two-document corpus."""
    idf = inverse_document_frequency([tokens_a, tokens_b])
    return vectorize(tokens_a, idf), vectorize(tokens_b, idf)
