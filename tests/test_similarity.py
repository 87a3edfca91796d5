"""Tests for TextSimilarity class."""

import numpy as np
import pytest

from opinion_conflict.similarity import TextSimilarity, parse_keywords


@pytest.fixture
def similarity():
    return TextSimilarity()


def test_identical_text_scores_one(similarity):
    """Test that any non-empty text is fully similar to itself."""
    assert similarity.cosine_similarity("remote work", "remote work") == pytest.approx(1.0)
    assert similarity.cosine_similarity("机器学习", "机器学习") == pytest.approx(1.0)


def test_empty_text_scores_zero(similarity):
    """Test that empty or stop-word-only input scores 0.0 without raising."""
    assert similarity.cosine_similarity("", "anything") == 0.0
    assert similarity.cosine_similarity(None, "anything") == 0.0
    assert similarity.cosine_similarity("the is", "the is") == 0.0


def test_cosine_is_symmetric(similarity):
    """Test symmetry of cosine similarity."""
    a = "remote work increases productivity"
    b = "remote work harms team cohesion"
    assert similarity.cosine_similarity(a, b) == similarity.cosine_similarity(b, a)


def test_cosine_within_bounds(similarity):
    """Test that scores stay within [0, 1]."""
    score = similarity.cosine_similarity("remote work", "remote office work")
    assert 0.0 <= score <= 1.0


def test_disjoint_text_scores_zero(similarity):
    """Test that texts without shared tokens score 0.0."""
    assert similarity.cosine_similarity("sourdough fermentation", "interest rates") == 0.0


def test_unrelated_chinese_text_scores_low(similarity):
    """Test that unrelated Chinese sentences score low."""
    assert similarity.cosine_similarity("人工智能正在改变世界", "今天的天气很好") < 0.5


def test_related_chinese_text_scores_high(similarity):
    """Test that Chinese sentences sharing a topic score above 0.3."""
    score = similarity.cosine_similarity("机器学习是人工智能的一个分支", "深度学习属于机器学习领域")
    assert score > 0.3


def test_jaccard_partial_overlap(similarity):
    """Test Jaccard similarity with case-insensitive keywords."""
    assert similarity.jaccard_similarity("AI, Ethics", "ai, policy") == pytest.approx(1 / 3, abs=1e-4)
    assert similarity.jaccard_similarity("a, b, c", "c, d, e") == 0.2


def test_jaccard_empty_sets(similarity):
    """Test that a missing keyword set scores 0.0."""
    assert similarity.jaccard_similarity("", "a, b") == 0.0
    assert similarity.jaccard_similarity(None, None) == 0.0
    assert similarity.jaccard_similarity(" , ", "a") == 0.0


def test_parse_keywords():
    """Test splitting, trimming and case-folding tags."""
    assert parse_keywords(" Remote Work, remote work ,Culture,") == {"remote work", "culture"}


def test_extract_keywords(similarity):
    """Test frequency ranking with ties in order of first occurrence."""
    text = "data pipeline data quality pipeline data"

    assert similarity.extract_keywords(text, top_n=2) == ["data", "pipeline"]
    assert similarity.extract_keywords("alpha beta", top_n=5) == ["alpha", "beta"]
    assert similarity.extract_keywords("", top_n=5) == []
    assert similarity.extract_keywords(text, top_n=0) == []


def test_is_topic_related(similarity):
    """Test the topic gate at a threshold."""
    a = "Remote work remote work increases productivity"
    b = "Remote work remote work harms team cohesion"

    assert similarity.is_topic_related(a, b, 0.2)
    assert not similarity.is_topic_related(a, "sourdough baking", 0.2)


def test_similarity_matrix(similarity):
    """Test the pairwise similarity matrix."""
    texts = ["remote work productivity", "remote work cohesion", "sourdough baking"]
    matrix = similarity.similarity_matrix(texts)

    assert matrix.shape == (3, 3)
    assert np.allclose(np.diag(matrix), 1.0)
    assert np.allclose(matrix, matrix.T)
    assert matrix[0, 1] > 0.0
    assert matrix[0, 2] == 0.0


def test_similarity_matrix_size_cap():
    """Test that oversized inputs are rejected."""
    similarity = TextSimilarity(max_matrix_size=2)

    with pytest.raises(ValueError):
        similarity.similarity_matrix(["a", "b", "c"])
