"""Tests for the record types."""

from datetime import datetime, timezone

import pytest

from opinion_conflict.models import (
    BeliefType,
    Card,
    CardConflict,
    CardConflictType,
    CognitiveConflict,
    CognitiveConflictType,
    UserCognitiveProfile,
    belief_confidence,
    canonical_pair,
    pair_key,
    triple_key,
)


def test_canonical_pair_orders_ids():
    """Test that a pair maps to the same key in either order."""
    assert canonical_pair("b", "a") == ("a", "b")
    assert canonical_pair("a", "b") == ("a", "b")
    assert pair_key("u", "b", "a") == pair_key("u", "a", "b") == "u:a:b"


def test_canonical_pair_rejects_self_pair():
    """Test that a card cannot pair with itself."""
    with pytest.raises(ValueError):
        canonical_pair("a", "a")


def test_triple_key():
    """Test the card-to-profile uniqueness key."""
    assert triple_key("u", "card", "profile") == "u:card:profile"


def test_card_conflict_between_canonicalizes():
    """Test building an edge from IDs in reverse order."""
    conflict = CardConflict.between("u", "z", "a", CardConflictType.CONTRADICTORY)

    assert conflict.card_id_low == "a"
    assert conflict.card_id_high == "z"
    assert conflict.pair_key == "u:a:z"
    assert conflict.other_card_id("a") == "z"
    assert conflict.involves("z")
    assert not conflict.involves("m")


def test_card_conflict_rejects_unordered_ids():
    """Test that the constructor enforces low < high."""
    with pytest.raises(ValueError):
        CardConflict("u", "z", "a", CardConflictType.CONTRADICTORY)


def test_card_conflict_serialization():
    """Test converting an edge to a record and back."""
    acknowledged_at = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    conflict = CardConflict.between(
        "u", "a", "b", CardConflictType.DIFFERENT_PERSPECTIVE,
        conflict_score=0.7, acknowledged=True, acknowledged_at=acknowledged_at,
    )

    record = conflict.to_dict()
    assert record["conflict_type"] == "DIFFERENT_PERSPECTIVE"
    assert record["pair_key"] == "u:a:b"

    restored = CardConflict.from_dict(record)
    assert restored.id == conflict.id
    assert restored.conflict_type == CardConflictType.DIFFERENT_PERSPECTIVE
    assert restored.acknowledged_at == acknowledged_at


def test_card_comparison_text():
    """Test that the title and viewpoint are compared together."""
    card = Card(owner_id="u", title="Remote work", viewpoint_summary="boosts focus")
    assert card.comparison_text == "Remote work boosts focus"
    assert Card(owner_id="u", viewpoint_summary="only this").comparison_text == "only this"


def test_card_keyword_list():
    """Test splitting the keyword string."""
    card = Card(owner_id="u", keywords="ai, ethics, ,policy")
    assert card.keyword_list == ["ai", "ethics", "policy"]


@pytest.mark.parametrize(
    "count, expected",
    [
        (1, BeliefType.TENTATIVE),
        (2, BeliefType.EXPLORING),
        (3, BeliefType.MODERATE_STANCE),
        (4, BeliefType.MODERATE_STANCE),
        (5, BeliefType.STRONG_CONVICTION),
    ],
)
def test_belief_type_for_evidence(count, expected):
    """Test belief strength buckets."""
    assert BeliefType.for_evidence(count) == expected


def test_belief_confidence_is_capped():
    """Test confidence growth and its ceiling."""
    assert belief_confidence(1) == 0.45
    assert belief_confidence(2) == 0.6
    assert belief_confidence(10) == 0.95


def test_profile_serialization():
    """Test converting a profile to a record and back."""
    profile = UserCognitiveProfile(
        owner_id="u",
        topic="remote work",
        belief_statement="remote work increases productivity",
        contributing_card_ids=["a", "b"],
        belief_type=BeliefType.EXPLORING,
    )

    restored = UserCognitiveProfile.from_dict(profile.to_dict())
    assert restored.contributing_card_ids == ["a", "b"]
    assert restored.belief_type == BeliefType.EXPLORING
    assert restored.is_active is True


def test_cognitive_conflict_resolution_state():
    """Test that acknowledging or dismissing resolves an edge."""
    conflict = CognitiveConflict("u", "card", "profile", CognitiveConflictType.CHALLENGING)
    assert conflict.is_unresolved
    assert conflict.triple_key == "u:card:profile"

    conflict.dismissed = True
    assert not conflict.is_unresolved
