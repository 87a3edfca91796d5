"""Tests for LanceConflictStore."""

from datetime import datetime, timedelta, timezone

import pytest

from opinion_conflict.errors import ConstraintViolation
from opinion_conflict.lance_store import LanceConflictStore
from opinion_conflict.models import (
    Card,
    CardConflict,
    CardConflictType,
    CognitiveConflict,
    CognitiveConflictType,
    UserCognitiveProfile,
)

OWNER = "user-1"
BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def lance(tmp_path):
    return LanceConflictStore(db_path=tmp_path / "lancedb")


def card(card_id, minutes, owner_id=OWNER):
    created = BASE + timedelta(minutes=minutes)
    return Card(
        id=card_id,
        owner_id=owner_id,
        title="Remote work",
        viewpoint_summary=f"viewpoint {card_id}",
        keywords="remote work",
        created_at=created,
        updated_at=created,
    )


def test_tables_created(lance):
    """Test that every table exists and starts empty."""
    assert lance.table_counts() == {
        "cards": 0,
        "cognitive_profiles": 0,
        "card_conflicts": 0,
        "cognitive_conflicts": 0,
    }


def test_cards_round_trip(lance):
    """Test storing, replacing and listing cards."""
    lance.add_card(card("a", 1))
    lance.add_card(card("b", 2))
    lance.add_card(card("c", 3, owner_id="user-2"))

    updated = card("a", 1)
    updated.viewpoint_summary = "changed"
    lance.add_card(updated)

    assert lance.get_card("a").viewpoint_summary == "changed"
    assert lance.get_card("a").created_at == BASE + timedelta(minutes=1)
    assert lance.get_card("missing") is None
    assert [c.id for c in lance.list_cards(OWNER)] == ["b", "a"]
    assert [c.id for c in lance.list_cards(OWNER, limit=1)] == ["b"]


def test_card_conflict_uniqueness(lance):
    """Test that a pair holds at most one edge, in either order."""
    conflict = CardConflict.between(OWNER, "b", "a", CardConflictType.CONTRADICTORY, conflict_score=0.8)
    lance.insert_card_conflict_if_absent(conflict)

    with pytest.raises(ConstraintViolation):
        lance.insert_card_conflict_if_absent(
            CardConflict.between(OWNER, "a", "b", CardConflictType.COMPLEMENTARY)
        )

    found = lance.find_card_conflict(OWNER, "b", "a")
    assert found.id == conflict.id
    assert found.conflict_type == CardConflictType.CONTRADICTORY
    assert lance.find_card_conflict("user-2", "a", "b") is None


def test_racing_writer_removes_its_duplicate(lance):
    """Test that the newer of two rows for one pair is deleted by its writer."""
    older = CardConflict.between(OWNER, "a", "b", CardConflictType.CONTRADICTORY, created_at=BASE)
    newer = CardConflict.between(
        OWNER, "b", "a", CardConflictType.COMPLEMENTARY, created_at=BASE + timedelta(minutes=1)
    )
    lance.tables["card_conflicts"].add([older.to_dict(), newer.to_dict()])
    assert lance.count_card_conflicts(OWNER) == 2

    with pytest.raises(ConstraintViolation):
        lance._keep_first_writer("card_conflicts", "pair_key", newer.to_dict())

    assert lance.count_card_conflicts(OWNER) == 1
    assert lance.find_card_conflict(OWNER, "a", "b").id == older.id
    lance._keep_first_writer("card_conflicts", "pair_key", older.to_dict())
    assert lance.count_card_conflicts(OWNER) == 1


def test_card_conflict_filters_and_update(lance):
    """Test listing by card and acknowledgement state."""
    first = CardConflict.between(OWNER, "a", "b", CardConflictType.CONTRADICTORY)
    second = CardConflict.between(OWNER, "b", "c", CardConflictType.DIFFERENT_PERSPECTIVE)
    lance.insert_card_conflict_if_absent(first)
    lance.insert_card_conflict_if_absent(second)

    first.acknowledged = True
    first.acknowledged_at = BASE
    lance.update_card_conflict(first)

    assert [c.id for c in lance.list_card_conflicts(OWNER, card_id="a")] == [first.id]
    assert len(lance.list_card_conflicts(OWNER, card_id="b")) == 2
    assert [c.id for c in lance.list_card_conflicts(OWNER, acknowledged=False)] == [second.id]
    assert lance.get_card_conflict(first.id).acknowledged_at == BASE
    assert lance.count_card_conflicts(OWNER) == 2
    assert lance.count_card_conflicts(OWNER, acknowledged=False) == 1


def test_profiles(lance):
    """Test saving, topic lookup, uniqueness and deactivation."""
    profile = UserCognitiveProfile(
        owner_id=OWNER,
        topic="remote work",
        belief_statement="remote work increases productivity",
        contributing_card_ids=["a", "b"],
    )
    lance.save_profile(profile)

    loaded = lance.get_profile_by_topic(OWNER, "remote work")
    assert loaded.id == profile.id
    assert loaded.contributing_card_ids == ["a", "b"]

    with pytest.raises(ConstraintViolation):
        lance.save_profile(UserCognitiveProfile(owner_id=OWNER, topic="remote work"))

    lance.deactivate_profile(profile.id)
    assert lance.list_profiles(OWNER) == []
    assert [p.id for p in lance.list_profiles(OWNER, active_only=False)] == [profile.id]
    assert lance.get_profile(profile.id).is_active is False


def test_cognitive_conflicts(lance):
    """Test triple uniqueness, filters and resolution flags."""
    conflict = CognitiveConflict(OWNER, "card", "profile", CognitiveConflictType.CHALLENGING)
    lance.insert_cognitive_conflict_if_absent(conflict)

    with pytest.raises(ConstraintViolation):
        lance.insert_cognitive_conflict_if_absent(
            CognitiveConflict(OWNER, "card", "profile", CognitiveConflictType.CONTRADICTORY)
        )

    assert lance.find_cognitive_conflict(OWNER, "card", "profile").id == conflict.id
    assert lance.count_cognitive_conflicts(OWNER, acknowledged=False, dismissed=False) == 1

    conflict.dismissed = True
    conflict.dismissed_at = BASE
    lance.update_cognitive_conflict(conflict)

    assert lance.list_cognitive_conflicts(OWNER, acknowledged=False, dismissed=False) == []
    assert [c.id for c in lance.list_cognitive_conflicts(OWNER, card_id="card")] == [conflict.id]
    assert lance.get_cognitive_conflict(conflict.id).dismissed_at == BASE


def test_data_persists_across_instances(tmp_path):
    """Test reopening an existing database."""
    path = tmp_path / "lancedb"
    LanceConflictStore(db_path=path).add_card(card("a", 1))

    assert LanceConflictStore(db_path=path).get_card("a") is not None
