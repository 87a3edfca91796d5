"""Storage collaborator for cards, profiles and conflict edges.

``ConflictStore`` is the contract the engine depends on. The two
``insert_*_if_absent`` methods enforce the uniqueness invariants as a hard
constraint and raise ``ConstraintViolation`` on collision.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from opinion_conflict.errors import ConstraintViolation
from opinion_conflict.models import (
    Card,
    CardConflict,
    CognitiveConflict,
    UserCognitiveProfile,
    pair_key,
    triple_key,
)

if TYPE_CHECKING:
    from opinion_conflict.config import Settings


class ConflictStore(ABC):
    """Persistence contract used by the detection services."""

    # Cards (read side of the card-management system)

    @abstractmethod
    def add_card(self, card: Card) -> None:
        """Insert or replace a card."""

    @abstractmethod
    def get_card(self, card_id: str) -> Card | None:
        """Get a card by ID."""

    @abstractmethod
    def list_cards(self, owner_id: str, limit: int | None = None) -> list[Card]:
        """List an owner's cards, newest first."""

    # Profiles

    @abstractmethod
    def save_profile(self, profile: UserCognitiveProfile) -> None:
        """Insert or replace a profile.

        Raises:
            ConstraintViolation: If another profile of the owner has the same topic
        """

    @abstractmethod
    def get_profile(self, profile_id: str) -> UserCognitiveProfile | None:
        """Get a profile by ID."""

    @abstractmethod
    def get_profile_by_topic(self, owner_id: str, topic: str) -> UserCognitiveProfile | None:
        """Get an owner's profile for a topic, active or not."""

    @abstractmethod
    def list_profiles(self, owner_id: str, active_only: bool = True) -> list[UserCognitiveProfile]:
        """List an owner's profiles."""

    def deactivate_profile(self, profile_id: str) -> None:
        """Mark a profile inactive, keeping it for history."""
        profile = self.get_profile(profile_id)
        if profile is not None and profile.is_active:
            profile.is_active = False
            self.save_profile(profile)

    # Card-to-card conflicts

    @abstractmethod
    def insert_card_conflict_if_absent(self, conflict: CardConflict) -> CardConflict:
        """Insert an edge unless its canonical pair is already recorded.

        Raises:
            ConstraintViolation: If the owner already has an edge for the pair
        """

    @abstractmethod
    def get_card_conflict(self, conflict_id: str) -> CardConflict | None:
        """Get an edge by ID."""

    @abstractmethod
    def find_card_conflict(self, owner_id: str, card_id_a: str, card_id_b: str) -> CardConflict | None:
        """Get the owner's edge between two cards, in either order."""

    @abstractmethod
    def list_card_conflicts(
        self,
        owner_id: str,
        acknowledged: bool | None = None,
        card_id: str | None = None,
    ) -> list[CardConflict]:
        """List an owner's edges, newest first, optionally filtered."""

    @abstractmethod
    def update_card_conflict(self, conflict: CardConflict) -> None:
        """Persist changed flags of an existing edge."""

    def count_card_conflicts(self, owner_id: str, acknowledged: bool | None = None) -> int:
        return len(self.list_card_conflicts(owner_id, acknowledged=acknowledged))

    # Card-to-profile conflicts

    @abstractmethod
    def insert_cognitive_conflict_if_absent(self, conflict: CognitiveConflict) -> CognitiveConflict:
        """Insert an edge unless its (owner, card, profile) triple is recorded.

        Raises:
            ConstraintViolation: If the triple already has an edge
        """

    @abstractmethod
    def get_cognitive_conflict(self, conflict_id: str) -> CognitiveConflict | None:
        """Get an edge by ID."""

    @abstractmethod
    def find_cognitive_conflict(self, owner_id: str, card_id: str, profile_id: str) -> CognitiveConflict | None:
        """Get the edge for a triple."""

    @abstractmethod
    def list_cognitive_conflicts(
        self,
        owner_id: str,
        card_id: str | None = None,
        acknowledged: bool | None = None,
        dismissed: bool | None = None,
    ) -> list[CognitiveConflict]:
        """List an owner's card-to-profile edges, newest first."""

    @abstractmethod
    def update_cognitive_conflict(self, conflict: CognitiveConflict) -> None:
        """Persist changed flags of an existing edge."""

    def count_cognitive_conflicts(
        self,
        owner_id: str,
        acknowledged: bool | None = None,
        dismissed: bool | None = None,
    ) -> int:
        return len(
            self.list_cognitive_conflicts(owner_id, acknowledged=acknowledged, dismissed=dismissed)
        )


def _matches(value: bool, wanted: bool | None) -> bool:
    return wanted is None or value == wanted


class InMemoryConflictStore(ConflictStore):
    """Dict-backed store for a single process.

    Records are kept in their serialized form, so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cards: dict[str, dict] = {}
        self._profiles: dict[str, dict] = {}
        self._card_conflicts: dict[str, dict] = {}
        self._cognitive_conflicts: dict[str, dict] = {}
        # Uniqueness keys -> row ID
        self._pair_index: dict[str, str] = {}
        self._triple_index: dict[str, str] = {}

    def add_card(self, card: Card) -> None:
        with self._lock:
            self._cards[card.id] = card.to_dict()

    def get_card(self, card_id: str) -> Card | None:
        record = self._cards.get(card_id)
        return Card.from_dict(record) if record else None

    def list_cards(self, owner_id: str, limit: int | None = None) -> list[Card]:
        cards = [Card.from_dict(r) for r in list(self._cards.values()) if r["owner_id"] == owner_id]
        cards.sort(key=lambda c: c.created_at, reverse=True)
        return cards[:limit] if limit is not None else cards

    def save_profile(self, profile: UserCognitiveProfile) -> None:
        with self._lock:
            for record in self._profiles.values():
                if (
                    record["owner_id"] == profile.owner_id
                    and record["topic"] == profile.topic
                    and record["id"] != profile.id
                ):
                    raise ConstraintViolation(f"{profile.owner_id}:{profile.topic}")
            self._profiles[profile.id] = profile.to_dict()

    def get_profile(self, profile_id: str) -> UserCognitiveProfile | None:
        record = self._profiles.get(profile_id)
        return UserCognitiveProfile.from_dict(record) if record else None

    def get_profile_by_topic(self, owner_id: str, topic: str) -> UserCognitiveProfile | None:
        for record in list(self._profiles.values()):
            if record["owner_id"] == owner_id and record["topic"] == topic:
                return UserCognitiveProfile.from_dict(record)
        return None

    def list_profiles(self, owner_id: str, active_only: bool = True) -> list[UserCognitiveProfile]:
        return [
            UserCognitiveProfile.from_dict(r)
            for r in list(self._profiles.values())
            if r["owner_id"] == owner_id and (r["is_active"] or not active_only)
        ]

    def insert_card_conflict_if_absent(self, conflict: CardConflict) -> CardConflict:
        with self._lock:
            key = conflict.pair_key
            if key in self._pair_index:
                raise ConstraintViolation(key)
            self._card_conflicts[conflict.id] = conflict.to_dict()
            self._pair_index[key] = conflict.id
        return conflict

    def get_card_conflict(self, conflict_id: str) -> CardConflict | None:
        record = self._card_conflicts.get(conflict_id)
        return CardConflict.from_dict(record) if record else None

    def find_card_conflict(self, owner_id: str, card_id_a: str, card_id_b: str) -> CardConflict | None:
        conflict_id = self._pair_index.get(pair_key(owner_id, card_id_a, card_id_b))
        return self.get_card_conflict(conflict_id) if conflict_id else None

    def list_card_conflicts(
        self,
        owner_id: str,
        acknowledged: bool | None = None,
        card_id: str | None = None,
    ) -> list[CardConflict]:
        conflicts = [
            CardConflict.from_dict(r)
            for r in list(self._card_conflicts.values())
            if r["owner_id"] == owner_id and _matches(r["acknowledged"], acknowledged)
        ]
        if card_id is not None:
            conflicts = [c for c in conflicts if c.involves(card_id)]
        conflicts.sort(key=lambda c: c.created_at, reverse=True)
        return conflicts

    def update_card_conflict(self, conflict: CardConflict) -> None:
        with self._lock:
            if conflict.id in self._card_conflicts:
                self._card_conflicts[conflict.id] = conflict.to_dict()

    def insert_cognitive_conflict_if_absent(self, conflict: CognitiveConflict) -> CognitiveConflict:
        with self._lock:
            key = conflict.triple_key
            if key in self._triple_index:
                raise ConstraintViolation(key)
            self._cognitive_conflicts[conflict.id] = conflict.to_dict()
            self._triple_index[key] = conflict.id
        return conflict

    def get_cognitive_conflict(self, conflict_id: str) -> CognitiveConflict | None:
        record = self._cognitive_conflicts.get(conflict_id)
        return CognitiveConflict.from_dict(record) if record else None

    def find_cognitive_conflict(self, owner_id: str, card_id: str, profile_id: str) -> CognitiveConflict | None:
        conflict_id = self._triple_index.get(triple_key(owner_id, card_id, profile_id))
        return self.get_cognitive_conflict(conflict_id) if conflict_id else None

    def list_cognitive_conflicts(
        self,
        owner_id: str,
        card_id: str | None = None,
        acknowledged: bool | None = None,
        dismissed: bool | None = None,
    ) -> list[CognitiveConflict]:
        conflicts = [
            CognitiveConflict.from_dict(r)
            for r in list(self._cognitive_conflicts.values())
            if r["owner_id"] == owner_id
            and (card_id is None or r["card_id"] == card_id)
            and _matches(r["acknowledged"], acknowledged)
            and _matches(r["dismissed"], dismissed)
        ]
        conflicts.sort(key=lambda c: c.created_at, reverse=True)
        return conflicts

    def update_cognitive_conflict(self, conflict: CognitiveConflict) -> None:
        with self._lock:
            if conflict.id in self._cognitive_conflicts:
                self._cognitive_conflicts[conflict.id] = conflict.to_dict()

    def __repr__(self) -> str:
        return (
            f"InMemoryConflictStore(cards={len(self._cards)}, profiles={len(self._profiles)}, "
            f"card_conflicts={len(self._card_conflicts)}, "
            f"cognitive_conflicts={len(self._cognitive_conflicts)})"
        )


def create_store(settings: Settings) -> ConflictStore:
    """Build the store backend named in settings."""
    if settings.store_backend == "memory":
        return InMemoryConflictStore()

    from opinion_conflict.lance_store import LanceConflictStore

    return LanceConflictStore(db_path=settings.db_path)
