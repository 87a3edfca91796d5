"""Records read and written by the conflict engine.

Cards are owned by the surrounding card-management system and only read here.
Profiles and the two kinds of conflict edges are written by the engine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def canonical_pair(card_id_a: str, card_id_b: str) -> tuple[str, str]:
    """Order two card IDs so an unordered pair always maps to one key.

    Args:
        card_id_a: One card ID
        card_id_b: The other card ID

    Returns:
        Tuple of (low, high)

    Raises:
        ValueError: If both IDs are the same card
    """
    if card_id_a == card_id_b:
        raise ValueError(f"a card cannot conflict with itself: {card_id_a}")
    return (card_id_a, card_id_b) if card_id_a < card_id_b else (card_id_b, card_id_a)


def pair_key(owner_id: str, card_id_a: str, card_id_b: str) -> str:
    low, high = canonical_pair(card_id_a, card_id_b)
    return f"{owner_id}:{low}:{high}"


def triple_key(owner_id: str, card_id: str, profile_id: str) -> str:
    return f"{owner_id}:{card_id}:{profile_id}"


class CardConflictType(str, Enum):
    """How two cards of the same owner relate."""

    CONTRADICTORY = "CONTRADICTORY"
    COMPLEMENTARY = "COMPLEMENTARY"
    DIFFERENT_PERSPECTIVE = "DIFFERENT_PERSPECTIVE"
    TOPIC_OVERLAP = "TOPIC_OVERLAP"


class CognitiveConflictType(str, Enum):
    """How a card relates to the owner's standing belief on a topic."""

    CONTRADICTORY = "CONTRADICTORY"
    CHALLENGING = "CHALLENGING"
    DIFFERENT_PERSPECTIVE = "DIFFERENT_PERSPECTIVE"
    EXTENDING = "EXTENDING"


class BeliefType(str, Enum):
    """Strength of a profile belief, by how many cards back it.

    - Tentative: a single card
    - Exploring: two cards
    - Moderate stance: three or four cards
    - Strong conviction: five or more cards
    """

    TENTATIVE = "TENTATIVE"
    EXPLORING = "EXPLORING"
    MODERATE_STANCE = "MODERATE_STANCE"
    STRONG_CONVICTION = "STRONG_CONVICTION"

    @classmethod
    def for_evidence(cls, card_count: int) -> BeliefType:
        if card_count >= 5:
            return cls.STRONG_CONVICTION
        if card_count >= 3:
            return cls.MODERATE_STANCE
        if card_count >= 2:
            return cls.EXPLORING
        return cls.TENTATIVE


def belief_confidence(card_count: int) -> float:
    """Confidence in a belief backed by ``card_count`` cards (0.3 to 0.95)."""
    return round(min(0.3 + card_count * 0.15, 0.95), 2)


@dataclass
class Card:
    """A user-owned short text carrying one viewpoint.

    Attributes:
        id: Unique identifier for the card
        owner_id: ID of the owning user
        title: Card title
        viewpoint_summary: The one-sentence claim used for comparison
        keywords: Comma-delimited tag set
        topic_hint: Optional derived topic
        created_at: Creation time
        updated_at: Last modification time
    """

    id: str = field(default_factory=new_id)
    owner_id: str = ""
    title: str = ""
    viewpoint_summary: str = ""
    keywords: str = ""
    topic_hint: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def comparison_text(self) -> str:
        """Title and viewpoint joined, the text compared against peers."""
        return " ".join(part for part in (self.title, self.viewpoint_summary) if part)

    @property
    def keyword_list(self) -> list[str]:
        return [k.strip() for k in (self.keywords or "").split(",") if k.strip()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "viewpoint_summary": self.viewpoint_summary,
            "keywords": self.keywords,
            "topic_hint": self.topic_hint,
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Card:
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            title=data.get("title") or "",
            viewpoint_summary=data.get("viewpoint_summary") or "",
            keywords=data.get("keywords") or "",
            topic_hint=data.get("topic_hint"),
            created_at=_parse_time(data.get("created_at")) or utcnow(),
            updated_at=_parse_time(data.get("updated_at")) or utcnow(),
        )

    def __repr__(self) -> str:
        return f"Card(id={self.id[:8]}..., owner={self.owner_id}, title={self.title[:20]!r})"


@dataclass
class CardConflict:
    """A conflict edge between two cards of the same owner.

    The pair is stored in canonical order, so detecting from either card
    yields the same row.

    Attributes:
        id: Unique identifier for the edge
        owner_id: ID of the owner of both cards
        card_id_low: Smaller of the two card IDs
        card_id_high: Larger of the two card IDs
        conflict_type: Kind of disagreement
        topic: Topic the two cards share
        similarity_score: Lexical similarity of the cards (0.0 to 1.0)
        conflict_score: Strength of the disagreement (0.0 to 1.0)
        description: Short human-readable summary
        ai_analysis: Free-text rationale from the analyzer
        acknowledged: Whether the owner has seen and accepted the conflict
        created_at: Detection time
        acknowledged_at: Time of the first acknowledgement
    """

    owner_id: str
    card_id_low: str
    card_id_high: str
    conflict_type: CardConflictType
    id: str = field(default_factory=new_id)
    topic: str = ""
    similarity_score: float = 0.0
    conflict_score: float = 0.0
    description: str = ""
    ai_analysis: str = ""
    acknowledged: bool = False
    created_at: datetime = field(default_factory=utcnow)
    acknowledged_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.card_id_low < self.card_id_high:
            raise ValueError(
                f"card IDs must be canonically ordered: {self.card_id_low!r} >= {self.card_id_high!r}"
            )

    @classmethod
    def between(
        cls,
        owner_id: str,
        card_id_a: str,
        card_id_b: str,
        conflict_type: CardConflictType,
        **kwargs: Any,
    ) -> CardConflict:
        """Create an edge from two card IDs in any order."""
        low, high = canonical_pair(card_id_a, card_id_b)
        return cls(
            owner_id=owner_id,
            card_id_low=low,
            card_id_high=high,
            conflict_type=conflict_type,
            **kwargs,
        )

    @property
    def pair_key(self) -> str:
        return f"{self.owner_id}:{self.card_id_low}:{self.card_id_high}"

    def involves(self, card_id: str) -> bool:
        return card_id in (self.card_id_low, self.card_id_high)

    def other_card_id(self, card_id: str) -> str:
        """Return the card on the other end of the edge.

        Raises:
            ValueError: If the card is not part of this edge
        """
        if card_id == self.card_id_low:
            return self.card_id_high
        if card_id == self.card_id_high:
            return self.card_id_low
        raise ValueError(f"card {card_id} is not part of conflict {self.id}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "card_id_low": self.card_id_low,
            "card_id_high": self.card_id_high,
            "pair_key": self.pair_key,
            "conflict_type": self.conflict_type.value,
            "topic": self.topic,
            "similarity_score": self.similarity_score,
            "conflict_score": self.conflict_score,
            "description": self.description,
            "ai_analysis": self.ai_analysis,
            "acknowledged": self.acknowledged,
            "created_at": _format_time(self.created_at),
            "acknowledged_at": _format_time(self.acknowledged_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CardConflict:
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            card_id_low=data["card_id_low"],
            card_id_high=data["card_id_high"],
            conflict_type=CardConflictType(data["conflict_type"]),
            topic=data.get("topic") or "",
            similarity_score=float(data.get("similarity_score") or 0.0),
            conflict_score=float(data.get("conflict_score") or 0.0),
            description=data.get("description") or "",
            ai_analysis=data.get("ai_analysis") or "",
            acknowledged=bool(data.get("acknowledged", False)),
            created_at=_parse_time(data.get("created_at")) or utcnow(),
            acknowledged_at=_parse_time(data.get("acknowledged_at")),
        )

    def __repr__(self) -> str:
        return (
            f"CardConflict(pair=({self.card_id_low[:8]}, {self.card_id_high[:8]}), "
            f"type={self.conflict_type.value}, score={self.conflict_score:.2f})"
        )


@dataclass
class UserCognitiveProfile:
    """An owner's standing belief on one topic, synthesized from cards.

    Attributes:
        owner_id: ID of the owning user
        topic: Topic label, unique per owner
        belief_statement: Synthesized belief
        id: Unique identifier for the profile
        contributing_card_ids: Cards the belief was built from
        keywords: Comma-delimited union of the contributing cards' keywords
        belief_type: Strength bucket derived from the evidence count
        confidence: Confidence derived from the evidence count
        is_active: False once superseded by a rebuild
        created_at: Creation time
        updated_at: Time of the last rebuild touching this profile
    """

    owner_id: str
    topic: str
    belief_statement: str = ""
    id: str = field(default_factory=new_id)
    contributing_card_ids: list[str] = field(default_factory=list)
    keywords: str = ""
    belief_type: BeliefType = BeliefType.TENTATIVE
    confidence: float = 0.3
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def comparison_text(self) -> str:
        return " ".join(part for part in (self.topic, self.belief_statement) if part)

    @property
    def keyword_list(self) -> list[str]:
        return [k.strip() for k in (self.keywords or "").split(",") if k.strip()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "topic": self.topic,
            "belief_statement": self.belief_statement,
            "contributing_card_ids": list(self.contributing_card_ids),
            "keywords": self.keywords,
            "belief_type": self.belief_type.value,
            "confidence": self.confidence,
            "is_active": self.is_active,
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserCognitiveProfile:
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            topic=data["topic"],
            belief_statement=data.get("belief_statement") or "",
            contributing_card_ids=list(data.get("contributing_card_ids") or []),
            keywords=data.get("keywords") or "",
            belief_type=BeliefType(data.get("belief_type") or BeliefType.TENTATIVE.value),
            confidence=float(data.get("confidence") or 0.3),
            is_active=bool(data.get("is_active", True)),
            created_at=_parse_time(data.get("created_at")) or utcnow(),
            updated_at=_parse_time(data.get("updated_at")) or utcnow(),
        )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"UserCognitiveProfile(topic={self.topic!r}, cards={len(self.contributing_card_ids)}, {state})"


@dataclass
class CognitiveConflict:
    """A conflict edge between a card and one of the owner's profiles.

    ``user_belief`` and ``card_viewpoint`` are snapshots taken at detection
    time, so later rebuilds do not rewrite history.
    """

    owner_id: str
    card_id: str
    profile_id: str
    conflict_type: CognitiveConflictType
    id: str = field(default_factory=new_id)
    topic: str = ""
    user_belief: str = ""
    card_viewpoint: str = ""
    conflict_score: float = 0.0
    description: str = ""
    ai_analysis: str = ""
    acknowledged: bool = False
    dismissed: bool = False
    created_at: datetime = field(default_factory=utcnow)
    acknowledged_at: datetime | None = None
    dismissed_at: datetime | None = None

    @property
    def triple_key(self) -> str:
        return triple_key(self.owner_id, self.card_id, self.profile_id)

    @property
    def is_unresolved(self) -> bool:
        return not (self.acknowledged or self.dismissed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "card_id": self.card_id,
            "profile_id": self.profile_id,
            "triple_key": self.triple_key,
            "conflict_type": self.conflict_type.value,
            "topic": self.topic,
            "user_belief": self.user_belief,
            "card_viewpoint": self.card_viewpoint,
            "conflict_score": self.conflict_score,
            "description": self.description,
            "ai_analysis": self.ai_analysis,
            "acknowledged": self.acknowledged,
            "dismissed": self.dismissed,
            "created_at": _format_time(self.created_at),
            "acknowledged_at": _format_time(self.acknowledged_at),
            "dismissed_at": _format_time(self.dismissed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CognitiveConflict:
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            card_id=data["card_id"],
            profile_id=data["profile_id"],
            conflict_type=CognitiveConflictType(data["conflict_type"]),
            topic=data.get("topic") or "",
            user_belief=data.get("user_belief") or "",
            card_viewpoint=data.get("card_viewpoint") or "",
            conflict_score=float(data.get("conflict_score") or 0.0),
            description=data.get("description") or "",
            ai_analysis=data.get("ai_analysis") or "",
            acknowledged=bool(data.get("acknowledged", False)),
            dismissed=bool(data.get("dismissed", False)),
            created_at=_parse_time(data.get("created_at")) or utcnow(),
            acknowledged_at=_parse_time(data.get("acknowledged_at")),
            dismissed_at=_parse_time(data.get("dismissed_at")),
        )

    def __repr__(self) -> str:
        return (
            f"CognitiveConflict(card={self.card_id[:8]}, profile={self.profile_id[:8]}, "
            f"type={self.conflict_type.value}, score={self.conflict_score:.2f})"
        )
