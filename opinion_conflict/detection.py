"""Card-to-card conflict detection and the queries over its edges."""

from __future__ import annotations

from typing import TYPE_CHECKING

from opinion_conflict.candidates import DetectionMode
from opinion_conflict.errors import ConstraintViolation, NotFoundError
from opinion_conflict.logger import get_logger
from opinion_conflict.models import CardConflict, canonical_pair, utcnow

if TYPE_CHECKING:
    from opinion_conflict.candidates import ConflictCandidateSelector
    from opinion_conflict.classifier import ConflictClassifier
    from opinion_conflict.store import ConflictStore

logger = get_logger(__name__)


class ConflictDetectionService:
    """Detects disagreements between cards of the same owner.

    Each unordered pair of cards holds at most one edge. Detection is safe to
    run repeatedly and concurrently: a pair another run already recorded is
    skipped, never duplicated.
    """

    def __init__(
        self,
        store: ConflictStore,
        selector: ConflictCandidateSelector,
        classifier: ConflictClassifier,
    ) -> None:
        self.store = store
        self.selector = selector
        self.classifier = classifier

    def detect_conflicts(self, card_id: str, skip_known: bool = True) -> list[CardConflict]:
        """Compare a card against its same-topic peers.

        Args:
            card_id: The focal card
            skip_known: Skip peers already linked to the card

        Returns:
            Edges created by this call (possibly empty)

        Raises:
            NotFoundError: If the card does not exist
        """
        card = self.store.get_card(card_id)
        if card is None:
            raise NotFoundError(f"card {card_id} not found")

        candidates = self.selector.select(card, DetectionMode.PEER, skip_known=skip_known)
        created: list[CardConflict] = []
        seen: set[tuple[str, str]] = set()

        for candidate in candidates:
            peer = candidate.target
            pair = canonical_pair(card.id, peer.id)
            if pair in seen:
                continue
            seen.add(pair)

            result = self.classifier.classify_pair(peer, card)
            if result is None:
                continue

            if self.store.find_card_conflict(card.owner_id, card.id, peer.id) is not None:
                continue

            conflict = CardConflict.between(
                card.owner_id,
                card.id,
                peer.id,
                result.conflict_type,
                topic=result.topic,
                similarity_score=candidate.similarity,
                conflict_score=result.conflict_score,
                description=result.description,
                ai_analysis=result.ai_analysis,
            )
            try:
                created.append(self.store.insert_card_conflict_if_absent(conflict))
            except ConstraintViolation:
                logger.debug("Conflict %s was recorded concurrently, skipping", conflict.pair_key)

        logger.info(
            "Card %s: %d candidates, %d new conflicts", card.id, len(candidates), len(created)
        )
        return created

    def trigger_detection(self, card_id: str) -> list[CardConflict]:
        """Run detection as a side effect of saving a card.

        Never raises: a failure is logged and reported as no new conflicts.
        """
        try:
            return self.detect_conflicts(card_id)
        except Exception as e:
            logger.error("Conflict detection failed for card %s: %s", card_id, e)
            return []

    def get_unresolved_conflicts(self, owner_id: str) -> list[CardConflict]:
        return self.store.list_card_conflicts(owner_id, acknowledged=False)

    def get_conflicts_by_card(self, card_id: str, owner_id: str) -> list[CardConflict]:
        return self.store.list_card_conflicts(owner_id, card_id=card_id)

    def has_conflict_between(self, card_id_a: str, card_id_b: str, owner_id: str) -> bool:
        if card_id_a == card_id_b:
            return False
        return self.store.find_card_conflict(owner_id, card_id_a, card_id_b) is not None

    def acknowledge_conflict(self, conflict_id: str, owner_id: str) -> CardConflict:
        """Mark an edge as seen by its owner.

        Acknowledging twice is a no-op that keeps the first timestamp.

        Raises:
            NotFoundError: If the edge does not exist or belongs to another owner
        """
        conflict = self.store.get_card_conflict(conflict_id)
        if conflict is None or conflict.owner_id != owner_id:
            raise NotFoundError(f"conflict {conflict_id} not found")

        if not conflict.acknowledged:
            conflict.acknowledged = True
            conflict.acknowledged_at = utcnow()
            self.store.update_card_conflict(conflict)
        return conflict

    def get_unresolved_conflict_count(self, owner_id: str) -> int:
        return self.store.count_card_conflicts(owner_id, acknowledged=False)
