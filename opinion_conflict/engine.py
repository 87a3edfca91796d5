"""High-level entry point wiring the detection components together."""

from __future__ import annotations

from typing import TYPE_CHECKING

from opinion_conflict.analyzer import create_analyzer
from opinion_conflict.candidates import ConflictCandidateSelector
from opinion_conflict.classifier import ConflictClassifier
from opinion_conflict.config import Settings
from opinion_conflict.detection import ConflictDetectionService
from opinion_conflict.logger import configure_logging, get_logger
from opinion_conflict.models import CardConflictType, CognitiveConflictType
from opinion_conflict.profiles import CognitiveProfileService
from opinion_conflict.similarity import TextSimilarity
from opinion_conflict.store import create_store
from opinion_conflict.tokenizer import Tokenizer

if TYPE_CHECKING:
    from opinion_conflict.analyzer import OpinionAnalyzer
    from opinion_conflict.models import Card
    from opinion_conflict.store import ConflictStore

logger = get_logger(__name__)


class ConflictEngine:
    """Main interface for conflict detection.

    Builds the store, similarity engine, candidate gate, classifier and the
    two detection services from one ``Settings`` object. Any component may be
    injected instead.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: ConflictStore | None = None,
        analyzer: OpinionAnalyzer | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Settings to use (read from the environment if None)
            store: Storage backend (built from settings if None)
            analyzer: Opinion analyzer (built from the provider setting if None)
        """
        self.settings = settings or Settings()
        configure_logging(self.settings.log_level)

        self.store = store or create_store(self.settings)
        self.analyzer = analyzer or create_analyzer(
            self.settings.provider,
            model=self.settings.model,
            timeout=self.settings.classify_timeout,
        )

        self.similarity = TextSimilarity(
            tokenizer=Tokenizer(ngram_size=self.settings.ngram_size),
            max_matrix_size=self.settings.max_profile_cards,
        )
        self.selector = ConflictCandidateSelector(
            store=self.store,
            similarity=self.similarity,
            gate_threshold=self.settings.gate_threshold,
            profile_gate_threshold=self.settings.profile_gate_threshold,
            max_candidates=self.settings.max_candidates,
            scan_limit=self.settings.scan_limit,
        )
        self.classifier = ConflictClassifier(
            analyzer=self.analyzer,
            timeout=self.settings.classify_timeout,
            min_conflict_score=self.settings.min_conflict_score,
        )
        self.detection = ConflictDetectionService(self.store, self.selector, self.classifier)
        self.profiles = CognitiveProfileService(
            store=self.store,
            similarity=self.similarity,
            selector=self.selector,
            classifier=self.classifier,
            cluster_threshold=self.settings.gate_threshold,
            max_profile_cards=self.settings.max_profile_cards,
        )

    def add_card(self, card: Card, detect: bool = True) -> dict:
        """Store a card and, optionally, run detection for it.

        Args:
            card: Card to store
            detect: Run ``on_card_saved`` after storing

        Returns:
            Detection summary (empty lists when ``detect`` is False)
        """
        self.store.add_card(card)
        if not detect:
            return {"card_id": card.id, "card_conflicts": [], "cognitive_conflicts": []}
        return self.on_card_saved(card.id)

    def on_card_saved(self, card_id: str) -> dict:
        """Run both detections for a freshly saved card.

        Never raises; failures are logged by the services and reported as
        no new conflicts.

        Args:
            card_id: The saved card

        Returns:
            Dictionary with the new card and cognitive conflicts
        """
        card_conflicts = self.detection.trigger_detection(card_id)

        card = self.store.get_card(card_id)
        cognitive_conflicts = (
            self.profiles.auto_detect_on_card_save(card.owner_id, card_id) if card else []
        )

        return {
            "card_id": card_id,
            "card_conflicts": card_conflicts,
            "cognitive_conflicts": cognitive_conflicts,
        }

    def get_stats(self, owner_id: str) -> dict:
        """Get conflict statistics for an owner.

        Returns:
            Dictionary with counts by type and resolution state
        """
        card_conflicts = self.store.list_card_conflicts(owner_id)
        cognitive_conflicts = self.store.list_cognitive_conflicts(owner_id)

        return {
            "total_cards": len(self.store.list_cards(owner_id)),
            "active_profiles": len(self.profiles.get_active_profiles(owner_id)),
            "card_conflicts": len(card_conflicts),
            "unresolved_card_conflicts": self.detection.get_unresolved_conflict_count(owner_id),
            "card_conflicts_by_type": {
                t.value: sum(1 for c in card_conflicts if c.conflict_type == t)
                for t in CardConflictType
            },
            "cognitive_conflicts": len(cognitive_conflicts),
            "unresolved_cognitive_conflicts": self.profiles.get_unresolved_conflict_count(owner_id),
            "cognitive_conflicts_by_type": {
                t.value: sum(1 for c in cognitive_conflicts if c.conflict_type == t)
                for t in CognitiveConflictType
            },
        }

    def close(self) -> None:
        self.classifier.close()
