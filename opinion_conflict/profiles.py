"""Cognitive profiles: an owner's standing beliefs, and cards that conflict with them.

A profile is rebuilt from the owner's cards by grouping topic-related cards
(transitively) and taking the most central card of each group as the
belief. New cards are then checked against the profiles they do not
themselves support.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from opinion_conflict.candidates import DetectionMode
from opinion_conflict.clustering import DisjointSet
from opinion_conflict.errors import ConstraintViolation, NotFoundError
from opinion_conflict.logger import get_logger
from opinion_conflict.models import (
    BeliefType,
    CognitiveConflict,
    UserCognitiveProfile,
    belief_confidence,
    utcnow,
)

if TYPE_CHECKING:
    from opinion_conflict.candidates import ConflictCandidateSelector
    from opinion_conflict.classifier import ConflictClassifier
    from opinion_conflict.models import Card
    from opinion_conflict.similarity import TextSimilarity
    from opinion_conflict.store import ConflictStore

logger = get_logger(__name__)


class CognitiveProfileService:
    """Builds profiles and detects card-versus-profile conflicts."""

    def __init__(
        self,
        store: ConflictStore,
        similarity: TextSimilarity,
        selector: ConflictCandidateSelector,
        classifier: ConflictClassifier,
        cluster_threshold: float = 0.2,
        max_profile_cards: int = 200,
    ) -> None:
        """Initialize the profile service.

        Args:
            store: Persistence for cards, profiles and edges
            similarity: Similarity engine used for clustering
            selector: Gate in front of the classifier
            classifier: Conflict classifier
            cluster_threshold: Minimum cosine for two cards to share a topic
            max_profile_cards: How many of the newest cards a rebuild considers
        """
        self.store = store
        self.similarity = similarity
        self.selector = selector
        self.classifier = classifier
        self.cluster_threshold = cluster_threshold
        self.max_profile_cards = max_profile_cards

    # Profile building

    def rebuild_profiles(self, owner_id: str) -> list[UserCognitiveProfile]:
        """Regroup the owner's cards into one profile per topic.

        Existing profiles are refreshed in place when their topic survives,
        compared without regard to case, and deactivated when it does not.
        Clustering compares every pair of the newest ``max_profile_cards``
        cards, so a rebuild costs N*(N-1)/2 cosine calls.

        Args:
            owner_id: Owner whose profiles are rebuilt

        Returns:
            The active profiles after the rebuild
        """
        cards = self.store.list_cards(owner_id, limit=self.max_profile_cards)
        matrix = self.similarity.similarity_matrix([c.comparison_text for c in cards])

        clusters = DisjointSet(range(len(cards)))
        for i in range(len(cards)):
            for j in range(i + 1, len(cards)):
                if matrix[i, j] >= self.cluster_threshold:
                    clusters.union(i, j)

        # Larger groups pick their topic first; ties keep newest-first order
        groups = sorted(clusters.groups(), key=len, reverse=True)

        existing = self.store.list_profiles(owner_id, active_only=False)
        taken: set[str] = set()
        profiles = []
        for members in groups:
            group_cards = [cards[i] for i in members]
            topic = self._choose_topic(group_cards, taken)
            taken.add(topic.casefold())

            medoid = max(members, key=lambda i: sum(matrix[i, j] for j in members))
            profiles.append(self._upsert_profile(owner_id, topic, cards[medoid], group_cards, existing))

        kept = {profile.id for profile in profiles}
        for profile in existing:
            if profile.is_active and profile.id not in kept:
                logger.info("Deactivating profile %r of %s", profile.topic, owner_id)
                self.store.deactivate_profile(profile.id)

        logger.info("Rebuilt %d profiles from %d cards for %s", len(profiles), len(cards), owner_id)
        return profiles

    def _choose_topic(self, cards: list[Card], taken: set[str]) -> str:
        """Pick an untaken label for a group of cards.

        Preference: the group's most frequent keyword, then its topic hints,
        then keywords extracted from the text, then a numbered label.
        """
        keyword_counts = Counter(k for card in cards for k in card.keyword_list)
        hint_counts = Counter(card.topic_hint.strip() for card in cards if card.topic_hint and card.topic_hint.strip())
        extracted = self.similarity.extract_keywords(" ".join(c.comparison_text for c in cards))

        options = [k for k, _ in sorted(keyword_counts.items(), key=lambda kv: kv[1], reverse=True)]
        options += [h for h, _ in sorted(hint_counts.items(), key=lambda kv: kv[1], reverse=True)]
        options += extracted

        for option in options:
            if option.casefold() not in taken:
                return option

        base = options[0] if options else "topic"
        n = 2
        while f"{base} ({n})".casefold() in taken:
            n += 1
        return f"{base} ({n})"

    @staticmethod
    def _match_existing(
        topic: str,
        existing: list[UserCognitiveProfile],
    ) -> UserCognitiveProfile | None:
        """Find the stored profile a topic label refers to, ignoring case.

        An exact match wins, then an active one, so relabelling never
        collides with another stored topic.
        """
        matches = [p for p in existing if p.topic.casefold() == topic.casefold()]
        if not matches:
            return None
        return min(matches, key=lambda p: (p.topic != topic, not p.is_active))

    def _upsert_profile(
        self,
        owner_id: str,
        topic: str,
        medoid: Card,
        cards: list[Card],
        existing: list[UserCognitiveProfile],
    ) -> UserCognitiveProfile:
        profile = self._match_existing(topic, existing)
        if profile is None:
            profile = UserCognitiveProfile(owner_id=owner_id, topic=topic)
        profile.topic = topic
        profile.belief_statement = medoid.viewpoint_summary or medoid.title
        self._fill_evidence(profile, cards)

        self.store.save_profile(profile)
        return profile

    @staticmethod
    def _fill_evidence(profile: UserCognitiveProfile, cards: list[Card]) -> None:
        keywords: dict[str, str] = {}
        for card in cards:
            for keyword in card.keyword_list:
                keywords.setdefault(keyword.casefold(), keyword)

        profile.contributing_card_ids = [card.id for card in cards]
        profile.keywords = ", ".join(keywords.values())
        profile.belief_type = BeliefType.for_evidence(len(cards))
        profile.confidence = belief_confidence(len(cards))
        profile.is_active = True
        profile.updated_at = utcnow()

    def update_profiles_with_card(self, owner_id: str, card: Card) -> list[UserCognitiveProfile]:
        """Fold one new card into the owner's profiles without regrouping.

        The card is compared with the members of each active profile, one
        cosine per member. It joins the single profile it relates to, or
        starts a tentative profile of its own. A full rebuild runs instead
        when the owner has no profiles yet or the card links two of them.

        Args:
            owner_id: Owner of the card
            card: The newly saved card

        Returns:
            The profiles created or changed (empty if the card is already
            part of a profile)
        """
        profiles = self.store.list_profiles(owner_id, active_only=True)
        if not profiles:
            return self.rebuild_profiles(owner_id)
        if any(card.id in p.contributing_card_ids for p in profiles):
            logger.debug("Card %s already backs a profile of %s", card.id, owner_id)
            return []

        related = []
        for profile in profiles:
            members = [self.store.get_card(card_id) for card_id in profile.contributing_card_ids]
            members = [m for m in members if m is not None]
            if any(
                self.similarity.is_topic_related(card.comparison_text, m.comparison_text, self.cluster_threshold)
                for m in members
            ):
                related.append((profile, members))

        if len(related) > 1:
            logger.info("Card %s links %d profiles of %s, rebuilding", card.id, len(related), owner_id)
            return self.rebuild_profiles(owner_id)

        if related:
            profile, members = related[0]
            self._fill_evidence(profile, [card] + members)
            self.store.save_profile(profile)
            logger.info("Added card %s to profile %r of %s", card.id, profile.topic, owner_id)
            return [profile]

        existing = self.store.list_profiles(owner_id, active_only=False)
        topic = self._choose_topic([card], {p.topic.casefold() for p in profiles})
        profile = self._upsert_profile(owner_id, topic, card, [card], existing)
        logger.info("Started profile %r for %s from card %s", topic, owner_id, card.id)
        return [profile]

    def get_active_profiles(self, owner_id: str) -> list[UserCognitiveProfile]:
        return self.store.list_profiles(owner_id, active_only=True)

    def get_profile_by_topic(self, owner_id: str, topic: str) -> UserCognitiveProfile | None:
        return self.store.get_profile_by_topic(owner_id, topic)

    # Conflict detection

    def detect_conflicts(self, owner_id: str, card: Card, skip_known: bool = True) -> list[CognitiveConflict]:
        """Compare a card against the owner's active profiles.

        Args:
            owner_id: Owner of the card
            card: The focal card
            skip_known: Skip profiles already linked to the card

        Returns:
            Edges created by this call (possibly empty)

        Raises:
            NotFoundError: If the card belongs to another owner
        """
        if card.owner_id != owner_id:
            raise NotFoundError(f"card {card.id} not found")

        candidates = self.selector.select(card, DetectionMode.PROFILE, skip_known=skip_known)
        created: list[CognitiveConflict] = []
        seen: set[str] = set()

        for candidate in candidates:
            profile = candidate.target
            if profile.id in seen:
                continue
            seen.add(profile.id)

            result = self.classifier.classify_profile(profile, card)
            if result is None:
                continue

            if self.store.find_cognitive_conflict(owner_id, card.id, profile.id) is not None:
                continue

            conflict = CognitiveConflict(
                owner_id=owner_id,
                card_id=card.id,
                profile_id=profile.id,
                conflict_type=result.conflict_type,
                topic=result.topic or profile.topic,
                user_belief=profile.belief_statement,
                card_viewpoint=card.viewpoint_summary,
                conflict_score=result.conflict_score,
                description=result.description,
                ai_analysis=result.ai_analysis,
            )
            try:
                created.append(self.store.insert_cognitive_conflict_if_absent(conflict))
            except ConstraintViolation:
                logger.debug("Conflict %s was recorded concurrently, skipping", conflict.triple_key)

        logger.info(
            "Card %s vs profiles: %d candidates, %d new conflicts",
            card.id, len(candidates), len(created),
        )
        return created

    def auto_detect_on_card_save(self, owner_id: str, card_id: str) -> list[CognitiveConflict]:
        """Check a saved card against the profiles, then fold it into them.

        Never raises: a failure is logged and reported as no new conflicts.
        """
        try:
            card = self.store.get_card(card_id)
            if card is None or card.owner_id != owner_id:
                raise NotFoundError(f"card {card_id} not found")
            conflicts = self.detect_conflicts(owner_id, card)
            self.update_profiles_with_card(owner_id, card)
            return conflicts
        except Exception as e:
            logger.error("Profile conflict detection failed for card %s: %s", card_id, e)
            return []

    # Edge queries and resolution

    def _owned_conflict(self, conflict_id: str, owner_id: str) -> CognitiveConflict:
        conflict = self.store.get_cognitive_conflict(conflict_id)
        if conflict is None or conflict.owner_id != owner_id:
            raise NotFoundError(f"conflict {conflict_id} not found")
        return conflict

    def acknowledge_conflict(self, conflict_id: str, owner_id: str) -> CognitiveConflict:
        """Mark an edge as seen. Idempotent; keeps the first timestamp."""
        conflict = self._owned_conflict(conflict_id, owner_id)
        if not conflict.acknowledged:
            conflict.acknowledged = True
            conflict.acknowledged_at = utcnow()
            self.store.update_cognitive_conflict(conflict)
        return conflict

    def dismiss_conflict(self, conflict_id: str, owner_id: str) -> CognitiveConflict:
        """Mark an edge as not worth attention. Independent of acknowledgement."""
        conflict = self._owned_conflict(conflict_id, owner_id)
        if not conflict.dismissed:
            conflict.dismissed = True
            conflict.dismissed_at = utcnow()
            self.store.update_cognitive_conflict(conflict)
        return conflict

    def get_unresolved_conflicts(self, owner_id: str) -> list[CognitiveConflict]:
        return self.store.list_cognitive_conflicts(owner_id, acknowledged=False, dismissed=False)

    def get_conflicts_by_card(self, card_id: str, owner_id: str) -> list[CognitiveConflict]:
        return self.store.list_cognitive_conflicts(owner_id, card_id=card_id)

    def get_unresolved_conflict_count(self, owner_id: str) -> int:
        return self.store.count_cognitive_conflicts(owner_id, acknowledged=False, dismissed=False)
