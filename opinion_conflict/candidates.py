"""Candidate selection: the cheap topic gate in front of the classifier.

Only candidates that clear the lexical gate are ever shown to the
opinion analyzer, so every analyzer call is spent on a same-topic pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from opinion_conflict.logger import get_logger
from opinion_conflict.models import Card, UserCognitiveProfile

if TYPE_CHECKING:
    from opinion_conflict.similarity import TextSimilarity
    from opinion_conflict.store import ConflictStore

logger = get_logger(__name__)

# Ranking weights for peer cards: shared tags count more than shared words
KEYWORD_WEIGHT = 0.6
COSINE_WEIGHT = 0.4


class DetectionMode(str, Enum):
    PEER = "peer"
    PROFILE = "profile"


@dataclass
class Candidate:
    """A gated comparison target for a focal card.

    Attributes:
        target: The peer card or the profile
        similarity: TF-IDF cosine similarity to the focal card
        keyword_similarity: Jaccard similarity of keyword sets
    """

    target: Union[Card, UserCognitiveProfile]
    similarity: float
    keyword_similarity: float = 0.0

    @property
    def rank_score(self) -> float:
        return KEYWORD_WEIGHT * self.keyword_similarity + COSINE_WEIGHT * self.similarity

    @property
    def target_id(self) -> str:
        return self.target.id


class ConflictCandidateSelector:
    """Finds the peers and profiles a card is worth classifying against."""

    def __init__(
        self,
        store: ConflictStore,
        similarity: TextSimilarity,
        gate_threshold: float = 0.2,
        profile_gate_threshold: float = 0.2,
        max_candidates: int = 10,
        scan_limit: int = 100,
    ) -> None:
        """Initialize the selector.

        Args:
            store: Source of cards, profiles and known conflicts
            similarity: Similarity engine for the gate
            gate_threshold: Minimum cosine for a peer card
            profile_gate_threshold: Minimum cosine for a profile
            max_candidates: Cap on candidates returned per call
            scan_limit: How many of the owner's newest cards are scanned
        """
        self.store = store
        self.similarity = similarity
        self.gate_threshold = gate_threshold
        self.profile_gate_threshold = profile_gate_threshold
        self.max_candidates = max_candidates
        self.scan_limit = scan_limit

    def select_peer_cards(self, card: Card, skip_known: bool = True) -> list[Candidate]:
        """Same-owner cards on the focal card's topic.

        Args:
            card: The focal card
            skip_known: Drop peers already linked to the card by a conflict edge

        Returns:
            Candidates, best first, at most ``max_candidates``
        """
        peers = self.store.list_cards(card.owner_id, limit=self.scan_limit + 1)
        text = card.comparison_text

        candidates = []
        for peer in peers:
            if peer.id == card.id:
                continue
            similarity = self.similarity.cosine_similarity(text, peer.comparison_text)
            if similarity < self.gate_threshold:
                continue
            if skip_known and self.store.find_card_conflict(card.owner_id, card.id, peer.id):
                continue
            candidates.append(
                Candidate(
                    target=peer,
                    similarity=similarity,
                    keyword_similarity=self.similarity.jaccard_similarity(card.keywords, peer.keywords),
                )
            )

        candidates.sort(key=lambda c: c.rank_score, reverse=True)
        logger.debug(
            "Peer gate for %s: %d scanned, %d passed", card.id, len(peers), len(candidates)
        )
        return candidates[: self.max_candidates]

    def select_profiles(self, card: Card, skip_known: bool = True) -> list[Candidate]:
        """Active profiles of the owner on the focal card's topic.

        Profiles built from the card itself are never candidates: a card
        cannot disagree with a belief it is evidence for.
        """
        profiles = self.store.list_profiles(card.owner_id, active_only=True)
        text = card.comparison_text

        candidates = []
        for profile in profiles:
            if card.id in profile.contributing_card_ids:
                continue
            similarity = self.similarity.cosine_similarity(text, profile.comparison_text)
            if similarity < self.profile_gate_threshold:
                continue
            if skip_known and self.store.find_cognitive_conflict(card.owner_id, card.id, profile.id):
                continue
            keyword_similarity = (
                self.similarity.jaccard_similarity(card.keywords, profile.keywords)
                if profile.keywords
                else 0.0
            )
            candidates.append(
                Candidate(target=profile, similarity=similarity, keyword_similarity=keyword_similarity)
            )

        candidates.sort(key=lambda c: c.similarity, reverse=True)
        return candidates[: self.max_candidates]

    def select(
        self,
        card: Card,
        mode: DetectionMode = DetectionMode.PEER,
        skip_known: bool = True,
    ) -> list[Candidate]:
        if mode == DetectionMode.PROFILE:
            return self.select_profiles(card, skip_known=skip_known)
        return self.select_peer_cards(card, skip_known=skip_known)

    def __repr__(self) -> str:
        return (
            f"ConflictCandidateSelector(gate={self.gate_threshold}, "
            f"profile_gate={self.profile_gate_threshold}, max={self.max_candidates})"
        )
