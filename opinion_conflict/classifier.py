"""Turns analyzer verdicts into typed, scored conflicts.

The analyzer is an external, possibly slow service. Each call runs on a
worker thread with a deadline; a timeout or error counts as "no conflict"
so a detection run always completes.
"""

from __future__ import annotations

import math
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from pydantic import ValidationError

from opinion_conflict.analyzer import AnalysisMode, ConflictVerdict
from opinion_conflict.logger import get_logger
from opinion_conflict.models import CardConflictType, CognitiveConflictType

if TYPE_CHECKING:
    from opinion_conflict.analyzer import OpinionAnalyzer
    from opinion_conflict.models import Card, UserCognitiveProfile

logger = get_logger(__name__)

# Verdict labels that mean "no conflict"
NO_CONFLICT_LABELS = {"NONE", "NO_CONFLICT", "NO", "CONSISTENT", "UNRELATED", ""}

CARD_TYPE_ALIASES = {
    "OPPOSING": CardConflictType.CONTRADICTORY,
    "OPPOSITE": CardConflictType.CONTRADICTORY,
    "CONTRADICTION": CardConflictType.CONTRADICTORY,
    "SUPPLEMENTARY": CardConflictType.COMPLEMENTARY,
    "CHALLENGING": CardConflictType.DIFFERENT_PERSPECTIVE,
    "OVERLAP": CardConflictType.TOPIC_OVERLAP,
}

PROFILE_TYPE_ALIASES = {
    "OPPOSING": CognitiveConflictType.CONTRADICTORY,
    "OPPOSITE": CognitiveConflictType.CONTRADICTORY,
    "CONTRADICTION": CognitiveConflictType.CONTRADICTORY,
    "SUPPLEMENTARY": CognitiveConflictType.EXTENDING,
    "COMPLEMENTARY": CognitiveConflictType.EXTENDING,
    "CHALLENGE": CognitiveConflictType.CHALLENGING,
}

ConflictType = Union[CardConflictType, CognitiveConflictType]


@dataclass
class ClassifiedConflict:
    """A verdict that survived normalization and the score floor."""

    conflict_type: ConflictType
    conflict_score: float
    topic: str = ""
    description: str = ""
    ai_analysis: str = ""


def _label(raw: str) -> str:
    return re.sub(r"[\s\-]+", "_", raw.strip()).upper()


def normalize_type(raw: str, mode: AnalysisMode) -> ConflictType | None:
    """Map a free-form type label into the taxonomy of a mode.

    Args:
        raw: Type label as returned by the analyzer
        mode: Card pair or card against profile

    Returns:
        The matching type, DIFFERENT_PERSPECTIVE for an unknown label,
        or None when the label means no conflict
    """
    label = _label(raw or "")
    if label in NO_CONFLICT_LABELS:
        return None

    if mode == AnalysisMode.CARD_VS_PROFILE:
        enum, aliases = CognitiveConflictType, PROFILE_TYPE_ALIASES
    else:
        enum, aliases = CardConflictType, CARD_TYPE_ALIASES

    if label in enum.__members__:
        return enum[label]
    if label in aliases:
        return aliases[label]
    logger.debug("Unknown conflict type %r, treating as a different perspective", raw)
    return enum.DIFFERENT_PERSPECTIVE


def clamp_score(value: float) -> float:
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


class ConflictClassifier:
    """Asks the analyzer about a gated pair and normalizes the answer."""

    def __init__(
        self,
        analyzer: OpinionAnalyzer,
        timeout: float = 30.0,
        min_conflict_score: float = 0.6,
        max_workers: int = 4,
    ) -> None:
        """Initialize the classifier.

        Args:
            analyzer: The opinion-analysis collaborator
            timeout: Seconds to wait for one verdict
            min_conflict_score: Verdicts scoring below this are dropped
            max_workers: Size of the worker pool running analyzer calls
        """
        self.analyzer = analyzer
        self.timeout = timeout
        self.min_conflict_score = min_conflict_score
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="conflict-classifier"
        )

    def classify_pair(self, card_a: Card, card_b: Card) -> ClassifiedConflict | None:
        """Classify two cards of the same owner.

        Args:
            card_a: The existing peer card
            card_b: The focal card

        Returns:
            The conflict, or None for no conflict
        """
        return self._classify(
            card_a.comparison_text, card_b.comparison_text, AnalysisMode.CARD_VS_CARD
        )

    def classify_profile(self, profile: UserCognitiveProfile, card: Card) -> ClassifiedConflict | None:
        """Classify a card against one of the owner's profiles."""
        return self._classify(
            profile.comparison_text, card.comparison_text, AnalysisMode.CARD_VS_PROFILE
        )

    def _ask(self, text_a: str, text_b: str, mode: AnalysisMode) -> ConflictVerdict | None:
        future = self._executor.submit(self.analyzer.analyze, text_a, text_b, mode)
        try:
            return ConflictVerdict.model_validate(future.result(timeout=self.timeout))
        except FuturesTimeoutError:
            future.cancel()
            logger.warning("Opinion analysis timed out after %.1fs (%s)", self.timeout, mode.value)
        except ValidationError as e:
            logger.warning("Opinion analysis returned a malformed verdict (%s): %s", mode.value, e)
        except Exception as e:
            logger.warning("Opinion analysis failed (%s): %s", mode.value, e)
        return None

    def _classify(self, text_a: str, text_b: str, mode: AnalysisMode) -> ClassifiedConflict | None:
        verdict = self._ask(text_a, text_b, mode)
        if verdict is None or not verdict.has_conflict:
            return None

        conflict_type = normalize_type(verdict.conflict_type, mode)
        if conflict_type is None:
            return None

        score = clamp_score(verdict.conflict_score)
        if score < self.min_conflict_score:
            logger.debug(
                "Dropping %s verdict scored %.2f (< %.2f)",
                conflict_type.value, score, self.min_conflict_score,
            )
            return None

        return ClassifiedConflict(
            conflict_type=conflict_type,
            conflict_score=round(score, 4),
            topic=verdict.topic,
            description=verdict.description,
            ai_analysis=verdict.rationale,
        )

    def close(self) -> None:
        """Release the worker pool without waiting on abandoned calls."""
        self._executor.shutdown(wait=False)

    def __repr__(self) -> str:
        return (
            f"ConflictClassifier(analyzer={self.analyzer!r}, timeout={self.timeout}, "
            f"min_score={self.min_conflict_score})"
        )
