"""Shared fixtures for the conflict engine tests."""

import itertools
import time
from datetime import datetime, timedelta, timezone

import pytest

from opinion_conflict.analyzer import AnalysisMode, ConflictVerdict, OpinionAnalyzer
from opinion_conflict.config import Settings
from opinion_conflict.engine import ConflictEngine
from opinion_conflict.models import Card
from opinion_conflict.store import InMemoryConflictStore

OWNER = "user-1"


class StubAnalyzer(OpinionAnalyzer):
    """Returns a fixed verdict and records every call."""

    def __init__(self, verdict=None, error=None, delay=0.0):
        self.verdict = verdict or ConflictVerdict(
            has_conflict=True,
            conflict_type="CONTRADICTORY",
            conflict_score=0.82,
            topic="remote work",
            description="Opposing claims about remote work",
            rationale="One card praises remote work, the other criticizes it.",
        )
        self.error = error
        self.delay = delay
        self.calls = []

    def analyze(self, text_a, text_b, mode=AnalysisMode.CARD_VS_CARD):
        self.calls.append((text_a, text_b, mode))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.verdict


@pytest.fixture
def store():
    return InMemoryConflictStore()


@pytest.fixture
def stub_analyzer():
    return StubAnalyzer()


@pytest.fixture
def settings():
    return Settings(store_backend="memory", provider="heuristic")


@pytest.fixture
def engine(settings, store, stub_analyzer):
    engine = ConflictEngine(settings=settings, store=store, analyzer=stub_analyzer)
    yield engine
    engine.close()


@pytest.fixture
def make_card(store):
    """Factory for stored cards with strictly increasing creation times."""
    counter = itertools.count(1)
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _make(title, viewpoint, keywords="", owner_id=OWNER, topic_hint=None, save=True):
        n = next(counter)
        created = base + timedelta(minutes=n)
        card = Card(
            id=f"card-{n:03d}",
            owner_id=owner_id,
            title=title,
            viewpoint_summary=viewpoint,
            keywords=keywords,
            topic_hint=topic_hint,
            created_at=created,
            updated_at=created,
        )
        if save:
            store.add_card(card)
        return card

    return _make


@pytest.fixture
def remote_cards(make_card):
    """Two same-topic cards that disagree."""
    c1 = make_card("Remote work", "remote work increases productivity", "remote work, productivity")
    c2 = make_card("Remote work", "remote work harms team cohesion", "remote work, culture")
    return c1, c2


@pytest.fixture
def make_analyzer():
    """Factory for stub analyzers with a custom verdict, error or delay."""
    return StubAnalyzer
