from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from relevance_engine.api.deps import (
    get_aggregator,
    get_feed_service,
    get_like_service,
    get_repository,
)
from relevance_engine.core.errors import ProviderError
from relevance_engine.main import app
from relevance_engine.schemas.analysis_result import AnalysisRecord
from relevance_engine.schemas.social import Post, User
from relevance_engine.services.aggregator import AnalysisAggregator
from relevance_engine.services.feed import FeedService
from relevance_engine.services.preferences import LikeService, PreferenceStore
from relevance_engine.services.providers import (
    BaseProvider,
    EmotionPayload,
    LabelScore,
    ProviderKind,
    SentimentPayload,
    StructuredPayload,
    ToxicityPayload,
)
from relevance_engine.services.repository import InMemoryRepository

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeProvider(BaseProvider):
    def __init__(self, kind, payload=None, error=None):
        self.kind = kind
        self.payload = payload
        self.error = error
        self.calls = []

    def analyze(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.payload


def sentiment_payload(neg=0.1, neu=0.2, pos=0.7):
    return SentimentPayload(scores=[
        LabelScore("LABEL_0", neg),
        LabelScore("LABEL_1", neu),
        LabelScore("LABEL_2", pos),
    ])


def emotion_payload():
    return EmotionPayload(scores=[
        LabelScore("Joy", 0.876),
        LabelScore("Surprise", 0.45),
        LabelScore("Anger", 0.1),
    ])


def toxicity_payload(offensive=0.1):
    return ToxicityPayload(scores=[
        LabelScore("non-offensive", round(1 - offensive, 2)),
        LabelScore("offensive", offensive),
    ])


def structured_payload(topics=("AI", "Go"), category="Technology"):
    return StructuredPayload(
        topics=list(topics),
        summary="A post about AI written in Go.",
        category=category,
        factuality="support",
    )


@pytest.fixture
def make_providers():
    """Build one fake provider per kind; pass `failing` kinds or payload overrides."""

    def _make(failing=(), **payloads):
        defaults = {
            ProviderKind.SENTIMENT: sentiment_payload(),
            ProviderKind.EMOTION: emotion_payload(),
            ProviderKind.TOXICITY: toxicity_payload(),
            ProviderKind.STRUCTURED: structured_payload(),
        }
        for name, payload in payloads.items():
            defaults[ProviderKind(name)] = payload
        providers = {}
        for kind, payload in defaults.items():
            if kind in failing:
                error = ProviderError(kind.value, ProviderError.UNREACHABLE, "timed out")
                providers[kind] = FakeProvider(kind, error=error)
            else:
                providers[kind] = FakeProvider(kind, payload=payload)
        return providers

    return _make


@pytest.fixture
def payloads():
    return {
        "sentiment": sentiment_payload,
        "emotion": emotion_payload,
        "toxicity": toxicity_payload,
        "structured": structured_payload,
    }


@pytest.fixture
def repository():
    repo = InMemoryRepository()
    for user_id in ("alice", "bob", "carol"):
        repo.save_user(User(id=user_id, username=user_id))
    return repo


@pytest.fixture
def make_post(repository):
    counter = {"n": 0}

    def _make(author_id="bob", age=timedelta(0), category="Technology", topics=("AI", "Go"),
              toxic=False, content="hello world", save=True):
        counter["n"] += 1
        analysis = AnalysisRecord(category=category, topics=list(topics))
        analysis.toxicity.detected = toxic
        post = Post(
            id=f"p{counter['n']}",
            author_id=author_id,
            content=content,
            created_at=NOW - age,
            analysis=analysis,
        )
        if save:
            repository.save_post(post)
        return post

    return _make


@pytest.fixture
def like_service(repository):
    return LikeService(repository, PreferenceStore(repository))


@pytest.fixture
def client(repository, make_providers, like_service):
    aggregator = AnalysisAggregator(repository, providers=make_providers())
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    app.dependency_overrides[get_like_service] = lambda: like_service
    app.dependency_overrides[get_feed_service] = lambda: FeedService(repository)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return NOW
