"""
Personalized feed scoring and ranking.

score_post is a pure function of its inputs; rank_posts orders a caller
supplied candidate set without filtering it. FeedService gathers the
viewer's follow set, preferences and candidates from storage.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AbstractSet, Iterable, List, Literal, Optional

from relevance_engine.core.config import Settings, settings as default_settings
from relevance_engine.schemas.social import Post, PreferenceProfile, RankedFeedEntry
from relevance_engine.services.repository import BaseRepository

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0

FeedScope = Literal["network", "global"]


@dataclass(frozen=True)
class ScoreWeights:
    follow_bonus: float = 100.0
    category_weight: float = 10.0
    topic_weight: float = 5.0
    recency_max: float = 5.0
    recency_decay_days: float = 5.0
    toxicity_penalty: float = 50.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoreWeights":
        return cls(
            follow_bonus=settings.score_follow_bonus,
            category_weight=settings.score_category_weight,
            topic_weight=settings.score_topic_weight,
            recency_max=settings.score_recency_max,
            recency_decay_days=settings.score_recency_decay_days,
            toxicity_penalty=settings.score_toxicity_penalty,
        )


DEFAULT_WEIGHTS = ScoreWeights()


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def age_in_days(created_at: datetime, now: datetime) -> float:
    """Post age in days; posts stamped in the future count as brand new."""
    age_seconds = (_as_utc(now) - _as_utc(created_at)).total_seconds()
    return max(0.0, age_seconds / SECONDS_PER_DAY)


def recency_bonus(created_at: datetime, now: datetime, weights: ScoreWeights = DEFAULT_WEIGHTS) -> float:
    """Linear decay from recency_max to 0 over recency_max * recency_decay_days days."""
    return max(0.0, weights.recency_max - age_in_days(created_at, now) / weights.recency_decay_days)


def score_post(
    post: Post,
    viewer_id: str,
    follow_set: AbstractSet[str],
    preferences: PreferenceProfile,
    now: datetime,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> float:
    """
    Relevance of `post` for `viewer_id` at time `now`.

    Sum of follow affinity (own posts count as followed), category and topic
    affinity from the viewer's liked counters, a recency bonus, and a penalty
    for toxic content. Not clamped; scores may be negative.
    """
    analysis = post.analysis
    score = 0.0

    if post.author_id == viewer_id or post.author_id in follow_set:
        score += weights.follow_bonus

    score += weights.category_weight * preferences.liked_categories.get(analysis.category, 0)

    for topic in analysis.topics:
        score += weights.topic_weight * preferences.liked_topics.get(topic, 0)

    score += recency_bonus(post.created_at, now, weights)

    if analysis.toxicity.detected:
        score -= weights.toxicity_penalty

    return score


def rank_posts(
    posts: Iterable[Post],
    viewer_id: str,
    follow_set: AbstractSet[str],
    preferences: PreferenceProfile,
    now: datetime,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> List[RankedFeedEntry]:
    """Score every candidate and order by score, then newest first."""
    entries = [
        RankedFeedEntry(
            post=post,
            relevance_score=score_post(post, viewer_id, follow_set, preferences, now, weights),
        )
        for post in posts
    ]
    # sorted() is stable, so full ties keep candidate order
    return sorted(
        entries,
        key=lambda e: (-e.relevance_score, -_as_utc(e.post.created_at).timestamp()),
    )


class FeedService:
    """Builds a viewer's ranked feed from storage."""

    def __init__(
        self,
        repository: BaseRepository,
        weights: Optional[ScoreWeights] = None,
        settings: Settings = default_settings,
    ):
        self.repository = repository
        self.weights = weights or ScoreWeights.from_settings(settings)

    def candidate_posts(self, viewer_id: str, follow_set: AbstractSet[str], scope: FeedScope) -> List[Post]:
        if scope == "global":
            return self.repository.list_posts()
        return self.repository.list_posts(author_ids=set(follow_set) | {viewer_id})

    def rank_feed(
        self,
        viewer_id: str,
        candidates: Optional[Iterable[Post]] = None,
        scope: FeedScope = "network",
        now: Optional[datetime] = None,
    ) -> List[RankedFeedEntry]:
        """
        Rank `candidates` for the viewer. When no candidates are given they
        are loaded for `scope`: "network" (followed and own posts) or "global".

        Raises:
            NotFoundError: the viewer does not exist
        """
        follow_set = self.repository.get_follow_set(viewer_id)
        preferences = self.repository.get_preferences(viewer_id)
        if candidates is None:
            candidates = self.candidate_posts(viewer_id, follow_set, scope)
        now = now or datetime.now(timezone.utc)

        ranked = rank_posts(candidates, viewer_id, follow_set, preferences, now, self.weights)
        logger.debug(f"Ranked {len(ranked)} posts for {viewer_id} ({scope})")
        return ranked
