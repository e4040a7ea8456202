from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from relevance_engine.schemas.analysis_result import AnalysisRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PreferenceProfile(BaseModel):
    """
    Per-user weighted interest counters learned from liked posts.

    Counters are only changed through the increment/decrement accessors,
    which keep every count strictly positive: a key whose count would
    reach zero (or below) is removed instead.
    """

    liked_categories: Dict[str, int] = Field(default_factory=dict)
    liked_topics: Dict[str, int] = Field(default_factory=dict)

    @staticmethod
    def _increment(counters: Dict[str, int], key: str) -> None:
        counters[key] = counters.get(key, 0) + 1

    @staticmethod
    def _decrement(counters: Dict[str, int], key: str) -> None:
        count = counters.get(key)
        if count is None:
            return
        if count <= 1:
            del counters[key]
        else:
            counters[key] = count - 1

    def increment_category(self, category: str) -> None:
        self._increment(self.liked_categories, category)

    def decrement_category(self, category: str) -> None:
        self._decrement(self.liked_categories, category)

    def increment_topic(self, topic: str) -> None:
        self._increment(self.liked_topics, topic)

    def decrement_topic(self, topic: str) -> None:
        self._decrement(self.liked_topics, topic)


class User(BaseModel):
    id: str
    username: str
    created_at: datetime = Field(default_factory=_utcnow)


class Post(BaseModel):
    id: str
    author_id: str
    content: str = Field(max_length=500)
    image: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    likes: List[str] = Field(default_factory=list)
    analysis: AnalysisRecord = Field(default_factory=AnalysisRecord)


class RankedFeedEntry(BaseModel):
    post: Post
    relevance_score: float


class CreateUserRequest(BaseModel):
    id: Optional[str] = None
    username: str


class CreatePostRequest(BaseModel):
    content: str = Field(min_length=1, max_length=500)
    image: str = ""


class LikeResponse(BaseModel):
    post_id: str
    liked: bool
    like_count: int
    message: str
