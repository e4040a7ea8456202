from functools import lru_cache

from fastapi import Header

from relevance_engine.core.config import settings
from relevance_engine.services.aggregator import AnalysisAggregator
from relevance_engine.services.feed import FeedService
from relevance_engine.services.graph_service import Neo4jRepository
from relevance_engine.services.preferences import LikeService, PreferenceStore
from relevance_engine.services.repository import BaseRepository, InMemoryRepository


@lru_cache
def get_repository() -> BaseRepository:
    if settings.storage_backend == "neo4j":
        return Neo4jRepository()
    return InMemoryRepository()


@lru_cache
def get_aggregator() -> AnalysisAggregator:
    return AnalysisAggregator(get_repository(), settings=settings)


@lru_cache
def get_like_service() -> LikeService:
    repository = get_repository()
    store = PreferenceStore(repository, count_sentinels=settings.count_sentinel_preferences)
    return LikeService(repository, store)


@lru_cache
def get_feed_service() -> FeedService:
    return FeedService(get_repository(), settings=settings)


def get_current_user_id(x_user_id: str = Header(..., description="Acting user id")) -> str:
    return x_user_id
