"""
Preference learning from likes.

PreferenceStore turns one like/unlike transition into counter updates on the
user's PreferenceProfile. LikeService is the toggle handler in front of it:
it checks current like membership, serializes mutations per user, and only
then asks the store to update counters.
"""
import logging
import threading
from typing import List, Optional, Tuple

from relevance_engine.core.errors import StateError
from relevance_engine.schemas.analysis_result import (
    AnalysisRecord,
    SENTINEL_CATEGORIES,
    SENTINEL_TOPICS,
)
from relevance_engine.schemas.social import Post, PreferenceProfile
from relevance_engine.services.repository import BaseRepository

logger = logging.getLogger(__name__)


def preference_keys(record: AnalysisRecord, count_sentinels: bool = False) -> Tuple[Optional[str], List[str]]:
    """Category and topics of a record that count towards preferences."""
    category: Optional[str] = record.category or None
    if category in SENTINEL_CATEGORIES and not count_sentinels:
        category = None

    topics = [t for t in dict.fromkeys(record.topics) if t]
    if not count_sentinels:
        topics = [t for t in topics if t not in SENTINEL_TOPICS]
    return category, topics


def apply_like(profile: PreferenceProfile, record: AnalysisRecord, count_sentinels: bool = False) -> PreferenceProfile:
    category, topics = preference_keys(record, count_sentinels)
    if category:
        profile.increment_category(category)
    for topic in topics:
        profile.increment_topic(topic)
    return profile


def apply_unlike(profile: PreferenceProfile, record: AnalysisRecord, count_sentinels: bool = False) -> PreferenceProfile:
    category, topics = preference_keys(record, count_sentinels)
    if category:
        profile.decrement_category(category)
    for topic in topics:
        profile.decrement_topic(topic)
    return profile


class PreferenceStore:
    """
    Updates a user's profile for one like/unlike transition.

    The store does not re-check like membership; callers must only invoke
    it for a real transition, one at a time per user.
    """

    def __init__(self, repository: BaseRepository, count_sentinels: bool = False):
        self.repository = repository
        self.count_sentinels = count_sentinels

    def on_like(self, user_id: str, post: Post) -> PreferenceProfile:
        profile = self.repository.get_preferences(user_id)
        apply_like(profile, post.analysis, self.count_sentinels)
        self.repository.save_preferences(user_id, profile)
        return profile

    def on_unlike(self, user_id: str, post: Post) -> PreferenceProfile:
        profile = self.repository.get_preferences(user_id)
        apply_unlike(profile, post.analysis, self.count_sentinels)
        self.repository.save_preferences(user_id, profile)
        return profile


class LikeService:
    """Like/unlike handler guarding the PreferenceStore preconditions."""

    def __init__(self, repository: BaseRepository, store: PreferenceStore, lock_stripes: int = 64):
        self.repository = repository
        self.store = store
        # users hashing to the same stripe share a lock
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(lock_stripes)]

    def _user_lock(self, user_id: str) -> threading.Lock:
        return self._locks[hash(user_id) % len(self._locks)]

    def _like(self, user_id: str, post_id: str) -> Post:
        post = self.repository.add_like(post_id, user_id)
        try:
            self.store.on_like(user_id, post)
        except Exception:
            logger.error(f"Preference update failed, reverting like of {post_id} by {user_id}")
            self.repository.remove_like(post_id, user_id)
            raise
        logger.info(f"User {user_id} liked post {post_id}")
        return post

    def _unlike(self, user_id: str, post_id: str) -> Post:
        post = self.repository.remove_like(post_id, user_id)
        try:
            self.store.on_unlike(user_id, post)
        except Exception:
            logger.error(f"Preference update failed, restoring like of {post_id} by {user_id}")
            self.repository.add_like(post_id, user_id)
            raise
        logger.info(f"User {user_id} unliked post {post_id}")
        return post

    def record_like(self, user_id: str, post_id: str) -> Post:
        """
        Raises:
            NotFoundError: user or post does not exist
            StateError: the user already likes the post
        """
        with self._user_lock(user_id):
            self.repository.get_user(user_id)
            if user_id in self.repository.get_post(post_id).likes:
                raise StateError(f"User {user_id} already likes post {post_id}")
            return self._like(user_id, post_id)

    def record_unlike(self, user_id: str, post_id: str) -> Post:
        """
        Raises:
            NotFoundError: user or post does not exist
            StateError: the user does not like the post
        """
        with self._user_lock(user_id):
            self.repository.get_user(user_id)
            if user_id not in self.repository.get_post(post_id).likes:
                raise StateError(f"User {user_id} has not liked post {post_id}")
            return self._unlike(user_id, post_id)

    def toggle_like(self, user_id: str, post_id: str) -> Tuple[Post, bool]:
        """Like if not yet liked, unlike otherwise. Returns (post, liked)."""
        with self._user_lock(user_id):
            self.repository.get_user(user_id)
            if user_id in self.repository.get_post(post_id).likes:
                return self._unlike(user_id, post_id), False
            return self._like(user_id, post_id), True
