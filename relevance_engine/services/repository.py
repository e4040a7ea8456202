"""
Storage collaborator for users, posts, likes, follows and preference profiles.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set

from relevance_engine.core.errors import NotFoundError
from relevance_engine.schemas.analysis_result import AnalysisRecord
from relevance_engine.schemas.social import Post, PreferenceProfile, User

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """Abstract storage interface. Lookups of missing entities raise NotFoundError."""

    # Users and the follow graph
    @abstractmethod
    def save_user(self, user: User) -> User:
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> User:
        pass

    @abstractmethod
    def get_follow_set(self, user_id: str) -> Set[str]:
        pass

    @abstractmethod
    def follow(self, user_id: str, target_id: str) -> None:
        pass

    @abstractmethod
    def unfollow(self, user_id: str, target_id: str) -> None:
        pass

    # Preference profiles
    @abstractmethod
    def get_preferences(self, user_id: str) -> PreferenceProfile:
        pass

    @abstractmethod
    def save_preferences(self, user_id: str, profile: PreferenceProfile) -> None:
        pass

    # Posts and likes
    @abstractmethod
    def save_post(self, post: Post) -> Post:
        pass

    @abstractmethod
    def get_post(self, post_id: str) -> Post:
        pass

    @abstractmethod
    def list_posts(self, author_ids: Optional[Iterable[str]] = None) -> List[Post]:
        """Posts newest first, optionally restricted to the given authors."""
        pass

    @abstractmethod
    def save_post_analysis(self, post_id: str, record: AnalysisRecord) -> None:
        pass

    @abstractmethod
    def add_like(self, post_id: str, user_id: str) -> Post:
        pass

    @abstractmethod
    def remove_like(self, post_id: str, user_id: str) -> Post:
        pass


class InMemoryRepository(BaseRepository):
    """
    Process-local repository. Every read returns a deep copy, so callers
    never alias the stored objects.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._users: Dict[str, User] = {}
        self._following: Dict[str, Set[str]] = {}
        self._preferences: Dict[str, PreferenceProfile] = {}
        self._posts: Dict[str, Post] = {}

    def _require_user(self, user_id: str) -> None:
        if user_id not in self._users:
            raise NotFoundError("user", user_id)

    def _require_post(self, post_id: str) -> Post:
        post = self._posts.get(post_id)
        if post is None:
            raise NotFoundError("post", post_id)
        return post

    def save_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = user.model_copy(deep=True)
            self._following.setdefault(user.id, set())
            self._preferences.setdefault(user.id, PreferenceProfile())
            return user

    def get_user(self, user_id: str) -> User:
        with self._lock:
            self._require_user(user_id)
            return self._users[user_id].model_copy(deep=True)

    def get_follow_set(self, user_id: str) -> Set[str]:
        with self._lock:
            self._require_user(user_id)
            return set(self._following[user_id])

    def follow(self, user_id: str, target_id: str) -> None:
        with self._lock:
            self._require_user(user_id)
            self._require_user(target_id)
            self._following[user_id].add(target_id)

    def unfollow(self, user_id: str, target_id: str) -> None:
        with self._lock:
            self._require_user(user_id)
            self._following[user_id].discard(target_id)

    def get_preferences(self, user_id: str) -> PreferenceProfile:
        with self._lock:
            self._require_user(user_id)
            return self._preferences[user_id].model_copy(deep=True)

    def save_preferences(self, user_id: str, profile: PreferenceProfile) -> None:
        with self._lock:
            self._require_user(user_id)
            self._preferences[user_id] = profile.model_copy(deep=True)

    def save_post(self, post: Post) -> Post:
        with self._lock:
            self._require_user(post.author_id)
            self._posts[post.id] = post.model_copy(deep=True)
            return post

    def get_post(self, post_id: str) -> Post:
        with self._lock:
            return self._require_post(post_id).model_copy(deep=True)

    def list_posts(self, author_ids: Optional[Iterable[str]] = None) -> List[Post]:
        with self._lock:
            posts = list(self._posts.values())
            if author_ids is not None:
                authors = set(author_ids)
                posts = [p for p in posts if p.author_id in authors]
            posts.sort(key=lambda p: p.created_at, reverse=True)
            return [p.model_copy(deep=True) for p in posts]

    def save_post_analysis(self, post_id: str, record: AnalysisRecord) -> None:
        with self._lock:
            self._require_post(post_id).analysis = record.model_copy(deep=True)

    def add_like(self, post_id: str, user_id: str) -> Post:
        with self._lock:
            self._require_user(user_id)
            post = self._require_post(post_id)
            if user_id not in post.likes:
                post.likes.append(user_id)
            return post.model_copy(deep=True)

    def remove_like(self, post_id: str, user_id: str) -> Post:
        with self._lock:
            post = self._require_post(post_id)
            post.likes = [uid for uid in post.likes if uid != user_id]
            return post.model_copy(deep=True)
