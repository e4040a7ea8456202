"""
Neo4j-backed repository: users and posts are nodes, the social graph is
POSTED / FOLLOWS / LIKED relationships. Analysis records and preference
counters are stored as JSON string properties.
"""
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from neo4j import GraphDatabase, Driver
from neo4j.exceptions import ClientError, ServiceUnavailable

from relevance_engine.core.config import settings
from relevance_engine.core.errors import NotFoundError
from relevance_engine.schemas.analysis_result import AnalysisRecord
from relevance_engine.schemas.social import Post, PreferenceProfile, User
from relevance_engine.services.repository import BaseRepository

logger = logging.getLogger(__name__)

_POST_FIELDS = """
    p.id AS id, u.id AS author_id, p.content AS content, p.image AS image,
    p.created_at AS created_at, p.analysis AS analysis, likes
"""


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _post_from_record(record) -> Post:
    analysis = record["analysis"]
    return Post(
        id=record["id"],
        author_id=record["author_id"],
        content=record["content"],
        image=record["image"] or "",
        created_at=datetime.fromisoformat(record["created_at"]),
        likes=[uid for uid in record["likes"] if uid is not None],
        analysis=AnalysisRecord.model_validate_json(analysis) if analysis else AnalysisRecord(),
    )


class Neo4jRepository(BaseRepository):
    """Repository persisting the social graph in Neo4j."""

    _driver: Optional[Driver] = None

    @classmethod
    def get_driver(cls) -> Driver:
        """Get or create Neo4j driver instance."""
        if cls._driver is None:
            cls._driver = GraphDatabase.driver(
                settings.neo4j_uri,
                auth=(settings.neo4j_user, settings.neo4j_password),
            )
        return cls._driver

    @classmethod
    def close(cls) -> None:
        """Close the Neo4j driver connection."""
        if cls._driver is not None:
            cls._driver.close()
            cls._driver = None

    @classmethod
    @contextmanager
    def get_session(cls):
        """Context manager for Neo4j session."""
        driver = cls.get_driver()
        session = driver.session(database=settings.neo4j_database)
        try:
            yield session
        finally:
            session.close()

    @classmethod
    def verify_connectivity(cls) -> bool:
        """Verify Neo4j connection is working."""
        try:
            driver = cls.get_driver()
            driver.verify_connectivity()
            return True
        except ServiceUnavailable:
            return False

    @classmethod
    def init_constraints(cls) -> None:
        """Initialize uniqueness constraints for users and posts."""
        constraints = [
            "CREATE CONSTRAINT post_id IF NOT EXISTS FOR (p:Post) REQUIRE p.id IS UNIQUE",
            "CREATE CONSTRAINT user_id IF NOT EXISTS FOR (u:User) REQUIRE u.id IS UNIQUE",
        ]
        with cls.get_session() as session:
            for constraint in constraints:
                try:
                    session.run(constraint)
                except ClientError as e:
                    logger.warning(f"Could not create constraint: {e}")

    # Users and the follow graph

    def save_user(self, user: User) -> User:
        with self.get_session() as session:
            session.run(
                """
                MERGE (u:User {id: $id})
                SET u.username = $username,
                    u.created_at = coalesce(u.created_at, $created_at),
                    u.liked_categories = coalesce(u.liked_categories, '{}'),
                    u.liked_topics = coalesce(u.liked_topics, '{}')
                """,
                id=user.id,
                username=user.username,
                created_at=_iso(user.created_at),
            )
        return user

    def get_user(self, user_id: str) -> User:
        with self.get_session() as session:
            record = session.run(
                "MATCH (u:User {id: $id}) RETURN u.id AS id, u.username AS username, u.created_at AS created_at",
                id=user_id,
            ).single()
        if record is None:
            raise NotFoundError("user", user_id)
        return User(
            id=record["id"],
            username=record["username"],
            created_at=datetime.fromisoformat(record["created_at"]),
        )

    def get_follow_set(self, user_id: str) -> Set[str]:
        with self.get_session() as session:
            record = session.run(
                """
                MATCH (u:User {id: $id})
                OPTIONAL MATCH (u)-[:FOLLOWS]->(f:User)
                RETURN u.id AS id, collect(f.id) AS following
                """,
                id=user_id,
            ).single()
        if record is None:
            raise NotFoundError("user", user_id)
        return set(record["following"])

    def follow(self, user_id: str, target_id: str) -> None:
        self.get_user(user_id)
        self.get_user(target_id)
        with self.get_session() as session:
            session.run(
                """
                MATCH (u:User {id: $id}), (t:User {id: $target})
                MERGE (u)-[:FOLLOWS]->(t)
                """,
                id=user_id,
                target=target_id,
            )

    def unfollow(self, user_id: str, target_id: str) -> None:
        self.get_user(user_id)
        with self.get_session() as session:
            session.run(
                "MATCH (:User {id: $id})-[r:FOLLOWS]->(:User {id: $target}) DELETE r",
                id=user_id,
                target=target_id,
            )

    # Preference profiles

    def get_preferences(self, user_id: str) -> PreferenceProfile:
        with self.get_session() as session:
            record = session.run(
                """
                MATCH (u:User {id: $id})
                RETURN u.liked_categories AS categories, u.liked_topics AS topics
                """,
                id=user_id,
            ).single()
        if record is None:
            raise NotFoundError("user", user_id)
        return PreferenceProfile(
            liked_categories=json.loads(record["categories"] or "{}"),
            liked_topics=json.loads(record["topics"] or "{}"),
        )

    def save_preferences(self, user_id: str, profile: PreferenceProfile) -> None:
        with self.get_session() as session:
            record = session.run(
                """
                MATCH (u:User {id: $id})
                SET u.liked_categories = $categories, u.liked_topics = $topics
                RETURN u.id AS id
                """,
                id=user_id,
                categories=json.dumps(profile.liked_categories),
                topics=json.dumps(profile.liked_topics),
            ).single()
        if record is None:
            raise NotFoundError("user", user_id)

    # Posts and likes

    def save_post(self, post: Post) -> Post:
        with self.get_session() as session:
            record = session.run(
                """
                MATCH (u:User {id: $author_id})
                MERGE (p:Post {id: $id})
                SET p.content = $content, p.image = $image,
                    p.created_at = $created_at, p.analysis = $analysis
                MERGE (u)-[:POSTED]->(p)
                RETURN p.id AS id
                """,
                id=post.id,
                author_id=post.author_id,
                content=post.content,
                image=post.image,
                created_at=_iso(post.created_at),
                analysis=post.analysis.model_dump_json(),
            ).single()
        if record is None:
            raise NotFoundError("user", post.author_id)
        return post

    def get_post(self, post_id: str) -> Post:
        with self.get_session() as session:
            record = session.run(
                f"""
                MATCH (u:User)-[:POSTED]->(p:Post {{id: $id}})
                OPTIONAL MATCH (l:User)-[r:LIKED]->(p)
                WITH u, p, l, r ORDER BY r.at
                WITH u, p, collect(l.id) AS likes
                RETURN {_POST_FIELDS}
                """,
                id=post_id,
            ).single()
        if record is None:
            raise NotFoundError("post", post_id)
        return _post_from_record(record)

    def list_posts(self, author_ids: Optional[Iterable[str]] = None) -> List[Post]:
        authors = list(author_ids) if author_ids is not None else None
        with self.get_session() as session:
            result = session.run(
                f"""
                MATCH (u:User)-[:POSTED]->(p:Post)
                WHERE $authors IS NULL OR u.id IN $authors
                OPTIONAL MATCH (l:User)-[r:LIKED]->(p)
                WITH u, p, l, r ORDER BY r.at
                WITH u, p, collect(l.id) AS likes
                RETURN {_POST_FIELDS}
                ORDER BY p.created_at DESC
                """,
                authors=authors,
            )
            return [_post_from_record(record) for record in result]

    def save_post_analysis(self, post_id: str, record: AnalysisRecord) -> None:
        with self.get_session() as session:
            updated = session.run(
                "MATCH (p:Post {id: $id}) SET p.analysis = $analysis RETURN p.id AS id",
                id=post_id,
                analysis=record.model_dump_json(),
            ).single()
        if updated is None:
            raise NotFoundError("post", post_id)

    def add_like(self, post_id: str, user_id: str) -> Post:
        self.get_user(user_id)
        self.get_post(post_id)
        with self.get_session() as session:
            session.run(
                """
                MATCH (u:User {id: $user_id}), (p:Post {id: $post_id})
                MERGE (u)-[r:LIKED]->(p)
                ON CREATE SET r.at = $at
                """,
                user_id=user_id,
                post_id=post_id,
                at=_iso(datetime.now(timezone.utc)),
            )
        return self.get_post(post_id)

    def remove_like(self, post_id: str, user_id: str) -> Post:
        self.get_post(post_id)
        with self.get_session() as session:
            session.run(
                "MATCH (:User {id: $user_id})-[r:LIKED]->(:Post {id: $post_id}) DELETE r",
                user_id=user_id,
                post_id=post_id,
            )
        return self.get_post(post_id)
