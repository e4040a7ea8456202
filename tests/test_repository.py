import pytest

from relevance_engine.core.errors import NotFoundError
from relevance_engine.schemas.analysis_result import AnalysisRecord, Sentiment
from relevance_engine.schemas.social import Post


def test_reads_are_copies(repository, make_post):
    post = make_post()
    loaded = repository.get_post(post.id)
    loaded.likes.append("alice")
    loaded.analysis.topics.append("Leaked")

    stored = repository.get_post(post.id)
    assert stored.likes == []
    assert stored.analysis.topics == ["AI", "Go"]


def test_post_requires_existing_author(repository):
    with pytest.raises(NotFoundError):
        repository.save_post(Post(id="x", author_id="mallory", content="hi"))


def test_follow_requires_both_users(repository):
    with pytest.raises(NotFoundError):
        repository.follow("alice", "mallory")
    repository.follow("alice", "bob")
    repository.follow("alice", "bob")
    assert repository.get_follow_set("alice") == {"bob"}
    repository.unfollow("alice", "bob")
    assert repository.get_follow_set("alice") == set()


def test_list_posts_by_author_newest_first(repository, make_post):
    from datetime import timedelta

    old = make_post(author_id="bob", age=timedelta(days=2))
    new = make_post(author_id="bob", age=timedelta(hours=1))
    make_post(author_id="carol")

    assert [p.id for p in repository.list_posts(author_ids={"bob"})] == [new.id, old.id]
    assert len(repository.list_posts()) == 3


def test_likes_are_idempotent_per_user(repository, make_post):
    post = make_post()
    repository.add_like(post.id, "alice")
    assert repository.add_like(post.id, "alice").likes == ["alice"]
    assert repository.remove_like(post.id, "alice").likes == []
    assert repository.remove_like(post.id, "alice").likes == []


def test_save_post_analysis_replaces_record(repository, make_post):
    post = make_post()
    repository.save_post_analysis(post.id, AnalysisRecord(sentiment=Sentiment.NEGATIVE))
    assert repository.get_post(post.id).analysis.sentiment == Sentiment.NEGATIVE
    with pytest.raises(NotFoundError):
        repository.save_post_analysis("missing", AnalysisRecord())
