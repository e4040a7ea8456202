from datetime import timedelta

import pytest

from relevance_engine.schemas.social import PreferenceProfile
from relevance_engine.services.feed import (
    FeedService,
    ScoreWeights,
    rank_posts,
    recency_bonus,
    score_post,
)


def test_followed_fresh_post_scores_follow_bonus_plus_recency(make_post, now):
    post = make_post(author_id="bob")
    score = score_post(post, "alice", {"bob"}, PreferenceProfile(), now)
    assert score == pytest.approx(105.0)


def test_own_posts_count_as_followed(make_post, now):
    post = make_post(author_id="alice")
    assert score_post(post, "alice", set(), PreferenceProfile(), now) == pytest.approx(105.0)


def test_unfollowed_post_gets_no_follow_bonus(make_post, now):
    post = make_post(author_id="carol")
    assert score_post(post, "alice", {"bob"}, PreferenceProfile(), now) == pytest.approx(5.0)


def test_preference_affinity(make_post, now):
    post = make_post(author_id="carol", category="Technology", topics=["AI", "Go", "Rust"])
    prefs = PreferenceProfile(liked_categories={"Technology": 2}, liked_topics={"AI": 3, "Go": 1})
    # 10 * 2 + 5 * (3 + 1) + 5
    assert score_post(post, "alice", set(), prefs, now) == pytest.approx(45.0)


def test_recency_decays_linearly_to_zero(now):
    created = now - timedelta(days=10)
    assert recency_bonus(created, now) == pytest.approx(3.0)
    assert recency_bonus(now - timedelta(days=25), now) == pytest.approx(0.0)
    assert recency_bonus(now - timedelta(days=300), now) == 0.0


def test_future_posts_do_not_exceed_max_recency(now):
    assert recency_bonus(now + timedelta(days=2), now) == pytest.approx(5.0)


def test_toxic_post_penalized_and_may_go_negative(make_post, now):
    post = make_post(author_id="carol", age=timedelta(days=30), toxic=True)
    assert score_post(post, "alice", set(), PreferenceProfile(), now) == pytest.approx(-50.0)


def test_naive_timestamps_are_treated_as_utc(make_post, now):
    post = make_post(author_id="carol", age=timedelta(days=5))
    naive = post.model_copy(update={"created_at": post.created_at.replace(tzinfo=None)})
    prefs = PreferenceProfile()
    assert score_post(naive, "alice", set(), prefs, now) == score_post(post, "alice", set(), prefs, now)


def test_score_is_deterministic(make_post, now):
    post = make_post(author_id="bob", age=timedelta(hours=13))
    prefs = PreferenceProfile(liked_categories={"Technology": 1}, liked_topics={"AI": 2})
    first = score_post(post, "alice", {"bob"}, prefs, now)
    second = score_post(post, "alice", {"bob"}, prefs, now)
    assert first == second


def test_custom_weights(make_post, now):
    post = make_post(author_id="bob")
    weights = ScoreWeights(follow_bonus=1.0, recency_max=0.0)
    assert score_post(post, "alice", {"bob"}, PreferenceProfile(), now, weights) == pytest.approx(1.0)


def test_rank_orders_by_score_then_newest(make_post, now):
    old_followed = make_post(author_id="bob", age=timedelta(days=30))
    stranger = make_post(author_id="carol", age=timedelta(days=1))
    tie_old = make_post(author_id="carol", age=timedelta(days=40))
    tie_new = make_post(author_id="carol", age=timedelta(days=26))

    ranked = rank_posts([tie_old, stranger, tie_new, old_followed], "alice", {"bob"}, PreferenceProfile(), now)

    assert [e.post.id for e in ranked] == [old_followed.id, stranger.id, tie_new.id, tie_old.id]
    assert ranked[0].relevance_score == pytest.approx(100.0)
    assert ranked[2].relevance_score == ranked[3].relevance_score == 0.0


def test_rank_keeps_candidates_unfiltered(make_post, now):
    posts = [make_post(author_id=a, toxic=(a == "carol")) for a in ("alice", "bob", "carol")]
    ranked = rank_posts(posts, "alice", set(), PreferenceProfile(), now)
    assert sorted(e.post.id for e in ranked) == sorted(p.id for p in posts)
    assert ranked[-1].post.author_id == "carol"


def test_liking_raises_score_of_similar_posts(repository, make_post, like_service, now):
    repository.follow("alice", "bob")
    first = make_post(author_id="bob", category="Technology", topics=["AI", "Go"])
    second = make_post(author_id="bob", category="Technology", topics=["AI", "Go"])
    feed = FeedService(repository)

    def score_of(post_id):
        entries = feed.rank_feed("alice", now=now)
        return next(e.relevance_score for e in entries if e.post.id == post_id)

    before = score_of(second.id)
    assert before >= 105.0
    like_service.record_like("alice", first.id)
    after = score_of(second.id)

    assert after > before
    assert after == pytest.approx(before + 10 + 5 + 5)


def test_network_scope_only_followed_and_own(repository, make_post, now):
    repository.follow("alice", "bob")
    own = make_post(author_id="alice")
    followed = make_post(author_id="bob")
    make_post(author_id="carol")

    entries = FeedService(repository).rank_feed("alice", now=now)
    assert {e.post.id for e in entries} == {own.id, followed.id}

    everything = FeedService(repository).rank_feed("alice", scope="global", now=now)
    assert len(everything) == 3


def test_explicit_candidates_are_ranked_as_given(repository, make_post, now):
    stranger = make_post(author_id="carol", save=False)
    entries = FeedService(repository).rank_feed("alice", candidates=[stranger], now=now)
    assert [e.post.id for e in entries] == [stranger.id]
