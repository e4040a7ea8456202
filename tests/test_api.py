from fastapi.testclient import TestClient

from relevance_engine.api.deps import get_aggregator
from relevance_engine.core.errors import ConfigurationError
from relevance_engine.main import app
from relevance_engine.services.aggregator import AnalysisAggregator


def as_user(user_id):
    return {"X-User-Id": user_id}


def publish(client, user_id, content):
    r = client.post("/api/v1/posts", json={"content": content}, headers=as_user(user_id))
    assert r.status_code == 201
    return r.json()


def test_health():
    client = TestClient(app)
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_create_post_has_placeholder_analysis(client):
    post = publish(client, "bob", "Just shipped a new Go service")
    assert post["author_id"] == "bob"
    assert post["likes"] == []
    assert post["analysis"] == {
        "sentiment": "Unknown",
        "emotions": [],
        "toxicity": {"detected": False, "details": {}},
        "topics": [],
        "summary": "",
        "category": "Uncategorized",
        "factuality": "unknown",
    }


def test_create_post_requires_user_header(client):
    r = client.post("/api/v1/posts", json={"content": "hi"})
    assert r.status_code == 422


def test_create_post_unknown_author(client):
    r = client.post("/api/v1/posts", json={"content": "hi"}, headers=as_user("mallory"))
    assert r.status_code == 404


def test_analyze_post(client):
    post = publish(client, "bob", "Go is great for AI services")
    r = client.post(f"/api/v1/analyze/{post['id']}")
    assert r.status_code == 200
    data = r.json()
    assert data["post_id"] == post["id"]
    assert data["content"] == "Go is great for AI services"
    assert data["analysis"]["sentiment"] == "Positive"
    assert data["analysis"]["category"] == "Technology"
    assert data["analysis"]["topics"] == ["AI", "Go"]

    stored = client.get(f"/api/v1/posts/{post['id']}").json()
    assert stored["analysis"] == data["analysis"]


def test_analyze_missing_post(client):
    r = client.post("/api/v1/analyze/missing")
    assert r.status_code == 404


def test_analyze_without_credentials_is_service_unavailable(client, repository):
    post = publish(client, "bob", "hello")

    def no_credentials(settings):
        raise ConfigurationError("Gemini API key missing.")

    app.dependency_overrides[get_aggregator] = lambda: AnalysisAggregator(repository, provider_factory=no_credentials)
    r = client.post(f"/api/v1/analyze/{post['id']}")
    assert r.status_code == 503
    assert "Gemini" in r.json()["detail"]


def test_like_unlike_updates_preferences(client):
    post = publish(client, "bob", "Go is great for AI services")
    client.post(f"/api/v1/analyze/{post['id']}")

    r = client.post(f"/api/v1/posts/{post['id']}/like", headers=as_user("alice"))
    assert r.status_code == 200
    assert r.json() == {"post_id": post["id"], "liked": True, "like_count": 1, "message": "Post liked."}

    prefs = client.get("/api/v1/users/alice/preferences").json()
    assert prefs == {"liked_categories": {"Technology": 1}, "liked_topics": {"AI": 1, "Go": 1}}

    r = client.post(f"/api/v1/posts/{post['id']}/like", headers=as_user("alice"))
    assert r.status_code == 409

    r = client.delete(f"/api/v1/posts/{post['id']}/like", headers=as_user("alice"))
    assert r.status_code == 200
    assert r.json()["liked"] is False

    prefs = client.get("/api/v1/users/alice/preferences").json()
    assert prefs == {"liked_categories": {}, "liked_topics": {}}


def test_toggle_like(client):
    post = publish(client, "bob", "hello")
    first = client.put(f"/api/v1/posts/{post['id']}/like", headers=as_user("alice")).json()
    second = client.put(f"/api/v1/posts/{post['id']}/like", headers=as_user("alice")).json()
    assert first["liked"] is True
    assert first["message"] == "Post liked."
    assert second["liked"] is False
    assert second["like_count"] == 0


def test_like_missing_post(client):
    r = client.put("/api/v1/posts/missing/like", headers=as_user("alice"))
    assert r.status_code == 404


def test_feed_ranks_followed_and_preferred_posts_first(client):
    assert client.post("/api/v1/users/alice/follow/bob").status_code == 204

    followed = publish(client, "bob", "from a friend")
    stranger = publish(client, "carol", "from a stranger")
    own = publish(client, "alice", "my own post")

    r = client.get("/api/v1/feed", headers=as_user("alice"))
    assert r.status_code == 200
    entries = r.json()
    assert {e["post"]["id"] for e in entries} == {followed["id"], own["id"]}
    assert all(e["relevance_score"] >= 100 for e in entries)

    r = client.get("/api/v1/feed", params={"scope": "global"}, headers=as_user("alice"))
    entries = r.json()
    assert len(entries) == 3
    assert entries[-1]["post"]["id"] == stranger["id"]
    scores = [e["relevance_score"] for e in entries]
    assert scores == sorted(scores, reverse=True)


def test_feed_unknown_viewer(client):
    r = client.get("/api/v1/feed", headers=as_user("mallory"))
    assert r.status_code == 404


def test_users_and_follow_graph(client):
    r = client.post("/api/v1/users", json={"id": "dave", "username": "dave"})
    assert r.status_code == 201
    assert client.get("/api/v1/users/dave").json()["username"] == "dave"

    assert client.post("/api/v1/users/dave/follow/alice").status_code == 204
    assert client.get("/api/v1/users/dave/following").json() == ["alice"]
    assert client.post("/api/v1/users/dave/follow/dave").status_code == 400
    assert client.post("/api/v1/users/dave/follow/nobody").status_code == 404

    assert client.delete("/api/v1/users/dave/follow/alice").status_code == 204
    assert client.get("/api/v1/users/dave/following").json() == []


def test_list_posts_newest_first(client):
    first = publish(client, "bob", "first")
    second = publish(client, "bob", "second")
    ids = [p["id"] for p in client.get("/api/v1/posts").json()]
    assert ids.index(second["id"]) < ids.index(first["id"])


def test_create_existing_user_is_conflict(client):
    r = client.post("/api/v1/users", json={"id": "alice", "username": "impostor"})
    assert r.status_code == 409
    assert client.get("/api/v1/users/alice").json()["username"] == "alice"
