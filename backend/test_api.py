"""
Tests for the HTTP API.

Run with: pytest test_api.py -v
"""
import pytest
from fastapi.testclient import TestClient

import cache
import main
import spotify_client
from models import Event
from score_combiner import ScoreCombiner
from sources import EventFetchResult

EVENTS = [
    Event(id="e-house", name="House Night", city="Toronto", date="2026-11-01",
          genres=["house"], artists=["Chris Lake"], taste_score=60),
    Event(id="e-techno", name="Techno Night", city="Toronto", date="2026-11-02",
          genres=["techno"], artists=["Tale Of Us"], taste_score=60),
    Event(id="e-polka", name="Polka Night", city="Toronto", date="2026-11-03",
          genres=["polka"], taste_score=60),
]


@pytest.fixture
def client(offline_store, monkeypatch):
    calls = []

    async def fake_fetch_events(city, genre, artist_store=None):
        calls.append((city, genre))
        return EventFetchResult(events=list(EVENTS), source="api", providers={"ticketmaster": 3, "edmtrain": 0})

    monkeypatch.setattr(main, "fetch_events", fake_fetch_events)
    monkeypatch.setattr(main, "artist_store", offline_store)
    monkeypatch.setattr(main, "combiner", ScoreCombiner(artist_store=offline_store, enabled=True, sound_enabled=False))

    test_client = TestClient(main.app)
    test_client.fetch_calls = calls
    return test_client


# =========================================================================
# AUTH & HEALTH
# =========================================================================

class TestAuth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["service"] == "event-match"

    def test_auth_url_requires_client_id(self, client, monkeypatch):
        monkeypatch.setattr(main, "SPOTIFY_CLIENT_ID", "")
        assert client.get("/auth/spotify/url").status_code == 500

    def test_auth_url(self, client, monkeypatch):
        monkeypatch.setattr(main, "SPOTIFY_CLIENT_ID", "client-123")
        monkeypatch.setattr(spotify_client, "SPOTIFY_CLIENT_ID", "client-123")
        response = client.get("/auth/spotify/url", params={"state": "abc"})
        assert response.status_code == 200
        assert "client_id=client-123" in response.json()["auth_url"]

    def test_refresh_keeps_old_refresh_token(self, client, monkeypatch):
        async def fake_refresh(refresh_token):
            return {"access_token": "new-access", "expires_in": 1800}

        monkeypatch.setattr(main, "refresh_access_token", fake_refresh)
        response = client.post("/auth/spotify/refresh", params={"refresh_token": "old-refresh"})
        assert response.json() == {
            "access_token": "new-access",
            "refresh_token": "old-refresh",
            "expires_in": 1800,
        }


# =========================================================================
# EVENTS & SCORING
# =========================================================================

class TestEvents:

    def test_events(self, client):
        response = client.get("/events", params={"city": "Chicago", "genre": "house"})
        body = response.json()
        assert body["source"] == "api"
        assert body["total"] == 3
        assert client.fetch_calls == [("Chicago", "house")]

    def test_recommendations_with_demo_taste(self, client):
        body = client.get("/events/recommendations").json()
        assert body["taste_source"] == "demo"
        scores = [e["match_score"] for e in body["events"]]
        assert scores == sorted(scores, reverse=True)
        assert body["events"][0]["id"] == "e-techno"

    def test_recommendations_with_stored_taste(self, client, temp_db):
        temp_db.save_taste_profile("u1", {"genres": {"house": 100}, "top_artists": ["Chris Lake"]})
        body = client.get("/events/recommendations", params={"user_id": "u1", "limit": 1}).json()
        assert body["taste_source"] == "stored"
        assert body["total"] == 3
        assert [e["id"] for e in body["events"]] == ["e-house"]

    def test_delete_taste(self, client, temp_db):
        temp_db.save_taste_profile("u1", {"genres": {"house": 100}})
        cache.set_cached_data("user_profile:u1", {"genres": {"house": 100}})

        assert client.delete("/taste/u1").json()["success"] is True
        assert temp_db.get_taste_profile("u1") is None
        assert cache.get_cached_data("user_profile:u1") is None
        assert client.delete("/taste/u1").status_code == 404

    def test_stored_events(self, client, temp_db):
        temp_db.upsert_events([e.to_dict() for e in reversed(EVENTS)])
        body = client.get("/events/stored", params={"city": "TORONTO", "limit": 2}).json()
        assert body["total"] == 2
        assert [e["id"] for e in body["events"]] == ["e-house", "e-techno"]

    def test_score_event(self, client):
        response = client.post("/events/score", json={
            "event": {"id": "x", "name": "Techno", "genres": ["techno"], "artists": ["Tale Of Us"], "taste_score": 60},
            "taste": {"genres": {"techno": 100}, "top_artists": [{"name": "Tale Of Us"}]},
        })
        body = response.json()
        assert response.status_code == 200
        assert body["match_score"] == 64
        assert body["confidence_label"] == "high"

    def test_score_rejects_out_of_range_baseline(self, client):
        response = client.post("/events/score", json={
            "event": {"id": "x", "name": "Bad", "taste_score": 150},
            "taste": {"genres": {"techno": 100}},
        })
        assert response.status_code == 422


# =========================================================================
# SAVED EVENTS
# =========================================================================

class TestSavedEvents:

    def test_save_list_remove(self, client):
        payload = {"user_id": "u1", "event": {"id": "e-house", "name": "House Night"}, "match_score": 72}
        assert client.post("/events/saved", json=payload).json()["success"] is True
        assert client.post("/events/saved", json=payload).json()["success"] is False

        saved = client.get("/events/saved", params={"user_id": "u1"}).json()
        assert saved["total"] == 1
        assert saved["events"][0]["match_score"] == 72

        response = client.delete("/events/saved/e-house", params={"user_id": "u1"})
        assert response.json()["success"] is True

    def test_saved_status(self, client):
        payload = {"user_id": "u1", "event": {"id": "e-house", "name": "House Night"}}
        client.post("/events/saved", json=payload)

        assert client.get("/events/saved/e-house", params={"user_id": "u1"}).json()["saved"] is True
        assert client.get("/events/saved/e-house", params={"user_id": "u2"}).json()["saved"] is False

    def test_remove_missing(self, client):
        response = client.delete("/events/saved/nope", params={"user_id": "u1"})
        assert response.status_code == 404

    def test_save_requires_event_id(self, client):
        payload = {"user_id": "u1", "event": {"id": "", "name": "No id"}}
        assert client.post("/events/saved", json=payload).status_code == 400


# =========================================================================
# CACHE ADMIN & STATS
# =========================================================================

class TestAdmin:

    def test_cache_status_and_clear(self, client):
        cache.set_cached_data("edmtrain_toronto", [])
        cache.set_cached_data("user_profile:u1", {})

        status = client.get("/cache/status", params={"prefix": "edmtrain"}).json()
        assert status["total_entries"] == 1

        cleared = client.post("/cache/clear", json={"pattern": "^edmtrain_"}).json()
        assert cleared["cleared"] == 1
        assert client.get("/cache/status").json()["total_entries"] == 1

    def test_clear_expired_only(self, client):
        cache.set_cached_data("fresh", 1)
        cleared = client.post("/cache/clear", json={"expired_only": True}).json()
        assert cleared == {"cleared": 0, "pattern": None}

    def test_stats(self, client, temp_db):
        temp_db.upsert_events([e.to_dict() for e in EVENTS])
        stats = client.get("/stats").json()
        assert stats["stored_events"] == 3
        assert stats["scoring_dimensions"] == 2
        assert stats["genre_matrix"]["primary_genres"] > 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
