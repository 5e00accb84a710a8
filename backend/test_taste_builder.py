"""
Tests for building a UserTaste from Spotify listening history.

Run with: pytest test_taste_builder.py -v
"""
import asyncio

import httpx
import pytest

from taste_builder import (
    DEMO_TASTE,
    average_audio_features,
    build_user_taste,
    demo_taste,
    expand_genres,
)


def artist(artist_id, name, genres, popularity=60):
    return {"id": artist_id, "name": name, "genres": genres, "popularity": popularity}


class FakeSpotify:
    """Stands in for SpotifyClient with canned top lists per time window."""

    def __init__(self, artists_by_window=None, tracks=None, features=None, features_error=None):
        self.artists_by_window = artists_by_window or {}
        self.tracks = tracks or []
        self.features = features or []
        self.features_error = features_error

    async def get_top_artists(self, time_range, limit=50):
        return {"items": self.artists_by_window.get(time_range, [])}

    async def get_top_tracks(self, time_range, limit=50):
        return {"items": self.tracks if time_range == "short_term" else []}

    async def get_audio_features(self, track_ids):
        if self.features_error:
            raise self.features_error
        return {"audio_features": self.features}


FISHER = artist("a1", "Fisher", ["House"])
PRYDZ = artist("a2", "Eric Prydz", ["techno"])


@pytest.fixture
def listener():
    return FakeSpotify(
        artists_by_window={
            "short_term": [PRYDZ, FISHER],
            "medium_term": [FISHER],
            "long_term": [FISHER],
        },
        tracks=[{"id": "t1"}, {"id": "t2"}, {"id": "t1"}],
        features=[
            {"energy": 0.8, "danceability": 0.7, "tempo": 124},
            {"energy": 0.6, "danceability": 0.9, "tempo": 128},
            None,
        ],
    )


# =========================================================================
# BUILDING
# =========================================================================

class TestBuildUserTaste:
    """Aggregation across time windows."""

    def test_genre_weights_favour_recurring_artists(self, listener):
        taste = asyncio.run(build_user_taste(listener))
        assert taste.genres["house"] == 100
        # (1 + 1/3) / (1 + 3/3)
        assert taste.genres["techno"] == pytest.approx(66.7)

    def test_sub_genres_are_expanded(self, listener):
        taste = asyncio.run(build_user_taste(listener))
        assert taste.genres["deep house"] == 50.0
        assert "minimal techno" in taste.genres

    def test_artists_ranked_by_recurrence(self, listener):
        taste = asyncio.run(build_user_taste(listener))
        assert [a.name for a in taste.top_artists] == ["Fisher", "Eric Prydz"]
        assert [a.weight for a in taste.top_artists] == [1.0, 0.5]

    def test_audio_features_averaged(self, listener):
        taste = asyncio.run(build_user_taste(listener))
        assert taste.audio_features["energy"] == pytest.approx(0.7)
        assert taste.audio_features["tempo"] == pytest.approx(126)
        assert "valence" not in taste.audio_features

    def test_restricted_audio_features_are_skipped(self, listener):
        request = httpx.Request("GET", "https://api.spotify.com/v1/audio-features")
        listener.features_error = httpx.HTTPStatusError(
            "forbidden", request=request, response=httpx.Response(403, request=request),
        )
        taste = asyncio.run(build_user_taste(listener))
        assert taste.audio_features == {}
        assert taste.genres["house"] == 100

    def test_no_history_gives_demo_taste(self):
        taste = asyncio.run(build_user_taste(FakeSpotify()))
        assert taste.source == "demo"
        assert taste.genres == DEMO_TASTE["genres"]


# =========================================================================
# HELPERS
# =========================================================================

class TestHelpers:

    def test_expand_keeps_existing_weights(self):
        expanded = expand_genres({"house": 80, "deep house": 70})
        assert expanded["deep house"] == 70
        assert expanded["tech house"] == 40.0
        assert expanded["organic house"] == 35.0

    def test_expand_unknown_genre(self):
        assert expand_genres({"polka": 10}) == {"polka": 10}

    def test_average_ignores_missing_values(self):
        averages = average_audio_features([{"energy": 0.5}, {"energy": 1.0, "valence": 0.2}])
        assert averages == {"energy": 0.75, "valence": 0.2}

    def test_demo_taste(self):
        taste = demo_taste()
        assert taste.top_artists[0].name == "Tale Of Us"
        assert not taste.is_empty


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
