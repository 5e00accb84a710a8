"""
Tests for the Spotify client helpers.

Run with: pytest test_spotify_client.py -v
"""
import asyncio

import httpx
import pytest

import spotify_client
from spotify_client import AppTokenProvider, SpotifyClient, build_authorize_url, search_artist

TOKEN = {"access_token": "app-token", "expires_in": 3600}


def spotify_handler(search_responses, calls):
    """Token endpoint plus a queue of search responses."""
    def handler(request):
        calls.append(request.url.path)
        if request.url.path.endswith("/api/token"):
            return httpx.Response(200, json=TOKEN)
        return search_responses.pop(0)
    return handler


@pytest.fixture
def no_sleep(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(spotify_client.asyncio, "sleep", fake_sleep)
    return delays


# =========================================================================
# AUTHORIZATION
# =========================================================================

class TestAuthorizeUrl:

    def test_contains_scopes_and_state(self, monkeypatch):
        monkeypatch.setattr(spotify_client, "SPOTIFY_CLIENT_ID", "client-123")
        url = httpx.URL(build_authorize_url("xyz"))
        assert url.params["client_id"] == "client-123"
        assert url.params["response_type"] == "code"
        assert url.params["state"] == "xyz"
        assert "user-top-read" in url.params["scope"]

    def test_without_state(self):
        assert "state" not in httpx.URL(build_authorize_url()).params


# =========================================================================
# APP TOKEN & SEARCH
# =========================================================================

class TestAppToken:

    def test_unconfigured(self):
        tokens = AppTokenProvider("", "")
        assert not tokens.configured
        assert asyncio.run(tokens.get_token()) is None

    def test_token_is_cached(self, mock_http):
        calls = []
        mock_http(spotify_handler([], calls))
        tokens = AppTokenProvider("id", "secret")

        async def twice():
            return await tokens.get_token(), await tokens.get_token()

        assert asyncio.run(twice()) == ("app-token", "app-token")
        assert len(calls) == 1

    def test_rejected_credentials(self, mock_http):
        mock_http(lambda request: httpx.Response(401, json={"error": "invalid_client"}))
        assert asyncio.run(AppTokenProvider("id", "bad").get_token()) is None


class TestSearchArtist:

    def test_first_match(self, mock_http):
        calls = []
        found = {"artists": {"items": [{"name": "Fisher", "genres": ["tech house"]}]}}
        mock_http(spotify_handler([httpx.Response(200, json=found)], calls))
        result = asyncio.run(search_artist("Fisher", AppTokenProvider("id", "secret")))
        assert result["genres"] == ["tech house"]

    def test_no_match(self, mock_http):
        calls = []
        mock_http(spotify_handler([httpx.Response(200, json={"artists": {"items": []}})], calls))
        assert asyncio.run(search_artist("Nobody", AppTokenProvider("id", "secret"))) is None

    def test_rate_limit_is_retried(self, mock_http, no_sleep):
        calls = []
        found = {"artists": {"items": [{"name": "Fisher", "genres": []}]}}
        mock_http(spotify_handler([
            httpx.Response(429, headers={"Retry-After": "2"}),
            httpx.Response(429),
            httpx.Response(200, json=found),
        ], calls))
        result = asyncio.run(search_artist("Fisher", AppTokenProvider("id", "secret")))
        assert result["name"] == "Fisher"
        assert no_sleep == [2.0, 2]

    def test_http_date_retry_after_uses_backoff(self, mock_http, no_sleep):
        calls = []
        found = {"artists": {"items": [{"name": "Fisher", "genres": []}]}}
        mock_http(spotify_handler([
            httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}),
            httpx.Response(200, json=found),
        ], calls))
        result = asyncio.run(search_artist("Fisher", AppTokenProvider("id", "secret")))
        assert result["name"] == "Fisher"
        assert no_sleep == [1]

    def test_retry_delay_is_capped(self):
        assert spotify_client.retry_delay("3600", 0) == spotify_client.MAX_RETRY_AFTER
        assert spotify_client.retry_delay("-5", 0) == 0.0
        assert spotify_client.retry_delay(None, 2) == 4
        assert spotify_client.retry_delay("soon", 1) == 2

    def test_persistent_rate_limit_raises(self, mock_http, no_sleep):
        calls = []
        mock_http(spotify_handler([httpx.Response(429) for _ in range(4)], calls))
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(search_artist("Fisher", AppTokenProvider("id", "secret")))
        assert len(no_sleep) == spotify_client.MAX_RATE_LIMIT_RETRIES


class TestSpotifyClient:

    def test_bearer_token_and_params(self, mock_http):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"items": []})

        mock_http(handler)
        asyncio.run(SpotifyClient("user-token").get_top_artists("short_term", 10))
        assert seen[0].headers["Authorization"] == "Bearer user-token"
        assert seen[0].url.params["time_range"] == "short_term"
        assert seen[0].url.path.endswith("/me/top/artists")

    def test_http_errors_propagate(self, mock_http):
        mock_http(lambda request: httpx.Response(401))
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(SpotifyClient("expired").get_current_user())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
