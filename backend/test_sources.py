"""
Tests for event sources and the aggregator.

Run with: pytest test_sources.py -v
"""
import asyncio

import aiohttp
import httpx
import pytest

import cache
import spotify_client
from artist_relationships import ArtistRelationshipStore
from models import Event
from spotify_client import AppTokenProvider
from sources import edmtrain, ticketmaster
from sources import SAMPLE_EVENTS, fetch_events, location_id_for, sample_events

TM_EVENT = {
    "id": "tm-1",
    "name": "Fisher",
    "url": "https://www.ticketmaster.ca/event/tm-1",
    "images": [{"url": "https://img/tm-1.jpg"}],
    "dates": {"start": {"localDate": "2026-11-14", "localTime": "21:00:00"}},
    "classifications": [{
        "genre": {"name": "Dance/Electronic"},
        "subGenre": {"name": "Undefined"},
    }],
    "priceRanges": [{"min": 45.0, "max": 89.5, "currency": "CAD"}],
    "_embedded": {
        "venues": [{"name": "Rebel", "city": {"name": "Toronto"}}],
        "attractions": [{"name": "Fisher"}, {"name": "Chris Lake"}],
    },
}

EDMTRAIN_EVENT = {
    "id": 555,
    "name": None,
    "date": "2026-11-20",
    "link": "https://edmtrain.com/toronto/event/555",
    "venue": {"name": "CODA"},
    "artistList": [{"name": "Deadmau5", "img": "https://img/deadmau5.jpg"}, {"name": "Rezz"}],
}


# =========================================================================
# TICKETMASTER
# =========================================================================

class TestTicketmaster:

    def test_parse_event(self):
        event = ticketmaster.parse_event(TM_EVENT, "Toronto")
        assert event.id == "tm-1"
        assert event.venue == "Rebel"
        assert event.date == "2026-11-14"
        assert event.genres == ["dance/electronic"]
        assert event.artists == ["Fisher", "Chris Lake"]
        assert event.price == "45.00-89.50 CAD"
        assert event.source == "ticketmaster"

    def test_parse_sparse_event(self):
        event = ticketmaster.parse_event({"id": "x", "name": "Bare"}, "Ottawa")
        assert event.city == "Ottawa"
        assert event.genres == []
        assert event.price == ""
        assert event.url == ticketmaster.DEFAULT_URL

    def test_no_key_returns_nothing(self):
        assert asyncio.run(ticketmaster.search_ticketmaster("Toronto", api_key="")) == []

    def test_search(self, mock_http):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={"_embedded": {"events": [TM_EVENT, {"name": "no id"}]}})

        mock_http(handler)
        events = asyncio.run(ticketmaster.search_ticketmaster("Toronto", "house", api_key="key"))
        assert [e.id for e in events] == ["tm-1"]
        assert seen["classificationName"] == "house"
        assert seen["city"] == "Toronto"

    def test_rate_limit_returns_nothing(self, mock_http):
        mock_http(lambda request: httpx.Response(429))
        assert asyncio.run(ticketmaster.search_ticketmaster("Toronto", api_key="key")) == []

    def test_network_error_returns_nothing(self, mock_http):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        mock_http(handler)
        assert asyncio.run(ticketmaster.search_ticketmaster("Toronto", api_key="key")) == []


# =========================================================================
# EDMTRAIN
# =========================================================================

class TestEdmtrain:

    def test_location_ids(self):
        assert location_id_for("Vancouver") == "147"
        assert location_id_for("  new york ") == "99"
        assert location_id_for("Reykjavik") == "146"

    def test_parse_event(self):
        event = edmtrain.parse_event(EDMTRAIN_EVENT, "Toronto")
        assert event.id == "edmtrain-555"
        assert event.name == "Deadmau5, Rezz"
        assert event.time == "20:00:00"
        assert event.genres == []
        assert event.image == "https://img/deadmau5.jpg"

    def test_no_key_returns_nothing(self):
        assert asyncio.run(edmtrain.search_edmtrain("Toronto", api_key="")) == []

    def test_client_error_returns_nothing(self, monkeypatch):
        def broken_session(*args, **kwargs):
            raise aiohttp.ClientConnectionError("down")

        monkeypatch.setattr(edmtrain.aiohttp, "ClientSession", broken_session)
        assert asyncio.run(edmtrain.search_edmtrain("Toronto", api_key="key")) == []

    def test_timeout_returns_nothing(self, monkeypatch):
        def slow_session(*args, **kwargs):
            raise asyncio.TimeoutError()

        monkeypatch.setattr(edmtrain.aiohttp, "ClientSession", slow_session)
        assert asyncio.run(edmtrain.search_edmtrain("Toronto", api_key="key")) == []


# =========================================================================
# AGGREGATOR
# =========================================================================

class FakeProvider:
    def __init__(self, events=None, error=None):
        self.events = events or []
        self.error = error
        self.calls = 0

    async def __call__(self, *args):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.events)


@pytest.fixture
def providers(monkeypatch):
    def install(tm, edm):
        monkeypatch.setattr(ticketmaster, "search_ticketmaster", tm)
        monkeypatch.setattr(edmtrain, "search_edmtrain", edm)
        return tm, edm
    return install


class TestAggregator:
    """Fan-out, fallbacks, enrichment and persistence."""

    def test_samples_when_nothing_found(self, offline_store, providers):
        providers(FakeProvider(), FakeProvider())
        result = asyncio.run(fetch_events("Toronto", artist_store=offline_store))
        assert result.source == "sample"
        assert result.events == SAMPLE_EVENTS

    def test_error_when_every_provider_fails(self, offline_store, providers):
        providers(FakeProvider(error=RuntimeError("tm down")), FakeProvider(error=RuntimeError("edm down")))
        result = asyncio.run(fetch_events("Toronto", artist_store=offline_store))
        assert result.source == "error"
        assert len(result.events) == len(SAMPLE_EVENTS)

    def test_one_failure_keeps_the_rest(self, offline_store, providers):
        edm_event = edmtrain.parse_event(EDMTRAIN_EVENT, "Toronto")
        providers(FakeProvider(error=RuntimeError("tm down")), FakeProvider([edm_event]))
        result = asyncio.run(fetch_events("Toronto", artist_store=offline_store))
        assert result.source == "api"
        assert result.providers == {"ticketmaster": 0, "edmtrain": 1}
        assert [e.id for e in result.events] == ["edmtrain-555"]

    def test_genres_inferred_from_lineup(self, offline_store, providers):
        edm_event = edmtrain.parse_event(EDMTRAIN_EVENT, "Toronto")
        providers(FakeProvider(), FakeProvider([edm_event]))
        result = asyncio.run(fetch_events("Toronto", artist_store=offline_store))
        genres = result.events[0].genres
        assert genres[:3] == ["progressive house", "electro house", "techno"]

    def test_requested_genre_when_no_lineup(self, offline_store, providers):
        bare = Event(id="bare", name="Mystery", date="2026-12-01")
        providers(FakeProvider([bare]), FakeProvider())
        result = asyncio.run(fetch_events("Toronto", "House", artist_store=offline_store))
        assert result.events[0].genres == ["house"]

    def test_dedup_sort_and_persist(self, offline_store, providers, temp_db):
        late = Event(id="late", name="Late", city="Toronto", date="2026-12-20", genres=["techno"])
        early = Event(id="early", name="Early", city="Toronto", date="2026-11-01", genres=["house"])
        providers(FakeProvider([late, early]), FakeProvider([early]))
        result = asyncio.run(fetch_events("Toronto", artist_store=offline_store))
        assert [e.id for e in result.events] == ["early", "late"]
        assert temp_db.count_events("toronto") == 2

    def test_provider_results_are_cached(self, offline_store, providers):
        event = Event(id="e1", name="Cached", genres=["techno"])
        tm, edm = providers(FakeProvider([event]), FakeProvider())
        asyncio.run(fetch_events("Toronto", artist_store=offline_store))
        again = asyncio.run(fetch_events("toronto", artist_store=offline_store))
        assert tm.calls == 1
        # Empty results are not cached
        assert edm.calls == 2
        assert [e.id for e in again.events] == ["e1"]
        assert cache.get_cached_data("ticketmaster_toronto_electronic")[0]["id"] == "e1"

    def test_unreadable_artist_search_keeps_api_result(self, temp_db, providers, mock_http, monkeypatch):
        search_responses = [
            httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}),
            httpx.Response(200, text="<html>oops</html>"),
        ]

        def handler(request):
            if request.url.path.endswith("/api/token"):
                return httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600})
            return search_responses.pop(0)

        async def fake_sleep(delay):
            pass

        mock_http(handler)
        monkeypatch.setattr(spotify_client.asyncio, "sleep", fake_sleep)
        store = ArtistRelationshipStore(lastfm_api_key="", spotify_tokens=AppTokenProvider("id", "secret"))
        bare = Event(id="bare", name="Night", date="2026-12-01", artists=["DJ Somebody"])
        providers(FakeProvider([bare]), FakeProvider())

        result = asyncio.run(fetch_events("Toronto", artist_store=store))
        assert result.source == "api"
        assert result.events[0].genres == ["electronic", "house"]

    def test_genre_failure_keeps_event(self, offline_store, providers, monkeypatch):
        async def broken_infer(name):
            raise RuntimeError("boom")

        monkeypatch.setattr(offline_store, "infer_genres", broken_infer)
        bare = Event(id="bare", name="Night", date="2026-12-01", artists=["Somebody"])
        providers(FakeProvider([bare]), FakeProvider())

        result = asyncio.run(fetch_events("Toronto", artist_store=offline_store))
        assert result.source == "api"
        assert [e.id for e in result.events] == ["bare"]
        assert result.events[0].genres == []

    def test_sample_events_are_copies(self):
        events = sample_events()
        events.clear()
        assert len(SAMPLE_EVENTS) == 6


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
