"""
Multi-source event aggregator.

Fetches Ticketmaster and EDMTrain concurrently, caches each provider's
result under the EVENTS TTL, fills in genres for lineup-only events from
artist inference, and persists what it found. When no provider returns
anything the static sample events are served instead.
"""
import asyncio
import dataclasses
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import cache
import database as db
from artist_relationships import ArtistRelationshipStore
from models import Event
from . import edmtrain, ticketmaster
from .samples import sample_events

logger = logging.getLogger(__name__)

MAX_ARTISTS_FOR_GENRES = 3


@dataclass
class EventFetchResult:
    events: list[Event]
    source: str                 # "api", "sample" or "error"
    providers: dict[str, int] = field(default_factory=dict)


async def _cached(key: str, fetch: Callable[[], Awaitable[list[Event]]]) -> list[Event]:
    """Provider events from the TTL cache, fetching and storing on a miss."""
    stored = cache.get_cached_data(key)
    if stored is not None:
        logger.info(f"[events] Using cached data for {key}")
        return [Event.from_dict(e) for e in stored]

    events = await fetch()
    if events:
        cache.set_cached_data(key, [e.to_dict() for e in events], "EVENTS")
    return events


async def _with_genres(event: Event, fallback_genre: str, store: ArtistRelationshipStore) -> Event:
    """Event with genres inferred from its headliners when the provider gave none."""
    if event.genres:
        return event

    genres: list[str] = []
    for artist in event.artists[:MAX_ARTISTS_FOR_GENRES]:
        for genre in await store.infer_genres(artist):
            if genre not in genres:
                genres.append(genre)

    if not genres and fallback_genre:
        genres = [fallback_genre.lower()]
    return dataclasses.replace(event, genres=genres)


async def fetch_events(
    city: str = "Toronto",
    genre: str = "electronic",
    artist_store: Optional[ArtistRelationshipStore] = None,
) -> EventFetchResult:
    """
    Events for a city from every provider.

    Returns:
        EventFetchResult whose source is "api" when any provider answered,
        "sample" when none had events, "error" when every provider failed.
    """
    store = artist_store if artist_store is not None else ArtistRelationshipStore()
    city_key = city.strip().lower()
    genre_key = genre.strip().lower()

    tasks = [
        ("ticketmaster", _cached(
            f"ticketmaster_{city_key}_{genre_key}",
            lambda: ticketmaster.search_ticketmaster(city, genre),
        )),
        ("edmtrain", _cached(
            f"edmtrain_{city_key}",
            lambda: edmtrain.search_edmtrain(city),
        )),
    ]

    results = await asyncio.gather(*[t[1] for t in tasks], return_exceptions=True)

    combined: list[Event] = []
    providers: dict[str, int] = {}
    failures = 0

    for (source_name, _), result in zip(tasks, results):
        if isinstance(result, Exception):
            logger.warning(f"[events] {source_name} fetch failed: {result}")
            failures += 1
            providers[source_name] = 0
            continue
        providers[source_name] = len(result)
        combined.extend(result)

    logger.info(f"[events] {city}: " + ", ".join(f"{k}={v}" for k, v in providers.items()))

    if not combined:
        source = "error" if failures == len(tasks) else "sample"
        return EventFetchResult(events=sample_events(), source=source, providers=providers)

    seen = set()
    unique = []
    for event in combined:
        if event.id not in seen:
            seen.add(event.id)
            unique.append(event)

    enriched = await asyncio.gather(*(_with_genres(e, genre, store) for e in unique), return_exceptions=True)
    events = []
    for event, result in zip(unique, enriched):
        if isinstance(result, Exception):
            logger.warning(f"[events] Genre inference failed for {event.id}: {result}")
            result = event
        events.append(result)
    events.sort(key=lambda e: (e.date or "9999", e.time or ""))

    try:
        db.upsert_events([e.to_dict() for e in events])
    except sqlite3.Error as e:
        logger.error(f"[events] Could not persist events: {e}")

    return EventFetchResult(events=events, source="api", providers=providers)
