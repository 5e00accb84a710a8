"""
Ticketmaster Discovery API v2 source.

Searches events by classification (genre) and city, soonest first.
Genres come from the event classification and artists from the attached
attractions. Any upstream failure is logged and yields no events.
"""
import logging
from typing import Optional

import httpx

from config import TICKETMASTER_API_KEY, TICKETMASTER_API_BASE, UPSTREAM_TIMEOUT
from models import Event

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
DEFAULT_URL = "https://www.ticketmaster.ca/electronic-dance-music-tickets/category/10001"


def _classification_genres(event: dict) -> list[str]:
    genres = []
    for classification in event.get("classifications") or []:
        for level in ("genre", "subGenre"):
            name = (classification.get(level) or {}).get("name", "")
            if name and name.lower() != "undefined" and name.lower() not in genres:
                genres.append(name.lower())
    return genres


def _price(event: dict) -> str:
    ranges = event.get("priceRanges") or []
    if not ranges:
        return ""
    low = ranges[0].get("min")
    high = ranges[0].get("max")
    currency = ranges[0].get("currency", "")
    if low is None:
        return ""
    if high is None or high == low:
        return f"{low:.2f} {currency}".strip()
    return f"{low:.2f}-{high:.2f} {currency}".strip()


def parse_event(event: dict, city: str) -> Event:
    """Normalise one Discovery API event."""
    embedded = event.get("_embedded") or {}
    venue = (embedded.get("venues") or [{}])[0]
    start = (event.get("dates") or {}).get("start") or {}
    images = event.get("images") or [{}]

    return Event(
        id=event.get("id", ""),
        name=event.get("name", ""),
        venue=venue.get("name", ""),
        city=(venue.get("city") or {}).get("name") or city,
        date=start.get("localDate", ""),
        time=start.get("localTime", ""),
        genres=_classification_genres(event),
        artists=[a["name"] for a in embedded.get("attractions") or [] if a.get("name")],
        price=_price(event),
        url=event.get("url") or DEFAULT_URL,
        image=images[0].get("url", ""),
        source="ticketmaster",
    )


async def search_ticketmaster(
    city: str,
    genre: str = "electronic",
    api_key: Optional[str] = None,
    size: int = PAGE_SIZE,
) -> list[Event]:
    """Upcoming events for a city and genre. Empty when unconfigured or on error."""
    api_key = api_key if api_key is not None else TICKETMASTER_API_KEY
    if not api_key:
        logger.info("[ticketmaster] API key not set")
        return []

    params = {
        "apikey": api_key,
        "classificationName": genre,
        "city": city,
        "sort": "date,asc",
        "size": size,
    }

    try:
        async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
            response = await client.get(f"{TICKETMASTER_API_BASE}/events.json", params=params)
    except httpx.HTTPError as e:
        logger.warning(f"[ticketmaster] Request failed: {e}")
        return []

    if response.status_code == 429:
        logger.warning("[ticketmaster] Rate limit exceeded")
        return []
    if response.status_code != 200:
        logger.warning(f"[ticketmaster] API error: {response.status_code}")
        return []

    events = (response.json().get("_embedded") or {}).get("events") or []
    return [parse_event(e, city) for e in events if e.get("id")]
