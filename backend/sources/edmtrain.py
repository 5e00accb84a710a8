"""
EDMTrain source.

EDMTrain lists electronic shows by location id rather than city name, so
cities are mapped through LOCATION_IDS (Toronto when unknown). Events
carry a lineup but no genres; the aggregator infers those from the artists.
"""
import asyncio
import logging
from typing import Optional

import aiohttp

from config import EDMTRAIN_API_KEY, EDMTRAIN_API_BASE, UPSTREAM_TIMEOUT
from models import Event

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_ID = "146"
DEFAULT_TIME = "20:00:00"
LOGO_URL = "https://edmtrain-public.s3.us-east-2.amazonaws.com/img/logos/edmtrain-logo-tag.png"

LOCATION_IDS = {
    "toronto": "146",
    "vancouver": "147",
    "montreal": "96",
    "calgary": "28",
    "ottawa": "106",
    "edmonton": "47",
    "winnipeg": "156",
    "new york": "99",
    "los angeles": "87",
    "chicago": "35",
    "san francisco": "125",
    "boston": "23",
    "seattle": "128",
    "miami": "93",
    "denver": "43",
    "austin": "16",
    "las vegas": "85",
}


def location_id_for(city: str) -> str:
    return LOCATION_IDS.get((city or "").strip().lower(), DEFAULT_LOCATION_ID)


def parse_event(event: dict, city: str) -> Event:
    artists = [a["name"] for a in event.get("artistList") or [] if a.get("name")]
    first = (event.get("artistList") or [{}])[0]
    return Event(
        id=f"edmtrain-{event.get('id')}",
        name=event.get("name") or ", ".join(artists),
        venue=(event.get("venue") or {}).get("name", ""),
        city=city,
        date=event.get("date", ""),
        time=event.get("startTime") or DEFAULT_TIME,
        artists=artists,
        url=event.get("link") or f"https://edmtrain.com/{city.lower().replace(' ', '-')}",
        image=first.get("img") or LOGO_URL,
        source="edmtrain",
    )


async def search_edmtrain(city: str, api_key: Optional[str] = None) -> list[Event]:
    """Upcoming shows in a city. Empty when unconfigured or on error."""
    api_key = api_key if api_key is not None else EDMTRAIN_API_KEY
    if not api_key:
        logger.info("[edmtrain] API key not set")
        return []

    url = f"{EDMTRAIN_API_BASE}/events"
    params = {"locationIds": location_id_for(city)}
    headers = {"Authorization": api_key}
    timeout = aiohttp.ClientTimeout(total=UPSTREAM_TIMEOUT)

    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, params=params, headers=headers) as resp:
                if resp.status == 429:
                    logger.warning("[edmtrain] Rate limit exceeded")
                    return []
                if resp.status != 200:
                    logger.warning(f"[edmtrain] API error: {resp.status}")
                    return []
                data = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"[edmtrain] Request failed: {e}")
        return []

    return [parse_event(e, city) for e in data.get("data") or [] if e.get("id") is not None]
