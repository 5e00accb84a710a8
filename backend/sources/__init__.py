"""
Event sources for Event Match.

- Ticketmaster: Discovery API v2, searched by genre and city
- EDMTrain: electronic shows by location id
- Samples: static events served when no provider answers

The aggregator fans out to every provider concurrently.
"""
from .ticketmaster import search_ticketmaster
from .edmtrain import search_edmtrain, location_id_for
from .samples import sample_events, SAMPLE_EVENTS
from .aggregator import fetch_events, EventFetchResult

__all__ = [
    "search_ticketmaster",
    "search_edmtrain",
    "location_id_for",
    "sample_events",
    "SAMPLE_EVENTS",
    "fetch_events",
    "EventFetchResult",
]
