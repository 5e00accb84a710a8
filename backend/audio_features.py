"""
Sound characteristics for events.

Tiers, first hit wins:
1. In-process cache (24h)
2. Live ReccoBeats lookup for the headliner (only with RECCOBEATS_API_KEY)
3. Genre profile estimation for the event's primary genre
4. Metadata inference from the lineup, which itself degrades to a
   fixed demo profile
"""
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import httpx

from config import RECCOBEATS_API_KEY, RECCOBEATS_API_BASE, UPSTREAM_TIMEOUT
from metadata_inference import MetadataInferenceEngine, TrackMetadata
from models import Event

logger = logging.getLogger(__name__)

CACHE_SECONDS = 24 * 60 * 60
LIVE_CONFIDENCE = 0.9

GENRE_PROFILES = {
    # Electronic genres
    "house": {"energy": 0.8, "danceability": 0.9, "valence": 0.7, "tempo": 125, "confidence": 0.75},
    "techno": {"energy": 0.9, "danceability": 0.8, "valence": 0.6, "tempo": 130, "confidence": 0.75},
    "trance": {"energy": 0.8, "danceability": 0.7, "valence": 0.8, "tempo": 135, "confidence": 0.75},
    "dubstep": {"energy": 0.95, "danceability": 0.8, "valence": 0.5, "tempo": 140, "confidence": 0.75},
    "progressive house": {"energy": 0.75, "danceability": 0.85, "valence": 0.75, "tempo": 125, "confidence": 0.75},
    "deep house": {"energy": 0.7, "danceability": 0.9, "valence": 0.8, "tempo": 120, "confidence": 0.75},
    "tech house": {"energy": 0.85, "danceability": 0.9, "valence": 0.7, "tempo": 125, "confidence": 0.75},
    "electro house": {"energy": 0.9, "danceability": 0.9, "valence": 0.8, "tempo": 128, "confidence": 0.75},
    "big room": {"energy": 0.95, "danceability": 0.85, "valence": 0.8, "tempo": 130, "confidence": 0.75},
    "future house": {"energy": 0.8, "danceability": 0.9, "valence": 0.8, "tempo": 125, "confidence": 0.75},
    "drum and bass": {"energy": 0.9, "danceability": 0.8, "valence": 0.6, "tempo": 175, "confidence": 0.75},
    "dnb": {"energy": 0.9, "danceability": 0.8, "valence": 0.6, "tempo": 175, "confidence": 0.75},
    "hardstyle": {"energy": 0.95, "danceability": 0.8, "valence": 0.7, "tempo": 150, "confidence": 0.75},
    "trap": {"energy": 0.8, "danceability": 0.85, "valence": 0.6, "tempo": 140, "confidence": 0.75},
    "electronic": {"energy": 0.7, "danceability": 0.8, "valence": 0.7, "tempo": 120, "confidence": 0.6},
    "dance": {"energy": 0.8, "danceability": 0.9, "valence": 0.8, "tempo": 125, "confidence": 0.6},
    "edm": {"energy": 0.85, "danceability": 0.85, "valence": 0.75, "tempo": 128, "confidence": 0.6},
    "electro": {"energy": 0.8, "danceability": 0.8, "valence": 0.7, "tempo": 125, "confidence": 0.6},
    "electronica": {"energy": 0.6, "danceability": 0.7, "valence": 0.6, "tempo": 115, "confidence": 0.6},
    "ambient": {"energy": 0.3, "danceability": 0.4, "valence": 0.6, "tempo": 90, "confidence": 0.6},

    # Everything else
    "hip hop": {"energy": 0.7, "danceability": 0.8, "valence": 0.6, "tempo": 95, "confidence": 0.6},
    "jazz": {"energy": 0.4, "danceability": 0.5, "valence": 0.7, "tempo": 110, "confidence": 0.6},
    "rock": {"energy": 0.8, "danceability": 0.5, "valence": 0.6, "tempo": 120, "confidence": 0.6},
    "pop": {"energy": 0.7, "danceability": 0.7, "valence": 0.8, "tempo": 115, "confidence": 0.6},
    "country": {"energy": 0.5, "danceability": 0.6, "valence": 0.7, "tempo": 100, "confidence": 0.6},
    "folk": {"energy": 0.4, "danceability": 0.5, "valence": 0.7, "tempo": 95, "confidence": 0.6},
    "classical": {"energy": 0.3, "danceability": 0.2, "valence": 0.6, "tempo": 80, "confidence": 0.6},
}

FALLBACK_SOURCES = {"genre_based_estimation", "metadata_inference"}


class AudioFeaturesService:
    """Resolves sound characteristics for an event through the tiers above."""

    def __init__(
        self,
        inference: Optional[MetadataInferenceEngine] = None,
        api_key: str = RECCOBEATS_API_KEY,
        clock=time.monotonic,
    ):
        self.inference = inference if inference is not None else MetadataInferenceEngine()
        self.api_key = api_key
        self.clock = clock
        self._cache: dict[str, tuple[float, dict]] = {}
        self._stats = {
            "total_requests": 0,
            "live_data_fetches": 0,
            "fallback_usages": 0,
            "errors": 0,
            "auth_errors": 0,
            "last_error": None,
            "last_error_code": None,
            "last_successful_fetch": None,
        }

    @property
    def api_enabled(self) -> bool:
        return bool(self.api_key)

    async def event_features(self, event: Event) -> dict:
        """Sound characteristics for an event. Never raises."""
        self._stats["total_requests"] += 1

        key = self.cache_key(event)
        cached = self._from_cache(key)
        if cached is not None:
            return cached

        if self.api_enabled and event.artists:
            live = await self._live_features(event.artists[0])
            if live:
                self._stats["live_data_fetches"] += 1
                self._stats["last_successful_fetch"] = live["data_freshness"]
                self._store(key, live)
                return live

        self._stats["fallback_usages"] += 1
        genre = event.primary_genre.lower().strip()
        if genre in GENRE_PROFILES:
            estimated = self.genre_features(genre)
        else:
            track = TrackMetadata(name=event.name, artists=list(event.artists), genres=list(event.genres))
            estimated = (await self.inference.infer(track)).to_dict()
            estimated["data_freshness"] = _utc_now()

        self._store(key, estimated)
        return estimated

    async def _live_features(self, artist_name: str) -> Optional[dict]:
        """Headliner -> first catalogue track -> its audio features."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-API-Key": self.api_key,
        }

        try:
            async with httpx.AsyncClient(
                base_url=RECCOBEATS_API_BASE, headers=headers, timeout=UPSTREAM_TIMEOUT
            ) as client:
                response = await client.get("/search/artist", params={"q": artist_name})
                response.raise_for_status()
                artists = response.json().get("artists") or []
                if not artists:
                    return None

                response = await client.get(f"/artist/{artists[0]['id']}/tracks")
                response.raise_for_status()
                tracks = response.json().get("tracks") or []
                if not tracks:
                    return None
                track = tracks[0]

                response = await client.get(f"/track/{track['id']}/audio-features")
                response.raise_for_status()
                features = response.json()
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            self._record_error(f"ReccoBeats returned {code}", code)
            if code in (401, 403):
                self._stats["auth_errors"] += 1
            return None
        except (httpx.HTTPError, ValueError, KeyError) as e:
            self._record_error(f"ReccoBeats lookup failed: {e}")
            return None

        return {
            "energy": features.get("energy") or 0.5,
            "danceability": features.get("danceability") or 0.5,
            "valence": features.get("valence") or 0.5,
            "tempo": features.get("tempo") or 120,
            "acousticness": features.get("acousticness") or 0.1,
            "instrumentalness": features.get("instrumentalness") or 0.5,
            "speechiness": features.get("speechiness") or 0.1,
            "confidence": LIVE_CONFIDENCE,
            "source": "reccobeats_api",
            "data_freshness": _utc_now(),
            "artist_name": artist_name,
            "track_name": track.get("name", ""),
        }

    def _record_error(self, message: str, code: Optional[int] = None):
        logger.warning(f"[audio] {message}")
        self._stats["errors"] += 1
        self._stats["last_error"] = message
        self._stats["last_error_code"] = code

    def genre_features(self, genre: str) -> dict:
        """Static profile for a genre, electronic when unknown."""
        normalized = (genre or "").lower().strip()
        profile = GENRE_PROFILES.get(normalized, GENRE_PROFILES["electronic"])
        return {
            "energy": profile["energy"],
            "danceability": profile["danceability"],
            "valence": profile["valence"],
            "tempo": profile["tempo"],
            "acousticness": 0.1,
            "instrumentalness": 0.5,
            "speechiness": 0.1,
            "confidence": profile["confidence"],
            "source": "genre_based_estimation",
            "data_freshness": _utc_now(),
            "genre": normalized,
            "error_code": self._stats["last_error_code"],
            "error_message": self._stats["last_error"],
        }

    # =========================================================================
    # CACHE
    # =========================================================================

    @staticmethod
    def cache_key(event: Event) -> str:
        return f"{','.join(event.artists)}_{event.primary_genre or 'unknown'}".lower()

    def _from_cache(self, key: str) -> Optional[dict]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, data = entry
        if self.clock() - stored_at < CACHE_SECONDS:
            return data
        del self._cache[key]
        return None

    def _store(self, key: str, data: dict):
        self._cache[key] = (self.clock(), data)

    # =========================================================================
    # REPORTING
    # =========================================================================

    def freshness_indicator(self, features: dict) -> dict:
        """UI label describing where a set of features came from."""
        source = features.get("source")

        if source == "reccobeats_api":
            fetched = features.get("data_freshness")
            minutes = 0
            if fetched:
                age = datetime.now(timezone.utc) - datetime.fromisoformat(fetched)
                minutes = int(age.total_seconds() // 60)
            return {
                "label": "Live",
                "tooltip": f"Fetched {minutes} minutes ago from ReccoBeats API",
                "status": "live",
            }

        if source in FALLBACK_SOURCES:
            tooltip = f"Estimated from {features.get('genre') or 'event metadata'}"
            if features.get("error_code") and features.get("error_message"):
                tooltip += f" (API Error {features['error_code']}: {features['error_message']})"
            return {"label": "Fallback", "tooltip": tooltip, "status": "fallback"}

        return {"label": "Unknown", "tooltip": "Unknown data source", "status": "unknown"}

    def stats(self) -> dict:
        total = self._stats["total_requests"]
        return {
            **self._stats,
            "success_rate": round(self._stats["live_data_fetches"] / total * 100) if total else 0,
            "auth_error_rate": round(self._stats["auth_errors"] / total * 100) if total else 0,
            "cache_size": len(self._cache),
            "api_key_configured": self.api_enabled,
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
