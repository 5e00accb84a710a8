"""
Metadata Inference Fallback.

Estimates audio features for a track when no measured features are
available. The estimate starts from the primary genre's base profile and
layers weighted adjustments from four factor groups:

- genre (0.4): secondary genres pulling the profile toward their own base
- artist (0.3): base profiles of the primary artist's similar artists
- track (0.2): name patterns, duration bucket and popularity tier
- temporal (0.1): release era

A small uniform jitter is added to every feature so that tracks sharing
the same metadata do not collapse onto one identical profile. Pass a
seeded random.Random for reproducible output.
"""
import logging
import random
import re
import time
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Optional

from artist_relationships import ArtistRelationshipStore

logger = logging.getLogger(__name__)

UNIT_FEATURES = ("energy", "danceability", "valence")
MIXED_FEATURES = UNIT_FEATURES + ("tempo",)

FACTOR_WEIGHTS = {
    "genre": 0.4,
    "artist": 0.3,
    "track": 0.2,
    "temporal": 0.1,
}

UNIT_JITTER = 0.1       # total span, i.e. +/-0.05
TEMPO_JITTER = 10       # total span, i.e. +/-5 BPM
SPEECHINESS_JITTER = 0.05
TEMPO_RANGE = (60, 200)
CONFIDENCE_RANGE = (0.3, 0.95)
CACHE_SECONDS = 5 * 60

GENRE_BASE_PROFILES = {
    "house": {"energy": 0.8, "danceability": 0.9, "valence": 0.7, "tempo": 125},
    "techno": {"energy": 0.9, "danceability": 0.8, "valence": 0.6, "tempo": 130},
    "deep house": {"energy": 0.7, "danceability": 0.9, "valence": 0.8, "tempo": 120},
    "tech house": {"energy": 0.85, "danceability": 0.9, "valence": 0.7, "tempo": 125},
    "progressive house": {"energy": 0.75, "danceability": 0.85, "valence": 0.75, "tempo": 125},
    "trance": {"energy": 0.8, "danceability": 0.7, "valence": 0.8, "tempo": 135},
    "ambient": {"energy": 0.3, "danceability": 0.4, "valence": 0.6, "tempo": 90},
    "electronic": {"energy": 0.7, "danceability": 0.8, "valence": 0.7, "tempo": 120},
}

NAME_PATTERNS = {
    "remix": re.compile(r"remix|rmx|rework|edit|bootleg", re.IGNORECASE),
    "extended": re.compile(r"extended|original mix|club mix", re.IGNORECASE),
    "radio": re.compile(r"radio edit|radio mix|radio version", re.IGNORECASE),
    "acoustic": re.compile(r"acoustic|unplugged|stripped", re.IGNORECASE),
    "live": re.compile(r"live|concert|session", re.IGNORECASE),
    "instrumental": re.compile(r"instrumental|karaoke", re.IGNORECASE),
}

PATTERN_IMPLICATIONS = {
    "remix": {"energy": 0.1, "danceability": 0.1},
    "extended": {"energy": 0.05, "danceability": 0.05},
    "radio": {"energy": -0.05, "valence": 0.05},
    "acoustic": {"acousticness": 0.4, "energy": -0.2, "instrumentalness": 0.1},
    "instrumental": {"instrumentalness": 0.5, "speechiness": -0.3},
}

EMERGENCY_PROFILE = {
    "energy": 0.7,
    "danceability": 0.8,
    "valence": 0.6,
    "tempo": 125,
    "acousticness": 0.1,
    "instrumentalness": 0.5,
    "speechiness": 0.1,
}


@dataclass
class TrackMetadata:
    """What we know about a track without measured audio features."""
    name: str
    artists: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    duration_ms: Optional[int] = None
    release_date: Optional[str] = None
    popularity: int = 0
    album: Optional[str] = None

    @classmethod
    def from_spotify(cls, track: dict) -> "TrackMetadata":
        """Build from a Spotify track object."""
        album = track.get("album") or {}
        artists = track.get("artists") or []
        genres = []
        for artist in artists:
            genres.extend(artist.get("genres") or [])
        return cls(
            name=track.get("name", ""),
            artists=[a.get("name", "") for a in artists if a.get("name")],
            genres=genres,
            duration_ms=track.get("duration_ms"),
            release_date=album.get("release_date"),
            popularity=track.get("popularity") or 0,
            album=album.get("name"),
        )


@dataclass
class InferredFeatures:
    energy: float
    danceability: float
    valence: float
    tempo: float
    acousticness: float
    instrumentalness: float
    speechiness: float
    confidence: float
    source: str = "metadata_inference"
    track_name: str = ""
    artist_name: str = ""
    factors: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _release_year(release_date: Optional[str]) -> Optional[int]:
    # Spotify dates come as YYYY, YYYY-MM or YYYY-MM-DD
    if not release_date:
        return None
    try:
        return int(str(release_date)[:4])
    except ValueError:
        return None


def era_name(year: int) -> str:
    if year < 2000:
        return "classic"
    if year < 2010:
        return "early_2000s"
    if year < 2020:
        return "modern"
    return "contemporary"


def popularity_tier(popularity: int) -> str:
    if popularity > 70:
        return "mainstream"
    if popularity > 40:
        return "popular"
    if popularity > 10:
        return "underground"
    return "niche"


def genre_base_profile(genre: str) -> dict:
    """Base energy/danceability/valence/tempo for a genre, electronic when unknown."""
    return GENRE_BASE_PROFILES.get((genre or "").lower(), GENRE_BASE_PROFILES["electronic"])


class MetadataInferenceEngine:
    """Synthetic audio features from track metadata."""

    def __init__(
        self,
        artist_store: Optional[ArtistRelationshipStore] = None,
        rng: Optional[random.Random] = None,
        clock=time.monotonic,
    ):
        self.artist_store = artist_store if artist_store is not None else ArtistRelationshipStore()
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self._cache: dict[str, tuple[float, InferredFeatures]] = {}

    async def infer(self, track: TrackMetadata) -> InferredFeatures:
        """Estimated features for a track. Falls back to a fixed profile on any failure."""
        key = self.cache_key(track)
        cached = self._from_cache(key)
        if cached is not None:
            return cached

        try:
            factors = await self._gather_factors(track)
            features = self._calculate_features(factors)
            confidence = self._confidence(factors)
        except Exception as e:
            logger.error(f"[inference] Inference failed for {track.name!r}: {e}")
            return self.emergency_fallback(track)

        result = InferredFeatures(
            **features,
            confidence=round(confidence, 3),
            track_name=track.name,
            artist_name=track.artists[0] if track.artists else "",
            factors=factors["summary"],
        )
        self._cache[key] = (self.clock(), result)
        return result

    # =========================================================================
    # FACTOR ANALYSIS
    # =========================================================================

    async def _gather_factors(self, track: TrackMetadata) -> dict:
        genres = await self._analyze_genres(track)
        artists = await self._analyze_artists(track)
        track_factors = self._analyze_track(track)
        temporal = self._analyze_temporal(track)

        return {
            "genres": genres,
            "artists": artists,
            "track": track_factors,
            "temporal": temporal,
            "summary": {
                "primary_genre": genres["primary"],
                "genre_count": len(genres["genres"]),
                "artist_data_available": artists["has_data"],
                "name_patterns": track_factors["patterns"],
                "track_data_quality": track_factors["quality"],
                "era": temporal.get("era"),
                "popularity_tier": track_factors["popularity_tier"],
            },
        }

    async def _analyze_genres(self, track: TrackMetadata) -> dict:
        genres = list(track.genres)
        if not genres:
            for artist in track.artists:
                genres.extend(await self.artist_store.infer_genres(artist))

        unique = list(dict.fromkeys(g.lower() for g in genres if g))
        return {
            "genres": unique,
            "primary": unique[0] if unique else "electronic",
            "confidence": 0.8 if unique else 0.3,
        }

    async def _analyze_artists(self, track: TrackMetadata) -> dict:
        if not track.artists:
            return {"has_data": False, "similar": [], "confidence": 0.0}

        similar = await self.artist_store.similar_artists(track.artists[0], 5)
        return {
            "has_data": True,
            "similar": similar,
            "confidence": 0.9 if similar else 0.6,
        }

    def _analyze_track(self, track: TrackMetadata) -> dict:
        patterns = [
            kind for kind, pattern in NAME_PATTERNS.items()
            if track.name and pattern.search(track.name)
        ]

        implications: dict[str, float] = {}
        for kind in patterns:
            for feature, delta in PATTERN_IMPLICATIONS.get(kind, {}).items():
                implications[feature] = implications.get(feature, 0.0) + delta

        duration_confidence = 0.0
        if track.duration_ms:
            minutes = track.duration_ms / 60000
            duration_confidence = 0.6
            if minutes < 3:
                duration_delta = {"valence": 0.05, "energy": -0.05}
            elif minutes > 6:
                duration_delta = {"energy": 0.05, "danceability": 0.05, "instrumentalness": 0.1}
            else:
                duration_delta = {}
                duration_confidence = 0.3
            for feature, delta in duration_delta.items():
                implications[feature] = implications.get(feature, 0.0) + delta

        if track.popularity > 70:
            popularity_delta = {"valence": 0.1, "energy": 0.05, "speechiness": 0.02}
        elif track.popularity > 40:
            popularity_delta = {"valence": 0.05}
        else:
            popularity_delta = {"instrumentalness": 0.05, "energy": 0.05}
        for feature, delta in popularity_delta.items():
            implications[feature] = implications.get(feature, 0.0) + delta

        quality = 0.0
        if patterns:
            quality += 0.3
        if duration_confidence > 0:
            quality += 0.2
        if track.album:
            quality += 0.3
        if _release_year(track.release_date):
            quality += 0.2

        return {
            "patterns": patterns,
            "implications": implications,
            "quality": round(quality, 2),
            "popularity_tier": popularity_tier(track.popularity),
            "confidence": 0.7 if quality > 0.5 else 0.4,
        }

    def _analyze_temporal(self, track: TrackMetadata) -> dict:
        year = _release_year(track.release_date)
        if year is None:
            return {"implications": {}, "confidence": 0.0}

        if year < 2000:
            implications = {"energy": -0.1, "acousticness": 0.05, "instrumentalness": 0.1}
        elif year < 2010:
            implications = {"energy": 0.05, "danceability": 0.05}
        elif year < 2020:
            implications = {"energy": 0.1, "danceability": 0.1, "valence": 0.05}
        else:
            implications = {"energy": 0.05, "valence": 0.1}

        return {
            "year": year,
            "age": date.today().year - year,
            "era": era_name(year),
            "implications": implications,
            "confidence": 0.6,
        }

    # =========================================================================
    # FEATURE CALCULATION
    # =========================================================================

    def _genre_adjustments(self, genres: dict) -> dict:
        # Secondary genres pull the profile toward their own base
        base = genre_base_profile(genres["primary"])
        secondary = [g for g in genres["genres"][1:] if g in GENRE_BASE_PROFILES]
        return self._profile_shift(base, [genre_base_profile(g) for g in secondary])

    def _artist_adjustments(self, genres: dict, artists: dict) -> dict:
        base = genre_base_profile(genres["primary"])
        profiles = [
            genre_base_profile(s.genres[0]) for s in artists["similar"] if s.genres
        ]
        return self._profile_shift(base, profiles)

    @staticmethod
    def _profile_shift(base: dict, profiles: list[dict]) -> dict:
        if not profiles:
            return {}
        return {
            feature: sum(p[feature] for p in profiles) / len(profiles) - base[feature]
            for feature in MIXED_FEATURES
        }

    def _calculate_features(self, factors: dict) -> dict:
        base = genre_base_profile(factors["genres"]["primary"])
        adjustments = {
            "genre": self._genre_adjustments(factors["genres"]),
            "artist": self._artist_adjustments(factors["genres"], factors["artists"]),
            "track": factors["track"]["implications"],
            "temporal": factors["temporal"]["implications"],
        }

        features = {}
        for feature in MIXED_FEATURES:
            value = base[feature]
            for group, weight in FACTOR_WEIGHTS.items():
                value += adjustments[group].get(feature, 0.0) * weight

            if feature == "tempo":
                jittered = value + (self.rng.random() - 0.5) * TEMPO_JITTER
                features[feature] = round(_clamp(jittered, *TEMPO_RANGE), 1)
            else:
                jittered = value + (self.rng.random() - 0.5) * UNIT_JITTER
                features[feature] = round(_clamp(jittered, 0.0, 1.0), 3)

        patterns = factors["track"]["patterns"]

        acousticness = 0.1 + (0.4 if "acoustic" in patterns else 0.0)
        features["acousticness"] = self._jitter_unit(acousticness, UNIT_JITTER)

        instrumentalness = 0.5 + (0.4 if "instrumental" in patterns else 0.0)
        features["instrumentalness"] = self._jitter_unit(instrumentalness, UNIT_JITTER)

        speechiness = 0.1 + (0.05 if factors["track"]["popularity_tier"] == "mainstream" else 0.0)
        features["speechiness"] = self._jitter_unit(speechiness, SPEECHINESS_JITTER)

        return features

    def _jitter_unit(self, value: float, span: float) -> float:
        return round(_clamp(value + (self.rng.random() - 0.5) * span, 0.0, 1.0), 3)

    @staticmethod
    def _confidence(factors: dict) -> float:
        confidence = (
            factors["genres"]["confidence"] * FACTOR_WEIGHTS["genre"]
            + factors["artists"]["confidence"] * FACTOR_WEIGHTS["artist"]
            + factors["track"]["confidence"] * FACTOR_WEIGHTS["track"]
            + factors["temporal"]["confidence"] * FACTOR_WEIGHTS["temporal"]
        )
        return _clamp(confidence, *CONFIDENCE_RANGE)

    # =========================================================================
    # CACHE & FALLBACK
    # =========================================================================

    @staticmethod
    def cache_key(track: TrackMetadata) -> str:
        artist = track.artists[0] if track.artists else "unknown"
        title = track.name or "unknown"
        return re.sub(r"[^\w]", "_", f"{artist}_{title}".lower())

    def _from_cache(self, key: str) -> Optional[InferredFeatures]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        if self.clock() - stored_at < CACHE_SECONDS:
            return result
        del self._cache[key]
        return None

    @staticmethod
    def emergency_fallback(track: TrackMetadata) -> InferredFeatures:
        return InferredFeatures(
            **EMERGENCY_PROFILE,
            confidence=0.3,
            source="emergency_fallback",
            track_name=track.name,
            artist_name=track.artists[0] if track.artists else "",
        )
