"""
Artist Relationship Store.

Answers "who sounds like this artist?" and "what genres does this artist
play?" for artists that may be unknown to the user's own listening data.

Similar-artist lookup order:
1. In-process cache
2. Hand-curated relationship table
3. Last.fm artist.getsimilar (only when LASTFM_API_KEY is set)
4. Word overlap against the curated artists, scaled down

Genre lookup order:
1. In-process cache
2. Persistent TTL cache (30 days)
3. Relationship table
4. Spotify catalogue search (client credentials)
5. Name heuristics

Every public lookup is best effort and never raises.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import httpx

import cache
from config import LASTFM_API_KEY, LASTFM_API_BASE, UPSTREAM_TIMEOUT
from spotify_client import AppTokenProvider, search_artist

logger = logging.getLogger(__name__)

PATTERN_SIMILARITY_SCALE = 0.6
DEFAULT_LASTFM_MATCH = 0.5
MIN_ARTIST_SIMILARITY = 0.1


@dataclass
class SimilarArtist:
    name: str
    similarity: float
    genres: list[str] = field(default_factory=list)


def _similar(*entries: tuple[str, float, list[str]]) -> list[SimilarArtist]:
    return [SimilarArtist(name, score, genres) for name, score, genres in entries]


# =========================================================================
# CURATED RELATIONSHIPS
# =========================================================================
FALLBACK_RELATIONSHIPS = {
    # Melodic techno
    "boris brejcha": {
        "similar": _similar(
            ("Ann Clue", 0.89, ["melodic techno", "minimal techno"]),
            ("Stephan Bodzin", 0.82, ["melodic techno", "progressive house"]),
            ("Mathame", 0.78, ["melodic techno", "progressive house"]),
            ("Tale Of Us", 0.75, ["melodic techno", "deep house"]),
        ),
        "genres": ["melodic techno", "minimal techno", "high tech minimal"],
    },
    "tale of us": {
        "similar": _similar(
            ("Artbat", 0.88, ["melodic house", "melodic techno"]),
            ("Mathame", 0.84, ["melodic techno", "progressive house"]),
            ("Mind Against", 0.81, ["melodic techno", "deep house"]),
            ("Agents Of Time", 0.77, ["melodic house", "deep house"]),
            ("Boris Brejcha", 0.75, ["melodic techno", "minimal techno"]),
        ),
        "genres": ["melodic techno", "deep house", "melodic house"],
    },
    "artbat": {
        "similar": _similar(
            ("Tale Of Us", 0.88, ["melodic techno", "deep house"]),
            ("Mathame", 0.85, ["melodic techno", "progressive house"]),
            ("Mind Against", 0.79, ["melodic techno", "deep house"]),
            ("Agents Of Time", 0.76, ["melodic house", "deep house"]),
            ("Adriatique", 0.73, ["deep house", "melodic house"]),
        ),
        "genres": ["melodic house", "melodic techno", "deep house"],
    },

    # Progressive house
    "deadmau5": {
        "similar": _similar(
            ("Eric Prydz", 0.85, ["progressive house", "tech house"]),
            ("Above & Beyond", 0.78, ["progressive house", "trance"]),
            ("Kaskade", 0.76, ["progressive house", "deep house"]),
            ("Porter Robinson", 0.73, ["progressive house", "electro house"]),
            ("Madeon", 0.73, ["electro house", "future bass"]),
            ("Rezz", 0.71, ["bass", "electro house"]),
        ),
        "genres": ["progressive house", "electro house", "techno"],
    },
    "eric prydz": {
        "similar": _similar(
            ("Deadmau5", 0.85, ["progressive house", "electro house"]),
            ("Above & Beyond", 0.82, ["progressive house", "trance"]),
            ("Kaskade", 0.79, ["progressive house", "deep house"]),
            ("Lane 8", 0.76, ["progressive house", "deep house"]),
            ("Yotto", 0.74, ["progressive house", "deep house"]),
        ),
        "genres": ["progressive house", "tech house", "techno"],
    },

    # Tech house
    "fisher": {
        "similar": _similar(
            ("Chris Lake", 0.89, ["tech house", "house"]),
            ("Walker & Royce", 0.84, ["tech house", "house"]),
            ("Claude VonStroke", 0.81, ["tech house", "house"]),
            ("Green Velvet", 0.78, ["tech house", "techno"]),
            ("Solardo", 0.76, ["tech house", "house"]),
        ),
        "genres": ["tech house", "house", "electronic"],
    },
    "chris lake": {
        "similar": _similar(
            ("Fisher", 0.89, ["tech house", "house"]),
            ("Walker & Royce", 0.86, ["tech house", "house"]),
            ("Claude VonStroke", 0.83, ["tech house", "house"]),
            ("Solardo", 0.79, ["tech house", "house"]),
            ("Green Velvet", 0.76, ["tech house", "techno"]),
        ),
        "genres": ["tech house", "house", "electronic"],
    },

    # Trance
    "ferry corsten": {
        "similar": _similar(
            ("Armin van Buuren", 0.88, ["trance", "progressive trance"]),
            ("Above & Beyond", 0.85, ["trance", "progressive house"]),
            ("Paul van Dyk", 0.82, ["trance", "progressive trance"]),
            ("Tiësto", 0.79, ["trance", "progressive house"]),
            ("Markus Schulz", 0.76, ["trance", "progressive trance"]),
        ),
        "genres": ["trance", "progressive trance", "uplifting trance"],
    },

    # Deep house
    "nora en pure": {
        "similar": _similar(
            ("Adriatique", 0.79, ["deep house", "melodic house"]),
            ("Yotto", 0.78, ["progressive house", "deep house"]),
            ("Lane 8", 0.76, ["progressive house", "deep house"]),
            ("Marsh", 0.74, ["progressive house", "deep house"]),
            ("Tinlicker", 0.72, ["progressive house", "deep house"]),
        ),
        "genres": ["deep house", "progressive house", "melodic house"],
    },
    "adriatique": {
        "similar": _similar(
            ("Nora En Pure", 0.79, ["deep house", "progressive house"]),
            ("Agents Of Time", 0.76, ["melodic house", "deep house"]),
            ("Mind Against", 0.74, ["melodic techno", "deep house"]),
            ("Artbat", 0.73, ["melodic house", "deep house"]),
            ("Tale Of Us", 0.71, ["melodic techno", "deep house"]),
        ),
        "genres": ["deep house", "melodic house", "progressive house"],
    },
}

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace ("Above & Beyond" -> "above beyond")."""
    stripped = _NON_WORD_RE.sub("", (name or "").lower())
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def infer_genres_from_pattern(name: str) -> list[str]:
    """Last-resort genre guess from the artist name alone."""
    lowered = (name or "").lower()
    if "dj" in lowered or "mc" in lowered:
        return ["electronic", "house"]
    if "bass" in lowered or "drop" in lowered:
        return ["bass", "dubstep"]
    if "tech" in lowered or "minimal" in lowered:
        return ["techno", "tech house"]
    return ["electronic"]


class ArtistRelationshipStore:
    """Similar-artist and artist-genre lookups with layered fallbacks."""

    def __init__(
        self,
        relationships: Optional[dict] = None,
        lastfm_api_key: str = LASTFM_API_KEY,
        spotify_tokens: Optional[AppTokenProvider] = None,
    ):
        source = relationships if relationships is not None else FALLBACK_RELATIONSHIPS
        self.relationships = {normalize_name(name): data for name, data in source.items()}
        self.lastfm_api_key = lastfm_api_key
        self.spotify_tokens = spotify_tokens if spotify_tokens is not None else AppTokenProvider()
        self._similar_cache: dict[str, list[SimilarArtist]] = {}
        self._genre_cache: dict[str, list[str]] = {}

    # =========================================================================
    # SIMILAR ARTISTS
    # =========================================================================

    async def similar_artists(self, name: str, limit: int = 5) -> list[SimilarArtist]:
        """Artists similar to name, strongest first. Empty list when nothing is known."""
        if not name:
            return []

        normalized = normalize_name(name)
        cached = self._similar_cache.get(normalized)
        if cached is not None:
            return cached[:limit]

        known = self.relationships.get(normalized)
        if known:
            similar = list(known.get("similar", []))
            self._similar_cache[normalized] = similar
            return similar[:limit]

        if self.lastfm_api_key:
            similar = await self._lastfm_similar(name, limit)
            if similar:
                self._similar_cache[normalized] = similar
                return similar[:limit]

        return self.find_similar_by_pattern(name, limit)

    async def _lastfm_similar(self, name: str, limit: int) -> list[SimilarArtist]:
        params = {
            "method": "artist.getsimilar",
            "artist": name,
            "api_key": self.lastfm_api_key,
            "format": "json",
            "limit": limit,
        }
        try:
            async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
                response = await client.get(LASTFM_API_BASE, params=params)
                response.raise_for_status()
                data = response.json()

            artists = data.get("similarartists", {}).get("artist", [])
            # Last.fm collapses a single result into an object
            if isinstance(artists, dict):
                artists = [artists]

            similar = []
            for artist in artists:
                if not isinstance(artist, dict):
                    continue
                try:
                    match = float(artist.get("match") or 0) or DEFAULT_LASTFM_MATCH
                except (TypeError, ValueError):
                    match = DEFAULT_LASTFM_MATCH
                similar.append(SimilarArtist(artist.get("name", ""), match, ["electronic"]))
            return similar
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as e:
            logger.warning(f"[artists] Last.fm lookup failed for {name!r}: {e}")
            return []

    def find_similar_by_pattern(self, name: str, limit: int = 5) -> list[SimilarArtist]:
        """Curated artists sharing a name word with name, similarity scaled by 0.6."""
        words = normalize_name(name).split(" ")
        matches = []

        for known_name, data in self.relationships.items():
            known_words = known_name.split(" ")
            common = [
                word for word in words
                if len(word) > 2 and any(
                    word == known or word in known or known in word
                    for known in known_words
                )
            ]
            if common:
                overlap = len(common) / max(len(words), len(known_words))
                matches.append(SimilarArtist(
                    known_name,
                    overlap * PATTERN_SIMILARITY_SCALE,
                    list(data.get("genres") or ["electronic"]),
                ))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    # =========================================================================
    # ARTIST GENRES
    # =========================================================================

    async def infer_genres(self, name: str) -> list[str]:
        """Best-known genre list for an artist. Always returns at least one genre."""
        if not name:
            return ["electronic"]

        normalized = normalize_name(name)
        if normalized in self._genre_cache:
            return self._genre_cache[normalized]

        stored = cache.get_cached_data(self._genre_key(normalized))
        if stored:
            self._genre_cache[normalized] = stored
            return stored

        known = self.relationships.get(normalized)
        if known:
            genres = list(known.get("genres") or ["electronic"])
            self._remember_genres(normalized, genres)
            return genres

        try:
            found = await search_artist(name, self.spotify_tokens)
        except (httpx.HTTPError, ValueError, KeyError, AttributeError) as e:
            logger.warning(f"[artists] Spotify search failed for {name!r}: {e}")
            found = None

        if isinstance(found, dict) and found.get("genres"):
            genres = list(found["genres"])
            logger.info(f"[artists] Spotify genres for {name}: {', '.join(genres)}")
            self._remember_genres(normalized, genres)
            return genres

        genres = infer_genres_from_pattern(normalized)
        self._remember_genres(normalized, genres)
        return genres

    def _remember_genres(self, normalized: str, genres: list[str]):
        self._genre_cache[normalized] = genres
        cache.set_cached_data(self._genre_key(normalized), genres, "ARTIST_GENRES")

    @staticmethod
    def _genre_key(normalized: str) -> str:
        return f"artist_genres:{normalized}"

    def _known_genres(self, normalized: str) -> Optional[list[str]]:
        if normalized in self._genre_cache:
            return self._genre_cache[normalized]
        return cache.get_cached_data(self._genre_key(normalized))

    # =========================================================================
    # SCORING
    # =========================================================================

    def artist_similarity(
        self, user_artist: str, event_artist: str, user_genres: Optional[list[str]] = None,
    ) -> float:
        """
        Similarity in [0.1, 1] between two artists.

        Identical names -> 1.0. Both genre lists known -> Jaccard overlap,
        floored at 0.1. Otherwise the curated similarity, otherwise 0.1.
        user_genres, when given, stand in for the user artist's cached genres.
        """
        a = normalize_name(user_artist)
        b = normalize_name(event_artist)
        if a and a == b:
            return 1.0

        genres_a = user_genres or self._known_genres(a)
        genres_b = self._known_genres(b)

        if genres_a and genres_b:
            set_a = {g.lower() for g in genres_a}
            set_b = {g.lower() for g in genres_b}
            overlap = len(set_a & set_b) / len(set_a | set_b)
            return max(overlap, MIN_ARTIST_SIMILARITY)

        for similar in self.relationships.get(a, {}).get("similar", []):
            if normalize_name(similar.name) == b:
                return similar.similarity or DEFAULT_LASTFM_MATCH

        return MIN_ARTIST_SIMILARITY

    async def relationship_score(self, event_artists: list[str], user_top_artists: list) -> float:
        """
        0-100 score of how close an event lineup is to the user's artists.

        Each event artist contributes the user artist's weight on a direct
        match, otherwise the best similarity x weight among its similar
        artists. user_top_artists items need .name and .weight.
        """
        if not event_artists or not user_top_artists:
            return 0.0

        by_name = {normalize_name(a.name): (a.weight or 1.0) for a in user_top_artists}
        total = 0.0

        for event_artist in event_artists:
            best = by_name.get(normalize_name(event_artist), 0.0)

            if best == 0:
                for similar in await self.similar_artists(event_artist, 10):
                    weight = by_name.get(normalize_name(similar.name))
                    if weight is not None:
                        best = max(best, (similar.similarity or DEFAULT_LASTFM_MATCH) * weight)

            total += best

        return total / len(event_artists) * 100

    def stats(self) -> dict:
        return {
            "curated_artists": len(self.relationships),
            "cached_similar_lookups": len(self._similar_cache),
            "cached_artist_genres": len(self._genre_cache),
            "lastfm_configured": bool(self.lastfm_api_key),
            "spotify_configured": self.spotify_tokens.configured,
        }

