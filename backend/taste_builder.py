"""
User Taste Builder.

Aggregates Spotify listening history across the three time windows into
the UserTaste the scorer consumes:

- Genre weights (0-100), frequency weighted by how often an artist recurs
- Top artists with a rank-derived weight
- Audio feature averages (optional, the endpoint is restricted for new apps)
- Sub-genre expansion so that "house" listeners also match "deep house" nights
"""
import logging
from dataclasses import dataclass

import httpx

from models import UserTaste, TasteArtist
from spotify_client import SpotifyClient

logger = logging.getLogger(__name__)

TIME_WINDOWS = ("short_term", "medium_term", "long_term")
MAX_TOP_ARTISTS = 20
EXPANDED_GENRE_SHARE = 0.5      # sub-genres inherit half the parent's weight
AUDIO_FEATURES = ("energy", "danceability", "valence", "tempo", "acousticness", "instrumentalness")

GENRE_FAMILIES = {
    "house": ["deep house", "tech house", "progressive house", "electro house", "future house"],
    "deep house": ["organic house", "melodic deep house"],
    "techno": ["minimal techno", "melodic techno", "detroit techno", "acid techno", "hard techno"],
    "minimal techno": ["dub techno", "ambient techno", "microhouse"],
    "trance": ["progressive trance", "uplifting trance", "psytrance", "vocal trance"],
    "edm": ["big room", "electro house"],
    "dubstep": ["melodic dubstep", "riddim"],
    "drum and bass": ["liquid dnb", "neurofunk", "jungle"],
    "bass": ["future bass", "dubstep"],
    "ambient": ["downtempo", "drone"],
    "chillout": ["lounge", "downtempo", "trip hop"],
}

# Served when Spotify has nothing for the user
DEMO_TASTE = {
    "genres": {
        "house": 75,
        "techno": 65,
        "progressive house": 60,
        "indie dance": 45,
        "trance": 35,
    },
    "top_artists": [
        {"name": "Tale Of Us", "popularity": 70, "weight": 1.0, "genres": ["melodic techno"]},
        {"name": "Boris Brejcha", "popularity": 68, "weight": 0.85, "genres": ["high tech minimal"]},
        {"name": "Lane 8", "popularity": 66, "weight": 0.8, "genres": ["progressive house"]},
        {"name": "Artbat", "popularity": 65, "weight": 0.7, "genres": ["melodic house"]},
        {"name": "Eric Prydz", "popularity": 72, "weight": 0.65, "genres": ["progressive house"]},
    ],
    "source": "demo",
}


@dataclass
class ArtistHistory:
    """One artist's presence across the user's top lists."""
    name: str
    genres: list[str]
    popularity: int
    windows: int = 0
    position_avg: float = 0.0


def demo_taste() -> UserTaste:
    return UserTaste.from_dict(DEMO_TASTE)


async def build_user_taste(client: SpotifyClient) -> UserTaste:
    """Build a UserTaste from the user's Spotify data, the demo taste when there is none."""
    history: dict[str, ArtistHistory] = {}
    tracks: list[dict] = []

    for window in TIME_WINDOWS:
        artists = await client.get_top_artists(window, 50)
        _process_artists(history, artists.get("items", []))
        top_tracks = await client.get_top_tracks(window, 50)
        tracks.extend(top_tracks.get("items", []))

    if not history:
        logger.info("[taste] No Spotify listening data, using demo taste")
        return demo_taste()

    taste = UserTaste(
        genres=expand_genres(_compute_genre_weights(history)),
        top_artists=_rank_artists(history),
    )

    track_ids = list(dict.fromkeys(t["id"] for t in tracks if t.get("id")))
    if track_ids:
        try:
            features = []
            for i in range(0, len(track_ids), 100):
                response = await client.get_audio_features(track_ids[i:i + 100])
                features.extend(f for f in response.get("audio_features", []) if f)
            taste.audio_features = average_audio_features(features)
        except httpx.HTTPError as e:
            # Restricted for apps registered after late 2024; genre and artist matching still work
            logger.info(f"[taste] Audio features unavailable: {e}")

    return taste


def _process_artists(history: dict[str, ArtistHistory], artists: list[dict]) -> None:
    """Fold one time window's top artists into the history."""
    for idx, artist in enumerate(artists):
        artist_id = artist.get("id")
        if not artist_id:
            continue

        if artist_id not in history:
            history[artist_id] = ArtistHistory(
                name=artist.get("name", "Unknown"),
                genres=artist.get("genres", []),
                popularity=artist.get("popularity", 50),
            )

        entry = history[artist_id]
        entry.windows += 1

        position = idx + 1
        if entry.position_avg == 0:
            entry.position_avg = position
        else:
            entry.position_avg = (entry.position_avg + position) / 2


def _compute_genre_weights(history: dict[str, ArtistHistory]) -> dict[str, float]:
    """
    Genre weights on a 0-100 scale. Each artist contributes 1 plus its
    recurrence (share of windows it appears in) to every genre it carries.
    """
    counts: dict[str, float] = {}
    for entry in history.values():
        weight = 1 + entry.windows / len(TIME_WINDOWS)
        for genre in entry.genres:
            key = genre.lower()
            counts[key] = counts.get(key, 0) + weight

    if not counts:
        return {}

    top = max(counts.values())
    return {genre: round(count / top * 100, 1) for genre, count in counts.items()}


def _rank_artists(history: dict[str, ArtistHistory]) -> list[TasteArtist]:
    """Most prominent artists first; weight falls off linearly with rank."""
    ranked = sorted(history.values(), key=lambda a: (-a.windows, a.position_avg))[:MAX_TOP_ARTISTS]
    total = len(ranked)
    return [
        TasteArtist(
            name=entry.name,
            popularity=entry.popularity,
            weight=round(1 - idx / total, 3),
            genres=list(entry.genres),
        )
        for idx, entry in enumerate(ranked)
    ]


def expand_genres(genres: dict[str, float]) -> dict[str, float]:
    """Add sub-genres of known families at a reduced weight. Existing weights are kept."""
    expanded = dict(genres)
    for genre, weight in genres.items():
        for sub in GENRE_FAMILIES.get(genre, []):
            if sub not in expanded:
                expanded[sub] = round(weight * EXPANDED_GENRE_SHARE, 1)
    return expanded


def average_audio_features(features: list[dict]) -> dict[str, float]:
    averages = {}
    for name in AUDIO_FEATURES:
        values = [f[name] for f in features if f.get(name) is not None]
        if values:
            averages[name] = round(sum(values) / len(values), 3)
    return averages
