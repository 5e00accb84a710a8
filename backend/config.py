"""
Configuration for the Event Match backend.
Load API credentials and feature flags from environment variables.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Spotify OAuth Configuration
SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET", "")
SPOTIFY_REDIRECT_URI = os.getenv("SPOTIFY_REDIRECT_URI", "http://localhost:3000/callback")

# Spotify API Base URLs
SPOTIFY_AUTH_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE = "https://api.spotify.com/v1"

# Required Spotify Scopes
SPOTIFY_SCOPES = [
    "user-read-email",
    "user-top-read",             # Top artists and tracks
    "user-read-recently-played",
    "user-library-read",
]

# Third-party event and metadata providers
TICKETMASTER_API_KEY = os.getenv("TICKETMASTER_API_KEY", "")
TICKETMASTER_API_BASE = "https://app.ticketmaster.com/discovery/v2"
EDMTRAIN_API_KEY = os.getenv("EDMTRAIN_API_KEY", "")
EDMTRAIN_API_BASE = "https://edmtrain.com/api"
LASTFM_API_KEY = os.getenv("LASTFM_API_KEY", "")
LASTFM_API_BASE = "https://ws.audioscrobbler.com/2.0/"
RECCOBEATS_API_KEY = os.getenv("RECCOBEATS_API_KEY", "")
RECCOBEATS_API_BASE = "https://api.reccobeats.com"

# Upstream request timeout (seconds)
UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", "5.0"))

# Feature flags
ENHANCED_RECOMMENDATION_ENABLED = _flag("ENHANCED_RECOMMENDATION_ENABLED", "true")
SOUND_CHARACTERISTICS_ENABLED = _flag("SOUND_CHARACTERISTICS_ENABLED")

# Storage
DB_PATH = os.getenv(
    "EVENT_MATCH_DB_PATH",
    os.path.join(os.path.dirname(__file__), "event_match.db"),
)

# Cache TTL values in seconds
CACHE_TTL = {
    "USER_PROFILE": 7 * 24 * 60 * 60,
    "TOP_ARTISTS": 24 * 60 * 60,
    "TOP_TRACKS": 24 * 60 * 60,
    "EVENTS": 12 * 60 * 60,
    "LOCATION": 24 * 60 * 60,
    "ARTIST_GENRES": 30 * 24 * 60 * 60,
    "DEFAULT": 60 * 60,
}

# Algorithm Configuration
# Score blend when both taste signals are available
SCORE_WEIGHTS = {
    "genre": 0.45,
    "artist": 0.35,
    "baseline": 0.20,
}

# Score blend when only one taste signal is available
SINGLE_SIGNAL_WEIGHTS = {
    "signal": 0.60,
    "baseline": 0.40,
}

# Share taken by the sound dimension when event sound data is present
SOUND_WEIGHT = 0.30

# Similarity must exceed this to count as a match
MATCH_THRESHOLD = 0.3

# Floor for a dimension that had data but produced no matches
DIMENSION_SCORE_FLOOR = 20

# Baseline used when an event carries no provider score
DEFAULT_BASELINE_SCORE = 50

# Only the user's top N artists are compared against event lineups
MAX_USER_ARTISTS = 10

# Confidence label cut-offs (0-100)
CONFIDENCE_HIGH = 70
CONFIDENCE_MEDIUM = 40

# Maximum recommendations returned by the API
MAX_RESULTS = 20
