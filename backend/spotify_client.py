"""
Spotify API client for fetching user listening data.
Handles all communication with Spotify Web API.

Two kinds of access:
- SpotifyClient: user-scoped calls with an OAuth access token
- AppTokenProvider: client-credentials token for catalogue search
  (artist genre lookups), cached until shortly before it expires
"""
import asyncio
import logging
import time
from typing import Optional

import httpx

from config import (
    SPOTIFY_API_BASE, SPOTIFY_AUTH_URL, SPOTIFY_TOKEN_URL, SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI, SPOTIFY_SCOPES, UPSTREAM_TIMEOUT,
)

logger = logging.getLogger(__name__)

# Refresh the app token this many seconds before Spotify expires it
TOKEN_EXPIRY_MARGIN = 60
MAX_RATE_LIMIT_RETRIES = 3
MAX_RETRY_AFTER = 10.0


class SpotifyClient:
    """Wrapper for Spotify Web API calls."""

    def __init__(self, access_token: str):
        self.access_token = access_token
        self.headers = {"Authorization": f"Bearer {access_token}"}

    async def _get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Make authenticated GET request to Spotify API."""
        async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
            response = await client.get(
                f"{SPOTIFY_API_BASE}{endpoint}",
                headers=self.headers,
                params=params or {}
            )
            response.raise_for_status()
            return response.json()

    # =========================================================================
    # USER PROFILE & LISTENING HISTORY
    # =========================================================================

    async def get_current_user(self) -> dict:
        """Fetch the profile of the token's owner."""
        return await self._get("/me")

    async def get_top_artists(self, time_range: str = "medium_term", limit: int = 50) -> dict:
        """
        Fetch user's top artists.

        time_range options:
        - short_term: ~4 weeks
        - medium_term: ~6 months
        - long_term: several years
        """
        return await self._get("/me/top/artists", {
            "time_range": time_range,
            "limit": limit
        })

    async def get_top_tracks(self, time_range: str = "medium_term", limit: int = 50) -> dict:
        """Fetch user's top tracks for a given time range."""
        return await self._get("/me/top/tracks", {
            "time_range": time_range,
            "limit": limit
        })

    # =========================================================================
    # TRACK METADATA
    # =========================================================================

    async def get_audio_features(self, track_ids: list[str]) -> dict:
        """
        Fetch audio features for multiple tracks.
        Restricted for apps created after late 2024; callers treat failure as optional.
        """
        # Spotify limits to 100 tracks per request
        ids = ",".join(track_ids[:100])
        return await self._get("/audio-features", {"ids": ids})


def build_authorize_url(state: Optional[str] = None) -> str:
    """URL the user is sent to for the authorization-code flow."""
    params = {
        "client_id": SPOTIFY_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": SPOTIFY_REDIRECT_URI,
        "scope": " ".join(SPOTIFY_SCOPES),
        "show_dialog": "true",
    }
    if state:
        params["state"] = state
    return str(httpx.URL(SPOTIFY_AUTH_URL, params=params))


async def exchange_code_for_token(code: str) -> dict:
    """
    Exchange OAuth authorization code for access token.
    Called after user authorizes via Spotify.
    """
    async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
        response = await client.post(
            SPOTIFY_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": SPOTIFY_REDIRECT_URI,
                "client_id": SPOTIFY_CLIENT_ID,
                "client_secret": SPOTIFY_CLIENT_SECRET,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"}
        )
        response.raise_for_status()
        return response.json()


async def refresh_access_token(refresh_token: str) -> dict:
    """Refresh an expired access token."""
    async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
        response = await client.post(
            SPOTIFY_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": SPOTIFY_CLIENT_ID,
                "client_secret": SPOTIFY_CLIENT_SECRET,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"}
        )
        response.raise_for_status()
        return response.json()


# =========================================================================
# APP (CLIENT-CREDENTIALS) ACCESS
# =========================================================================

class AppTokenProvider:
    """Client-credentials token, cached in-process until near expiry."""

    def __init__(self, client_id: str = SPOTIFY_CLIENT_ID, client_secret: str = SPOTIFY_CLIENT_SECRET):
        self.client_id = client_id
        self.client_secret = client_secret
        self._token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def get_token(self) -> Optional[str]:
        """Valid app token, or None when credentials are missing or rejected."""
        if not self.configured:
            return None

        if self._token and time.time() < self._expires_at:
            return self._token

        try:
            async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
                response = await client.post(
                    SPOTIFY_TOKEN_URL,
                    data={"grant_type": "client_credentials"},
                    auth=(self.client_id, self.client_secret),
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"[spotify] Client-credentials token request failed: {e}")
            return None

        self._token = payload.get("access_token")
        expires_in = payload.get("expires_in", 3600)
        self._expires_at = time.time() + expires_in - TOKEN_EXPIRY_MARGIN
        return self._token


def retry_delay(retry_after: Optional[str], attempt: int) -> float:
    """Seconds to wait before retrying a 429, capped at MAX_RETRY_AFTER."""
    try:
        delay = float(retry_after)
    except (TypeError, ValueError):
        # missing, or an HTTP-date
        delay = 2 ** attempt
    return min(max(delay, 0.0), MAX_RETRY_AFTER)


async def search_artist(name: str, tokens: AppTokenProvider) -> Optional[dict]:
    """
    First catalogue match for an artist name, or None.

    429 responses are retried with the server's Retry-After (or an
    exponential backoff) up to MAX_RATE_LIMIT_RETRIES times.
    """
    token = await tokens.get_token()
    if not token:
        return None

    async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT) as client:
        for attempt in range(MAX_RATE_LIMIT_RETRIES + 1):
            response = await client.get(
                f"{SPOTIFY_API_BASE}/search",
                headers={"Authorization": f"Bearer {token}"},
                params={"q": name, "type": "artist", "limit": 1},
            )

            if response.status_code == 429 and attempt < MAX_RATE_LIMIT_RETRIES:
                delay = retry_delay(response.headers.get("Retry-After"), attempt)
                logger.info(f"[spotify] Rate limited searching {name!r}, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue

            response.raise_for_status()
            items = response.json().get("artists", {}).get("items", [])
            return items[0] if items else None

    return None
