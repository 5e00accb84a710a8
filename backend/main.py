"""
Event Match - FastAPI Backend

Matches live music events to a listener's Spotify taste.

Flow:
1. Connect Spotify
2. Build taste (genres, top artists, sound profile)
3. Fetch events for a city (Ticketmaster + EDMTrain, samples as fallback)
4. Score events against the taste and save the ones worth going to
"""
import logging
import re
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import SPOTIFY_CLIENT_ID, MAX_RESULTS
from spotify_client import SpotifyClient, build_authorize_url, exchange_code_for_token, refresh_access_token
from taste_builder import build_user_taste, demo_taste
from genre_matrix import GenreSimilarityMatrix
from artist_relationships import ArtistRelationshipStore
from metadata_inference import MetadataInferenceEngine
from audio_features import AudioFeaturesService
from score_combiner import ScoreCombiner, confidence_label
from models import Event, UserTaste
from sources import fetch_events
import cache
import database as db

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="Event Match",
    description="Live music events ranked by how well they match your Spotify taste.",
    version=VERSION
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

artist_store = ArtistRelationshipStore()
combiner = ScoreCombiner(
    genre_matrix=GenreSimilarityMatrix(),
    artist_store=artist_store,
    audio_service=AudioFeaturesService(inference=MetadataInferenceEngine(artist_store)),
)


# =========================================================================
# REQUEST / RESPONSE MODELS
# =========================================================================

class AuthUrlResponse(BaseModel):
    """Spotify authorization URL."""
    auth_url: str


class TokenResponse(BaseModel):
    """OAuth token exchange response."""
    access_token: str
    refresh_token: str
    expires_in: int


class EventModel(BaseModel):
    """A live event as returned by the providers."""
    id: str
    name: str
    venue: str = ""
    city: str = ""
    date: str = ""
    time: str = ""
    genres: list[str] = []
    artists: list[str] = []
    price: str = ""
    url: str = ""
    image: str = ""
    source: str = ""
    taste_score: Optional[int] = Field(None, ge=0, le=100)
    sound_characteristics: Optional[dict] = None


class TasteArtistModel(BaseModel):
    name: str
    popularity: int = 0
    weight: float = Field(1.0, ge=0)
    genres: list[str] = []


class TasteModel(BaseModel):
    """A listener's taste. Genre weights are 0-100."""
    genres: dict[str, float] = {}
    top_artists: list[TasteArtistModel] = []
    audio_features: dict[str, float] = {}
    sound_profile: Optional[dict] = None
    source: str = "spotify"


class TasteResponse(BaseModel):
    user_id: str
    taste: TasteModel
    cached: bool


class EventsResponse(BaseModel):
    """Events for a city. source is api, sample or error."""
    events: list[EventModel]
    source: str
    total: int
    providers: dict[str, int]


class ScoredEventModel(EventModel):
    match_score: int
    original_score: int
    confidence: int
    confidence_label: str
    enhancement_applied: bool
    details: dict


class RecommendationsResponse(BaseModel):
    events: list[ScoredEventModel]
    source: str
    taste_source: str
    total: int


class ScoreRequest(BaseModel):
    event: EventModel
    taste: TasteModel


class ScoreResponse(BaseModel):
    event_id: str
    match_score: int
    original_score: int
    confidence: int
    confidence_label: str
    details: dict


class SaveEventRequest(BaseModel):
    user_id: str
    event: EventModel
    match_score: Optional[int] = Field(None, ge=0, le=100)


class SuccessResponse(BaseModel):
    success: bool
    message: str


class CacheClearRequest(BaseModel):
    """Regex matched against cache keys. expired_only purges stale entries instead."""
    pattern: str = ".*"
    expired_only: bool = False


# =========================================================================
# AUTH ENDPOINTS
# =========================================================================

@app.get("/auth/spotify/url", response_model=AuthUrlResponse)
def get_spotify_auth_url(state: Optional[str] = None):
    """Generate Spotify OAuth authorization URL."""
    if not SPOTIFY_CLIENT_ID:
        raise HTTPException(status_code=500, detail="Spotify client ID not configured")
    return AuthUrlResponse(auth_url=build_authorize_url(state))


@app.get("/auth/spotify/callback", response_model=TokenResponse)
async def spotify_callback(code: str = Query(...)):
    """Exchange authorization code for access token."""
    try:
        token_data = await exchange_code_for_token(code)
        return TokenResponse(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token", ""),
            expires_in=token_data.get("expires_in", 3600)
        )
    except (httpx.HTTPError, KeyError) as e:
        raise HTTPException(status_code=400, detail=f"Token exchange failed: {str(e)}")


@app.post("/auth/spotify/refresh", response_model=TokenResponse)
async def spotify_refresh(refresh_token: str = Query(...)):
    """Trade a refresh token for a new access token."""
    try:
        token_data = await refresh_access_token(refresh_token)
        return TokenResponse(
            access_token=token_data["access_token"],
            # Spotify only rotates the refresh token sometimes
            refresh_token=token_data.get("refresh_token", refresh_token),
            expires_in=token_data.get("expires_in", 3600)
        )
    except (httpx.HTTPError, KeyError) as e:
        raise HTTPException(status_code=400, detail=f"Token refresh failed: {str(e)}")


# =========================================================================
# TASTE
# =========================================================================

async def _load_taste(access_token: str, refresh: bool = False) -> tuple[str, UserTaste, bool]:
    """(user_id, taste, served_from_cache) for the token's owner."""
    client = SpotifyClient(access_token)
    try:
        user = await client.get_current_user()
    except httpx.HTTPStatusError as e:
        raise HTTPException(status_code=400, detail=f"Invalid Spotify token: {e.response.status_code}")

    user_id = user["id"]
    cache_key = f"user_profile:{user_id}"

    if not refresh:
        cached = cache.get_cached_data(cache_key)
        if cached is not None:
            return user_id, UserTaste.from_dict(cached), True

    taste = await build_user_taste(client)
    cache.set_cached_data(cache_key, taste.to_dict(), "USER_PROFILE")
    db.save_taste_profile(user_id, taste.to_dict(), source=taste.source)
    return user_id, taste, False


@app.get("/taste", response_model=TasteResponse)
async def get_taste(
    access_token: str = Query(..., description="Spotify access token"),
    refresh: bool = Query(False, description="Rebuild even if a cached taste exists"),
):
    """Build (or reuse) and persist the listener's taste profile."""
    try:
        user_id, taste, cached = await _load_taste(access_token, refresh)
    except HTTPException:
        raise
    except httpx.HTTPError as e:
        logger.error(f"[api] Taste build failed: {e}")
        raise HTTPException(status_code=500, detail=f"Taste build failed: {str(e)}")

    return TasteResponse(user_id=user_id, taste=TasteModel(**taste.to_dict()), cached=cached)


@app.delete("/taste/{user_id}", response_model=SuccessResponse)
def delete_taste(user_id: str):
    """Forget a stored taste profile and its cached copy."""
    cache.invalidate_cache(f"^user_profile:{re.escape(user_id)}$")
    if not db.delete_taste_profile(user_id):
        raise HTTPException(status_code=404, detail="Taste profile not found")
    return SuccessResponse(success=True, message=f"Deleted taste for {user_id}")


# =========================================================================
# EVENTS
# =========================================================================

@app.get("/events", response_model=EventsResponse)
async def get_events(
    city: str = Query("Toronto"),
    genre: str = Query("electronic"),
):
    """Events for a city from every provider, sample events when none answer."""
    result = await fetch_events(city, genre, artist_store=artist_store)
    return EventsResponse(
        events=[EventModel(**e.to_dict()) for e in result.events],
        source=result.source,
        total=len(result.events),
        providers=result.providers,
    )


@app.get("/events/stored")
def get_stored_events(
    city: str = Query("Toronto"),
    limit: int = Query(100, ge=1, le=500),
):
    """Events persisted by earlier fetches for a city, soonest first."""
    events = db.get_events(city, limit)
    return {"events": events, "total": len(events), "city": city}


@app.get("/events/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(
    city: str = Query("Toronto"),
    genre: str = Query("electronic"),
    user_id: Optional[str] = Query(None, description="Use this user's stored taste"),
    access_token: Optional[str] = Query(None, description="Build taste from Spotify"),
    limit: int = Query(MAX_RESULTS, ge=1, le=100),
):
    """
    Events ranked by match score.

    Taste comes from the stored profile for user_id, else a freshly built
    one for access_token, else the demo taste.
    """
    taste = None
    taste_source = "demo"

    if user_id:
        stored = db.get_taste_profile(user_id)
        if stored:
            taste = UserTaste.from_dict(stored)
            taste_source = "stored"

    if taste is None and access_token:
        try:
            _, taste, cached = await _load_taste(access_token)
            taste_source = "cached" if cached else "spotify"
        except httpx.HTTPError as e:
            logger.warning(f"[api] Falling back to demo taste: {e}")

    if taste is None:
        taste = demo_taste()

    result = await fetch_events(city, genre, artist_store=artist_store)
    scored = await combiner.process_events(result.events, taste)

    return RecommendationsResponse(
        events=[ScoredEventModel(**s.to_dict()) for s in scored[:limit]],
        source=result.source,
        taste_source=taste_source,
        total=len(scored),
    )


@app.post("/events/score", response_model=ScoreResponse)
async def score_event(request: ScoreRequest):
    """Score one event against a taste without touching storage."""
    event = Event.from_dict(request.event.model_dump())
    taste = UserTaste.from_dict(request.taste.model_dump())
    scored = await combiner.enhance_event(event, taste)

    return ScoreResponse(
        event_id=event.id,
        match_score=scored.score,
        original_score=scored.original_score,
        confidence=scored.confidence,
        confidence_label=confidence_label(scored.confidence),
        details=scored.details,
    )


# =========================================================================
# SAVED EVENTS
# =========================================================================

@app.post("/events/saved", response_model=SuccessResponse)
def save_event(request: SaveEventRequest):
    """Bookmark an event for a user."""
    if not request.event.id:
        raise HTTPException(status_code=400, detail="Event id is required")

    saved = db.save_event(request.user_id, request.event.model_dump(), request.match_score)
    if saved:
        return SuccessResponse(success=True, message=f"Saved {request.event.name}")
    return SuccessResponse(success=False, message="Event already saved")


@app.get("/events/saved")
def get_saved_events(user_id: str = Query(...)):
    """All events a user has bookmarked."""
    events = db.get_saved_events(user_id)
    return {"events": events, "total": len(events)}


@app.get("/events/saved/{event_id}")
def get_saved_status(event_id: str, user_id: str = Query(...)):
    """Whether a user has bookmarked an event."""
    return {"event_id": event_id, "saved": db.is_saved(user_id, event_id)}


@app.delete("/events/saved/{event_id}", response_model=SuccessResponse)
def remove_saved_event(event_id: str, user_id: str = Query(...)):
    """Remove a bookmarked event."""
    if not db.remove_saved_event(user_id, event_id):
        raise HTTPException(status_code=404, detail="Saved event not found")
    return SuccessResponse(success=True, message=f"Removed {event_id}")


# =========================================================================
# CACHE ADMIN & STATS
# =========================================================================

@app.get("/cache/status")
def get_cache_status(prefix: str = Query("", description="Only keys starting with this")):
    """Cache entry counts and hit totals."""
    return cache.cache_status(prefix)


@app.post("/cache/clear")
def clear_cache(request: CacheClearRequest):
    """Invalidate cache entries by key regex, or purge expired ones."""
    if request.expired_only:
        return {"cleared": cache.cleanup_expired(), "pattern": None}
    return {"cleared": cache.invalidate_cache(request.pattern), "pattern": request.pattern}


@app.get("/stats")
def get_stats():
    """Scoring system statistics."""
    return {
        **combiner.stats(),
        "stored_events": db.count_events(),
    }


# =========================================================================
# HEALTH CHECK
# =========================================================================

@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "event-match", "version": VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
