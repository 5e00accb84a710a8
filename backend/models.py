"""
Core data model shared by the scoring pipeline, event sources and API.

Events are immutable once fetched; scoring wraps them in a ScoredEvent.
UserTaste is rebuilt from Spotify on demand and persisted as a JSON document.
"""
from dataclasses import dataclass, field, asdict, fields
from typing import Optional


@dataclass(frozen=True)
class Event:
    id: str
    name: str
    venue: str = ""
    city: str = ""
    date: str = ""
    time: str = ""
    genres: list[str] = field(default_factory=list)
    artists: list[str] = field(default_factory=list)
    price: str = ""
    url: str = ""
    image: str = ""
    source: str = ""
    taste_score: Optional[int] = None   # provider/baseline score
    sound_characteristics: Optional[dict] = None

    @property
    def primary_genre(self) -> str:
        return self.genres[0] if self.genres else ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        """Build from a stored or posted document, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        values.setdefault("id", "")
        values.setdefault("name", "")
        return cls(**values)


@dataclass
class TasteArtist:
    name: str
    popularity: int = 0
    weight: float = 1.0     # 0-1, derived from rank
    genres: list[str] = field(default_factory=list)


@dataclass
class UserTaste:
    """A user's listening taste as the scorer sees it."""
    genres: dict[str, float] = field(default_factory=dict)     # genre -> weight 0-100
    top_artists: list[TasteArtist] = field(default_factory=list)
    audio_features: dict[str, float] = field(default_factory=dict)
    sound_profile: Optional[dict] = None
    source: str = "spotify"

    @property
    def is_empty(self) -> bool:
        return not self.genres and not self.top_artists

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "UserTaste":
        artists = []
        for artist in data.get("top_artists") or []:
            if isinstance(artist, str):
                artists.append(TasteArtist(name=artist))
            else:
                artists.append(TasteArtist(
                    name=artist.get("name", ""),
                    popularity=artist.get("popularity") or 0,
                    weight=artist.get("weight", 1.0),
                    genres=list(artist.get("genres") or []),
                ))

        genres = data.get("genres") or {}
        # A bare list of genres counts each one at full weight
        if isinstance(genres, list):
            genres = {g: 100.0 for g in genres}

        return cls(
            genres=dict(genres),
            top_artists=artists,
            audio_features=dict(data.get("audio_features") or {}),
            sound_profile=data.get("sound_profile"),
            source=data.get("source", "spotify"),
        )


@dataclass
class ScoredEvent:
    """An event plus its match score against one user's taste."""
    event: Event
    score: int
    original_score: int
    confidence: int = 0
    confidence_label: str = "low"
    enhancement_applied: bool = False
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = self.event.to_dict()
        data.update({
            "match_score": self.score,
            "original_score": self.original_score,
            "confidence": self.confidence,
            "confidence_label": self.confidence_label,
            "enhancement_applied": self.enhancement_applied,
            "details": self.details,
        })
        return data
