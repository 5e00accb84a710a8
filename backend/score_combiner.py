"""
Score Combiner.

Fuses up to three taste dimensions into a single 0-100 match score:

1. Genre: user genres vs event genres through the similarity matrix
2. Artist: user top artists vs the event lineup through the relationship store
3. Sound (optional): event sound characteristics vs the user's sound profile

The dimension scores are blended with the event's own baseline score using
weights that shift when a dimension is unavailable, then multiplied by a
confidence value that reflects how much real data fed the match.
"""
import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Optional

from config import (
    ENHANCED_RECOMMENDATION_ENABLED, SOUND_CHARACTERISTICS_ENABLED,
    SCORE_WEIGHTS, SINGLE_SIGNAL_WEIGHTS, SOUND_WEIGHT, MATCH_THRESHOLD,
    DIMENSION_SCORE_FLOOR, DEFAULT_BASELINE_SCORE, MAX_USER_ARTISTS,
    CONFIDENCE_HIGH, CONFIDENCE_MEDIUM,
)
from genre_matrix import GenreSimilarityMatrix
from artist_relationships import ArtistRelationshipStore, normalize_name
from audio_features import AudioFeaturesService
from models import Event, UserTaste, ScoredEvent

logger = logging.getLogger(__name__)

VERSION = "2.1"

SOUND_FEATURE_WEIGHTS = {
    "energy": 0.30,
    "danceability": 0.30,
    "valence": 0.20,
    "tempo": 0.20,
}
TEMPO_SPAN = 50     # BPM difference that counts as no similarity

EDM_GENRES = ("house", "techno", "trance", "dubstep", "electronic", "dance", "edm")

SOUND_PROFILES = {
    "edm_focused": {"energy": 0.75, "danceability": 0.80, "valence": 0.60, "tempo": 125},
    "general": {"energy": 0.50, "danceability": 0.60, "valence": 0.55, "tempo": 110},
}


@dataclass
class DimensionScore:
    """One dimension's contribution. score is None when the dimension is unavailable."""
    score: Optional[int]
    matches: int = 0
    confidence: int = 0
    details: list = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.score is not None


def _clamp_score(value: float) -> int:
    return int(max(0, min(100, round(value))))


def confidence_label(confidence: int) -> str:
    if confidence >= CONFIDENCE_HIGH:
        return "high"
    if confidence >= CONFIDENCE_MEDIUM:
        return "medium"
    return "low"


def baseline_score(event: Event) -> int:
    """The event's own score, DEFAULT_BASELINE_SCORE when it has none."""
    if event.taste_score is None:
        return DEFAULT_BASELINE_SCORE
    return _clamp_score(event.taste_score)


class ScoreCombiner:
    """Event-vs-taste match scoring."""

    def __init__(
        self,
        genre_matrix: Optional[GenreSimilarityMatrix] = None,
        artist_store: Optional[ArtistRelationshipStore] = None,
        audio_service: Optional[AudioFeaturesService] = None,
        enabled: bool = ENHANCED_RECOMMENDATION_ENABLED,
        sound_enabled: bool = SOUND_CHARACTERISTICS_ENABLED,
    ):
        self.genre_matrix = genre_matrix if genre_matrix is not None else GenreSimilarityMatrix()
        self.artist_store = artist_store if artist_store is not None else ArtistRelationshipStore()
        self.audio_service = audio_service
        self.enabled = enabled
        self.sound_enabled = sound_enabled

    # =========================================================================
    # DIMENSIONS
    # =========================================================================

    def genre_score(self, event: Event, taste: UserTaste) -> DimensionScore:
        """
        User-weight-weighted average of the best similarity each user genre
        finds among the event genres. Pairs at or below MATCH_THRESHOLD do not count.
        """
        if not event.genres or not taste.genres:
            return DimensionScore(score=None)

        weighted_total = 0.0
        weight_sum = 0.0
        plain_total = 0.0
        details = []

        for user_genre, weight in taste.genres.items():
            best = 0.0
            best_event_genre = ""
            for event_genre in event.genres:
                similarity = self.genre_matrix.similarity(user_genre, event_genre)
                if similarity > best:
                    best = similarity
                    best_event_genre = event_genre

            if best > MATCH_THRESHOLD:
                weight = max(float(weight or 0), 0.0)
                weighted_total += best * weight
                weight_sum += weight
                plain_total += best
                details.append({
                    "user_genre": user_genre,
                    "event_genre": best_event_genre,
                    "similarity": round(best * 100),
                })

        if not details:
            return DimensionScore(score=DIMENSION_SCORE_FLOOR)

        # All matched genres weighted zero: fall back to a plain mean
        average = weighted_total / weight_sum if weight_sum else plain_total / len(details)
        score = max(DIMENSION_SCORE_FLOOR, _clamp_score(average * 100))
        return DimensionScore(score=score, matches=len(details), details=details)

    def artist_score(self, event: Event, taste: UserTaste) -> DimensionScore:
        """Best exact-or-related match for each of the user's top artists, averaged."""
        if not event.artists or not taste.top_artists:
            return DimensionScore(score=None)

        total = 0.0
        details = []

        for user_artist in taste.top_artists[:MAX_USER_ARTISTS]:
            user_name = normalize_name(user_artist.name)
            best = 0.0
            best_event_artist = ""

            for event_artist in event.artists:
                if user_name and user_name == normalize_name(event_artist):
                    best = 1.0
                    best_event_artist = event_artist
                    break

                similarity = self.artist_store.artist_similarity(
                    user_artist.name, event_artist, user_artist.genres,
                )
                if similarity > best:
                    best = similarity
                    best_event_artist = event_artist

            if best > MATCH_THRESHOLD:
                total += best
                details.append({
                    "user_artist": user_artist.name,
                    "event_artist": best_event_artist,
                    "similarity": round(best * 100),
                })

        if not details:
            return DimensionScore(score=DIMENSION_SCORE_FLOOR)

        score = max(DIMENSION_SCORE_FLOOR, _clamp_score(total / len(details) * 100))
        return DimensionScore(score=score, matches=len(details), details=details)

    def sound_score(self, event: Event, taste: UserTaste) -> DimensionScore:
        """
        Weighted feature distance between the event's sound and the user's
        profile, pulled toward 50 as the provider's confidence drops.
        """
        characteristics = event.sound_characteristics
        if not self._has_sound(event):
            return DimensionScore(score=None)

        profile = self.user_sound_profile(taste)
        total = 0.0
        weight_sum = 0.0

        for feature, weight in SOUND_FEATURE_WEIGHTS.items():
            event_value = characteristics.get(feature)
            user_value = profile.get(feature)
            if event_value is None or user_value is None:
                continue

            difference = abs(float(event_value) - float(user_value))
            if feature == "tempo":
                similarity = max(0.0, 1 - difference / TEMPO_SPAN)
            else:
                similarity = 1 - difference
            total += similarity * weight
            weight_sum += weight

        similarity_score = total / weight_sum * 100 if weight_sum else 50.0
        provider_confidence = characteristics.get("confidence")
        if provider_confidence is None:
            provider_confidence = 0.5

        blended = similarity_score * provider_confidence + 50 * (1 - provider_confidence)
        return DimensionScore(
            score=_clamp_score(blended),
            confidence=round(provider_confidence * 100),
            details=[{
                "profile": profile.get("profile", "custom"),
                "similarity": round(similarity_score),
                "source": characteristics.get("source", "unknown"),
            }],
        )

    def _has_sound(self, event: Event) -> bool:
        characteristics = event.sound_characteristics
        return bool(
            self.sound_enabled
            and characteristics
            and characteristics.get("source") != "extraction_failed"
        )

    def user_sound_profile(self, taste: UserTaste) -> dict:
        """
        What the user's music sounds like: an explicit profile, else
        measured audio-feature averages, else a preset picked from their genres.
        """
        if taste.sound_profile:
            return taste.sound_profile

        measured = {
            feature: taste.audio_features[feature]
            for feature in SOUND_FEATURE_WEIGHTS
            if feature in taste.audio_features
        }
        if measured:
            return {**measured, "profile": "measured"}

        has_edm = any(
            edm in genre.lower() for genre in taste.genres for edm in EDM_GENRES
        )
        name = "edm_focused" if has_edm else "general"
        return {**SOUND_PROFILES[name], "profile": name}

    # =========================================================================
    # COMBINATION
    # =========================================================================

    @staticmethod
    def confidence(
        event: Event,
        taste: UserTaste,
        genre: DimensionScore,
        artist: DimensionScore,
        sound: DimensionScore,
    ) -> int:
        """0-100 from data completeness (40 points) and match quality (60 points)."""
        points = 0
        if event.genres and taste.genres:
            points += 15
        if event.artists and taste.top_artists:
            points += 15
        if sound.available:
            points += 10
        if genre.matches > 0:
            points += 20
        if artist.matches > 0:
            points += 20
        if sound.available and sound.confidence > 50:
            points += 20
        return min(points, 100)

    @staticmethod
    def weights(genre: DimensionScore, artist: DimensionScore, sound: DimensionScore) -> dict:
        """Blend weights for the available dimensions. Empty when neither taste signal is usable."""
        if genre.available and artist.available:
            weights = dict(SCORE_WEIGHTS)
        elif genre.available:
            weights = {"genre": SINGLE_SIGNAL_WEIGHTS["signal"], "baseline": SINGLE_SIGNAL_WEIGHTS["baseline"]}
        elif artist.available:
            weights = {"artist": SINGLE_SIGNAL_WEIGHTS["signal"], "baseline": SINGLE_SIGNAL_WEIGHTS["baseline"]}
        else:
            return {}

        if sound.available:
            weights = {name: w * (1 - SOUND_WEIGHT) for name, w in weights.items()}
            weights["sound"] = SOUND_WEIGHT
        return weights

    def evaluate(self, event: Event, taste: UserTaste) -> dict:
        """All intermediate values behind a match score."""
        baseline = baseline_score(event)
        genre = self.genre_score(event, taste)
        artist = self.artist_score(event, taste)
        sound = self.sound_score(event, taste)
        confidence = self.confidence(event, taste, genre, artist, sound)
        weights = self.weights(genre, artist, sound)

        if not weights:
            final = baseline
        else:
            values = {
                "genre": genre.score,
                "artist": artist.score,
                "sound": sound.score,
                "baseline": baseline,
            }
            weighted = sum(values[name] * w for name, w in weights.items())
            final = _clamp_score(weighted * confidence / 100)

        return {
            "score": final,
            "baseline": baseline,
            "genre": genre,
            "artist": artist,
            "sound": sound,
            "confidence": confidence,
            "weights": weights,
        }

    def score(self, event: Event, taste: UserTaste) -> int:
        """Match score in [0, 100]. Falls back to the event's baseline on any failure."""
        try:
            return self.evaluate(event, taste)["score"]
        except Exception as e:
            logger.error(f"[scoring] Scoring failed for {event.id}: {e}")
            return baseline_score(event)

    # =========================================================================
    # EVENT PROCESSING
    # =========================================================================

    async def enhance_event(self, event: Event, taste: Optional[UserTaste]) -> ScoredEvent:
        """Score one event and explain the result."""
        baseline = baseline_score(event)

        if taste is None or taste.is_empty:
            return ScoredEvent(
                event=event,
                score=baseline,
                original_score=baseline,
                details={"reason": "No user taste data available"},
            )

        try:
            if self.sound_enabled and self.audio_service and not event.sound_characteristics:
                features = await self.audio_service.event_features(event)
                event = dataclasses.replace(event, sound_characteristics=features)

            result = self.evaluate(event, taste)
        except Exception as e:
            logger.error(f"[scoring] Error processing event {event.name!r}: {e}")
            return ScoredEvent(
                event=event,
                score=baseline,
                original_score=baseline,
                details={"error": str(e)},
            )

        return ScoredEvent(
            event=event,
            score=result["score"],
            original_score=baseline,
            confidence=result["confidence"],
            confidence_label=confidence_label(result["confidence"]),
            enhancement_applied=bool(result["weights"]),
            details=self._explain(result),
        )

    @staticmethod
    def _explain(result: dict) -> dict:
        parts = []
        for name in ("genre", "artist", "sound"):
            dimension: DimensionScore = result[name]
            weight = result["weights"].get(name)
            if dimension.available and weight:
                parts.append(
                    f"{name.capitalize()}: {dimension.score}% "
                    f"({dimension.matches} matches, {round(weight * 100)}% weight)"
                )
        if not parts:
            parts.append("No comparable taste data, baseline score kept")

        return {
            "genre_score": result["genre"].score,
            "artist_score": result["artist"].score,
            "sound_score": result["sound"].score,
            "genre_matches": result["genre"].details,
            "artist_matches": result["artist"].details,
            "sound_details": result["sound"].details,
            "weights": {k: round(v, 3) for k, v in result["weights"].items()},
            "reason": "; ".join(parts),
        }

    async def process_events(self, events: list[Event], taste: Optional[UserTaste]) -> list[ScoredEvent]:
        """Score a batch concurrently, best match first. Baselines pass through when disabled."""
        if not self.enabled or not events:
            return [
                ScoredEvent(event=e, score=baseline_score(e), original_score=baseline_score(e))
                for e in events
            ]

        dimensions = 3 if self.sound_enabled else 2
        logger.info(f"[scoring] Processing {len(events)} events with {dimensions}-dimensional scoring")

        scored = await asyncio.gather(*(self.enhance_event(e, taste) for e in events))

        original_avg = sum(s.original_score for s in scored) / len(scored)
        enhanced_avg = sum(s.score for s in scored) / len(scored)
        logger.info(f"[scoring] Average score {original_avg:.1f}% -> {enhanced_avg:.1f}%")

        return sorted(scored, key=lambda s: s.score, reverse=True)

    def stats(self) -> dict:
        return {
            "enabled": self.enabled,
            "sound_characteristics_enabled": self.sound_enabled,
            "version": VERSION,
            "scoring_dimensions": 3 if self.sound_enabled else 2,
            "genre_matrix": self.genre_matrix.stats(),
            "artist_relationships": self.artist_store.stats(),
            "audio_features": self.audio_service.stats() if self.audio_service else None,
        }
