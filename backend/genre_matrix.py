"""
Genre Similarity Matrix.

A static weighted graph of genre -> genre affinity scores (0-1),
hand-authored for the electronic-music genres events are tagged with
plus the mainstream genres Spotify reports for most listeners.

Lookups check the authored direction first, then the reverse direction,
so a pair authored with different values in each direction keeps that
asymmetry. Unknown pairs fall back to a word-overlap heuristic.
"""
import re
from dataclasses import dataclass
from typing import Optional


# =========================================================================
# SIMILARITY TABLE
# =========================================================================
GENRE_SIMILARITY = {
    # House family
    "house": {
        "deep house": 0.85,
        "tech house": 0.78,
        "progressive house": 0.82,
        "future house": 0.75,
        "tropical house": 0.68,
        "disco": 0.45,
        "funk": 0.42,
        "soul": 0.38,
        "garage": 0.55,
        "electronic": 0.72,
        "dance": 0.68,
    },
    "deep house": {
        "house": 0.85,
        "minimal house": 0.88,
        "microhouse": 0.82,
        "soulful house": 0.79,
        "ambient": 0.45,
        "downtempo": 0.52,
        "jazz": 0.35,
        "soul": 0.48,
        "progressive house": 0.65,
        "tech house": 0.58,
    },
    "tech house": {
        "house": 0.78,
        "techno": 0.72,
        "minimal techno": 0.68,
        "progressive house": 0.62,
        "industrial": 0.35,
        "experimental": 0.28,
        "electronic": 0.75,
        "dance": 0.65,
    },
    "progressive house": {
        "house": 0.82,
        "trance": 0.65,
        "progressive trance": 0.78,
        "deep house": 0.65,
        "tech house": 0.62,
        "ambient": 0.42,
        "electronic": 0.78,
        "melodic techno": 0.58,
    },

    # Techno family
    "techno": {
        "minimal techno": 0.85,
        "hard techno": 0.78,
        "acid techno": 0.72,
        "detroit techno": 0.82,
        "tech house": 0.72,
        "industrial": 0.55,
        "experimental": 0.48,
        "ambient": 0.35,
        "electronic": 0.75,
        "melodic techno": 0.68,
    },
    "minimal techno": {
        "techno": 0.85,
        "microhouse": 0.65,
        "ambient techno": 0.72,
        "minimal": 0.78,
        "experimental": 0.52,
        "ambient": 0.48,
        "deep house": 0.45,
        "melodic techno": 0.62,
    },
    "melodic techno": {
        "techno": 0.68,
        "progressive house": 0.58,
        "trance": 0.52,
        "ambient": 0.45,
        "minimal techno": 0.62,
        "progressive trance": 0.55,
        "electronic": 0.65,
        "deep house": 0.48,
    },

    # Trance family
    "trance": {
        "progressive trance": 0.88,
        "uplifting trance": 0.82,
        "psytrance": 0.65,
        "vocal trance": 0.78,
        "progressive house": 0.65,
        "progressive rock": 0.35,
        "ambient": 0.42,
        "new age": 0.28,
        "electronic": 0.72,
        "melodic techno": 0.52,
    },
    "progressive trance": {
        "trance": 0.88,
        "progressive house": 0.78,
        "uplifting trance": 0.72,
        "ambient": 0.48,
        "electronic": 0.75,
        "melodic techno": 0.55,
    },
    "psytrance": {
        "trance": 0.65,
        "goa trance": 0.92,
        "psychedelic rock": 0.45,
        "world music": 0.32,
        "experimental": 0.48,
        "electronic": 0.62,
    },

    # Bass music family
    "dubstep": {
        "future bass": 0.75,
        "riddim": 0.82,
        "melodic dubstep": 0.78,
        "chillstep": 0.65,
        "hip hop": 0.45,
        "trap": 0.68,
        "electronic rock": 0.52,
        "electronic": 0.72,
        "bass": 0.85,
    },
    "future bass": {
        "dubstep": 0.75,
        "melodic dubstep": 0.85,
        "chillstep": 0.72,
        "trap": 0.65,
        "pop": 0.48,
        "hip hop": 0.42,
        "r&b": 0.38,
        "electronic": 0.78,
        "bass": 0.72,
    },
    "drum and bass": {
        "liquid dnb": 0.88,
        "neurofunk": 0.82,
        "jungle": 0.85,
        "breakbeat": 0.78,
        "hip hop": 0.45,
        "jazz": 0.35,
        "funk": 0.42,
        "electronic": 0.75,
        "bass": 0.82,
    },

    # Electronic crossover genres
    "electronic": {
        "house": 0.72,
        "techno": 0.75,
        "trance": 0.72,
        "dubstep": 0.72,
        "ambient": 0.58,
        "synthwave": 0.65,
        "electro": 0.78,
        "dance": 0.82,
        "edm": 0.88,
    },
    "ambient": {
        "downtempo": 0.82,
        "chillout": 0.85,
        "new age": 0.65,
        "experimental": 0.58,
        "deep house": 0.45,
        "minimal techno": 0.48,
        "drone": 0.72,
        "electronic": 0.58,
    },
    "synthwave": {
        "retrowave": 0.92,
        "darkwave": 0.75,
        "new wave": 0.68,
        "electronic": 0.65,
        "pop": 0.45,
        "indie electronic": 0.58,
    },

    # Rock crossover genres
    "alternative rock": {
        "indie rock": 0.78,
        "grunge": 0.72,
        "post-rock": 0.65,
        "math rock": 0.58,
        "electronic rock": 0.55,
        "industrial": 0.48,
        "synthwave": 0.42,
        "rock": 0.85,
    },
    "indie rock": {
        "alternative rock": 0.78,
        "indie pop": 0.72,
        "indie folk": 0.65,
        "garage rock": 0.68,
        "indie electronic": 0.58,
        "chillwave": 0.52,
        "dream pop": 0.62,
        "rock": 0.72,
    },

    # Pop crossover genres
    "pop": {
        "dance pop": 0.85,
        "electropop": 0.82,
        "synthpop": 0.78,
        "indie pop": 0.72,
        "electronic": 0.65,
        "house": 0.58,
        "future bass": 0.48,
    },
    "dance pop": {
        "pop": 0.85,
        "electropop": 0.88,
        "euro pop": 0.82,
        "house": 0.68,
        "electronic": 0.72,
        "disco": 0.65,
    },

    # Hip-hop crossover genres
    "hip hop": {
        "trap": 0.78,
        "rap": 0.92,
        "r&b": 0.65,
        "electronic": 0.45,
        "dubstep": 0.45,
        "future bass": 0.42,
        "drum and bass": 0.45,
    },
    "trap": {
        "hip hop": 0.78,
        "future bass": 0.65,
        "dubstep": 0.68,
        "electronic": 0.58,
        "rap": 0.72,
    },

    # Additional electronic subgenres
    "breakbeat": {
        "drum and bass": 0.78,
        "jungle": 0.82,
        "big beat": 0.75,
        "electronic": 0.68,
    },
    "garage": {
        "uk garage": 0.95,
        "2-step": 0.88,
        "house": 0.55,
        "electronic": 0.62,
    },
    "hardstyle": {
        "hardcore": 0.82,
        "hard techno": 0.68,
        "gabber": 0.75,
        "electronic": 0.65,
    },
    "chillout": {
        "ambient": 0.85,
        "downtempo": 0.88,
        "lounge": 0.82,
        "trip hop": 0.65,
        "electronic": 0.62,
    },
    "trip hop": {
        "downtempo": 0.78,
        "chillout": 0.65,
        "hip hop": 0.58,
        "electronic": 0.68,
        "ambient": 0.55,
    },
}

# Partial-match scores for compound genre names
SHARED_WORD_SCORE = 0.3
CONTAINED_WORD_SCORE = 0.2

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class GenreMatch:
    """Best event genre found for one of the user's genres."""
    user_genre: str
    event_genre: str
    similarity: float


def normalize_genre(genre: str) -> str:
    """Lowercase, collapse whitespace and strip punctuation ("R&B" -> "rb")."""
    collapsed = _WHITESPACE_RE.sub(" ", genre.lower()).strip()
    return _PUNCTUATION_RE.sub("", collapsed)


class GenreSimilarityMatrix:
    """Nearest-neighbour lookups over the genre similarity table."""

    def __init__(self, matrix: Optional[dict[str, dict[str, float]]] = None):
        source = matrix if matrix is not None else GENRE_SIMILARITY
        # Keys are normalised once so lookups can compare normalised names
        self.matrix = {
            normalize_genre(genre): {
                normalize_genre(other): score for other, score in neighbours.items()
            }
            for genre, neighbours in source.items()
        }

    @property
    def genres(self) -> list[str]:
        """Primary genres that have authored neighbour lists."""
        return list(self.matrix.keys())

    def similarity(self, genre_a: str, genre_b: str) -> float:
        """
        Similarity between two genres in [0, 1].

        Exact match -> 1.0, then direct lookup, then reverse lookup,
        then the word-overlap heuristic. Unknown pairs -> 0.
        """
        if not genre_a or not genre_b:
            return 0.0

        a = normalize_genre(genre_a)
        b = normalize_genre(genre_b)
        if not a or not b:
            return 0.0

        if a == b:
            return 1.0

        direct = self.matrix.get(a, {}).get(b)
        if direct:
            return direct

        reverse = self.matrix.get(b, {}).get(a)
        if reverse:
            return reverse

        return self._partial_match(a, b)

    @staticmethod
    def _partial_match(genre_a: str, genre_b: str) -> float:
        """Score compound genres that share or contain words."""
        best = 0.0
        for word_a in genre_a.split(" "):
            for word_b in genre_b.split(" "):
                if word_a == word_b and len(word_a) > 2:
                    best = max(best, SHARED_WORD_SCORE)

                if word_a in word_b or word_b in word_a:
                    if min(len(word_a), len(word_b)) > 3:
                        best = max(best, CONTAINED_WORD_SCORE)
        return best

    def similar_genres(self, genre: str, threshold: float = 0.3) -> list[tuple[str, float]]:
        """
        All neighbours of a genre at or above threshold, strongest first.
        Neighbours authored only in the reverse direction are included.
        """
        normalized = normalize_genre(genre)
        found: dict[str, float] = {}

        for other, score in self.matrix.get(normalized, {}).items():
            if score >= threshold:
                found[other] = score

        for other, neighbours in self.matrix.items():
            score = neighbours.get(normalized)
            if score is not None and score >= threshold and other not in found:
                found[other] = score

        return sorted(found.items(), key=lambda item: item[1], reverse=True)

    def best_matches(
        self,
        event_genres: list[str],
        user_genres: list[str],
        threshold: float = 0.3,
    ) -> list[GenreMatch]:
        """For every user genre, the most similar event genre above threshold."""
        matches = []
        for user_genre in user_genres:
            best_score = 0.0
            best_event_genre = ""
            for event_genre in event_genres:
                score = self.similarity(user_genre, event_genre)
                if score > best_score:
                    best_score = score
                    best_event_genre = event_genre

            if best_score > threshold:
                matches.append(GenreMatch(user_genre, best_event_genre, best_score))
        return matches

    def genre_score(self, event_genres: list[str], user_genres: list[str]) -> int:
        """
        Percentage (0-100) of the best similarity each user genre finds
        among the event genres. 0 for empty inputs.
        """
        if not event_genres or not user_genres:
            return 0

        total = 0.0
        for user_genre in user_genres:
            total += max(self.similarity(user_genre, g) for g in event_genres)

        return round(total / len(user_genres) * 100)

    def stats(self) -> dict:
        """Size and coverage of the authored table."""
        primary = len(self.matrix)
        mentioned = set(self.matrix.keys())
        relationships = 0
        for neighbours in self.matrix.values():
            relationships += len(neighbours)
            mentioned.update(neighbours.keys())

        return {
            "primary_genres": primary,
            "total_genres": len(mentioned),
            "total_relationships": relationships,
            "average_relationships_per_genre": round(relationships / primary) if primary else 0,
            "coverage": f"{round(primary / len(mentioned) * 100) if mentioned else 0}%",
        }
