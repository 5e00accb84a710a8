"""
SQLite database for persisted documents.

Three document stores plus the API cache table:
1. Taste profiles - the latest UserTaste built for each user
2. Events - normalised events from every provider, keyed by event id
3. Saved events - events a user has bookmarked
4. API cache - TTL-keyed payloads (see cache.py)
"""
import sqlite3
import json
import logging
from typing import Optional
from contextlib import contextmanager

from config import DB_PATH as DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

DB_PATH = DEFAULT_DB_PATH


def init_db():
    """Initialize the database with required tables."""
    with get_connection() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS taste_profiles (
                user_id TEXT PRIMARY KEY,
                profile TEXT NOT NULL,
                source TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                city TEXT,
                source TEXT,
                event_date TEXT,
                payload TEXT NOT NULL,
                fetched_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS saved_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                event_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                match_score INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(user_id, event_id)
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS api_cache (
                key TEXT PRIMARY KEY,
                data TEXT,
                expires_at REAL NOT NULL,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL,
                hits INTEGER NOT NULL DEFAULT 0
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_events_city
            ON events(city)
        """)

        conn.commit()


@contextmanager
def get_connection():
    """Get a database connection."""
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


# =========================================================================
# TASTE PROFILES
# =========================================================================

def save_taste_profile(user_id: str, profile: dict, source: str = "spotify") -> bool:
    """Replace the stored taste profile for a user."""
    with get_connection() as conn:
        try:
            conn.execute("""
                INSERT INTO taste_profiles (user_id, profile, source, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(user_id) DO UPDATE SET
                    profile = excluded.profile,
                    source = excluded.source,
                    updated_at = CURRENT_TIMESTAMP
            """, (user_id, json.dumps(profile), source))
            conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"[db] Taste profile save error: {e}")
            return False


def get_taste_profile(user_id: str) -> Optional[dict]:
    """Stored taste profile for a user, or None when onboarding is needed."""
    with get_connection() as conn:
        cursor = conn.execute("""
            SELECT profile FROM taste_profiles WHERE user_id = ?
        """, (user_id,))
        row = cursor.fetchone()
        return json.loads(row["profile"]) if row else None


def delete_taste_profile(user_id: str) -> bool:
    """Forget a user's taste profile."""
    with get_connection() as conn:
        cursor = conn.execute("""
            DELETE FROM taste_profiles WHERE user_id = ?
        """, (user_id,))
        conn.commit()
        return cursor.rowcount > 0


# =========================================================================
# EVENTS
# =========================================================================

def upsert_events(events: list[dict]) -> int:
    """Insert or refresh events by id. Returns the number written."""
    written = 0
    with get_connection() as conn:
        for event in events:
            event_id = event.get("id")
            if not event_id:
                continue
            conn.execute("""
                INSERT INTO events (id, city, source, event_date, payload, fetched_at)
                VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(id) DO UPDATE SET
                    city = excluded.city,
                    source = excluded.source,
                    event_date = excluded.event_date,
                    payload = excluded.payload,
                    fetched_at = CURRENT_TIMESTAMP
            """, (
                event_id,
                (event.get("city") or "").lower(),
                event.get("source"),
                event.get("date"),
                json.dumps(event),
            ))
            written += 1
        conn.commit()
    return written


def get_events(city: str, limit: int = 100) -> list[dict]:
    """Stored events for a city, soonest first."""
    with get_connection() as conn:
        cursor = conn.execute("""
            SELECT payload FROM events
            WHERE city = ?
            ORDER BY event_date ASC
            LIMIT ?
        """, (city.lower(), limit))
        return [json.loads(row["payload"]) for row in cursor.fetchall()]


def count_events(city: Optional[str] = None) -> int:
    """Number of stored events, optionally for one city."""
    with get_connection() as conn:
        if city:
            cursor = conn.execute(
                "SELECT COUNT(*) AS total FROM events WHERE city = ?", (city.lower(),)
            )
        else:
            cursor = conn.execute("SELECT COUNT(*) AS total FROM events")
        return cursor.fetchone()["total"]


# =========================================================================
# SAVED EVENTS
# =========================================================================

def save_event(user_id: str, event: dict, match_score: Optional[int] = None) -> bool:
    """Bookmark an event for a user. False if already saved."""
    with get_connection() as conn:
        try:
            conn.execute("""
                INSERT INTO saved_events (user_id, event_id, payload, match_score)
                VALUES (?, ?, ?, ?)
            """, (user_id, event["id"], json.dumps(event), match_score))
            conn.commit()
            return True
        except sqlite3.IntegrityError:
            return False


def remove_saved_event(user_id: str, event_id: str) -> bool:
    """Remove a bookmarked event."""
    with get_connection() as conn:
        cursor = conn.execute("""
            DELETE FROM saved_events WHERE user_id = ? AND event_id = ?
        """, (user_id, event_id))
        conn.commit()
        return cursor.rowcount > 0


def get_saved_events(user_id: str) -> list[dict]:
    """All bookmarked events for a user, newest first."""
    with get_connection() as conn:
        cursor = conn.execute("""
            SELECT payload, match_score, created_at
            FROM saved_events WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
        """, (user_id,))

        saved = []
        for row in cursor.fetchall():
            event = json.loads(row["payload"])
            event["match_score"] = row["match_score"]
            event["saved_at"] = row["created_at"]
            saved.append(event)
        return saved


def is_saved(user_id: str, event_id: str) -> bool:
    """Check if a user has bookmarked an event."""
    with get_connection() as conn:
        cursor = conn.execute("""
            SELECT 1 FROM saved_events WHERE user_id = ? AND event_id = ?
        """, (user_id, event_id))
        return cursor.fetchone() is not None


# Initialize database on module load
init_db()
