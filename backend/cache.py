"""
TTL cache backed by the api_cache table.

Each entry holds a JSON payload, an absolute expiry time and a hit
counter. Expiry is checked against the wall clock on every read: an
expired entry is deleted and reported as a miss. Writes are upserts, so
the last writer wins.

Storage errors never reach callers; they are logged and reported as a
miss (reads) or False (writes).
"""
import json
import logging
import re
import sqlite3
import time
from typing import Any, Optional

import database as db
from config import CACHE_TTL

logger = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


def ttl_for(cache_type: str) -> int:
    """TTL in seconds for a cache type, DEFAULT when unknown."""
    return CACHE_TTL.get(cache_type, CACHE_TTL["DEFAULT"])


def get_cached_data(key: str) -> Optional[Any]:
    """Cached payload for key, or None on miss/expiry."""
    try:
        with db.get_connection() as conn:
            row = conn.execute(
                "SELECT data, expires_at FROM api_cache WHERE key = ?", (key,)
            ).fetchone()

            if row is None:
                return None

            if _now() > row["expires_at"]:
                conn.execute("DELETE FROM api_cache WHERE key = ?", (key,))
                conn.commit()
                return None

            conn.execute("UPDATE api_cache SET hits = hits + 1 WHERE key = ?", (key,))
            conn.commit()
            return json.loads(row["data"])
    except (sqlite3.Error, ValueError) as e:
        logger.error(f"[cache] Retrieval error for {key}: {e}")
        return None


def set_cached_data(
    key: str,
    data: Any,
    cache_type: str = "DEFAULT",
    ttl_seconds: Optional[float] = None,
) -> bool:
    """
    Store a payload under key.

    ttl_seconds overrides the TTL derived from cache_type. The hit
    counter and creation time survive an overwrite.
    """
    ttl = ttl_seconds if ttl_seconds is not None else ttl_for(cache_type)
    now = _now()

    try:
        payload = json.dumps(data)
        with db.get_connection() as conn:
            conn.execute("""
                INSERT INTO api_cache (key, data, expires_at, created_at, updated_at, hits)
                VALUES (?, ?, ?, ?, ?, 0)
                ON CONFLICT(key) DO UPDATE SET
                    data = excluded.data,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
            """, (key, payload, now + ttl, now, now))
            conn.commit()
        return True
    except (sqlite3.Error, TypeError, ValueError) as e:
        logger.error(f"[cache] Storage error for {key}: {e}")
        return False


def invalidate_cache(key_pattern: str) -> int:
    """Delete every entry whose key matches the regex. Returns the count."""
    try:
        pattern = re.compile(key_pattern)
    except re.error as e:
        logger.warning(f"[cache] Invalid invalidation pattern {key_pattern!r}: {e}")
        return 0

    try:
        with db.get_connection() as conn:
            keys = [row["key"] for row in conn.execute("SELECT key FROM api_cache")]
            doomed = [key for key in keys if pattern.search(key)]
            conn.executemany("DELETE FROM api_cache WHERE key = ?", [(k,) for k in doomed])
            conn.commit()
            return len(doomed)
    except sqlite3.Error as e:
        logger.error(f"[cache] Invalidation error: {e}")
        return 0


def cleanup_expired() -> int:
    """Purge entries whose expiry has passed."""
    try:
        with db.get_connection() as conn:
            cursor = conn.execute("DELETE FROM api_cache WHERE expires_at < ?", (_now(),))
            conn.commit()
            return cursor.rowcount
    except sqlite3.Error as e:
        logger.error(f"[cache] Cleanup error: {e}")
        return 0


def cache_status(key_prefix: str = "") -> dict:
    """Entry counts and hit totals, optionally restricted to a key prefix."""
    now = _now()
    try:
        with db.get_connection() as conn:
            rows = conn.execute(
                "SELECT key, expires_at, hits FROM api_cache WHERE substr(key, 1, ?) = ?",
                (len(key_prefix), key_prefix),
            ).fetchall()
    except sqlite3.Error as e:
        logger.error(f"[cache] Status error: {e}")
        rows = []

    live = [row for row in rows if row["expires_at"] >= now]
    return {
        "total_entries": len(rows),
        "live_entries": len(live),
        "expired_entries": len(rows) - len(live),
        "total_hits": sum(row["hits"] for row in rows),
        "keys": sorted(row["key"] for row in live)[:50],
    }
