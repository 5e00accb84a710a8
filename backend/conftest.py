"""
Shared pytest fixtures.
"""
import httpx
import pytest

import database as db
from artist_relationships import ArtistRelationshipStore
from spotify_client import AppTokenProvider


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point every storage call at a fresh database file."""
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "test.db"))
    db.init_db()
    yield db


@pytest.fixture
def offline_store(temp_db):
    """Artist store that never leaves the process."""
    return ArtistRelationshipStore(lastfm_api_key="", spotify_tokens=AppTokenProvider("", ""))


@pytest.fixture
def mock_http(monkeypatch):
    """Route every httpx.AsyncClient through a request handler."""
    real_client = httpx.AsyncClient

    def install(handler):
        def factory(*args, **kwargs):
            kwargs["transport"] = httpx.MockTransport(handler)
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)

    return install
