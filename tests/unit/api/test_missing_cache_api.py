"""Tests for the missing-track cache endpoints."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from tunebridge.infrastructure.integrations.plex_client import PlexClient
from tunebridge.infrastructure.persistence.missing_cache_store import MissingCacheStore
from tunebridge.main import create_app

HEADERS = {"X-Plex-Token": "plex-token"}


@pytest.fixture
def cache(tmp_path: Path) -> MissingCacheStore:
    store = MissingCacheStore(tmp_path)
    store.update("srv-1", "Spotify - Road Trip", ["Zed — Zulu", "Abba — Gold — Waterloo"])
    store.update("srv-2", "Other Server", ["Someone — Something"])
    return store


@pytest.fixture
def client(cache: MissingCacheStore) -> TestClient:
    plex = AsyncMock(spec=PlexClient)
    plex.discover_server.return_value = ("https://plex:32400", "srv-1")
    app = create_app()
    app.state.plex_client = plex
    app.state.missing_cache = cache
    return TestClient(app)


class TestMissingSnapshot:
    def test_only_callers_server(self, client: TestClient) -> None:
        response = client.get("/api/plex/missing", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["server_id"] == "srv-1"
        assert [e["playlist_name"] for e in body["entries"]] == ["Spotify - Road Trip"]
        assert body["entries"][0]["count"] == 2

    def test_requires_token(self, client: TestClient) -> None:
        assert client.get("/api/plex/missing").status_code == 401


class TestMissingCsv:
    """Downloading the CSV consumes the entry."""

    def test_download_then_gone(self, client: TestClient, cache: MissingCacheStore) -> None:
        response = client.get("/api/plex/missing/Spotify - Road Trip.csv", headers=HEADERS)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "Spotify - Road Trip_missing.csv" in response.headers["content-disposition"]
        assert response.text.splitlines() == [
            "Playlist;Artist;Album;Title",
            "Spotify - Road Trip;Abba;Gold;Waterloo",
            "Spotify - Road Trip;Zed;;Zulu",
        ]
        assert cache.get_entry("srv-1", "Spotify - Road Trip") is None

        again = client.get("/api/plex/missing/Spotify - Road Trip.csv", headers=HEADERS)
        assert again.status_code == 404

    def test_unknown_playlist_is_404(self, client: TestClient) -> None:
        response = client.get("/api/plex/missing/Nope.csv", headers=HEADERS)
        assert response.status_code == 404


class TestClearMissing:
    def test_clears_only_callers_server(self, client: TestClient, cache: MissingCacheStore) -> None:
        response = client.delete("/api/plex/missing", headers=HEADERS)

        assert response.status_code == 204
        assert cache.load("srv-1") == {}
        assert "Other Server" in cache.load("srv-2")
