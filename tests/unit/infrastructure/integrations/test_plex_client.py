"""Tests for the Plex client (httpx.MockTransport, no network)."""

from collections.abc import Callable

import httpx
import pytest

from tunebridge.config.settings import PlexSettings
from tunebridge.domain.exceptions import (
    ExternalServiceError,
    NoConnectionFoundError,
    NoMusicSectionError,
    NoServerFoundError,
    ValidationError,
)
from tunebridge.infrastructure.integrations.plex_client import PlexClient, _clean_title

BASE = "https://1-2-3-4.abcdef.plex.direct:32400"
TOKEN = "plex-token"

Handler = Callable[[httpx.Request], httpx.Response]


def xml(body: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=body.encode("utf-8"))


def make_client(handler: Handler) -> PlexClient:
    transport = httpx.MockTransport(handler)
    return PlexClient(PlexSettings(), client=httpx.AsyncClient(transport=transport))


RESOURCES = f"""
<MediaContainer>
  <Device name="Player" provides="player" clientIdentifier="player1"/>
  <Device name="Home" provides="client,server" clientIdentifier="machine-abc">
    <Connection protocol="http" uri="http://192.168.1.2:32400" local="1"/>
    <Connection protocol="https" uri="{BASE}" local="0"/>
  </Device>
</MediaContainer>
"""


class TestCleanTitle:
    def test_removes_control_chars_and_variation_selector(self) -> None:
        assert _clean_title("Chill\x07 Vibes\ufe0f ") == "Chill Vibes"


class TestDiscovery:
    """Test server discovery via plex.tv resources."""

    async def test_prefers_remote_https_connection(self) -> None:
        """Remote https wins and clientIdentifier is the server id."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return xml(RESOURCES)

        base_url, server_id = await make_client(handler).discover_server(TOKEN)

        assert base_url == BASE
        assert server_id == "machine-abc"
        request = seen[0]
        assert request.url.host == "plex.tv"
        assert request.url.params["X-Plex-Token"] == TOKEN
        assert request.url.params["includeHttps"] == "1"
        assert request.headers["X-Plex-Client-Identifier"] == PlexSettings().client_identifier
        assert request.headers["X-Plex-Product"] == PlexSettings().product

    async def test_first_connection_when_no_remote_https(self) -> None:
        body = """
        <MediaContainer>
          <Device provides="server" clientIdentifier="m1">
            <Connection protocol="http" uri="http://10.0.0.2:32400/" local="1"/>
          </Device>
        </MediaContainer>"""
        base_url, _ = await make_client(lambda r: xml(body)).discover_server(TOKEN)
        assert base_url == "http://10.0.0.2:32400"

    async def test_no_server(self) -> None:
        body = '<MediaContainer><Device provides="player"/></MediaContainer>'
        with pytest.raises(NoServerFoundError):
            await make_client(lambda r: xml(body)).discover_server(TOKEN)

    async def test_no_connection(self) -> None:
        body = '<MediaContainer><Device provides="server" clientIdentifier="m"/></MediaContainer>'
        with pytest.raises(NoConnectionFoundError):
            await make_client(lambda r: xml(body)).discover_server(TOKEN)

    async def test_server_id_from_identity_endpoint(self) -> None:
        """Root probe fails, /identity answers."""
        resources = f"""
        <MediaContainer>
          <Device provides="server">
            <Connection protocol="https" uri="{BASE}" local="0"/>
          </Device>
        </MediaContainer>"""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "plex.tv":
                return xml(resources)
            if request.url.path == "/identity":
                return xml('<MediaContainer machineIdentifier="from-identity"/>')
            return xml("", status_code=500)

        _, server_id = await make_client(handler).discover_server(TOKEN)
        assert server_id == "from-identity"

    async def test_server_id_from_host_label(self) -> None:
        resources = """
        <MediaContainer>
          <Device provides="server">
            <Connection protocol="https" uri="https://abcdefghijklmnop.plex.direct:32400" local="0"/>
          </Device>
        </MediaContainer>"""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "plex.tv":
                return xml(resources)
            return xml("", status_code=404)

        _, server_id = await make_client(handler).discover_server(TOKEN)
        assert server_id == "abcdefghijklmnop"

    async def test_server_id_unknown_as_last_resort(self) -> None:
        resources = """
        <MediaContainer>
          <Device provides="server">
            <Connection protocol="http" uri="http://10.0.0.2:32400" local="1"/>
          </Device>
        </MediaContainer>"""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "plex.tv":
                return xml(resources)
            return xml("not xml at all")

        _, server_id = await make_client(handler).discover_server(TOKEN)
        assert server_id == "unknown"


class TestMusicSection:
    async def test_first_music_section(self) -> None:
        body = """
        <MediaContainer>
          <Directory type="movie" key="1"/>
          <Directory type="artist" key="3"/>
          <Directory type="artist" key="7"/>
        </MediaContainer>"""
        key = await make_client(lambda r: xml(body)).find_music_section(BASE, TOKEN)
        assert key == "3"

    async def test_no_music_section(self) -> None:
        body = '<MediaContainer><Directory type="show" key="2"/></MediaContainer>'
        with pytest.raises(NoMusicSectionError):
            await make_client(lambda r: xml(body)).find_music_section(BASE, TOKEN)


class TestPlaylists:
    """Test playlist listing and CRUD."""

    async def test_list_playlists_filters(self) -> None:
        body = """
        <MediaContainer>
          <Playlist ratingKey="1" title="Road Trip" playlistType="audio"/>
          <Playlist ratingKey="2" title="All Music" playlistType="audio"/>
          <Playlist ratingKey="3" title="Movies" playlistType="video"/>
          <Playlist ratingKey="4" titleSort="Sorted Only" playlistType="audio"/>
          <Playlist ratingKey="1" title="Road Trip" playlistType="audio"/>
          <Playlist ratingKey="5" title="Emoji&#xFE0F;" playlistType="audio"/>
          <Playlist ratingKey="6" title="RECENTLY PLAYED" playlistType="audio"/>
        </MediaContainer>"""
        playlists = await make_client(lambda r: xml(body)).list_playlists(BASE, TOKEN)
        assert [(p.id, p.title) for p in playlists] == [
            ("1", "Road Trip"),
            ("4", "Sorted Only"),
            ("5", "Emoji"),
        ]

    async def test_create_playlist(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return xml('<MediaContainer><Playlist ratingKey="99"/></MediaContainer>')

        playlist_id = await make_client(handler).create_playlist(
            BASE, "3", "Spotify - Road Trip (2023)", TOKEN
        )

        assert playlist_id == "99"
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/playlists"
        assert request.url.params["type"] == "audio"
        assert request.url.params["smart"] == "0"
        assert request.url.params["uri"] == "library://3/item/0"
        assert request.url.params["title"].startswith("Spotify - Road Trip_Spotify_")

    async def test_create_playlist_without_id(self) -> None:
        with pytest.raises(ExternalServiceError):
            await make_client(lambda r: xml("<MediaContainer/>")).create_playlist(
                BASE, "3", "X", TOKEN
            )

    async def test_get_playlist_items_defaults(self) -> None:
        body = """
        <MediaContainer>
          <Track ratingKey="10" title="Song" grandparentTitle="Artist"/>
          <Track ratingKey="11"/>
        </MediaContainer>"""
        items = await make_client(lambda r: xml(body)).get_playlist_items(BASE, "1", TOKEN)
        assert [(i.title, i.artist, i.rating_key) for i in items] == [
            ("Song", "Artist", "10"),
            ("Untitled", "Unknown", "11"),
        ]

    async def test_rename_playlist(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        await make_client(handler).rename_playlist(BASE, "7", "New Name", TOKEN)
        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/playlists/7"
        assert seen[0].url.params["title"] == "New Name"

    async def test_delete_propagates_http_error(self) -> None:
        with pytest.raises(httpx.HTTPStatusError):
            await make_client(lambda r: httpx.Response(404)).delete_playlist(BASE, "7", TOKEN)


class TestAddItems:
    """Test bulk item upload."""

    async def test_uri_and_confirmation(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"MediaContainer": {"leafCountAdded": 2}})

        ok = await make_client(handler).add_items(BASE, "5", ["10", "11"], "machine-abc", TOKEN)

        assert ok is True
        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == "/playlists/5/items"
        assert request.url.params["uri"] == (
            "server://machine-abc/com.plexapp.plugins.library/library/metadata/10,11"
        )
        assert request.headers["Accept"] == "application/json"

    async def test_unconfirmed_response_is_failure(self) -> None:
        ok = await make_client(lambda r: httpx.Response(200, json={})).add_items(
            BASE, "5", ["10"], "m", TOKEN
        )
        assert ok is False

    async def test_non_success_is_failure(self) -> None:
        ok = await make_client(lambda r: httpx.Response(500, text="size")).add_items(
            BASE, "5", ["10"], "m", TOKEN
        )
        assert ok is False

    async def test_empty_server_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            await make_client(lambda r: httpx.Response(200)).add_items(BASE, "5", ["10"], "", TOKEN)

    async def test_no_keys(self) -> None:
        ok = await make_client(lambda r: httpx.Response(200)).add_items(BASE, "5", [], "m", TOKEN)
        assert ok is False


class TestSearch:
    """Test the three search flavours."""

    async def test_search_exact_checks_artist(self) -> None:
        seen: list[httpx.Request] = []
        body = """
        <MediaContainer librarySectionID="3" machineIdentifier="machine-abc">
          <Track ratingKey="1" title="Song" grandparentTitle="Someone Else"/>
          <Track ratingKey="2" title="Song" grandparentTitle="the artist"/>
        </MediaContainer>"""

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return xml(body)

        candidate = await make_client(handler).search_exact(BASE, "3", "Song", "The Artist", TOKEN)

        assert candidate is not None
        assert candidate.rating_key == "2"
        assert candidate.library_section == "3"
        assert candidate.server_id == "machine-abc"
        assert seen[0].url.path == "/library/sections/3/all"
        assert seen[0].url.params["type"] == "10"
        assert seen[0].url.params["track.title"] == "Song"
        assert seen[0].url.params["artist"] == "The Artist"

    async def test_search_exact_no_artist_match(self) -> None:
        body = '<MediaContainer><Track ratingKey="1" grandparentTitle="Other"/></MediaContainer>'
        client = make_client(lambda r: xml(body))
        assert await client.search_exact(BASE, "3", "Song", "Artist", TOKEN) is None

    async def test_search_fuzzy_drops_placeholder_artists(self) -> None:
        body = """
        <MediaContainer librarySectionID="3" machineIdentifier="m">
          <Track ratingKey="1" title="Song" grandparentTitle="Various Artists"/>
          <Track ratingKey="2" title="Song" grandparentTitle=""/>
          <Track ratingKey="3" title="Song" grandparentTitle="Artist"/>
        </MediaContainer>"""
        candidates = await make_client(lambda r: xml(body)).search_fuzzy(
            BASE, "3", "Artist Song", TOKEN
        )
        assert [c.rating_key for c in candidates] == ["3"]

    async def test_search_global(self) -> None:
        seen: list[httpx.Request] = []
        body = """
        <MediaContainer machineIdentifier="m">
          <Track ratingKey="8" librarySectionID="4" title="Song" grandparentTitle="Artist"/>
        </MediaContainer>"""

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return xml(body)

        candidate = await make_client(handler).search_global(BASE, "Artist Song", "artist", TOKEN)
        assert candidate is not None
        assert candidate.rating_key == "8"
        assert candidate.library_section == "4"
        assert seen[0].url.path == "/search"
