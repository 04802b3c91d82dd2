from unittest.mock import MagicMock

import pytest

from conftest import make_track
from shared.api_client import LibraryClient, LibraryClientError
from shared.models import Playlist
from player.library import LibraryManager


@pytest.fixture
def api_client():
    client = MagicMock(spec=LibraryClient)
    client.get_tracks.return_value = [
        make_track("1", title="Blue Monday"),
        make_track("2", title="Karma Police"),
    ]
    client.get_playlists.return_value = [
        Playlist(id="p1", name="Road Trip", tracks=[make_track("2")]),
        Playlist(id="p2", name="road trip", tracks=[make_track("1")]),
    ]
    return client


@pytest.fixture
def library(api_client):
    lib = LibraryManager(client=api_client)
    assert lib.sync_library()
    return lib


def test_sync_loads_tracks_and_playlists(library):
    assert [t.id for t in library.get_all_tracks()] == ["1", "2"]
    assert len(library.playlists) == 2


def test_sync_failure_keeps_previous_copy(library, api_client):
    api_client.get_tracks.side_effect = LibraryClientError("down")
    assert library.sync_library() is False
    assert len(library.tracks) == 2


def test_search(library):
    assert [t.id for t in library.search("karma")] == ["2"]
    assert [t.id for t in library.search("tester")] == ["1", "2"]
    assert len(library.search("")) == 2
    assert library.search("zzz") == []


def test_get_playlist_prefers_id_then_exact_name(library):
    assert library.get_playlist("p2").id == "p2"
    assert library.get_playlist("road trip").id == "p2"
    assert library.get_playlist("Road Trip").id == "p1"
    assert library.get_playlist("ROAD TRIP").id == "p1"
    assert library.get_playlist("missing") is None


def test_report_duration_goes_through_client(library, api_client):
    library.report_duration("1", "3:00")
    api_client.update_duration.assert_called_once_with("1", "3:00")


def test_get_playlist_refresh_fetches_current_order(library, api_client):
    fresh = Playlist(id="p1", name="Road Trip", tracks=[make_track("1"), make_track("2")])
    api_client.get_playlist.return_value = fresh

    assert library.get_playlist("Road Trip") is not fresh
    api_client.get_playlist.assert_not_called()

    assert library.get_playlist("Road Trip", refresh=True) is fresh
    api_client.get_playlist.assert_called_once_with("p1")
    assert library.get_playlist("p1") is fresh


def test_get_playlist_refresh_falls_back_to_synced_copy(library, api_client):
    api_client.get_playlist.side_effect = LibraryClientError("down")
    playlist = library.get_playlist("p1", refresh=True)
    assert playlist.id == "p1"
    assert [t.id for t in playlist.tracks] == ["2"]
    assert library.get_playlist("missing", refresh=True) is None
