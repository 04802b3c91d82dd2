"""HTTP client for the library API, used by the player side."""

import logging
from typing import List, Optional
from urllib.parse import urljoin

import requests

from shared.models import Track, Playlist

logger = logging.getLogger(__name__)


class LibraryClientError(Exception):
    """Raised when the library API cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LibraryClient:
    """Thin wrapper around the songs/playlists endpoints."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        if base_url is None or timeout is None:
            from shared.config import API_URL, NETWORK_TIMEOUT
            base_url = base_url or API_URL
            timeout = timeout or NETWORK_TIMEOUT
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self._session = session or requests.Session()

    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def _request(self, method: str, path: str, **kwargs):
        url = self._url(path)
        try:
            r = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise LibraryClientError(f"{method} {url} failed: {e}") from e
        if not r.ok:
            try:
                detail = r.json().get("error")
            except (ValueError, AttributeError):
                detail = None
            raise LibraryClientError(
                f"{method} {url} returned {r.status_code}: {detail or r.reason}",
                status_code=r.status_code,
            )
        try:
            return r.json()
        except ValueError as e:
            raise LibraryClientError(f"{method} {url} returned invalid JSON") from e

    def _track(self, data: dict) -> Track:
        track = Track.from_dict(data)
        # Relative stream paths are resolved against the API host; a song
        # without one is streamed from its default endpoint
        if not track.audio_url:
            audio_url = self.stream_url(track.id)
        elif track.audio_url.startswith("/"):
            audio_url = self._url(track.audio_url)
        else:
            return track
        return Track(**{**track.to_dict(), "audio_url": audio_url})

    def get_tracks(self, query: Optional[str] = None) -> List[Track]:
        params = {"q": query} if query else None
        return [self._track(d) for d in self._request("GET", "/api/songs", params=params)]

    def get_playlists(self) -> List[Playlist]:
        playlists = []
        for data in self._request("GET", "/api/playlists"):
            playlist = Playlist.from_dict(data)
            playlist.tracks = [self._track(d) for d in data.get("songs", [])]
            playlists.append(playlist)
        return playlists

    def get_playlist(self, playlist_id: str) -> Playlist:
        data = self._request("GET", f"/api/playlists/{playlist_id}")
        playlist = Playlist.from_dict(data)
        playlist.tracks = [self._track(d) for d in data.get("songs", [])]
        return playlist

    def update_duration(self, track_id: str, duration_label: str) -> Track:
        """PATCH the measured duration of a song. Idempotent."""
        data = self._request("PATCH", f"/api/songs/{track_id}", json={"duration": duration_label})
        return self._track(data)

    def stream_url(self, track_id: str) -> str:
        return self._url(f"/api/songs/{track_id}/stream")
