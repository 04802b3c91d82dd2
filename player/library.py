"""
Library access for the player.
Loads songs and playlists from the library API and resolves stream URLs.
"""

import logging
from typing import List, Optional

from shared.api_client import LibraryClient, LibraryClientError
from shared.models import Track, Playlist

logger = logging.getLogger(__name__)


class LibraryManager:
    """Client-side view of the music library."""

    def __init__(self, client: Optional[LibraryClient] = None):
        self.client = client or LibraryClient()
        self.tracks: List[Track] = []
        self.playlists: List[Playlist] = []

    def sync_library(self) -> bool:
        """Fetch songs and playlists. Keeps the previous copy if the API is unreachable."""
        try:
            tracks = self.client.get_tracks()
            playlists = self.client.get_playlists()
        except LibraryClientError as e:
            logger.error("Sync failed: %s", e)
            return False
        self.tracks = tracks
        self.playlists = playlists
        logger.debug("Library synced: %d tracks, %d playlists", len(tracks), len(playlists))
        return True

    def get_all_tracks(self) -> List[Track]:
        return list(self.tracks)

    def search(self, query: str) -> List[Track]:
        """Case-insensitive match on title or artist."""
        if not query:
            return self.get_all_tracks()
        query = query.lower()
        return [t for t in self.tracks if query in t.title.lower() or query in t.artist.lower()]

    def _find_playlist(self, name_or_id: str) -> Optional[Playlist]:
        for p in self.playlists:
            if p.id == name_or_id:
                return p
        for p in self.playlists:
            if p.name == name_or_id:
                return p
        lowered = name_or_id.lower()
        return next((p for p in self.playlists if p.name.lower() == lowered), None)

    def get_playlist(self, name_or_id: str, refresh: bool = False) -> Optional[Playlist]:
        """
        Find a playlist by id, then by exact name, then by case-insensitive name.

        With ``refresh`` the match is re-fetched from the API so songs added
        or reordered since the last sync are played in their current order.
        The synced copy is returned if the API cannot be reached.
        """
        playlist = self._find_playlist(name_or_id)
        if playlist is None or not refresh:
            return playlist
        try:
            fresh = self.client.get_playlist(playlist.id)
        except LibraryClientError as e:
            logger.warning("Could not refresh playlist '%s': %s", playlist.name, e)
            return playlist
        self.playlists = [fresh if p.id == fresh.id else p for p in self.playlists]
        return fresh

    def report_duration(self, track_id: str, duration_label: str) -> Track:
        """Persist a measured duration upstream (used by the duration reporter)."""
        return self.client.update_duration(track_id, duration_label)
