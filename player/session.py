"""
Session-scoped wiring of the playback core.

Every entry point (library listing, playlist view, transport controls)
drives the same controller. They reach it through get_session() or take a
PlayerSession as an argument; nothing else holds playback globals.
"""

import logging
import threading
from typing import Iterable, Optional

from shared.constants import DEFAULT_VOLUME
from shared.models import Track
from player.controller import PlaybackController
from player.duration_reporter import DurationReporter
from player.library import LibraryManager
from player.media_sink import MediaSink

logger = logging.getLogger(__name__)


class PlayerSession:
    """Library plus the one controller that plays from it."""

    def __init__(self, library: LibraryManager, controller: PlaybackController):
        self.library = library
        self.controller = controller

    def play_tracks(self, tracks: Iterable[Track], start_index: int = 0) -> bool:
        """Load a sequence and start it. Returns False when there was nothing to play."""
        tracks = list(tracks)
        if not tracks:
            return False
        self.controller.load_sequence(tracks, start_index)
        self.controller.play()
        return True

    def play_playlist(self, name_or_id: str, start_index: int = 0) -> bool:
        playlist = self.library.get_playlist(name_or_id, refresh=True)
        if playlist is None:
            logger.warning("No playlist named %r", name_or_id)
            return False
        return self.play_tracks(playlist.tracks, start_index)

    def close(self) -> None:
        self.controller.close()


def create_session(sink: Optional[MediaSink] = None, library: Optional[LibraryManager] = None,
                   volume: int = DEFAULT_VOLUME) -> PlayerSession:
    library = library or LibraryManager()
    if sink is None:
        # Imported here: loading python-mpv needs libmpv on the system
        from player.engine import MpvMediaSink
        sink = MpvMediaSink()
    reporter = DurationReporter(library.report_duration)
    controller = PlaybackController(sink, reporter=reporter, volume=volume)
    return PlayerSession(library, controller)


_session: Optional[PlayerSession] = None
_session_lock = threading.Lock()


def get_session(**kwargs) -> PlayerSession:
    """Return the process-wide session, creating it on first use."""
    global _session
    with _session_lock:
        if _session is None:
            _session = create_session(**kwargs)
        return _session


def close_session() -> None:
    global _session
    with _session_lock:
        if _session is not None:
            _session.close()
            _session = None
