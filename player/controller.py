"""
Playback controller.

The single writer of PlaybackState. User intents (play, pause, next, ...)
and media sink notifications both come through here, one at a time, and
each one runs to completion before the next is looked at.

Every source handed to the sink gets a fresh generation number and every
play request a fresh request id. Sink notifications carry those tags back,
and anything that does not match what the controller currently wants is
dropped, so a slow play() or a late metadata callback for a track we
already left cannot leak into the state of the new one.
"""

import logging
import math
import threading
from typing import Callable, Iterable, List, Optional

from shared.constants import DEFAULT_VOLUME, MIN_VOLUME, MAX_VOLUME
from shared.models import Track
from player.duration_reporter import DurationReporter
from player.media_sink import MediaSink, SinkListener
from player.state import PlaybackState, PlaybackSnapshot

logger = logging.getLogger(__name__)


def clamp_volume(percent, fallback: int = DEFAULT_VOLUME) -> int:
    """Clamp to [0, 100]. Non-numeric or non-finite input yields ``fallback``."""
    try:
        value = float(percent)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(value):
        return fallback
    if math.isinf(value):
        return MAX_VOLUME if value > 0 else MIN_VOLUME
    return max(MIN_VOLUME, min(MAX_VOLUME, int(round(value))))


class PlaybackController(SinkListener):
    """State machine for transport intents over one media sink."""

    def __init__(self, sink: MediaSink, reporter: Optional[DurationReporter] = None,
                 volume: int = DEFAULT_VOLUME):
        self._sink = sink
        self._reporter = reporter
        self._state = PlaybackState(volume=clamp_volume(volume))
        self._lock = threading.RLock()
        self._generation = 0
        self._play_request = 0
        self._on_change_callbacks: List[Callable[[PlaybackSnapshot], None]] = []

        self._sink.set_listener(self)
        self._sink.set_volume(self._state.volume)

    @property
    def state(self) -> PlaybackSnapshot:
        with self._lock:
            return self._state.snapshot()

    # --- change notification ---

    def add_change_callback(self, callback: Callable[[PlaybackSnapshot], None]) -> None:
        """Register a callback that receives a snapshot after every state change."""
        if callback not in self._on_change_callbacks:
            self._on_change_callbacks.append(callback)

    def remove_change_callback(self, callback: Callable[[PlaybackSnapshot], None]) -> None:
        if callback in self._on_change_callbacks:
            self._on_change_callbacks.remove(callback)

    def _notify_change(self) -> None:
        snapshot = self._state.snapshot()
        for callback in list(self._on_change_callbacks):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Error in playback change callback %r", callback)

    # --- internal transitions ---

    def _request_play(self) -> None:
        self._play_request += 1
        self._sink.play(self._generation, self._play_request)

    def _load_current(self) -> None:
        """Hand the current track to the sink under a new generation."""
        st = self._state
        self._generation += 1
        st.elapsed = 0.0
        st.known_duration = None
        track = st.current
        logger.info("Loading '%s' by %s (%d/%d)", track.title, track.artist,
                    st.position + 1, len(st.sequence))
        self._sink.set_source(track.audio_url, self._generation)
        if st.is_playing:
            self._request_play()

    def _move_to(self, index: int, playing: bool) -> None:
        self._state.position = index
        self._state.is_playing = playing
        self._load_current()

    # --- intents ---

    def load_sequence(self, tracks: Iterable[Track], start_index: int = 0) -> None:
        """
        Replace the sequence and focus ``start_index``.

        Loading is inert: the transport flag is left as it was, so a
        sequence loaded while paused stays paused until play() is called.
        """
        tracks = list(tracks)
        if not tracks:
            logger.warning("Ignoring request to load an empty sequence")
            return
        start_index = max(0, min(int(start_index), len(tracks) - 1))
        with self._lock:
            previous = self._state
            self._state = PlaybackState(
                sequence=tracks,
                position=start_index,
                is_playing=previous.is_playing,
                volume=previous.volume,
            )
            self._load_current()
            self._notify_change()

    def select_track(self, track: Track) -> None:
        """
        Play a specific track.

        Selecting the track that is already playing pauses it; selecting it
        while paused resumes it where it was. Any other track starts from 0,
        inside the active sequence if it is part of it, otherwise as a
        sequence of its own.
        """
        with self._lock:
            st = self._state
            current = st.current
            if current is not None and current.id == track.id:
                if st.is_playing:
                    st.is_playing = False
                    self._sink.pause()
                else:
                    st.is_playing = True
                    self._request_play()
                self._notify_change()
                return

            index = next((i for i, t in enumerate(st.sequence) if t.id == track.id), None)
            if index is None:
                st.sequence = [track]
                index = 0
            self._move_to(index, playing=True)
            self._notify_change()

    def play(self) -> None:
        with self._lock:
            st = self._state
            if st.current is None or st.is_playing:
                return
            st.is_playing = True
            self._request_play()
            self._notify_change()

    def pause(self) -> None:
        with self._lock:
            st = self._state
            if st.current is None or not st.is_playing:
                return
            st.is_playing = False
            self._sink.pause()
            self._notify_change()

    def toggle_play(self) -> None:
        with self._lock:
            if self._state.is_playing:
                self.pause()
            else:
                self.play()

    def stop(self) -> None:
        """Pause, then seek to the start. The sequence and current track are kept."""
        with self._lock:
            if self._state.current is None:
                return
            self.pause()
            self.seek(0)

    def next(self) -> None:
        """Skip forward. Past the last track this wraps to the first and keeps playing."""
        with self._lock:
            st = self._state
            if st.current is None:
                return
            index = st.position + 1 if st.position < st.last_index else 0
            self._move_to(index, playing=True)
            self._notify_change()

    def previous(self) -> None:
        """Skip back. Before the first track this wraps to the last."""
        with self._lock:
            st = self._state
            if st.current is None:
                return
            index = st.position - 1 if st.position > 0 else st.last_index
            self._move_to(index, playing=True)
            self._notify_change()

    def seek(self, seconds: float) -> None:
        with self._lock:
            st = self._state
            if st.current is None:
                return
            target = max(0.0, float(seconds))
            if st.known_duration is not None:
                target = min(target, st.known_duration)
            st.elapsed = target
            self._sink.seek(target)
            self._notify_change()

    def set_volume(self, percent) -> None:
        with self._lock:
            self._state.volume = clamp_volume(percent, fallback=self._state.volume)
            self._sink.set_volume(self._state.volume)
            self._notify_change()

    def close(self) -> None:
        with self._lock:
            sink, reporter = self._sink, self._reporter
        # Outside the lock: closing mpv joins its event thread, which may be
        # waiting on this lock to deliver a notification
        sink.close()
        if reporter:
            reporter.shutdown()

    # --- sink notifications ---

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation != self._generation:
            logger.debug("Dropping %s for generation %d (current %d)", what, generation, self._generation)
            return True
        return False

    def on_time_update(self, generation: int, seconds: float) -> None:
        with self._lock:
            if self._is_stale(generation, "time update"):
                return
            # Last write wins, including a stale position right after a seek
            self._state.elapsed = max(0.0, float(seconds))
            self._notify_change()

    def on_duration_known(self, generation: int, seconds: float) -> None:
        with self._lock:
            if self._is_stale(generation, "duration"):
                return
            st = self._state
            st.known_duration = float(seconds)
            self._notify_change()
            if self._reporter:
                self._reporter.maybe_report(st.current, st.known_duration)

    def on_ended(self, generation: int) -> None:
        """
        Natural end of a track: advance, or stop at the end of the sequence.

        Unlike a manual next(), running off the last track does not loop.
        """
        with self._lock:
            if self._is_stale(generation, "end of track"):
                return
            st = self._state
            if st.position < st.last_index:
                self._move_to(st.position + 1, playing=True)
            else:
                logger.info("Reached end of sequence; stopping")
                self._move_to(0, playing=False)
            self._notify_change()

    def on_play_started(self, generation: int, request_id: int) -> None:
        with self._lock:
            if self._is_stale(generation, "play start"):
                return
            if not self._state.is_playing:
                # The user paused while this play() was in flight; keep the sink in line
                logger.debug("Play request %d resolved after pause; pausing sink", request_id)
                self._sink.pause()

    def on_play_failed(self, generation: int, request_id: int, reason: str) -> None:
        with self._lock:
            if self._is_stale(generation, "play failure"):
                return
            if request_id != self._play_request or not self._state.is_playing:
                logger.debug("Ignoring failure of superseded play request %d", request_id)
                return
            current = self._state.current
            logger.warning("Playback of '%s' failed: %s", current.title if current else "?", reason)
            self._state.is_playing = False
            self._notify_change()
