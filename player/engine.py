"""
Media sink backed by python-mpv.
Handles the low-level details of audio playback and turns mpv property
changes and events into SinkListener notifications.
"""

import logging
import threading
import time
from collections import deque
from typing import Optional, Tuple

import mpv

from shared.constants import TIME_UPDATE_INTERVAL
from player.media_sink import MediaSink

logger = logging.getLogger(__name__)


class MpvMediaSink(MediaSink):
    """Wrapper around MPV for audio-only playback."""

    def __init__(self, player: Optional["mpv.MPV"] = None):
        super().__init__()
        # vo='null' because we are audio-only; ytdl off since we provide direct URLs
        self.player = player or mpv.MPV(vo='null', video=False, ytdl=False)

        self._lock = threading.Lock()
        # Generations of loadfile commands not yet matched by a start-file event
        self._pending_loads: deque = deque()
        self._loaded_generation: Optional[int] = None
        self._file_ready = False
        self._duration_reported = False
        self._pending_play: Optional[Tuple[int, int]] = None
        self._last_play: Optional[Tuple[int, int]] = None

        # Throttling for time updates (reduce CPU usage)
        self._last_time_update = 0.0

        self.player.observe_property('time-pos', self._handle_time_update)
        self.player.observe_property('duration', self._handle_duration)
        self.player.event_callback('start-file')(self._handle_start_file)
        self.player.event_callback('file-loaded')(self._handle_file_loaded)
        self.player.event_callback('end-file')(self._handle_end_file)

    # --- MediaSink API ---

    def set_source(self, url: str, generation: int) -> None:
        with self._lock:
            self._pending_loads.append(generation)
            self._pending_play = None
        # Load paused; the controller decides whether to start it
        self.player.pause = True
        self.player.play(url)

    def play(self, generation: int, request_id: int) -> None:
        with self._lock:
            self._last_play = (generation, request_id)
            ready = self._file_ready and self._loaded_generation == generation and not self._pending_loads
            if not ready:
                self._pending_play = (generation, request_id)
        try:
            self.player.pause = False
        except Exception as e:
            self._emit('on_play_failed', generation, request_id, f"mpv refused to play: {e}")
            return
        if ready:
            self._emit('on_play_started', generation, request_id)

    def pause(self) -> None:
        with self._lock:
            self._pending_play = None
        try:
            self.player.pause = True
        except Exception as e:
            logger.warning("mpv pause failed: %s", e)

    def seek(self, seconds: float) -> None:
        target = max(0.0, float(seconds))
        duration = self.player.duration
        if duration:
            target = min(target, float(duration))
        try:
            self.player.seek(target, reference='absolute')
        except Exception as e:
            logger.warning("Error seeking to %.2fs: %s", target, e)

    def set_volume(self, percent: int) -> None:
        self.player.volume = max(0, min(100, int(percent)))

    def close(self) -> None:
        try:
            self.player.terminate()
        except Exception as e:
            logger.debug("mpv terminate failed: %s", e)

    # --- mpv handlers (run on mpv's event thread) ---

    def _emit(self, method: str, *args) -> None:
        if not self._listener:
            return
        try:
            getattr(self._listener, method)(*args)
        except Exception:
            logger.exception("Sink listener %s failed", method)

    def _handle_start_file(self, event):
        with self._lock:
            if self._pending_loads:
                self._loaded_generation = self._pending_loads.popleft()
            self._file_ready = False
            self._duration_reported = False
            self._last_time_update = 0.0

    def _handle_file_loaded(self, event):
        with self._lock:
            generation = self._loaded_generation
            self._file_ready = True
            pending = self._pending_play
            if pending and pending[0] == generation and not self._pending_loads:
                self._pending_play = None
            else:
                pending = None
        if pending:
            self._emit('on_play_started', *pending)

    def _handle_end_file(self, event):
        data = getattr(event, 'data', None)
        reason = getattr(data, 'reason', None)
        with self._lock:
            generation = self._loaded_generation
            self._file_ready = False
            last_play = self._last_play
            # end-file for the outgoing source arrives before start-file of the
            # next one; a play already queued for the next source must survive it
            if self._pending_play and self._pending_play[0] == generation:
                self._pending_play = None
        if generation is None:
            return
        if reason == mpv.MpvEventEndFile.EOF:
            self._emit('on_ended', generation)
        elif reason == mpv.MpvEventEndFile.ERROR:
            error = getattr(data, 'error', None)
            request_id = last_play[1] if last_play and last_play[0] == generation else 0
            self._emit('on_play_failed', generation, request_id, f"mpv could not play source (error {error})")

    def _handle_time_update(self, name, value):
        """Handle time position updates from MPV with throttling."""
        if value is None:
            return
        now = time.monotonic()
        with self._lock:
            generation = self._loaded_generation
            if generation is None or now - self._last_time_update < TIME_UPDATE_INTERVAL:
                return
            self._last_time_update = now
        self._emit('on_time_update', generation, float(value))

    def _handle_duration(self, name, value):
        if value is None or value <= 0:
            return
        with self._lock:
            generation = self._loaded_generation
            if generation is None or self._duration_reported:
                return
            self._duration_reported = True
        self._emit('on_duration_known', generation, float(value))
