import pytest

from shared.models import Track
from player.controller import PlaybackController
from player.media_sink import MediaSink


class FakeMediaSink(MediaSink):
    """Records every command and lets tests push notifications back."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.source = None
        self.generation = None
        self.play_requests = []
        self.volume = None
        self.closed = False

    def set_source(self, url, generation):
        self.calls.append(("set_source", url, generation))
        self.source = url
        self.generation = generation

    def play(self, generation, request_id):
        self.calls.append(("play", generation, request_id))
        self.play_requests.append((generation, request_id))

    def pause(self):
        self.calls.append(("pause",))

    def seek(self, seconds):
        self.calls.append(("seek", seconds))

    def set_volume(self, percent):
        self.calls.append(("set_volume", percent))
        self.volume = percent

    def close(self):
        self.closed = True

    def last_call(self, name):
        return next((c for c in reversed(self.calls) if c[0] == name), None)

    # Notifications, by default for the source currently loaded
    def time_update(self, seconds, generation=None):
        self._listener.on_time_update(self.generation if generation is None else generation, seconds)

    def duration_known(self, seconds, generation=None):
        self._listener.on_duration_known(self.generation if generation is None else generation, seconds)

    def ended(self, generation=None):
        self._listener.on_ended(self.generation if generation is None else generation)

    def play_started(self, request=None):
        generation, request_id = request or self.play_requests[-1]
        self._listener.on_play_started(generation, request_id)

    def play_failed(self, request=None, reason="not allowed"):
        generation, request_id = request or self.play_requests[-1]
        self._listener.on_play_failed(generation, request_id, reason)


class RecordingReporter:
    def __init__(self):
        self.reports = []
        self.shut_down = False

    def maybe_report(self, track, seconds):
        self.reports.append((track.id, seconds))

    def shutdown(self, wait=False):
        self.shut_down = True


def track_ids(playlist):
    return [t.id for t in playlist.tracks]


def make_track(track_id, title=None, duration="0:00"):
    return Track(
        id=track_id,
        title=title or f"Song {track_id}",
        artist="Tester",
        audio_url=f"http://library.local/api/songs/{track_id}/stream",
        duration_label=duration,
    )


@pytest.fixture
def tracks():
    return [make_track("a"), make_track("b"), make_track("c")]


@pytest.fixture
def sink():
    return FakeMediaSink()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def controller(sink, reporter):
    return PlaybackController(sink, reporter=reporter)
