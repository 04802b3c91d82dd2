import importlib
import sys
import types
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest


class FakeMPV:
    """Stands in for mpv.MPV; records commands and exposes registered handlers."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.observers = {}
        self.events = {}
        self.played = []
        self.seeks = []
        self.volume = None
        self.duration = None
        self.terminated = False
        self.refuse_unpause = False
        self._pause = False

    @property
    def pause(self):
        return self._pause

    @pause.setter
    def pause(self, value):
        if not value and self.refuse_unpause:
            raise RuntimeError("property unavailable")
        self._pause = value

    def observe_property(self, name, handler):
        self.observers[name] = handler

    def event_callback(self, name):
        def register(handler):
            self.events[name] = handler
            return handler
        return register

    def play(self, url):
        self.played.append(url)

    def seek(self, target, reference=None):
        self.seeks.append((target, reference))

    def terminate(self):
        self.terminated = True

    # helpers for tests
    def fire(self, name, reason=None, error=None):
        self.events[name](SimpleNamespace(data=SimpleNamespace(reason=reason, error=error)))

    def load(self):
        self.fire('start-file')
        self.fire('file-loaded')


@pytest.fixture
def engine(monkeypatch):
    fake_mpv = types.ModuleType("mpv")
    fake_mpv.MPV = FakeMPV
    fake_mpv.MpvEventEndFile = SimpleNamespace(EOF=0, STOP=2, QUIT=3, ERROR=4, REDIRECT=5)
    monkeypatch.setitem(sys.modules, "mpv", fake_mpv)
    monkeypatch.delitem(sys.modules, "player.engine", raising=False)
    module = importlib.import_module("player.engine")
    yield module
    sys.modules.pop("player.engine", None)


@pytest.fixture
def listener():
    return MagicMock()


@pytest.fixture
def sink(engine, listener):
    s = engine.MpvMediaSink()
    s.set_listener(listener)
    return s


def test_default_player_is_audio_only(sink):
    assert sink.player.kwargs == {"vo": "null", "video": False, "ytdl": False}
    assert set(sink.player.observers) == {"time-pos", "duration"}
    assert set(sink.player.events) == {"start-file", "file-loaded", "end-file"}


def test_set_source_loads_paused(sink):
    sink.set_source("http://x/1", 1)
    assert sink.player.pause is True
    assert sink.player.played == ["http://x/1"]


def test_play_before_file_is_loaded_confirms_on_load(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.play(1, 7)
    assert sink.player.pause is False
    listener.on_play_started.assert_not_called()

    sink.player.load()
    listener.on_play_started.assert_called_once_with(1, 7)


def test_play_when_ready_confirms_immediately(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.play(1, 2)
    listener.on_play_started.assert_called_once_with(1, 2)


def test_play_waits_for_newest_source(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.set_source("http://x/2", 2)
    sink.play(2, 3)
    listener.on_play_started.assert_not_called()

    sink.player.load()
    listener.on_play_started.assert_called_once_with(2, 3)


def test_pause_cancels_pending_confirmation(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.play(1, 1)
    sink.pause()
    sink.player.load()
    assert sink.player.pause is True
    listener.on_play_started.assert_not_called()


def test_refused_play_reports_failure(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.player.refuse_unpause = True
    sink.play(1, 4)
    listener.on_play_failed.assert_called_once()
    generation, request_id, reason = listener.on_play_failed.call_args.args
    assert (generation, request_id) == (1, 4)
    assert "property unavailable" in reason
    listener.on_play_started.assert_not_called()


def test_end_of_file_reports_ended(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.player.fire('end-file', reason=0)
    listener.on_ended.assert_called_once_with(1)


def test_load_error_reports_failure_for_last_play(sink, listener):
    sink.set_source("http://x/broken", 3)
    sink.play(3, 9)
    sink.player.fire('start-file')
    sink.player.fire('end-file', reason=4, error=-13)
    listener.on_play_failed.assert_called_once()
    assert listener.on_play_failed.call_args.args[:2] == (3, 9)
    listener.on_ended.assert_not_called()


def test_stop_on_source_switch_is_silent(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.player.fire('end-file', reason=2)
    listener.on_ended.assert_not_called()
    listener.on_play_failed.assert_not_called()


def test_duration_reported_once_per_source(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.player.observers['duration']('duration', None)
    sink.player.observers['duration']('duration', 0)
    sink.player.observers['duration']('duration', 183.2)
    sink.player.observers['duration']('duration', 183.3)
    listener.on_duration_known.assert_called_once_with(1, 183.2)

    sink.set_source("http://x/2", 2)
    sink.player.load()
    sink.player.observers['duration']('duration', 60.0)
    listener.on_duration_known.assert_called_with(2, 60.0)


def test_time_updates_are_tagged_and_throttled(sink, listener):
    sink.player.observers['time-pos']('time-pos', 1.0)
    listener.on_time_update.assert_not_called()

    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.player.observers['time-pos']('time-pos', None)
    sink.player.observers['time-pos']('time-pos', 1.5)
    sink.player.observers['time-pos']('time-pos', 1.6)
    listener.on_time_update.assert_called_once_with(1, 1.5)


def test_seek_clamps_to_duration(sink):
    sink.player.duration = 100.0
    sink.seek(250)
    sink.seek(-5)
    assert sink.player.seeks == [(100.0, 'absolute'), (0.0, 'absolute')]


def test_set_volume_clamps(sink):
    sink.set_volume(130)
    assert sink.player.volume == 100
    sink.set_volume(-1)
    assert sink.player.volume == 0


def test_listener_errors_do_not_escape(sink, listener):
    listener.on_ended.side_effect = RuntimeError("listener bug")
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.player.fire('end-file', reason=0)
    listener.on_ended.assert_called_once()


def test_close_terminates_player(sink):
    sink.close()
    assert sink.player.terminated


def test_injected_player_is_used(engine):
    player = FakeMPV()
    s = engine.MpvMediaSink(player=player)
    assert s.player is player
    assert "duration" in player.observers


def test_play_queued_for_next_source_survives_old_end_file(sink, listener):
    sink.set_source("http://x/1", 1)
    sink.player.load()
    sink.set_source("http://x/2", 2)
    sink.play(2, 3)
    # mpv stops the outgoing file before it starts the new one
    sink.player.fire('end-file', reason=2)
    sink.player.load()
    listener.on_play_started.assert_called_once_with(2, 3)
