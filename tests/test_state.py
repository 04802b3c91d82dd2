from conftest import make_track

from player.state import PlaybackState


def test_empty_state_has_no_current():
    state = PlaybackState()
    assert state.current is None
    snap = state.snapshot()
    assert snap.is_empty
    assert snap.current is None
    assert snap.duration_text == "0:00"


def test_current_follows_position():
    state = PlaybackState(sequence=[make_track("a"), make_track("b")], position=0)
    assert state.current.id == "a"
    state.position = 1
    assert state.current.id == "b"
    assert state.last_index == 1


def test_snapshot_copies_sequence():
    tracks = [make_track("a")]
    state = PlaybackState(sequence=tracks, position=0)
    snap = state.snapshot()
    tracks.append(make_track("b"))
    assert len(snap.sequence) == 1


def test_duration_text_prefers_measured_duration():
    state = PlaybackState(sequence=[make_track("a", duration="4:00")], position=0)
    assert state.snapshot().duration_text == "4:00"
    state.known_duration = 61.5
    assert state.snapshot().duration_text == "1:01"


def test_elapsed_text():
    state = PlaybackState(sequence=[make_track("a")], position=0, elapsed=75.8)
    assert state.snapshot().elapsed_text == "1:15"
