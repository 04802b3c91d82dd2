"""Playback core: media sink, controller, state and duration back-fill."""

from .controller import PlaybackController
from .state import PlaybackSnapshot

__all__ = ["PlaybackController", "PlaybackSnapshot"]
