"""
Abstract interface for the audio primitive the playback controller drives.

A sink owns exactly one playable resource at a time. Every source it loads
is tagged with a generation number chosen by the caller, and every event
it reports carries the generation of the source it belongs to, so the
controller can drop notifications that arrive after it moved on.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SinkListener(ABC):
    """Receiver for media sink notifications."""

    @abstractmethod
    def on_time_update(self, generation: int, seconds: float) -> None:
        """Playhead moved. High frequency, unordered relative to other events."""

    @abstractmethod
    def on_duration_known(self, generation: int, seconds: float) -> None:
        """Metadata resolved. Once per source load."""

    @abstractmethod
    def on_ended(self, generation: int) -> None:
        """The source played to its natural end."""

    @abstractmethod
    def on_play_started(self, generation: int, request_id: int) -> None:
        """A play request took effect."""

    @abstractmethod
    def on_play_failed(self, generation: int, request_id: int, reason: str) -> None:
        """A play request (or the source load behind it) failed."""


class MediaSink(ABC):
    """
    Wrapper around a platform playback primitive.

    Implementations must never raise out of ``play``; failures are reported
    through ``SinkListener.on_play_failed``.
    """

    def __init__(self):
        self._listener: Optional[SinkListener] = None

    def set_listener(self, listener: SinkListener) -> None:
        self._listener = listener

    @abstractmethod
    def set_source(self, url: str, generation: int) -> None:
        """Replace the loaded resource and reset the sink clock. The new source starts paused."""

    @abstractmethod
    def play(self, generation: int, request_id: int) -> None:
        """Start or resume playback of the current source."""

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def seek(self, seconds: float) -> None:
        """Jump the playhead; implementations clamp to [0, duration]."""

    @abstractmethod
    def set_volume(self, percent: int) -> None:
        pass

    def close(self) -> None:
        """Release the underlying primitive."""
