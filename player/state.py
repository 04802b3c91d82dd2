"""
In-memory playback state.

PlaybackState is owned by PlaybackController and is never handed out;
consumers get PlaybackSnapshot copies instead.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from shared.constants import DEFAULT_VOLUME
from shared.models import Track, format_duration


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only view of the playback state at one point in time."""
    sequence: Tuple[Track, ...]
    position: Optional[int]
    is_playing: bool
    volume: int
    elapsed: float
    known_duration: Optional[float]

    @property
    def current(self) -> Optional[Track]:
        if self.position is None or not self.sequence:
            return None
        return self.sequence[self.position]

    @property
    def is_empty(self) -> bool:
        return not self.sequence

    @property
    def elapsed_text(self) -> str:
        return format_duration(self.elapsed)

    @property
    def duration_text(self) -> str:
        if self.known_duration is not None:
            return format_duration(self.known_duration)
        current = self.current
        return current.duration_label if current else format_duration(0)


@dataclass
class PlaybackState:
    sequence: List[Track] = field(default_factory=list)
    position: Optional[int] = None
    is_playing: bool = False
    volume: int = DEFAULT_VOLUME
    elapsed: float = 0.0
    known_duration: Optional[float] = None

    @property
    def current(self) -> Optional[Track]:
        # Derived on every access so it can never drift from (sequence, position)
        if self.position is None or not self.sequence:
            return None
        return self.sequence[self.position]

    @property
    def last_index(self) -> int:
        return len(self.sequence) - 1

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            sequence=tuple(self.sequence),
            position=self.position,
            is_playing=self.is_playing,
            volume=self.volume,
            elapsed=self.elapsed,
            known_duration=self.known_duration,
        )
