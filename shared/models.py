"""
Data models for tracks and playlists.

This module defines the core data structures shared by the library server,
the API client and the playback engine.
"""

from dataclasses import dataclass, asdict, field, fields
from typing import List, Dict, Optional, Any
import re
import uuid
from datetime import datetime, timezone

from shared.constants import UNKNOWN_ARTIST, UNKNOWN_DURATION

_DURATION_RE = re.compile(r"^(\d+):([0-5]\d)$")

# Wire names used by the HTTP API -> dataclass field names
_TRACK_ALIASES = {
    "_id": "id",
    "audioUrl": "audio_url",
    "duration": "duration_label",
    "createdAt": "created_at",
}


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds as ``m:ss``.

    Minutes are not padded, seconds are floored and zero-padded:
    125 -> "2:05", 59 -> "0:59", 3600 -> "60:00".
    """
    try:
        total = max(0, int(seconds or 0))
    except (TypeError, ValueError, OverflowError):
        # NaN / inf from a stream that never reported a real length
        total = 0
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def parse_duration_label(label: str) -> Optional[int]:
    """Return the number of seconds in an ``m:ss`` label, or None if malformed."""
    if not isinstance(label, str):
        return None
    match = _DURATION_RE.match(label.strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Track:
    """
    A single song in the library.

    Attributes:
        id: Unique identifier
        title: Song title
        artist: Artist name, "Unknown Artist" when not given
        audio_url: Locator the media sink can open (http URL or local path)
        duration_label: Human readable ``m:ss``; "0:00" means not measured yet
        created_at: ISO timestamp of the upload (optional)
    """
    id: str
    title: str
    artist: str = UNKNOWN_ARTIST
    audio_url: str = ""
    duration_label: str = UNKNOWN_DURATION
    created_at: Optional[str] = None

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        if not (self.artist or "").strip():
            object.__setattr__(self, "artist", UNKNOWN_ARTIST)
        if not self.duration_label:
            object.__setattr__(self, "duration_label", UNKNOWN_DURATION)

    @staticmethod
    def generate_id() -> str:
        """Generate a unique track ID."""
        return uuid.uuid4().hex

    @property
    def is_duration_unknown(self) -> bool:
        return self.duration_label == UNKNOWN_DURATION

    def to_dict(self) -> Dict[str, Any]:
        """Convert track to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """Create Track from dictionary, accepting API aliases and dropping unknown keys."""
        field_names = {f.name for f in fields(cls)}
        normalized = {}
        for key, value in data.items():
            key = _TRACK_ALIASES.get(key, key)
            if key in field_names:
                normalized[key] = value
        normalized["id"] = str(normalized.get("id", ""))
        return cls(**normalized)


@dataclass
class Playlist:
    """A named, ordered collection of tracks."""
    id: str
    name: str
    tracks: List[Track] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)

    @staticmethod
    def generate_id() -> str:
        return uuid.uuid4().hex

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "tracks": [t.to_dict() for t in self.tracks],
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Playlist":
        raw_tracks = data.get("tracks")
        if raw_tracks is None:
            raw_tracks = data.get("songs", [])
        return cls(
            id=str(data.get("id") or data.get("_id") or ""),
            name=data.get("name", ""),
            tracks=[Track.from_dict(t) for t in raw_tracks if isinstance(t, dict)],
            created_at=data.get("created_at") or data.get("createdAt") or utc_now(),
        )
