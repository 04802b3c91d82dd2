"""
SQLite Database Manager for the music library.
Handles song and playlist storage for the HTTP API.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Sequence

from shared.models import Track, Playlist, utc_now
from shared.constants import UNKNOWN_DURATION

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            from shared.config import DB_PATH
            db_path = DB_PATH
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS songs (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    artist TEXT,
                    audio_url TEXT NOT NULL,
                    duration TEXT NOT NULL DEFAULT '0:00',
                    filename TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS playlists (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            # position is only meaningful relative to other rows of the same playlist
            conn.execute("""
                CREATE TABLE IF NOT EXISTS playlist_songs (
                    playlist_id TEXT NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
                    song_id TEXT NOT NULL REFERENCES songs(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    PRIMARY KEY (playlist_id, song_id)
                )
            """)

    @staticmethod
    def _row_to_track(row: sqlite3.Row) -> Track:
        return Track(
            id=row["id"],
            title=row["title"],
            artist=row["artist"],
            audio_url=row["audio_url"],
            duration_label=row["duration"],
            created_at=row["created_at"],
        )

    # --- Songs ---

    def add_track(self, track: Track, filename: Optional[str] = None) -> Track:
        created_at = track.created_at or utc_now()
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO songs (id, title, artist, audio_url, duration, filename, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (track.id, track.title, track.artist, track.audio_url,
                 track.duration_label or UNKNOWN_DURATION, filename, created_at),
            )
        return self.get_track(track.id)

    def get_all_tracks(self, query: Optional[str] = None) -> List[Track]:
        """Return songs newest first, optionally filtered on title/artist."""
        sql = "SELECT * FROM songs"
        params: tuple = ()
        if query:
            sql += " WHERE lower(title) LIKE ? ESCAPE '\\' OR lower(artist) LIKE ? ESCAPE '\\'"
            escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            like = f"%{escaped}%"
            params = (like, like)
        sql += " ORDER BY created_at DESC, rowid DESC"
        with self._get_connection() as conn:
            return [self._row_to_track(r) for r in conn.execute(sql, params).fetchall()]

    def get_track(self, track_id: str) -> Optional[Track]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM songs WHERE id = ?", (track_id,)).fetchone()
        return self._row_to_track(row) if row else None

    def get_track_filename(self, track_id: str) -> Optional[str]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT filename FROM songs WHERE id = ?", (track_id,)).fetchone()
        return row["filename"] if row else None

    def update_duration(self, track_id: str, duration_label: str) -> Optional[Track]:
        with self._get_connection() as conn:
            cur = conn.execute(
                "UPDATE songs SET duration = ? WHERE id = ?", (duration_label, track_id)
            )
            if cur.rowcount == 0:
                return None
        return self.get_track(track_id)

    def delete_track(self, track_id: str) -> bool:
        with self._get_connection() as conn:
            cur = conn.execute("DELETE FROM songs WHERE id = ?", (track_id,))
            return cur.rowcount > 0

    # --- Playlists ---

    def _playlist_tracks(self, conn, playlist_id: str) -> List[Track]:
        rows = conn.execute(
            "SELECT s.* FROM playlist_songs ps JOIN songs s ON s.id = ps.song_id "
            "WHERE ps.playlist_id = ? ORDER BY ps.position",
            (playlist_id,),
        ).fetchall()
        return [self._row_to_track(r) for r in rows]

    def create_playlist(self, name: str) -> Playlist:
        playlist = Playlist(id=Playlist.generate_id(), name=name)
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO playlists (id, name, created_at) VALUES (?, ?, ?)",
                (playlist.id, playlist.name, playlist.created_at),
            )
        return playlist

    def get_playlist(self, playlist_id: str) -> Optional[Playlist]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM playlists WHERE id = ?", (playlist_id,)).fetchone()
            if not row:
                return None
            return Playlist(
                id=row["id"],
                name=row["name"],
                tracks=self._playlist_tracks(conn, row["id"]),
                created_at=row["created_at"],
            )

    def get_playlists(self) -> List[Playlist]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM playlists ORDER BY created_at, rowid").fetchall()
            return [
                Playlist(
                    id=r["id"],
                    name=r["name"],
                    tracks=self._playlist_tracks(conn, r["id"]),
                    created_at=r["created_at"],
                )
                for r in rows
            ]

    def rename_playlist(self, playlist_id: str, name: str) -> Optional[Playlist]:
        with self._get_connection() as conn:
            cur = conn.execute("UPDATE playlists SET name = ? WHERE id = ?", (name, playlist_id))
            if cur.rowcount == 0:
                return None
        return self.get_playlist(playlist_id)

    def delete_playlist(self, playlist_id: str) -> bool:
        with self._get_connection() as conn:
            cur = conn.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
            return cur.rowcount > 0

    def add_to_playlist(self, playlist_id: str, track_id: str) -> Optional[Playlist]:
        """
        Put a song at the front of a playlist.

        Returns the updated playlist, or None if the playlist or song is unknown.
        Adding a song that is already present leaves the order untouched.
        """
        with self._get_connection() as conn:
            if not conn.execute("SELECT 1 FROM playlists WHERE id = ?", (playlist_id,)).fetchone():
                return None
            if not conn.execute("SELECT 1 FROM songs WHERE id = ?", (track_id,)).fetchone():
                return None
            exists = conn.execute(
                "SELECT 1 FROM playlist_songs WHERE playlist_id = ? AND song_id = ?",
                (playlist_id, track_id),
            ).fetchone()
            if not exists:
                first = conn.execute(
                    "SELECT MIN(position) FROM playlist_songs WHERE playlist_id = ?",
                    (playlist_id,),
                ).fetchone()[0]
                position = 0 if first is None else first - 1
                conn.execute(
                    "INSERT INTO playlist_songs (playlist_id, song_id, position) VALUES (?, ?, ?)",
                    (playlist_id, track_id, position),
                )
        return self.get_playlist(playlist_id)

    def remove_from_playlist(self, playlist_id: str, track_id: str) -> Optional[Playlist]:
        with self._get_connection() as conn:
            if not conn.execute("SELECT 1 FROM playlists WHERE id = ?", (playlist_id,)).fetchone():
                return None
            conn.execute(
                "DELETE FROM playlist_songs WHERE playlist_id = ? AND song_id = ?",
                (playlist_id, track_id),
            )
        return self.get_playlist(playlist_id)

    def reorder_playlist(self, playlist_id: str, track_ids: Sequence[str]) -> Optional[Playlist]:
        """
        Rewrite the order of a playlist.

        ``track_ids`` must be a permutation of the songs already in it;
        raises ValueError otherwise. Returns None for an unknown playlist.
        """
        with self._get_connection() as conn:
            if not conn.execute("SELECT 1 FROM playlists WHERE id = ?", (playlist_id,)).fetchone():
                return None
            current = {
                r["song_id"]
                for r in conn.execute(
                    "SELECT song_id FROM playlist_songs WHERE playlist_id = ?", (playlist_id,)
                ).fetchall()
            }
            if len(track_ids) != len(set(track_ids)) or set(track_ids) != current:
                raise ValueError("Song order must list every song of the playlist exactly once")
            conn.executemany(
                "UPDATE playlist_songs SET position = ? WHERE playlist_id = ? AND song_id = ?",
                [(i, playlist_id, sid) for i, sid in enumerate(track_ids)],
            )
        return self.get_playlist(playlist_id)
