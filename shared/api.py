"""
Library API Server.
Serves songs and playlists to the player and any web front end: upload,
listing, streaming, playlist editing and the duration back-fill endpoint.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from flask import Flask, request, jsonify, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException

from shared.constants import SUPPORTED_AUDIO_FORMATS, UNKNOWN_ARTIST, UNKNOWN_DURATION
from shared.database import DatabaseManager
from shared.models import Track, Playlist, parse_duration_label

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = Flask(__name__)
CORS(app)
socketio = SocketIO(app, cors_allowed_origins="*")

# Global instances, created lazily by get_db()
database: Optional[DatabaseManager] = None
upload_dir: Optional[Path] = None


def init_app(db_path=None, upload_path=None) -> DatabaseManager:
    """(Re)bind the API to a database file and an upload directory."""
    global database, upload_dir
    if db_path is None or upload_path is None:
        from shared.config import DB_PATH, UPLOAD_DIR
        db_path = db_path or DB_PATH
        upload_path = upload_path or UPLOAD_DIR
    database = DatabaseManager(db_path)
    upload_dir = Path(upload_path)
    upload_dir.mkdir(parents=True, exist_ok=True)
    logger.info("API: using database %s, uploads in %s", database.db_path, upload_dir)
    return database


def get_db() -> DatabaseManager:
    if database is None:
        init_app()
    return database


def _absolute_url(url: str) -> str:
    if url.startswith("/"):
        return request.host_url.rstrip("/") + url
    return url


def _song_json(track: Track) -> dict:
    return {
        "id": track.id,
        "title": track.title,
        "artist": track.artist,
        "audio_url": _absolute_url(track.audio_url),
        "duration": track.duration_label,
        "created_at": track.created_at,
    }


def _playlist_json(playlist: Playlist) -> dict:
    return {
        "id": playlist.id,
        "name": playlist.name,
        "songs": [_song_json(t) for t in playlist.tracks],
        "created_at": playlist.created_at,
    }


def _notify_library_updated():
    socketio.emit("library_updated")


@app.errorhandler(Exception)
def handle_error(e):
    if isinstance(e, HTTPException):
        return jsonify({"error": e.description}), e.code
    logger.exception("API: unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "Internal server error"}), 500


@app.route('/api/health')
def health_check():
    return jsonify({"status": "healthy"})


@app.route('/')
def home():
    return jsonify({
        "status": "online",
        "service": "Tunedeck Library API",
        "version": VERSION
    })

# --- Song Endpoints ---

@app.route('/api/songs/upload', methods=['POST'])
def upload_song():
    """Store an uploaded audio file. Duration is filled in on first playback."""
    audio = request.files.get('audio')
    if audio is None or not audio.filename:
        return jsonify({"error": "No audio file uploaded"}), 400

    title = (request.form.get('title') or '').strip()
    if not title:
        return jsonify({"error": "Title is required"}), 400
    artist = (request.form.get('artist') or '').strip() or UNKNOWN_ARTIST

    # Saved as <id><ext>, so only the extension of the client's name matters
    ext = os.path.splitext(audio.filename)[1].lower()
    if ext not in SUPPORTED_AUDIO_FORMATS:
        return jsonify({"error": f"Unsupported audio format '{ext or audio.filename}'"}), 400

    db = get_db()
    track_id = Track.generate_id()
    filename = f"{track_id}{ext}"
    audio.save(upload_dir / filename)

    track = db.add_track(
        Track(
            id=track_id,
            title=title,
            artist=artist,
            audio_url=f"/api/songs/{track_id}/stream",
            duration_label=UNKNOWN_DURATION,
        ),
        filename=filename,
    )
    logger.info("API: uploaded '%s' by %s (%s)", title, artist, track_id)
    _notify_library_updated()
    return jsonify(_song_json(track)), 201


@app.route('/api/songs', methods=['GET'])
def get_songs():
    query = (request.args.get('q') or '').strip()
    tracks = get_db().get_all_tracks(query=query or None)
    return jsonify([_song_json(t) for t in tracks])


@app.route('/api/songs/<track_id>', methods=['PATCH'])
def update_song_duration(track_id):
    data = request.get_json(silent=True) or {}
    duration = data.get('duration')
    if parse_duration_label(duration) is None:
        return jsonify({"error": "duration must look like m:ss"}), 400

    track = get_db().update_duration(track_id, duration.strip())
    if not track:
        return jsonify({"error": "Song not found"}), 404
    logger.info("API: duration of %s set to %s", track_id, track.duration_label)
    return jsonify(_song_json(track))


@app.route('/api/songs/<track_id>', methods=['DELETE'])
def delete_song(track_id):
    db = get_db()
    filename = db.get_track_filename(track_id)
    if not db.delete_track(track_id):
        return jsonify({"error": "Song not found"}), 404
    if filename:
        (upload_dir / filename).unlink(missing_ok=True)
    _notify_library_updated()
    return jsonify({"message": "Song deleted successfully"})


@app.route('/api/songs/<track_id>/stream', methods=['GET'])
def stream_song(track_id):
    filename = get_db().get_track_filename(track_id)
    if not filename or not (upload_dir / filename).exists():
        return jsonify({"error": "Audio file not found"}), 404
    return send_from_directory(upload_dir, filename)

# --- Playlist Endpoints ---

@app.route('/api/playlists', methods=['GET'])
def get_playlists():
    return jsonify([_playlist_json(p) for p in get_db().get_playlists()])


@app.route('/api/playlists', methods=['POST'])
def create_playlist():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({"error": "name is required"}), 400
    playlist = get_db().create_playlist(name)
    _notify_library_updated()
    return jsonify(_playlist_json(playlist)), 201


@app.route('/api/playlists/<playlist_id>', methods=['GET'])
def get_playlist(playlist_id):
    playlist = get_db().get_playlist(playlist_id)
    if not playlist:
        return jsonify({"error": "Playlist not found"}), 404
    return jsonify(_playlist_json(playlist))


@app.route('/api/playlists/<playlist_id>', methods=['PUT'])
def rename_playlist(playlist_id):
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({"error": "name cannot be empty"}), 400
    playlist = get_db().rename_playlist(playlist_id, name)
    if not playlist:
        return jsonify({"error": "Playlist not found"}), 404
    _notify_library_updated()
    return jsonify(_playlist_json(playlist))


@app.route('/api/playlists/<playlist_id>', methods=['DELETE'])
def delete_playlist(playlist_id):
    if not get_db().delete_playlist(playlist_id):
        return jsonify({"error": "Playlist not found"}), 404
    _notify_library_updated()
    return jsonify({"message": "Playlist deleted successfully"})


@app.route('/api/playlists/<playlist_id>/songs', methods=['POST'])
def add_song_to_playlist(playlist_id):
    data = request.get_json(silent=True) or {}
    song_id = data.get('songId')
    if not song_id:
        return jsonify({"error": "songId is required"}), 400
    playlist = get_db().add_to_playlist(playlist_id, str(song_id))
    if not playlist:
        return jsonify({"error": "Playlist or song not found"}), 404
    _notify_library_updated()
    return jsonify(_playlist_json(playlist))


@app.route('/api/playlists/<playlist_id>/songs/<song_id>', methods=['DELETE'])
def remove_song_from_playlist(playlist_id, song_id):
    playlist = get_db().remove_from_playlist(playlist_id, song_id)
    if not playlist:
        return jsonify({"error": "Playlist not found"}), 404
    _notify_library_updated()
    return jsonify(_playlist_json(playlist))


@app.route('/api/playlists/<playlist_id>/reorder', methods=['PUT'])
def reorder_playlist(playlist_id):
    """Set the song order. Body: { "songIds": ["id1", "id2", ...] }."""
    data = request.get_json(silent=True) or {}
    song_ids = data.get('songIds')
    if not isinstance(song_ids, list):
        return jsonify({"error": "Invalid song order provided"}), 400
    try:
        playlist = get_db().reorder_playlist(playlist_id, [str(s) for s in song_ids])
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not playlist:
        return jsonify({"error": "Playlist not found"}), 404
    _notify_library_updated()
    return jsonify(_playlist_json(playlist))


def run_server(host: str = None, port: int = None, debug: bool = False):
    from shared.config import HOST, PORT
    get_db()
    host = host or HOST
    port = port or PORT
    logger.info("API: listening on http://%s:%s", host, port)
    socketio.run(app, host=host, port=port, debug=debug, allow_unsafe_werkzeug=True)
