"""
Shared constants used across the library server and the player.
"""

# Track defaults
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_DURATION = "0:00"  # Stored label for a track nobody has measured yet

# Audio formats accepted by the upload endpoint
SUPPORTED_AUDIO_FORMATS = [
    ".mp3", ".wav", ".flac", ".ogg", ".m4a", ".aac", ".opus"
]

# Playback defaults
DEFAULT_VOLUME = 50  # percent
MIN_VOLUME = 0
MAX_VOLUME = 100

# Throttle for time-pos notifications coming from mpv (seconds)
TIME_UPDATE_INTERVAL = 0.25

# Duration reporting
DURATION_REPORT_WORKERS = 2

# Configuration paths
DEFAULT_DATA_DIR = "~/.local/share/tunedeck"
DEFAULT_DB_FILENAME = "library.db"
DEFAULT_UPLOAD_DIRNAME = "uploads"

# Network Settings
DEFAULT_API_URL = "http://localhost:4000"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 4000
DEFAULT_NETWORK_TIMEOUT = 10  # seconds
