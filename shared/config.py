import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

from shared.constants import (
    DEFAULT_API_URL,
    DEFAULT_DATA_DIR,
    DEFAULT_DB_FILENAME,
    DEFAULT_HOST,
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_UPLOAD_DIRNAME,
)

load_dotenv()

# Paths
DATA_DIR = Path(os.getenv("TUNEDECK_DATA_DIR", DEFAULT_DATA_DIR)).expanduser()
DB_PATH = Path(os.getenv("DB_PATH", str(DATA_DIR / DEFAULT_DB_FILENAME))).expanduser()
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(DATA_DIR / DEFAULT_UPLOAD_DIRNAME))).expanduser()

# Server
HOST = os.getenv("HOST", DEFAULT_HOST)
try:
    PORT = int(os.getenv("PORT", DEFAULT_PORT))
except ValueError:
    PORT = DEFAULT_PORT

# Player side: where the library API lives
API_URL = os.getenv("TUNEDECK_API_URL", DEFAULT_API_URL).rstrip("/")
try:
    NETWORK_TIMEOUT = float(os.getenv("NETWORK_TIMEOUT", DEFAULT_NETWORK_TIMEOUT))
except ValueError:
    NETWORK_TIMEOUT = float(DEFAULT_NETWORK_TIMEOUT)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def setup_logging(level: str = None) -> None:
    """Route all loggers through a single rich handler. Safe to call twice."""
    root = logging.getLogger()
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
