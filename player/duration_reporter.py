"""
Back-fills song durations upstream.

Uploads are stored with a "0:00" duration because nothing measures the file
on the way in. The first time a song is played and the media sink learns
its real length, the label is sent back to the library API. This is a
best-effort side effect: it runs on a worker thread, is attempted at most
once per track per session, and its failures only reach the log.
"""

import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, Set

from shared.constants import DURATION_REPORT_WORKERS, UNKNOWN_DURATION
from shared.models import Track, format_duration

logger = logging.getLogger(__name__)


class DurationReporter:
    """Fire-and-forget duration persistence, one attempt per track id."""

    def __init__(self, submit: Callable[[str, str], object],
                 executor: Optional[ThreadPoolExecutor] = None):
        """
        Args:
            submit: called as ``submit(track_id, duration_label)`` on a worker
                thread, e.g. ``LibraryClient.update_duration``
            executor: pool to run submissions on (one is created if omitted)
        """
        self._submit = submit
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=DURATION_REPORT_WORKERS, thread_name_prefix="duration-report"
        )
        self._reported: Set[str] = set()
        self._lock = threading.Lock()

    def maybe_report(self, track: Track, seconds: float) -> Optional[Future]:
        """
        Queue a report if the track's stored duration is the unknown sentinel.

        Returns the Future of the queued submission, or None when nothing was sent.
        """
        if track is None or not track.is_duration_unknown:
            return None
        if seconds is None or not math.isfinite(seconds) or seconds <= 0:
            return None

        label = format_duration(seconds)
        if label == UNKNOWN_DURATION:
            # Shorter than a second; sending it would not change anything
            return None

        with self._lock:
            if track.id in self._reported:
                return None
            # Taken before sending: a failed report is not retried this session
            self._reported.add(track.id)

        try:
            return self._executor.submit(self._send, track.id, label)
        except RuntimeError as e:
            logger.warning("Duration report for %s dropped: %s", track.id, e)
            return None

    def _send(self, track_id: str, label: str) -> None:
        try:
            self._submit(track_id, label)
        except Exception as e:
            logger.warning("Could not save duration %s for track %s: %s", label, track_id, e)
            return
        logger.info("Saved duration %s for track %s", label, track_id)

    def shutdown(self, wait: bool = False) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
