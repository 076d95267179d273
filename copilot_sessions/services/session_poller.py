"""Background polling of the session engine.

The engine does not coordinate overlapping passes itself. SessionPoller runs
load_sessions() on one worker thread at a fixed interval and takes the same
lock for explicit refreshes, so two passes never run at once.
"""

import logging
import threading
from collections.abc import Callable
from typing import Optional

from copilot_sessions.models.session import Session
from copilot_sessions.services.session_data_source import SessionDataSource

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5  # seconds

SessionListener = Callable[[list[Session]], None]


class SessionPoller:
    """Periodically refreshes the session list and notifies a listener."""

    def __init__(
        self,
        data_source: SessionDataSource,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_update: Optional[SessionListener] = None,
    ):
        """Initialize the poller.

        Args:
            data_source: Engine to poll.
            interval: Seconds between refreshes.
            on_update: Called with each fresh session list.
        """
        self.data_source = data_source
        self.interval = interval
        self.on_update = on_update

        self._latest: list[Session] = []
        self._refresh_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def latest(self) -> list[Session]:
        """Session list from the most recent completed refresh."""
        return list(self._latest)

    def refresh(self) -> list[Session]:
        """Run one discovery pass now, waiting for any pass already in flight.

        on_update is called while the refresh lock is held, so it must not
        call refresh() itself.

        Returns:
            The fresh session list.
        """
        # Listener runs under the lock so notifications arrive in refresh order
        with self._refresh_lock:
            sessions = self.data_source.load_sessions()
            self._latest = sessions

            if self.on_update is not None:
                try:
                    self.on_update(sessions)
                except Exception as e:
                    logger.error(f"Session listener failed: {e}")
        return sessions

    def _worker(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.refresh()
            except Exception as e:
                logger.error(f"Session refresh failed: {e}")
            self._stop_event.wait(self.interval)

    def start(self) -> bool:
        """Start the background thread.

        Returns:
            True if the thread was started, False if already running.
        """
        if self._thread is not None and self._thread.is_alive():
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, name="session-poller", daemon=True)
        self._thread.start()
        logger.info(f"Session poller started (interval {self.interval}s)")
        return True

    def stop(self) -> bool:
        """Stop the background thread.

        Returns:
            True if the thread was stopped, False if it was not running.
        """
        if self._thread is None or not self._thread.is_alive():
            return False

        self._stop_event.set()
        self._thread.join(timeout=5)
        self._thread = None
        logger.info("Session poller stopped")
        return True

    def is_running(self) -> bool:
        """Check if the background thread is running."""
        return self._thread is not None and self._thread.is_alive()


_session_poller: Optional[SessionPoller] = None


def get_session_poller(
    data_source: Optional[SessionDataSource] = None,
    interval: float = DEFAULT_POLL_INTERVAL,
    on_update: Optional[SessionListener] = None,
) -> SessionPoller:
    """Get or create the session poller singleton.

    Args:
        data_source: Engine to poll (only used on first call).
        interval: Seconds between refreshes (only used on first call).
        on_update: Listener (only used on first call).

    Returns:
        The SessionPoller instance.
    """
    global _session_poller
    if _session_poller is None:
        _session_poller = SessionPoller(data_source or SessionDataSource(), interval, on_update)
    return _session_poller


def reset_session_poller() -> None:
    """Stop and discard the session poller singleton (for testing)."""
    global _session_poller
    if _session_poller is not None:
        _session_poller.stop()
    _session_poller = None
