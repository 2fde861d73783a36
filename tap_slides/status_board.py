"""
Lock-guarded status fields written by background producers.

The file watcher and live-sync hub run on their own threads and write here
directly. The reducer only reads, through snapshot(), when it renders.
"""
import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .models import DevEvent

MAX_RECENT_EVENTS = 5


@dataclass(frozen=True)
class StatusSnapshot:
    """Consistent copy of the status board taken under its lock."""
    recent_events: Tuple[DevEvent, ...]
    live_clients: int
    watcher_running: bool
    error: Optional[str]


class StatusBoard:
    """
    Recent events, live-client count, watcher flag and the last error.
    """

    def __init__(self, max_events: int = MAX_RECENT_EVENTS):
        self._lock = threading.Lock()
        self._events = deque(maxlen=max_events)  # oldest evicted first
        self._live_clients = 0
        self._watcher_running = False
        self._error: Optional[str] = None

    def record_event(self, event: DevEvent) -> None:
        with self._lock:
            self._events.append(event)

    def set_live_client_count(self, count: int) -> None:
        with self._lock:
            self._live_clients = count

    def set_watcher_running(self, running: bool) -> None:
        with self._lock:
            self._watcher_running = running

    def set_error(self, error: Union[str, Exception, None]) -> None:
        with self._lock:
            self._error = str(error) if error is not None else None

    def clear_error(self) -> None:
        with self._lock:
            self._error = None

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                recent_events=tuple(self._events),
                live_clients=self._live_clients,
                watcher_running=self._watcher_running,
                error=self._error,
            )
