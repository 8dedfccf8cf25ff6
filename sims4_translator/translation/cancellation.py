"""
Cancellation token for in-flight backend requests.

A token is handed to the backend with every batch. Pausing and cancelling
both trip the token; the reason tag tells the orchestrator which of the two
happened, so an aborted request is never mistaken for a network failure.
"""

import threading
from enum import Enum
from typing import Callable, List, Optional

from sims4_translator.ai.exceptions import AbortError
from sims4_translator.logger import get_logger

logger = get_logger(__name__)


class AbortReason(str, Enum):
    PAUSE = "pause"
    CANCEL = "cancel"


class CancelToken:
    """Thread-safe, one-shot cancellation signal carrying an AbortReason."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[AbortReason] = None
        self._callbacks: List[Callable[[AbortReason], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[AbortReason]:
        return self._reason

    def cancel(self, reason: AbortReason) -> bool:
        """Trip the token. Returns False if it was already tripped."""
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        for callback in callbacks:
            try:
                callback(reason)
            except Exception as e:
                logger.warning(f"Cancel callback failed: {e}")
        return True

    def add_callback(self, callback: Callable[[AbortReason], None]):
        """Run ``callback(reason)`` on cancellation, immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback(self._reason)

    def remove_callback(self, callback: Callable[[AbortReason], None]):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise AbortError(self._reason)
