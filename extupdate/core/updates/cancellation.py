"""Cooperative cancellation for long-running downloads"""

import logging
import threading
from typing import Callable, List

from extupdate.core.updates.exceptions import Cancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation flag

    The worker running a download checks the token between steps. Callbacks
    registered with ``on_cancel`` run on the cancelling thread, which lets a
    fetch close its response stream instead of waiting for the next chunk.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation and run registered callbacks once"""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled("Download was cancelled")

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback to run when the token is cancelled

        If the token is already cancelled the callback runs immediately.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister

        callback()
        return lambda: None
