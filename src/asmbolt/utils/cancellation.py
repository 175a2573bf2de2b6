"""
Cooperative cancellation shared by the UI, the engine and the pipeline.

A CancellationTokenSource hands out one CancellationToken. The pipeline polls
the token between relay chunks and registers callbacks that tear down its
subprocesses the moment cancellation is requested.
"""
import threading
from typing import Callable, List

from ..errors import Cancelled


class CancellationToken:
    def __init__(self):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise Cancelled("operation cancelled")

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Runs callback on cancellation (immediately if already cancelled).
        Returns a function that removes the registration.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)
        callback()
        return lambda: None

    def _unregister(self, callback: Callable[[], None]):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _cancel(self):
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


class CancellationTokenSource:
    def __init__(self):
        self.token = CancellationToken()

    def cancel(self):
        self.token._cancel()

    def dispose(self):
        # Drops pending callbacks without firing them.
        with self.token._lock:
            self.token._callbacks = []
