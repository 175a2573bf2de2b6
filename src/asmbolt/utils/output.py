"""
Output sinks: where compiler diagnostics and progress lines go.

The pipeline writes to a sink, and calls show() when something the user should
see (compiler stderr) arrives. The CLI uses LoggingSink; the TUI drains a
BufferedSink from its own thread.
"""
import logging
import threading
from collections import deque
from typing import Deque, List


class OutputSink:
    def append_line(self, text: str):
        raise NotImplementedError

    def show(self):
        pass


class LoggingSink(OutputSink):
    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger("asmbolt.output")
        self.shown = False

    def append_line(self, text: str):
        self.logger.info(text.rstrip("\n"))

    def show(self):
        self.shown = True


class BufferedSink(OutputSink):
    """Thread-safe line buffer; `drain()` hands over what arrived since the last call."""

    def __init__(self, maxlen: int = 5000):
        self._lines: Deque[str] = deque(maxlen=maxlen)
        self._lock = threading.Lock()
        self._show_requested = False

    def append_line(self, text: str):
        with self._lock:
            self._lines.append(text.rstrip("\n"))

    def show(self):
        with self._lock:
            self._show_requested = True

    def drain(self) -> List[str]:
        with self._lock:
            lines = list(self._lines)
            self._lines.clear()
            return lines

    def take_show_request(self) -> bool:
        with self._lock:
            requested, self._show_requested = self._show_requested, False
            return requested
