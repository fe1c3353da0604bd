"""
stream_proxy/sink.py

OutputSink — where kept lines end up: the console and, optionally, a log file.

Both child streams are echoed to the same console stream, interleaved in the
order the Coordinator processes them. The log receives the same bytes.
Surrogate escapes left by the line reader are encoded back to the child's
original bytes on both.
"""

import logging
import sys
from typing import Optional, TextIO

from filter_engine.base import Line

from .errors import LogIOError

logger = logging.getLogger(__name__)


def open_log(path: str) -> TextIO:
    """Create (truncate) the log file at `path`."""
    try:
        return open(path, "w", encoding="utf-8", errors="surrogateescape")
    except OSError as exc:
        raise LogIOError(f"cannot open log {path!r}: {exc}") from exc


class OutputSink:
    """
    Args:
        console  : Text stream for the filtered output. Defaults to sys.stdout.
                   When it has a binary `buffer`, lines are written there.
                   Otherwise the text goes to the stream itself.
        log_file : Open text file receiving a copy of every emitted line.
    """

    def __init__(self, console: Optional[TextIO] = None, log_file: Optional[TextIO] = None) -> None:
        self._console = console if console is not None else sys.stdout
        self._log = log_file
        self.lines_emitted = 0

    def emit(self, line: Line) -> None:
        text = line.render()
        buffer = getattr(self._console, "buffer", None)
        if buffer is not None:
            self._console.flush()
            buffer.write(text.encode("utf-8", "surrogateescape"))
            buffer.flush()
        else:
            self._console.write(text)
            self._console.flush()
        if self._log is not None:
            try:
                self._log.write(text)
            except (OSError, ValueError) as exc:
                raise LogIOError(f"log write failed: {exc}") from exc
        self.lines_emitted += 1

    def close(self) -> None:
        if self._log is None:
            return
        log, self._log = self._log, None
        try:
            log.close()
        except OSError as exc:
            raise LogIOError(f"log close failed: {exc}") from exc
        logger.debug("Log file closed after %d lines", self.lines_emitted)
