"""
stream_proxy/line_reader.py

Turns a child's raw byte stream into Line events.

Lines are split on b"\\n" before decoding, so a multibyte character is never
cut in half. Bytes that are not valid UTF-8 are carried as surrogate escapes
so the sink can write them back out unchanged.
"""

import logging
import threading
from typing import BinaryIO, Callable, Iterator

from filter_engine.base import Line

from .errors import StreamError
from .events import Event, LineArrived, Stream, StreamClosed

logger = logging.getLogger(__name__)


def read_lines(stream: BinaryIO) -> Iterator[Line]:
    """
    Yield every line of `stream` in order until EOF.

    A final fragment without a newline is yielded with terminated=False.
    A read failure ends the sequence the same way EOF does.
    """
    while True:
        try:
            raw = stream.readline()
        except (OSError, ValueError) as exc:
            err = StreamError(f"read failed on {getattr(stream, 'name', stream)!r}: {exc}")
            logger.warning("%s; treating as end of stream", err)
            return
        if not raw:
            return
        yield Line.from_raw(raw.decode("utf-8", errors="surrogateescape"))
        if not raw.endswith(b"\n"):
            return


class LineReader(threading.Thread):
    """
    Background reader for one child stream.

    Posts LineArrived for each line, then exactly one StreamClosed.
    """

    def __init__(self, stream: BinaryIO, source: Stream, post: Callable[[Event], None]) -> None:
        super().__init__(name=f"reader-{source.value}", daemon=True)
        self._stream = stream
        self._source = source
        self._post = post

    def run(self) -> None:
        count = 0
        try:
            for line in read_lines(self._stream):
                self._post(LineArrived(self._source, line))
                count += 1
        finally:
            logger.debug("%s closed after %d lines", self._source.value, count)
            self._post(StreamClosed(self._source))
