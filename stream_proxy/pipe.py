"""
stream_proxy/pipe.py

Pipe mode: filter an existing stream (normally our own stdin) with no child
process and no interactive prompt.

    cat existing.log | prolix -b "spammy"
"""

import logging
from typing import BinaryIO

from filter_engine.engine import FilterEngine

from .line_reader import read_lines
from .sink import OutputSink

logger = logging.getLogger(__name__)


def run_pipe(stream: BinaryIO, engine: FilterEngine, sink: OutputSink) -> None:
    for line in read_lines(stream):
        out = engine.process(line)
        if out is not None:
            sink.emit(out)
    logger.debug("Pipe input exhausted after %d lines", engine.lines_total)
