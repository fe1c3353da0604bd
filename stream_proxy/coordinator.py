"""
stream_proxy/coordinator.py

Coordinator — merges the child's two output streams and runs the filter.
─────────────────────────────────────────────────────────────────────────
This is the only place where rule state and line buffers are touched. It
runs a single loop on the calling thread, blocked on one event queue that
every worker posts into:

    reader-stdout ─┐
    reader-stderr ─┤
    keypress      ─┼──► events ──► Coordinator ──► FilterEngine ──► OutputSink
    session       ─┘

Modes
─────
  PASSTHROUGH : each arriving line is filtered and emitted at once.
  INTERACTIVE : the operator is at the prompt. Arriving lines are only
                queued, per stream. When the session resumes, the stdout
                queue is drained completely, then the stderr queue, before
                any newer line is looked at.

The loop ends with
  CHILD_FINISHED : both streams closed while in PASSTHROUGH. Streams that
                   close during a session do not end the run; the session
                   is allowed to finish first.
  KILL_REQUESTED : the operator typed `quit`. Queued lines are discarded.
"""

import logging
import queue
from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, Optional

from filter_engine.base import ConfigError, Line
from filter_engine.engine import FilterEngine

from .events import (
    DRAIN_ORDER,
    Disposition,
    Event,
    KeypressDetected,
    LineArrived,
    Outcome,
    SessionEnded,
    SessionRequest,
    Stream,
    StreamClosed,
)
from .keypress import KeypressWatcher
from .line_reader import LineReader
from .session import InteractionSession
from .sink import OutputSink
from .supervisor import ChildProcessHandle

logger = logging.getLogger(__name__)


class Mode(Enum):
    PASSTHROUGH = "passthrough"
    INTERACTIVE = "interactive"


SessionFactory = Callable[[Callable[[Event], None]], InteractionSession]


class Coordinator:
    """
    Args:
        engine          : The run's FilterEngine. Only this object mutates it
                          once the loop is running.
        sink            : Receives every kept, rewritten line.
        session_factory : Builds an InteractionSession given the post
                          callback. Defaults to a readline prompt.
        keypress_fd     : Console fd to watch for keypresses. None disables
                          interactive mode (e.g. stdin is not a terminal).
    """

    def __init__(
        self,
        engine: FilterEngine,
        sink: OutputSink,
        session_factory: Optional[SessionFactory] = None,
        keypress_fd: Optional[int] = None,
    ) -> None:
        self.engine = engine
        self.sink = sink
        self.events: "queue.Queue[Event]" = queue.Queue()
        self.mode = Mode.PASSTHROUGH
        self.buffers: Dict[Stream, Deque[Line]] = {s: deque() for s in Stream}
        self._open = set(Stream)
        self._session_factory = session_factory or InteractionSession
        self._keypress: Optional[KeypressWatcher] = None
        if keypress_fd is not None:
            self._keypress = KeypressWatcher(keypress_fd, self.post)

    # ── Public API ────────────────────────────────────────────────────────────

    def post(self, event: Event) -> None:
        self.events.put(event)

    def attach(self, handle: ChildProcessHandle) -> None:
        """Start one LineReader per child stream."""
        LineReader(handle.stdout, Stream.STDOUT, self.post).start()
        LineReader(handle.stderr, Stream.STDERR, self.post).start()

    def run(self) -> Disposition:
        """Process events until the run is over; blocks the calling thread."""
        if self._keypress is not None:
            self._keypress.start()
        while True:
            disposition = self.handle(self.events.get())
            if disposition is not None:
                logger.info("Coordinator finished: %s", disposition.value)
                return disposition

    def handle(self, event: Event) -> Optional[Disposition]:
        """Apply one event. Returns a Disposition once the loop should stop."""
        if isinstance(event, LineArrived):
            if self.mode is Mode.INTERACTIVE:
                self.buffers[event.stream].append(event.line)
            else:
                self._forward(event.line)

        elif isinstance(event, StreamClosed):
            self._open.discard(event.stream)
            logger.debug("%s closed; %d stream(s) still open", event.stream.value, len(self._open))

        elif isinstance(event, KeypressDetected):
            if self.mode is Mode.PASSTHROUGH:
                self.mode = Mode.INTERACTIVE
                self._session_factory(self.post).start()

        elif isinstance(event, SessionEnded):
            if event.outcome is Outcome.QUIT:
                dropped = sum(len(buf) for buf in self.buffers.values())
                logger.info("Quit requested; discarding %d buffered line(s)", dropped)
                for buf in self.buffers.values():
                    buf.clear()
                return Disposition.KILL_REQUESTED
            self._drain()
            self.mode = Mode.PASSTHROUGH
            if self._keypress is not None:
                self._keypress.rearm()

        elif isinstance(event, SessionRequest):
            event.reply.put(self._serve(event))

        else:
            raise TypeError(f"unexpected event {event!r}")

        if not self._open and self.mode is Mode.PASSTHROUGH:
            return Disposition.CHILD_FINISHED
        return None

    # ── Internals ─────────────────────────────────────────────────────────────

    def _forward(self, line: Line) -> None:
        out = self.engine.process(line)
        if out is not None:
            self.sink.emit(out)

    def _drain(self) -> None:
        for stream in DRAIN_ORDER:
            buf = self.buffers[stream]
            while buf:
                self._forward(buf.popleft())

    def _serve(self, request: SessionRequest):
        if request.command == "pats":
            return True, self.engine.describe_patterns()
        if request.command == "stats":
            text = self.engine.describe_stats()
            if self.mode is Mode.INTERACTIVE:
                text += "Buffered: %d stdout, %d stderr line(s).\n" % (
                    len(self.buffers[Stream.STDOUT]),
                    len(self.buffers[Stream.STDERR]),
                )
            return True, text
        try:
            self.engine.install(request.command, request.argument)
        except ConfigError as exc:
            return False, str(exc)
        except KeyError:
            return False, f"Unknown command {request.command!r}. Try 'help'."
        return True, ""
