"""
stream_proxy/events.py

Messages posted to the Coordinator's event queue.

Every worker (the two line readers, the keypress watcher and the
interactive session) talks to the Coordinator only by putting one of these
on the shared queue; the Coordinator dispatches on the event type.
"""

import queue
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Union

from filter_engine.base import Line


class Stream(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


# Buffers are drained in this order when an interactive session resumes.
DRAIN_ORDER = (Stream.STDOUT, Stream.STDERR)


class Outcome(Enum):
    """How an interactive session ended."""
    RESUME = "resume"
    QUIT = "quit"


class Disposition(Enum):
    """Why the Coordinator stopped."""
    CHILD_FINISHED = "child_finished"
    KILL_REQUESTED = "kill_requested"


@dataclass(frozen=True)
class LineArrived:
    stream: Stream
    line: Line


@dataclass(frozen=True)
class StreamClosed:
    stream: Stream


@dataclass(frozen=True)
class KeypressDetected:
    pass


@dataclass(frozen=True)
class SessionEnded:
    outcome: Outcome


@dataclass(frozen=True)
class SessionRequest:
    """
    A prompt command the session wants executed on the Coordinator's thread.

    The Coordinator puts an (ok, text) pair on `reply`; `text` is what the
    operator should see and `ok` is False when the command was rejected.
    """
    command: str
    argument: str = ""
    reply: "queue.Queue[Tuple[bool, str]]" = field(default_factory=queue.Queue, compare=False)


Event = Union[LineArrived, StreamClosed, KeypressDetected, SessionEnded, SessionRequest]
