"""
stream_proxy — Prolix's child-process and stream plumbing.

Public API:
    Coordinator        : Event loop merging stdout/stderr with the prompt.
    ProcessSupervisor  : Spawns the child and escalates termination.
    OutputSink         : Console + optional log destination.
    InteractionSession : The `prolix>` prompt.
    run_pipe           : Filter a stream directly (pipe mode).
    read_lines         : Byte stream → Line iterator.
"""

from .coordinator import Coordinator, Mode
from .errors import LogIOError, SignalError, SpawnError, StreamError
from .events import Disposition, Outcome, Stream
from .line_reader import LineReader, read_lines
from .pipe import run_pipe
from .session import InteractionSession
from .sink import OutputSink, open_log
from .supervisor import DEFAULT_GRACE_PERIOD, ChildProcessHandle, ProcessSupervisor

__all__ = [
    "ChildProcessHandle",
    "Coordinator",
    "DEFAULT_GRACE_PERIOD",
    "Disposition",
    "InteractionSession",
    "LineReader",
    "LogIOError",
    "Mode",
    "Outcome",
    "OutputSink",
    "ProcessSupervisor",
    "SignalError",
    "SpawnError",
    "Stream",
    "StreamError",
    "open_log",
    "read_lines",
    "run_pipe",
]
