"""
stream_proxy/errors.py

Runtime errors raised around the child process and the output sink.
ConfigError lives with the rules in filter_engine.base.
"""

from filter_engine.base import ProlixError


class SpawnError(ProlixError):
    """
    The child command could not be started. Fatal for the run.

    Attributes:
        command   : argv that failed.
        exit_code : Exit status Prolix should report (127 not found,
                    126 not executable, 1 otherwise).
    """

    def __init__(self, command, cause: OSError) -> None:
        self.command = list(command)
        self.cause = cause
        if isinstance(cause, FileNotFoundError):
            self.exit_code = 127
        elif isinstance(cause, PermissionError):
            self.exit_code = 126
        else:
            self.exit_code = 1
        super().__init__(f"cannot run {self.command[0]!r}: {cause}")


class StreamError(ProlixError):
    """A child stream failed mid-read. Readers treat it as end-of-stream."""


class LogIOError(ProlixError):
    """The optional log file could not be opened or written. Fatal."""


class SignalError(ProlixError):
    """A termination signal could not be delivered. Logged, never raised further."""
