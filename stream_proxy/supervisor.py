"""
stream_proxy/supervisor.py

ProcessSupervisor — starts the child and shuts it down on request.

Termination escalates: SIGTERM immediately, SIGKILL once the grace period
runs out.

Known race (accepted):
    Before the SIGKILL the supervisor only probes whether *some* process
    still answers to the child's pid (`os.kill(pid, 0)`). If the child
    exited on SIGTERM, was reaped, and the pid was handed to an unrelated
    process within the grace period, that process gets the SIGKILL.
    Waiting on an exit notification instead would close the race but
    changes when the kill fires relative to the caller's own wait().
"""

import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .errors import SignalError, SpawnError

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 10.0


@dataclass
class ChildProcessHandle:
    """The running child. Only ProcessSupervisor sends it signals."""
    command: List[str]
    process: subprocess.Popen

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def stdout(self):
        return self.process.stdout

    @property
    def stderr(self):
        return self.process.stderr

    @property
    def running(self) -> bool:
        return self.process.poll() is None

    def wait(self) -> int:
        return self.process.wait()


class ProcessSupervisor:
    """
    Args:
        grace_period : Seconds between SIGTERM and SIGKILL.
    """

    def __init__(self, grace_period: float = DEFAULT_GRACE_PERIOD) -> None:
        self.grace_period = grace_period
        self._kill_timer: Optional[threading.Timer] = None

    def spawn(self, command: Sequence[str]) -> ChildProcessHandle:
        """
        Start `command` with stdout and stderr piped back to us.

        Raises:
            SpawnError: if the executable cannot be started.
        """
        argv = list(command)
        try:
            process = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise SpawnError(argv, exc) from exc
        logger.info("Spawned %r as pid %d", argv, process.pid)
        return ChildProcessHandle(command=argv, process=process)

    def terminate_gracefully(self, handle: ChildProcessHandle) -> None:
        """
        Send SIGTERM now and schedule SIGKILL after the grace period.

        Returns immediately; the SIGKILL is sent from a daemon timer thread.
        """
        self._send(handle.pid, signal.SIGTERM)

        timer = threading.Timer(self.grace_period, self._force_kill, args=(handle.pid,))
        timer.daemon = True
        timer.name = f"kill-{handle.pid}"
        timer.start()
        self._kill_timer = timer
        logger.debug("SIGKILL for pid %d scheduled in %.1fs", handle.pid, self.grace_period)

    def _force_kill(self, pid: int) -> None:
        try:
            os.kill(pid, 0)
        except OSError:
            logger.debug("pid %d gone before SIGKILL", pid)
            return
        self._send(pid, signal.SIGKILL)

    @staticmethod
    def _send(pid: int, sig: signal.Signals) -> bool:
        try:
            os.kill(pid, sig)
        except OSError as exc:
            err = SignalError(f"{sig.name} to pid {pid} failed: {exc}")
            logger.warning("%s", err)
            return False
        logger.info("Sent %s to pid %d", sig.name, pid)
        return True
