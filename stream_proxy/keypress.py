"""
stream_proxy/keypress.py

KeypressWatcher — notices the operator hitting a key while the child runs.

The watcher blocks on a single-byte read of the console. When a byte
arrives it posts KeypressDetected and then stays disarmed until the
Coordinator calls rearm(); while disarmed it does not touch the console,
which leaves stdin to the interactive session's prompt.
"""

import logging
import os
import threading
from typing import Callable

from .events import Event, KeypressDetected

logger = logging.getLogger(__name__)


class KeypressWatcher(threading.Thread):
    """
    Args:
        fd   : Console file descriptor to read from (normally stdin).
        post : Callback that puts an event on the Coordinator's queue.
    """

    def __init__(self, fd: int, post: Callable[[Event], None]) -> None:
        super().__init__(name="keypress", daemon=True)
        self._fd = fd
        self._post = post
        self._armed = threading.Event()
        self._armed.set()

    def rearm(self) -> None:
        self._armed.set()

    def run(self) -> None:
        while True:
            self._armed.wait()
            try:
                data = os.read(self._fd, 1)
            except OSError as exc:
                logger.debug("Console read failed (%s); keypress watcher stopping", exc)
                return
            if not data:
                logger.debug("Console closed; keypress watcher stopping")
                return
            self._armed.clear()
            self._post(KeypressDetected())
