"""
stream_proxy/session.py

InteractionSession — the `prolix>` prompt.
──────────────────────────────────────────
While the session runs the Coordinator buffers child output, so the
operator can look at the rules and add new ones without lines scrolling
past.

Command grammar:
    <empty line>             leave the prompt and resume output
    quit                     terminate the child
    pats | stats | help      built-ins
    <command> <argument>     install a rule, where command is one of
                             ignore-re, ignore-line, ignore-substring,
                             snippet (ignore_re etc. also accepted)

The session never touches the rules itself. Rule commands and the
pats/stats queries are sent to the Coordinator as SessionRequest events and
executed on the Coordinator's thread; the session blocks for the reply.
"""

import logging
import readline
import sys
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from colorama import Fore, Style

from filter_engine.engine import RULE_COMMANDS, normalize_command

from .events import Event, Outcome, SessionEnded, SessionRequest

logger = logging.getLogger(__name__)

PROMPT = "prolix> "

# Everything tab completion offers.
VOCABULARY = (
    "ignore-line", "ignore-re", "ignore-substring", "snippet",
    "pats", "quit", "stats", "help",
)

HELP_TEXT = """\
ignore-line      - add a full match to ignore
ignore-re        - add an ignore pattern, e.g. ^(FINE|DEBUG)
ignore-substring - add a partial match to ignore
pats             - list ignore patterns
quit             - terminate running program
stats            - print stats
snippet          - add a snippet expression, e.g. s/^(INFO|WARNING|ERROR) //

To keep going, just enter an empty line.
"""

_ERROR = f"{Fore.RED}{Style.BRIGHT}"
_RESET = Style.RESET_ALL

_completion_installed = False


@dataclass(frozen=True)
class ParsedCommand:
    """`argument` is None for a bare token such as `pats`."""
    name: str
    argument: Optional[str] = None


def parse_command(text: str) -> ParsedCommand:
    """
    Split a non-empty prompt line into command and argument.

    The first whitespace-separated token is the command; everything after
    the following run of whitespace, verbatim, is the argument.
    """
    parts = text.lstrip().split(None, 1)
    if len(parts) < 2:
        return ParsedCommand(parts[0] if parts else "")
    return ParsedCommand(parts[0], parts[1])


def complete(text: str, state: int) -> Optional[str]:
    """readline completer: prefix match over VOCABULARY."""
    matches = [word for word in VOCABULARY if word.startswith(text)]
    if state < len(matches):
        return matches[state]
    return None


def _readline_input(prompt: str) -> str:
    global _completion_installed
    if not _completion_installed:
        readline.set_completer(complete)
        readline.set_completer_delims(" \t\n")
        readline.parse_and_bind("tab: complete")
        _completion_installed = True
    return input(prompt)


def _console_write(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


class InteractionSession(threading.Thread):
    """
    One visit to the prompt. Posts exactly one SessionEnded when done.

    Args:
        post      : Puts an event on the Coordinator's queue.
        read_line : Returns one line of operator input, raising EOFError at
                    end of input. Defaults to readline-backed input().
        write     : Displays text to the operator.
    """

    def __init__(
        self,
        post: Callable[[Event], None],
        read_line: Optional[Callable[[str], str]] = None,
        write: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(name="session", daemon=True)
        self._post = post
        self._read_line = read_line or _readline_input
        self._write = write or _console_write

    def run(self) -> None:
        outcome = Outcome.RESUME
        try:
            outcome = self._loop()
        finally:
            logger.debug("Session ended: %s", outcome.value)
            self._post(SessionEnded(outcome))

    def _loop(self) -> Outcome:
        while True:
            try:
                text = self._read_line(PROMPT)
            except EOFError:
                self._write("\n")
                return Outcome.RESUME
            if text == "":
                return Outcome.RESUME

            cmd = parse_command(text)
            if cmd.argument is None:
                if cmd.name == "quit":
                    return Outcome.QUIT
                if cmd.name == "help":
                    self._write(HELP_TEXT)
                elif cmd.name in ("pats", "stats"):
                    self._show(self._request(cmd.name))
                else:
                    self._write("Unknown command. Try 'help'.\n")
            elif normalize_command(cmd.name) in RULE_COMMANDS:
                self._show(self._request(normalize_command(cmd.name), cmd.argument))
            else:
                self._write("Unknown unary command. Try 'help'.\n")

    def _request(self, command: str, argument: str = "") -> Tuple[bool, str]:
        request = SessionRequest(command, argument)
        self._post(request)
        return request.reply.get()

    def _show(self, reply: Tuple[bool, str]) -> None:
        ok, text = reply
        if not text:
            return
        if ok:
            self._write(text)
        else:
            self._write(f"{_ERROR}{text}{_RESET}\n")

