#!/usr/bin/env python3
"""
prolix.py — Prolix entry point.
───────────────────────────────
Prolix trims the output of chatty commands. It acts a bit like an
interactive `grep -v`: it captures a command's stdout and stderr and filters
out uninteresting lines before they reach your console.

    prolix [options] -- command [args...]
    cat existing.log | prolix [options]

Filters
───────
  -i / --ignore-line TEXT        drop lines equal to TEXT
  -b / --ignore-substring TEXT   drop lines containing TEXT
  -r / --ignore-re REGEX         drop lines matching REGEX
  -s / --snippet s/RE/REPL/[gi]  rewrite kept lines, sed style

All four may be given more than once; `--ignore_re` and friends are
accepted too.

While the command runs, hit enter to get a `prolix>` prompt. Output is
held back while you add more filters; an empty line resumes, `quit` stops
the command. Type `help` at the prompt for the full list.

Other options
─────────────
  --log PATH|auto       also write the filtered output to PATH. "auto" picks
                        <command>.%d; names without a directory go to the
                        temp dir; %d expands to the start time.
  --pipe                filter stdin even if a command is given.
  --grace-period SECS   delay between SIGTERM and SIGKILL on quit.
  --verbose             report what is running and how much was suppressed.
  --log-level LEVEL     Python logging level for diagnostics (stderr).

Environment (also read from a .env file next to this script)
────────────────────────────────────────────────────────────
  PROLIX_LOG            default for --log
  PROLIX_LOG_LEVEL      default for --log-level
  PROLIX_GRACE_PERIOD   default for --grace-period

Exit Codes
──────────
  0        the command exited normally (or pipe input ended).
  1        Prolix setup error, e.g. the log file cannot be written.
  2        bad filter expression.
  126/127  the command could not be executed / was not found.
  Any other value is the command's own exit code (128+N if killed by
  signal N).
"""

import argparse
import logging
import os
import sys
import tempfile
from datetime import datetime
from typing import List, Optional

from colorama import Fore, Style, just_fix_windows_console
from dotenv import load_dotenv

from filter_engine import ConfigError, FilterEngine
from stream_proxy import (
    DEFAULT_GRACE_PERIOD,
    Coordinator,
    Disposition,
    LogIOError,
    OutputSink,
    ProcessSupervisor,
    SpawnError,
    open_log,
    run_pipe,
)

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

load_dotenv(os.path.join(_PROJECT_ROOT, ".env"))

__version__ = "0.1.0"

logger = logging.getLogger("prolix")

_TAG = f"{Fore.CYAN}{Style.BRIGHT}[prolix]{Style.RESET_ALL}"
_ERR = f"{Fore.RED}{Style.BRIGHT}"
_RESET = Style.RESET_ALL


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prolix",
        description="Prolix trims outputs from chatty commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--log",
        default=os.getenv("PROLIX_LOG", ""),
        metavar="PATH",
        help="Log output file. 'auto' means Prolix picks the filename.",
    )
    parser.add_argument(
        "--pipe",
        action="store_true",
        default=False,
        help="Pipe mode: filter stdin instead of running a command.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Be verbose.",
    )
    parser.add_argument(
        "--grace-period",
        type=float,
        default=float(os.getenv("PROLIX_GRACE_PERIOD", DEFAULT_GRACE_PERIOD)),
        metavar="SECS",
        help="Seconds between SIGTERM and SIGKILL after 'quit'. Default: 10.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("PROLIX_LOG_LEVEL"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Python logging level. Default: WARNING (INFO with --verbose).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"prolix {__version__}",
    )

    rules = parser.add_argument_group("filters")
    rules.add_argument(
        "-r", "--ignore-re", "--ignore_re",
        dest="ignore_re", action="append", default=None, metavar="REGEX",
        help="Suppress lines matching REGEX.",
    )
    rules.add_argument(
        "-i", "--ignore-line", "--ignore_line",
        dest="ignore_line", action="append", default=None, metavar="TEXT",
        help="Suppress lines equal to TEXT.",
    )
    rules.add_argument(
        "-b", "--ignore-substring", "--ignore_substring",
        dest="ignore_substring", action="append", default=None, metavar="TEXT",
        help="Suppress lines containing TEXT.",
    )
    rules.add_argument(
        "-s", "--snippet",
        dest="snippet", action="append", default=None, metavar="EXPR",
        help="Rewrite kept lines with a sed-style s/SEARCH/REPLACE/FLAGS.",
    )

    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to run, usually after '--'.",
    )
    return parser


def configure_logging(level_str: str) -> None:
    """Set up structured logging to stderr."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level_str.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def resolve_log_path(option: str, program: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
    """
    Turn the --log value into a file path, or None when logging is off.

    "auto" becomes "<program>.%d" ("prolix.%d" in pipe mode). A name with no
    path separator is placed in the temp dir. "%d" expands to the local
    time as YYYYMMDDTHHMMSS.
    """
    if not option:
        return None
    now = now or datetime.now()
    filename = option
    if filename == "auto":
        base = os.path.basename(program) if program else "prolix"
        filename = base + ".%d"
    if os.sep not in filename:
        filename = os.path.join(tempfile.gettempdir(), filename)
    return filename.replace("%d", now.strftime("%Y%m%dT%H%M%S"))


def build_engine(args: argparse.Namespace) -> FilterEngine:
    """
    Install the rules given on the command line.

    Raises:
        ConfigError: on the first malformed pattern or snippet.
    """
    engine = FilterEngine()
    for value in args.ignore_line or []:
        engine.add_ignore_line(value)
    for value in args.ignore_substring or []:
        engine.add_ignore_substring(value)
    engine.import_ignore_re(args.ignore_re or [])
    engine.import_snippets(args.snippet or [])
    return engine


def _console_fd() -> Optional[int]:
    """stdin's fd when it is a terminal; interactive mode needs one."""
    try:
        fd = sys.stdin.fileno()
    except (AttributeError, ValueError, OSError):
        return None
    return fd if os.isatty(fd) else None


def _exit_status(returncode: int) -> int:
    if returncode < 0:
        return 128 - returncode
    return returncode


def run_spawn(command: List[str], args: argparse.Namespace, engine: FilterEngine, sink: OutputSink) -> int:
    """Run `command` under the Coordinator and return its exit status."""
    if args.verbose:
        print(f"{_TAG} Running: {command!r}", file=sys.stderr, flush=True)

    supervisor = ProcessSupervisor(grace_period=args.grace_period)
    handle = supervisor.spawn(command)

    coordinator = Coordinator(engine, sink, keypress_fd=_console_fd())
    coordinator.attach(handle)
    try:
        disposition = coordinator.run()
    except (LogIOError, KeyboardInterrupt):
        # The SIGKILL timer is a daemon thread; stay alive until the child is gone.
        supervisor.terminate_gracefully(handle)
        handle.wait()
        raise

    if disposition is Disposition.KILL_REQUESTED:
        supervisor.terminate_gracefully(handle)
    return _exit_status(handle.wait())


def main(argv: Optional[List[str]] = None) -> int:
    """
    Prolix entry point.

    Returns the exit code to pass to the OS.
    """
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level or ("INFO" if args.verbose else "WARNING"))
    just_fix_windows_console()

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    pipe_mode = args.pipe or not command

    logger.info("Prolix %s starting", __version__)
    logger.info("Config: pipe=%s log=%r grace=%.1fs", pipe_mode, args.log, args.grace_period)

    try:
        engine = build_engine(args)
    except ConfigError as exc:
        print(f"{_ERR}[prolix] {exc}{_RESET}", file=sys.stderr)
        return 2

    log_path = resolve_log_path(args.log, None if pipe_mode else command[0])
    try:
        log_file = open_log(log_path) if log_path else None
    except LogIOError as exc:
        print(f"{_ERR}[prolix] {exc}{_RESET}", file=sys.stderr)
        return 1
    if log_path:
        logger.info("Logging output to %s", log_path)

    sink = OutputSink(sys.stdout, log_file)
    exit_code = 0
    try:
        if pipe_mode:
            if args.verbose:
                print(f"{_TAG} Running in pipe mode", file=sys.stderr, flush=True)
            run_pipe(sys.stdin.buffer, engine, sink)
        else:
            exit_code = run_spawn(command, args, engine, sink)
        sink.close()
    except SpawnError as exc:
        logger.debug("Spawn failed", exc_info=True)
        print(f"{_ERR}[prolix] {exc}{_RESET}", file=sys.stderr)
        sink.close()
        return exc.exit_code
    except LogIOError as exc:
        print(f"{_ERR}[prolix] {exc}{_RESET}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130

    if args.verbose:
        print(f"{_TAG} Done. {engine.describe_stats()}", end="", file=sys.stderr, flush=True)

    logger.info("Prolix exiting with code %d", exit_code)
    return exit_code


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
