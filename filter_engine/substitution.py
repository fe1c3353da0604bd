"""
filter_engine/substitution.py

SubstitutionCompiler — sed-style snippet parser.
────────────────────────────────────────────────
Turns expressions of the form

    s<delim>SEARCH<delim>REPLACE<delim>FLAGS

into compiled `Substitution` rules.

Grammar details:
    • <delim> is whatever character sits at index 1, conventionally "/".
    • SEARCH and REPLACE run until the next unescaped <delim>. A literal
      delimiter is written as "\\<delim>". Every other backslash sequence
      is left alone, so regex escapes such as "\\b" survive intact.
    • FLAGS is any combination of "g" (replace all) and "i" (ignore case).
      Duplicates are tolerated and order does not matter.

Examples:
    s/a/b/            replace the first "a" with "b"
    s/a/b/g           replace every "a"
    s/\\bi\\b/me/i      case-insensitive, word boundaries
    s|/usr|/opt|      alternative delimiter
    s/^(\\w+) //       strip a leading log field
"""

import logging
import re
from typing import Iterable, List, Tuple

from .base import ConfigError, Substitution

logger = logging.getLogger(__name__)

_MIN_LENGTH = 4
_VALID_FLAGS = frozenset("gi")


def _split_field(expr: str, start: int, delim: str, in_search: bool) -> Tuple[str, int]:
    """
    Read one delimited field of `expr` beginning at `start`.

    Returns the unescaped field text and the index of the closing delimiter.
    Raises ConfigError when the closing delimiter is missing.
    """
    out: List[str] = []
    i = start
    while i < len(expr):
        ch = expr[i]
        if ch == "\\" and delim != "\\" and i + 1 < len(expr):
            nxt = expr[i + 1]
            if nxt == delim:
                out.append(re.escape(delim) if in_search else delim)
            else:
                out.append(ch + nxt)
            i += 2
            continue
        if ch == delim:
            return "".join(out), i
        out.append(ch)
        i += 1
    raise ConfigError(expr, f"missing closing {delim!r}")


def compile_substitution(expr: str) -> Substitution:
    """
    Compile a single snippet expression.

    Raises:
        ConfigError: if `expr` is too short, ungrammatical, carries an
                     unknown flag, or SEARCH is not a valid regex.
    """
    if len(expr) < _MIN_LENGTH:
        raise ConfigError(expr, "substitution too short")
    if expr[0] != "s":
        raise ConfigError(expr, "substitution must start with 's'")

    delim = expr[1]
    search, end = _split_field(expr, 2, delim, in_search=True)
    replacement, end = _split_field(expr, end + 1, delim, in_search=False)
    flags = expr[end + 1:]

    unknown = set(flags) - _VALID_FLAGS
    if unknown:
        raise ConfigError(expr, f"unknown flag(s) {''.join(sorted(unknown))!r}")

    if "i" in flags:
        search = "(?i)" + search

    try:
        pattern = re.compile(search)
    except re.error as exc:
        raise ConfigError(expr, f"bad search pattern ({exc})") from exc

    logger.debug(
        "Compiled snippet | search=%r replace=%r global=%s",
        pattern.pattern, replacement, "g" in flags,
    )
    return Substitution(
        pattern=pattern,
        replacement=replacement,
        is_global="g" in flags,
        source=expr,
    )


def compile_batch(exprs: Iterable[str]) -> List[Substitution]:
    """
    Compile every expression in `exprs`.

    All-or-nothing: the first ConfigError propagates and nothing is returned,
    so the caller never installs part of a batch.
    """
    return [compile_substitution(expr) for expr in exprs]
