"""
filter_engine/engine.py

FilterEngine — owns the rules and decides what reaches the console.
───────────────────────────────────────────────────────────────────
Every line goes through two stages:

  1. decide()    : the IgnoreRuleSet is consulted (exact → substring →
                   regex). A hit drops the line.
  2. transform() : surviving lines run through the substitution chain in
                   registration order.

The engine also keeps the run's counters. `lines_total - lines_suppressed`
is always the number of lines handed back by process().

Rules are added either from the command line at startup or from the
interactive prompt. Both paths go through the methods below, and batch
imports are all-or-nothing.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from .base import ConfigError, Decision, IgnoreRuleSet, Line, Substitution
from .substitution import compile_batch

logger = logging.getLogger(__name__)


# Interactive/CLI command names understood by FilterEngine.install().
RULE_COMMANDS = ("ignore-re", "ignore-line", "ignore-substring", "snippet")


def normalize_command(name: str) -> str:
    """ignore_re and ignore-re are the same command."""
    return name.replace("_", "-")


class FilterEngine:
    """
    Holds ignore rules and the substitution chain for one run.

    Usage:
        engine = FilterEngine()
        engine.add_ignore_substring("(spam)")
        engine.import_snippets(["s/^DEBUG //"])

        out = engine.process(Line("DEBUG hello"))
        if out is not None:
            print(out.render(), end="")
    """

    def __init__(self) -> None:
        self.ignore = IgnoreRuleSet()
        self.substitutions: List[Substitution] = []
        self.lines_total = 0
        self.lines_suppressed = 0

    # ── Filtering ─────────────────────────────────────────────────────────────

    def decide(self, line: Line) -> Decision:
        self.lines_total += 1
        hit = self.ignore.first_match(line.text)
        if hit is None:
            return Decision.KEEP
        self.lines_suppressed += 1
        logger.debug("Suppressed line by [%s]", hit)
        return Decision.DROP

    def transform(self, line: Line) -> Line:
        text = line.text
        for sub in self.substitutions:
            text = sub.apply(text)
        if text == line.text:
            return line
        return Line(text, line.terminated)

    def process(self, line: Line) -> Optional[Line]:
        """decide() + transform(); None means the line was dropped."""
        if self.decide(line) is Decision.DROP:
            return None
        return self.transform(line)

    # ── Rule installation ─────────────────────────────────────────────────────

    def add_ignore_line(self, value: str) -> None:
        self.ignore.exact.append(value)

    def add_ignore_substring(self, value: str) -> None:
        self.ignore.substrings.append(value)

    def add_ignore_re(self, pattern: str) -> None:
        self.import_ignore_re([pattern])

    def import_ignore_re(self, patterns: Iterable[str]) -> None:
        """
        Compile and install a batch of ignore regexes.

        Raises:
            ConfigError: if any pattern fails to compile. Nothing from the
                         batch is installed in that case.
        """
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern))
            except re.error as exc:
                raise ConfigError(pattern, f"bad ignore pattern ({exc})") from exc
        self.ignore.patterns.extend(compiled)

    def import_snippets(self, exprs: Iterable[str]) -> None:
        """
        Compile and append a batch of substitution expressions.

        Raises:
            ConfigError: if any expression is rejected. The chain is left
                         exactly as it was.
        """
        self.substitutions.extend(compile_batch(exprs))

    def install(self, command: str, argument: str) -> None:
        """
        Install one rule by command name, as typed at the prompt.

        Raises:
            ConfigError: for a malformed pattern/expression.
            KeyError   : for an unknown command name.
        """
        command = normalize_command(command)
        if command == "ignore-re":
            self.add_ignore_re(argument)
        elif command == "ignore-line":
            self.add_ignore_line(argument)
        elif command == "ignore-substring":
            self.add_ignore_substring(argument)
        elif command == "snippet":
            self.import_snippets([argument])
        else:
            raise KeyError(command)
        logger.info("Installed rule: %s %s", command, argument)

    # ── Introspection ─────────────────────────────────────────────────────────

    def patterns(self) -> Dict[str, List[str]]:
        return {
            "ignoreRe": [p.pattern for p in self.ignore.patterns],
            "ignoreLine": list(self.ignore.exact),
            "ignoreSubstring": list(self.ignore.substrings),
            "snippet": [s.source for s in self.substitutions],
        }

    def describe_patterns(self) -> str:
        out = []
        for name, values in self.patterns().items():
            out.append(f" * {name}")
            out.extend(values)
        return "\n".join(out) + "\n"

    def stats(self) -> Tuple[int, int]:
        """(suppressed, total)"""
        return self.lines_suppressed, self.lines_total

    def describe_stats(self) -> str:
        return "Suppressed %d/%d lines.\n" % self.stats()
