"""
filter_engine/base.py

Core value types for Prolix's filtering layer.

Architecture Note:
    A child's output arrives as a sequence of `Line` values. The FilterEngine
    (engine.py) first asks the IgnoreRuleSet whether a line should be
    dropped, then runs every surviving line through the substitution chain.
    Substitutions are produced by the SubstitutionCompiler (substitution.py)
    from sed-style expressions; this module only defines the compiled form.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ProlixError(Exception):
    """Base class for every error Prolix raises on purpose."""


class ConfigError(ProlixError, ValueError):
    """
    A malformed ignore pattern or substitution expression.

    Attributes:
        expression : The offending input, verbatim.
        reason     : Short explanation of what is wrong with it.
    """

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"{reason}: {expression!r}")


class Decision(Enum):
    """Verdict of FilterEngine.decide()."""
    KEEP = "keep"
    DROP = "drop"


@dataclass(frozen=True)
class Line:
    """
    One line of child output.

    Attributes:
        text       : Content without the trailing newline.
        terminated : False only for a final fragment that ended at EOF
                     without a newline.
    """
    text: str
    terminated: bool = True

    @classmethod
    def from_raw(cls, raw: str) -> "Line":
        if raw.endswith("\n"):
            return cls(raw[:-1], True)
        return cls(raw, False)

    def render(self) -> str:
        return self.text + "\n" if self.terminated else self.text


# `$$`, `${name}` or `$name`; a name is letters, digits and underscores.
_TEMPLATE_REF = re.compile(r"\$(?:(\$)|\{(\w+)\}|(\w+))")


def expand_template(template: str, match: "re.Match[str]") -> str:
    """
    Expand `$1` / `${1}` / `$name` / `${name}` references in `template`
    against `match`.

    `$1x` refers to a group named "1x", not group 1 followed by "x"; use
    `${1}x` for that. References to groups that are out of range, unknown,
    or did not participate in the match expand to the empty string. `$$` is
    a literal dollar sign and a `$` that starts no valid reference is kept.
    """
    def _ref(ref: "re.Match[str]") -> str:
        if ref.group(1):
            return "$"
        name = ref.group(2) or ref.group(3)
        if name.isdigit():
            index = int(name)
            if index > match.re.groups:
                return ""
            return match.group(index) or ""
        if name in match.re.groupindex:
            return match.group(name) or ""
        return ""

    return _TEMPLATE_REF.sub(_ref, template)


@dataclass(frozen=True)
class Substitution:
    """
    A compiled `s/SEARCH/REPLACE/FLAGS` rule.

    Attributes:
        pattern     : Compiled SEARCH. Case-insensitivity, when requested,
                      is part of the pattern itself.
        replacement : Raw REPLACE template, expanded per match.
        is_global   : Replace every non-overlapping match instead of the first.
        source      : The expression the rule was compiled from.
    """
    pattern: "re.Pattern[str]"
    replacement: str
    is_global: bool = False
    source: str = ""

    def apply(self, text: str) -> str:
        """
        Rewrite `text`. A global rule skips an empty match that directly
        follows the previous match, so `s/x*/-/g` turns "abxd" into
        "-a-b-d-" rather than re.sub's "-a-b--d-".
        """
        if not self.is_global:
            return self.pattern.sub(lambda m: expand_template(self.replacement, m), text, count=1)
        pieces = []
        pos = last_end = 0
        for match in self.pattern.finditer(text):
            start, end = match.span()
            pieces.append(text[pos:start])
            if end > last_end or start == 0:
                pieces.append(expand_template(self.replacement, match))
            pos = last_end = end
        pieces.append(text[pos:])
        return "".join(pieces)


@dataclass
class IgnoreRuleSet:
    """
    Rules that cause a line to be dropped, in three classes.

    Classes are checked exact → substring → regex and rules within a class in
    registration order; the first hit wins.
    """
    exact: List[str] = field(default_factory=list)
    substrings: List[str] = field(default_factory=list)
    patterns: List["re.Pattern[str]"] = field(default_factory=list)

    def first_match(self, text: str) -> Optional[str]:
        """Return a description of the first rule `text` hits, or None."""
        for value in self.exact:
            if text == value:
                return f"ignore-line {value}"
        for value in self.substrings:
            if value in text:
                return f"ignore-substring {value}"
        for pattern in self.patterns:
            if pattern.search(text):
                return f"ignore-re {pattern.pattern}"
        return None
