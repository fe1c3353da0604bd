"""
filter_engine — Prolix's line filtering layer.

Public API:
    FilterEngine         : Ignore rules + substitution chain + counters.
    Line                 : One line of child output.
    Decision             : KEEP / DROP verdict.
    Substitution         : A compiled s/SEARCH/REPLACE/FLAGS rule.
    compile_substitution : Parse a single snippet expression.
    ConfigError          : Raised for malformed patterns and expressions.
"""

from .base import ConfigError, Decision, IgnoreRuleSet, Line, ProlixError, Substitution
from .engine import RULE_COMMANDS, FilterEngine, normalize_command
from .substitution import compile_batch, compile_substitution

__all__ = [
    "ConfigError",
    "Decision",
    "FilterEngine",
    "IgnoreRuleSet",
    "Line",
    "ProlixError",
    "RULE_COMMANDS",
    "Substitution",
    "compile_batch",
    "compile_substitution",
    "normalize_command",
]
