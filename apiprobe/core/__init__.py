"""Core components for apiprobe.

- Matchers: response pattern matching used as fuzzing oracles
"""

from apiprobe.core.matchers import (
    CATEGORY_ORACLES,
    NO_MATCH,
    AllOf,
    EchoMatcher,
    MatchResult,
    Matcher,
    RegexMatcher,
    StatusMatcher,
    WordMatcher,
    evaluate_matchers,
    evaluate_oracle,
)

__all__ = [
    "CATEGORY_ORACLES",
    "NO_MATCH",
    "AllOf",
    "EchoMatcher",
    "MatchResult",
    "Matcher",
    "RegexMatcher",
    "StatusMatcher",
    "WordMatcher",
    "evaluate_matchers",
    "evaluate_oracle",
]
