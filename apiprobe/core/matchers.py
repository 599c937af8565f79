"""Response matchers and the per-category fuzzing oracles built from them."""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from apiprobe.config import PayloadCategory, ProbeResponse


@dataclass
class MatchResult:
    """Result of a matcher evaluation."""

    matched: bool
    indicator: Optional[str] = None
    message: str = ""


NO_MATCH = MatchResult(matched=False)


class Matcher:
    """Base matcher class."""

    def matches(self, response: ProbeResponse, payload: str = "") -> MatchResult:
        """Check if response matches. Override in subclass."""
        raise NotImplementedError


class StatusMatcher(Matcher):
    """Match HTTP status codes."""

    def __init__(self, statuses: Iterable[int]):
        self.statuses = frozenset(statuses)

    def matches(self, response: ProbeResponse, payload: str = "") -> MatchResult:
        status = response.status_code
        if status is None or status not in self.statuses:
            return NO_MATCH
        return MatchResult(matched=True, indicator=f"status {status}", message=f"Status {status}")


class WordMatcher(Matcher):
    """Match any of a set of words in the response body or headers."""

    def __init__(self, words: Sequence[str], part: str = "body", case_sensitive: bool = False):
        self.words = list(words)
        self.part = part
        self.case_sensitive = case_sensitive

    def _content(self, response: ProbeResponse) -> str:
        if self.part == "header":
            return "\n".join(f"{k}: {v}" for k, v in response.headers.items())
        return response.body

    def matches(self, response: ProbeResponse, payload: str = "") -> MatchResult:
        content = self._content(response)
        if not self.case_sensitive:
            content = content.lower()

        for word in self.words:
            needle = word if self.case_sensitive else word.lower()
            if needle in content:
                return MatchResult(matched=True, indicator=word, message=f"Word '{word}' found in {self.part}")
        return NO_MATCH


class RegexMatcher(Matcher):
    """Match regex patterns in the response body."""

    def __init__(self, patterns: Sequence[str], flags: int = re.IGNORECASE):
        self.patterns = [re.compile(p, flags) for p in patterns]

    def matches(self, response: ProbeResponse, payload: str = "") -> MatchResult:
        for pattern in self.patterns:
            match = pattern.search(response.body)
            if match:
                return MatchResult(
                    matched=True,
                    indicator=match.group(0),
                    message=f"Pattern {pattern.pattern} matched",
                )
        return NO_MATCH


class EchoMatcher(Matcher):
    """Match when the injected payload comes back verbatim."""

    def matches(self, response: ProbeResponse, payload: str = "") -> MatchResult:
        if payload and payload.lower() in response.body.lower():
            return MatchResult(matched=True, indicator=payload, message="Payload reflected in response")
        return NO_MATCH


class AllOf(Matcher):
    """Match only when every inner matcher matches."""

    def __init__(self, *matchers: Matcher):
        self.matchers = matchers

    def matches(self, response: ProbeResponse, payload: str = "") -> MatchResult:
        indicators = []
        for matcher in self.matchers:
            result = matcher.matches(response, payload)
            if not result.matched:
                return NO_MATCH
            indicators.append(result.indicator or "")
        return MatchResult(matched=True, indicator=" + ".join(indicators), message="All conditions matched")


def evaluate_matchers(
    matchers: Sequence[Matcher],
    response: ProbeResponse,
    payload: str = "",
    condition: str = "or",
) -> MatchResult:
    """Evaluate matchers with OR (first hit wins) or AND semantics."""
    if not matchers or response.transport_error:
        return NO_MATCH

    if condition == "and":
        return AllOf(*matchers).matches(response, payload)

    for matcher in matchers:
        result = matcher.matches(response, payload)
        if result.matched:
            return result
    return NO_MATCH


SUCCESS_STATUSES = range(200, 300)

ROOT_SIGNATURES = [
    r"root:[^:\n]*:0:0:",
    r"daemon:[^:\n]*:\d+:\d+:",
    r"\[boot loader\]",
    r"\[extensions\]",
    r"; for 16-bit app support",
]

DATABASE_ERRORS = [
    "sql syntax",
    "syntax error",
    "mysql",
    "postgresql",
    "sqlite",
    "ora-0",
    "sqlstate",
    "odbc",
    "unclosed quotation mark",
    "quoted string not properly terminated",
]

CATEGORY_ORACLES: Mapping[PayloadCategory, Tuple[Matcher, ...]] = MappingProxyType({
    PayloadCategory.INJECTION: (
        WordMatcher(DATABASE_ERRORS),
        AllOf(StatusMatcher([500]), WordMatcher(["error"])),
    ),
    PayloadCategory.XSS: (
        EchoMatcher(),
        WordMatcher(["<script", "alert("]),
    ),
    PayloadCategory.TRAVERSAL: (
        RegexMatcher(ROOT_SIGNATURES),
    ),
    PayloadCategory.COMMAND: (
        RegexMatcher([r"uid=\d+", r"gid=\d+", r"^total \d+", r"[d-][rwx-]{9}\s+\d+"], flags=re.MULTILINE),
    ),
    PayloadCategory.XXE: (
        RegexMatcher(ROOT_SIGNATURES),
        AllOf(StatusMatcher(SUCCESS_STATUSES), WordMatcher(["entity"])),
    ),
    PayloadCategory.FORMAT_STRING: (
        WordMatcher(["(null)"]),
        RegexMatcher([r"\b0x[0-9a-f]{6,}", r"(?:[0-9a-f]{8}[ .]){3,}"]),
        StatusMatcher([500]),
    ),
})


def evaluate_oracle(category: PayloadCategory, response: ProbeResponse, payload: str) -> MatchResult:
    """Decide whether a fuzzing response carries a vulnerability signal."""
    return evaluate_matchers(CATEGORY_ORACLES[category], response, payload)
