"""
Origin allow-list rules and CORS response headers.

Every endpoint owns one ``OriginPolicy``; the rules are evaluated in order and
the first match admits the origin.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence


class OriginRule(Protocol):
    def matches(self, origin: str) -> bool:
        ...


@dataclass(frozen=True)
class AllowAll:
    """Admits every origin, including a missing one."""

    def matches(self, origin: str) -> bool:
        return True


@dataclass(frozen=True)
class ExactMatch:
    value: str

    def matches(self, origin: str) -> bool:
        return origin == self.value


@dataclass(frozen=True)
class SuffixMatch:
    value: str

    def matches(self, origin: str) -> bool:
        return bool(self.value) and origin.endswith(self.value)


@dataclass(frozen=True)
class PatternMatch:
    pattern: re.Pattern

    @classmethod
    def compile(cls, expression: str) -> "PatternMatch":
        return cls(re.compile(expression))

    def matches(self, origin: str) -> bool:
        return bool(self.pattern.match(origin))


@dataclass(frozen=True)
class LocalDevelopment:
    """Admits any origin served from the local machine."""

    hosts: tuple[str, ...] = ("localhost", "127.0.0.1")

    def matches(self, origin: str) -> bool:
        return any(host in origin for host in self.hosts)


@dataclass(frozen=True)
class OriginPolicy:
    rules: tuple[OriginRule, ...]

    @classmethod
    def from_allow_list(
        cls,
        entries: Iterable[str],
        *,
        patterns: Sequence[str] = (),
        allow_local: bool = False,
    ) -> "OriginPolicy":
        """
        Build a policy from a configured allow-list.

        An empty allow-list admits everything. Otherwise each entry admits the
        exact origin and any origin ending with it. Local development hosts
        and regex patterns are appended after the allow-list rules.
        """
        entries = [e for e in entries if e]
        rules: list[OriginRule] = []
        if not entries:
            rules.append(AllowAll())
        for entry in entries:
            rules.append(ExactMatch(entry))
            rules.append(SuffixMatch(entry))
        if allow_local:
            rules.append(LocalDevelopment())
        rules.extend(PatternMatch.compile(p) for p in patterns)
        return cls(tuple(rules))

    def allows(self, origin: Optional[str]) -> bool:
        origin = origin or ""
        return any(rule.matches(origin) for rule in self.rules)


@dataclass(frozen=True)
class CorsConfig:
    """Fixed CORS headers an endpoint attaches to every response."""

    methods: tuple[str, ...]
    headers: tuple[str, ...] = ("Content-Type", "X-Main-Access-Token")
    allow_credentials: bool = False
    max_age: Optional[int] = None

    def headers_for(self, origin: Optional[str]) -> dict[str, str]:
        result = {
            "Access-Control-Allow-Origin": origin or "*",
            "Access-Control-Allow-Methods": ", ".join(self.methods),
            "Access-Control-Allow-Headers": ", ".join(self.headers),
            "Vary": "Origin",
        }
        if self.allow_credentials:
            result["Access-Control-Allow-Credentials"] = "true"
        if self.max_age is not None:
            result["Access-Control-Max-Age"] = str(self.max_age)
        return result
