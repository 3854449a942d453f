"""Protection level classification for a request URI.

The level depends only on the shape of the matching patterns, never on
match confidence. Rules are applied in priority order; the first that holds
wins:

1. no matches                          -> UNPROTECTED
2. any all-literal pattern             -> FULLY_PROTECTED
3. any pattern with a parameter        -> PARAMETER_PROTECTED
4. any pattern with a wildcard         -> WILDCARD_PROTECTED
5. otherwise                           -> PARTIALLY_PROTECTED
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

from acs_service.features.resources.matching import Matchable, MatchResult
from acs_service.features.resources.patterns import CompiledPattern, compile_pattern

R = TypeVar("R")
RM = TypeVar("RM", bound=Matchable)

__all__ = [
    "ProtectionLevel",
    "ProtectionStatus",
    "RiskLevel",
    "classify",
    "evaluate_protection",
    "risk_assessment",
    "security_recommendations",
]


class ProtectionLevel(StrEnum):
    UNPROTECTED = "Unprotected"
    FULLY_PROTECTED = "FullyProtected"
    PARAMETER_PROTECTED = "ParameterProtected"
    WILDCARD_PROTECTED = "WildcardProtected"
    PARTIALLY_PROTECTED = "PartiallyProtected"

    @property
    def is_protected(self) -> bool:
        return self is not ProtectionLevel.UNPROTECTED


class RiskLevel(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


_RISK = {
    ProtectionLevel.FULLY_PROTECTED: RiskLevel.LOW,
    ProtectionLevel.PARAMETER_PROTECTED: RiskLevel.LOW,
    ProtectionLevel.WILDCARD_PROTECTED: RiskLevel.MEDIUM,
    ProtectionLevel.PARTIALLY_PROTECTED: RiskLevel.HIGH,
    ProtectionLevel.UNPROTECTED: RiskLevel.CRITICAL,
}


def classify(patterns: Iterable[CompiledPattern]) -> ProtectionLevel:
    """Derive the aggregate protection level from the matching patterns."""
    patterns = list(patterns)
    if not patterns:
        return ProtectionLevel.UNPROTECTED
    if any(p.is_literal for p in patterns):
        return ProtectionLevel.FULLY_PROTECTED
    if any(p.has_parameters for p in patterns):
        return ProtectionLevel.PARAMETER_PROTECTED
    if any(p.has_wildcard for p in patterns):
        return ProtectionLevel.WILDCARD_PROTECTED
    return ProtectionLevel.PARTIALLY_PROTECTED


def risk_assessment(level: ProtectionLevel) -> RiskLevel:
    return _RISK[level]


def security_recommendations(
    level: ProtectionLevel, patterns: Iterable[CompiledPattern] = ()
) -> list[str]:
    """Human-readable hints for tightening how a URI is governed."""
    patterns = list(patterns)
    recommendations: list[str] = []

    if level is ProtectionLevel.UNPROTECTED:
        recommendations.append("No resource governs this URI; register a resource pattern for it")
        return recommendations

    if level is ProtectionLevel.WILDCARD_PROTECTED:
        recommendations.append(
            "Only wildcard patterns match; add a literal or parameterized resource for this endpoint"
        )
    if any(p.has_tail_wildcard for p in patterns):
        recommendations.append(
            "A trailing '*' covers every deeper path; confirm nested endpoints should share its permissions"
        )
    if len(patterns) > 1:
        recommendations.append(
            f"{len(patterns)} resources match this URI; review their permissions for consistency"
        )
    return recommendations


@dataclass(frozen=True, slots=True)
class ProtectionStatus(Generic[R]):
    """How a request URI is governed by the registered resources."""

    uri: str
    level: ProtectionLevel
    matches: tuple[MatchResult[R], ...]
    risk: RiskLevel
    recommendations: tuple[str, ...]

    @property
    def is_protected(self) -> bool:
        return self.level.is_protected

    @property
    def best_match(self) -> MatchResult[R] | None:
        return self.matches[0] if self.matches else None


def evaluate_protection(
    uri: str, matches: Iterable[MatchResult[RM]]
) -> ProtectionStatus[RM]:
    """Classify a URI from its ranked matches (best first)."""
    matches = tuple(matches)
    patterns = [compile_pattern(m.resource.uri) for m in matches]
    level = classify(patterns)
    return ProtectionStatus(
        uri=uri,
        level=level,
        matches=matches,
        risk=risk_assessment(level),
        recommendations=tuple(security_recommendations(level, patterns)),
    )
