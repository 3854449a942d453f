"""Request URI to resource pattern matching.

Every candidate pattern is compared segment by segment against the
normalized request URI. Successful matches are ranked by specificity:

    score = 100 * literals + 10 * parameters - 1 * wildcards

so for the same path an all-literal pattern beats a parameterized one, which
beats a wildcard one. Equal scores keep candidate order, and candidates come
in id order, so the first registered resource wins.

Confidence is a 0..1 figure on the same weights. Literal segments count 100,
parameter segments 10, and each URI segment absorbed by a wildcard counts 1.
The total is divided by the best possible value, 100 per URI segment. Only an
all-literal match reaches 1.0.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

from acs_service.core.settings import get_resource_settings
from acs_service.features.resources.patterns import (
    CompiledPattern,
    LiteralSegment,
    ParameterSegment,
    PatternError,
    compile_pattern,
    normalize_uri,
)
from acs_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from acs_service.core.settings import ResourceSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

__all__ = [
    "LITERAL_WEIGHT",
    "PARAMETER_WEIGHT",
    "WILDCARD_WEIGHT",
    "MatchEngine",
    "MatchPolicy",
    "MatchResult",
    "MatchType",
    "Matchable",
    "PatternMatch",
    "PatternTestReport",
    "UriTestOutcome",
    "evaluate_pattern",
    "match_pattern",
    "patterns_overlap",
    "specificity_score",
]

LITERAL_WEIGHT = 100
PARAMETER_WEIGHT = 10
WILDCARD_WEIGHT = 1


class MatchType(StrEnum):
    EXACT = "exact"
    PARAMETER = "parameter"
    WILDCARD = "wildcard"


class Matchable(Protocol):
    """Anything with an id and a raw URI pattern (ORM rows, snapshot records)."""

    @property
    def id(self) -> int: ...

    @property
    def uri(self) -> str: ...


R = TypeVar("R")
RM = TypeVar("RM", bound=Matchable)


@dataclass(frozen=True, slots=True)
class MatchPolicy:
    """Matching knobs that are policy rather than algorithm."""

    tail_wildcard: bool = True
    case_insensitive: bool = True

    @classmethod
    def from_settings(cls, settings: ResourceSettings | None = None) -> MatchPolicy:
        settings = settings or get_resource_settings()
        return cls(
            tail_wildcard=settings.wildcard_tail_match,
            case_insensitive=settings.case_insensitive,
        )


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Outcome of matching one compiled pattern against one URI."""

    pattern: CompiledPattern
    parameters: dict[str, str]
    matched_segments: tuple[str, ...]
    score: int
    confidence: float

    @property
    def match_type(self) -> MatchType:
        if self.pattern.has_wildcard:
            return MatchType.WILDCARD
        if self.pattern.has_parameters:
            return MatchType.PARAMETER
        return MatchType.EXACT


@dataclass(frozen=True, slots=True)
class MatchResult(Generic[R]):
    """Best (or ranked) match of a URI against a candidate resource."""

    resource: R
    extracted_parameters: dict[str, str]
    confidence: float
    score: int
    match_type: MatchType
    matched_segments: tuple[str, ...] = field(default=())


def specificity_score(pattern: CompiledPattern) -> int:
    """Ranking score of a pattern; higher is more specific."""
    return (
        LITERAL_WEIGHT * pattern.literal_count
        + PARAMETER_WEIGHT * pattern.parameter_count
        - WILDCARD_WEIGHT * pattern.wildcard_count
    )


def _match_segments(
    pattern: CompiledPattern,
    parts: Sequence[str],
    policy: MatchPolicy,
) -> tuple[dict[str, str], tuple[str, ...]] | None:
    segments = pattern.segments
    tail = policy.tail_wildcard and pattern.has_tail_wildcard

    if tail:
        if len(parts) < len(segments):
            return None
    elif len(parts) != len(segments):
        return None

    parameters: dict[str, str] = {}
    matched: list[str] = []
    last = len(segments) - 1
    for index, segment in enumerate(segments):
        part = parts[index]
        if isinstance(segment, LiteralSegment):
            if policy.case_insensitive:
                if segment.folded != part.lower():
                    return None
            elif segment.text != part:
                return None
            matched.append(part)
        elif isinstance(segment, ParameterSegment):
            parameters[segment.name] = part
            matched.append(part)
        elif tail and index == last:
            matched.append("/".join(parts[index:]))
        else:
            matched.append(part)
    return parameters, tuple(matched)


def _confidence(pattern: CompiledPattern, segment_count: int) -> float:
    wildcard_absorbed = segment_count - pattern.literal_count - pattern.parameter_count
    earned = (
        LITERAL_WEIGHT * pattern.literal_count
        + PARAMETER_WEIGHT * pattern.parameter_count
        + WILDCARD_WEIGHT * wildcard_absorbed
    )
    ratio = earned / (LITERAL_WEIGHT * segment_count)
    return round(min(max(ratio, 0.0), 1.0), 4)


def match_pattern(
    pattern: str | CompiledPattern,
    uri: str | Sequence[str],
    policy: MatchPolicy | None = None,
) -> PatternMatch | None:
    """Match a single pattern against a URI.

    Args:
        pattern: Raw pattern (compiled through the cache) or a compiled one.
        uri: Request URI, or already-normalized path segments.
        policy: Matching policy; defaults to the configured one.

    Returns:
        The match, or None when the URI does not fit the pattern.

    Raises:
        PatternError: If a raw pattern does not compile.
    """
    compiled = compile_pattern(pattern) if isinstance(pattern, str) else pattern
    parts = normalize_uri(uri) if isinstance(uri, str) else tuple(uri)
    policy = policy or MatchPolicy.from_settings()

    outcome = _match_segments(compiled, parts, policy)
    if outcome is None:
        return None
    parameters, matched = outcome
    return PatternMatch(
        pattern=compiled,
        parameters=parameters,
        matched_segments=matched,
        score=specificity_score(compiled),
        confidence=_confidence(compiled, len(parts)),
    )


class MatchEngine:
    """Selects the resource whose pattern best governs a request URI.

    The engine holds no resource state; callers pass the candidate set
    (normally one hierarchy snapshot) on every call, so results only depend
    on the arguments.

    Example:
        engine = MatchEngine()
        result = engine.find_best_match("/api/users/42", snapshot.records)
        if result:
            print(result.resource.id, result.extracted_parameters)
    """

    __slots__ = ("policy",)

    def __init__(self, policy: MatchPolicy | None = None) -> None:
        self.policy = policy or MatchPolicy.from_settings()

    def find_all_matches(
        self, uri: str, candidates: Iterable[RM]
    ) -> list[MatchResult[RM]]:
        """Return every matching candidate, best first.

        Candidates whose pattern does not compile are logged and skipped.
        """
        parts = normalize_uri(uri)
        matches: list[MatchResult[RM]] = []

        for candidate in candidates:
            try:
                compiled = compile_pattern(candidate.uri)
            except PatternError as exc:
                logger.warning(
                    "Skipping resource with invalid URI pattern",
                    extra={
                        "resource_id": candidate.id,
                        "pattern": candidate.uri,
                        "errors": list(exc.errors),
                    },
                )
                continue

            match = match_pattern(compiled, parts, self.policy)
            lazy_logger.debug(
                lambda c=candidate, m=match: f"match: {uri!r} vs {c.uri!r} (id={c.id}) -> "
                + (f"score={m.score}" if m else "no match")
            )
            if match is None:
                continue
            matches.append(
                MatchResult(
                    resource=candidate,
                    extracted_parameters=match.parameters,
                    confidence=match.confidence,
                    score=match.score,
                    match_type=match.match_type,
                    matched_segments=match.matched_segments,
                )
            )

        # sorted() is stable: equal scores keep candidate (id) order
        return sorted(matches, key=lambda m: m.score, reverse=True)

    def find_best_match(
        self, uri: str, candidates: Iterable[RM]
    ) -> MatchResult[RM] | None:
        """Return the single most specific match, or None when nothing matches."""
        matches = self.find_all_matches(uri, candidates)
        best = matches[0] if matches else None
        lazy_logger.debug(
            lambda: f"best match for {uri!r}: "
            + (f"resource {best.resource.id} ({best.confidence})" if best else "none")
        )
        return best


@dataclass(frozen=True, slots=True)
class UriTestOutcome:
    """One URI tried against a pattern."""

    uri: str
    match: PatternMatch | None

    @property
    def is_match(self) -> bool:
        return self.match is not None


@dataclass(frozen=True, slots=True)
class PatternTestReport:
    pattern: CompiledPattern
    outcomes: tuple[UriTestOutcome, ...]

    @property
    def total_tests(self) -> int:
        return len(self.outcomes)

    @property
    def match_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_match)

    @property
    def match_percentage(self) -> float:
        if not self.outcomes:
            return 0.0
        return round(100.0 * self.match_count / self.total_tests, 2)


def evaluate_pattern(
    pattern: str,
    uris: Iterable[str],
    policy: MatchPolicy | None = None,
) -> PatternTestReport:
    """Try one pattern against several URIs.

    Raises:
        PatternError: If the pattern does not compile. A broken pattern is
            never reported as "matches nothing".
    """
    compiled = compile_pattern(pattern)
    policy = policy or MatchPolicy.from_settings()
    outcomes = tuple(UriTestOutcome(uri, match_pattern(compiled, uri, policy)) for uri in uris)
    return PatternTestReport(pattern=compiled, outcomes=outcomes)


def _segments_compatible(a: object, b: object, policy: MatchPolicy) -> bool:
    if not (isinstance(a, LiteralSegment) and isinstance(b, LiteralSegment)):
        return True
    if policy.case_insensitive:
        return a.folded == b.folded
    return a.text == b.text


def patterns_overlap(
    first: CompiledPattern,
    second: CompiledPattern,
    policy: MatchPolicy | None = None,
) -> bool:
    """Whether some concrete URI would match both patterns.

    Literals must agree position by position; parameters and ``*`` accept
    any single segment. A trailing ``*`` (under tail matching) absorbs the
    extra segments of a longer pattern.
    """
    policy = policy or MatchPolicy.from_settings()
    first_tail = policy.tail_wildcard and first.has_tail_wildcard
    second_tail = policy.tail_wildcard and second.has_tail_wildcard
    head_a = first.segments[:-1] if first_tail else first.segments
    head_b = second.segments[:-1] if second_tail else second.segments

    for a, b in zip(head_a, head_b, strict=False):
        if not _segments_compatible(a, b, policy):
            return False

    if len(head_a) == len(head_b):
        return first_tail == second_tail
    if len(head_a) < len(head_b):
        return first_tail
    return second_tail
