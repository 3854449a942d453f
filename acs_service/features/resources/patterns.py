"""URI pattern compilation and analysis.

A resource URI pattern is a ``/``-separated path whose segments are one of:

- a literal (``users``), compared case-insensitively by default
- a wildcard (``*``), matching one segment, or the rest of the path when it
  is the final segment and tail matching is enabled
- a named parameter (``{id}``), matching one segment and binding its value

Compilation is pure and cached by the raw pattern string. Malformed patterns
raise ``PatternError`` carrying every problem found, so callers can report
them all at once.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from typing import ClassVar

from acs_service.core.settings import get_resource_settings

__all__ = [
    "CompiledPattern",
    "LiteralSegment",
    "ParameterSegment",
    "PatternAnalysis",
    "PatternError",
    "Segment",
    "SegmentKind",
    "WildcardSegment",
    "analyze_pattern",
    "clear_pattern_cache",
    "compile_pattern",
    "normalize_uri",
]

_ALLOWED_CHARS = re.compile(r"[A-Za-z0-9\-_.~{}*]")
_PARAMETER_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

WILDCARD = "*"


class SegmentKind(StrEnum):
    LITERAL = "literal"
    PARAMETER = "parameter"
    WILDCARD = "wildcard"


@dataclass(frozen=True, slots=True)
class LiteralSegment:
    text: str
    kind: ClassVar[SegmentKind] = SegmentKind.LITERAL

    @property
    def folded(self) -> str:
        return self.text.lower()

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True, slots=True)
class ParameterSegment:
    name: str
    kind: ClassVar[SegmentKind] = SegmentKind.PARAMETER

    def __str__(self) -> str:
        return f"{{{self.name}}}"


@dataclass(frozen=True, slots=True)
class WildcardSegment:
    kind: ClassVar[SegmentKind] = SegmentKind.WILDCARD

    def __str__(self) -> str:
        return WILDCARD


Segment = LiteralSegment | ParameterSegment | WildcardSegment


class PatternError(ValueError):
    """Raised when a URI pattern cannot be compiled.

    Attributes:
        pattern: The raw pattern string.
        errors: Every problem found, in segment order.
        suggestions: Corrections that would fix some or all of the errors.
    """

    def __init__(
        self,
        pattern: str,
        errors: Sequence[str],
        suggestions: Sequence[str] = (),
    ) -> None:
        self.pattern = pattern
        self.errors = tuple(errors)
        self.suggestions = tuple(suggestions)
        super().__init__(f"Invalid URI pattern {pattern!r}: {'; '.join(self.errors)}")


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """Immutable, segment-wise form of a resource URI pattern."""

    raw: str
    segments: tuple[Segment, ...]

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.segments if isinstance(s, ParameterSegment))

    @property
    def literal_count(self) -> int:
        return sum(1 for s in self.segments if isinstance(s, LiteralSegment))

    @property
    def parameter_count(self) -> int:
        return sum(1 for s in self.segments if isinstance(s, ParameterSegment))

    @property
    def wildcard_count(self) -> int:
        return sum(1 for s in self.segments if isinstance(s, WildcardSegment))

    @property
    def is_literal(self) -> bool:
        """True when every segment is a literal."""
        return self.literal_count == len(self.segments)

    @property
    def has_parameters(self) -> bool:
        return self.parameter_count > 0

    @property
    def has_wildcard(self) -> bool:
        return self.wildcard_count > 0

    @property
    def has_tail_wildcard(self) -> bool:
        return isinstance(self.segments[-1], WildcardSegment)

    @property
    def canonical(self) -> str:
        """Normalized pattern text: leading slash, no empty or trailing segments."""
        return "/" + "/".join(str(s) for s in self.segments)

    @property
    def literal_prefix(self) -> tuple[str, ...]:
        """Case-folded literal segments before the first wildcard or parameter."""
        prefix: list[str] = []
        for segment in self.segments:
            if not isinstance(segment, LiteralSegment):
                break
            prefix.append(segment.folded)
        return tuple(prefix)

    @property
    def complexity(self) -> int:
        """Rough cost of the pattern: literal 1, parameter 2, wildcard 3, tail +2."""
        score = self.literal_count + 2 * self.parameter_count + 3 * self.wildcard_count
        if self.has_tail_wildcard:
            score += 2
        return score

    def __str__(self) -> str:
        return self.canonical


@dataclass(frozen=True, slots=True)
class PatternAnalysis:
    """Result of validating a pattern without raising."""

    pattern: str
    is_valid: bool
    errors: tuple[str, ...]
    suggested_corrections: tuple[str, ...]
    match_examples: tuple[str, ...]
    complexity_score: int
    parameters: tuple[str, ...]
    normalized_pattern: str | None


def normalize_uri(uri: str) -> tuple[str, ...]:
    """Split a request URI into path segments.

    The query string and fragment are dropped, as are empty segments, so
    ``/api/users/`` and ``/api//users?x=1`` both normalize to ``("api", "users")``.
    """
    path = uri.strip().split("?", 1)[0].split("#", 1)[0]
    return tuple(part for part in path.split("/") if part)


def _braces_balanced(segment: str) -> bool:
    depth = 0
    for char in segment:
        if char == "{":
            depth += 1
            if depth > 1:
                return False
        elif char == "}":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def _parse_segment(text: str) -> tuple[Segment | None, list[str], list[str]]:
    errors: list[str] = []
    suggestions: list[str] = []

    invalid = sorted({char for char in text if not _ALLOWED_CHARS.fullmatch(char)})
    if invalid:
        errors.append(f"Segment {text!r} contains invalid characters: {' '.join(invalid)}")
        suggestions.append(f"Remove or percent-encode {' '.join(invalid)} in {text!r}")
        return None, errors, suggestions

    if text == WILDCARD:
        return WildcardSegment(), errors, suggestions

    if "{" in text or "}" in text:
        if not _braces_balanced(text):
            errors.append(f"Segment {text!r} has unbalanced braces")
            bare = text.strip("{}")
            if bare:
                suggestions.append(f"Write the parameter as '{{{bare}}}'")
            return None, errors, suggestions

        if text.startswith("{") and text.endswith("}") and text.count("{") == 1:
            name = text[1:-1]
            if not name:
                errors.append(f"Segment {text!r} has an empty parameter name")
                suggestions.append("Name the parameter, e.g. '{id}'")
                return None, errors, suggestions
            if not _PARAMETER_NAME.match(name):
                errors.append(f"Parameter name {name!r} is not a valid identifier")
                fixed = re.sub(r"\W", "_", name)
                if fixed[0].isdigit():
                    fixed = f"_{fixed}"
                suggestions.append(f"Rename the parameter to '{{{fixed}}}'")
                return None, errors, suggestions
            return ParameterSegment(name), errors, suggestions

        errors.append(f"Parameter in segment {text!r} must occupy the whole segment")
        suggestions.append(f"Split {text!r} so the parameter has its own segment")
        return None, errors, suggestions

    if WILDCARD in text:
        errors.append(f"Wildcard in segment {text!r} must occupy the whole segment")
        if set(text) == {WILDCARD}:
            suggestions.append(f"Use a single '*' instead of {text!r}")
        else:
            suggestions.append(f"Replace {text!r} with '*' or a named parameter")
        return None, errors, suggestions

    return LiteralSegment(text), errors, suggestions


def _parse(pattern: str) -> tuple[tuple[Segment, ...], list[str], list[str]]:
    errors: list[str] = []
    suggestions: list[str] = []
    segments: list[Segment] = []
    seen: set[str] = set()

    stripped = pattern.strip()
    parts = [part for part in stripped.split("/") if part]
    if not parts:
        errors.append("Pattern must contain at least one path segment")
        suggestions.append("Use a path such as '/api/resource'")
        return (), errors, suggestions

    for part in parts:
        segment, segment_errors, segment_suggestions = _parse_segment(part)
        errors.extend(segment_errors)
        suggestions.extend(segment_suggestions)
        if isinstance(segment, ParameterSegment):
            if segment.name in seen:
                errors.append(f"Parameter {segment.name!r} appears more than once")
                suggestions.append(f"Give the repeated '{{{segment.name}}}' a distinct name")
                continue
            seen.add(segment.name)
        if segment is not None:
            segments.append(segment)

    if not stripped.startswith("/"):
        suggestions.append("Start the pattern with '/'")
    if len(stripped) > 1 and stripped.endswith("/"):
        suggestions.append("Drop the trailing '/'")
    if "//" in stripped:
        suggestions.append("Collapse repeated '/' separators")

    return tuple(segments), errors, suggestions


def _compile(pattern: str) -> CompiledPattern:
    segments, errors, suggestions = _parse(pattern)
    if errors:
        raise PatternError(pattern, errors, suggestions)
    return CompiledPattern(raw=pattern, segments=segments)


_cached_compile: Callable[[str], CompiledPattern] | None = None


def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile a raw URI pattern.

    Results are cached by the raw string. Failures are not cached. The cache
    is sized from ``RESOURCES_PATTERN_CACHE_SIZE`` when first used after
    import or after ``clear_pattern_cache``.

    Raises:
        PatternError: If the pattern is empty or any segment is malformed.
    """
    global _cached_compile
    if _cached_compile is None:
        _cached_compile = lru_cache(maxsize=get_resource_settings().pattern_cache_size)(_compile)
    return _cached_compile(pattern)


def clear_pattern_cache() -> None:
    """Drop cached patterns; the next compile re-reads the cache size."""
    global _cached_compile
    _cached_compile = None


def _example_uris(compiled: CompiledPattern) -> tuple[str, ...]:
    tail_match = get_resource_settings().wildcard_tail_match
    last = len(compiled.segments) - 1
    examples: list[str] = []
    for parameter_value, wildcard_value, deep_tail in (("123", "item", False), ("abc", "other", True)):
        parts: list[str] = []
        for index, segment in enumerate(compiled.segments):
            if isinstance(segment, LiteralSegment):
                parts.append(segment.text)
            elif isinstance(segment, ParameterSegment):
                parts.append(parameter_value)
            elif index == last and deep_tail and tail_match:
                parts.append(f"{wildcard_value}/nested")
            else:
                parts.append(wildcard_value)
        example = "/" + "/".join(parts)
        if example not in examples:
            examples.append(example)
    return tuple(examples)


def analyze_pattern(pattern: str) -> PatternAnalysis:
    """Validate a pattern and describe it. Never raises.

    Example:
        >>> analyze_pattern("/api/{}/x").is_valid
        False
    """
    segments, errors, suggestions = _parse(pattern)
    if errors:
        return PatternAnalysis(
            pattern=pattern,
            is_valid=False,
            errors=tuple(errors),
            suggested_corrections=tuple(suggestions),
            match_examples=(),
            complexity_score=0,
            parameters=(),
            normalized_pattern=None,
        )

    compiled = CompiledPattern(raw=pattern, segments=segments)
    return PatternAnalysis(
        pattern=pattern,
        is_valid=True,
        errors=(),
        suggested_corrections=tuple(suggestions),
        match_examples=_example_uris(compiled),
        complexity_score=compiled.complexity,
        parameters=compiled.parameter_names,
        normalized_pattern=compiled.canonical,
    )
