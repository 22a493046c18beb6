"""Pattern-matching primitives for principals, actions and resource ids.

Patterns and candidates are split into segments on ``:`` and ``/``.  The
delimiters must line up exactly; wildcards only act within a segment or as
a whole segment:

- ``*`` as a full segment matches exactly one segment, or the whole
  remaining suffix when it is the last pattern segment.
- ``abc*`` matches segments starting with ``abc`` (the remaining suffix
  when last).
- ``*abc`` matches segments ending with ``abc``.
- ``*abc*`` matches segments containing ``abc``.
- A ``*`` anywhere else is a literal character.

Matching is explicit segment comparison with no regular expressions, so
its cost is linear in the length of the candidate.

Example
-------
>>> matches_resource("arn:aws:logs:*:*:/aws/lambda/*",
...                  "arn:aws:logs:us-east-1:123456789012:/aws/lambda/hello-fn")
True
>>> matches_action("logs:Put*", "logs:PutLogEvents")
True
>>> matches_resource("/aws/lambda/*", "/aws/ec2/foo")
False
"""
from __future__ import annotations

from collections.abc import Mapping

from iam_authz.policies.document import WILDCARD, Condition

_DELIMITERS: frozenset[str] = frozenset(":/")


def _split(value: str) -> tuple[list[str], list[str]]:
    """Split *value* into segments and the delimiters between them."""
    segments: list[str] = []
    delimiters: list[str] = []
    start = 0
    for index, char in enumerate(value):
        if char in _DELIMITERS:
            segments.append(value[start:index])
            delimiters.append(char)
            start = index + 1
    segments.append(value[start:])
    return segments, delimiters


def _join(segments: list[str], delimiters: list[str]) -> str:
    parts: list[str] = []
    for index, segment in enumerate(segments):
        parts.append(segment)
        if index < len(delimiters):
            parts.append(delimiters[index])
    return "".join(parts)


def _segment_matches(pattern: str, value: str) -> bool:
    """Compare a single pattern segment with a candidate segment."""
    if pattern == WILDCARD:
        return True
    leading = pattern.startswith(WILDCARD)
    trailing = pattern.endswith(WILDCARD)
    if leading and trailing:
        return pattern[1:-1] in value
    if trailing:
        return value.startswith(pattern[:-1])
    if leading:
        return value.endswith(pattern[1:])
    return pattern == value


def match_pattern(pattern: str, candidate: str) -> bool:
    """Return True if *candidate* structurally matches *pattern*."""
    if pattern == WILDCARD:
        return True
    if WILDCARD not in pattern:
        return pattern == candidate

    pattern_segments, pattern_delimiters = _split(pattern)
    candidate_segments, candidate_delimiters = _split(candidate)
    last = len(pattern_segments) - 1

    for index, segment in enumerate(pattern_segments):
        if index >= len(candidate_segments):
            return False
        if index == last and segment.endswith(WILDCARD):
            remainder = _join(candidate_segments[index:], candidate_delimiters[index:])
            return _segment_matches(segment, remainder)
        if not _segment_matches(segment, candidate_segments[index]):
            return False
        if index < last:
            if index >= len(candidate_delimiters):
                return False
            if pattern_delimiters[index] != candidate_delimiters[index]:
                return False

    return len(candidate_segments) == len(pattern_segments)


def matches_principal(pattern: str, candidate: str) -> bool:
    """Return True if the principal *candidate* matches *pattern*."""
    return match_pattern(pattern, candidate)


def matches_action(pattern: str, candidate: str) -> bool:
    """Return True if the ``service:Verb`` *candidate* matches *pattern*."""
    return match_pattern(pattern, candidate)


def matches_resource(pattern: str, candidate: str) -> bool:
    """Return True if the resource id *candidate* matches *pattern*."""
    return match_pattern(pattern, candidate)


def matches_any(patterns: frozenset[str], candidate: str) -> bool:
    """Return True if any pattern matches.  An empty set matches nothing."""
    return any(match_pattern(pattern, candidate) for pattern in patterns)


def matches_condition(
    condition: Condition | None,
    context: Mapping[str, str],
) -> bool:
    """Return True if *context* satisfies *condition*.

    An absent condition is always satisfied.  Otherwise every required key
    must be present and its value must be one of the accepted literals.
    """
    if condition is None:
        return True
    for key, accepted in condition.requirements.items():
        if key not in context:
            return False
        if context[key] not in accepted:
            return False
    return True
