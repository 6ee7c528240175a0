"""
Resolve a source project to its counterpart on the destination instance.

Candidates are scanned in the order the API returned them and the first
match wins, silently, even if later candidates would match too. No match
means ``None``; callers skip that project instead of failing the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .protocols import MatchStrategy

logger: logging.Logger = logging.getLogger(__name__)


def _project_id(project: dict[str, Any]) -> int | None:
    value = project.get("id")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _namespaced_name(project: dict[str, Any]) -> str | None:
    namespace = project.get("namespace")
    name = project.get("name")
    if not isinstance(namespace, dict) or not isinstance(name, str):
        return None
    namespace_name = namespace.get("name")
    if not isinstance(namespace_name, str):
        return None
    return f"{namespace_name}/{name}"


class ExactNameMatcher:
    """Match on the project ``name``: byte-for-byte, case-sensitive, untrimmed."""

    def matches(self, source: dict[str, Any], candidate: dict[str, Any]) -> bool:
        name = source.get("name")
        return isinstance(name, str) and candidate.get("name") == name

    def describe(self, source: dict[str, Any]) -> str:
        return str(source.get("name"))


class NamespacedNameMatcher:
    """Match on ``{namespace.name}/{name}``, stricter than the plain name."""

    def matches(self, source: dict[str, Any], candidate: dict[str, Any]) -> bool:
        key = _namespaced_name(source)
        return key is not None and _namespaced_name(candidate) == key

    def describe(self, source: dict[str, Any]) -> str:
        return _namespaced_name(source) or str(source.get("name"))


class PredicateMatcher:
    """Match with a caller-supplied ``(source, candidate) -> bool`` function."""

    _predicate: Callable[[dict[str, Any], dict[str, Any]], bool]

    def __init__(self, predicate: Callable[[dict[str, Any], dict[str, Any]], bool]) -> None:
        self._predicate = predicate

    def matches(self, source: dict[str, Any], candidate: dict[str, Any]) -> bool:
        return self._predicate(source, candidate)

    def describe(self, source: dict[str, Any]) -> str:
        return str(source.get("name"))


def resolve(
    source: dict[str, Any],
    candidates: Iterable[dict[str, Any]],
    strategy: MatchStrategy,
) -> int | None:
    """Return the id of the first candidate matching ``source``, or None."""
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        if strategy.matches(source, candidate):
            candidate_id = _project_id(candidate)
            if candidate_id is not None:
                return candidate_id
    logger.debug(f"No destination counterpart for {strategy.describe(source)}")
    return None


def resolve_by_exact_name(destination_projects: Iterable[dict[str, Any]], source_name: str) -> int | None:
    """Return the id of the first destination project named exactly ``source_name``."""
    return resolve({"name": source_name}, destination_projects, ExactNameMatcher())
