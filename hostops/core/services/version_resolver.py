"""
Version resolver: ordered-pattern version extraction and comparison.

Patterns are data, tried in declaration order; the first one that
matches wins. Vendor-branded patterns (``X.Y.Z-MariaDB``) must be
declared before bare ``X.Y.Z`` ones so a fork is not misread as
upstream. No match is not an error: the version is simply None.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from enum import IntEnum

from hostops.core.models.service import ServiceDescriptor, VersionPattern
from hostops.core.services.session import HostSession

logger = logging.getLogger(__name__)


class VersionOrder(IntEnum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


# ── Pure helpers ────────────────────────────────────────────────


def extract_version(output: str, patterns: Iterable[VersionPattern]) -> str | None:
    """Group 1 of the first pattern that matches ``output``."""
    text = output.strip()
    if not text:
        return None
    for pattern in patterns:
        match = pattern.compiled().search(text)
        if match:
            return match.group(1)
    return None


def _components(version: str) -> list[int]:
    parts: list[int] = []
    for raw in version.strip().lstrip("vV").split("."):
        digits = re.match(r"\d+", raw)
        parts.append(int(digits.group(0)) if digits else 0)
    return parts


def compare_versions(a: str, b: str) -> VersionOrder:
    """Numeric, dot-delimited comparison; missing components count as zero.

    >>> compare_versions("10.6", "10.6.12")
    <VersionOrder.LESS: -1>
    """
    left, right = _components(a), _components(b)
    width = max(len(left), len(right))
    left += [0] * (width - len(left))
    right += [0] * (width - len(right))
    if left < right:
        return VersionOrder.LESS
    if left > right:
        return VersionOrder.GREATER
    return VersionOrder.EQUAL


def version_sort_key(version: str) -> tuple[int, ...]:
    """Sort key consistent with compare_versions (trailing zeros ignored)."""
    parts = _components(version)
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def sort_versions(versions: Iterable[str], descending: bool = True) -> list[str]:
    """Deduplicate (by exact string) and sort numerically."""
    unique = list(dict.fromkeys(v.strip() for v in versions if v and v.strip()))
    return sorted(unique, key=version_sort_key, reverse=descending)


# ── Resolver ────────────────────────────────────────────────────


class VersionResolver:
    """Runs a product's version command and extracts the version."""

    def __init__(
        self,
        command: str,
        patterns: tuple[VersionPattern, ...],
        session: HostSession,
    ):
        self.command = command
        self.patterns = patterns
        self.session = session

    @classmethod
    def for_descriptor(cls, descriptor: ServiceDescriptor, session: HostSession) -> VersionResolver:
        return cls(descriptor.version_command, descriptor.version_patterns, session)

    def raw_output(self) -> str:
        if not self.command:
            return ""
        return self.session.output(self.command)

    def get_version(self) -> str | None:
        """The parsed version, or None when nothing matches."""
        version = extract_version(self.raw_output(), self.patterns)
        if version is None:
            logger.debug("No version parsed from: %s", self.command)
        return version
