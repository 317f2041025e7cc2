"""Semantic version parsing and ordering for catalog version lists."""

from __future__ import annotations

import re
from functools import total_ordering
from typing import Iterable

_VERSION_PATTERN = re.compile(
    r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-?([0-9A-Za-z][0-9A-Za-z.\-]*))?(?:\+([0-9A-Za-z.\-]+))?$"
)


@total_ordering
class SemanticVersion:
    """A loosely parsed semantic version.

    Accepts the shapes catalogs actually publish ("2.0", "3.1.4",
    "4.0.0-beta.1", "3.3.0-rc1", "1.0.0+build"). Text that does not look
    like a version is kept and sorts below every parseable version.
    """

    __slots__ = ("text", "numbers", "prerelease", "is_valid")

    def __init__(self, text: str) -> None:
        self.text = text
        match = _VERSION_PATTERN.match(text.strip()) if text else None
        if match is None:
            self.is_valid = False
            self.numbers: tuple[int, ...] = ()
            self.prerelease: tuple[str, ...] = ()
            return

        self.is_valid = True
        self.numbers = tuple(int(part) if part else 0 for part in match.group(1, 2, 3, 4))
        tag = match.group(5)
        self.prerelease = tuple(tag.split(".")) if tag else ()

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def _key(self) -> tuple:
        if not self.is_valid:
            return (0, (), 0, (), self.text)
        # A release sorts above any prerelease of the same numbers.
        release_rank = 0 if self.prerelease else 1
        return (1, self.numbers, release_rank, _prerelease_key(self.prerelease), "")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: SemanticVersion) -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"SemanticVersion({self.text!r})"


def _prerelease_key(parts: tuple[str, ...]) -> tuple:
    # Numeric identifiers sort below alphanumeric ones.
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in parts)


def sort_versions_descending(versions: Iterable[str]) -> list[str]:
    """Sort version strings from newest to oldest."""
    return sorted(versions, key=SemanticVersion, reverse=True)


def latest_version(versions: Iterable[str], include_prerelease: bool) -> str | None:
    """Pick the highest version.

    Args:
        versions: Candidate version strings.
        include_prerelease: If False, prerelease versions are not candidates.

    Returns:
        The highest candidate, or None when there is none.
    """
    candidates = [SemanticVersion(v) for v in versions]
    if not include_prerelease:
        candidates = [v for v in candidates if v.is_valid and not v.is_prerelease]
    if not candidates:
        return None
    return max(candidates).text
