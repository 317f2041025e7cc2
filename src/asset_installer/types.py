"""Shared data types for the asset installer."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from asset_installer.errors import LibraryError, OperationCancelledError

if TYPE_CHECKING:
    from asset_installer.manifest import LibraryInstallationState

__all__ = [
    "CancellationToken",
    "CompletionItem",
    "CompletionSet",
    "FileConflict",
    "OperationResult",
    "ResolvedLibrary",
]


class CancellationToken:
    """Cooperative cancellation flag shared by every stage of an operation.

    The flag is thread-safe so a signal handler or UI thread can cancel a
    restore running on an event loop.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @classmethod
    def none(cls) -> CancellationToken:
        """Create a token that is never cancelled by its owner."""
        return cls()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError("The operation was cancelled")


@dataclass
class OperationResult:
    """Result of a validation, expansion or install operation.

    Attributes:
        installation_state: The library state the result relates to, if any.
        errors: Errors in the order they were found.
        cancelled: True if the operation stopped on cancellation.
        up_to_date: True if an install found every file already in place.
    """

    installation_state: LibraryInstallationState | None = None
    errors: list[LibraryError] = field(default_factory=list)
    cancelled: bool = False
    up_to_date: bool = False

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.cancelled and self.errors:
            raise ValueError("cancelled results cannot carry errors")
        if self.up_to_date and self.errors:
            raise ValueError("up_to_date results cannot carry errors")

    @property
    def success(self) -> bool:
        return not self.cancelled and not self.errors

    @classmethod
    def from_success(
        cls, state: LibraryInstallationState | None, up_to_date: bool = False
    ) -> OperationResult:
        return cls(installation_state=state, up_to_date=up_to_date)

    @classmethod
    def from_error(
        cls, error: LibraryError, state: LibraryInstallationState | None = None
    ) -> OperationResult:
        return cls(installation_state=state, errors=[error])

    @classmethod
    def from_errors(
        cls, errors: list[LibraryError], state: LibraryInstallationState | None = None
    ) -> OperationResult:
        return cls(installation_state=state, errors=list(errors))

    @classmethod
    def from_cancelled(cls, state: LibraryInstallationState | None = None) -> OperationResult:
        return cls(installation_state=state, cancelled=True)


@dataclass(frozen=True)
class ResolvedLibrary:
    """A library version as declared by a provider's catalog.

    Attributes:
        name: Library name.
        version: Library version (empty for unversioned providers).
        provider_id: Id of the provider that resolved it.
        files: Relative file path -> True if it is the library's default file.
    """

    name: str
    version: str
    provider_id: str
    files: Mapping[str, bool]


@dataclass
class FileConflict:
    """A destination file written by two or more libraries."""

    file: str
    libraries: list[LibraryInstallationState]


@dataclass(frozen=True)
class CompletionItem:
    """A single completion suggestion."""

    display_text: str
    insertion_text: str


@dataclass
class CompletionSet:
    """Completions for a span of a partially typed library id.

    Attributes:
        start: Offset of the span to replace.
        length: Length of the span to replace.
        completions: Ordered suggestions.
    """

    start: int = 0
    length: int = 0
    completions: list[CompletionItem] = field(default_factory=list)
