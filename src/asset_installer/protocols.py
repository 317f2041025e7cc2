"""Protocol definitions for core abstractions.

This module defines abstract interfaces (Protocols) for the restore engine.
Designing to interfaces enables:
- Any number of asset sources behind one provider contract
- Easy substitution of test doubles
- Clear contracts for hosts (CLI, editors) that embed the engine

All concrete implementations satisfy these protocols structurally (duck typing).
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from asset_installer.logs import LogLevel
    from asset_installer.manifest import LibraryInstallationState
    from asset_installer.types import (
        CancellationToken,
        CompletionSet,
        OperationResult,
        ResolvedLibrary,
    )


ContentFactory = Callable[[], Awaitable["bytes | None"]]


@runtime_checkable
class Logger(Protocol):
    """Protocol for host log sinks."""

    def log(self, message: str, level: LogLevel) -> None:
        """Record a message.

        Args:
            message: Text to record.
            level: Severity or destination of the message.
        """
        ...


@runtime_checkable
class NamingScheme(Protocol):
    """Protocol for converting between library ids and (name, version)."""

    separator: str
    expected_format: str

    def separator_index(self, library_id: str) -> int:
        """Get the index of the name/version separator, or -1."""
        ...

    def parse(self, library_id: str) -> tuple[str, str]:
        """Split a library id into (name, version).

        Raises:
            MalformedLibraryIdError: If the id is not well formed.
        """
        ...

    def build(self, name: str, version: str) -> str:
        """Join a name and version into a library id."""
        ...


@runtime_checkable
class Downloader(Protocol):
    """Protocol for fetching remote resources."""

    async def get_bytes(self, url: str, token: CancellationToken | None = None) -> bytes:
        """Download a resource.

        Raises:
            ResourceDownloadError: If the resource cannot be fetched.
        """
        ...


@runtime_checkable
class HostInteraction(Protocol):
    """Protocol for the host embedding the engine.

    Implementations own the working directory, cache directory and log sink,
    and provide the file-write primitive used by installs.
    """

    working_directory: Path
    cache_directory: Path
    logger: Logger

    async def write_file(
        self,
        path: str,
        content: ContentFactory,
        requestor: LibraryInstallationState,
        token: CancellationToken,
    ) -> bool:
        """Write a file relative to the working directory.

        Existing files are left untouched.

        Args:
            path: Destination relative to the working directory.
            content: Coroutine factory producing the bytes to write.
            requestor: Library the file belongs to.
            token: Cancellation token.

        Returns:
            True if the file exists afterwards, False if no content was produced.
        """
        ...


@runtime_checkable
class LibraryGroup(Protocol):
    """Protocol for a search hit: one library with all its versions."""

    display_name: str
    description: str

    async def get_library_versions(self, token: CancellationToken) -> list[str]:
        """Get versions, newest first."""
        ...

    async def get_library_ids(self, token: CancellationToken) -> list[str]:
        """Get library ids for every version, newest first."""
        ...


@runtime_checkable
class Catalog(Protocol):
    """Protocol for a provider's search and version-resolution service."""

    async def search(
        self, term: str | None, max_hits: int, token: CancellationToken
    ) -> list[LibraryGroup]:
        """Search libraries by name.

        Args:
            term: Search text; empty or None returns the default set.
            max_hits: Maximum number of groups to return.
            token: Cancellation token.

        Returns:
            Groups sorted by name; empty if nothing matches.
        """
        ...

    async def get_library(
        self, name: str, version: str, token: CancellationToken
    ) -> ResolvedLibrary:
        """Resolve a library version.

        Raises:
            InvalidLibraryError: If the name or version is unknown.
        """
        ...

    async def get_library_versions(self, name: str, token: CancellationToken) -> list[str]:
        """Get versions of a library, newest first."""
        ...

    async def get_latest_version(
        self, name: str, include_prerelease: bool, token: CancellationToken
    ) -> str | None:
        """Get the highest version, or None if there is no candidate."""
        ...

    async def get_completion_set(
        self, value: str, caret_position: int, token: CancellationToken
    ) -> CompletionSet:
        """Get completions for a partially typed library id."""
        ...


@runtime_checkable
class Provider(Protocol):
    """Protocol for asset sources.

    Implementations bind a catalog and naming scheme to expansion and
    installation behavior for one source.
    """

    id: str
    naming_scheme: NamingScheme

    def get_catalog(self) -> Catalog:
        """Get the provider's catalog."""
        ...

    async def update_state(
        self, state: LibraryInstallationState, token: CancellationToken
    ) -> OperationResult:
        """Expand a desired state with the catalog's file list.

        Returns:
            Result whose installation_state is the expanded state.
        """
        ...

    async def install(
        self, state: LibraryInstallationState, token: CancellationToken
    ) -> OperationResult:
        """Install a library's files under its destination."""
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for filesystem operations.

    Abstracts filesystem access to enable testing without real I/O.
    """

    def read_bytes(self, path: Path) -> bytes:
        """Read a file.

        Raises:
            FileNotFoundError: If file does not exist.
        """
        ...

    def exists(self, path: Path) -> bool:
        """Check if a path exists."""
        ...

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        ...

    def safe_write_bytes(self, path: Path, content: bytes) -> None:
        """Write a file through a temporary file moved into place."""
        ...

    def unlink(self, path: Path) -> None:
        """Remove a file."""
        ...

    def rmtree(self, path: Path) -> None:
        """Remove a directory tree."""
        ...
