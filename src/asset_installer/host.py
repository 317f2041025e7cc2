"""Host interaction: working directory, cache directory and file writes."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from asset_installer.filesystem import RealFileSystem, is_under_root_directory
from asset_installer.logs import LogLevel, StandardLogger, safe_log
from asset_installer.protocols import ContentFactory, FileSystem, Logger
from asset_installer.types import CancellationToken

if TYPE_CHECKING:
    from asset_installer.manifest import LibraryInstallationState


class HostInteraction:
    """Default host used by the CLI and tests.

    Satisfies the HostInteraction protocol structurally.
    """

    def __init__(
        self,
        working_directory: Path,
        cache_directory: Path,
        logger: Logger | None = None,
        filesystem: FileSystem | None = None,
    ) -> None:
        self.working_directory = working_directory
        self.cache_directory = cache_directory
        self.logger: Logger = logger or StandardLogger()
        self.fs = filesystem or RealFileSystem()

    def resolve(self, path: str) -> Path:
        """Resolve a path relative to the working directory.

        Raises:
            ValueError: If the path escapes the working directory.
        """
        absolute = (self.working_directory / path).resolve()
        if not is_under_root_directory(absolute, self.working_directory.resolve()):
            raise ValueError(f"Path is outside the working directory: {path}")
        return absolute

    async def write_file(
        self,
        path: str,
        content: ContentFactory,
        requestor: LibraryInstallationState,
        token: CancellationToken,
    ) -> bool:
        """Write a file unless it already exists.

        Returns:
            True if the file exists afterwards, False if no content was produced.
        """
        token.raise_if_cancelled()

        absolute = self.resolve(path)
        if self.fs.exists(absolute):
            return True

        data = await content()
        if data is None:
            return False

        token.raise_if_cancelled()
        self.fs.safe_write_bytes(absolute, data)
        display_path = path.replace("\\", "/")
        safe_log(self.logger, f"{display_path} written to disk", LogLevel.OPERATION)
        return True
