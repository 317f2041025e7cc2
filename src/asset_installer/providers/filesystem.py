"""Local filesystem catalog and provider.

Library ids are paths (relative to the working directory, or absolute) or
``http(s)`` URLs. A file id provides one file; a directory id provides every
file beneath it.
"""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from asset_installer.errors import InvalidLibraryError
from asset_installer.filesystem import FileIdentity, RealFileSystem, are_files_up_to_date
from asset_installer.logs import LogLevel, safe_log
from asset_installer.naming import SimpleLibraryNamingScheme
from asset_installer.protocols import Downloader, FileSystem, HostInteraction
from asset_installer.providers.base import (
    MAX_COMPLETIONS,
    BaseCatalog,
    BaseLibraryGroup,
    BaseProvider,
)
from asset_installer.types import (
    CancellationToken,
    CompletionItem,
    CompletionSet,
    ResolvedLibrary,
)

if TYPE_CHECKING:
    from asset_installer.cache import CacheService
    from asset_installer.manifest import LibraryInstallationState

logger = logging.getLogger(__name__)

PROVIDER_ID = "filesystem"


def is_url(library_id: str) -> bool:
    return urlparse(library_id).scheme in ("http", "https")


class FileSystemLibraryGroup(BaseLibraryGroup):
    """A path or URL typed by the user; it has no versions."""

    pass


class FileSystemCatalog(BaseCatalog):
    """Catalog over local paths and URLs."""

    def __init__(self, provider: FileSystemProvider) -> None:
        super().__init__(provider.id, provider.naming_scheme)
        self.provider = provider

    async def search(
        self, term: str | None, max_hits: int, token: CancellationToken
    ) -> list[FileSystemLibraryGroup]:
        """Echo the term back as the only hit; an empty term finds nothing."""
        token.raise_if_cancelled()
        if not term or max_hits < 1:
            return []
        return [FileSystemLibraryGroup(display_name=term, catalog=self)]

    async def get_library(
        self, name: str, version: str, token: CancellationToken
    ) -> ResolvedLibrary:
        """Resolve a path or URL into the files it provides.

        Raises:
            InvalidLibraryError: If the path does not exist.
        """
        token.raise_if_cancelled()
        if is_url(name):
            file_name = posixpath.basename(urlparse(name).path)
            if not file_name:
                raise InvalidLibraryError(name, self.provider_id)
            files = [file_name]
        else:
            source = self.provider.resolve_source(name)
            if source.is_file():
                files = [source.name]
            elif source.is_dir():
                files = sorted(
                    p.relative_to(source).as_posix() for p in source.rglob("*") if p.is_file()
                )
            else:
                raise InvalidLibraryError(name, self.provider_id)

        return ResolvedLibrary(
            name=name,
            version="",
            provider_id=self.provider_id,
            files={f: len(files) == 1 for f in files},
        )

    async def get_library_versions(self, name: str, token: CancellationToken) -> list[str]:
        return []

    async def get_completion_set(
        self, value: str, caret_position: int, token: CancellationToken | None = None
    ) -> CompletionSet:
        """Complete directory entries for a partially typed path."""
        token = token or CancellationToken.none()
        token.raise_if_cancelled()
        value = value or ""
        if is_url(value):
            return CompletionSet(start=0, length=len(value))

        cut = max(value.rfind("/"), value.rfind("\\")) + 1
        prefix, partial = value[:cut], value[cut:].lower()
        directory = self.provider.resolve_source(prefix or ".")
        if not directory.is_dir():
            return CompletionSet(start=0, length=len(value))

        completions = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name.lower()):
            if not entry.name.lower().startswith(partial):
                continue
            display = entry.name + "/" if entry.is_dir() else entry.name
            completions.append(CompletionItem(display, prefix + display))
            if len(completions) >= MAX_COMPLETIONS:
                break
        return CompletionSet(start=0, length=len(value), completions=completions)


class FileSystemProvider(BaseProvider):
    """Copies files from local paths or single-file URLs.

    Unlike the remote providers, a destination file is replaced when it is
    not an up-to-date copy of its source.
    """

    id = PROVIDER_ID
    naming_scheme = SimpleLibraryNamingScheme()

    def __init__(
        self,
        host: HostInteraction,
        cache: CacheService,
        downloader: Downloader,
        filesystem: FileSystem | None = None,
    ) -> None:
        super().__init__(host, cache, downloader)
        self.fs = filesystem or RealFileSystem()

    def create_catalog(self) -> FileSystemCatalog:
        return FileSystemCatalog(self)

    def resolve_source(self, name: str) -> Path:
        """Resolve a library path against the working directory."""
        path = Path(os.path.expanduser(name))
        if not path.is_absolute():
            path = self.host.working_directory / path
        return path

    def get_source_file(self, name: str, file: str) -> Path:
        source = self.resolve_source(name)
        return source if source.is_file() else source / file

    async def get_file_content(
        self, name: str, version: str, file: str, token: CancellationToken
    ) -> bytes:
        token.raise_if_cancelled()
        if is_url(name):
            return await self.downloader.get_bytes(name, token)
        return self.fs.read_bytes(self.get_source_file(name, file))

    async def install_file(
        self,
        state: LibraryInstallationState,
        name: str,
        version: str,
        file: str,
        token: CancellationToken,
    ) -> bool:
        if is_url(name):
            return await super().install_file(state, name, version, file, token)

        destination = self.get_destination(state, file)
        target = self.resolve_destination(destination)
        source = self.get_source_file(name, file)
        if are_files_up_to_date(FileIdentity.of(target), FileIdentity.of(source)):
            logger.debug("%s is up to date", destination)
            return False

        token.raise_if_cancelled()
        self.fs.safe_write_bytes(target, self.fs.read_bytes(source))
        safe_log(self.host.logger, f"{destination} written to disk", LogLevel.OPERATION)
        return True
