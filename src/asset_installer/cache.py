"""On-disk cache of provider metadata and library files.

Layout::

    <cache_dir>/<provider>/catalog.json
    <cache_dir>/<provider>/<library>/metadata.json
    <cache_dir>/<provider>/<library>/<version>/<files...>

Library files are keyed by exact version and never change once written.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from pathlib import Path
from typing import Awaitable, Callable

from asset_installer.errors import ResourceDownloadError
from asset_installer.filesystem import (
    FileIdentity,
    RealFileSystem,
    are_files_up_to_date,
    is_under_root_directory,
)
from asset_installer.protocols import Downloader, FileSystem
from asset_installer.types import CancellationToken

logger = logging.getLogger(__name__)

# Default cache location
CACHE_DIR = Path.home() / ".asset-installer" / "cache"

CATALOG_FILE = "catalog.json"
METADATA_FILE = "metadata.json"


class CacheService:
    """Reads through an on-disk cache to the network.

    One instance is constructed per process run and passed explicitly to the
    providers that share it.
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        downloader: Downloader | None = None,
        filesystem: FileSystem | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Cache root. Defaults to ~/.asset-installer/cache.
            downloader: Downloader used for metadata fetches.
            filesystem: Filesystem abstraction.

        Note:
            Prefer using factory methods `create()` or `create_default()` for construction.
        """
        from asset_installer.downloader import HttpDownloader

        self.cache_dir = cache_dir or CACHE_DIR
        self.downloader = downloader or HttpDownloader()
        self.fs = filesystem or RealFileSystem()

    @classmethod
    def create(cls, cache_dir: Path, downloader: Downloader | None = None) -> CacheService:
        """Create a cache rooted at a custom directory."""
        return cls(cache_dir=cache_dir, downloader=downloader)

    @classmethod
    def create_default(cls) -> CacheService:
        """Create a cache rooted at ~/.asset-installer/cache."""
        return cls()

    def get_provider_directory(self, provider_id: str) -> Path:
        """Get the cache directory of a provider.

        Raises:
            ValueError: If the id would resolve outside the cache directory.
        """
        path = self.cache_dir / provider_id
        self._ensure_inside(path)
        return path

    def get_library_directory(self, provider_id: str, library_name: str, version: str = "") -> Path:
        """Get the cache directory of a library, or of one of its versions."""
        path = self.get_provider_directory(provider_id) / library_name
        if version:
            path = path / version
        self._ensure_inside(path)
        return path

    def get_cached_file(
        self, provider_id: str, library_name: str, version: str, file_name: str
    ) -> Path:
        path = self.get_library_directory(provider_id, library_name, version) / file_name
        self._ensure_inside(path)
        return path

    def is_cached(self, provider_id: str, library_name: str, version: str, file_name: str) -> bool:
        return self.fs.exists(self.get_cached_file(provider_id, library_name, version, file_name))

    async def get_or_fetch(
        self,
        provider_id: str,
        library_name: str,
        version: str,
        file_name: str,
        fetch: Callable[[], Awaitable[bytes]],
        expected: FileIdentity | None = None,
        token: CancellationToken | None = None,
    ) -> bytes:
        """Get a library file from the cache, fetching it when absent or stale.

        Args:
            provider_id: Provider id.
            library_name: Library name.
            version: Library version.
            file_name: File path relative to the library version.
            fetch: Coroutine factory downloading the file.
            expected: Identity the cached copy must be up to date with.
            token: Cancellation token.

        Returns:
            File content.

        Raises:
            ResourceDownloadError: If the file is not usable from the cache and
                the fetch fails. The previous cache entry is left untouched.
        """
        if token is not None:
            token.raise_if_cancelled()

        cached = self.get_cached_file(provider_id, library_name, version, file_name)
        if self.fs.exists(cached):
            if expected is None or are_files_up_to_date(FileIdentity.of(cached), expected):
                return self.fs.read_bytes(cached)
            logger.debug("Cached file %s is stale", cached)

        content = await fetch()
        self._store(cached, content)
        return content

    async def get_metadata(
        self,
        url: str,
        cache_file: Path,
        max_age: timedelta | None,
        token: CancellationToken | None = None,
    ) -> str:
        """Get a metadata document, refreshing the cached copy when it is too old.

        Args:
            url: Source URL.
            cache_file: Cache location of the document.
            max_age: Maximum age of the cached copy; None means it never expires.
            token: Cancellation token.

        Returns:
            Document text. A stale cached copy is returned when the download fails.
            Bytes that are not valid UTF-8 are replaced, so the document fails
            to parse instead of failing to decode.

        Raises:
            ResourceDownloadError: If the download fails and nothing is cached.
        """
        self._ensure_inside(cache_file)
        exists = self.fs.exists(cache_file)
        if exists and not self._is_expired(cache_file, max_age):
            return self.fs.read_bytes(cache_file).decode("utf-8", errors="replace")

        try:
            content = await self.downloader.get_bytes(url, token)
        except ResourceDownloadError:
            if exists:
                logger.info("Using cached copy of %s after download failure", url)
                return self.fs.read_bytes(cache_file).decode("utf-8", errors="replace")
            raise

        self._store(cache_file, content)
        return content.decode("utf-8", errors="replace")

    def list_cached_libraries(
        self, provider_id: str, include_files: bool = False
    ) -> dict[str, list[str]]:
        """List the libraries cached for a provider.

        Args:
            provider_id: Provider id.
            include_files: Include each library's cached files.

        Returns:
            Library name -> sorted relative file paths (empty unless include_files).
        """
        provider_dir = self.get_provider_directory(provider_id)
        if not provider_dir.is_dir():
            return {}

        libraries: dict[str, list[str]] = {}
        for library_dir in sorted(p for p in provider_dir.iterdir() if p.is_dir()):
            files: list[str] = []
            if include_files:
                files = sorted(
                    f.relative_to(library_dir).as_posix()
                    for f in library_dir.rglob("*")
                    if f.is_file()
                )
            libraries[library_dir.name] = files
        return libraries

    def clear(self, provider_id: str | None = None) -> bool:
        """Remove cached content for one provider, or the whole cache.

        Returns:
            True if something was removed, False if nothing was cached.

        Raises:
            ValueError: If the provider id resolves outside the cache directory.
        """
        target = self.get_provider_directory(provider_id) if provider_id else self.cache_dir
        if not self.fs.exists(target):
            return False
        self.fs.rmtree(target)
        return True

    def _store(self, path: Path, content: bytes) -> None:
        try:
            self.fs.safe_write_bytes(path, content)
        except OSError as e:
            # The content is still usable for this call.
            logger.warning("Could not write cache file %s: %s", path, e)

    def _is_expired(self, path: Path, max_age: timedelta | None) -> bool:
        if max_age is None:
            return False
        identity = FileIdentity.of(path)
        if identity is None:
            return True
        return time.time() - identity.modified > max_age.total_seconds()

    def _ensure_inside(self, path: Path) -> None:
        if not is_under_root_directory(path, self.cache_dir):
            raise ValueError(f"Path escapes the cache directory: {path}")
