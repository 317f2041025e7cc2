"""Base catalog and provider implementations with shared behavior.

All providers share the same expansion and installation algorithm; they
vary in how a catalog resolves libraries and where file content comes from.

Pattern: Template Method - base classes define the algorithm skeleton,
subclasses provide specific steps.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from asset_installer import errors
from asset_installer.errors import (
    InvalidLibraryError,
    LibraryError,
    MalformedLibraryIdError,
    OperationCancelledError,
    ResourceDownloadError,
)
from asset_installer.filesystem import is_under_root_directory
from asset_installer.logs import LogLevel, safe_log
from asset_installer.protocols import Downloader, HostInteraction, NamingScheme
from asset_installer.semver import latest_version
from asset_installer.types import (
    CancellationToken,
    CompletionItem,
    CompletionSet,
    OperationResult,
    ResolvedLibrary,
)

if TYPE_CHECKING:
    from asset_installer.cache import CacheService
    from asset_installer.manifest import LibraryInstallationState

logger = logging.getLogger(__name__)

# Maximum number of name completions offered for a partial library id
MAX_COMPLETIONS = 50


class BaseLibraryGroup:
    """A search hit whose versions are resolved lazily through its catalog."""

    def __init__(
        self,
        display_name: str,
        catalog: BaseCatalog,
        description: str = "",
        version: str = "",
    ) -> None:
        self.display_name = display_name
        self.description = description
        self.version = version
        self._catalog = catalog

    async def get_library_versions(self, token: CancellationToken) -> list[str]:
        return await self._catalog.get_library_versions(self.display_name, token)

    async def get_library_ids(self, token: CancellationToken) -> list[str]:
        versions = await self.get_library_versions(token)
        scheme = self._catalog.naming_scheme
        if not versions:
            return [self.display_name]
        return [scheme.build(self.display_name, v) for v in versions]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.display_name!r})"


class BaseCatalog(ABC):
    """Base class for catalogs.

    Subclasses implement search, resolution and version listing; latest
    version and completion are derived from those.
    """

    def __init__(self, provider_id: str, naming_scheme: NamingScheme) -> None:
        self.provider_id = provider_id
        self.naming_scheme = naming_scheme

    @abstractmethod
    async def search(
        self, term: str | None, max_hits: int, token: CancellationToken
    ) -> list[BaseLibraryGroup]:
        """Search libraries by name."""
        ...

    @abstractmethod
    async def get_library(
        self, name: str, version: str, token: CancellationToken
    ) -> ResolvedLibrary:
        """Resolve a library version."""
        ...

    @abstractmethod
    async def get_library_versions(self, name: str, token: CancellationToken) -> list[str]:
        """Get versions of a library, newest first."""
        ...

    async def get_latest_version(
        self, name: str, include_prerelease: bool, token: CancellationToken
    ) -> str | None:
        """Get the highest version of a library.

        Prerelease versions are not candidates unless include_prerelease is set.

        Returns:
            The version, or None when the library has no candidate version.
        """
        versions = await self.get_library_versions(name, token)
        return latest_version(versions, include_prerelease)

    def get_name_insertion_text(self, group: BaseLibraryGroup) -> str:
        """Text inserted when a name completion is accepted.

        Groups that carry a current version insert a complete library id.
        """
        if group.version:
            return self.naming_scheme.build(group.display_name, group.version)
        return group.display_name

    async def get_completion_set(
        self, value: str, caret_position: int, token: CancellationToken | None = None
    ) -> CompletionSet:
        """Get completions for a partially typed library id.

        Template Method: the caret position selects name completions (from
        `search`) or version completions (from `get_library_versions`).

        Args:
            value: Text typed so far.
            caret_position: Caret offset within value.
            token: Cancellation token.

        Returns:
            The span of value to replace and the ordered completions.
        """
        token = token or CancellationToken.none()
        value = value or ""
        index = self.naming_scheme.separator_index(value)

        if index == -1 or caret_position <= index:
            name = value if index == -1 else value[:index]
            groups = await self.search(name, MAX_COMPLETIONS, token)
            completions = [
                CompletionItem(g.display_name, self.get_name_insertion_text(g)) for g in groups
            ]
            return CompletionSet(start=0, length=len(name), completions=completions)

        name = value[:index]
        start = index + len(self.naming_scheme.separator)
        versions = await self.get_library_versions(name, token)
        completions = [CompletionItem(v, self.naming_scheme.build(name, v)) for v in versions]
        return CompletionSet(start=start, length=len(value) - start, completions=completions)


class BaseProvider(ABC):
    """Base class for providers.

    Implements expansion (`update_state`) and installation (`install`) in
    terms of the catalog. Subclasses supply the catalog and file content.
    """

    id: str
    naming_scheme: NamingScheme

    def __init__(
        self,
        host: HostInteraction,
        cache: CacheService,
        downloader: Downloader,
    ) -> None:
        self.host = host
        self.cache = cache
        self.downloader = downloader
        self._catalog: BaseCatalog | None = None

    def get_catalog(self) -> BaseCatalog:
        if self._catalog is None:
            self._catalog = self.create_catalog()
        return self._catalog

    @abstractmethod
    def create_catalog(self) -> BaseCatalog:
        """Create this provider's catalog."""
        ...

    @abstractmethod
    async def get_file_content(
        self, name: str, version: str, file: str, token: CancellationToken
    ) -> bytes:
        """Get the content of one library file.

        Raises:
            ResourceDownloadError: If the content cannot be fetched.
        """
        ...

    async def update_state(
        self, state: LibraryInstallationState, token: CancellationToken
    ) -> OperationResult:
        """Expand a desired state with the catalog's file list.

        An absent file list becomes every file the library declares; a given
        list must only name files the library provides.
        """
        try:
            token.raise_if_cancelled()
            name, version = self.naming_scheme.parse(state.library_id)
            library = await self.get_catalog().get_library(name, version, token)
        except OperationCancelledError:
            return OperationResult.from_cancelled(state)
        except MalformedLibraryIdError as e:
            return OperationResult.from_error(
                errors.invalid_library_id(e.library_id, e.expected_format), state
            )
        except (InvalidLibraryError, ResourceDownloadError) as e:
            logger.debug("Could not resolve %s: %s", state.library_id, e)
            return OperationResult.from_error(
                errors.unable_to_resolve_source(state.library_id, self.id), state
            )

        available = sorted(library.files)
        if state.files is None:
            files = available
        else:
            invalid = [f for f in state.files if f not in library.files]
            if invalid:
                return OperationResult.from_error(
                    errors.invalid_files_in_library(state.library_id, invalid, available),
                    state,
                )
            files = list(dict.fromkeys(state.files))

        expanded = state.model_copy(update={"files": files, "provider_id": self.id})
        return OperationResult.from_success(expanded)

    async def install(
        self, state: LibraryInstallationState, token: CancellationToken
    ) -> OperationResult:
        """Install a library's files under its destination.

        Files already present at the destination are left untouched. Files
        are fetched concurrently; each failure is reported without stopping
        the others.
        """
        try:
            token.raise_if_cancelled()

            expanded = await self.update_state(state, token)
            if not expanded.success or expanded.installation_state is None:
                return expanded
            state = expanded.installation_state

            if not state.destination_path:
                return OperationResult.from_error(errors.path_is_undefined(), state)

            name, version = self.naming_scheme.parse(state.library_id)
            outcomes = await asyncio.gather(
                *(self._install_file_safe(state, name, version, f, token) for f in state.files or [])
            )
        except OperationCancelledError:
            return OperationResult.from_cancelled(state)
        except Exception as e:
            logger.exception("Installation failed for %s", state.library_id)
            safe_log(self.host.logger, f"{state.library_id}: {e}", LogLevel.ERROR)
            return OperationResult.from_error(errors.unknown_error(), state)

        failures = [error for _, error in outcomes if error is not None]
        if failures:
            return OperationResult.from_errors(failures, state)

        written = sum(1 for was_written, _ in outcomes if was_written)
        if written:
            safe_log(
                self.host.logger,
                f"{state.library_id} restored ({written} files)",
                LogLevel.OPERATION,
            )
        return OperationResult.from_success(state, up_to_date=written == 0)

    def get_destination(self, state: LibraryInstallationState, file: str) -> str:
        """Get the destination of a file relative to the working directory."""
        return posixpath.join((state.destination_path or "").replace("\\", "/"), file)

    def resolve_destination(self, destination: str) -> Path:
        """Resolve a relative destination inside the working directory.

        Raises:
            ValueError: If the destination escapes the working directory.
        """
        root = self.host.working_directory.resolve()
        absolute = (root / destination).resolve()
        if not is_under_root_directory(absolute, root):
            raise ValueError(f"Path is outside the working directory: {destination}")
        return absolute

    async def install_file(
        self,
        state: LibraryInstallationState,
        name: str,
        version: str,
        file: str,
        token: CancellationToken,
    ) -> bool:
        """Install one file through the host's write primitive.

        Returns:
            True if the file was written, False if it already existed.

        Raises:
            OSError: If the host could not write the file.
        """
        destination = self.get_destination(state, file)
        if self.resolve_destination(destination).exists():
            return False

        async def content() -> bytes:
            return await self.get_file_content(name, version, file, token)

        if not await self.host.write_file(destination, content, state, token):
            raise OSError(f"No content produced for {destination}")
        return True

    async def _install_file_safe(
        self,
        state: LibraryInstallationState,
        name: str,
        version: str,
        file: str,
        token: CancellationToken,
    ) -> tuple[bool, LibraryError | None]:
        destination = self.get_destination(state, file)
        try:
            return await self.install_file(state, name, version, file, token), None
        except ResourceDownloadError as e:
            logger.warning("Download failed for %s: %s", destination, e)
            return False, errors.unable_to_download_file(e.url)
        except ValueError:
            return False, errors.path_outside_working_directory(destination)
        except OSError as e:
            logger.warning("Could not write %s: %s", destination, e)
            return False, errors.could_not_write_file(destination)


class RemoteProvider(BaseProvider):
    """Provider whose files are downloaded from a URL template and cached.

    Subclasses set `file_url` with ``{name}``, ``{version}`` and ``{file}``
    placeholders.
    """

    file_url: str

    def get_download_url(self, name: str, version: str, file: str) -> str:
        return self.file_url.format(name=name, version=version, file=file)

    async def get_file_content(
        self, name: str, version: str, file: str, token: CancellationToken
    ) -> bytes:
        url = self.get_download_url(name, version, file)
        return await self.cache.get_or_fetch(
            self.id,
            name,
            version,
            file,
            lambda: self.downloader.get_bytes(url, token),
            token=token,
        )
