"""Restorer: brings the working directory in line with a manifest.

Restore isolates failures per library. An entry that cannot be validated,
expanded or installed fails on its own; the other entries are still
installed. Entries that would write the same destination file all fail with
conflict errors and none of them is installed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from asset_installer import errors
from asset_installer.errors import OperationCancelledError
from asset_installer.filesystem import delete_files
from asset_installer.logs import LogLevel, safe_log
from asset_installer.types import CancellationToken, OperationResult
from asset_installer.validator import check_manifest, expand_library, get_file_conflicts

if TYPE_CHECKING:
    from asset_installer.context import Dependencies
    from asset_installer.manifest import LibraryInstallationState, Manifest

logger = logging.getLogger(__name__)


class Restorer:
    """Restores, cleans and uninstalls the libraries of a manifest."""

    def __init__(self, dependencies: Dependencies) -> None:
        """Initialize the restorer.

        Args:
            dependencies: Host, cache and providers to operate with.

        Note:
            Prefer using factory method `create()` for construction.
        """
        self.dependencies = dependencies

    @classmethod
    def create(cls, dependencies: Dependencies) -> Restorer:
        """Create a restorer over explicitly constructed dependencies."""
        return cls(dependencies)

    async def restore(
        self, manifest: Manifest | None, token: CancellationToken | None = None
    ) -> list[OperationResult]:
        """Install every library of a manifest.

        Args:
            manifest: Manifest to restore, or None if it failed to parse.
            token: Cancellation token.

        Returns:
            A single cancelled or configuration-error result, or one result
            per manifest entry in manifest order.
        """
        token = token or CancellationToken.none()
        if token.is_cancelled:
            return [OperationResult.from_cancelled()]

        if manifest is None:
            return [OperationResult.from_error(errors.manifest_malformed())]
        configuration_error = check_manifest(manifest)
        if configuration_error is not None:
            return [configuration_error]

        started = time.monotonic()
        try:
            results = await self._expand_all(manifest, token)
            self._apply_conflicts(results)
            token.raise_if_cancelled()
        except OperationCancelledError:
            return [OperationResult.from_cancelled()]

        pending = [
            (index, result.installation_state)
            for index, result in enumerate(results)
            if result.success and result.installation_state is not None
        ]
        installed = await asyncio.gather(
            *(self._install(state, token) for _, state in pending)
        )
        for (index, _), result in zip(pending, installed):
            results[index] = result

        self._log_summary(results, time.monotonic() - started)
        return results

    async def clean(
        self, manifest: Manifest | None, token: CancellationToken | None = None
    ) -> list[OperationResult]:
        """Delete the files of every library of a manifest.

        Returns:
            A single cancelled or configuration-error result, or one result
            per manifest entry in manifest order.
        """
        token = token or CancellationToken.none()
        if token.is_cancelled:
            return [OperationResult.from_cancelled()]

        if manifest is None:
            return [OperationResult.from_error(errors.manifest_malformed())]
        configuration_error = check_manifest(manifest)
        if configuration_error is not None:
            return [configuration_error]

        try:
            expanded = await self._expand_all(manifest, token)
        except OperationCancelledError:
            return [OperationResult.from_cancelled()]

        results = []
        for result in expanded:
            if result.success and result.installation_state is not None:
                result = self._delete_library_files(result.installation_state)
            results.append(result)
        return results

    async def uninstall(
        self,
        manifest: Manifest,
        library_id: str,
        token: CancellationToken | None = None,
    ) -> OperationResult:
        """Delete one library's files and remove it from the manifest.

        The manifest is modified in memory; callers save it.

        Returns:
            Result of the deletion. On failure the manifest is unchanged.
        """
        token = token or CancellationToken.none()
        if token.is_cancelled:
            return OperationResult.from_cancelled()

        state = manifest.get_library(library_id)
        if state is None:
            provider_id = manifest.default_provider or ""
            return OperationResult.from_error(
                errors.unable_to_resolve_source(library_id, provider_id)
            )

        expanded = await expand_library(
            state,
            self.dependencies,
            manifest.default_destination,
            manifest.default_provider,
            token,
        )
        if not expanded.success or expanded.installation_state is None:
            return expanded

        result = self._delete_library_files(expanded.installation_state)
        if result.success:
            manifest.remove_library(library_id)
            safe_log(self.dependencies.host.logger, f"{library_id} uninstalled", LogLevel.OPERATION)
        return result

    async def _expand_all(
        self, manifest: Manifest, token: CancellationToken
    ) -> list[OperationResult]:
        results: list[OperationResult] = []
        for library in manifest.libraries:
            token.raise_if_cancelled()
            found = library.is_valid()
            if found:
                results.append(OperationResult.from_errors(found, library))
                continue
            results.append(
                await expand_library(
                    library,
                    self.dependencies,
                    manifest.default_destination,
                    manifest.default_provider,
                    token,
                )
            )
        return results

    def _apply_conflicts(self, results: list[OperationResult]) -> None:
        """Fail every successfully expanded entry that shares a destination file."""
        expanded = [
            r.installation_state
            for r in results
            if r.success and r.installation_state is not None
        ]
        conflict_errors: dict[int, list[errors.LibraryError]] = {}
        for conflict in get_file_conflicts(expanded):
            error = errors.conflicting_libraries_in_manifest(
                conflict.file, [library.library_id for library in conflict.libraries]
            )
            for library in conflict.libraries:
                conflict_errors.setdefault(id(library), []).append(error)

        for index, result in enumerate(results):
            state = result.installation_state
            if result.success and state is not None and id(state) in conflict_errors:
                results[index] = OperationResult.from_errors(conflict_errors[id(state)], state)

    async def _install(
        self, state: LibraryInstallationState, token: CancellationToken
    ) -> OperationResult:
        provider = self.dependencies.get_provider(state.provider_id)
        if provider is None:
            return OperationResult.from_error(errors.provider_is_undefined(state.provider_id), state)
        return await provider.install(state, token)

    def _delete_library_files(self, state: LibraryInstallationState) -> OperationResult:
        host = self.dependencies.host
        root = host.working_directory.resolve()
        destination = (state.destination_path or "").replace("\\", "/")
        paths = [(root / destination / file).resolve() for file in state.files or []]
        if not delete_files(paths, root):
            return OperationResult.from_error(errors.could_not_write_file(destination), state)
        safe_log(host.logger, f"{state.library_id} files deleted", LogLevel.STATUS)
        return OperationResult.from_success(state)

    def _log_summary(self, results: list[OperationResult], elapsed: float) -> None:
        succeeded = sum(1 for r in results if r.success)
        up_to_date = sum(1 for r in results if r.up_to_date)
        failed = len(results) - succeeded
        message = (
            f"Restore completed in {elapsed:.2f}s: {succeeded} succeeded "
            f"({up_to_date} up to date), {failed} failed"
        )
        logger.debug("Restored %d of %d libraries", succeeded, len(results))
        safe_log(self.dependencies.host.logger, message, LogLevel.TASK)
