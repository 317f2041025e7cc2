"""Manifest validation and inter-library file conflict detection.

Validation runs in three stages. Property validation and expansion stop at
the first failing library; conflict detection reports every conflicting
file in a single result.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from asset_installer import errors
from asset_installer.errors import OperationCancelledError
from asset_installer.filesystem import normalize_path
from asset_installer.types import CancellationToken, FileConflict, OperationResult

if TYPE_CHECKING:
    from asset_installer.context import Dependencies
    from asset_installer.manifest import LibraryInstallationState, Manifest

logger = logging.getLogger(__name__)


async def validate_manifest(
    manifest: Manifest | None,
    dependencies: Dependencies,
    token: CancellationToken | None = None,
) -> list[OperationResult]:
    """Validate a manifest and its libraries.

    Args:
        manifest: Manifest to validate, or None if it failed to parse.
        dependencies: Providers used for expansion.
        token: Cancellation token.

    Returns:
        A single ManifestMalformed or VersionIsNotSupported result when the
        manifest itself is unusable, otherwise the library validation results.
    """
    token = token or CancellationToken.none()
    if token.is_cancelled:
        return [OperationResult.from_cancelled()]

    if manifest is None:
        return [OperationResult.from_error(errors.manifest_malformed())]
    configuration_error = check_manifest(manifest)
    if configuration_error is not None:
        return [configuration_error]

    return await validate_libraries(
        manifest.libraries,
        dependencies,
        manifest.default_destination,
        manifest.default_provider,
        token,
    )


def check_manifest(manifest: Manifest) -> OperationResult | None:
    """Check that a manifest declares a supported version.

    Returns:
        The failing result, or None if the manifest is usable.
    """
    if not manifest.is_version_supported:
        return OperationResult.from_error(errors.version_is_not_supported(manifest.version))
    return None


async def validate_libraries(
    libraries: Iterable[LibraryInstallationState],
    dependencies: Dependencies,
    default_destination: str | None,
    default_provider: str | None,
    token: CancellationToken | None = None,
) -> list[OperationResult]:
    """Validate a set of libraries.

    Returns:
        The first failing property or expansion result, or a single result
        carrying every file conflict, or a single success.
    """
    token = token or CancellationToken.none()
    libraries = list(libraries)
    try:
        token.raise_if_cancelled()
        for library in libraries:
            token.raise_if_cancelled()
            found = library.is_valid()
            if found:
                return [OperationResult.from_errors(found, library)]

        expanded: list[LibraryInstallationState] = []
        for library in libraries:
            token.raise_if_cancelled()
            result = await expand_library(
                library, dependencies, default_destination, default_provider, token
            )
            if not result.success or result.installation_state is None:
                return [result]
            expanded.append(result.installation_state)

        token.raise_if_cancelled()
    except OperationCancelledError:
        return [OperationResult.from_cancelled()]

    return [get_conflict_errors(get_file_conflicts(expanded))]


async def expand_library(
    library: LibraryInstallationState,
    dependencies: Dependencies,
    default_destination: str | None,
    default_provider: str | None,
    token: CancellationToken,
) -> OperationResult:
    """Apply manifest defaults and expand a library through its provider.

    Returns:
        ProviderIsUndefined when no provider is registered under the id,
        PathIsUndefined when no destination is set, otherwise the provider's
        update_state result.
    """
    state = library.with_defaults(default_provider, default_destination)
    provider = dependencies.get_provider(state.provider_id)
    if provider is None:
        return OperationResult.from_error(errors.provider_is_undefined(state.provider_id), state)
    if not state.destination_path:
        return OperationResult.from_error(errors.path_is_undefined(), state)
    return await provider.update_state(state, token)


@dataclass
class _FileEntry:
    path: str
    libraries: list[LibraryInstallationState]


def get_file_conflicts(libraries: Iterable[LibraryInstallationState]) -> list[FileConflict]:
    """Find destination files written by more than one library.

    Paths are compared after normalization, so ``lib/a.js``, ``lib\\a.js``
    and ``./lib/a.js`` name the same file.

    Returns:
        One conflict per shared file, in first-seen order.
    """
    file_map: dict[str, _FileEntry] = {}
    for library in libraries:
        destination = library.destination_path or ""
        for file in library.files or []:
            path = os.path.join(destination, file)
            key = normalize_path(path.replace("\\", "/"))
            entry = file_map.setdefault(key, _FileEntry(path, []))
            # A library listing a file twice is still one contributor
            if not any(existing is library for existing in entry.libraries):
                entry.libraries.append(library)

    return [
        FileConflict(file=entry.path, libraries=entry.libraries)
        for entry in file_map.values()
        if len(entry.libraries) > 1
    ]


def get_conflict_errors(conflicts: Iterable[FileConflict]) -> OperationResult:
    """Aggregate conflicts into one result, or a success when there are none."""
    found = [
        errors.conflicting_libraries_in_manifest(
            conflict.file, [library.library_id for library in conflict.libraries]
        )
        for conflict in conflicts
    ]
    if found:
        logger.debug("Found %d conflicting files", len(found))
        return OperationResult.from_errors(found)
    return OperationResult.from_success(None)
