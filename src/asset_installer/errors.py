"""Structured errors and exceptions used by the restore engine.

Expected failures travel as `LibraryError` values inside an
`OperationResult`. The exceptions below are raised inside the core and
translated into those values at provider, validator and restorer boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class LibraryError:
    """A single error reported by an operation.

    Attributes:
        code: Stable error code (e.g. LIB007).
        message: Human-readable message.
        args: Positional values the message was formatted with.
    """

    code: str
    message: str
    args: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class InstallerError(Exception):
    """Base class for errors raised inside the restore engine."""

    pass


class InvalidLibraryError(InstallerError):
    """A library name or version is unknown to a catalog."""

    def __init__(self, library_id: str, provider_id: str) -> None:
        super().__init__(f"Library '{library_id}' could not be resolved by '{provider_id}'")
        self.library_id = library_id
        self.provider_id = provider_id


class MalformedLibraryIdError(InstallerError):
    """A library identifier does not follow the provider's naming scheme."""

    def __init__(self, library_id: str, expected_format: str) -> None:
        super().__init__(
            f"Library id '{library_id}' is malformed, expected '{expected_format}'"
        )
        self.library_id = library_id
        self.expected_format = expected_format


class ResourceDownloadError(InstallerError):
    """A network resource could not be downloaded."""

    def __init__(self, url: str, reason: str = "") -> None:
        message = f"Unable to download '{url}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.url = url


class OperationCancelledError(InstallerError):
    """The operation's cancellation token was triggered."""

    pass


def _error(code: str, message: str, *args: str) -> LibraryError:
    return LibraryError(code=code, message=message, args=tuple(args))


def unknown_error() -> LibraryError:
    return _error("LIB000", "An unknown error occurred")


def provider_unknown(provider_id: str) -> LibraryError:
    return _error("LIB001", f"Cannot find the provider '{provider_id}'", provider_id)


def unable_to_resolve_source(library_id: str, provider_id: str) -> LibraryError:
    return _error(
        "LIB002",
        f"The '{library_id}' library could not be resolved by the '{provider_id}' provider",
        library_id,
        provider_id,
    )


def could_not_write_file(file: str) -> LibraryError:
    return _error("LIB003", f"Could not write file '{file}'", file)


def manifest_malformed() -> LibraryError:
    return _error("LIB004", "The manifest file contains syntax errors")


def path_is_undefined() -> LibraryError:
    return _error("LIB005", "The 'destination' property is undefined")


def library_id_is_undefined() -> LibraryError:
    return _error("LIB006", "The 'library' property is undefined")


def provider_is_undefined(provider_id: str | None = None) -> LibraryError:
    if provider_id:
        return _error(
            "LIB007", f"The provider '{provider_id}' is not registered", provider_id
        )
    return _error("LIB007", "The 'provider' property is undefined")


def invalid_files_in_library(
    library_id: str, invalid_files: Iterable[str], valid_files: Iterable[str]
) -> LibraryError:
    invalid = ", ".join(invalid_files)
    valid = ", ".join(valid_files)
    return _error(
        "LIB008",
        f"The '{library_id}' library does not contain the files: {invalid}. "
        f"Valid files are: {valid}",
        library_id,
        invalid,
        valid,
    )


def version_is_not_supported(version: str | None) -> LibraryError:
    shown = version or ""
    return _error(
        "LIB009", f"The manifest version '{shown}' is not supported", shown
    )


def path_outside_working_directory(path: str) -> LibraryError:
    return _error(
        "LIB010", f"The path '{path}' is outside the working directory", path
    )


def conflicting_libraries_in_manifest(file: str, library_ids: list[str]) -> LibraryError:
    libraries = ", ".join(library_ids)
    return _error(
        "LIB011",
        f"Conflicting file '{file}' found in more than one library: {libraries}",
        file,
        libraries,
    )


def unable_to_download_file(url: str) -> LibraryError:
    return _error("LIB012", f"Unable to download '{url}'", url)


def destination_has_invalid_characters(path: str) -> LibraryError:
    return _error(
        "LIB013", f"The destination path '{path}' contains invalid characters", path
    )


def invalid_library_id(library_id: str, expected_format: str) -> LibraryError:
    return _error(
        "LIB014",
        f"The library id '{library_id}' is not valid, expected '{expected_format}'",
        library_id,
        expected_format,
    )
