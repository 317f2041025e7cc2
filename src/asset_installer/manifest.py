"""Manifest of desired libraries and its JSON persistence."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from asset_installer import errors
from asset_installer.errors import LibraryError

logger = logging.getLogger(__name__)

# Default manifest file name in the working directory
MANIFEST_FILE = "assets.json"

SUPPORTED_VERSIONS = ("1.0",)
DEFAULT_VERSION = SUPPORTED_VERSIONS[-1]

# Characters never valid in a destination or file path
INVALID_PATH_CHARACTERS = frozenset('<>"|?*\0')


class LibraryInstallationState(BaseModel):
    """The desired state of one library in a manifest.

    Values are immutable; expansion produces new states with `model_copy`.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    library_id: str = Field(default="", alias="library")
    provider_id: str | None = Field(default=None, alias="provider")
    destination_path: str | None = Field(default=None, alias="destination")
    files: list[str] | None = None

    def is_valid(self) -> list[LibraryError]:
        """Validate the entry's own properties.

        Returns:
            Errors found (empty if valid).
        """
        if not self.library_id or not self.library_id.strip():
            return [errors.library_id_is_undefined()]

        found: list[LibraryError] = []
        if self.destination_path is not None and _has_invalid_characters(self.destination_path):
            found.append(errors.destination_has_invalid_characters(self.destination_path))
        for file in self.files or []:
            if not file or _has_invalid_characters(file):
                found.append(errors.destination_has_invalid_characters(file))
        return found

    def with_defaults(
        self, default_provider: str | None, default_destination: str | None
    ) -> LibraryInstallationState:
        """Fill an unset provider and destination from manifest defaults."""
        return self.model_copy(
            update={
                "provider_id": self.provider_id or default_provider,
                "destination_path": self.destination_path or default_destination,
            }
        )


def _has_invalid_characters(path: str) -> bool:
    return any(c in INVALID_PATH_CHARACTERS for c in path)


class Manifest(BaseModel):
    """Manifest from assets.json."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = DEFAULT_VERSION
    default_provider: str | None = Field(default=None, alias="defaultProvider")
    default_destination: str | None = Field(default=None, alias="defaultDestination")
    libraries: list[LibraryInstallationState] = Field(default_factory=list)

    @property
    def is_version_supported(self) -> bool:
        return (self.version or "").strip() in SUPPORTED_VERSIONS

    @classmethod
    def from_json(cls, text: str | None) -> Manifest | None:
        """Parse a manifest document.

        Returns:
            The manifest, or None if the text is not a valid manifest.
        """
        if not text or not text.strip():
            return None
        try:
            data = json.loads(text)
            return cls.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.debug("Malformed manifest: %s", e)
            return None

    @classmethod
    def from_file(cls, path: Path) -> Manifest | None:
        """Load a manifest from disk.

        A missing file yields an empty manifest at the default version.

        Returns:
            The manifest, or None if the file is malformed.
        """
        if not path.exists():
            return cls()
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.debug("Manifest %s is not UTF-8: %s", path, e)
            return None
        return cls.from_json(text)

    def to_json(self) -> str:
        data = self.model_dump(by_alias=True, exclude_none=True)
        return json.dumps(data, indent=2)

    def save(self, path: Path) -> None:
        """Save the manifest to disk."""
        from asset_installer.filesystem import RealFileSystem

        RealFileSystem().safe_write_bytes(path, (self.to_json() + "\n").encode("utf-8"))

    def add_library(self, state: LibraryInstallationState) -> None:
        """Add a library, replacing an entry with the same id and provider."""
        self.libraries = [
            s
            for s in self.libraries
            if not (s.library_id == state.library_id and s.provider_id == state.provider_id)
        ]
        self.libraries.append(state)

    def remove_library(self, library_id: str) -> bool:
        """Remove every entry with the given id.

        Returns:
            True if removed, False if not found.
        """
        original_count = len(self.libraries)
        self.libraries = [s for s in self.libraries if s.library_id != library_id]
        return len(self.libraries) < original_count

    def get_library(self, library_id: str) -> LibraryInstallationState | None:
        for state in self.libraries:
            if state.library_id == library_id:
                return state
        return None
