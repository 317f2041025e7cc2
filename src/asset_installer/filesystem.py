"""Filesystem helpers for atomic writes, cleanup and path comparison.

`RealFileSystem` wraps standard library operations and satisfies the
FileSystem protocol. Every write goes to a temporary file in the
destination directory which is then moved into place, so concurrent readers
and writers never observe a partially written file.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileIdentity:
    """Name, size and last-write time of a file."""

    name: str
    size: int
    modified: float

    @classmethod
    def of(cls, path: Path) -> FileIdentity | None:
        """Read the identity of a file, or None if it does not exist."""
        try:
            stat = path.stat()
        except OSError:
            return None
        if not path.is_file():
            return None
        return cls(name=path.name, size=stat.st_size, modified=stat.st_mtime)


def are_files_up_to_date(first: FileIdentity | None, second: FileIdentity | None) -> bool:
    """Check whether `first` is an up-to-date copy of `second`.

    Both must exist, share a name (case-insensitively) and a size, and
    `first` must not be older than `second`.
    """
    if first is None or second is None:
        return False
    if first.name.lower() != second.name.lower():
        return False
    if first.size != second.size:
        return False
    return second.modified <= first.modified


def normalize_path(path: str | Path) -> str:
    """Normalize a path for comparison.

    Makes the path absolute, canonicalizes separators, trims trailing
    separators and folds case where the platform separator is a backslash.
    """
    text = str(path)
    if not text:
        return text
    normalized = os.path.normpath(os.path.abspath(text))
    if os.sep == "\\":
        normalized = normalized.lower()
    stripped = normalized.rstrip("\\/")
    return stripped or normalized


def is_under_root_directory(path: str | Path, root: str | Path) -> bool:
    """Check whether `path` is strictly inside `root`."""
    normalized_path = normalize_path(path)
    normalized_root = normalize_path(root)
    if len(normalized_path) <= len(normalized_root):
        return False
    return normalized_path.startswith(normalized_root.rstrip(os.sep) + os.sep)


class RealFileSystem:
    """Production filesystem implementation.

    Wraps standard library Path and shutil operations.
    Satisfies the FileSystem protocol structurally.
    """

    def read_bytes(self, path: Path) -> bytes:
        """Read a file."""
        return path.read_bytes()

    def exists(self, path: Path) -> bool:
        """Check if a path exists."""
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        return path.is_dir()

    def safe_write_bytes(self, path: Path, content: bytes) -> None:
        """Write content to a temporary file, then move it over `path`.

        Raises:
            OSError: If the file cannot be written or moved.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        moved = False
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            os.replace(temp_name, path)
            moved = True
        finally:
            if not moved:
                _remove_temp_file(temp_name)

    def unlink(self, path: Path) -> None:
        """Remove a file."""
        path.unlink()

    def rmtree(self, path: Path) -> None:
        """Remove a directory tree."""
        shutil.rmtree(path)


def _remove_temp_file(temp_name: str) -> None:
    try:
        os.remove(temp_name)
    except OSError as e:
        logger.debug("Could not clean up temporary file %s: %s", temp_name, e)


def delete_files(paths: Iterable[Path], root_directory: Path | None = None) -> bool:
    """Delete files and prune directories they leave empty.

    Args:
        paths: Absolute file paths to delete.
        root_directory: When given, only files strictly under it are deleted
            and empty parents are pruned up to (not including) it.

    Returns:
        True if every deletion succeeded.
    """
    directories: set[Path] = set()
    try:
        for path in paths:
            if root_directory is not None and not is_under_root_directory(path, root_directory):
                continue
            if path.is_file():
                path.unlink()
                if root_directory is not None:
                    directories.add(path.parent)
    except OSError as e:
        logger.warning("Failed to delete files: %s", e)
        return False

    if root_directory is not None:
        return _delete_empty_directories(directories, root_directory)
    return True


def _delete_empty_directories(directories: set[Path], root_directory: Path) -> bool:
    while directories:
        parents: set[Path] = set()
        for directory in directories:
            if not is_under_root_directory(directory, root_directory):
                continue
            try:
                if directory.is_dir() and not any(directory.iterdir()):
                    directory.rmdir()
                    parents.add(directory.parent)
            except OSError as e:
                logger.warning("Failed to remove directory %s: %s", directory, e)
                return False
        directories = parents
    return True
