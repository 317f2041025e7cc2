"""Library identifier naming schemes.

Each provider selects one scheme. Schemes are stateless: `build(*parse(x))`
returns `x` for every well-formed identifier.
"""

from __future__ import annotations

from asset_installer.errors import MalformedLibraryIdError


class VersionedLibraryNamingScheme:
    """Identifiers of the form ``name@version``.

    The separator is the last ``@`` that is not the first character, so npm
    scoped packages such as ``@scope/pkg@1.0.0`` parse as expected.
    """

    separator = "@"
    expected_format = "name@version"

    def separator_index(self, library_id: str) -> int:
        """Get the index of the name/version separator, or -1 if absent."""
        index = library_id.rfind(self.separator)
        return index if index > 0 else -1

    def parse(self, library_id: str) -> tuple[str, str]:
        """Split a library id into name and version.

        Raises:
            MalformedLibraryIdError: If the name or version is missing.
        """
        index = self.separator_index(library_id or "")
        if index == -1:
            raise MalformedLibraryIdError(library_id, self.expected_format)

        name = library_id[:index]
        version = library_id[index + 1 :]
        if not name or not version:
            raise MalformedLibraryIdError(library_id, self.expected_format)
        return name, version

    def build(self, name: str, version: str) -> str:
        if not version:
            return name
        return f"{name}{self.separator}{version}"


class SimpleLibraryNamingScheme:
    """Identifiers that are a bare name (paths, URLs) with no version."""

    separator = ""
    expected_format = "path"

    def separator_index(self, library_id: str) -> int:
        return -1

    def parse(self, library_id: str) -> tuple[str, str]:
        if not library_id:
            raise MalformedLibraryIdError(library_id, self.expected_format)
        return library_id, ""

    def build(self, name: str, version: str) -> str:
        return name
