"""npm registry catalog with files served by unpkg."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from urllib.parse import quote

from asset_installer.cache import METADATA_FILE
from asset_installer.errors import InvalidLibraryError, ResourceDownloadError
from asset_installer.naming import VersionedLibraryNamingScheme
from asset_installer.providers.base import BaseCatalog, BaseLibraryGroup, RemoteProvider
from asset_installer.semver import SemanticVersion, latest_version, sort_versions_descending
from asset_installer.types import CancellationToken, ResolvedLibrary

logger = logging.getLogger(__name__)

PROVIDER_ID = "unpkg"

PACKAGE_URL = "https://registry.npmjs.org/{name}"
SEARCH_URL = "https://registry.npmjs.org/-/v1/search?text={text}&size={size}"
FILE_LIST_URL = "https://unpkg.com/{name}@{version}/?meta"
FILE_URL = "https://unpkg.com/{name}@{version}/{file}"

# Query used when the search term is empty
DEFAULT_SEARCH_TEXT = "keywords:front-end"
PACKAGE_MAX_AGE = timedelta(days=1)
# Registry search caps page size
MAX_SEARCH_SIZE = 250


@dataclass
class NpmPackageInfo:
    """Registry metadata for a package."""

    name: str
    description: str = ""
    versions: list[str] = field(default_factory=list)
    latest_version: str | None = None


class UnpkgLibraryGroup(BaseLibraryGroup):
    """An npm package; `version` is the registry's latest tag when known."""

    pass


def convert_to_package_info(text: str | None) -> NpmPackageInfo | None:
    """Decode a registry package document.

    Returns:
        Package info, or None for an empty, unparseable or wrong-shape payload.
    """
    if not text:
        return None
    try:
        data = json.loads(text)
        versions = list(data["versions"].keys())
        dist_tags = data.get("dist-tags") or {}
        return NpmPackageInfo(
            name=str(data["name"]),
            description=data.get("description") or "",
            versions=versions,
            latest_version=dist_tags.get("latest"),
        )
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.debug("Invalid npm package payload: %s", e)
        return None


def convert_to_file_list(text: str | None) -> list[str] | None:
    """Decode an unpkg ``?meta`` listing into relative file paths.

    Handles both the nested directory listing and the flat file list.

    Returns:
        Sorted file paths, or None for an empty, unparseable or wrong-shape payload.
    """
    if not text:
        return None
    try:
        data = json.loads(text)
        files: list[str] = []
        _collect_files(data, files)
        return sorted(files)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.debug("Invalid unpkg listing payload: %s", e)
        return None


def _collect_files(node: dict[str, Any], files: list[str]) -> None:
    if node.get("type") == "file":
        files.append(str(node["path"]).lstrip("/"))
        return
    for child in node["files"]:
        if isinstance(child, str):
            files.append(child.lstrip("/"))
        else:
            _collect_files(child, files)


class UnpkgCatalog(BaseCatalog):
    """Catalog backed by the npm registry, read through the cache."""

    def __init__(self, provider: UnpkgProvider) -> None:
        super().__init__(provider.id, provider.naming_scheme)
        self.provider = provider
        self.cache = provider.cache

    def convert_to_library_groups(self, text: str | None) -> list[UnpkgLibraryGroup] | None:
        """Decode a registry search payload.

        Returns:
            Library groups, or None for an empty, unparseable or wrong-shape payload.
        """
        if not text:
            return None
        try:
            data = json.loads(text)
            groups = []
            for item in data["objects"]:
                package = item["package"]
                groups.append(
                    UnpkgLibraryGroup(
                        display_name=str(package["name"]),
                        catalog=self,
                        description=package.get("description") or "",
                        version=package.get("version") or "",
                    )
                )
            return groups
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug("Invalid npm search payload: %s", e)
            return None

    async def search(
        self, term: str | None, max_hits: int, token: CancellationToken
    ) -> list[UnpkgLibraryGroup]:
        """Search the registry.

        An empty term runs the default query.
        """
        token.raise_if_cancelled()
        text = quote(term or DEFAULT_SEARCH_TEXT)
        size = max(1, min(max_hits, MAX_SEARCH_SIZE))
        url = SEARCH_URL.format(text=text, size=size)
        try:
            payload = await self.provider.downloader.get_bytes(url, token)
        except ResourceDownloadError as e:
            logger.warning("npm search failed: %s", e)
            return []

        groups = self.convert_to_library_groups(payload.decode("utf-8", errors="replace")) or []
        groups.sort(key=lambda g: g.display_name.lower())
        return groups[:max_hits]

    async def get_library(
        self, name: str, version: str, token: CancellationToken
    ) -> ResolvedLibrary:
        """Resolve a package version and list its files.

        Raises:
            InvalidLibraryError: If the package or version is unknown.
        """
        library_id = self.naming_scheme.build(name, version)
        info = await self.get_package_info(name, token)
        if info is None or version not in info.versions:
            raise InvalidLibraryError(library_id, self.provider_id)

        files = await self._get_file_list(name, version, token)
        if not files:
            raise InvalidLibraryError(library_id, self.provider_id)

        return ResolvedLibrary(
            name=name,
            version=version,
            provider_id=self.provider_id,
            files={f: False for f in files},
        )

    async def get_library_versions(self, name: str, token: CancellationToken) -> list[str]:
        info = await self.get_package_info(name, token)
        return sort_versions_descending(info.versions) if info else []

    async def get_latest_version(
        self, name: str, include_prerelease: bool, token: CancellationToken
    ) -> str | None:
        """Get the highest version of a package.

        Without prereleases the registry's ``latest`` tag wins when it names a
        published stable version; otherwise versions are compared directly.
        """
        info = await self.get_package_info(name, token)
        if info is None:
            return None
        tagged = info.latest_version
        if (
            not include_prerelease
            and tagged is not None
            and tagged in info.versions
            and not SemanticVersion(tagged).is_prerelease
        ):
            return tagged
        return latest_version(info.versions, include_prerelease)

    async def get_package_info(self, name: str, token: CancellationToken) -> NpmPackageInfo | None:
        """Get registry metadata for a package, or None if unavailable."""
        token.raise_if_cancelled()
        try:
            cache_file = self.cache.get_library_directory(self.provider_id, name) / METADATA_FILE
            url = PACKAGE_URL.format(name=quote(name, safe="@"))
            text = await self.cache.get_metadata(url, cache_file, PACKAGE_MAX_AGE, token)
        except (ResourceDownloadError, ValueError) as e:
            logger.debug("npm metadata unavailable for %s: %s", name, e)
            return None
        return convert_to_package_info(text)

    async def _get_file_list(
        self, name: str, version: str, token: CancellationToken
    ) -> list[str] | None:
        # Listings are immutable per version, so the cached copy never expires.
        try:
            cache_file = (
                self.cache.get_library_directory(self.provider_id, name) / f"files-{version}.json"
            )
            url = FILE_LIST_URL.format(name=name, version=version)
            text = await self.cache.get_metadata(url, cache_file, None, token)
        except (ResourceDownloadError, ValueError) as e:
            logger.debug("unpkg listing unavailable for %s@%s: %s", name, version, e)
            return None
        return convert_to_file_list(text)


class UnpkgProvider(RemoteProvider):
    """Provider for npm packages served by unpkg."""

    id = PROVIDER_ID
    file_url = FILE_URL
    naming_scheme = VersionedLibraryNamingScheme()

    def create_catalog(self) -> UnpkgCatalog:
        return UnpkgCatalog(self)
