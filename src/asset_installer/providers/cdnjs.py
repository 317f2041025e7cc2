"""cdnjs CDN catalog and provider."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from urllib.parse import quote

from asset_installer.cache import CATALOG_FILE, METADATA_FILE
from asset_installer.errors import InvalidLibraryError, ResourceDownloadError
from asset_installer.naming import VersionedLibraryNamingScheme
from asset_installer.providers.base import BaseCatalog, BaseLibraryGroup, RemoteProvider
from asset_installer.semver import sort_versions_descending
from asset_installer.types import CancellationToken, ResolvedLibrary

logger = logging.getLogger(__name__)

PROVIDER_ID = "cdnjs"

CATALOG_URL = "https://api.cdnjs.com/libraries?fields=name,description,version"
METADATA_URL = "https://api.cdnjs.com/libraries/{name}?fields=name,filename,version,assets"
FILE_URL = "https://cdnjs.cloudflare.com/ajax/libs/{name}/{version}/{file}"

CATALOG_MAX_AGE = timedelta(days=1)
METADATA_MAX_AGE = timedelta(days=1)


@dataclass
class Asset:
    """Files published for one version of a cdnjs library."""

    version: str
    files: list[str] = field(default_factory=list)
    default_file: str | None = None


class CdnjsLibraryGroup(BaseLibraryGroup):
    """A cdnjs library; `version` is the catalog's current version."""

    pass


class CdnjsCatalog(BaseCatalog):
    """Catalog backed by the cdnjs API, read through the cache."""

    def __init__(self, provider: CdnjsProvider) -> None:
        super().__init__(provider.id, provider.naming_scheme)
        self.provider = provider
        self.cache = provider.cache

    async def search(
        self, term: str | None, max_hits: int, token: CancellationToken
    ) -> list[CdnjsLibraryGroup]:
        """Search the catalog.

        An empty term returns the whole catalog (up to max_hits).
        """
        token.raise_if_cancelled()
        groups = await self._get_library_groups(token) or []
        if term:
            needle = term.lower()
            groups = [g for g in groups if needle in g.display_name.lower()]
        groups.sort(key=lambda g: g.display_name.lower())
        return groups[:max_hits]

    async def get_library(
        self, name: str, version: str, token: CancellationToken
    ) -> ResolvedLibrary:
        """Resolve a library version.

        Raises:
            InvalidLibraryError: If the name or version is unknown.
        """
        library_id = self.naming_scheme.build(name, version)
        assets = await self._get_assets(name, token)
        asset = next((a for a in assets or [] if a.version == version), None)
        if asset is None:
            raise InvalidLibraryError(library_id, self.provider_id)

        files = {f: f == asset.default_file for f in asset.files}
        return ResolvedLibrary(
            name=name, version=version, provider_id=self.provider_id, files=files
        )

    async def get_library_versions(self, name: str, token: CancellationToken) -> list[str]:
        assets = await self._get_assets(name, token)
        return sort_versions_descending(a.version for a in assets or [])

    def convert_to_library_groups(self, text: str | None) -> list[CdnjsLibraryGroup] | None:
        """Decode the catalog payload.

        Returns:
            Library groups, or None for an empty, unparseable or wrong-shape payload.
        """
        if not text:
            return None
        try:
            data = json.loads(text)
            return [
                CdnjsLibraryGroup(
                    display_name=_require_str(item["name"]),
                    catalog=self,
                    description=item.get("description") or "",
                    version=item.get("version") or "",
                )
                for item in data["results"]
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug("Invalid cdnjs catalog payload: %s", e)
            return None

    def convert_to_assets(self, text: str | None) -> list[Asset] | None:
        """Decode a library metadata payload.

        Returns:
            Assets per version, or None for an empty, unparseable or wrong-shape payload.
        """
        if not text:
            return None
        try:
            data = json.loads(text)
            default_file = data.get("filename")
            assets = []
            for item in data["assets"]:
                files = [_require_str(f) for f in item["files"]]
                assets.append(
                    Asset(
                        version=_require_str(item["version"]),
                        files=files,
                        default_file=default_file if default_file in files else None,
                    )
                )
            return assets
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug("Invalid cdnjs metadata payload: %s", e)
            return None

    async def _get_library_groups(self, token: CancellationToken) -> list[CdnjsLibraryGroup] | None:
        try:
            cache_file = self.cache.get_provider_directory(self.provider_id) / CATALOG_FILE
            text = await self.cache.get_metadata(CATALOG_URL, cache_file, CATALOG_MAX_AGE, token)
        except (ResourceDownloadError, ValueError) as e:
            logger.warning("cdnjs catalog unavailable: %s", e)
            return None
        return self.convert_to_library_groups(text)

    async def _get_assets(self, name: str, token: CancellationToken) -> list[Asset] | None:
        token.raise_if_cancelled()
        try:
            cache_file = self.cache.get_library_directory(self.provider_id, name) / METADATA_FILE
            url = METADATA_URL.format(name=quote(name, safe=""))
            text = await self.cache.get_metadata(url, cache_file, METADATA_MAX_AGE, token)
        except (ResourceDownloadError, ValueError) as e:
            logger.debug("cdnjs metadata unavailable for %s: %s", name, e)
            return None
        return self.convert_to_assets(text)


def _require_str(value: object) -> str:
    if not isinstance(value, str):
        raise TypeError(f"Expected a string, got {type(value).__name__}")
    return value


class CdnjsProvider(RemoteProvider):
    """Provider for libraries hosted on cdnjs."""

    id = PROVIDER_ID
    file_url = FILE_URL
    naming_scheme = VersionedLibraryNamingScheme()

    def create_catalog(self) -> CdnjsCatalog:
        return CdnjsCatalog(self)
