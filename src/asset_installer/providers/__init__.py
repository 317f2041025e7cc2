"""Provider implementations and the provider registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import BaseCatalog, BaseLibraryGroup, BaseProvider, RemoteProvider
from .cdnjs import CdnjsProvider
from .filesystem import FileSystemProvider
from .unpkg import UnpkgProvider

if TYPE_CHECKING:
    from asset_installer.cache import CacheService
    from asset_installer.protocols import Downloader, HostInteraction

__all__ = [
    "BaseCatalog",
    "BaseLibraryGroup",
    "BaseProvider",
    "RemoteProvider",
    "CdnjsProvider",
    "UnpkgProvider",
    "FileSystemProvider",
    "PROVIDERS",
    "get_provider",
    "create_providers",
]


PROVIDERS: dict[str, type[BaseProvider]] = {
    "cdnjs": CdnjsProvider,
    "unpkg": UnpkgProvider,
    "filesystem": FileSystemProvider,
}


def get_provider(
    provider_id: str,
    host: HostInteraction,
    cache: CacheService,
    downloader: Downloader,
) -> BaseProvider:
    """Get a provider instance by id.

    Args:
        provider_id: Provider id (cdnjs, unpkg, filesystem). Case-sensitive.
        host: Host the provider installs into.
        cache: Shared cache.
        downloader: Shared downloader.

    Returns:
        Provider instance.

    Raises:
        ValueError: If the provider is not supported.
    """
    if provider_id not in PROVIDERS:
        raise ValueError(f"Unknown provider: {provider_id}. Supported: {list(PROVIDERS.keys())}")
    return PROVIDERS[provider_id](host, cache, downloader)


def create_providers(
    host: HostInteraction,
    cache: CacheService,
    downloader: Downloader,
) -> list[BaseProvider]:
    """Create one instance of every registered provider."""
    return [get_provider(provider_id, host, cache, downloader) for provider_id in PROVIDERS]
