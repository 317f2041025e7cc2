"""Dependency container for the restore engine.

This module separates object creation from object use. A `Dependencies`
value is built once per run and passed explicitly to the validator, the
restorer and CLI commands; there is no process-wide provider registry.

Dependencies are typed using Protocols (abstract interfaces) rather than
concrete implementations, so tests can inject doubles without inheritance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from asset_installer.protocols import Downloader, HostInteraction, Logger, Provider

if TYPE_CHECKING:
    from asset_installer.cache import CacheService


@dataclass
class Dependencies:
    """Container for the host, the shared cache and the provider instances.

    Attributes:
        host: Host the engine installs into.
        cache: Cache shared by every provider.
        downloader: Downloader shared by every provider.
        providers: Provider instances, looked up by id.
    """

    host: HostInteraction
    cache: CacheService
    downloader: Downloader
    providers: list[Provider] = field(default_factory=list)

    def get_provider(self, provider_id: str | None) -> Provider | None:
        """Get a provider by id (case-sensitive), or None if not registered."""
        if not provider_id:
            return None
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        return None


def create_dependencies(
    working_directory: Path,
    cache_dir: Path | None = None,
    logger: Logger | None = None,
    downloader: Downloader | None = None,
) -> Dependencies:
    """Factory for engine dependencies.

    Creates all services with proper wiring. Use this in production code.
    For tests, construct Dependencies directly with test doubles.

    Args:
        working_directory: Root that manifest destinations are relative to.
        cache_dir: Override cache directory (for testing).
        logger: Host log sink. Defaults to the standard logging sink.
        downloader: Override downloader (for testing).

    Returns:
        Configured Dependencies with every registered provider.
    """
    from asset_installer.cache import CacheService
    from asset_installer.downloader import HttpDownloader
    from asset_installer.host import HostInteraction as DefaultHost
    from asset_installer.providers import create_providers

    downloader = downloader or HttpDownloader()
    cache = (
        CacheService.create(cache_dir, downloader)
        if cache_dir
        else CacheService(downloader=downloader)
    )
    host = DefaultHost(working_directory, cache.cache_dir, logger=logger)

    return Dependencies(
        host=host,
        cache=cache,
        downloader=downloader,
        providers=list(create_providers(host, cache, downloader)),
    )
