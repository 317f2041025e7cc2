"""Restore client-side libraries from CDN, npm and local sources."""

__version__ = "0.1.0"

# Export protocol interfaces for type hints and dependency injection
from asset_installer.protocols import (
    Catalog,
    Downloader,
    HostInteraction,
    LibraryGroup,
    Logger,
    NamingScheme,
    Provider,
)

__all__ = [
    "__version__",
    "Catalog",
    "Downloader",
    "HostInteraction",
    "LibraryGroup",
    "Logger",
    "NamingScheme",
    "Provider",
]
