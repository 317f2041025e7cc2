"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from asset_installer.cache import CacheService
from asset_installer.context import Dependencies, create_dependencies
from asset_installer.downloader import HttpDownloader
from asset_installer.logs import MemoryLogger
from asset_installer.manifest import LibraryInstallationState, Manifest


@pytest.fixture
def working_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def temp_cache_dir(tmp_path: Path) -> Path:
    """Create a temporary cache directory."""
    cache_dir = tmp_path / ".asset-installer" / "cache"
    cache_dir.mkdir(parents=True)
    return cache_dir


# ============================================================================
# Network Fixtures
# ============================================================================


JQUERY_FILES = [
    "core.js",
    "jquery.js",
    "jquery.min.js",
    "jquery.min.map",
    "jquery.slim.js",
    "jquery.slim.min.js",
    "jquery.slim.min.map",
]

SAMPLE_VERSIONS = ["2.0.0", "3.1.4", "4.0.0-beta.1", "2.1.0", "3.0.0"]

CDNJS_CATALOG = {
    "results": [
        {"name": "jquery", "description": "JavaScript library for DOM operations", "version": "3.3.1"},
        {"name": "sampleLibrary", "description": "A sample library", "version": "3.1.4"},
        {"name": "test-library", "description": "First test library", "version": "1.0.0"},
        {"name": "test-library2", "description": "Second test library", "version": "2.0.0"},
    ],
    "total": 4,
}

JQUERY_METADATA = {
    "name": "jquery",
    "filename": "jquery.min.js",
    "version": "3.3.1",
    "assets": [
        {"version": "3.3.1", "files": JQUERY_FILES},
        {"version": "2.2.4", "files": ["jquery.js", "jquery.min.js"]},
    ],
}

SAMPLE_METADATA = {
    "name": "sampleLibrary",
    "filename": "sample.min.js",
    "version": "3.1.4",
    "assets": [{"version": v, "files": ["sample.js", "sample.min.js"]} for v in SAMPLE_VERSIONS],
}

NPM_SEARCH = {
    "objects": [
        {"package": {"name": "vue", "version": "3.4.0", "description": "Vue framework"}},
        {"package": {"name": "bootstrap", "version": "5.3.2", "description": "CSS framework"}},
    ],
    "total": 2,
}

NPM_PACKAGE = {
    "name": "bootstrap",
    "description": "CSS framework",
    "dist-tags": {"latest": "5.3.2", "next": "6.0.0-alpha.1"},
    "versions": {"4.6.2": {}, "5.3.2": {}, "6.0.0-alpha.1": {}, "5.0.0": {}},
}

UNPKG_LISTING = {
    "path": "/",
    "type": "directory",
    "files": [
        {
            "path": "/dist",
            "type": "directory",
            "files": [
                {"path": "/dist/css", "type": "directory", "files": [
                    {"path": "/dist/css/bootstrap.css", "type": "file"},
                    {"path": "/dist/css/bootstrap.min.css", "type": "file"},
                ]},
                {"path": "/dist/js/bootstrap.js", "type": "file"},
            ],
        },
        {"path": "/package.json", "type": "file"},
    ],
}


def _encode(payload: object) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def http_routes() -> dict[str, bytes]:
    """Responses served by the mock transport, keyed by host + path.

    Tests add or remove entries to change what the network returns.
    """
    return {
        "api.cdnjs.com/libraries": _encode(CDNJS_CATALOG),
        "api.cdnjs.com/libraries/jquery": _encode(JQUERY_METADATA),
        "api.cdnjs.com/libraries/sampleLibrary": _encode(SAMPLE_METADATA),
        "cdnjs.cloudflare.com/ajax/libs/jquery/3.3.1/jquery.js": b"/* jquery 3.3.1 */",
        "cdnjs.cloudflare.com/ajax/libs/jquery/3.3.1/jquery.min.js": b"/* jquery 3.3.1 min */",
        "cdnjs.cloudflare.com/ajax/libs/jquery/3.3.1/core.js": b"/* core */",
        "registry.npmjs.org/-/v1/search": _encode(NPM_SEARCH),
        "registry.npmjs.org/bootstrap": _encode(NPM_PACKAGE),
        "unpkg.com/bootstrap@5.3.2/": _encode(UNPKG_LISTING),
        "unpkg.com/bootstrap@5.3.2/dist/css/bootstrap.css": b"/* bootstrap.css */",
        "unpkg.com/bootstrap@5.3.2/dist/js/bootstrap.js": b"/* bootstrap.js */",
        "example.com/assets/logo.svg": b"<svg/>",
    }


@pytest.fixture
def http_requests() -> list[str]:
    """URLs requested through the mock transport, in order."""
    return []


@pytest.fixture
def mock_transport(http_routes: dict[str, bytes], http_requests: list[str]) -> httpx.MockTransport:
    """Create a transport serving `http_routes` and answering 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        http_requests.append(str(request.url))
        key = f"{request.url.host}{request.url.path}"
        if key in http_routes:
            return httpx.Response(200, content=http_routes[key])
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture
def downloader(mock_transport: httpx.MockTransport) -> HttpDownloader:
    """Create a downloader backed by the mock transport."""
    return HttpDownloader(transport=mock_transport)


@pytest.fixture
def cache(temp_cache_dir: Path, downloader: HttpDownloader) -> CacheService:
    """Create a cache in a temporary directory."""
    return CacheService.create(temp_cache_dir, downloader)


@pytest.fixture
def host_logger() -> MemoryLogger:
    """Create a log sink that records messages."""
    return MemoryLogger()


@pytest.fixture
def dependencies(
    working_dir: Path,
    temp_cache_dir: Path,
    downloader: HttpDownloader,
    host_logger: MemoryLogger,
) -> Dependencies:
    """Create dependencies with every provider, isolated from the network."""
    return create_dependencies(
        working_dir, temp_cache_dir, logger=host_logger, downloader=downloader
    )


# ============================================================================
# Manifest Fixtures
# ============================================================================


@pytest.fixture
def jquery_state() -> LibraryInstallationState:
    """A cdnjs library with an explicit file list."""
    return LibraryInstallationState(
        library_id="jquery@3.3.1",
        provider_id="cdnjs",
        destination_path="lib/jquery",
        files=["jquery.js", "jquery.min.js"],
    )


@pytest.fixture
def sample_manifest(jquery_state: LibraryInstallationState) -> Manifest:
    """A manifest with one cdnjs library."""
    return Manifest(version="1.0", default_provider="cdnjs", libraries=[jquery_state])


@pytest.fixture
def jquery_metadata() -> dict:
    """cdnjs metadata for jquery: seven files in 3.3.1, default jquery.min.js."""
    return json.loads(json.dumps(JQUERY_METADATA))
