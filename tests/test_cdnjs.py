"""Tests for the cdnjs catalog and provider."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from asset_installer.context import Dependencies
from asset_installer.errors import InvalidLibraryError
from asset_installer.manifest import LibraryInstallationState
from asset_installer.providers.cdnjs import CdnjsCatalog, CdnjsProvider
from asset_installer.types import CancellationToken


@pytest.fixture
def provider(dependencies: Dependencies) -> CdnjsProvider:
    """Get the registered cdnjs provider."""
    provider = dependencies.get_provider("cdnjs")
    assert isinstance(provider, CdnjsProvider)
    return provider


@pytest.fixture
def catalog(provider: CdnjsProvider) -> CdnjsCatalog:
    """Get the cdnjs catalog."""
    catalog = provider.get_catalog()
    assert isinstance(catalog, CdnjsCatalog)
    return catalog


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken()


class TestSearch:
    """Tests for catalog search."""

    @pytest.mark.asyncio
    async def test_search_matches_substring(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test a term returns matching groups sorted by name."""
        groups = await catalog.search("test", 10, token)

        assert [g.display_name for g in groups] == ["test-library", "test-library2"]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test matching ignores case."""
        groups = await catalog.search("SAMPLE", 10, token)

        assert [g.display_name for g in groups] == ["sampleLibrary"]

    @pytest.mark.asyncio
    async def test_empty_term_returns_catalog(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test an empty term returns the whole catalog up to max_hits."""
        groups = await catalog.search("", 3, token)

        assert [g.display_name for g in groups] == ["jquery", "sampleLibrary", "test-library"]

    @pytest.mark.asyncio
    async def test_no_match(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test an unmatched term returns an empty list."""
        assert await catalog.search("does-not-exist", 10, token) == []

    @pytest.mark.asyncio
    async def test_catalog_unavailable(
        self, catalog: CdnjsCatalog, token: CancellationToken, http_routes: dict[str, bytes]
    ) -> None:
        """Test a failed catalog download yields no results."""
        http_routes.clear()

        assert await catalog.search("jquery", 10, token) == []

    @pytest.mark.asyncio
    async def test_undecodable_catalog(
        self, catalog: CdnjsCatalog, token: CancellationToken, http_routes: dict[str, bytes]
    ) -> None:
        """Test a catalog payload that is not UTF-8 yields no results."""
        http_routes["api.cdnjs.com/libraries"] = b"\xff\xfe\x00{\"results\": []}"

        assert await catalog.search("jq", 10, token) == []
        assert await catalog.search("", 10, token) == []

    @pytest.mark.asyncio
    async def test_catalog_is_cached(
        self, catalog: CdnjsCatalog, token: CancellationToken, http_requests: list[str]
    ) -> None:
        """Test the catalog is downloaded once across searches."""
        await catalog.search("jquery", 10, token)
        await catalog.search("test", 10, token)

        assert len(http_requests) == 1

    @pytest.mark.asyncio
    async def test_group_versions(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test groups resolve their versions and ids lazily."""
        [group] = await catalog.search("jquery", 10, token)

        assert await group.get_library_versions(token) == ["3.3.1", "2.2.4"]
        assert await group.get_library_ids(token) == ["jquery@3.3.1", "jquery@2.2.4"]


class TestVersions:
    """Tests for version listing and latest version."""

    @pytest.mark.asyncio
    async def test_versions_descending(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test versions are returned newest first."""
        versions = await catalog.get_library_versions("sampleLibrary", token)

        assert versions == ["4.0.0-beta.1", "3.1.4", "3.0.0", "2.1.0", "2.0.0"]

    @pytest.mark.asyncio
    async def test_latest_version(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test prereleases are considered only when requested."""
        assert await catalog.get_latest_version("sampleLibrary", False, token) == "3.1.4"
        assert await catalog.get_latest_version("sampleLibrary", True, token) == "4.0.0-beta.1"

    @pytest.mark.asyncio
    async def test_latest_version_unknown_library(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test an unknown library has no latest version."""
        assert await catalog.get_latest_version("unknown", False, token) is None


class TestGetLibrary:
    """Tests for library resolution."""

    @pytest.mark.asyncio
    async def test_get_library(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test a known version resolves with its default file marked."""
        library = await catalog.get_library("jquery", "3.3.1", token)

        assert library.name == "jquery"
        assert library.provider_id == "cdnjs"
        assert len(library.files) == 7
        assert [f for f, is_default in library.files.items() if is_default] == ["jquery.min.js"]

    @pytest.mark.asyncio
    async def test_unknown_version(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test an unknown version raises InvalidLibraryError."""
        with pytest.raises(InvalidLibraryError) as exc_info:
            await catalog.get_library("jquery", "9.9.9", token)

        assert exc_info.value.library_id == "jquery@9.9.9"

    @pytest.mark.asyncio
    async def test_unknown_library(self, catalog: CdnjsCatalog, token: CancellationToken) -> None:
        """Test an unknown name raises InvalidLibraryError."""
        with pytest.raises(InvalidLibraryError):
            await catalog.get_library("unknown", "1.0.0", token)


class TestCompletion:
    """Tests for library id completion."""

    @pytest.mark.asyncio
    async def test_name_completion(self, catalog: CdnjsCatalog) -> None:
        """Test the caret in the name offers names with their current version."""
        result = await catalog.get_completion_set("test", 0)

        assert result.start == 0
        assert result.length == 4
        assert result.completions[0].display_text == "test-library"
        assert result.completions[0].insertion_text == "test-library@1.0.0"

    @pytest.mark.asyncio
    async def test_version_completion(self, catalog: CdnjsCatalog) -> None:
        """Test the caret after the separator offers versions newest first."""
        result = await catalog.get_completion_set("sampleLibrary@", 14)

        assert result.start == 14
        assert result.length == 0
        assert len(result.completions) == 5
        assert result.completions[0].insertion_text == "sampleLibrary@4.0.0-beta.1"
        assert result.completions[-1].display_text == "2.0.0"

    @pytest.mark.asyncio
    async def test_partial_version_completion(self, catalog: CdnjsCatalog) -> None:
        """Test the replaced span covers the typed version text."""
        result = await catalog.get_completion_set("sampleLibrary@3.", 16)

        assert result.start == 14
        assert result.length == 2


class TestPayloadDecoding:
    """Tests for payload decoders."""

    def test_library_groups(self, catalog: CdnjsCatalog) -> None:
        """Test a catalog payload decodes into groups."""
        payload = json.dumps(
            {"results": [{"name": "1140", "description": "1140 grid", "version": "2.0"}]}
        )

        groups = catalog.convert_to_library_groups(payload)

        assert groups is not None
        assert [g.display_name for g in groups] == ["1140"]
        assert groups[0].version == "2.0"

    @pytest.mark.parametrize("payload", [None, "", '{"results":[12}', '{"results":[12]}', "[]"])
    def test_library_groups_invalid(self, catalog: CdnjsCatalog, payload: str | None) -> None:
        """Test invalid catalog payloads decode to None."""
        assert catalog.convert_to_library_groups(payload) is None

    def test_assets(self, catalog: CdnjsCatalog, jquery_metadata: dict) -> None:
        """Test a metadata payload decodes into assets per version."""
        assets = catalog.convert_to_assets(json.dumps(jquery_metadata))

        assert assets is not None
        assert assets[0].version == "3.3.1"
        assert len(assets[0].files) == 7
        assert assets[0].default_file == "jquery.min.js"

    @pytest.mark.parametrize("payload", [None, "", "abcd", '{"assets": 5}'])
    def test_assets_invalid(self, catalog: CdnjsCatalog, payload: str | None) -> None:
        """Test invalid metadata payloads decode to None."""
        assert catalog.convert_to_assets(payload) is None


class TestProvider:
    """Tests for cdnjs expansion and installation."""

    @pytest.mark.asyncio
    async def test_update_state_fills_files(self, provider: CdnjsProvider, token: CancellationToken) -> None:
        """Test an absent file list expands to every file of the library."""
        state = LibraryInstallationState(library_id="jquery@3.3.1", destination_path="lib")

        result = await provider.update_state(state, token)

        assert result.success
        assert result.installation_state is not None
        assert len(result.installation_state.files or []) == 7
        assert result.installation_state.provider_id == "cdnjs"
        assert state.files is None

    @pytest.mark.asyncio
    async def test_update_state_invalid_files(self, provider: CdnjsProvider, token: CancellationToken) -> None:
        """Test files the library does not provide are rejected."""
        state = LibraryInstallationState(
            library_id="jquery@3.3.1", destination_path="lib", files=["jquery.js", "missing.js"]
        )

        result = await provider.update_state(state, token)

        assert [e.code for e in result.errors] == ["LIB008"]
        assert "missing.js" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_update_state_malformed_id(self, provider: CdnjsProvider, token: CancellationToken) -> None:
        """Test an id without a version is reported as invalid."""
        result = await provider.update_state(LibraryInstallationState(library_id="jquery"), token)

        assert [e.code for e in result.errors] == ["LIB014"]

    @pytest.mark.asyncio
    async def test_update_state_unknown_library(self, provider: CdnjsProvider, token: CancellationToken) -> None:
        """Test an unresolvable library is reported with the provider id."""
        result = await provider.update_state(
            LibraryInstallationState(library_id="jquery@9.9.9"), token
        )

        assert [e.code for e in result.errors] == ["LIB002"]
        assert result.errors[0].args == ("jquery@9.9.9", "cdnjs")

    @pytest.mark.asyncio
    async def test_install_writes_files(
        self,
        provider: CdnjsProvider,
        jquery_state: LibraryInstallationState,
        working_dir: Path,
        token: CancellationToken,
    ) -> None:
        """Test files are downloaded through the cache into the destination."""
        result = await provider.install(jquery_state, token)

        assert result.success
        assert result.up_to_date is False
        assert (working_dir / "lib" / "jquery" / "jquery.js").read_bytes() == b"/* jquery 3.3.1 */"
        assert provider.cache.is_cached("cdnjs", "jquery", "3.3.1", "jquery.min.js")

    @pytest.mark.asyncio
    async def test_install_twice_is_up_to_date(
        self,
        provider: CdnjsProvider,
        jquery_state: LibraryInstallationState,
        working_dir: Path,
        token: CancellationToken,
    ) -> None:
        """Test a second install leaves the files and reports up to date."""
        await provider.install(jquery_state, token)
        second = await provider.install(jquery_state, token)

        assert second.success
        assert second.up_to_date is True
        assert sorted(p.name for p in (working_dir / "lib" / "jquery").iterdir()) == [
            "jquery.js",
            "jquery.min.js",
        ]

    @pytest.mark.asyncio
    async def test_concurrent_installs_share_destination(
        self,
        provider: CdnjsProvider,
        jquery_state: LibraryInstallationState,
        working_dir: Path,
        token: CancellationToken,
    ) -> None:
        """Test two installs racing on one destination both succeed with one copy per file."""
        first, second = await asyncio.gather(
            provider.install(jquery_state, token), provider.install(jquery_state, token)
        )

        assert first.success
        assert second.success
        destination = working_dir / "lib" / "jquery"
        assert sorted(p.name for p in destination.iterdir()) == ["jquery.js", "jquery.min.js"]
        assert (destination / "jquery.js").read_bytes() == b"/* jquery 3.3.1 */"

    @pytest.mark.asyncio
    async def test_install_download_failure(
        self, provider: CdnjsProvider, working_dir: Path, token: CancellationToken
    ) -> None:
        """Test a file missing from the CDN is reported with its URL."""
        state = LibraryInstallationState(
            library_id="jquery@3.3.1", destination_path="lib", files=["jquery.slim.js", "core.js"]
        )

        result = await provider.install(state, token)

        assert [e.code for e in result.errors] == ["LIB012"]
        assert result.errors[0].args[0].endswith("/jquery/3.3.1/jquery.slim.js")
        assert (working_dir / "lib" / "core.js").exists()
        assert not (working_dir / "lib" / "jquery.slim.js").exists()

    @pytest.mark.asyncio
    async def test_install_without_destination(self, provider: CdnjsProvider, token: CancellationToken) -> None:
        """Test a missing destination is reported."""
        state = LibraryInstallationState(library_id="jquery@3.3.1", files=["jquery.js"])

        result = await provider.install(state, token)

        assert [e.code for e in result.errors] == ["LIB005"]

    @pytest.mark.asyncio
    async def test_install_outside_working_directory(
        self, provider: CdnjsProvider, token: CancellationToken
    ) -> None:
        """Test a destination escaping the working directory is rejected."""
        state = LibraryInstallationState(
            library_id="jquery@3.3.1", destination_path="../outside", files=["jquery.js"]
        )

        result = await provider.install(state, token)

        assert [e.code for e in result.errors] == ["LIB010"]

    @pytest.mark.asyncio
    async def test_install_cancelled(
        self, provider: CdnjsProvider, jquery_state: LibraryInstallationState, working_dir: Path
    ) -> None:
        """Test a cancelled token installs nothing."""
        token = CancellationToken()
        token.cancel()

        result = await provider.install(jquery_state, token)

        assert result.cancelled
        assert not result.success
        assert not (working_dir / "lib").exists()
