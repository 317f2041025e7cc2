"""CLI commands using Typer."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

if TYPE_CHECKING:
    from asset_installer.context import Dependencies
    from asset_installer.types import OperationResult

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from asset_installer import __version__
from asset_installer.context import create_dependencies
from asset_installer.logs import LogLevel
from asset_installer.manifest import MANIFEST_FILE, Manifest
from asset_installer.restore import Restorer
from asset_installer.types import CancellationToken

app = typer.Typer(
    name="asset-installer",
    help="Restore client-side libraries declared in a manifest",
    no_args_is_help=True,
)

cache_app = typer.Typer(help="Inspect and clear the library cache")

app.add_typer(cache_app, name="cache")

console = Console()


class ConsoleLogger:
    """Log sink that prints engine messages to the console."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def log(self, message: str, level: LogLevel) -> None:
        if level == LogLevel.ERROR:
            console.print(f"[red]{message}[/red]")
        elif level == LogLevel.TASK or self.verbose:
            console.print(f"[dim]{message}[/dim]")


def show_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def show_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def show_warning(message: str) -> None:
    console.print(f"[yellow]![/yellow] {message}")


def show_info(message: str) -> None:
    console.print(f"[blue]i[/blue] {message}")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"asset-installer v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Restore client-side libraries declared in a manifest."""
    pass


ManifestOption = Annotated[
    Path, typer.Option("--manifest", "-m", help="Manifest file")
]
CacheDirOption = Annotated[
    Path | None, typer.Option("--cache-dir", help="Cache directory")
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", help="Show every file written")
]


def _create_dependencies(manifest_path: Path, cache_dir: Path | None, verbose: bool) -> Dependencies:
    working_directory = manifest_path.resolve().parent
    return create_dependencies(working_directory, cache_dir, logger=ConsoleLogger(verbose))


def _load_manifest(manifest_path: Path) -> Manifest | None:
    manifest = Manifest.from_file(manifest_path)
    if manifest is None:
        show_error(f"{manifest_path} is not a valid manifest")
    return manifest


def _run(description: str, coroutine):
    """Run a coroutine to completion behind a spinner."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        return asyncio.run(coroutine)


def _show_results(results: list[OperationResult], verb: str) -> bool:
    """Render operation results.

    Returns:
        True if every result succeeded.
    """
    all_succeeded = True
    for result in results:
        state = result.installation_state
        library_id = state.library_id if state else None
        if result.cancelled:
            show_warning("Operation cancelled")
            all_succeeded = False
        elif not result.success:
            all_succeeded = False
            for error in result.errors:
                prefix = f"{library_id}: " if library_id else ""
                show_error(f"{prefix}{error}")
        elif library_id and result.up_to_date:
            show_info(f"{library_id} is up to date")
        elif library_id:
            show_success(f"{library_id} {verb}")
    return all_succeeded


# ============================================================================
# Manifest Commands
# ============================================================================


@app.command()
def restore(
    manifest_path: ManifestOption = Path(MANIFEST_FILE),
    cache_dir: CacheDirOption = None,
    verbose: VerboseOption = False,
    _context=None,
) -> None:
    """Restore every library in the manifest."""
    ctx = _context or _create_dependencies(manifest_path, cache_dir, verbose)
    manifest = _load_manifest(manifest_path)

    try:
        results = _run("Restoring libraries...", Restorer.create(ctx).restore(manifest))
    except KeyboardInterrupt:
        show_warning("Restore cancelled")
        raise typer.Exit(1) from None

    if not results:
        show_info("No libraries to restore")
        return
    if not _show_results(results, "restored"):
        raise typer.Exit(1)


@app.command()
def clean(
    manifest_path: ManifestOption = Path(MANIFEST_FILE),
    cache_dir: CacheDirOption = None,
    verbose: VerboseOption = False,
    _context=None,
) -> None:
    """Delete the files of every library in the manifest."""
    ctx = _context or _create_dependencies(manifest_path, cache_dir, verbose)
    manifest = _load_manifest(manifest_path)

    results = _run("Cleaning libraries...", Restorer.create(ctx).clean(manifest))
    if not _show_results(results, "cleaned"):
        raise typer.Exit(1)


@app.command()
def uninstall(
    library_id: Annotated[str, typer.Argument(help="Library id, e.g. jquery@3.7.1")],
    manifest_path: ManifestOption = Path(MANIFEST_FILE),
    cache_dir: CacheDirOption = None,
    verbose: VerboseOption = False,
    _context=None,
) -> None:
    """Delete a library's files and remove it from the manifest."""
    ctx = _context or _create_dependencies(manifest_path, cache_dir, verbose)
    manifest = _load_manifest(manifest_path)
    if manifest is None:
        raise typer.Exit(1)

    result = _run(
        f"Uninstalling {library_id}...", Restorer.create(ctx).uninstall(manifest, library_id)
    )
    if not _show_results([result], "uninstalled"):
        raise typer.Exit(1)
    manifest.save(manifest_path)


@app.command()
def search(
    term: Annotated[str | None, typer.Argument(help="Search text")] = None,
    provider: Annotated[str, typer.Option("--provider", "-p", help="Provider id")] = "cdnjs",
    max_hits: Annotated[int, typer.Option("--max", "-n", help="Maximum results")] = 20,
    cache_dir: CacheDirOption = None,
    _context=None,
) -> None:
    """Search a provider's catalog."""
    ctx = _context or create_dependencies(Path.cwd(), cache_dir)
    selected = ctx.get_provider(provider)
    if selected is None:
        show_error(f"Unknown provider '{provider}'")
        raise typer.Exit(1)

    catalog = selected.get_catalog()
    groups = _run(f"Searching {provider}...", catalog.search(term, max_hits, CancellationToken()))
    if not groups:
        console.print("[yellow]No libraries found[/yellow]")
        return

    table = Table(title=f"{provider} libraries")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Description")
    for group in groups:
        table.add_row(
            group.display_name,
            getattr(group, "version", "") or "",
            group.description or "",
        )
    console.print(table)


# ============================================================================
# Cache Commands
# ============================================================================


@cache_app.command("list")
def cache_list(
    provider: Annotated[
        str | None, typer.Option("--provider", "-p", help="Only this provider")
    ] = None,
    files: Annotated[bool, typer.Option("--files", help="List cached files")] = False,
    cache_dir: CacheDirOption = None,
    _context=None,
) -> None:
    """List cached libraries."""
    ctx = _context or create_dependencies(Path.cwd(), cache_dir)
    provider_ids = [provider] if provider else [p.id for p in ctx.providers]

    table = Table(title="Cached libraries")
    table.add_column("Provider", style="cyan")
    table.add_column("Library", style="green")
    if files:
        table.add_column("Files")

    rows = 0
    for provider_id in provider_ids:
        try:
            libraries = ctx.cache.list_cached_libraries(provider_id, files)
        except ValueError as e:
            show_error(str(e))
            raise typer.Exit(1) from None
        for library, cached_files in libraries.items():
            row = [provider_id, library]
            if files:
                row.append("\n".join(cached_files))
            table.add_row(*row)
            rows += 1

    if not rows:
        console.print("[yellow]Cache is empty[/yellow]")
        return
    console.print(table)


@cache_app.command("clean")
def cache_clean(
    provider: Annotated[
        str | None, typer.Argument(help="Provider to clear (all if not specified)")
    ] = None,
    cache_dir: CacheDirOption = None,
    _context=None,
) -> None:
    """Clear cached metadata and library files."""
    ctx = _context or create_dependencies(Path.cwd(), cache_dir)
    try:
        cleared = ctx.cache.clear(provider)
    except ValueError as e:
        show_error(str(e))
        raise typer.Exit(1) from None

    if cleared:
        show_success(f"Cleared cache for '{provider}'" if provider else "Cleared cache")
    else:
        show_info("Nothing to clear")
