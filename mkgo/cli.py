"""Thin CLI wrapper for mkgo.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
import os
import platform
import threading
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from mkgo import __version__
from mkgo.config import Settings, get_settings, print_settings_json
from mkgo.types import BuildResult, JobEvent, JobPhase

app = typer.Typer(
    name="mkgo",
    help="mkgo - Fast, reliable cross-platform Go builds",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

OS_NAMES = {"darwin": "macOS", "linux": "Linux", "windows": "Windows"}


def setup_logging(level: str) -> None:
    """Route log records through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"mkgo version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """mkgo - Fast, reliable cross-platform Go builds."""


class BuildProgress:
    """Event sink printing per-target progress lines.

    Called from worker threads; the completion counter is guarded by a lock.
    Each job counts once, on its final event.
    """

    def __init__(self, total: int, quiet: bool = False) -> None:
        self.total = total
        self.quiet = quiet
        self.done = 0
        self._lock = threading.Lock()

    def __call__(self, event: JobEvent) -> None:
        if not event.final:
            if event.phase == JobPhase.BUILDING and not self.quiet:
                console.print(f"[dim]↳ Building {event.platform_label}[/dim]")
            return

        with self._lock:
            self.done += 1
            done = self.done
        if self.quiet:
            return

        prefix = f"[{done}/{self.total}]"
        if event.phase == JobPhase.RESTORED:
            console.print(f"{prefix} [blue]✓ {event.platform_label} (cached)[/blue]")
        elif event.phase == JobPhase.BUILD_FAILED:
            console.print(f"{prefix} [red]✗ {event.platform_label}[/red]")
        else:
            console.print(f"{prefix} [green]✓ {event.platform_label}[/green]")


def print_platforms() -> None:
    """Print the supported platform table."""
    from mkgo.builds.targets import SUPPORTED_PLATFORMS

    console.print("[bold]Supported Platforms:[/bold]")
    for label in SUPPORTED_PLATFORMS:
        os_name, arch = label.split("/")
        console.print(
            f"  [cyan]{label:<15}[/cyan] {OS_NAMES.get(os_name, os_name)} [dim]{arch}[/dim]"
        )
    console.print(f"Total: {len(SUPPORTED_PLATFORMS)} platforms")


def result_to_dict(result: BuildResult) -> dict[str, object]:
    """Convert a build result for JSON output."""
    return {
        "success": result.success,
        "binaries": [str(b) for b in result.binaries],
        "checksums": [str(c) for c in result.checksums],
        "failed": list(result.failed),
        "failures": dict(result.failures),
        "duration": round(result.duration, 3),
        "cache_hits": result.cache_hits,
        "cache_misses": result.cache_misses,
    }


def print_build_summary(result: BuildResult, version: str, git_hash: str, output_dir: Path) -> None:
    """Print a human-readable build summary."""
    total = result.cache_hits + result.cache_misses
    console.print()
    console.print("[bold]Build Summary:[/bold]")
    console.print(f"  Version:          {version}")
    console.print(f"  Duration:         {result.duration:.2f}s")
    console.print(f"  Git hash:         {git_hash}")
    console.print(
        f"  Platforms:        {len(result.binaries)} successful, {len(result.failed)} failed"
    )
    console.print(
        f"  Cache efficiency: {result.cache_efficiency:.1f}% ({result.cache_hits}/{total})"
    )
    console.print(f"  Output:           {output_dir}")
    if result.binaries:
        console.print("[bold]Binaries:[/bold]")
        for binary in result.binaries:
            console.print(f"  [green]✓ {binary.name}[/green]")
    if result.failed:
        console.print("[bold red]Failed builds:[/bold red]")
        for label in result.failed:
            console.print(f"  [red]✗ {label}[/red]")
            reason = result.failures.get(label)
            if reason:
                console.print(f"      Error: {reason}")


@app.command("build")
def build_cmd(
    target: Annotated[
        list[str] | None,
        typer.Option("--target", help="Target platform(s), e.g. linux/amd64"),
    ] = None,
    os_list: Annotated[
        list[str] | None,
        typer.Option("--os", help="Target operating system(s)"),
    ] = None,
    arch_list: Annotated[
        list[str] | None,
        typer.Option("--arch", help="Target architecture(s)"),
    ] = None,
    all_platforms: Annotated[
        bool,
        typer.Option("--all", help="Build for all supported platforms"),
    ] = False,
    list_platforms: Annotated[
        bool,
        typer.Option("--list-platforms", help="List supported platforms and exit"),
    ] = False,
    version: Annotated[
        str,
        typer.Option("--version", help="Application version"),
    ] = "1.0.0",
    build_version: Annotated[
        str,
        typer.Option("--build-version", help="Build metadata version"),
    ] = "",
    ldflags: Annotated[
        str,
        typer.Option("--ldflags", help="Extra linker flags"),
    ] = "",
    tags: Annotated[
        str,
        typer.Option("--tags", help="Build tags (comma separated)"),
    ] = "",
    cgo: Annotated[bool, typer.Option("--cgo", help="Enable cgo")] = False,
    race: Annotated[bool, typer.Option("--race", help="Enable race detector")] = False,
    static: Annotated[bool, typer.Option("--static", help="Build static binaries")] = False,
    strip: Annotated[
        bool,
        typer.Option("--strip/--no-strip", help="Strip debug symbols"),
    ] = True,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Disable optimizations and inlining"),
    ] = False,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Ignore cached binaries (full rebuild)"),
    ] = False,
    clean_first: Annotated[
        bool,
        typer.Option("--clean/--no-clean", help="Clean output directory first"),
    ] = True,
    checksum: Annotated[
        bool,
        typer.Option("--checksum/--no-checksum", help="Generate SHA-256 checksums"),
    ] = True,
    parallel: Annotated[
        int | None,
        typer.Option("--parallel", "-j", min=1, help="Number of parallel builds"),
    ] = None,
    timeout: Annotated[
        int | None,
        typer.Option("--timeout", min=1, help="Per-target build timeout in seconds"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output directory for binaries"),
    ] = None,
    name: Annotated[
        str,
        typer.Option("--name", help="Output binary name"),
    ] = "app",
    source: Annotated[
        Path,
        typer.Option("--source", help="Go module root"),
    ] = Path("."),
    metrics: Annotated[
        bool,
        typer.Option("--metrics", help="Record build metrics"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose output"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build the Go project for one or more platforms.

    Cached binaries are reused when neither the sources nor the build
    configuration changed. Exits with code 1 if any platform failed.
    """
    from mkgo.builds.metrics import record_build_metrics
    from mkgo.builds.models import BuildConfig
    from mkgo.builds.service import build, prepare_targets
    from mkgo.builds.toolchain import get_git_hash
    from mkgo.errors import INVALID_CONFIG, PreconditionError

    if list_platforms:
        print_platforms()
        return

    settings = get_settings()
    setup_logging("CRITICAL" if json_output else ("DEBUG" if verbose else settings.log_level))

    try:
        config = BuildConfig(
            platforms=tuple(target or ()),
            os_list=tuple(os_list or ()),
            arch_list=tuple(arch_list or ()),
            all_platforms=all_platforms,
            ldflags=ldflags,
            tags=tags,
            cgo=cgo,
            race=race,
            static=static,
            strip=strip,
            debug=debug,
            version=version,
            build_version=build_version,
            git_hash=get_git_hash(source),
            source_dir=source,
            output_dir=output or settings.output_dir,
            binary_name=name,
            timeout=timeout or settings.default_timeout,
            parallel=parallel or settings.default_parallel,
            no_cache=no_cache,
            clean=clean_first,
            checksum=checksum,
            verbose=verbose,
            toolchain=settings.toolchain,
        )
    except ValidationError as e:
        if json_output:
            typer.echo(
                json.dumps(
                    {
                        "success": False,
                        "code": INVALID_CONFIG,
                        "message": str(e),
                    }
                )
            )
        else:
            console.print(f"[red]Invalid build configuration:[/red] {e}")
        raise typer.Exit(code=1) from None

    try:
        targets = prepare_targets(config)
        if not json_output:
            console.print(f"[blue]Building {len(targets)} platform(s)...[/blue]")
        progress = BuildProgress(len(targets), quiet=json_output)
        result = build(config, settings=settings, on_event=progress, targets=targets)
    except PreconditionError as e:
        if json_output:
            typer.echo(json.dumps({"success": False, "code": e.code, "message": str(e)}))
        else:
            console.print(f"[red]Build failed: {e}[/red]")
        raise typer.Exit(code=1) from None

    if metrics:
        record_build_metrics(result, len(targets), settings.metrics_dir)

    if json_output:
        typer.echo(json.dumps(result_to_dict(result), indent=2))
    else:
        print_build_summary(result, config.version, config.git_hash, config.output_dir)

    if not result.success:
        raise typer.Exit(code=1)


@app.command("clean")
def clean_cmd(
    all_dirs: Annotated[
        bool,
        typer.Option("--all", help="Remove output, cache and metrics"),
    ] = False,
    dist: Annotated[
        bool,
        typer.Option("--dist", help="Remove the output directory"),
    ] = False,
    cache: Annotated[
        bool,
        typer.Option("--cache", help="Clean the build cache"),
    ] = False,
    metrics: Annotated[
        bool,
        typer.Option("--metrics", help="Clean recorded build metrics"),
    ] = False,
) -> None:
    """Clean build artifacts, cache and metrics."""
    from mkgo.builds.service import clean

    settings = get_settings()
    setup_logging(settings.log_level)

    if not any([all_dirs, dist, cache, metrics]):
        console.print("[yellow]Nothing to clean[/yellow]")
        console.print("Use --all, --dist, --cache, or --metrics")
        return

    try:
        report = clean(
            settings=settings,
            output_dir=all_dirs or dist,
            cache=all_dirs or cache,
            metrics=all_dirs or metrics,
        )
    except OSError as e:
        console.print(f"[red]Clean failed: {e}[/red]")
        raise typer.Exit(code=1) from None

    for path in report.removed:
        console.print(f"[green]✓ Cleaned: {path}[/green]")
    console.print("[green]Clean completed![/green]")


@app.command("cache")
def cache_cmd(
    clear: Annotated[
        bool,
        typer.Option("--clear", help="Clear the build cache"),
    ] = False,
    stats: Annotated[
        bool,
        typer.Option("--stats", help="Show cache statistics"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Manage the build cache."""
    from mkgo.builds.cache import CacheStore

    settings = get_settings()
    store = CacheStore(settings.cache_dir)

    if clear:
        try:
            store.purge()
        except OSError as e:
            console.print(f"[red]Could not clear cache: {e}[/red]")
            raise typer.Exit(code=1) from None
        if not json_output:
            console.print("[green]Build cache cleared successfully![/green]")

    if stats or not clear:
        cache_stats = store.stats()
        if json_output:
            typer.echo(
                json.dumps(
                    {
                        "cache_dir": str(cache_stats.root),
                        "entries": cache_stats.entries,
                        "size_bytes": cache_stats.size_bytes,
                    },
                    indent=2,
                )
            )
        elif cache_stats.entries == 0:
            console.print("[yellow]Build cache is empty[/yellow]")
        else:
            console.print("[bold]Cache Statistics:[/bold]")
            console.print(f"  Cache directory: {cache_stats.root}")
            console.print(f"  Cached builds:   {cache_stats.entries}")
            console.print(f"  Cache size:      {cache_stats.size_bytes / 1024 / 1024:.1f} MB")


@app.command("list")
def list_cmd(
    platforms: Annotated[
        bool,
        typer.Option("--platforms", help="List supported platforms"),
    ] = False,
    archs: Annotated[
        bool,
        typer.Option("--archs", help="List supported architectures"),
    ] = False,
) -> None:
    """List supported platforms and architectures."""
    from mkgo.builds.targets import SUPPORTED_ARCHS

    show_all = not (platforms or archs)
    if platforms or show_all:
        print_platforms()
    if archs or show_all:
        console.print("[bold]Supported Architectures:[/bold]")
        for arch in SUPPORTED_ARCHS:
            console.print(f"  • {arch}")


@app.command("info")
def info_cmd(
    system: Annotated[
        bool,
        typer.Option("--system", help="Show host system information"),
    ] = False,
    go: Annotated[
        bool,
        typer.Option("--go", help="Show Go toolchain and environment"),
    ] = False,
    project: Annotated[
        bool,
        typer.Option("--project", help="Show Go project information"),
    ] = False,
    cache: Annotated[
        bool,
        typer.Option("--cache", help="Show build cache statistics"),
    ] = False,
    all_sections: Annotated[
        bool,
        typer.Option("--all", help="Show all information"),
    ] = False,
    source: Annotated[
        Path,
        typer.Option("--source", help="Go module root"),
    ] = Path("."),
) -> None:
    """Display system, toolchain, project and cache information."""
    from mkgo.builds.cache import CacheStore
    from mkgo.builds.targets import SUPPORTED_PLATFORMS, host_platform
    from mkgo.builds.toolchain import check_toolchain, get_go_env, get_module_name
    from mkgo.errors import ToolchainUnavailableError

    settings = get_settings()
    show_all = all_sections or not (system or go or project or cache)

    if system or show_all:
        host_os, host_arch = host_platform()
        console.print("[bold]System Information:[/bold]")
        console.print(f"  OS:           {platform.system()} {platform.release()}")
        console.print(f"  Platform:     {host_os}/{host_arch}")
        console.print(f"  CPU cores:    {os.cpu_count() or 1}")
        console.print(f"  Python:       {platform.python_version()}")

    if go or show_all:
        console.print("[bold]Go Environment:[/bold]")
        try:
            go_version = check_toolchain(settings.toolchain)
            go_env = get_go_env(settings.toolchain)
        except ToolchainUnavailableError as e:
            console.print(f"  [yellow]{e}[/yellow]")
        else:
            console.print(f"  Go version:   {go_version}")
            console.print(f"  GOPATH:       {go_env['GOPATH'] or 'Not set'}")
            console.print(f"  GOROOT:       {go_env['GOROOT'] or 'Not set'}")
            console.print(f"  GOOS/GOARCH:  {go_env['GOOS']}/{go_env['GOARCH']}")
            console.print(f"  Supported platforms: {len(SUPPORTED_PLATFORMS)}")

    if project or show_all:
        console.print("[bold]Project Information:[/bold]")
        console.print(f"  Directory:    {source.resolve()}")
        console.print(f"  Go module:    {get_module_name(source) or 'Unknown'}")
        console.print(f"  Build output: {settings.output_dir}")

    if cache or show_all:
        cache_stats = CacheStore(settings.cache_dir).stats()
        console.print("[bold]Cache Information:[/bold]")
        console.print(f"  Cache directory: {cache_stats.root}")
        console.print(f"  Cached builds:   {cache_stats.entries}")
        console.print(f"  Cache size:      {cache_stats.size_bytes / 1024 / 1024:.1f} MB")


@app.command("metrics")
def metrics_cmd(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the build performance report from recorded metrics."""
    from mkgo.builds.metrics import load_metrics, summarize_metrics

    settings = get_settings()
    report = summarize_metrics(load_metrics(settings.metrics_dir))

    if report is None:
        if json_output:
            typer.echo("null")
        else:
            console.print("[yellow]No build metrics data available[/yellow]")
        return

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
        return

    console.print("[bold]Build Performance Report:[/bold]")
    console.print(f"  Total builds:             {report.total_builds}")
    console.print(f"  Average duration:         {report.average_duration:.2f}s")
    console.print(f"  Success rate:             {report.success_rate:.1f}%")
    console.print(f"  Average cache efficiency: {report.average_cache_efficiency:.1f}%")
    if report.last_build is not None:
        console.print(f"  Last build:               {report.last_build.isoformat()}")


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings: Settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
        return

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Cache directory:     {settings.cache_dir}")
    console.print(f"  Output directory:    {settings.output_dir}")
    console.print(f"  Metrics directory:   {settings.metrics_dir}")
    console.print()
    console.print("[bold]Build:[/bold]")
    console.print(f"  Toolchain:           {settings.toolchain}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Parallel builds:     {settings.default_parallel}")
    console.print(f"  Build timeout:       {settings.default_timeout}")


if __name__ == "__main__":
    app()
