"""Build service module.

This module provides the high-level build API:
- build(): Main entry point - one BuildConfig in, one BuildResult out
- clean(): Explicit removal of outputs, cache and metrics

Only precondition failures (invalid target, missing go.mod, missing
toolchain) raise. Every per-target failure is reported in the result.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from mkgo.builds.artifacts import write_checksum_files
from mkgo.builds.cache import CacheStore
from mkgo.builds.cache_key import compute_source_hash
from mkgo.builds.models import BuildConfig
from mkgo.builds.runner import run_build
from mkgo.builds.scheduler import ParallelScheduler
from mkgo.builds.targets import resolve_targets
from mkgo.builds.toolchain import check_toolchain, validate_go_project
from mkgo.config import Settings, get_settings
from mkgo.types import BuildResult, BuildTarget, EventSink

logger = logging.getLogger(__name__)


def prepare_targets(config: BuildConfig) -> list[BuildTarget]:
    """Resolve targets and check preconditions before anything runs.

    Args:
        config: Build configuration.

    Returns:
        Resolved build targets.

    Raises:
        InvalidTargetError: If a target is malformed or unsupported.
        InvalidProjectError: If source_dir is not a Go module.
        ToolchainUnavailableError: If the toolchain is missing.
    """
    targets = resolve_targets(config)
    validate_go_project(config.source_dir)
    check_toolchain(config.toolchain)
    return targets


def build(
    config: BuildConfig,
    settings: Settings | None = None,
    on_event: EventSink | None = None,
    targets: list[BuildTarget] | None = None,
) -> BuildResult:
    """Build every target of a configuration, reusing cached binaries.

    This is the main entry point of the orchestration core. It:
    1. Resolves targets and checks preconditions
    2. Optionally cleans the output directory
    3. Computes the source hash once for the whole invocation
    4. Schedules cache lookups and builds in parallel batches
    5. Writes checksums for the successful binaries
    6. Aggregates everything into one BuildResult

    Args:
        config: Build configuration.
        settings: Application settings (cache location).
        on_event: Optional sink for job phase transitions.
        targets: Targets already returned by prepare_targets(). When given,
            resolution and the precondition checks are not repeated.

    Returns:
        BuildResult for the invocation.

    Raises:
        PreconditionError: If the invocation cannot start.
    """
    if settings is None:
        settings = get_settings()

    start = time.monotonic()

    if targets is None:
        targets = prepare_targets(config)

    logger.info("Building %d platform(s)", len(targets))

    if config.clean:
        clean_output_dir(config.output_dir)
    config.output_dir.mkdir(parents=True, exist_ok=True)

    store = CacheStore(settings.cache_dir)
    source_hash = compute_source_hash(
        config.source_dir,
        exclude_dirs=(settings.cache_dir, config.output_dir),
    )

    scheduler = ParallelScheduler(store, executor=run_build, on_event=on_event)
    outcome = scheduler.run(targets, config, source_hash)

    checksums: list[Path] = []
    if config.checksum and outcome.binaries:
        checksums = write_checksum_files(outcome.binaries, config.output_dir)

    result = BuildResult(
        success=not outcome.failures,
        binaries=tuple(outcome.binaries),
        checksums=tuple(checksums),
        failed=tuple(outcome.failed),
        duration=time.monotonic() - start,
        failures=dict(outcome.failures),
        cache_hits=outcome.cache_hits,
        cache_misses=outcome.cache_misses,
    )

    if result.success:
        logger.info("Build succeeded for %d platform(s)", len(result.binaries))
    else:
        logger.error("Build failed for: %s", ", ".join(result.failed))
    return result


def clean_output_dir(output_dir: Path) -> bool:
    """Remove the build output directory.

    Returns:
        True if the directory existed and was removed.
    """
    if not output_dir.exists():
        return False
    shutil.rmtree(output_dir)
    logger.info("Cleaned build directory %s", output_dir)
    return True


@dataclass
class CleanReport:
    """What an explicit clean request removed."""

    removed: list[Path] = field(default_factory=list)


def clean(
    settings: Settings | None = None,
    output_dir: bool = False,
    cache: bool = False,
    metrics: bool = False,
) -> CleanReport:
    """Remove build outputs, the build cache and/or recorded metrics.

    Args:
        settings: Application settings.
        output_dir: Remove the output directory.
        cache: Purge the build cache.
        metrics: Remove recorded metrics.

    Returns:
        CleanReport listing removed directories.
    """
    if settings is None:
        settings = get_settings()

    report = CleanReport()
    if output_dir and clean_output_dir(settings.output_dir):
        report.removed.append(settings.output_dir)
    if cache and CacheStore(settings.cache_dir).purge():
        report.removed.append(settings.cache_dir)
    if metrics and settings.metrics_dir.exists():
        shutil.rmtree(settings.metrics_dir)
        logger.info("Cleaned metrics directory %s", settings.metrics_dir)
        report.removed.append(settings.metrics_dir)
    return report


__all__ = [
    "CleanReport",
    "build",
    "clean",
    "clean_output_dir",
    "prepare_targets",
]
