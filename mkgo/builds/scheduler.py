"""Parallel batch scheduling of build jobs.

Targets are split into consecutive batches of ``min(parallel, cpu count)``.
Batches run strictly one after another; inside a batch every job runs on its
own worker thread and the scheduler waits for all of them to finish before
starting the next batch. A failed job never cancels its siblings.

Each job walks through:

    PENDING -> CACHE_HIT -> RESTORED
    PENDING -> CACHE_MISS -> BUILDING -> BUILT -> CACHE_PERSISTED
                                      -> BUILD_FAILED

BUILT is terminal when persisting is skipped or the cache write fails.

Job results travel back through futures and are aggregated only by the
scheduling thread, so no collector is shared between workers.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from mkgo.builds.cache import CacheStore
from mkgo.builds.cache_key import compute_cache_key, compute_config_hash, is_cacheable
from mkgo.builds.models import BuildConfig
from mkgo.builds.runner import run_build
from mkgo.errors import MkgoError
from mkgo.types import BuildTarget, EventSink, JobEvent, JobPhase

logger = logging.getLogger(__name__)

Executor = Callable[[BuildTarget, BuildConfig], Path]


@dataclass
class BuildJob:
    """Runtime state of one target's build.

    Attributes:
        target: Build target.
        config: Shared build configuration.
        phase: Current phase.
        cache_key: Cache key, once computed.
        error: Failure reason, if the job failed.
        output_path: Produced binary, if the job succeeded.
        cache_hit: Whether the binary was restored from cache.
    """

    target: BuildTarget
    config: BuildConfig
    phase: JobPhase = JobPhase.PENDING
    cache_key: str | None = None
    error: str | None = None
    output_path: Path | None = None
    cache_hit: bool = False

    @property
    def succeeded(self) -> bool:
        """Whether the job ended with a usable binary."""
        return self.phase in (JobPhase.RESTORED, JobPhase.BUILT, JobPhase.CACHE_PERSISTED)


@dataclass
class ScheduleOutcome:
    """Aggregated outcome of all scheduled jobs."""

    jobs: list[BuildJob] = field(default_factory=list)
    binaries: list[Path] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    cache_hits: int = 0
    cache_misses: int = 0

    @property
    def failed(self) -> list[str]:
        """Failed platform labels in target order."""
        return list(self.failures)


def batch_size(parallel: int, cpu_count: int | None = None) -> int:
    """Compute the effective batch size.

    Args:
        parallel: Requested parallelism.
        cpu_count: Available cores (detected when None).

    Returns:
        min(parallel, cpu_count), at least 1.
    """
    if cpu_count is None:
        cpu_count = os.cpu_count() or 1
    return max(1, min(parallel, cpu_count))


def partition(targets: Sequence[BuildTarget], size: int) -> list[list[BuildTarget]]:
    """Split targets into consecutive batches of at most `size`."""
    return [list(targets[i : i + size]) for i in range(0, len(targets), size)]


class ParallelScheduler:
    """Drives cache lookup, build and cache store for batches of targets.

    Args:
        store: Cache store shared by all jobs.
        executor: Callable building one target; defaults to `run_build`.
        on_event: Optional sink receiving every job phase transition. It may
            be called concurrently from worker threads.
        cpu_count: Override for the detected core count.
    """

    def __init__(
        self,
        store: CacheStore,
        executor: Executor = run_build,
        on_event: EventSink | None = None,
        cpu_count: int | None = None,
    ) -> None:
        self.store = store
        self.executor = executor
        self.on_event = on_event
        self.cpu_count = cpu_count

    def _transition(self, job: BuildJob, phase: JobPhase, final: bool = False) -> None:
        job.phase = phase
        if self.on_event is None:
            return
        try:
            self.on_event(
                JobEvent(
                    platform_label=job.target.platform_label,
                    phase=phase,
                    cache_key=job.cache_key,
                    error=job.error,
                    final=final,
                )
            )
        except Exception:
            logger.exception("Event sink failed for %s", job.target.platform_label)

    def run_job(self, job: BuildJob, source_hash: str, config_hash: str) -> BuildJob:
        """Run one job to a terminal phase. Never raises."""
        target = job.target
        config = job.config
        cacheable = is_cacheable(source_hash)
        job.cache_key = compute_cache_key(target, source_hash, config_hash)

        try:
            if cacheable and not config.no_cache and self.store.lookup(
                job.cache_key, Path(target.output_path)
            ):
                job.cache_hit = True
                job.output_path = Path(target.output_path)
                self._transition(job, JobPhase.CACHE_HIT)
                self._transition(job, JobPhase.RESTORED, final=True)
                logger.info("Cached: %s", job.output_path.name)
                return job

            self._transition(job, JobPhase.CACHE_MISS)
            self._transition(job, JobPhase.BUILDING)
            logger.debug("Building: %s -> %s", target.platform_label, target.output_path)
            job.output_path = self.executor(target, config)
        except MkgoError as e:
            job.error = str(e)
            job.output_path = None
            self._transition(job, JobPhase.BUILD_FAILED, final=True)
            logger.error("Failed %s: %s", target.platform_label, e)
            return job
        except Exception as e:
            job.error = f"{type(e).__name__}: {e}"
            job.output_path = None
            self._transition(job, JobPhase.BUILD_FAILED, final=True)
            logger.exception("Failed %s", target.platform_label)
            return job

        persisted = cacheable and self.store.store(job.cache_key, job.output_path)
        self._transition(job, JobPhase.BUILT, final=not persisted)
        if persisted:
            self._transition(job, JobPhase.CACHE_PERSISTED, final=True)
        logger.info("Built: %s", job.output_path.name)
        return job

    def run(
        self,
        targets: Sequence[BuildTarget],
        config: BuildConfig,
        source_hash: str,
    ) -> ScheduleOutcome:
        """Build all targets in sequential batches.

        Args:
            targets: Resolved targets.
            config: Shared build configuration.
            source_hash: Source hash computed once for this invocation.

        Returns:
            ScheduleOutcome with binaries, failures and cache statistics.
        """
        outcome = ScheduleOutcome()
        if not targets:
            return outcome

        config_hash = compute_config_hash(config)
        size = batch_size(config.parallel, self.cpu_count)
        batches = partition(targets, size)
        logger.info(
            "Building %d target(s) in %d batch(es) of up to %d",
            len(targets),
            len(batches),
            size,
        )

        for index, batch in enumerate(batches, start=1):
            logger.debug(
                "Starting batch %d/%d: %s",
                index,
                len(batches),
                ", ".join(t.platform_label for t in batch),
            )
            jobs = [BuildJob(target=t, config=config) for t in batch]
            with ThreadPoolExecutor(
                max_workers=len(jobs), thread_name_prefix="mkgo-build"
            ) as pool:
                futures = [
                    pool.submit(self.run_job, job, source_hash, config_hash)
                    for job in jobs
                ]
                # Collected in submission order so results follow target order
                finished = [future.result() for future in futures]

            for job in finished:
                outcome.jobs.append(job)
                if job.cache_hit:
                    outcome.cache_hits += 1
                else:
                    outcome.cache_misses += 1
                if job.succeeded and job.output_path is not None:
                    outcome.binaries.append(job.output_path)
                else:
                    outcome.failures[job.target.platform_label] = job.error or "unknown error"

        return outcome


__all__ = [
    "BuildJob",
    "Executor",
    "ParallelScheduler",
    "ScheduleOutcome",
    "batch_size",
    "partition",
]
