"""Shared type definitions for mkgo.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType


class JobPhase(str, Enum):
    """Phase of a single target's build job."""

    PENDING = "pending"
    CACHE_HIT = "cache_hit"
    RESTORED = "restored"
    CACHE_MISS = "cache_miss"
    BUILDING = "building"
    BUILT = "built"
    CACHE_PERSISTED = "cache_persisted"
    BUILD_FAILED = "build_failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions can follow this phase.

        BUILT is not listed: it ends a job only when the cache store was
        skipped or failed, which the scheduler reports via JobEvent.final.
        """
        return self in TERMINAL_PHASES


TERMINAL_PHASES = frozenset({JobPhase.RESTORED, JobPhase.CACHE_PERSISTED, JobPhase.BUILD_FAILED})


@dataclass(frozen=True)
class BuildTarget:
    """A concrete OS/architecture build target.

    Attributes:
        os: Target operating system (GOOS).
        arch: Target architecture (GOARCH).
        output_path: Where the binary is written.
        platform_label: Canonical "os/arch" label.
    """

    os: str
    arch: str
    output_path: Path
    platform_label: str


@dataclass(frozen=True)
class JobEvent:
    """A phase transition of one build job, delivered to an event sink.

    Exactly one event per job has ``final`` set: the job's last transition.
    """

    platform_label: str
    phase: JobPhase
    cache_key: str | None = None
    error: str | None = None
    final: bool = False


EventSink = Callable[[JobEvent], None]


@dataclass(frozen=True)
class BuildResult:
    """Aggregate result of one build invocation.

    Attributes:
        success: True iff no target failed.
        binaries: Paths of successfully produced binaries, in target order.
        checksums: Checksum files written (manifest first).
        failed: Platform labels of failed targets.
        duration: Wall-clock duration in seconds.
        failures: Failure reason per failed platform label (read-only).
        cache_hits: Number of targets restored from cache.
        cache_misses: Number of targets that had to be built.
    """

    success: bool
    binaries: tuple[Path, ...] = ()
    checksums: tuple[Path, ...] = ()
    failed: tuple[str, ...] = ()
    duration: float = 0.0
    failures: Mapping[str, str] = field(default_factory=dict, hash=False)
    cache_hits: int = 0
    cache_misses: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "failures", MappingProxyType(dict(self.failures)))

    @property
    def cache_efficiency(self) -> float:
        """Percentage of looked-up targets served from cache."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total * 100


@dataclass(frozen=True)
class CacheStats:
    """Summary of the build cache contents."""

    root: Path
    entries: int
    size_bytes: int


__all__ = [
    "TERMINAL_PHASES",
    "BuildResult",
    "BuildTarget",
    "CacheStats",
    "EventSink",
    "JobEvent",
    "JobPhase",
]
