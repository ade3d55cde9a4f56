"""Build metrics recording and reporting.

One JSON file is written per build invocation into the metrics directory.
The report aggregates all recorded files.
"""

from __future__ import annotations

import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from mkgo.types import BuildResult

logger = logging.getLogger(__name__)


class BuildMetrics(BaseModel):
    """Metrics of one build invocation.

    Attributes:
        timestamp: Unix time in milliseconds when the metrics were recorded.
        duration: Build duration in seconds.
        targets: Number of resolved targets.
        success: Whether every target succeeded.
        cache_efficiency: Percentage of targets restored from cache.
        platform: Host platform (sys.platform).
    """

    timestamp: int
    duration: float = Field(ge=0)
    targets: int = Field(ge=0)
    success: bool
    cache_efficiency: float = Field(default=0.0, ge=0, le=100)
    platform: str


class MetricsReport(BaseModel):
    """Aggregate of recorded build metrics."""

    total_builds: int
    average_duration: float
    success_rate: float
    average_cache_efficiency: float
    last_build: datetime | None = None


def metrics_from_result(result: BuildResult, target_count: int) -> BuildMetrics:
    """Build a metrics record from a build result."""
    return BuildMetrics(
        timestamp=int(time.time() * 1000),
        duration=result.duration,
        targets=target_count,
        success=result.success,
        cache_efficiency=result.cache_efficiency,
        platform=sys.platform,
    )


def record_build_metrics(
    result: BuildResult,
    target_count: int,
    metrics_dir: Path,
) -> Path:
    """Write metrics of one build to the metrics directory.

    Args:
        result: Build result.
        target_count: Number of resolved targets.
        metrics_dir: Metrics directory.

    Returns:
        Path to the written metrics file.
    """
    metrics = metrics_from_result(result, target_count)
    metrics_dir.mkdir(parents=True, exist_ok=True)
    path = metrics_dir / f"build-{metrics.timestamp}.json"
    path.write_text(metrics.model_dump_json(indent=2), encoding="utf-8")
    logger.debug("Wrote build metrics to %s", path)
    return path


def load_metrics(metrics_dir: Path) -> list[BuildMetrics]:
    """Load all recorded metrics, skipping unreadable files."""
    if not metrics_dir.is_dir():
        return []

    metrics: list[BuildMetrics] = []
    for path in sorted(metrics_dir.glob("*.json")):
        try:
            metrics.append(BuildMetrics.model_validate_json(path.read_bytes()))
        except (OSError, ValidationError) as e:
            logger.warning("Skipping metrics file %s: %s", path.name, e)
    return metrics


def summarize_metrics(metrics: list[BuildMetrics]) -> MetricsReport | None:
    """Summarize recorded metrics.

    Returns:
        MetricsReport, or None when nothing was recorded.
    """
    if not metrics:
        return None

    total = len(metrics)
    last = max(m.timestamp for m in metrics)
    return MetricsReport(
        total_builds=total,
        average_duration=sum(m.duration for m in metrics) / total,
        success_rate=sum(1 for m in metrics if m.success) / total * 100,
        average_cache_efficiency=sum(m.cache_efficiency for m in metrics) / total,
        last_build=datetime.fromtimestamp(last / 1000, tz=timezone.utc),
    )


__all__ = [
    "BuildMetrics",
    "MetricsReport",
    "load_metrics",
    "metrics_from_result",
    "record_build_metrics",
    "summarize_metrics",
]
