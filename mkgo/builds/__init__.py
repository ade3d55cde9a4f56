"""Build orchestration module.

This module handles:
- Target resolution
- Cache key computation
- The content-addressed build cache
- Running `go build` per target in parallel batches
- Checksum generation and result aggregation
"""

from mkgo.builds.models import BuildConfig
from mkgo.builds.service import build, clean

__all__ = ["BuildConfig", "build", "clean"]
