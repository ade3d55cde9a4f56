"""mkgo - Cross-platform Go build orchestrator.

This package resolves build targets, runs `go build` for many OS/architecture
combinations concurrently, and reuses previous outputs from a
content-addressed build cache.
"""

__version__ = "2.0.0"
__all__ = ["__version__"]
