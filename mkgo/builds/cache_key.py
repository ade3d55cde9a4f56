"""Cache key computation for builds.

This module handles:
- Deterministic hashing of the Go source tree
- Canonical configuration snapshot and hash
- Composing per-target cache keys

A cache key is "<os/arch>-<source hash>-<config hash>". The source hash is
computed once per invocation and shared by every target, so any source change
invalidates the cache for all platforms at once.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mkgo.builds.models import BuildConfig
    from mkgo.types import BuildTarget

logger = logging.getLogger(__name__)

# Schema version for cache key format; bump when cache key format changes
CACHE_KEY_SCHEMA_VERSION = "1"

# Returned when the source tree cannot be read; keys carrying it never hit
UNKNOWN_SOURCE_HASH = "unknown"

HASH_LENGTH = 16

SOURCE_SUFFIXES = (".go",)
SOURCE_FILENAMES = ("go.mod", "go.sum")

# Config fields that do not change the produced binary
NON_OUTPUT_FIELDS = frozenset(
    {
        "platforms",
        "os_list",
        "arch_list",
        "all_platforms",
        "source_dir",
        "output_dir",
        "timestamp",
        "timeout",
        "parallel",
        "no_cache",
        "clean",
        "checksum",
        "verbose",
    }
)


def iter_source_files(
    source_dir: Path,
    exclude_dirs: Iterable[Path] = (),
) -> Iterator[Path]:
    """Yield relevant Go source files under a directory in sorted order.

    Hidden directories and the excluded directories are skipped.

    Args:
        source_dir: Go module root.
        exclude_dirs: Directories to skip (e.g. cache root, output dir).

    Yields:
        Source file paths, sorted by relative POSIX path.
    """
    excluded = {p.resolve() for p in exclude_dirs}
    root = source_dir.resolve()
    found: list[tuple[str, Path]] = []

    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if any(part.startswith(".") for part in rel.parts[:-1]):
            continue
        if any(parent in excluded for parent in path.parents):
            continue
        if not path.is_file():
            continue
        if path.suffix in SOURCE_SUFFIXES or path.name in SOURCE_FILENAMES:
            found.append((rel.as_posix(), path))

    for _, path in sorted(found):
        yield path


def compute_source_hash(
    source_dir: Path,
    exclude_dirs: Iterable[Path] = (),
) -> str:
    """Compute a deterministic hash of the Go source tree.

    The hash is computed over sorted relative paths and file contents.
    On any I/O error the sentinel UNKNOWN_SOURCE_HASH is returned instead
    of raising, so callers degrade to an uncached build.

    Args:
        source_dir: Go module root.
        exclude_dirs: Directories to skip.

    Returns:
        Truncated SHA-256 hex digest, or UNKNOWN_SOURCE_HASH.
    """
    hasher = hashlib.sha256()
    root = source_dir.resolve()
    count = 0

    try:
        for path in iter_source_files(source_dir, exclude_dirs):
            # Hash: path\0content\0
            hasher.update(path.relative_to(root).as_posix().encode("utf-8"))
            hasher.update(b"\0")
            hasher.update(path.read_bytes())
            hasher.update(b"\0")
            count += 1
    except OSError as e:
        logger.warning("Could not hash source tree %s: %s", source_dir, e)
        return UNKNOWN_SOURCE_HASH

    digest = hasher.hexdigest()[:HASH_LENGTH]
    logger.debug("Source hash %s over %d file(s)", digest, count)
    return digest


def normalize_config_snapshot(config: BuildConfig) -> dict[str, Any]:
    """Create the config snapshot that feeds the config hash.

    Only fields that affect the produced binary are kept.

    Args:
        config: Build configuration.

    Returns:
        JSON-serializable dictionary.
    """
    snapshot = config.model_dump(mode="json", exclude=set(NON_OUTPUT_FIELDS))
    snapshot["tags"] = sorted(snapshot.get("tags", []))
    snapshot["schema_version"] = CACHE_KEY_SCHEMA_VERSION
    return snapshot


def compute_config_hash(config: BuildConfig) -> str:
    """Compute a hash of the build configuration.

    Args:
        config: Build configuration.

    Returns:
        Truncated SHA-256 hex digest of the canonical JSON snapshot.
    """
    # Serialize to canonical JSON (sorted keys, no extra whitespace)
    canonical_json = json.dumps(
        normalize_config_snapshot(config),
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def compute_cache_key(target: BuildTarget, source_hash: str, config_hash: str) -> str:
    """Compose the cache key for one target.

    Args:
        target: Build target.
        source_hash: Shared source hash of this invocation.
        config_hash: Shared config hash of this invocation.

    Returns:
        "<os/arch>-<source hash>-<config hash>".
    """
    return f"{target.platform_label}-{source_hash}-{config_hash}"


def is_cacheable(source_hash: str) -> bool:
    """Whether keys built from this source hash may be looked up or stored."""
    return source_hash != UNKNOWN_SOURCE_HASH


__all__ = [
    "CACHE_KEY_SCHEMA_VERSION",
    "NON_OUTPUT_FIELDS",
    "UNKNOWN_SOURCE_HASH",
    "compute_cache_key",
    "compute_config_hash",
    "compute_source_hash",
    "is_cacheable",
    "iter_source_files",
    "normalize_config_snapshot",
]
