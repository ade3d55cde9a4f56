"""Content-addressed build cache.

Each entry is a single file ``<root>/<safe key>.bin`` holding a previously
built binary. Existence of the file is the only metadata; there is no index.

Lookups and stores never raise: I/O problems are logged and degrade to a
cache miss. Two concurrent jobs never share a key within one invocation, so
atomic single-file writes are the only synchronization needed.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from mkgo.errors import CacheIOError
from mkgo.types import CacheStats

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".bin"


def safe_key(cache_key: str) -> str:
    """Turn a cache key into a flat filename component."""
    return cache_key.replace(":", "_").replace("/", "_")


class CacheStore:
    """Key to binary store rooted at a fixed directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, cache_key: str) -> Path:
        """Return the entry path for a cache key."""
        return self.root / f"{safe_key(cache_key)}{CACHE_SUFFIX}"

    def lookup(self, cache_key: str, destination: Path) -> bool:
        """Restore a cached binary to a destination path.

        Args:
            cache_key: Cache key to look up.
            destination: Where to copy the cached binary.

        Returns:
            True on a cache hit (binary copied), False on a miss.
        """
        entry = self.path_for(cache_key)
        try:
            if not entry.is_file():
                return False
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(entry, destination)
        except OSError as e:
            err = CacheIOError(f"Cache lookup failed for {cache_key}: {e}")
            logger.warning("%s; treating as miss", err)
            return False

        logger.info("Cache hit: %s", destination.name)
        return True

    def store(self, cache_key: str, source_path: Path) -> bool:
        """Persist a freshly built binary under a cache key.

        The entry is written to a temporary file first and moved into place,
        so readers never observe a partial entry.

        Args:
            cache_key: Cache key to store under.
            source_path: Path of the built binary.

        Returns:
            True if the entry was written.
        """
        entry = self.path_for(cache_key)
        tmp_name: str | None = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{entry.stem}.", suffix=".tmp", dir=self.root
            )
            os.close(fd)
            shutil.copy2(source_path, tmp_name)
            os.replace(tmp_name, entry)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            err = CacheIOError(f"Cache store failed for {cache_key}: {e}")
            logger.warning("%s", err)
            return False

        logger.debug("Stored %s in cache as %s", source_path.name, entry.name)
        return True

    def purge(self) -> bool:
        """Delete the entire cache.

        Returns:
            True if a cache directory existed and was removed.
        """
        if not self.root.exists():
            return False
        shutil.rmtree(self.root)
        logger.info("Build cache cleaned: %s", self.root)
        return True

    def stats(self) -> CacheStats:
        """Count cache entries and their total size."""
        entries = 0
        size_bytes = 0
        if self.root.is_dir():
            for path in self.root.glob(f"*{CACHE_SUFFIX}"):
                if path.is_file():
                    entries += 1
                    size_bytes += path.stat().st_size
        return CacheStats(root=self.root, entries=entries, size_bytes=size_bytes)


__all__ = ["CACHE_SUFFIX", "CacheStore", "safe_key"]
