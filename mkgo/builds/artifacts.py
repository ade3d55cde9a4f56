"""Checksum generation for built binaries.

This module handles:
- Computing SHA-256 checksums of binaries
- Writing the aggregate checksums.txt manifest
- Writing one .sha256 file per binary

Both file kinds use the `sha256sum` line format "<hash>  <filename>", so
they can be verified with `sha256sum -c`.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence
from pathlib import Path

from mkgo.errors import ChecksumError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "checksums.txt"
INDIVIDUAL_DIR = "checksums"
INDIVIDUAL_SUFFIX = ".sha256"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def checksum_line(digest: str, filename: str) -> str:
    """Format one checksum line."""
    return f"{digest}  {filename}"


def parse_checksum_file(path: Path) -> dict[str, str]:
    """Parse a checksum file into a filename -> digest mapping."""
    entries: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        digest, _, filename = line.partition("  ")
        entries[filename] = digest
    return entries


def compute_checksums(binaries: Sequence[Path]) -> dict[Path, str]:
    """Compute checksums for binaries, skipping those that cannot be read.

    Args:
        binaries: Binary paths.

    Returns:
        Mapping of binary path to hex digest, in input order.
    """
    checksums: dict[Path, str] = {}
    for binary in binaries:
        try:
            checksums[binary] = compute_file_hash(binary)
        except OSError as e:
            err = ChecksumError(f"Could not checksum {binary}: {e}")
            logger.warning("%s; excluded from manifest", err)
    return checksums


def write_checksum_files(binaries: Sequence[Path], output_dir: Path) -> list[Path]:
    """Write the checksum manifest and per-binary checksum files.

    Failures are logged and never raised; a binary whose checksum cannot be
    computed is left out.

    Args:
        binaries: Successfully produced binaries.
        output_dir: Build output directory.

    Returns:
        Written files: the manifest first, then the individual files.
    """
    checksums = compute_checksums(binaries)
    written: list[Path] = []

    manifest_path = output_dir / MANIFEST_NAME
    lines = [checksum_line(digest, path.name) for path, digest in checksums.items()]
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        manifest_path.write_text("\n".join(lines) + "\n" if lines else "", encoding="utf-8")
        written.append(manifest_path)
    except OSError as e:
        logger.warning("%s", ChecksumError(f"Could not write {manifest_path}: {e}"))

    individual_dir = output_dir / INDIVIDUAL_DIR
    for path, digest in checksums.items():
        individual_path = individual_dir / f"{path.name}{INDIVIDUAL_SUFFIX}"
        try:
            individual_dir.mkdir(parents=True, exist_ok=True)
            individual_path.write_text(
                checksum_line(digest, path.name) + "\n", encoding="utf-8"
            )
            written.append(individual_path)
        except OSError as e:
            logger.warning("%s", ChecksumError(f"Could not write {individual_path}: {e}"))

    logger.info("Checksums generated for %d binaries", len(checksums))
    return written


__all__ = [
    "HASH_CHUNK_SIZE",
    "INDIVIDUAL_DIR",
    "MANIFEST_NAME",
    "checksum_line",
    "compute_checksums",
    "compute_file_hash",
    "parse_checksum_file",
    "write_checksum_files",
]
