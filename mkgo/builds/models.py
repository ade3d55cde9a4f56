"""Build configuration model.

BuildConfig is the single validated, immutable value that carries every build
parameter into the orchestration core. It is constructed once at the boundary
(CLI or API caller) and shared read-only by all concurrent build jobs.
"""

import re
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

BINARY_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.\-]+$")
TIMESTAMP_PATTERN = re.compile(r"^\d{8}T\d{6}$")


def default_timestamp() -> str:
    """Return the current UTC time as a compact ISO timestamp."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")


class BuildConfig(BaseModel):
    """Immutable build parameters for one invocation.

    Attributes:
        platforms: Explicit "os/arch" platform strings.
        os_list: Target operating systems (crossed with arch_list).
        arch_list: Target architectures (crossed with os_list).
        all_platforms: Build every supported platform.
        ldflags: Extra linker flags, whitespace separated.
        tags: Go build tags.
        cgo: Enable cgo.
        race: Enable the race detector.
        static: Link statically.
        strip: Strip symbol tables and DWARF (-s -w).
        debug: Disable optimizations and inlining.
        version: Application version embedded in the binary.
        build_version: Optional build metadata version.
        timestamp: Compact UTC build time (YYYYMMDDTHHMMSS).
        git_hash: Commit hash embedded in the binary.
        source_dir: Go module root.
        output_dir: Directory receiving binaries and checksums.
        binary_name: Base name of produced binaries.
        timeout: Per-target build timeout in seconds.
        parallel: Requested number of concurrent builds.
        no_cache: Bypass cache lookups.
        clean: Remove the output directory before building.
        checksum: Generate checksum files.
        verbose: Verbose output.
        toolchain: Go toolchain executable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Target directives
    platforms: tuple[str, ...] = ()
    os_list: tuple[str, ...] = ()
    arch_list: tuple[str, ...] = ()
    all_platforms: bool = False

    # Compiler options
    ldflags: str = ""
    tags: tuple[str, ...] = ()
    cgo: bool = False
    race: bool = False
    static: bool = False
    strip: bool = True
    debug: bool = False

    # Embedded metadata
    version: str = Field(default="1.0.0", min_length=1)
    build_version: str = ""
    timestamp: str = Field(default_factory=default_timestamp)
    git_hash: str = "unknown"

    # Layout
    source_dir: Path = Path(".")
    output_dir: Path = Path("dist")
    binary_name: str = "app"

    # Execution
    timeout: float = Field(default=300, gt=0)
    parallel: int = Field(default=2, ge=1)
    no_cache: bool = False
    clean: bool = True
    checksum: bool = True
    verbose: bool = False
    toolchain: str = Field(default="go", min_length=1)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: object) -> object:
        """Accept tags as a comma-separated string."""
        if v is None:
            return ()
        if isinstance(v, str):
            return tuple(t.strip() for t in v.split(",") if t.strip())
        return v

    @field_validator("binary_name")
    @classmethod
    def validate_binary_name(cls, v: str) -> str:
        """Validate binary name contains no path separators."""
        if not BINARY_NAME_PATTERN.match(v):
            raise ValueError(
                f"binary_name must match {BINARY_NAME_PATTERN.pattern}, got '{v}'"
            )
        return v

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        """Validate timestamp is compact ISO (YYYYMMDDTHHMMSS)."""
        if not TIMESTAMP_PATTERN.match(v):
            raise ValueError(f"timestamp must look like 20240101T120000, got '{v}'")
        return v

    @property
    def build_date(self) -> str:
        """Date part of the timestamp (YYYYMMDD), used in output names."""
        return self.timestamp[:8]


__all__ = ["BuildConfig", "default_timestamp"]
