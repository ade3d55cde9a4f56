"""Error definitions for mkgo.

Every error carries a stable ``code`` for programmatic handling. Errors fall
into two families:

- PreconditionError: environment-level problems detected before any target
  is scheduled. These abort the whole invocation.
- TargetBuildError: failures of a single target's build. These are recorded
  in the build result and never affect sibling targets.

Cache and checksum I/O failures are non-fatal and only logged.
"""

from __future__ import annotations

# Error code constants
INVALID_TARGET = "invalid_target"
INVALID_PROJECT = "invalid_project"
TOOLCHAIN_UNAVAILABLE = "toolchain_unavailable"
BUILD_TIMEOUT = "build_timeout"
BUILD_FAILED = "build_failed"
CACHE_IO = "cache_io"
CHECKSUM_FAILED = "checksum_failed"
INVALID_CONFIG = "invalid_config"


class MkgoError(Exception):
    """Base error for mkgo operations."""

    def __init__(self, message: str, code: str = "mkgo_error") -> None:
        super().__init__(message)
        self.code = code


class PreconditionError(MkgoError):
    """Raised when the invocation cannot start at all."""


class InvalidTargetError(PreconditionError):
    """Raised when a platform string is malformed or unsupported."""

    def __init__(self, platform: str, reason: str | None = None) -> None:
        message = f"Invalid target platform: {platform!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, code=INVALID_TARGET)
        self.platform = platform


class InvalidProjectError(PreconditionError):
    """Raised when the source directory is not a Go module."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=INVALID_PROJECT)


class ToolchainUnavailableError(PreconditionError):
    """Raised when the Go toolchain cannot be found or started."""

    def __init__(self, toolchain: str, detail: str | None = None) -> None:
        message = f"Go toolchain not available: {toolchain}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, code=TOOLCHAIN_UNAVAILABLE)
        self.toolchain = toolchain


class TargetBuildError(MkgoError):
    """Base error for a failed build of one target."""

    def __init__(self, message: str, platform: str, code: str) -> None:
        super().__init__(message, code=code)
        self.platform = platform


class BuildTimeoutError(TargetBuildError):
    """Raised when a toolchain invocation exceeds its timeout."""

    def __init__(self, platform: str, timeout: float) -> None:
        super().__init__(
            f"Build for {platform} timed out after {timeout:g} seconds",
            platform=platform,
            code=BUILD_TIMEOUT,
        )
        self.timeout = timeout


class BuildProcessError(TargetBuildError):
    """Raised when the toolchain exits with a nonzero status."""

    def __init__(self, platform: str, exit_code: int, output: str = "") -> None:
        message = f"Build for {platform} failed with exit code {exit_code}"
        if output:
            message = f"{message}: {output}"
        super().__init__(message, platform=platform, code=BUILD_FAILED)
        self.exit_code = exit_code
        self.output = output


class CacheIOError(MkgoError):
    """Cache read/write failure. Always degraded to a cache miss."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=CACHE_IO)


class ChecksumError(MkgoError):
    """Checksum computation failure for one binary."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=CHECKSUM_FAILED)


__all__ = [
    "BUILD_FAILED",
    "BUILD_TIMEOUT",
    "CACHE_IO",
    "CHECKSUM_FAILED",
    "INVALID_PROJECT",
    "INVALID_TARGET",
    "TOOLCHAIN_UNAVAILABLE",
    "BuildProcessError",
    "BuildTimeoutError",
    "CacheIOError",
    "ChecksumError",
    "InvalidProjectError",
    "InvalidTargetError",
    "MkgoError",
    "PreconditionError",
    "TargetBuildError",
    "ToolchainUnavailableError",
]
