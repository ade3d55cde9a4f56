"""Go toolchain and project probes.

Precondition checks run once before any target is scheduled: the source
directory must be a Go module and the toolchain must be runnable.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path

from mkgo.errors import InvalidProjectError, ToolchainUnavailableError

logger = logging.getLogger(__name__)

GO_VERSION_PATTERN = re.compile(r"go version go(\d+\.\d+(?:\.\d+)?)")


def validate_go_project(source_dir: Path) -> Path:
    """Check that a directory is a Go module root.

    Args:
        source_dir: Directory to check.

    Returns:
        Path to the go.mod file.

    Raises:
        InvalidProjectError: If go.mod is missing.
    """
    go_mod = source_dir / "go.mod"
    if not go_mod.is_file():
        raise InvalidProjectError(f"Not a Go project (go.mod not found in {source_dir})")
    return go_mod


def get_module_name(source_dir: Path) -> str | None:
    """Read the module path from go.mod, if any."""
    try:
        content = (source_dir / "go.mod").read_text(encoding="utf-8")
    except OSError:
        return None
    match = re.search(r"^module\s+(\S+)", content, re.MULTILINE)
    return match.group(1) if match else None


def check_toolchain(toolchain: str = "go", timeout: int = 30) -> str:
    """Verify the Go toolchain is installed and runnable.

    Args:
        toolchain: Toolchain executable name or path.
        timeout: Probe timeout in seconds.

    Returns:
        Toolchain version (e.g. "1.22.1"), or "unknown" if unparseable.

    Raises:
        ToolchainUnavailableError: If the toolchain is missing or broken.
    """
    executable = shutil.which(toolchain)
    if executable is None:
        raise ToolchainUnavailableError(toolchain, "not found in PATH")

    try:
        result = subprocess.run(
            [executable, "version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except subprocess.TimeoutExpired as e:
        raise ToolchainUnavailableError(toolchain, f"version probe timed out after {timeout}s") from e
    except subprocess.CalledProcessError as e:
        raise ToolchainUnavailableError(toolchain, e.stderr.strip() or str(e)) from e
    except OSError as e:
        raise ToolchainUnavailableError(toolchain, str(e)) from e

    match = GO_VERSION_PATTERN.search(result.stdout)
    version = match.group(1) if match else "unknown"
    logger.debug("Using %s (go %s)", executable, version)
    return version


GO_ENV_KEYS = ("GOPATH", "GOROOT", "GOOS", "GOARCH")


def get_go_env(
    toolchain: str = "go",
    keys: tuple[str, ...] = GO_ENV_KEYS,
    timeout: int = 30,
) -> dict[str, str]:
    """Query `go env` for the given variables.

    Args:
        toolchain: Toolchain executable name or path.
        keys: Variable names to query.
        timeout: Probe timeout in seconds.

    Returns:
        Mapping of variable name to value ("" when unset).

    Raises:
        ToolchainUnavailableError: If the toolchain is missing or broken.
    """
    executable = shutil.which(toolchain)
    if executable is None:
        raise ToolchainUnavailableError(toolchain, "not found in PATH")

    try:
        result = subprocess.run(
            [executable, "env", *keys],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except subprocess.TimeoutExpired as e:
        raise ToolchainUnavailableError(toolchain, f"env probe timed out after {timeout}s") from e
    except subprocess.CalledProcessError as e:
        raise ToolchainUnavailableError(toolchain, e.stderr.strip() or str(e)) from e
    except OSError as e:
        raise ToolchainUnavailableError(toolchain, str(e)) from e

    # One value per line, in request order
    values = result.stdout.splitlines()
    return {key: values[i].strip() if i < len(values) else "" for i, key in enumerate(keys)}


def get_git_hash(source_dir: Path | None = None) -> str:
    """Return the short commit hash of HEAD, or "unknown"."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=source_dir,
            capture_output=True,
            text=True,
            timeout=10,
            check=True,
        )
    except (OSError, subprocess.SubprocessError):
        return "unknown"
    return result.stdout.strip() or "unknown"


__all__ = [
    "GO_ENV_KEYS",
    "check_toolchain",
    "get_git_hash",
    "get_go_env",
    "get_module_name",
    "validate_go_project",
]
