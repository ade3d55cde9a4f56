"""Build runner for executing `go build` for one target.

This module handles:
- Composing linker flags that embed version/build-time/commit metadata
- Composing the `go build` command line
- Cross-compilation environment (GOOS, GOARCH, CGO_ENABLED)
- Executing builds with subprocess and enforcing timeouts
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from mkgo.errors import (
    BuildProcessError,
    BuildTimeoutError,
    ToolchainUnavailableError,
)

if TYPE_CHECKING:
    from mkgo.builds.models import BuildConfig
    from mkgo.types import BuildTarget

logger = logging.getLogger(__name__)

# Number of trailing output characters kept in failure messages
OUTPUT_TAIL_CHARS = 2000

EXECUTABLE_MODE = 0o755


def compose_ldflags(config: BuildConfig) -> str:
    """Compose the -ldflags value for a build.

    Args:
        config: Build configuration.

    Returns:
        Space-joined linker flags.
    """
    flags = [
        f"-X main.Version={config.version}",
        f"-X main.BuildDate={config.timestamp}",
        f"-X main.CommitHash={config.git_hash}",
    ]
    if config.build_version:
        flags.append(f"-X main.BuildVersion={config.build_version}")

    # Debug builds keep symbols for the debugger
    if config.strip and not config.debug:
        flags.extend(["-s", "-w"])

    if config.static:
        flags.append('-extldflags "-static"')

    if config.ldflags:
        flags.extend(config.ldflags.split())

    return " ".join(flags)


def compose_build_command(target: BuildTarget, config: BuildConfig) -> list[str]:
    """Compose the `go build` command for one target.

    Args:
        target: Build target.
        config: Build configuration.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [
        config.toolchain,
        "build",
        "-o",
        str(Path(target.output_path).absolute()),
        "-ldflags",
        compose_ldflags(config),
    ]

    if config.tags:
        cmd.extend(["-tags", ",".join(config.tags)])

    if config.race:
        cmd.append("-race")

    cmd.append("-trimpath")

    if config.debug:
        cmd.extend(["-gcflags", "all=-N -l"])

    cmd.append(".")
    return cmd


def compose_build_env(target: BuildTarget, config: BuildConfig) -> dict[str, str]:
    """Compose the environment for one target's build.

    Returns a copy of the current environment; os.environ is never modified.

    Args:
        target: Build target.
        config: Build configuration.

    Returns:
        Environment mapping for subprocess.
    """
    env = dict(os.environ)
    env.update(
        {
            "GOOS": target.os,
            "GOARCH": target.arch,
            "CGO_ENABLED": "1" if config.cgo else "0",
        }
    )
    return env


def _tail(output: str | bytes | None) -> str:
    if not output:
        return ""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output.strip()[-OUTPUT_TAIL_CHARS:]


def run_build(target: BuildTarget, config: BuildConfig) -> Path:
    """Execute `go build` for one target.

    Args:
        target: Build target.
        config: Build configuration.

    Returns:
        Path to the produced binary.

    Raises:
        BuildTimeoutError: If the build exceeds config.timeout (process killed).
        BuildProcessError: If the toolchain exits with a nonzero status.
        ToolchainUnavailableError: If the toolchain cannot be started.
    """
    output_path = Path(target.output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = compose_build_command(target, config)
    env = compose_build_env(target, config)

    logger.debug(
        "Executing build for %s: GOOS=%s GOARCH=%s CGO_ENABLED=%s %s",
        target.platform_label,
        env["GOOS"],
        env["GOARCH"],
        env["CGO_ENABLED"],
        shlex.join(cmd),
    )

    try:
        result = subprocess.run(
            cmd,
            cwd=config.source_dir,
            env=env,
            capture_output=True,
            text=True,
            timeout=config.timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        logger.error("Build for %s timed out after %ss", target.platform_label, config.timeout)
        raise BuildTimeoutError(target.platform_label, config.timeout) from e
    except OSError as e:
        raise ToolchainUnavailableError(config.toolchain, str(e)) from e

    if result.returncode != 0:
        output = _tail(result.stderr) or _tail(result.stdout)
        logger.error(
            "Build for %s failed with exit code %d", target.platform_label, result.returncode
        )
        raise BuildProcessError(target.platform_label, result.returncode, output)

    if target.os != "windows":
        output_path.chmod(EXECUTABLE_MODE)

    return output_path


__all__ = [
    "compose_build_command",
    "compose_build_env",
    "compose_ldflags",
    "run_build",
]
