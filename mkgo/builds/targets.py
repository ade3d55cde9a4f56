"""Build target resolution.

This module handles:
- Parsing and validating "os/arch" platform strings
- Expanding target directives (explicit list, OS x arch, all, host default)
- Synthesizing output paths for each target
- Deduplicating targets by platform label
"""

from __future__ import annotations

import logging
import platform as host
from pathlib import Path
from typing import TYPE_CHECKING

from mkgo.errors import InvalidTargetError
from mkgo.types import BuildTarget

if TYPE_CHECKING:
    from mkgo.builds.models import BuildConfig

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS: tuple[str, ...] = (
    "linux/amd64",
    "linux/arm64",
    "linux/386",
    "darwin/amd64",
    "darwin/arm64",
    "windows/amd64",
    "windows/arm64",
    "windows/386",
)
SUPPORTED_ARCHS: tuple[str, ...] = ("amd64", "arm64", "386", "arm")

# Architecture aliases (Python/Node/uname naming -> Go naming)
ARCH_ALIASES = {
    "x64": "amd64",
    "x86_64": "amd64",
    "ia32": "386",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
}

OS_ALIASES = {
    "macos": "darwin",
    "win32": "windows",
}


def normalize_arch(arch: str) -> str:
    """Map an architecture alias to its Go name."""
    arch = arch.strip().lower()
    return ARCH_ALIASES.get(arch, arch)


def normalize_os(os_name: str) -> str:
    """Map an OS alias to its Go name."""
    os_name = os_name.strip().lower()
    return OS_ALIASES.get(os_name, os_name)


def host_platform() -> tuple[str, str]:
    """Return the host's (os, arch) in Go naming."""
    return normalize_os(host.system()), normalize_arch(host.machine())


def parse_platform(platform: str) -> tuple[str, str]:
    """Parse an "os/arch" string into a supported (os, arch) pair.

    Args:
        platform: Platform string such as "linux/amd64".

    Returns:
        Tuple of (os, arch).

    Raises:
        InvalidTargetError: If the string is malformed or unsupported.
    """
    parts = platform.strip().split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidTargetError(platform, "expected exactly one os/arch pair")

    os_name, arch = normalize_os(parts[0]), normalize_arch(parts[1])
    if f"{os_name}/{arch}" not in SUPPORTED_PLATFORMS:
        raise InvalidTargetError(platform, "not a supported platform")
    return os_name, arch


def platforms_from_directives(config: BuildConfig) -> list[str]:
    """Expand the target directives of a config into platform strings.

    Precedence: all platforms, explicit platforms, OS x arch cross product,
    OS list with host arch, arch list with host OS, host platform.

    Args:
        config: Build configuration.

    Returns:
        Platform strings, possibly with duplicates.
    """
    if config.all_platforms:
        return list(SUPPORTED_PLATFORMS)

    if config.platforms:
        # Allow comma-separated values inside a single directive
        return [p for entry in config.platforms for p in entry.split(",") if p.strip()]

    host_os, host_arch = host_platform()

    if config.os_list and config.arch_list:
        return [
            f"{os_name}/{normalize_arch(arch)}"
            for os_name in config.os_list
            for arch in config.arch_list
        ]
    if config.os_list:
        return [f"{os_name}/{host_arch}" for os_name in config.os_list]
    if config.arch_list:
        return [f"{host_os}/{normalize_arch(arch)}" for arch in config.arch_list]

    return [f"{host_os}/{host_arch}"]


def output_name(config: BuildConfig, os_name: str, arch: str) -> Path:
    """Synthesize the output path for one target.

    Format: {output_dir}/{binary_name}-{version}-{os}-{arch}-{date}[.exe]

    Args:
        config: Build configuration.
        os_name: Target OS.
        arch: Target architecture.

    Returns:
        Output file path.
    """
    ext = ".exe" if os_name == "windows" else ""
    filename = (
        f"{config.binary_name}-{config.version}-{os_name}-{arch}-{config.build_date}{ext}"
    )
    return config.output_dir / filename


def resolve_targets(config: BuildConfig) -> list[BuildTarget]:
    """Resolve a config's directives into concrete, unique build targets.

    Args:
        config: Build configuration.

    Returns:
        Targets in first-seen order, deduplicated by platform label.

    Raises:
        InvalidTargetError: If any platform is malformed or unsupported.
    """
    targets: list[BuildTarget] = []
    seen: set[str] = set()

    for platform in platforms_from_directives(config):
        os_name, arch = parse_platform(platform)
        label = f"{os_name}/{arch}"
        if label in seen:
            logger.debug("Skipping duplicate target %s", label)
            continue
        seen.add(label)
        targets.append(
            BuildTarget(
                os=os_name,
                arch=arch,
                output_path=output_name(config, os_name, arch),
                platform_label=label,
            )
        )

    logger.debug("Resolved %d target(s): %s", len(targets), [t.platform_label for t in targets])
    return targets


__all__ = [
    "ARCH_ALIASES",
    "SUPPORTED_ARCHS",
    "SUPPORTED_PLATFORMS",
    "host_platform",
    "normalize_arch",
    "normalize_os",
    "output_name",
    "parse_platform",
    "platforms_from_directives",
    "resolve_targets",
]
