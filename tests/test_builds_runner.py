"""Tests for builds/runner.py module.

Tests go build command composition and execution.
Uses mocked subprocess for build execution tests.
"""

import os
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from mkgo.builds.models import BuildConfig
from mkgo.builds.runner import (
    compose_build_command,
    compose_build_env,
    compose_ldflags,
    run_build,
)
from mkgo.errors import BuildProcessError, BuildTimeoutError, ToolchainUnavailableError
from mkgo.types import BuildTarget


@pytest.fixture
def config(tmp_path: Path) -> BuildConfig:
    """Create a config rooted in a temporary directory."""
    return BuildConfig(
        version="1.2.3",
        timestamp="20240102T030405",
        git_hash="abc1234",
        source_dir=tmp_path,
        output_dir=tmp_path / "dist",
        timeout=5,
    )


def make_target(tmp_path: Path, os_name: str = "linux", arch: str = "amd64") -> BuildTarget:
    """Create a target writing below tmp_path."""
    ext = ".exe" if os_name == "windows" else ""
    return BuildTarget(
        os=os_name,
        arch=arch,
        output_path=tmp_path / "dist" / f"app-{os_name}-{arch}{ext}",
        platform_label=f"{os_name}/{arch}",
    )


class TestComposeLdflags:
    """Tests for compose_ldflags function."""

    def test_metadata(self, config):
        """Should embed version, build date and commit."""
        flags = compose_ldflags(config)
        assert "-X main.Version=1.2.3" in flags
        assert "-X main.BuildDate=20240102T030405" in flags
        assert "-X main.CommitHash=abc1234" in flags
        assert "-s -w" in flags

    def test_no_strip(self, config):
        """Should keep symbols when strip is disabled."""
        flags = compose_ldflags(config.model_copy(update={"strip": False}))
        assert "-s" not in flags.split()

    def test_debug_keeps_symbols(self, config):
        """Should keep symbols for debug builds."""
        flags = compose_ldflags(config.model_copy(update={"debug": True}))
        assert "-w" not in flags.split()

    def test_extra_flags_and_static(self, config):
        """Should append static and user flags."""
        updated = config.model_copy(
            update={"static": True, "ldflags": "-X main.Env=prod  -linkmode external"}
        )
        flags = compose_ldflags(updated)
        assert '-extldflags "-static"' in flags
        assert flags.endswith("-X main.Env=prod -linkmode external")

    def test_build_version(self, config):
        """Should embed build version when set."""
        flags = compose_ldflags(config.model_copy(update={"build_version": "rc1"}))
        assert "-X main.BuildVersion=rc1" in flags


class TestComposeBuildCommand:
    """Tests for compose_build_command function."""

    def test_minimal_command(self, config, tmp_path):
        """Should compose the base go build command."""
        target = make_target(tmp_path)
        cmd = compose_build_command(target, config)

        assert cmd[:3] == ["go", "build", "-o"]
        assert cmd[3] == str(target.output_path.absolute())
        assert cmd[4] == "-ldflags"
        assert "-trimpath" in cmd
        assert cmd[-1] == "."
        assert "-race" not in cmd
        assert "-tags" not in cmd
        assert "-gcflags" not in cmd

    def test_optional_flags(self, config, tmp_path):
        """Should include tags, race and debug flags."""
        updated = config.model_copy(
            update={"tags": ("json", "netgo"), "race": True, "debug": True}
        )
        cmd = compose_build_command(make_target(tmp_path), updated)

        assert cmd[cmd.index("-tags") + 1] == "json,netgo"
        assert "-race" in cmd
        assert cmd[cmd.index("-gcflags") + 1] == "all=-N -l"
        assert cmd.index("-trimpath") < cmd.index("-gcflags")

    def test_custom_toolchain(self, config, tmp_path):
        """Should invoke the configured toolchain."""
        updated = config.model_copy(update={"toolchain": "/opt/go/bin/go"})
        assert compose_build_command(make_target(tmp_path), updated)[0] == "/opt/go/bin/go"


class TestComposeBuildEnv:
    """Tests for compose_build_env function."""

    def test_cross_compile_vars(self, config, tmp_path):
        """Should set GOOS, GOARCH and CGO_ENABLED."""
        env = compose_build_env(make_target(tmp_path, "darwin", "arm64"), config)
        assert env["GOOS"] == "darwin"
        assert env["GOARCH"] == "arm64"
        assert env["CGO_ENABLED"] == "0"

    def test_cgo_enabled(self, config, tmp_path):
        """Should enable cgo when requested."""
        env = compose_build_env(make_target(tmp_path), config.model_copy(update={"cgo": True}))
        assert env["CGO_ENABLED"] == "1"

    def test_does_not_mutate_parent_env(self, config, tmp_path):
        """Should leave os.environ untouched."""
        with patch.dict(os.environ, {"GOOS": "plan9"}, clear=False):
            env = compose_build_env(make_target(tmp_path, "windows", "386"), config)
            assert env["GOOS"] == "windows"
            assert os.environ["GOOS"] == "plan9"


class TestRunBuild:
    """Tests for run_build function."""

    def test_success_sets_executable_bit(self, config, tmp_path):
        """Should return the output path and chmod non-windows binaries."""
        target = make_target(tmp_path)

        def fake_run(cmd, **kwargs):
            Path(cmd[3]).write_bytes(b"binary")
            return MagicMock(returncode=0, stdout="", stderr="")

        with patch("mkgo.builds.runner.subprocess.run", side_effect=fake_run) as mock_run:
            result = run_build(target, config)

        assert result == target.output_path
        assert result.stat().st_mode & 0o777 == 0o755
        kwargs = mock_run.call_args.kwargs
        assert kwargs["cwd"] == config.source_dir
        assert kwargs["timeout"] == config.timeout
        assert kwargs["env"]["GOOS"] == "linux"

    def test_windows_not_chmodded(self, config, tmp_path):
        """Should not touch mode bits of windows binaries."""
        target = make_target(tmp_path, "windows", "amd64")

        def fake_run(cmd, **kwargs):
            path = Path(cmd[3])
            path.write_bytes(b"MZ")
            path.chmod(0o644)
            return MagicMock(returncode=0, stdout="", stderr="")

        with patch("mkgo.builds.runner.subprocess.run", side_effect=fake_run):
            result = run_build(target, config)

        assert result.stat().st_mode & 0o777 == 0o644

    def test_nonzero_exit(self, config, tmp_path):
        """Should raise BuildProcessError with exit code and output."""
        mock_result = MagicMock(returncode=2, stdout="", stderr="main.go:3: undefined: foo")

        with patch("mkgo.builds.runner.subprocess.run", return_value=mock_result):
            with pytest.raises(BuildProcessError) as exc_info:
                run_build(make_target(tmp_path), config)

        assert exc_info.value.exit_code == 2
        assert exc_info.value.platform == "linux/amd64"
        assert "undefined: foo" in str(exc_info.value)
        assert exc_info.value.code == "build_failed"

    def test_timeout(self, config, tmp_path):
        """Should raise BuildTimeoutError on timeout."""
        with patch(
            "mkgo.builds.runner.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="go", timeout=5),
        ):
            with pytest.raises(BuildTimeoutError) as exc_info:
                run_build(make_target(tmp_path), config)

        assert exc_info.value.code == "build_timeout"
        assert exc_info.value.timeout == 5

    def test_missing_toolchain(self, config, tmp_path):
        """Should raise ToolchainUnavailableError when go cannot start."""
        with patch(
            "mkgo.builds.runner.subprocess.run",
            side_effect=FileNotFoundError("go"),
        ):
            with pytest.raises(ToolchainUnavailableError):
                run_build(make_target(tmp_path), config)
