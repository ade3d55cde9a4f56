"""Tests for builds/cache_key.py module.

Tests source hashing, config hashing and cache key composition.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from mkgo.builds.cache_key import (
    CACHE_KEY_SCHEMA_VERSION,
    UNKNOWN_SOURCE_HASH,
    compute_cache_key,
    compute_config_hash,
    compute_source_hash,
    is_cacheable,
    iter_source_files,
    normalize_config_snapshot,
)
from mkgo.builds.models import BuildConfig
from mkgo.types import BuildTarget


@pytest.fixture
def go_project(tmp_path: Path) -> Path:
    """Create a small Go module."""
    (tmp_path / "go.mod").write_text("module example.com/app\n\ngo 1.22\n")
    (tmp_path / "main.go").write_text("package main\n\nfunc main() {}\n")
    pkg = tmp_path / "internal" / "util"
    pkg.mkdir(parents=True)
    (pkg / "util.go").write_text("package util\n")
    (tmp_path / "README.md").write_text("not source\n")
    return tmp_path


def make_target(label: str) -> BuildTarget:
    """Create a target for a label."""
    os_name, arch = label.split("/")
    return BuildTarget(
        os=os_name,
        arch=arch,
        output_path=Path(f"dist/app-{os_name}-{arch}"),
        platform_label=label,
    )


class TestIterSourceFiles:
    """Tests for iter_source_files function."""

    def test_sorted_and_filtered(self, go_project):
        """Should list Go sources and module files in sorted order."""
        files = [p.relative_to(go_project.resolve()).as_posix() for p in iter_source_files(go_project)]
        assert files == ["go.mod", "internal/util/util.go", "main.go"]

    def test_skips_hidden_and_excluded(self, go_project):
        """Should skip hidden directories and excluded directories."""
        hidden = go_project / ".git"
        hidden.mkdir()
        (hidden / "hook.go").write_text("package hook\n")
        dist = go_project / "dist"
        dist.mkdir()
        (dist / "gen.go").write_text("package gen\n")

        files = [p.name for p in iter_source_files(go_project, exclude_dirs=[dist])]
        assert "hook.go" not in files
        assert "gen.go" not in files


class TestComputeSourceHash:
    """Tests for compute_source_hash function."""

    def test_deterministic(self, go_project):
        """Should produce the same hash for the same tree."""
        assert compute_source_hash(go_project) == compute_source_hash(go_project)

    def test_changes_with_content(self, go_project):
        """Should change when any source file changes."""
        before = compute_source_hash(go_project)
        (go_project / "internal" / "util" / "util.go").write_text("package util\n// x\n")
        assert compute_source_hash(go_project) != before

    def test_changes_with_go_mod(self, go_project):
        """Should change when module dependencies change."""
        before = compute_source_hash(go_project)
        (go_project / "go.mod").write_text("module example.com/app\n\ngo 1.23\n")
        assert compute_source_hash(go_project) != before

    def test_ignores_non_source(self, go_project):
        """Should ignore files that are not Go sources."""
        before = compute_source_hash(go_project)
        (go_project / "README.md").write_text("changed\n")
        assert compute_source_hash(go_project) == before

    def test_fails_open_on_io_error(self, go_project):
        """Should return the unknown sentinel instead of raising."""
        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            assert compute_source_hash(go_project) == UNKNOWN_SOURCE_HASH


class TestConfigHash:
    """Tests for compute_config_hash and normalize_config_snapshot."""

    def test_deterministic(self):
        """Should hash equal configs identically."""
        assert compute_config_hash(BuildConfig(version="1.0.0")) == compute_config_hash(
            BuildConfig(version="1.0.0")
        )

    def test_changes_with_output_affecting_fields(self):
        """Should change when a compiler option changes."""
        base = compute_config_hash(BuildConfig())
        assert compute_config_hash(BuildConfig(race=True)) != base
        assert compute_config_hash(BuildConfig(version="2.0.0")) != base
        assert compute_config_hash(BuildConfig(ldflags="-X main.Foo=1")) != base

    def test_ignores_per_invocation_fields(self):
        """Should ignore targets, layout, timing and scheduling fields."""
        a = BuildConfig(timestamp="20240101T000000", parallel=1, platforms=("linux/amd64",))
        b = BuildConfig(
            timestamp="20250101T000000",
            parallel=8,
            platforms=("darwin/arm64",),
            output_dir=Path("elsewhere"),
            timeout=10,
            no_cache=True,
        )
        assert compute_config_hash(a) == compute_config_hash(b)

    def test_tag_order_irrelevant(self):
        """Should sort tags before hashing."""
        assert compute_config_hash(BuildConfig(tags="a,b")) == compute_config_hash(
            BuildConfig(tags="b,a")
        )

    def test_snapshot_contents(self):
        """Should carry the schema version and no excluded fields."""
        snapshot = normalize_config_snapshot(BuildConfig())
        assert snapshot["schema_version"] == CACHE_KEY_SCHEMA_VERSION
        assert "timestamp" not in snapshot
        assert "platforms" not in snapshot
        assert "output_dir" not in snapshot


class TestComputeCacheKey:
    """Tests for compute_cache_key function."""

    def test_format(self):
        """Should join label, source hash and config hash."""
        key = compute_cache_key(make_target("linux/amd64"), "src123", "cfg456")
        assert key == "linux/amd64-src123-cfg456"

    def test_distinct_labels_distinct_keys(self):
        """Should differ across platforms with identical hashes."""
        keys = {
            compute_cache_key(make_target(label), "same", "same")
            for label in ("linux/amd64", "linux/arm64", "darwin/arm64", "windows/amd64")
        }
        assert len(keys) == 4


class TestIsCacheable:
    """Tests for is_cacheable function."""

    def test_unknown_not_cacheable(self):
        """Should refuse keys derived from the unknown sentinel."""
        assert is_cacheable(UNKNOWN_SOURCE_HASH) is False
        assert is_cacheable("abc123") is True
