"""Unit tests for clientassets.cache."""

from __future__ import annotations

import hashlib
import os
import time
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from clientassets.cache import BundleCache, manifest_key, url_key
from clientassets.errors import ClientAssetsError, ErrorCode
from clientassets.models.bundle import ManifestItem

if TYPE_CHECKING:
    from pathlib import Path

MANIFEST = [
    ManifestItem("jquery", 1024, 1700000000),
    ManifestItem("app", 512, 1700000100),
]


class _Synthesizer:
    def __init__(self, content: bytes = b"/* bundle */") -> None:
        self.content = content
        self.calls = 0

    def __call__(self) -> bytes:
        self.calls += 1
        return self.content


@pytest.fixture()
def cache(tmp_path: Path) -> BundleCache:
    bundle_cache = BundleCache(tmp_path / "cache")
    bundle_cache.ensure_dir()
    return bundle_cache


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class TestManifestKey:
    def test_sha1_of_pipe_joined_manifest(self) -> None:
        expected = hashlib.sha1(b"jquery|1024|1700000000|app|512|1700000100").hexdigest()
        assert manifest_key(MANIFEST) == expected

    def test_deterministic(self) -> None:
        assert manifest_key(MANIFEST) == manifest_key(list(MANIFEST))

    def test_size_change_changes_key(self) -> None:
        changed = [ManifestItem("jquery", 1025, 1700000000), MANIFEST[1]]
        assert manifest_key(changed) != manifest_key(MANIFEST)

    def test_mtime_change_changes_key(self) -> None:
        changed = [MANIFEST[0], ManifestItem("app", 512, 1700000101)]
        assert manifest_key(changed) != manifest_key(MANIFEST)

    def test_order_matters(self) -> None:
        assert manifest_key(list(reversed(MANIFEST))) != manifest_key(MANIFEST)

    def test_url_key(self) -> None:
        url = "https://fonts.googleapis.com/css?family=Roboto"
        assert url_key(url) == hashlib.sha1(url.encode()).hexdigest()


# ---------------------------------------------------------------------------
# get_or_create
# ---------------------------------------------------------------------------


class TestGetOrCreate:
    def test_miss_synthesizes_and_writes(self, cache: BundleCache) -> None:
        synthesize = _Synthesizer(b"var a = 1;")
        path = cache.get_or_create(MANIFEST, synthesize, ext=".js")
        assert path == cache.cache_dir / f"{manifest_key(MANIFEST)}.js"
        assert path.read_bytes() == b"var a = 1;"
        assert synthesize.calls == 1

    def test_hit_does_not_synthesize(self, cache: BundleCache) -> None:
        synthesize = _Synthesizer()
        first = cache.get_or_create(MANIFEST, synthesize, ext=".js")
        second = cache.get_or_create(list(MANIFEST), synthesize, ext=".js")
        assert first == second
        assert synthesize.calls == 1

    def test_extension_and_prefix_in_name(self, cache: BundleCache) -> None:
        path = cache.get_or_create(MANIFEST, _Synthesizer(), ext=".css", prefix="font-")
        assert path.name == f"font-{manifest_key(MANIFEST)}.css"

    def test_changed_manifest_creates_new_artifact(self, cache: BundleCache) -> None:
        old = cache.get_or_create(MANIFEST, _Synthesizer(b"old"), ext=".js")
        changed = [ManifestItem("jquery", 2048, 1700000200), MANIFEST[1]]
        new = cache.get_or_create(changed, _Synthesizer(b"new"), ext=".js")
        assert new != old
        assert new.read_bytes() == b"new"

    def test_superseded_artifacts_are_not_cleaned_up(self, cache: BundleCache) -> None:
        old = cache.get_or_create(MANIFEST, _Synthesizer(b"old"), ext=".js")
        for size in range(3):
            cache.get_or_create([ManifestItem("jquery", size, 1)], _Synthesizer(), ext=".js")
        assert old.is_file()
        assert old.read_bytes() == b"old"
        assert len(list(cache.cache_dir.glob("*.js"))) == 4

    def test_no_temp_files_left_behind(self, cache: BundleCache) -> None:
        cache.get_or_create(MANIFEST, _Synthesizer(), ext=".js")
        assert [p.name for p in cache.cache_dir.iterdir()] == [f"{manifest_key(MANIFEST)}.js"]


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailures:
    def test_ensure_dir_creates_nested_directories(self, tmp_path: Path) -> None:
        cache = BundleCache(tmp_path / "a" / "b" / "cache")
        cache.ensure_dir()
        assert cache.cache_dir.is_dir()

    def test_ensure_dir_raises_when_path_is_a_file(self, tmp_path: Path) -> None:
        blocker = tmp_path / "cache"
        blocker.write_text("not a directory")
        with pytest.raises(ClientAssetsError) as exc_info:
            BundleCache(blocker).ensure_dir()
        assert exc_info.value.code == ErrorCode.CACHE_DIR_UNAVAILABLE
        assert exc_info.value.recoverable is False

    def test_write_failure_raises_and_cleans_temp_file(
        self, cache: BundleCache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_replace(src: str, dst: str) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("clientassets.cache.os.replace", failing_replace)
        with pytest.raises(ClientAssetsError) as exc_info:
            cache.get_or_create(MANIFEST, _Synthesizer(), ext=".js")
        assert exc_info.value.code == ErrorCode.BUNDLE_WRITE_FAILED
        assert list(cache.cache_dir.iterdir()) == []

    def test_write_into_missing_directory_raises(self, tmp_path: Path) -> None:
        cache = BundleCache(tmp_path / "never-created")
        with pytest.raises(ClientAssetsError) as exc_info:
            cache.get_or_create(MANIFEST, _Synthesizer(), ext=".js")
        assert exc_info.value.code == ErrorCode.BUNDLE_WRITE_FAILED


# ---------------------------------------------------------------------------
# Freshness
# ---------------------------------------------------------------------------


class TestIsFresh:
    def test_recent_file_is_fresh(self, tmp_path: Path) -> None:
        path = tmp_path / "font.css"
        path.write_text("x")
        assert BundleCache.is_fresh(path, timedelta(days=7)) is True

    def test_old_file_is_stale(self, tmp_path: Path) -> None:
        path = tmp_path / "font.css"
        path.write_text("x")
        eight_days_ago = time.time() - 8 * 24 * 3600
        os.utime(path, (eight_days_ago, eight_days_ago))
        assert BundleCache.is_fresh(path, timedelta(days=7)) is False

    def test_missing_file_is_not_fresh(self, tmp_path: Path) -> None:
        assert BundleCache.is_fresh(tmp_path / "missing.css", timedelta(days=7)) is False
