"""Content-addressed bundle cache on the local filesystem.

A bundle's file name is the SHA-1 of its manifest: the ordered
``(identifier, size, mtime)`` of every input file. Identical inputs map to
the same artifact across requests and process restarts; any change to a
file's size or mtime yields a new name.

Write policy: content is written to a uniquely named temp file in the cache
directory, fsynced, then ``os.replace``d into place. Readers never observe a
partial file. Concurrent requests synthesizing the same key both write and
the last rename wins, which is harmless because the same manifest always
produces byte-identical output.

Artifacts are never deleted here. Bundles superseded by a newer manifest
stay on disk until someone clears the directory.
"""

from __future__ import annotations

import hashlib
import os
import secrets
import time
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from clientassets.errors import ClientAssetsError, ErrorCode

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import timedelta

    from clientassets.models.bundle import ManifestItem

log = structlog.get_logger()


def manifest_key(manifest: Sequence[ManifestItem]) -> str:
    """SHA-1 hex digest of ``identifier|size|mtime|identifier|size|mtime...``."""
    flat = "|".join(f"{item.identifier}|{item.size}|{item.mtime}" for item in manifest)
    return hashlib.sha1(flat.encode("utf-8")).hexdigest()


def url_key(url: str) -> str:
    """SHA-1 hex digest of a remote URL, used for downloaded artifacts."""
    return hashlib.sha1(url.encode("utf-8")).hexdigest()


class BundleCache:
    """Flat directory of bundle artifacts named by content hash."""

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir).expanduser()

    def ensure_dir(self) -> None:
        """Create the cache directory if needed.

        Raises ClientAssetsError when the directory is missing and cannot be
        created (or exists but is not a directory).
        """
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ClientAssetsError(
                code=ErrorCode.CACHE_DIR_UNAVAILABLE,
                message=f"Cache directory {self.cache_dir} is missing and can't be created: {exc}",
                suggestion="Create the directory or point bundle.cache_dir at a writable location.",
                recoverable=False,
            ) from exc

    def path_for(self, manifest: Sequence[ManifestItem], ext: str, prefix: str = "") -> Path:
        return self.cache_dir / f"{prefix}{manifest_key(manifest)}{ext}"

    def path_for_url(self, url: str, ext: str, prefix: str = "") -> Path:
        return self.cache_dir / f"{prefix}{url_key(url)}{ext}"

    def get_or_create(
        self,
        manifest: Sequence[ManifestItem],
        synthesize: Callable[[], bytes],
        *,
        ext: str,
        prefix: str = "",
    ) -> Path:
        """Return the artifact path for ``manifest``, synthesizing it on a miss."""
        path = self.path_for(manifest, ext, prefix)
        if path.is_file():
            log.debug("bundle_cache_hit", path=str(path))
            return path

        content = synthesize()
        self.write(path, content)
        log.info("bundle_cache_created", path=str(path), files=len(manifest), size=len(content))
        return path

    def write(self, path: Path, content: bytes) -> None:
        """Atomically place ``content`` at ``path``. Non-recoverable on failure."""
        tmp_path = path.with_name(f".{path.name}.{os.getpid()}.{secrets.token_hex(4)}.tmp")
        try:
            with tmp_path.open("wb") as file_obj:
                file_obj.write(content)
                file_obj.flush()
                os.fsync(file_obj.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            raise ClientAssetsError(
                code=ErrorCode.BUNDLE_WRITE_FAILED,
                message=f"Failed to write bundle {path}: {exc}",
                suggestion="Check that the cache directory is writable and has free space.",
                recoverable=True,
            ) from exc
        finally:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)

    @staticmethod
    def is_fresh(path: Path, max_age: timedelta) -> bool:
        """True if ``path`` exists and was modified less than ``max_age`` ago."""
        try:
            mtime = path.stat().st_mtime
        except OSError:
            return False
        return time.time() - mtime < max_age.total_seconds()
