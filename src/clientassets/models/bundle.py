from __future__ import annotations

from typing import NamedTuple

# Size/mtime recorded for a source file that does not exist
MISSING = -1


class ManifestItem(NamedTuple):
    """Identity of one bundle input; the ordered list of these is the cache key."""

    identifier: str
    size: int
    mtime: int

    @property
    def missing(self) -> bool:
        return self.size == MISSING


class BundlePart(NamedTuple):
    """One source file to concatenate into a bundle."""

    identifier: str
    path: str
