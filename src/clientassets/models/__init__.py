from __future__ import annotations

from clientassets.models.assets import AssetEntry, Position, ScriptSource, StyleEntry
from clientassets.models.bundle import MISSING, BundlePart, ManifestItem

__all__ = [
    # assets
    "Position",
    "AssetEntry",
    "StyleEntry",
    "ScriptSource",
    # bundle
    "ManifestItem",
    "BundlePart",
    "MISSING",
]
