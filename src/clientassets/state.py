"""Process-wide collaborators shared by every render.

AssetServices is built once at host startup and passed to each
AssetCollector. It is the only state that outlives a render; the collector
itself is per-render and discarded after finalize.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clientassets.cache import BundleCache
from clientassets.fetcher import FontFetcher, build_http_client
from clientassets.hooks import Hooks

if TYPE_CHECKING:
    from clientassets.config import Settings
    from clientassets.protocols import FontFetcherProtocol, ScriptRegistry


@dataclass
class AssetServices:
    """Holds shared runtime state. Passed to every collector."""

    settings: Settings
    cache: BundleCache
    fetcher: FontFetcherProtocol | None = None
    registry: ScriptRegistry | None = None
    hooks: Hooks = field(default_factory=Hooks)
    # Set once the cache directory proved unusable; bundling stays off for the process
    bundling_disabled: bool = False


def build_services(
    settings: Settings,
    *,
    registry: ScriptRegistry | None = None,
    hooks: Hooks | None = None,
) -> AssetServices:
    """Wire the default cache and font fetcher from settings."""
    return AssetServices(
        settings=settings,
        cache=BundleCache(settings.cache_path()),
        fetcher=FontFetcher(build_http_client(settings.fonts)),
        registry=registry,
        hooks=hooks if hooks is not None else Hooks(),
    )
