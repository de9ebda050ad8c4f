"""clientassets: priority-ordered page assets with cached local bundles.

Typical host wiring:

    settings = Settings()
    setup_logging(settings)
    services = build_services(settings)

    # per render
    collector = AssetCollector(services)
    ...
    html = collector.finalize(html)
"""

from __future__ import annotations

import warnings
from importlib.metadata import PackageNotFoundError, version

from clientassets.collector import FOOTER_MARKER, HEAD_MARKER, AssetCollector
from clientassets.config import Settings
from clientassets.errors import ClientAssetsError, ErrorCode
from clientassets.hooks import ExtensionPoint
from clientassets.logs import setup_logging
from clientassets.models import Position
from clientassets.state import AssetServices, build_services

try:
    __version__ = version("clientassets")
except PackageNotFoundError:
    # Running from a source checkout that was never installed
    warnings.warn(
        "Package metadata for 'clientassets' not found; using fallback version '0.0.0+unknown'.",
        RuntimeWarning,
        stacklevel=2,
    )
    __version__ = "0.0.0+unknown"

__all__ = [
    "FOOTER_MARKER",
    "HEAD_MARKER",
    "AssetCollector",
    "AssetServices",
    "ClientAssetsError",
    "ErrorCode",
    "ExtensionPoint",
    "Position",
    "Settings",
    "build_services",
    "setup_logging",
]
