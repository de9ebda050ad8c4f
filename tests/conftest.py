"""Shared test fixtures for the clientassets test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from clientassets.cache import BundleCache
from clientassets.config import Settings
from clientassets.errors import ClientAssetsError, ErrorCode
from clientassets.registry import InMemoryScriptRegistry
from clientassets.state import AssetServices

if TYPE_CHECKING:
    from pathlib import Path

BASE_URL = "https://example.com"


class FakeFontFetcher:
    """In-memory FontFetcherProtocol implementation."""

    def __init__(self, css: str = "", *, fail: bool = False) -> None:
        self.css = css
        self.fail = fail
        self.calls: list[str] = []

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        if self.fail:
            raise ClientAssetsError(
                code=ErrorCode.FONT_FETCH_FAILED,
                message=f"Timed out fetching {url}",
                recoverable=True,
            )
        return self.css


@pytest.fixture()
def site_root(tmp_path: Path) -> Path:
    """A small document root with local scripts and stylesheets."""
    root = tmp_path / "site"
    (root / "js").mkdir(parents=True)
    (root / "css").mkdir()
    (root / "js" / "app.js").write_text("console.log('app');", encoding="utf-8")
    (root / "js" / "vendor.js").write_text("window.vendor = true;", encoding="utf-8")
    (root / "css" / "site.css").write_text(
        "body { background: url(../img/bg.png); }\n"
        ".logo { background: url('fonts/icons.woff'); }\n",
        encoding="utf-8",
    )
    (root / "css" / "extra.css").write_text(".extra { color: red; }", encoding="utf-8")
    return root


@pytest.fixture()
def cache_dir(site_root: Path) -> Path:
    return site_root / "assets-cache"


@pytest.fixture()
def settings(site_root: Path, cache_dir: Path) -> Settings:
    return Settings(
        site={"base_path": str(site_root), "base_url": BASE_URL},
        bundle={"cache_dir": str(cache_dir)},
    )


@pytest.fixture()
def font_fetcher() -> FakeFontFetcher:
    return FakeFontFetcher("@font-face { src: url(https://fonts.gstatic.com/r.woff); }")


@pytest.fixture()
def services(settings: Settings, font_fetcher: FakeFontFetcher) -> AssetServices:
    """AssetServices wired with a real cache and in-memory collaborators."""
    return AssetServices(
        settings=settings,
        cache=BundleCache(settings.cache_path()),
        fetcher=font_fetcher,
        registry=InMemoryScriptRegistry(),
    )
