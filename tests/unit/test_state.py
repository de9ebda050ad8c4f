"""Unit tests for AssetServices wiring."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import respx

import clientassets
from clientassets.cache import BundleCache
from clientassets.collector import AssetCollector
from clientassets.config import Settings
from clientassets.fetcher import FontFetcher
from clientassets.hooks import ExtensionPoint, Hooks
from clientassets.registry import InMemoryScriptRegistry

if TYPE_CHECKING:
    from pathlib import Path


class TestBuildServices:
    def test_defaults(self, tmp_path: Path) -> None:
        settings = Settings(bundle={"cache_dir": str(tmp_path / "cache")})
        services = clientassets.build_services(settings)
        assert isinstance(services.cache, BundleCache)
        assert services.cache.cache_dir == tmp_path / "cache"
        assert isinstance(services.fetcher, FontFetcher)
        assert services.registry is None
        assert isinstance(services.hooks, Hooks)
        assert services.bundling_disabled is False
        services.fetcher.close()

    def test_collaborators_passed_through(self, tmp_path: Path) -> None:
        registry = InMemoryScriptRegistry()
        hooks = Hooks()
        services = clientassets.build_services(
            Settings(bundle={"cache_dir": str(tmp_path)}), registry=registry, hooks=hooks
        )
        assert services.registry is registry
        assert services.hooks is hooks
        services.fetcher.close()

    def test_bundled_font_end_to_end(self, settings: Settings, cache_dir: Path) -> None:
        font_css = "@font-face { font-family: 'Roboto'; src: url(https://fonts.gstatic.com/r.woff); }"
        services = clientassets.build_services(settings)
        seen: list[str | None] = []
        services.hooks.register(ExtensionPoint.RENDERED, lambda collector: seen.append(collector.result))

        with respx.mock:
            route = respx.get(url__startswith=settings.fonts.css_url).mock(
                return_value=httpx.Response(200, text=font_css)
            )
            collector = AssetCollector(services, bundling=True)
            collector.add_font({"Roboto": ["400"]})
            html = collector.finalize(f"<head>{clientassets.HEAD_MARKER}</head>")
        services.fetcher.close()

        assert route.call_count == 1
        assert html is not None
        assert seen == [html]
        assert html.startswith('<head><link rel="stylesheet" type="text/css" href="https://example.com/assets-cache/')
        bundle_name = html.split("assets-cache/", 1)[1].split('"', 1)[0]
        assert font_css in (cache_dir / bundle_name).read_text()
