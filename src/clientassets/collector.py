"""Per-render asset collector.

One AssetCollector is created for each page render. The host registers
scripts, stylesheets and inline code while the page is produced, emits
``HEAD_MARKER`` and ``FOOTER_MARKER`` where the assets belong, and finally
hands the rendered body to ``finalize``:

    collector = AssetCollector(services)
    collector.add_stylesheet_link("css/site.css")
    collector.add_script("js/app.js", priority=50)
    html = collector.finalize(render_page())

Lifecycle: COLLECTING -> CLOSING (hooks run, bundles are synthesized) ->
RENDERED. ``finalize`` is safe to call from several exit points of the host;
every call after the first returns the first result.

With bundling enabled, local scripts and stylesheets are merged into cached
bundles (see cache.py) and replaced by a single reference each. External
URLs are always linked as-is.
"""

from __future__ import annotations

import html as html_lib
import re
from datetime import timedelta
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from clientassets.asset_queue import AssetQueue, Order
from clientassets.bundler import build_manifest, synthesize_scripts, synthesize_stylesheets
from clientassets.errors import ClientAssetsError, ErrorCode
from clientassets.fetcher import google_fonts_url
from clientassets.hooks import ExtensionPoint
from clientassets.models.assets import AssetEntry, Position, ScriptSource, StyleEntry
from clientassets.models.bundle import BundlePart

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from clientassets.config import SiteSettings
    from clientassets.fetcher import FontSpec
    from clientassets.state import AssetServices

log = structlog.get_logger()

HEAD_MARKER = "<!-- Deferred HEAD client assets -->"
FOOTER_MARKER = "<!-- Deferred FOOTER client assets -->"
COMBINED_SCRIPT_HANDLE = "client-assets-manager-combined-script"

JQUERY_URL = "https://ajax.googleapis.com/ajax/libs/jquery/{version}/jquery{suffix}.js"
JQUERY_HANDLES = frozenset({"jquery", "jquery-core", "jquery-migrate"})
JQUERY_PRIORITY = 9999

# Stand-in $ that records ready handlers until the real jQuery loads
_JQUERY_READY_SHIM = (
    "(function(w,d,u){w.readyQ=[];w.bindReadyQ=[];"
    'function p(x,y){if(x=="ready"){w.bindReadyQ.push(y);}else{w.readyQ.push(x);}};'
    "var a={ready:p,bind:p};"
    "w.$=w.jQuery=function(f){if(f===d||f===u){return a}else{p(f)}}})(window,document)"
)
_JQUERY_READY_FLUSH = (
    "(function($,d){$.each(readyQ,function(i,f){$(f)});"
    '$.each(bindReadyQ,function(i,f){$(d).bind("ready",f)})})(jQuery,document)'
)

_MARKER_RE = re.compile(f"{re.escape(HEAD_MARKER)}|{re.escape(FOOTER_MARKER)}")
_WHITESPACE_RE = re.compile(r"\s+")


class RenderState(StrEnum):
    COLLECTING = "collecting"
    CLOSING = "closing"
    RENDERED = "rendered"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _position(value: Position | str) -> Position:
    try:
        return Position(value)
    except ValueError as exc:
        raise ClientAssetsError(
            code=ErrorCode.INVALID_POSITION,
            message=f"Unknown asset position: {value!r}",
            suggestion="Use 'head' or 'footer'.",
        ) from exc


def _is_url(src: str) -> bool:
    return "://" in src or src.startswith("//")


def local_path(src: str, site: SiteSettings) -> str | None:
    """Filesystem path for a local asset, or None if ``src`` is external.

    Relative paths resolve against ``site.base_path``. URLs are local only
    when they live under ``site.base_url``; their query string is dropped.
    """
    base_url = site.base_url.rstrip("/")
    if _is_url(src):
        if not base_url or not src.startswith(base_url + "/"):
            return None
        src = src[len(base_url) :]
    relative = src.split("?", 1)[0].split("#", 1)[0].lstrip("/")
    return str(Path(site.base_path) / relative)


def public_url(src: str, site: SiteSettings) -> str:
    """URL for linking ``src`` on its own."""
    if _is_url(src):
        return src
    return site.base_url.rstrip("/") + "/" + src.lstrip("/")


def cache_base_url(cache_dir: str | Path, site: SiteSettings) -> str:
    """Public URL of ``cache_dir``, derived from its place under ``site.base_path``.

    Bundled CSS has its ``url()`` references rebased onto ``cache_dir`` on
    disk, so the bundle must be served from the matching URL.
    """
    base = Path(site.base_path).resolve()
    target = Path(cache_dir).resolve()
    try:
        relative = target.relative_to(base).as_posix()
    except ValueError as exc:
        raise ClientAssetsError(
            code=ErrorCode.CACHE_DIR_NOT_PUBLIC,
            message=f"Cache directory {target} is outside the site root {base}",
            suggestion="Point bundle.cache_dir at a directory under site.base_path.",
        ) from exc
    base_url = site.base_url.rstrip("/")
    return base_url if relative == "." else f"{base_url}/{relative}"


def inject_markers(html: str, head: str, footer: str) -> str:
    """Replace the first occurrence of each marker; later duplicates are left as-is."""
    replacements = {HEAD_MARKER: head, FOOTER_MARKER: footer}

    def _replace(match: re.Match[str]) -> str:
        marker = match.group(0)
        return replacements.pop(marker, marker)

    return _MARKER_RE.sub(_replace, html)


def script_tag(src: str) -> str:
    return f'<script type="text/javascript" src="{html_lib.escape(src)}"></script>'


def inline_script_tag(code: str) -> str:
    return f'<script type="text/javascript">{code}</script>'


def stylesheet_tag(href: str) -> str:
    return f'<link rel="stylesheet" type="text/css" href="{html_lib.escape(href)}" />'


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------


class AssetCollector:
    """Collects page assets for one render and produces the final HTML."""

    def __init__(self, services: AssetServices, *, bundling: bool | None = None) -> None:
        self._services = services
        self._settings = services.settings
        order = Order(self._settings.render.order)

        self._queues: dict[Position, AssetQueue[str]] = {
            Position.HEAD: AssetQueue(order),
            Position.FOOTER: AssetQueue(order),
        }
        self._styles: AssetQueue[StyleEntry] = AssetQueue(order)
        self._bundle_scripts: AssetQueue[ScriptSource] = AssetQueue(order)
        self._scripts: dict[str, ScriptSource] = {}
        self._bundled_handles: set[str] = set()
        self._bundles_built = False
        self._cache_base_url = ""
        self._jquery_included = False

        self.state = RenderState.COLLECTING
        self.result: str | None = None
        self.bundling = False

        if self._settings.bundle.enabled if bundling is None else bundling:
            self.enable_bundling()

    # ------------------------------------------------------------------
    # Bundling mode
    # ------------------------------------------------------------------

    def enable_bundling(self, enabled: bool = True) -> AssetCollector:
        """Turn bundling on or off for assets registered from now on.

        A cache directory that can't be created, or that lies outside the
        site root and so has no public URL, turns bundling off for every
        collector sharing these services.
        """
        if not enabled:
            self.bundling = False
            return self
        if self._services.bundling_disabled:
            return self
        cache = self._services.cache
        try:
            self._cache_base_url = cache_base_url(cache.cache_dir, self._settings.site)
            cache.ensure_dir()
        except ClientAssetsError as exc:
            log.warning("bundling_disabled", code=exc.code, message=exc.message)
            self._services.bundling_disabled = True
            self.bundling = False
            return self
        self.bundling = True
        return self

    @property
    def _collecting_bundles(self) -> bool:
        return self.bundling and not self._bundles_built

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _priority(self, priority: int | None) -> int:
        return self._settings.render.default_priority if priority is None else priority

    def _rejecting(self, kind: str) -> bool:
        if self.state is RenderState.RENDERED:
            log.warning("asset_added_after_render", kind=kind)
            return True
        return False

    def add_markup(
        self,
        markup: str,
        *,
        position: Position | str = Position.FOOTER,
        priority: int | None = None,
    ) -> AssetCollector:
        """Queue raw HTML for a position."""
        position = _position(position)
        if self._rejecting("markup"):
            return self
        self._queues[position].insert(markup, self._priority(priority))
        return self

    def add_script(
        self,
        src: str,
        *,
        handle: str | None = None,
        position: Position | str = Position.FOOTER,
        priority: int | None = None,
        before: Sequence[str] = (),
        after: Sequence[str] = (),
    ) -> AssetCollector:
        """Reference a script file by path or URL.

        ``before`` and ``after`` hold inline code that must render right
        before/after the script. A handle seen before is ignored.
        """
        position = _position(position)
        handle = handle or src
        if self._rejecting("script"):
            return self
        if self.have_script(handle):
            log.debug("script_already_added", handle=handle)
            return self

        site = self._settings.site
        source = ScriptSource(
            handle=handle,
            url=public_url(src, site),
            path=local_path(src, site),
            priority=self._priority(priority),
            position=position,
            before=tuple(before),
            after=tuple(after),
        )
        self._scripts[handle] = source
        if self._collecting_bundles and not source.external:
            self._bundle_scripts.insert(source, source.priority)
            self._bundled_handles.add(handle)
        else:
            self._queue_script(source)
        return self

    def add_inline_script(
        self,
        code: str,
        *,
        position: Position | str = Position.FOOTER,
        priority: int | None = None,
    ) -> AssetCollector:
        return self.add_markup(inline_script_tag(code), position=position, priority=priority)

    def add_stylesheet_link(
        self,
        url: str,
        *,
        position: Position | str = Position.HEAD,
        priority: int | None = None,
    ) -> AssetCollector:
        """Reference a stylesheet by path or URL.

        While bundling, local stylesheets are held back and merged at close.
        """
        position = _position(position)
        if self._rejecting("stylesheet"):
            return self
        site = self._settings.site
        path = local_path(url, site)
        priority = self._priority(priority)
        if not self._collecting_bundles:
            return self.add_markup(stylesheet_tag(public_url(url, site)), position=position, priority=priority)
        entry = StyleEntry(
            url=public_url(url, site),
            path=path,
            external=path is None,
            priority=priority,
            position=position,
        )
        self._styles.insert(entry, priority)
        return self

    def add_inline_style(
        self,
        code: str,
        *,
        position: Position | str = Position.HEAD,
        priority: int | None = None,
    ) -> AssetCollector:
        return self.add_markup(f"<style>{code}</style>", position=position, priority=priority)

    def inline_stylesheet(self, path: str, *, priority: int | None = None) -> AssetCollector:
        """Embed a local stylesheet's contents in a ``<style>`` element."""
        resolved = local_path(path, self._settings.site)
        if resolved is None:
            log.warning("inline_stylesheet_external", path=path)
            return self
        try:
            css = Path(resolved).read_text(encoding="utf-8")
        except OSError:
            log.warning("inline_stylesheet_missing", path=path, resolved=resolved)
            return self
        return self.add_inline_style(_WHITESPACE_RE.sub(" ", css).strip(), priority=priority)

    def add_font(
        self,
        font: FontSpec,
        subset: str | Sequence[str] | None = None,
        *,
        priority: int | None = None,
    ) -> AssetCollector:
        """Include a web font stylesheet (Google Fonts by default).

        While bundling, the font CSS is downloaded into the cache and merged
        into the stylesheet bundle. If it can't be fetched and no earlier copy
        exists, the font is skipped.
        """
        if self._rejecting("font"):
            return self
        fonts = self._settings.fonts
        url = google_fonts_url(font, subset, css_url=fonts.css_url)
        priority = fonts.priority if priority is None else priority

        if not self._collecting_bundles:
            return self.add_markup(stylesheet_tag(url), position=Position.HEAD, priority=priority)

        path = self._cached_font(url)
        if path is None:
            return self
        entry = StyleEntry(url=self._cache_url(path), path=str(path), priority=priority)
        self._styles.insert(entry, priority)
        return self

    def _cached_font(self, url: str) -> Path | None:
        cache = self._services.cache
        fetcher = self._services.fetcher
        path = cache.path_for_url(url, ".css", prefix="font-")
        if cache.is_fresh(path, timedelta(days=self._settings.fonts.max_age_days)):
            return path
        if fetcher is None:
            log.warning("font_fetcher_unavailable", url=url)
            return path if path.is_file() else None
        try:
            cache.write(path, fetcher.fetch(url).encode("utf-8"))
        except ClientAssetsError as exc:
            if path.is_file():
                log.warning("font_refresh_failed", url=url, code=exc.code, message=exc.message)
                return path
            log.warning("font_skipped", url=url, code=exc.code, message=exc.message)
            return None
        return path

    def add_jquery(self, version: str = "3.6.0", *, minified: bool = True) -> AssetCollector:
        """Load jQuery from the Google CDN ahead of every other footer script.

        A small shim in the head queues ``$(fn)`` and ``$(document).ready``
        calls made before jQuery arrives; they are replayed right after it
        loads. The host's own jQuery handles are dropped by
        ``intercept_scripts`` from then on. Only the first call has an effect.
        """
        if self._jquery_included or self._rejecting("jquery"):
            return self
        self._jquery_included = True
        url = JQUERY_URL.format(version=version, suffix=".min" if minified else "")
        leading = JQUERY_PRIORITY if Order(self._settings.render.order) is Order.DESCENDING else -JQUERY_PRIORITY
        self.add_markup(script_tag(url), position=Position.FOOTER, priority=leading)
        self.add_inline_script(_JQUERY_READY_SHIM, position=Position.HEAD)
        self.add_inline_script(_JQUERY_READY_FLUSH)
        return self

    def have_script(self, handle: str) -> bool:
        return handle in self._scripts or handle in self._bundled_handles

    def intercept_scripts(self, handles: Iterable[str]) -> list[str]:
        """Take over local scripts from the host's registry.

        Returns the handles the host should still print itself: external or
        unknown ones. Local ones are dequeued from the registry and merged
        into the script bundle together with their inline code. Once
        ``add_jquery`` has run, the host's jQuery handles are dropped.
        """
        handles = list(handles)
        registry = self._services.registry
        if self._jquery_included:
            for handle in JQUERY_HANDLES.intersection(handles):
                if registry is not None:
                    registry.dequeue(handle)
            handles = [handle for handle in handles if handle not in JQUERY_HANDLES]
        if not self._collecting_bundles or registry is None:
            return handles

        kept: list[str] = []
        for handle in handles:
            if handle in self._bundled_handles:
                continue
            src = registry.source_of(handle)
            path = local_path(src, self._settings.site) if src is not None else None
            if path is None:
                kept.append(handle)
                continue
            registry.dequeue(handle)
            source = ScriptSource(
                handle=handle,
                url=public_url(src, self._settings.site),
                path=path,
                priority=self._settings.render.default_priority,
                before=tuple(registry.inline_scripts(handle, "before")),
                after=tuple(registry.inline_scripts(handle, "after")),
            )
            self._bundle_scripts.insert(source, source.priority)
            self._bundled_handles.add(handle)
        return kept

    # ------------------------------------------------------------------
    # Closing: bundle synthesis
    # ------------------------------------------------------------------

    def _queue_script(self, source: ScriptSource) -> None:
        queue = self._queues[source.position]
        for code in source.before:
            queue.insert(inline_script_tag(code), source.priority)
        queue.insert(script_tag(source.url), source.priority)
        for code in source.after:
            queue.insert(inline_script_tag(code), source.priority)

    def _cache_url(self, path: Path) -> str:
        return f"{self._cache_base_url}/{path.name}"

    def close(self) -> None:
        """Run COLLECT hooks, then synthesize bundles and queue their references.

        Bundles are built even when a COLLECT hook raises, so a later
        ``finalize`` still renders every collected asset.
        """
        if self.state is not RenderState.COLLECTING:
            return
        self.state = RenderState.CLOSING
        try:
            self._services.hooks.run(ExtensionPoint.COLLECT, self)
        finally:
            self._bundles_built = True
            self._close_scripts()
            self._close_styles()
        self._services.hooks.run(ExtensionPoint.BUNDLED, self)

    def _close_scripts(self) -> None:
        members = self._bundle_scripts.drain()
        if not members:
            return
        parts = [BundlePart(source.handle, source.path) for source in members]
        manifest = build_manifest(parts)
        try:
            path = self._services.cache.get_or_create(
                manifest, lambda: synthesize_scripts(parts), ext=".js"
            )
        except ClientAssetsError as exc:
            log.warning("script_bundle_failed", code=exc.code, message=exc.message)
            for source in members:
                self._queue_script(source)
            return

        # Inline code keeps its place around the bundle: all "before" code
        # ahead of it, all "after" code behind it, in member order.
        self._queue_script(
            ScriptSource(
                handle=COMBINED_SCRIPT_HANDLE,
                url=self._cache_url(path),
                path=str(path),
                priority=members[0].priority,
                position=Position.FOOTER,
                before=tuple(code for source in members for code in source.before),
                after=tuple(code for source in members for code in source.after),
            )
        )

    def _close_styles(self) -> None:
        entries = self._styles.drain()
        local: list[StyleEntry] = []
        seen: set[str] = set()
        for entry in entries:
            if not entry.external and entry.path not in seen:
                seen.add(entry.path)
                local.append(entry)

        bundle_url: str | None = None
        if local:
            parts = [BundlePart(entry.path, entry.path) for entry in local]
            manifest = build_manifest(parts)
            cache = self._services.cache
            target = cache.path_for(manifest, ".css")
            try:
                path = cache.get_or_create(
                    manifest, lambda: synthesize_stylesheets(parts, target), ext=".css"
                )
                bundle_url = self._cache_url(path)
            except ClientAssetsError as exc:
                log.warning("stylesheet_bundle_failed", code=exc.code, message=exc.message)

        for entry in entries:
            if entry.external or bundle_url is None:
                self.add_markup(stylesheet_tag(entry.url), position=entry.position, priority=entry.priority)
            elif entry is local[0]:
                # The bundle takes the place of its first member
                self.add_markup(stylesheet_tag(bundle_url), position=Position.HEAD, priority=entry.priority)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def entries(self, position: Position | str) -> list[AssetEntry]:
        position = _position(position)
        return [
            AssetEntry(content=content, priority=key.priority, sequence=key.sequence, position=position)
            for key, content in self._queues[position].items()
        ]

    def render_position(self, position: Position | str) -> str:
        """Queued markup for ``position`` in order. Repeatable."""
        position = _position(position)
        return self._settings.render.separator.join(self._queues[position])

    def finalize(self, html: str | None) -> str | None:
        """Close collection and inject the rendered assets into ``html``.

        Calling it again returns the first result. ``html=None`` is a caller
        error: it is logged and returned unchanged without closing.
        """
        if self.state is RenderState.RENDERED:
            return self.result
        if html is None:
            log.warning("finalize_without_html")
            return html

        self.close()
        self.result = inject_markers(
            html,
            self.render_position(Position.HEAD),
            self.render_position(Position.FOOTER),
        )
        self.state = RenderState.RENDERED
        log.debug(
            "assets_rendered",
            head=len(self._queues[Position.HEAD]),
            footer=len(self._queues[Position.FOOTER]),
            bundling=self.bundling,
        )
        self._services.hooks.run(ExtensionPoint.RENDERED, self)
        return self.result
