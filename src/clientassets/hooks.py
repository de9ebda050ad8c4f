"""Named extension points.

The collector calls these synchronously, in this order, while finalizing a
render. Hosts register handlers against the points they care about instead
of the collector reaching into a global hook registry.
"""

from __future__ import annotations

from collections import defaultdict
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from clientassets.collector import AssetCollector

    Handler = Callable[[AssetCollector], None]

log = structlog.get_logger()


class ExtensionPoint(StrEnum):
    COLLECT = "collect"  # Collection is closing; handlers may still add assets
    BUNDLED = "bundled"  # Bundles are synthesized and queued
    RENDERED = "rendered"  # Final HTML is available as collector.result


class Hooks:
    def __init__(self) -> None:
        self._handlers: defaultdict[ExtensionPoint, list[Handler]] = defaultdict(list)

    def register(self, point: ExtensionPoint, handler: Handler) -> Handler:
        """Attach ``handler`` to ``point`` and return it unchanged."""
        self._handlers[ExtensionPoint(point)].append(handler)
        return handler

    def on(self, point: ExtensionPoint) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            return self.register(point, handler)

        return decorator

    def handlers(self, point: ExtensionPoint) -> list[Handler]:
        return list(self._handlers.get(ExtensionPoint(point), []))

    def run(self, point: ExtensionPoint, collector: AssetCollector) -> None:
        for handler in self.handlers(point):
            log.debug("hook_run", point=str(point), handler=getattr(handler, "__name__", repr(handler)))
            handler(collector)
