"""In-memory script registry.

Implements ScriptRegistry for hosts that have no registry of their own and
for tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clientassets.protocols import Placement


@dataclass
class RegisteredScript:
    handle: str
    src: str
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)


class InMemoryScriptRegistry:
    def __init__(self) -> None:
        self.registered: dict[str, RegisteredScript] = {}
        self.queue: list[str] = []

    def register(
        self,
        handle: str,
        src: str,
        *,
        before: list[str] | None = None,
        after: list[str] | None = None,
    ) -> None:
        self.registered[handle] = RegisteredScript(
            handle=handle, src=src, before=list(before or []), after=list(after or [])
        )

    def enqueue(self, handle: str) -> None:
        if handle not in self.queue:
            self.queue.append(handle)

    def add_inline_script(self, handle: str, code: str, placement: Placement = "after") -> None:
        script = self.registered[handle]
        (script.before if placement == "before" else script.after).append(code)

    # ScriptRegistry

    def source_of(self, handle: str) -> str | None:
        script = self.registered.get(handle)
        return script.src if script is not None else None

    def inline_scripts(self, handle: str, placement: Placement) -> list[str]:
        script = self.registered.get(handle)
        if script is None:
            return []
        return list(script.before if placement == "before" else script.after)

    def dequeue(self, handle: str) -> None:
        if handle in self.queue:
            self.queue.remove(handle)
