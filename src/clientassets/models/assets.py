from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class Position(StrEnum):
    """Injection point in the rendered page."""

    HEAD = "head"
    FOOTER = "footer"


class AssetEntry(BaseModel):
    """Rendered markup queued for one position, as seen after ordering."""

    model_config = ConfigDict(frozen=True)

    content: str
    priority: int
    sequence: int  # Insertion order within its queue, the tie-break
    position: Position


class StyleEntry(BaseModel):
    """Stylesheet reference waiting to be either merged or linked."""

    model_config = ConfigDict(frozen=True)

    url: str  # Public URL used when the stylesheet is linked on its own
    path: str | None = None  # Local filesystem path; None for external stylesheets
    external: bool = False
    priority: int
    position: Position = Position.HEAD


class ScriptSource(BaseModel):
    """Script reference with inline code that must surround it."""

    model_config = ConfigDict(frozen=True)

    handle: str
    url: str
    path: str | None = None  # Local filesystem path; None for external scripts
    priority: int
    position: Position = Position.FOOTER
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()

    @property
    def external(self) -> bool:
        return self.path is None
