"""Protocol interfaces for swappable collaborators.

The collector references these protocols, not the concrete implementations.
Hosts plug in their own script registry (whatever already knows the page's
script handles) and tests use lightweight in-memory implementations.
"""

from __future__ import annotations

from typing import Literal, Protocol

Placement = Literal["before", "after"]


class ScriptRegistry(Protocol):
    """The host's registry of known script handles."""

    def source_of(self, handle: str) -> str | None:
        """Return the script URL/path registered for ``handle``, or None if unknown."""
        ...

    def inline_scripts(self, handle: str, placement: Placement) -> list[str]:
        """Return inline code attached to ``handle`` for the given placement."""
        ...

    def dequeue(self, handle: str) -> None:
        """Stop the host from printing ``handle`` itself."""
        ...


class FontFetcherProtocol(Protocol):
    """Interface for the font stylesheet fetcher."""

    def fetch(self, url: str) -> str: ...
