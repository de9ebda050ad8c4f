"""Font stylesheet fetcher.

Web font CSS is the only network resource touched while rendering. The
Fetcher receives an httpx.Client via constructor injection and every request
is bounded by the client's timeout, so a slow font host delays a render by at
most ``fonts.timeout_seconds``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING
from urllib.parse import urlencode

import httpx
import structlog

from clientassets.errors import ClientAssetsError, ErrorCode

if TYPE_CHECKING:
    from clientassets.config import FontSettings

log = structlog.get_logger()

FontSpec = str | Mapping[str, str | Sequence[str]]


def build_http_client(settings: FontSettings) -> httpx.Client:
    """Create the shared httpx client. Called once at startup."""
    return httpx.Client(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
    )


def _join(value: str | Sequence[str]) -> str:
    return value if isinstance(value, str) else ",".join(str(v) for v in value)


def google_fonts_url(
    font: FontSpec,
    subset: str | Sequence[str] | None = None,
    *,
    css_url: str = "https://fonts.googleapis.com/css",
) -> str:
    """Build a Google Fonts CSS URL.

    ``font`` is either a ready URL, returned as-is, or a mapping of family to
    weights: ``{"Roboto": ["400", "700"], "Open Sans": "300"}``.
    """
    if isinstance(font, str):
        return font
    family = "|".join(f"{name}:{_join(weights)}" for name, weights in font.items())
    query = {"family": family, "display": "swap"}
    if subset is not None:
        query["subset"] = _join(subset)
    return f"{css_url}?{urlencode(query)}"


class FontFetcher:
    """Downloads font stylesheets."""

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def fetch(self, url: str) -> str:
        """Return the stylesheet text. Raises ClientAssetsError on any failure."""
        try:
            response = self._client.get(url)
        except httpx.TimeoutException as exc:
            raise ClientAssetsError(
                code=ErrorCode.FONT_FETCH_FAILED,
                message=f"Timed out fetching {url}",
                suggestion="The font host is slow or unreachable; the font is skipped.",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise ClientAssetsError(
                code=ErrorCode.FONT_FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The font host may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        if not response.is_success:
            raise ClientAssetsError(
                code=ErrorCode.FONT_FETCH_FAILED,
                message=f"HTTP {response.status_code} fetching {url}",
                suggestion="Check the font family and weights in the font URL.",
                recoverable=response.status_code >= 500,
            )

        log.info("font_fetch_complete", url=url, content_length=len(response.text))
        return response.text

    def close(self) -> None:
        self._client.close()
