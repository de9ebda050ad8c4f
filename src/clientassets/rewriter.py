"""CSS ``url()`` rewriting for merged stylesheets.

When a stylesheet is copied into a bundle in another directory, its relative
``url(...)`` references would break. ``rewrite_css_urls`` re-expresses each
of them relative to the bundle's directory so they keep pointing at the same
file. Quoting and the whitespace inside the parentheses are kept as written.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import PurePath

# Either a matched pair of quotes around anything, or an unquoted token.
# Unbalanced quotes match neither branch, so malformed url( syntax is left alone.
_URL_RE = re.compile(
    r"""url\(\s*(?:(?P<quote>["'])(?P<quoted>.*?)(?P=quote)|(?P<bare>[^"'()\s]+))\s*\)""",
    re.IGNORECASE | re.DOTALL,
)

# data: URIs, absolute http(s), protocol-relative, root-absolute and fragment refs
_UNTOUCHED_RE = re.compile(r"^(?:data:|https?:|//|/|#)", re.IGNORECASE)


def _as_posix(path: str | PurePath) -> str:
    return PurePath(path).as_posix() if isinstance(path, PurePath) else path.replace("\\", "/")


def relative_base(source: str | PurePath, target: str | PurePath) -> str:
    """Directory of ``source`` expressed relative to the directory of ``target``."""
    source_dir = posixpath.dirname(_as_posix(source)) or "."
    target_dir = posixpath.dirname(_as_posix(target)) or "."
    return posixpath.relpath(source_dir, target_dir)


def rebase_url(url: str, base: str) -> str:
    """Join ``url`` onto ``base`` unless it is absolute in some sense."""
    if not url.strip() or _UNTOUCHED_RE.match(url):
        return url
    return posixpath.normpath(posixpath.join(base, url))


def rewrite_css_urls(css: str, source: str | PurePath, target: str | PurePath) -> str:
    """Rewrite relative ``url()`` references in ``css`` moved from ``source`` to ``target``."""
    base = relative_base(source, target)

    def _replace(match: re.Match[str]) -> str:
        group = "quoted" if match.group("quote") else "bare"
        url = match.group(group)
        rebased = rebase_url(url, base)
        if rebased == url:
            return match.group(0)
        start = match.start(group) - match.start()
        end = match.end(group) - match.start()
        text = match.group(0)
        return text[:start] + rebased + text[end:]

    return _URL_RE.sub(_replace, css)
