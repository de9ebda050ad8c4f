"""Manifest building and bundle synthesis.

Synthesis is tolerant of missing inputs: a file that disappeared is replaced
by a visible placeholder comment and logged, and the rest of the bundle is
still produced.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import structlog

from clientassets.models.bundle import MISSING, BundlePart, ManifestItem
from clientassets.rewriter import rewrite_css_urls

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

log = structlog.get_logger()


def build_manifest(parts: Iterable[BundlePart]) -> list[ManifestItem]:
    """Stat every part. Missing files are recorded with size and mtime of -1."""
    manifest: list[ManifestItem] = []
    for part in parts:
        try:
            stat = os.stat(part.path)
        except OSError:
            log.warning("bundle_source_missing", identifier=part.identifier, path=part.path)
            manifest.append(ManifestItem(part.identifier, MISSING, MISSING))
            continue
        manifest.append(ManifestItem(part.identifier, stat.st_size, int(stat.st_mtime)))
    return manifest


def missing_placeholder(name: str) -> str:
    return f"/* =====[ FILE IS MISSED: {name} ]===== */"


def _read_part(part: BundlePart) -> str | None:
    try:
        with open(part.path, encoding="utf-8", errors="replace") as file_obj:
            return file_obj.read()
    except OSError:
        log.warning("bundle_source_unreadable", identifier=part.identifier, path=part.path)
        return None


def synthesize_scripts(parts: Iterable[BundlePart]) -> bytes:
    """Concatenate scripts, each behind a ``/* [name] */;`` banner."""
    content: list[str] = []
    for part in parts:
        name = os.path.basename(part.path)
        # Leading ';' terminates a previous file that ends without one
        content.append(f"/* [{name}] */;")
        code = _read_part(part)
        content.append(missing_placeholder(name) if code is None else code)
    return "\n".join(content).encode("utf-8")


def synthesize_stylesheets(parts: Iterable[BundlePart], target: str | Path) -> bytes:
    """Concatenate stylesheets with their ``url()`` references rebased onto ``target``."""
    content: list[str] = []
    for part in parts:
        name = os.path.basename(part.path)
        content.append(f"/* [{name}] */")
        css = _read_part(part)
        if css is None:
            content.append(missing_placeholder(name))
            continue
        content.append(rewrite_css_urls(css, part.path, target))
    return "\n".join(content).encode("utf-8")
