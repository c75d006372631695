"""Subresource Integrity injection for local scripts and stylesheets."""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from siteharden.ingest.corpus import resolve_local_url
from siteharden.transform.markup import get_attr, has_attr, tag_pattern

logger = logging.getLogger(__name__)

_SCRIPT_TAG_RE = tag_pattern("script")
_LINK_TAG_RE = tag_pattern("link")
_TRAILING_SLASH_RE = re.compile(r"\s*/\s*$")


def compute_sri(data: bytes) -> str:
    """``sha384-<base64 digest>`` for the given bytes."""
    digest = hashlib.sha384(data).digest()
    return "sha384-" + base64.b64encode(digest).decode("ascii")


@dataclass
class IntegrityCache:
    """Run-scoped ``resolved path -> integrity token`` cache."""

    output_dir: Path
    _hashes: dict[Path, str] = field(default_factory=dict)

    def integrity_for(self, url: str) -> str | None:
        """Return the integrity token for a root-relative URL, or None to skip."""
        path = resolve_local_url(self.output_dir, url)
        if path is None:
            return None
        cached = self._hashes.get(path)
        if cached is not None:
            return cached
        if not path.is_file():
            logger.debug("Skipping %s: %s does not exist", url, path)
            return None
        try:
            token = compute_sri(path.read_bytes())
        except OSError as exc:
            logger.warning("Could not hash %s: %s", path, exc)
            return None
        self._hashes[path] = token
        return token

    def __len__(self) -> int:
        return len(self._hashes)


def _is_stylesheet(attrs: str) -> bool:
    rel = get_attr(attrs, "rel")
    return rel is not None and "stylesheet" in rel.lower().split()


def _inject(tag: str, attrs: str, integrity: str) -> str:
    clean = _TRAILING_SLASH_RE.sub("", attrs).strip()
    extra = f'integrity="{integrity}"'
    if not has_attr(attrs, "crossorigin"):
        extra += ' crossorigin="anonymous"'
    return f"<{tag} {clean} {extra}>"


def inject_integrity(html: str, cache: IntegrityCache) -> tuple[str, int]:
    """Add integrity attributes to local ``<script src>`` and stylesheet links.

    Tags that already carry ``integrity``, point outside the site or at a
    missing file are left untouched.
    """
    count = 0

    def _make_repl(tag: str, url_attr: str, stylesheet_only: bool) -> Callable[[re.Match[str]], str]:
        def _repl(m: re.Match[str]) -> str:
            nonlocal count
            attrs = m.group("attrs")
            if has_attr(attrs, "integrity"):
                return m.group(0)
            if stylesheet_only and not _is_stylesheet(attrs):
                return m.group(0)
            url = get_attr(attrs, url_attr)
            if not url:
                return m.group(0)
            integrity = cache.integrity_for(url)
            if integrity is None:
                return m.group(0)
            count += 1
            return _inject(tag, attrs, integrity)

        return _repl

    html = _SCRIPT_TAG_RE.sub(_make_repl("script", "src", False), html)
    html = _LINK_TAG_RE.sub(_make_repl("link", "href", True), html)
    return html, count


__all__ = [
    "IntegrityCache",
    "compute_sri",
    "inject_integrity",
]
