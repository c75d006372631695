"""Collect CSP sources from generated HTML.

Documents are parsed with BeautifulSoup's ``html.parser`` backend, which
hands ``<style>`` and ``<script>`` bodies through verbatim, so the hashes
match what the browser computes over the raw element text. Nothing is
re-serialized; this module only reads.

Known limit: ``html.parser`` ends a script at the first ``</script>``, while
browsers keep reading inside ``<!-- <script> ... </script> -->`` (the
escaped-script states). Such a body is hashed truncated and a warning is
logged; moving that code into a bundled file gives a matching hash.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from collections.abc import Iterable
from contextlib import suppress
from pathlib import Path
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from siteharden.ingest.corpus import resolve_local_url
from siteharden.ingest.file_io import read_text
from siteharden.model.results import CspSources
from siteharden.types import ProgressCallback

logger = logging.getLogger(__name__)

_ESCAPED_SCRIPT_RE = re.compile(r"<!--.*<script", re.IGNORECASE | re.DOTALL)


def csp_hash(data: bytes | str) -> str:
    """``'sha256-<base64 digest>'`` source expression for the given content."""
    raw = data.encode("utf-8", "surrogateescape") if isinstance(data, str) else data
    digest = hashlib.sha256(raw).digest()
    return f"'sha256-{base64.b64encode(digest).decode('ascii')}'"


def _inline_body(tag: Tag) -> str | None:
    if tag.has_attr("nonce"):
        return None
    body = tag.string
    return str(body) if body else None


def _local_script_hash(output_dir: Path, src: str) -> str | None:
    path = resolve_local_url(output_dir, src)
    if path is None or not path.is_file():
        return None
    try:
        return csp_hash(path.read_bytes())
    except OSError as exc:
        logger.warning("Could not hash script %s: %s", src, exc)
        return None


def scan_document(html: str, output_dir: Path) -> CspSources:
    """Return the CSP sources required by a single document."""
    soup = BeautifulSoup(html, "html.parser")
    styles: set[str] = set()
    scripts: set[str] = set()
    hosts: set[str] = set()

    for tag in soup.find_all("style"):
        body = _inline_body(tag)
        if body:
            styles.add(csp_hash(body))

    for tag in soup.find_all("script"):
        src = tag.get("src")
        if src is None:
            body = _inline_body(tag)
            if body:
                if _ESCAPED_SCRIPT_RE.search(body):
                    logger.warning(
                        "Inline script contains '<!--<script'; its hash covers only the text up to the first </script>"
                    )
                scripts.add(csp_hash(body))
            continue
        token = _local_script_hash(output_dir, str(src))
        if token:
            scripts.add(token)

    for tag in soup.find_all("img", src=True):
        src = str(tag["src"]).strip()
        if not src.lower().startswith("http"):
            continue
        try:
            host = urlparse(src).hostname
        except ValueError:
            logger.debug("Ignoring invalid image URL %s", src)
            continue
        if host:
            hosts.add(host)

    return CspSources(
        style_hashes=frozenset(styles),
        script_hashes=frozenset(scripts),
        image_hosts=frozenset(hosts),
    )


def _safe_emit(on_progress: ProgressCallback, event: str, payload: dict[str, int | str]) -> None:
    if on_progress is None:
        return
    with suppress(Exception):
        on_progress(event, payload)


def scan_corpus(
    files: Iterable[Path],
    output_dir: Path,
    *,
    extra_scripts: Iterable[Path] = (),
    on_progress: ProgressCallback = None,
) -> CspSources:
    """Reduce the per-document sources of ``files`` into one value.

    ``extra_scripts`` are hashed whole and added to the script set (used to
    whitelist every bundled script for ``strict-dynamic`` deployments).
    """
    sources = CspSources()
    for path in files:
        sources = sources | scan_document(read_text(path), output_dir)
        _safe_emit(on_progress, "file:processed", {"path": str(path)})

    extra = {csp_hash(path.read_bytes()) for path in extra_scripts}
    if extra:
        sources = sources | CspSources(script_hashes=frozenset(extra))
    return sources


__all__ = [
    "csp_hash",
    "scan_corpus",
    "scan_document",
]
