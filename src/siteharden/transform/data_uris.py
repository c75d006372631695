"""Extraction of embedded data-URI images into content-addressed files.

Data URIs are found in three places:

- CSS ``url(...)`` functions, in stylesheets and in HTML (inline styles and
  ``<style>`` blocks)
- ``<img src="data:...">``
- ``<source srcset="data:... 1x, ...">``

Each decoded blob is stored once as ``<assets_dir>/<sha256[:16]>.<ext>`` and
the embedding is replaced by a root-relative reference to that file. Output
no longer contains the extracted data URIs, so a second run is a no-op.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote_to_bytes

from siteharden.ids import compute_content_id
from siteharden.ingest.file_io import atomic_write_bytes
from siteharden.model.results import DataUri
from siteharden.transform.markup import tag_with_attr_pattern

logger = logging.getLogger(__name__)

_BASE64_MARKER = ";base64"

# url("data:..."), url('data:...') or url(data:...)
_CSS_URL_RE = re.compile(
    r"""url\(\s*(?:"(?P<dq>data:[^"]*)"|'(?P<sq>data:[^']*)'|(?P<bare>data:[^)'"\s]*))\s*\)""",
    re.IGNORECASE,
)
_IMG_SRC_RE = tag_with_attr_pattern("img", "src")
_SOURCE_SRCSET_RE = tag_with_attr_pattern("source", "srcset")
# One srcset candidate URL; data URIs carry no raw whitespace
_SRCSET_DATA_RE = re.compile(r"(?<![^\s,])data:\S+", re.IGNORECASE)
_MALFORMED_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Ordered: the first substring contained in the MIME type wins
_MIME_EXTENSIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("svg",), "svg"),
    (("png",), "png"),
    (("jpeg", "jpg"), "jpg"),
    (("gif",), "gif"),
    (("webp",), "webp"),
)


class DataUriError(ValueError):
    pass


def parse_data_uri(uri: str) -> DataUri:
    """Split ``data:[<mime>][;base64],<payload>`` into its parts."""
    text = uri.strip()
    if text[:5].lower() != "data:":
        raise DataUriError("not a data URI")
    comma = text.find(",")
    if comma == -1:
        raise DataUriError("data URI has no payload separator")
    metadata = text[5:comma]
    payload = text[comma + 1 :]
    is_base64 = metadata.lower().endswith(_BASE64_MARKER)
    mime_type = metadata[: -len(_BASE64_MARKER)] if is_base64 else metadata
    return DataUri(mime_type=mime_type.strip(), is_base64=is_base64, payload=payload)


def decode_data_uri(data_uri: DataUri) -> bytes:
    """Decode the payload to bytes.

    Base64 payloads ignore whitespace and tolerate missing padding; an
    invalid alphabet is an error. Other payloads are percent-decoded and must
    be valid UTF-8 text, matching what browsers accept for textual data URIs.
    """
    if data_uri.is_base64:
        compact = "".join(data_uri.payload.split())
        compact += "=" * (-len(compact) % 4)
        try:
            data = base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DataUriError(f"invalid base64 payload: {exc}") from exc
    else:
        payload = data_uri.payload.strip()
        if _MALFORMED_ESCAPE_RE.search(payload):
            raise DataUriError("malformed percent-escape in payload")
        try:
            data = unquote_to_bytes(payload)
        except UnicodeEncodeError as exc:
            raise DataUriError(f"payload holds undecodable bytes: {exc}") from exc
        try:
            data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DataUriError(f"payload is not valid UTF-8: {exc}") from exc
    if not data:
        raise DataUriError("empty payload")
    return data


def extension_for_mime(mime_type: str) -> str:
    """Derive a file extension by substring containment, default ``bin``.

    This is a heuristic: ``image/svg+xml`` maps to ``svg``, but so would any
    vendor type that happens to contain ``svg``.
    """
    lowered = mime_type.lower()
    for needles, ext in _MIME_EXTENSIONS:
        if any(needle in lowered for needle in needles):
            return ext
    return "bin"


SvgPostProcessor = Callable[[bytes], bytes]


@dataclass
class AssetStore:
    """Content-addressed store for extracted assets.

    - assets_dir: directory the files are written to
    - url_prefix: root-relative URL under which the directory is served
    - svg_processor: optional hook applied to SVG bytes before writing
    """

    assets_dir: Path
    url_prefix: str
    svg_processor: SvgPostProcessor | None = None
    written: list[Path] = field(default_factory=list)

    def store(self, uri: str) -> str:
        """Persist the decoded URI content and return its public URL."""
        data_uri = parse_data_uri(uri)
        data = decode_data_uri(data_uri)
        ext = extension_for_mime(data_uri.mime_type)
        filename = f"{compute_content_id(data)}.{ext}"
        dest = self.assets_dir / filename
        if not dest.exists():
            if ext == "svg" and self.svg_processor is not None:
                data = self.svg_processor(data)
            atomic_write_bytes(dest, data)
            self.written.append(dest)
            logger.debug("Extracted %s (%s, %d bytes)", filename, data_uri.mime_type, len(data))
        return f"{self.url_prefix.rstrip('/')}/{filename}"


def _try_store(store: AssetStore, uri: str, source: str) -> str | None:
    try:
        return store.store(uri)
    except (DataUriError, OSError) as exc:
        logger.warning("Failed to process data URI in %s: %s", source, exc)
        return None


def rewrite_css_urls(text: str, store: AssetStore, source: str = "<text>") -> tuple[str, int]:
    """Replace ``url(data:...)`` functions; quote style is kept, bare becomes ``"``."""
    count = 0

    def _repl(m: re.Match[str]) -> str:
        nonlocal count
        if m.group("dq") is not None:
            quote, uri = '"', m.group("dq")
        elif m.group("sq") is not None:
            quote, uri = "'", m.group("sq")
        else:
            quote, uri = '"', m.group("bare")
        new_url = _try_store(store, uri, source)
        if new_url is None:
            return m.group(0)
        count += 1
        return f"url({quote}{new_url}{quote})"

    return _CSS_URL_RE.sub(_repl, text), count


def rewrite_img_srcs(html: str, store: AssetStore, source: str = "<text>") -> tuple[str, int]:
    """Replace ``<img src="data:...">`` with the extracted file URL."""
    count = 0

    def _repl(m: re.Match[str]) -> str:
        nonlocal count
        value = m.group("value")
        if not value.strip().lower().startswith("data:"):
            return m.group(0)
        new_url = _try_store(store, value, source)
        if new_url is None:
            return m.group(0)
        count += 1
        quote = m.group("q")
        return f"<img{m.group('pre')}src={quote}{new_url}{quote}{m.group('post')}>"

    return _IMG_SRC_RE.sub(_repl, html), count


def rewrite_srcset(value: str, store: AssetStore, source: str = "<text>") -> tuple[str, int]:
    """Replace data-URI candidates inside a srcset value, keeping descriptors."""
    count = 0

    def _repl(m: re.Match[str]) -> str:
        nonlocal count
        candidate = m.group(0)
        # A candidate directly followed by the list separator keeps its comma
        stripped = candidate.rstrip(",")
        trailing = candidate[len(stripped) :]
        new_url = _try_store(store, stripped, source)
        if new_url is None:
            return candidate
        count += 1
        return f"{new_url}{trailing}"

    return _SRCSET_DATA_RE.sub(_repl, value), count


def rewrite_source_srcsets(html: str, store: AssetStore, source: str = "<text>") -> tuple[str, int]:
    """Replace data URIs in ``<source srcset>`` attributes."""
    count = 0

    def _repl(m: re.Match[str]) -> str:
        nonlocal count
        value = m.group("value")
        if "data:" not in value.lower():
            return m.group(0)
        new_value, replaced = rewrite_srcset(value, store, source)
        if not replaced:
            return m.group(0)
        count += replaced
        quote = m.group("q")
        return f"<source{m.group('pre')}srcset={quote}{new_value}{quote}{m.group('post')}>"

    return _SOURCE_SRCSET_RE.sub(_repl, html), count


def extract_data_uris(
    text: str, store: AssetStore, *, is_html: bool, source: str = "<text>"
) -> tuple[str, int]:
    """Run every applicable rewrite on one document."""
    text, total = rewrite_css_urls(text, store, source)
    if is_html:
        text, count = rewrite_img_srcs(text, store, source)
        total += count
        text, count = rewrite_source_srcsets(text, store, source)
        total += count
    return text, total


__all__ = [
    "AssetStore",
    "DataUriError",
    "decode_data_uri",
    "extension_for_mime",
    "extract_data_uris",
    "parse_data_uri",
    "rewrite_css_urls",
    "rewrite_img_srcs",
    "rewrite_source_srcsets",
    "rewrite_srcset",
]
