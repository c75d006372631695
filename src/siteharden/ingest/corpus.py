"""Discovery of generated files under the build output directory."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

HTML_PATTERN = "**/*.html"
CSS_PATTERN = "**/*.css"
JS_PATTERN = "**/*.js"


class MissingInputError(RuntimeError):
    pass


def ensure_output_dir(output_dir: Path) -> Path:
    if not output_dir.is_dir():
        raise MissingInputError(f"Output directory not found: {output_dir}")
    return output_dir


def find_files(output_dir: Path, patterns: Sequence[str]) -> list[Path]:
    """Return files matching any of ``patterns``, sorted and de-duplicated."""
    found: set[Path] = set()
    for pattern in patterns:
        found.update(p for p in output_dir.glob(pattern) if p.is_file())
    files = sorted(found)
    logger.debug("Found %d file(s) under %s for %s", len(files), output_dir, list(patterns))
    return files


def html_files(output_dir: Path) -> list[Path]:
    return find_files(output_dir, [HTML_PATTERN])


def stylable_files(output_dir: Path) -> list[Path]:
    """CSS files first, then HTML, matching the order assets are referenced."""
    return find_files(output_dir, [CSS_PATTERN]) + find_files(output_dir, [HTML_PATTERN])


def script_files(output_dir: Path) -> list[Path]:
    return find_files(output_dir, [JS_PATTERN])


def resolve_local_url(output_dir: Path, url: str) -> Path | None:
    """Map a root-relative URL to a file inside ``output_dir``.

    - Only ``/path`` URLs qualify; ``//host`` and absolute URLs return None
    - Query string and fragment are dropped
    - Paths escaping the output directory return None
    """
    url = url.strip()
    if not url.startswith("/") or url.startswith("//"):
        return None
    clean = url.split("?", 1)[0].split("#", 1)[0]
    relative = PurePosixPath(clean.lstrip("/"))
    if not relative.parts:
        return None
    root = output_dir.resolve()
    candidate = (root / Path(*relative.parts)).resolve()
    try:
        candidate.relative_to(root)
    except ValueError:
        logger.warning("Ignoring %s: resolves outside %s", url, output_dir)
        return None
    return candidate


__all__ = [
    "MissingInputError",
    "ensure_output_dir",
    "find_files",
    "html_files",
    "resolve_local_url",
    "script_files",
    "stylable_files",
]
