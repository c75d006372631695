"""SVG post-processing for extracted assets.

Two optional steps, both best-effort:

- ``optimize_svg`` runs the markup through scour with settings that keep the
  viewBox, ids and numeric precision intact.
- ``repair_viewbox`` fixes diagrams whose viewBox under-reports their height
  (rendered sequence diagrams clip their last row). It scans absolute drawing
  coordinates and grows the viewBox when geometry extends past the bottom
  edge. It is a heuristic for that artifact, not a general SVG bounds
  computation.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from xml.parsers.expat import ExpatError

logger = logging.getLogger(__name__)

VIEWBOX_PADDING = 10.0

_SCOUR_ARGS = [
    "--keep-editor-data",
    "--keep-unreferenced-defs",
    "--protect-ids-noninkscape",
    "--disable-style-to-xml",
    "--set-precision=10",
    "--set-c-precision=10",
]

_SVG_OPEN_RE = re.compile(r"<svg\b[^>]*>", re.IGNORECASE)
_VIEWBOX_RE = re.compile(
    r"""(?P<head>\bviewBox\s*=\s*)(?P<q>["'])(?P<value>[^"']*)(?P=q)""", re.IGNORECASE
)
_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_NUMBER_RE = re.compile(_NUMBER)
_PATH_D_RE = re.compile(r"""<path\b[^>]*?\sd\s*=\s*(["'])(?P<d>[^"']*)\1""", re.IGNORECASE)
_PATH_SEGMENT_RE = re.compile(r"([MLHVCSQTAZmlhvcsqtaz])([^MLHVCSQTAZmlhvcsqtaz]*)")
_LINE_RE = re.compile(r"<line\b[^>]*>", re.IGNORECASE)
_POLY_RE = re.compile(r"""<poly(?:line|gon)\b[^>]*?\spoints\s*=\s*(["'])(?P<points>[^"']*)\1""", re.IGNORECASE)
_RECT_RE = re.compile(r"<rect\b[^>]*>", re.IGNORECASE)
_CIRCLE_RE = re.compile(r"<(?:circle|ellipse)\b[^>]*>", re.IGNORECASE)


def _numeric_attr(tag: str, name: str) -> float | None:
    m = re.search(rf"""(?<![\w-]){name}\s*=\s*["']\s*({_NUMBER})\s*["']""", tag)
    return float(m.group(1)) if m else None


def optimize_svg(data: bytes) -> bytes:
    """Losslessly optimize SVG markup with scour."""
    from scour import scour

    options = scour.parse_args(_SCOUR_ARGS)
    text = data.decode("utf-8")
    return scour.scourString(text, options).encode("utf-8")


def _path_max_y(d: str) -> float | None:
    """Largest y reached by absolute path commands (M, L, V, C, S, Q, T)."""
    max_y: float | None = None
    for command, args in _PATH_SEGMENT_RE.findall(d):
        numbers = [float(n) for n in _NUMBER_RE.findall(args)]
        ys: list[float] = []
        if command in "MLCSQT":
            ys = numbers[1::2]
        elif command == "V":
            ys = numbers
        for y in ys:
            max_y = y if max_y is None else max(max_y, y)
    return max_y


def content_max_y(svg: str) -> float | None:
    """Approximate the bottom edge of drawn geometry from absolute coordinates."""
    candidates: list[float] = []
    for m in _PATH_D_RE.finditer(svg):
        y = _path_max_y(m.group("d"))
        if y is not None:
            candidates.append(y)
    for m in _LINE_RE.finditer(svg):
        for attr in ("y1", "y2"):
            value = _numeric_attr(m.group(0), attr)
            if value is not None:
                candidates.append(value)
    for m in _POLY_RE.finditer(svg):
        numbers = [float(n) for n in _NUMBER_RE.findall(m.group("points"))]
        candidates.extend(numbers[1::2])
    for m in _RECT_RE.finditer(svg):
        y = _numeric_attr(m.group(0), "y") or 0.0
        height = _numeric_attr(m.group(0), "height")
        if height is not None:
            candidates.append(y + height)
    for m in _CIRCLE_RE.finditer(svg):
        cy = _numeric_attr(m.group(0), "cy") or 0.0
        radius = _numeric_attr(m.group(0), "r") or _numeric_attr(m.group(0), "ry")
        if radius is not None:
            candidates.append(cy + radius)
    return max(candidates) if candidates else None


def repair_viewbox(svg: str, padding: float = VIEWBOX_PADDING) -> str:
    """Grow the root viewBox height when content extends below it.

    Returns the input unchanged when there is no parseable viewBox or the
    content already fits.
    """
    root = _SVG_OPEN_RE.search(svg)
    if not root:
        return svg
    viewbox = _VIEWBOX_RE.search(root.group(0))
    if not viewbox:
        return svg
    parts = _NUMBER_RE.findall(viewbox.group("value"))
    if len(parts) != 4:
        return svg
    min_x, min_y, width, height = (float(p) for p in parts)
    bottom = content_max_y(svg)
    if bottom is None or bottom <= min_y + height:
        return svg

    new_height = bottom - min_y + padding
    logger.info("Repairing SVG viewBox height %s -> %s", _fmt(height), _fmt(new_height))
    new_value = " ".join(_fmt(v) for v in (min_x, min_y, width, new_height))
    q = viewbox.group("q")
    new_tag = (
        root.group(0)[: viewbox.start()]
        + f"{viewbox.group('head')}{q}{new_value}{q}"
        + root.group(0)[viewbox.end() :]
    )
    return svg[: root.start()] + new_tag + svg[root.end() :]


def _fmt(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def build_svg_processor(*, optimize: bool, repair: bool) -> Callable[[bytes], bytes] | None:
    """Compose the enabled steps into a bytes -> bytes callable, or None."""
    if not optimize and not repair:
        return None

    def _process(data: bytes) -> bytes:
        try:
            if optimize:
                data = optimize_svg(data)
            if repair:
                data = repair_viewbox(data.decode("utf-8")).encode("utf-8")
        except (ExpatError, UnicodeDecodeError, ValueError) as exc:
            logger.warning("SVG post-processing skipped: %s", exc)
        return data

    return _process


__all__ = [
    "build_svg_processor",
    "content_max_y",
    "optimize_svg",
    "repair_viewbox",
]
