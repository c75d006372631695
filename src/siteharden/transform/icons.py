"""Raster conversions for icons, favicons and blog images."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

from siteharden.ingest.file_io import atomic_write_text, read_text

logger = logging.getLogger(__name__)

DEFAULT_WEBP_QUALITY = 80
DEFAULT_FAVICON_SIZE = 32
DEFAULT_IMAGE_WIDTH = 1200
ICONS_SUBDIR = "icons"
MANIFEST_NAME = "site.webmanifest"


def convert_to_webp(
    source: Path,
    *,
    width: int | None = None,
    quality: int = DEFAULT_WEBP_QUALITY,
    remove_source: bool = True,
) -> Path:
    """Write ``source`` as WebP next to it, optionally resized to ``width``.

    Aspect ratio is preserved when resizing. The source file is deleted
    afterwards unless ``remove_source`` is False.
    """
    dest = source.with_suffix(".webp")
    with Image.open(source) as image:
        if width is not None and image.width != width:
            height = max(1, round(image.height * width / image.width))
            image = image.resize((width, height), Image.Resampling.LANCZOS)
        image.save(dest, "WEBP", quality=quality)
    if remove_source:
        source.unlink()
    logger.info("Converted %s -> %s", source.name, dest.name)
    return dest


def convert_icons(output_dir: Path, *, quality: int = DEFAULT_WEBP_QUALITY) -> list[Path]:
    """Convert every ``icons/*.png`` to WebP and delete the PNG."""
    icon_dir = output_dir / ICONS_SUBDIR
    icons = sorted(icon_dir.glob("*.png")) if icon_dir.is_dir() else []
    logger.info("Found %d PNG icon(s) to convert.", len(icons))
    return [convert_to_webp(icon, quality=quality) for icon in icons]


def optimize_images(
    directory: Path,
    *,
    width: int | None = DEFAULT_IMAGE_WIDTH,
    quality: int = DEFAULT_WEBP_QUALITY,
    remove_source: bool = True,
) -> list[Path]:
    """Resize every ``*.png`` in ``directory`` to ``width`` and store it as WebP."""
    images = sorted(p for p in directory.glob("*.png") if p.is_file())
    logger.info("Found %d PNG image(s) to optimize in %s.", len(images), directory)
    return [
        convert_to_webp(image, width=width, quality=quality, remove_source=remove_source) for image in images
    ]


def update_manifest(output_dir: Path) -> bool:
    """Point the web manifest at the WebP icons. Returns True when rewritten."""
    manifest = output_dir / MANIFEST_NAME
    if not manifest.exists():
        logger.debug("No %s in %s", MANIFEST_NAME, output_dir)
        return False
    original = read_text(manifest)
    updated = original.replace(".png", ".webp").replace("image/png", "image/webp")
    if updated == original:
        return False
    atomic_write_text(manifest, updated)
    logger.info("Updated %s", manifest)
    return True


def make_favicon(source: Path, dest: Path, *, size: int = DEFAULT_FAVICON_SIZE) -> Path:
    """Render a square ``size`` x ``size`` favicon from ``source``."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    with Image.open(source) as image:
        icon = image.resize((size, size), Image.Resampling.LANCZOS)
        icon.save(dest)
    logger.info("Favicon created: %s (%dx%d)", dest, size, size)
    return dest


__all__ = [
    "convert_icons",
    "convert_to_webp",
    "make_favicon",
    "optimize_images",
    "update_manifest",
]
