"""Atomic reads and writes for files in the build output.

Every pass reads a file fully, transforms it in memory and writes it back
only when the content changed. Bytes that are not valid UTF-8 are carried
through as surrogate escapes, so a stray Latin-1 byte neither aborts a pass
nor gets rewritten. Writes go through a temporary file in the same
directory followed by ``os.replace`` so a failed run never leaves a truncated
page behind.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from tempfile import NamedTemporaryFile

# Undecodable bytes survive a read-transform-write cycle unchanged
TEXT_ERRORS = "surrogateescape"


def atomic_write_text(
    path: Path, data: str, *, encoding: str = "utf-8", errors: str = TEXT_ERRORS
) -> None:
    """Atomically write text to a file by writing to a temp file then replacing.

    Ensures parent directories exist and minimizes risk of partial writes.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps the line endings produced by the site generator
    with NamedTemporaryFile(
        "w", encoding=encoding, errors=errors, newline="", dir=str(path.parent), delete=False
    ) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    os.replace(tmp_path, path)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Binary counterpart of :func:`atomic_write_text`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile("wb", dir=str(path.parent), delete=False) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    os.replace(tmp_path, path)


def read_text(path: Path, *, encoding: str = "utf-8", errors: str = TEXT_ERRORS) -> str:
    with path.open("r", encoding=encoding, errors=errors, newline="") as fh:
        return fh.read()


def rewrite_text_file(path: Path, transform: Callable[[str], tuple[str, int]]) -> int:
    """Apply ``transform`` to the file content and persist it when changed.

    ``transform`` returns the new text and the number of rewritten fragments.
    Returns that count; the file is left untouched when it is zero or the
    text is identical.
    """
    original = read_text(path)
    updated, count = transform(original)
    if count and updated != original:
        atomic_write_text(path, updated)
        return count
    return 0


__all__ = [
    "atomic_write_bytes",
    "atomic_write_text",
    "read_text",
    "rewrite_text_file",
]
