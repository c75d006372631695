from __future__ import annotations

import hashlib

CONTENT_ID_LENGTH = 16
STYLE_CLASS_PREFIX = "ec-"


def compute_content_id(data: bytes) -> str:
    """Compute a content-addressed 16-hex id for a blob.

    _id = sha256(<bytes>)[:16]
    Byte-identical input always yields the same id.
    """

    return hashlib.sha256(data).hexdigest()[:CONTENT_ID_LENGTH]


def compute_style_class(declaration: str) -> str:
    """Compute the generated class name for an inline style declaration.

    class = "ec-" + shake256(<declaration>, 4 bytes) as hex
    Identity is the exact declaration text; no CSS normalization.
    """

    digest = hashlib.shake_256(declaration.encode("utf-8", "surrogateescape")).hexdigest(4)
    return f"{STYLE_CLASS_PREFIX}{digest}"
