"""Collapse inline ``style="..."`` attributes into generated classes.

Every element with a style attribute gets a class ``ec-<hash>`` derived from
the exact declaration text, the attribute is dropped, and one nonce-carrying
``<style>`` block with a rule per distinct declaration is injected before
``</head>``. Declarations are compared verbatim: ``color:red`` and
``color: red`` produce two classes.
"""

from __future__ import annotations

import logging
import re

from siteharden.ids import compute_style_class
from siteharden.model.options import DEFAULT_NONCE_PLACEHOLDER
from siteharden.transform.markup import ATTRS, ATTRS_LAZY

logger = logging.getLogger(__name__)

_STYLED_TAG_RE = re.compile(
    rf"(?P<start><[A-Za-z][\w:-]*)(?P<pre>{ATTRS_LAZY})"
    r"""\s+style\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)')"""
    rf"(?P<post>{ATTRS})>",
    re.IGNORECASE,
)
# Quoted or unquoted; an unquoted value is rewritten with double quotes
_CLASS_RE = re.compile(
    r"""(?<![\w:-])class\s*=\s*(?:(?P<q>["'])(?P<value>.*?)(?P=q)|(?P<bare>[^\s"'=<>`]+))""",
    re.IGNORECASE | re.DOTALL,
)
_HEAD_CLOSE_RE = re.compile(r"</head\s*>", re.IGNORECASE)


def _merge_class(attrs: str, class_name: str) -> str:
    """Append ``class_name`` to the first class attribute in ``attrs``."""

    def _repl(m: re.Match[str]) -> str:
        bare = m.group("bare")
        value = bare if bare is not None else m.group("value")
        if class_name in value.split():
            return m.group(0)
        merged = f"{value} {class_name}" if value.strip() else class_name
        quote = m.group("q") or '"'
        return f"class={quote}{merged}{quote}"

    return _CLASS_RE.sub(_repl, attrs, count=1)


def build_style_block(classes: dict[str, str], nonce: str = DEFAULT_NONCE_PLACEHOLDER) -> str:
    """Render ``{declaration: class}`` as a single nonce-carrying style element."""
    rules = "".join(f".{class_name}{{{declaration}}}" for declaration, class_name in classes.items())
    return f'<style nonce="{nonce}">{rules}</style>'


def inject_before_head_close(html: str, block: str) -> str:
    """Insert ``block`` before the first ``</head>``; append when there is none."""
    m = _HEAD_CLOSE_RE.search(html)
    if not m:
        return html + block
    return html[: m.start()] + block + html[m.start() :]


def collapse_inline_styles(
    html: str, nonce: str = DEFAULT_NONCE_PLACEHOLDER
) -> tuple[str, int]:
    """Rewrite one document; returns the new text and the number of elements changed.

    Documents without style attributes are returned unchanged, which makes
    the pass a fixed point on its own output.
    """
    classes: dict[str, str] = {}
    count = 0

    def _repl(m: re.Match[str]) -> str:
        nonlocal count
        declaration = m.group("dq") if m.group("dq") is not None else m.group("sq")
        class_name = classes.get(declaration)
        if class_name is None:
            class_name = compute_style_class(declaration)
            classes[declaration] = class_name
        count += 1

        pre = m.group("pre")
        post = m.group("post")
        if _CLASS_RE.search(pre):
            pre = _merge_class(pre, class_name)
        elif _CLASS_RE.search(post):
            post = _merge_class(post, class_name)
        else:
            pre = f'{pre} class="{class_name}"'
        return f"{m.group('start')}{pre}{post}>"

    updated = _STYLED_TAG_RE.sub(_repl, html)
    if not count:
        return html, 0

    logger.debug("Collapsed %d inline style(s) into %d class(es)", count, len(classes))
    return inject_before_head_close(updated, build_style_block(classes, nonce)), count


__all__ = [
    "build_style_block",
    "collapse_inline_styles",
    "inject_before_head_close",
]
