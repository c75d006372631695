"""Regex building blocks for rewriting tags in generated HTML.

Rewrites operate on the raw text so everything outside a matched tag stays
byte-for-byte identical. Attribute runs are quote-aware: a quoted value may
contain ``>`` or the other quote character without ending the tag.
"""

from __future__ import annotations

import re

# Any run of attribute text: unquoted characters or complete quoted values
ATTRS = r"""(?:[^>"']|"[^"]*"|'[^']*')*"""
ATTRS_LAZY = r"""(?:[^>"']|"[^"]*"|'[^']*')*?"""


def attr_pattern(name: str) -> re.Pattern[str]:
    """Match ``name="value"`` / ``name='value'`` as a standalone attribute.

    Groups: ``q`` (quote), ``value``. The name must not be the tail of a
    longer attribute (``data-src`` does not match ``src``).
    """

    return re.compile(
        rf"""(?<![\w:-]){re.escape(name)}\s*=\s*(?P<q>["'])(?P<value>.*?)(?P=q)""",
        re.IGNORECASE | re.DOTALL,
    )


def has_attr(attrs: str, name: str) -> bool:
    """True when ``attrs`` carries ``name`` (valued or bare) outside quoted values."""

    unquoted = re.sub(r""""[^"]*"|'[^']*'""", '""', attrs)
    return re.search(rf"(?<![\w:-]){re.escape(name)}(?![\w:-])", unquoted, re.IGNORECASE) is not None


def get_attr(attrs: str, name: str) -> str | None:
    match = attr_pattern(name).search(attrs)
    return match.group("value") if match else None


def tag_pattern(tag: str) -> re.Pattern[str]:
    """Match a whole opening tag. Groups: ``attrs`` (including leading space)."""

    return re.compile(
        rf"<{re.escape(tag)}(?P<attrs>(?=[\s/>]){ATTRS})>",
        re.IGNORECASE,
    )


def tag_with_attr_pattern(tag: str, attr: str) -> re.Pattern[str]:
    """Match an opening tag carrying a quoted ``attr``.

    Groups: ``pre`` (text between the tag name and the attribute, including
    the separating whitespace), ``q``, ``value``, ``post`` (remaining
    attributes up to ``>``).
    """

    return re.compile(
        rf"<{re.escape(tag)}(?P<pre>(?=\s){ATTRS_LAZY}\s)"
        rf"""{re.escape(attr)}\s*=\s*(?P<q>["'])(?P<value>.*?)(?P=q)"""
        rf"(?P<post>{ATTRS})>",
        re.IGNORECASE | re.DOTALL,
    )


__all__ = [
    "ATTRS",
    "ATTRS_LAZY",
    "attr_pattern",
    "get_attr",
    "has_attr",
    "tag_pattern",
    "tag_with_attr_pattern",
]
