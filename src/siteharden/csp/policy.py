"""Assembly of the Content-Security-Policy and rewriting of nginx config text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from siteharden.model.options import (
    DEFAULT_CONNECT_ORIGINS,
    DEFAULT_NONCE_TOKEN,
    DEFAULT_REPORT_URI,
    CspUpdateMode,
)
from siteharden.model.results import CspSources

logger = logging.getLogger(__name__)

# Bounded: lazy body up to the first closing quote followed by `always;`
_CSP_HEADER_RE = re.compile(r'add_header\s+Content-Security-Policy\s+".*?"\s+always;', re.DOTALL)
_DIRECTIVE_NAMES = ("style-src", "script-src", "img-src", "connect-src")


def _join(*parts: str) -> str:
    return " ".join(part for part in parts if part)


@dataclass(frozen=True)
class ContentSecurityPolicy:
    """An ordered list of ``(directive, value)`` pairs."""

    directives: tuple[tuple[str, str], ...]

    def get(self, name: str) -> str | None:
        for directive, value in self.directives:
            if directive == name:
                return value
        return None

    def directive(self, name: str) -> str:
        """``name value`` as it appears inside the header."""
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return _join(name, value)

    def header_value(self) -> str:
        return "; ".join(_join(name, value) for name, value in self.directives) + ";"

    def nginx_header(self) -> str:
        return f'add_header Content-Security-Policy "{self.header_value()}" always;'


def build_policy(
    sources: CspSources,
    *,
    nonce_token: str = DEFAULT_NONCE_TOKEN,
    site_domain: str | None = None,
    connect_origins: tuple[str, ...] = DEFAULT_CONNECT_ORIGINS,
    report_uri: str | None = DEFAULT_REPORT_URI,
    strict_dynamic: bool = False,
) -> ContentSecurityPolicy:
    """Build the site policy around the collected hashes and image origins.

    With ``strict_dynamic`` the hashed and nonced scripts may load further
    scripts, and host-based sources such as ``'self'`` are ignored by
    supporting browsers.
    """
    nonce = f"'nonce-{nonce_token}'"
    site_images = f"https://*.{site_domain}" if site_domain else ""
    dynamic = "'strict-dynamic'" if strict_dynamic else ""
    directives: list[tuple[str, str]] = [
        ("default-src", "'none'"),
        ("script-src", _join("'self'", dynamic, nonce, sources.script_source)),
        ("style-src", _join("'self'", "'unsafe-hashes'", nonce, sources.style_source)),
        ("img-src", _join("'self'", *sources.image_origins, site_images)),
        ("font-src", "'self'"),
        ("connect-src", _join("'self'", *connect_origins)),
        ("media-src", "'self'"),
        ("manifest-src", "'self'"),
        ("frame-src", "'none'"),
        ("object-src", "'none'"),
        ("base-uri", "'self'"),
        ("form-action", "'self'"),
        ("frame-ancestors", "'none'"),
        ("upgrade-insecure-requests", ""),
    ]
    if report_uri:
        directives.append(("report-uri", report_uri))
    return ContentSecurityPolicy(directives=tuple(directives))


def replace_header(config: str, policy: ContentSecurityPolicy) -> str:
    """Replace the existing CSP ``add_header`` line, appending one when absent."""
    header = policy.nginx_header()
    if _CSP_HEADER_RE.search(config):
        return _CSP_HEADER_RE.sub(lambda _m: header, config, count=1)
    logger.warning("Could not find existing CSP header to replace. Appending new one.")
    return f"{config}\n{header}\n"


def replace_directives(config: str, policy: ContentSecurityPolicy) -> str:
    """Replace individual ``<name> 'self' ...;`` directives in place."""
    for name in _DIRECTIVE_NAMES:
        pattern = re.compile(rf"(?<![\w-]){re.escape(name)} 'self'[^;]*;")
        if not pattern.search(config):
            logger.warning("Could not find %s directive", name)
            continue
        replacement = policy.directive(name) + ";"
        config = pattern.sub(lambda _m, r=replacement: r, config)
    return config


def rewrite_config(config: str, policy: ContentSecurityPolicy, mode: CspUpdateMode) -> str:
    if mode is CspUpdateMode.DIRECTIVES:
        return replace_directives(config, policy)
    return replace_header(config, policy)


__all__ = [
    "ContentSecurityPolicy",
    "build_policy",
    "replace_directives",
    "replace_header",
    "rewrite_config",
]
