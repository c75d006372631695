"""Pipeline options for siteharden passes.

Defaults mirror the production deployment: output in ``dist``, extracted
assets under ``assets/extracted``, nginx security headers in a snippet file
reloaded through systemd. Every value can be overridden from the environment
or the CLI.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_OUTPUT_DIR = Path("dist")
DEFAULT_ASSETS_SUBDIR = "assets/extracted"
DEFAULT_NONCE_PLACEHOLDER = "NGINX_CSP_NONCE"
DEFAULT_NONCE_TOKEN = "$cspNonce"
DEFAULT_NGINX_CONF = Path("/etc/nginx/snippets/security_headers.conf")
DEFAULT_RELOAD_COMMAND = ("systemctl", "reload", "nginx")
DEFAULT_SITE_DOMAIN = "jmrp.io"
DEFAULT_CONNECT_ORIGINS = ("https://api.github.com",)
DEFAULT_REPORT_URI = "/csp-report"


class CspUpdateMode(Enum):
    """How the reverse-proxy configuration is rewritten."""

    HEADER = "header"  # Replace the whole add_header Content-Security-Policy line
    DIRECTIVES = "directives"  # Replace individual style-src/script-src/... directives


@dataclass
class PipelineOptions:
    """Configuration shared by all passes."""

    output_dir: Path = DEFAULT_OUTPUT_DIR
    assets_subdir: str = DEFAULT_ASSETS_SUBDIR

    # Asset extraction
    optimize_svg: bool = False
    repair_svg_viewbox: bool = False

    # Inline style collapsing
    nonce_placeholder: str = DEFAULT_NONCE_PLACEHOLDER

    # CSP generation and publishing
    nginx_conf: Path = DEFAULT_NGINX_CONF
    csp_mode: CspUpdateMode = CspUpdateMode.HEADER
    reload_command: tuple[str, ...] = DEFAULT_RELOAD_COMMAND
    reload: bool = True
    nonce_token: str = DEFAULT_NONCE_TOKEN
    site_domain: str | None = DEFAULT_SITE_DOMAIN
    connect_origins: tuple[str, ...] = field(default=DEFAULT_CONNECT_ORIGINS)
    report_uri: str | None = DEFAULT_REPORT_URI
    hash_all_scripts: bool = False
    # None follows csp_mode and hash_all_scripts, see `uses_strict_dynamic`
    strict_dynamic: bool | None = None

    # Fail when a pass finds no input files
    require_input: bool = False

    @property
    def assets_dir(self) -> Path:
        """Directory on disk where extracted assets are written."""
        return self.output_dir / self.assets_subdir.strip("/")

    @property
    def assets_url_prefix(self) -> str:
        """Root-relative URL prefix for extracted assets."""
        return "/" + self.assets_subdir.strip("/")

    @property
    def uses_strict_dynamic(self) -> bool:
        """Whether script-src carries ``'strict-dynamic'``.

        Unless set explicitly, on in directive mode and when every bundled
        script is hashed.
        """
        if self.strict_dynamic is not None:
            return self.strict_dynamic
        return self.csp_mode is CspUpdateMode.DIRECTIVES or self.hash_all_scripts

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> PipelineOptions:
        """Build options from environment variables, then apply overrides.

        Recognized variables:
            DIST_DIR: build output directory
            SITEHARDEN_NGINX_CONF: nginx security headers snippet
            SITEHARDEN_SITE_DOMAIN: domain used for the img-src wildcard
            SITEHARDEN_RELOAD_COMMAND: reload command, shell-quoted

        Overrides whose value is None are ignored so CLI options can be passed
        through unconditionally.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        if env.get("DIST_DIR"):
            values["output_dir"] = Path(env["DIST_DIR"])
        if env.get("SITEHARDEN_NGINX_CONF"):
            values["nginx_conf"] = Path(env["SITEHARDEN_NGINX_CONF"])
        if env.get("SITEHARDEN_SITE_DOMAIN"):
            values["site_domain"] = env["SITEHARDEN_SITE_DOMAIN"]
        if env.get("SITEHARDEN_RELOAD_COMMAND"):
            command = tuple(shlex.split(env["SITEHARDEN_RELOAD_COMMAND"]))
            if command:
                values["reload_command"] = command

        values.update({key: value for key, value in overrides.items() if value is not None})
        if "csp_mode" in values and not isinstance(values["csp_mode"], CspUpdateMode):
            try:
                values["csp_mode"] = CspUpdateMode(values["csp_mode"])
            except ValueError as exc:
                valid_values = [mode.value for mode in CspUpdateMode]
                raise ValueError(
                    f"Invalid CSP update mode '{values['csp_mode']}'. Valid values: {valid_values}"
                ) from exc
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "output_dir": str(self.output_dir),
            "assets_subdir": self.assets_subdir,
            "optimize_svg": self.optimize_svg,
            "repair_svg_viewbox": self.repair_svg_viewbox,
            "nonce_placeholder": self.nonce_placeholder,
            "nginx_conf": str(self.nginx_conf),
            "csp_mode": self.csp_mode.value,
            "reload_command": list(self.reload_command),
            "reload": self.reload,
            "site_domain": self.site_domain,
            "connect_origins": list(self.connect_origins),
            "report_uri": self.report_uri,
            "hash_all_scripts": self.hash_all_scripts,
            "strict_dynamic": self.uses_strict_dynamic,
            "require_input": self.require_input,
        }


__all__ = [
    "CspUpdateMode",
    "PipelineOptions",
]
