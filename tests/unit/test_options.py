from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from siteharden.model.options import (
    DEFAULT_NGINX_CONF,
    DEFAULT_RELOAD_COMMAND,
    CspUpdateMode,
    PipelineOptions,
)


def test_defaults() -> None:
    options = PipelineOptions()
    assert options.output_dir == Path("dist")
    assert options.assets_dir == Path("dist") / "assets" / "extracted"
    assert options.assets_url_prefix == "/assets/extracted"
    assert options.nginx_conf == DEFAULT_NGINX_CONF
    assert options.csp_mode is CspUpdateMode.HEADER
    assert options.reload_command == DEFAULT_RELOAD_COMMAND
    assert options.require_input is False


def test_from_env_reads_variables() -> None:
    env = {
        "DIST_DIR": "public",
        "SITEHARDEN_NGINX_CONF": "/tmp/csp.conf",
        "SITEHARDEN_SITE_DOMAIN": "example.org",
        "SITEHARDEN_RELOAD_COMMAND": "sudo systemctl reload 'nginx.service'",
    }
    options = PipelineOptions.from_env(env)
    assert options.output_dir == Path("public")
    assert options.nginx_conf == Path("/tmp/csp.conf")
    assert options.site_domain == "example.org"
    assert options.reload_command == ("sudo", "systemctl", "reload", "nginx.service")


def test_from_env_overrides_win_and_none_is_ignored() -> None:
    options = PipelineOptions.from_env(
        {"DIST_DIR": "public", "SITEHARDEN_SITE_DOMAIN": "example.org"},
        output_dir=Path("out"),
        site_domain=None,
        csp_mode="directives",
    )
    assert options.output_dir == Path("out")
    assert options.site_domain == "example.org"
    assert options.csp_mode is CspUpdateMode.DIRECTIVES


def test_from_env_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError, match="Invalid CSP update mode 'bogus'"):
        PipelineOptions.from_env({}, csp_mode="bogus")


def test_custom_assets_subdir() -> None:
    options = PipelineOptions(output_dir=Path("site"), assets_subdir="/static/inline/")
    assert options.assets_url_prefix == "/static/inline"
    assert options.assets_dir == Path("site") / "static" / "inline"


def test_to_dict_is_serializable() -> None:
    data = PipelineOptions().to_dict()
    assert data["csp_mode"] == "header"
    assert data["reload_command"] == ["systemctl", "reload", "nginx"]
    assert data["output_dir"] == "dist"


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({}, False),
        ({"csp_mode": CspUpdateMode.DIRECTIVES}, True),
        ({"hash_all_scripts": True}, True),
        ({"csp_mode": CspUpdateMode.DIRECTIVES, "strict_dynamic": False}, False),
        ({"strict_dynamic": True}, True),
    ],
)
def test_strict_dynamic_follows_mode_unless_set(overrides: dict[str, Any], expected: bool) -> None:
    options = PipelineOptions(**overrides)
    assert options.uses_strict_dynamic is expected
    assert options.to_dict()["strict_dynamic"] is expected
