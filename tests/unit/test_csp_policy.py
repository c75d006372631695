from __future__ import annotations

import pytest

from siteharden.csp.policy import (
    ContentSecurityPolicy,
    build_policy,
    replace_directives,
    replace_header,
    rewrite_config,
)
from siteharden.model.options import CspUpdateMode
from siteharden.model.results import CspSources

SOURCES = CspSources(
    style_hashes=frozenset({"'sha256-style2'", "'sha256-style1'"}),
    script_hashes=frozenset({"'sha256-script'"}),
    image_hosts=frozenset({"img.example.com"}),
)


@pytest.fixture
def policy() -> ContentSecurityPolicy:
    return build_policy(SOURCES, site_domain="jmrp.io")


def test_build_policy_directive_order_and_values(policy: ContentSecurityPolicy) -> None:
    names = [name for name, _ in policy.directives]
    assert names[:3] == ["default-src", "script-src", "style-src"]
    assert names[-2:] == ["upgrade-insecure-requests", "report-uri"]
    assert policy.get("script-src") == "'self' 'nonce-$cspNonce' 'sha256-script'"
    assert policy.get("style-src") == "'self' 'unsafe-hashes' 'nonce-$cspNonce' 'sha256-style1' 'sha256-style2'"
    assert policy.get("img-src") == "'self' https://img.example.com https://*.jmrp.io"
    assert policy.get("connect-src") == "'self' https://api.github.com"
    assert policy.get("frame-ancestors") == "'none'"


def test_header_value_format(policy: ContentSecurityPolicy) -> None:
    value = policy.header_value()
    assert value.startswith("default-src 'none'; script-src 'self' 'nonce-$cspNonce'")
    assert "; upgrade-insecure-requests; report-uri /csp-report;" in value
    assert value.endswith(";")
    assert policy.nginx_header() == f'add_header Content-Security-Policy "{value}" always;'


def test_build_policy_without_optional_parts() -> None:
    policy = build_policy(CspSources(), site_domain=None, connect_origins=(), report_uri=None)
    assert policy.get("img-src") == "'self'"
    assert policy.get("connect-src") == "'self'"
    assert policy.get("report-uri") is None
    assert policy.header_value().endswith("upgrade-insecure-requests;")


def test_directive_lookup(policy: ContentSecurityPolicy) -> None:
    assert policy.directive("font-src") == "font-src 'self'"
    with pytest.raises(KeyError):
        policy.directive("worker-src")


def test_build_policy_strict_dynamic() -> None:
    policy = build_policy(SOURCES, strict_dynamic=True)
    assert policy.get("script-src") == "'self' 'strict-dynamic' 'nonce-$cspNonce' 'sha256-script'"
    # style-src never takes strict-dynamic
    assert "'strict-dynamic'" not in (policy.get("style-src") or "")


def test_replace_header_swaps_only_the_csp_line(policy: ContentSecurityPolicy) -> None:
    config = (
        'add_header X-Frame-Options "DENY" always;\n'
        "add_header Content-Security-Policy \"default-src 'self'; img-src 'self'\" always;\n"
        'add_header Referrer-Policy "no-referrer" always;\n'
    )
    out = replace_header(config, policy)
    assert out == (
        'add_header X-Frame-Options "DENY" always;\n'
        f"{policy.nginx_header()}\n"
        'add_header Referrer-Policy "no-referrer" always;\n'
    )


def test_replace_header_appends_when_missing(policy: ContentSecurityPolicy, caplog: pytest.LogCaptureFixture) -> None:
    out = replace_header('add_header X-Frame-Options "DENY" always;', policy)
    assert out.endswith(f"\n{policy.nginx_header()}\n")
    assert "Appending new one" in caplog.text


def test_replace_directives_in_place(policy: ContentSecurityPolicy) -> None:
    config = (
        "add_header Content-Security-Policy \"default-src 'none'; "
        "script-src 'self' 'sha256-old'; style-src 'self' 'sha256-old'; "
        "img-src 'self' data:; connect-src 'self'; font-src 'self';\" always;"
    )
    out = replace_directives(config, policy)
    assert f"{policy.directive('script-src')};" in out
    assert f"{policy.directive('style-src')};" in out
    assert f"{policy.directive('img-src')};" in out
    assert f"{policy.directive('connect-src')};" in out
    assert "'sha256-old'" not in out
    assert "default-src 'none';" in out
    assert "font-src 'self';" in out


def test_replace_directives_warns_on_missing(policy: ContentSecurityPolicy, caplog: pytest.LogCaptureFixture) -> None:
    config = "style-src 'self';"
    out = replace_directives(config, policy)
    assert out == f"{policy.directive('style-src')};"
    assert "Could not find script-src directive" in caplog.text


def test_rewrite_config_dispatches_on_mode(policy: ContentSecurityPolicy) -> None:
    config = "add_header Content-Security-Policy \"style-src 'self';\" always;"
    assert rewrite_config(config, policy, CspUpdateMode.HEADER) == policy.nginx_header()
    directives = rewrite_config(config, policy, CspUpdateMode.DIRECTIVES)
    assert directives.startswith(f"add_header Content-Security-Policy \"{policy.directive('style-src')};")
