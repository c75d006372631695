from __future__ import annotations

from siteharden.ids import compute_style_class
from siteharden.transform.inline_styles import (
    build_style_block,
    collapse_inline_styles,
    inject_before_head_close,
)

RED = compute_style_class("color:red")


def test_collapse_shares_one_class_per_declaration() -> None:
    html = (
        "<html><head><title>t</title></head><body>"
        '<div style="color:red">a</div><p style="color:red">b</p>'
        "</body></html>"
    )
    out, count = collapse_inline_styles(html)
    assert count == 2
    assert f'<div class="{RED}">a</div><p class="{RED}">b</p>' in out
    assert f'<style nonce="NGINX_CSP_NONCE">.{RED}{{color:red}}</style></head>' in out
    assert out.count(f".{RED}{{") == 1
    assert "style=" not in out.replace("<style nonce", "")


def test_collapse_merges_into_existing_class_before_style() -> None:
    out, count = collapse_inline_styles('<head></head><div class="box" style="color:red"></div>')
    assert count == 1
    assert f'<div class="box {RED}"></div>' in out


def test_collapse_merges_into_existing_class_after_style() -> None:
    out, _ = collapse_inline_styles("<head></head><span style='color:red' class='a b'>x</span>")
    assert f"<span class='a b {RED}'>x</span>" in out


def test_collapse_merges_into_unquoted_class() -> None:
    out, count = collapse_inline_styles('<head></head><div class=box style="color:red">x</div>')
    assert count == 1
    assert f'<div class="box {RED}">x</div>' in out
    assert out.count("class=") == 1

    out, _ = collapse_inline_styles("<head></head><p style='color:red' data-class=y class=z>x</p>")
    assert f'<p data-class=y class="z {RED}">x</p>' in out


def test_collapse_keeps_other_attributes_in_place() -> None:
    out, _ = collapse_inline_styles('<head></head><a href="/x" style="color:red" title="t">x</a>')
    assert f'<a href="/x" class="{RED}" title="t">x</a>' in out


def test_collapse_single_quoted_declaration_with_double_quotes() -> None:
    out, count = collapse_inline_styles("<head></head><p style='font-family:\"A B\"'>x</p>")
    cls = compute_style_class('font-family:"A B"')
    assert count == 1
    assert f'<p class="{cls}">x</p>' in out
    assert f'.{cls}{{font-family:"A B"}}' in out


def test_collapse_does_not_normalize_declarations() -> None:
    out, count = collapse_inline_styles('<head></head><i style="color:red"></i><b style="color: red"></b>')
    assert count == 2
    assert RED in out
    assert compute_style_class("color: red") in out


def test_collapse_ignores_data_style_and_quoted_text() -> None:
    html = '<head></head><div data-style="color:red" title=\' style="x"\'>x</div>'
    assert collapse_inline_styles(html) == (html, 0)


def test_collapse_without_styles_is_unchanged() -> None:
    html = "<html><head></head><body><p>plain</p></body></html>"
    assert collapse_inline_styles(html) == (html, 0)


def test_collapse_is_idempotent() -> None:
    once, _ = collapse_inline_styles('<html><head></head><body><p style="margin:0">x</p></body></html>')
    twice, count = collapse_inline_styles(once)
    assert count == 0
    assert twice == once


def test_custom_nonce() -> None:
    out, _ = collapse_inline_styles('<head></head><p style="margin:0"></p>', nonce="abc")
    assert '<style nonce="abc">' in out


def test_inject_before_head_close_appends_without_head() -> None:
    assert inject_before_head_close("<p>x</p>", "<style></style>") == "<p>x</p><style></style>"
    assert inject_before_head_close("<HEAD></HEAD>", "S") == "<HEAD>S</HEAD>"


def test_build_style_block_orders_rules_by_first_use() -> None:
    block = build_style_block({"b:1": "ec-2", "a:1": "ec-1"}, nonce="n")
    assert block == '<style nonce="n">.ec-2{b:1}.ec-1{a:1}</style>'
