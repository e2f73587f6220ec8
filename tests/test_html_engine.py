"""Unit tests for the scalar sanitizer (tag stripping, policy filtering, escaping).

bleach does the tree-level filtering; these tests pin down the policy
decisions layered on top of it and the regex fail-safe used when bleach
itself breaks.
"""

from __future__ import annotations

import time

import bleach
import pytest

from sanitas.app.policy import get_policy
from sanitas.engines.html_engine import (
    clean_string,
    escape_entities,
    escape_text,
    fallback_strip,
    filter_html,
    is_dangerous,
    looks_like_html,
    strip_to_text,
)
from sanitas.exceptions import MalformedInputError, UnknownPolicyError


# ------------------------------------------------------------------
# strip_to_text
# ------------------------------------------------------------------


def test_strip_removes_script_with_its_body():
    assert strip_to_text('<script>alert("XSS")</script>Hello') == "Hello"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Safe text", "Safe text"),
        ("<b>ok</b>", "ok"),
        ("<p>Hello <b>world</b></p>", "Hello world"),
        ("<style>body{display:none}</style>visible", "visible"),
        ("Tom & Jerry", "Tom &amp; Jerry"),
    ],
)
def test_strip_returns_text_content(value, expected):
    assert strip_to_text(value) == expected


@pytest.mark.parametrize("value", ["", None])
def test_strip_empty_input_yields_empty_string(value):
    assert strip_to_text(value) == ""


def test_strip_drops_event_handlers():
    result = strip_to_text('<img src=x onerror="alert(1)">caption')

    assert result == "caption"
    assert "onerror" not in result


@pytest.mark.parametrize(
    "value",
    [
        "<p>Hello <b>world</b></p>",
        "a < b & c",
        "<img src=x onerror=alert(1)>",
        "<scr<script>ipt>alert(1)</script>",
        "&lt;script&gt;",
    ],
)
def test_strip_is_idempotent(value):
    once = strip_to_text(value)
    assert strip_to_text(once) == once


# ------------------------------------------------------------------
# filter_html
# ------------------------------------------------------------------


def test_filter_keeps_allowed_tags_and_drops_script():
    result = filter_html("<b>Bold</b><script>evil()</script>", allowed_tags=["b"])

    assert "<b>Bold</b>" in result
    assert "<script" not in result
    assert "evil()" not in result


def test_filter_keeps_policy_attributes():
    html = '<span class="red">text</span>'
    assert filter_html(html, "blog") == html


def test_filter_removes_dangerous_attributes_and_protocols():
    result = filter_html('<a href="javascript:alert(1)" onclick="x()">link</a>')

    assert result == "<a>link</a>"


def test_filter_keeps_safe_links():
    result = filter_html('<a href="https://example.com" title="t">x</a>')

    assert 'href="https://example.com"' in result
    assert 'title="t"' in result


def test_filter_promotes_children_of_unknown_tags():
    result = filter_html("<b>keep</b><div>text</div>", "base")

    assert "<b>keep</b>" in result
    assert "text" in result
    assert "<div" not in result


def test_filter_drops_unknown_tag_bodies_when_policy_says_so():
    result = filter_html("<b>keep</b><div>drop <i>me</i></div>", "comment")

    assert result == "<b>keep</b>"


def test_filter_escapes_unknown_tags_when_not_stripping():
    result = filter_html("<x-widget>hi</x-widget>", "liberal")

    assert "&lt;x-widget&gt;" in result
    assert "<x-widget" not in result


def test_filter_strips_comments():
    assert filter_html("<b>a</b><!-- <script>x()</script> -->") == "<b>a</b>"


@pytest.mark.parametrize("value", ["", None])
def test_filter_empty_input_yields_empty_string(value):
    assert filter_html(value) == ""


def test_filter_unknown_policy_raises():
    with pytest.raises(UnknownPolicyError):
        filter_html("<b>x</b>", "no-such-policy")


@pytest.mark.parametrize("policy_name", ["base", "strict", "liberal", "comment"])
@pytest.mark.parametrize(
    "value",
    [
        "<b>Bold</b><script>evil()</script>",
        '<a href="https://x.com" onclick="y()">x</a> & more',
        "<div><p>para</p><x-foo>custom</x-foo></div>",
    ],
)
def test_filter_is_idempotent(policy_name, value):
    once = filter_html(value, policy_name)
    assert filter_html(once, policy_name) == once


# ------------------------------------------------------------------
# Fail-safe when bleach breaks
# ------------------------------------------------------------------


@pytest.fixture
def broken_bleach(monkeypatch):
    def boom(self, text):
        raise RuntimeError("parser exploded")

    monkeypatch.setattr(bleach.sanitizer.Cleaner, "clean", boom)


@pytest.mark.parametrize(
    "value",
    [
        "<script>alert(1)</script><b onmouseover=x>hi</b>",
        "<img src=x onerror=alert(1)",
        '<a href="javascript:alert(1)">x</a>',
    ],
)
def test_strip_falls_back_without_raw_markup(broken_bleach, value):
    result = strip_to_text(value)

    assert "<" not in result
    assert ">" not in result


@pytest.mark.parametrize(
    "value",
    [
        "<b>Bold</b><script>evil()</script>",
        "<svg/onload=alert(1)>",
    ],
)
def test_filter_falls_back_without_raw_markup(broken_bleach, value):
    result = filter_html(value, "liberal")

    assert "<" not in result
    assert ">" not in result


def test_fallback_drops_script_blocks():
    assert fallback_strip("<script>evil()</script><b>hi</b>") == "hi"


# ------------------------------------------------------------------
# Escaping
# ------------------------------------------------------------------


def test_escape_replaces_entities_ampersand_first():
    assert escape_text("<div>\"'&</div>") == "&lt;div&gt;&quot;&#039;&amp;&lt;/div&gt;"


def test_escape_is_lossless_for_existing_entities():
    assert escape_entities("&lt;") == "&amp;lt;"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("hello", "hello"),
        ("", ""),
        (None, ""),
        (42, "42"),
        (3.5, "3.5"),
    ],
)
def test_escape_text_stringifies_scalars(value, expected):
    assert escape_text(value) == expected


def test_escape_text_rejects_composites():
    with pytest.raises(MalformedInputError):
        escape_text(["<b>"])


@pytest.mark.parametrize("value", [True, False])
def test_escape_text_rejects_booleans(value):
    with pytest.raises(MalformedInputError):
        escape_text(value)


# ------------------------------------------------------------------
# Detection helpers
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("<script>alert(1)</script>", True),
        ("<img src=x onerror = alert(1)>", True),
        ("JavaScript:void(0)", True),
        ("eval (payload)", True),
        ("width: expression(alert(1))", True),
        ("just some words", False),
        ("<b>bold</b>", False),
        (123, False),
    ],
)
def test_is_dangerous(value, expected):
    assert is_dangerous(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("<b>x</b>", True),
        ("</p>", True),
        ("a < b", False),
        ("5 > 3", False),
        ("<a href=\"x\"", False),
    ],
)
def test_looks_like_html(value, expected):
    assert looks_like_html(value) is expected


def test_detection_is_linear_on_unterminated_tags():
    value = "<a" * 100_000

    start = time.perf_counter()
    assert looks_like_html(value) is False
    assert is_dangerous("on" * 100_000) is False
    assert clean_string(value, get_policy("base")) == "a" * 100_000
    assert fallback_strip(value) == "&lt;a" * 100_000

    assert time.perf_counter() - start < 2.0


def test_clean_string_plain_text_loses_brackets_and_control_chars():
    assert clean_string("  a < b\x00 > c  ", get_policy("base")) == "a  b  c"


def test_clean_string_markup_goes_through_policy():
    assert clean_string(" <b>ok</b><u>u</u> ", get_policy("base")) == "<b>ok</b>u"
