"""Unit tests for recursive structural sanitization.

Only string leaves may change. Shapes, non-string scalars and sensitive keys
pass through untouched, and the caller's data is never mutated.
"""

from __future__ import annotations

import copy
import re
from collections import namedtuple
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from sanitas.app.policy import get_policy
from sanitas.engines.structure_engine import NodeKind, classify, sanitize_structure
from sanitas.exceptions import MalformedInputError, UnknownPolicyError


def _shape(value):
    """Reduces a value to its key sets and sequence lengths."""
    if isinstance(value, dict):
        return {key: _shape(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [type(value).__name__] + [_shape(item) for item in value]
    return type(value).__name__ if not isinstance(value, str) else "str"


# ------------------------------------------------------------------
# String leaves
# ------------------------------------------------------------------


def test_sanitizes_string_values_in_mapping():
    outcome = sanitize_structure({"a": "<b>ok</b>", "b": "<script>bad()</script>"})

    assert outcome.value == {"a": "<b>ok</b>", "b": ""}
    assert outcome.was_modified is True
    assert outcome.warnings == ["Dangerous content removed from: b"]


def test_nested_paths_are_reported():
    outcome = sanitize_structure(
        {"user": {"bio": "<img src=x onerror=alert(1)>"}, "tags": ["fine", "<script>x</script>"]}
    )

    assert outcome.value == {"user": {"bio": ""}, "tags": ["fine", ""]}
    assert outcome.warnings == [
        "Dangerous content removed from: user.bio",
        "Dangerous content removed from: tags[1]",
    ]


def test_root_string_is_sanitized():
    outcome = sanitize_structure("<script>x</script>")

    assert outcome.value == ""
    assert outcome.warnings == ["Dangerous content removed from: (root)"]


def test_harmless_changes_mark_modified_without_warning():
    outcome = sanitize_structure({"a": "<u>underline</u>"}, "base")

    assert outcome.value == {"a": "underline"}
    assert outcome.was_modified is True
    assert outcome.warnings == []


def test_clean_input_is_not_modified():
    outcome = sanitize_structure({"a": "plain", "b": ["x", "y"], "c": 1})

    assert outcome.value == {"a": "plain", "b": ["x", "y"], "c": 1}
    assert outcome.was_modified is False
    assert outcome.warnings == []


def test_plain_text_loses_angle_brackets():
    assert sanitize_structure({"a": "  5 > 3  "}).value == {"a": "5  3"}


def test_sequence_elements_follow_the_same_contract_as_mapping_values():
    value = "<b>bold</b><i>it</i><u>u</u>"
    outcome = sanitize_structure({"item": value, "items": [value]})

    assert outcome.value["items"][0] == outcome.value["item"]


def test_policy_can_be_named_or_passed():
    by_name = sanitize_structure({"a": "<p>x</p>"}, "text")
    by_object = sanitize_structure({"a": "<p>x</p>"}, get_policy("text"))

    assert by_name.value == by_object.value == {"a": "x"}


def test_unknown_policy_raises():
    with pytest.raises(UnknownPolicyError):
        sanitize_structure({"a": "x"}, "missing")


# ------------------------------------------------------------------
# Shape and scalars
# ------------------------------------------------------------------


def test_shape_is_preserved():
    value = {
        "title": "<h1>T</h1>",
        "items": [{"name": "<b>a</b>", "n": 1}, ["<i>x</i>", None, True]],
        "meta": {"empty": [], "nested": {"deep": ("<script>x</script>", 2.5)}},
    }

    outcome = sanitize_structure(value)

    assert _shape(outcome.value) == _shape(value)
    assert list(outcome.value) == list(value)


@pytest.mark.parametrize(
    "scalar",
    [
        None,
        True,
        0,
        3.14,
        Decimal("1.10"),
        datetime(2024, 1, 1, tzinfo=timezone.utc),
        re.compile(r"<script>"),
    ],
)
def test_non_string_scalars_pass_through(scalar):
    outcome = sanitize_structure({"value": scalar, "items": [scalar]})

    assert outcome.value["value"] is scalar
    assert outcome.value["items"][0] is scalar
    assert outcome.was_modified is False


def test_tuples_keep_their_type():
    Point = namedtuple("Point", "x label")

    outcome = sanitize_structure({"pair": ("<b>a</b>", 1), "point": Point(1, "<script>x</script>")})

    assert outcome.value["pair"] == ("<b>a</b>", 1)
    assert outcome.value["point"] == Point(1, "")
    assert type(outcome.value["point"]) is Point


def test_input_is_not_mutated():
    value = {"a": "<script>x</script>", "b": ["<u>y</u>", {"c": "<i>z</i><u>u</u>"}]}
    original = copy.deepcopy(value)

    sanitize_structure(value)

    assert value == original


# ------------------------------------------------------------------
# Sensitive fields
# ------------------------------------------------------------------


def test_sensitive_fields_are_exempt_at_every_depth():
    secret = "<b>p@ss</b><script>not really</script>"
    value = {"password": secret, "profile": {"token": secret, "items": [{"apiKey": secret}]}}

    outcome = sanitize_structure(value)

    assert outcome.value["password"] is secret
    assert outcome.value["profile"]["token"] is secret
    assert outcome.value["profile"]["items"][0]["apiKey"] is secret
    assert outcome.warnings == []


def test_sensitive_fields_can_be_overridden():
    outcome = sanitize_structure(
        {"password": "<u>x</u>", "pin": "<u>1234</u>"},
        sensitive_fields=["pin"],
    )

    assert outcome.value == {"password": "x", "pin": "<u>1234</u>"}


# ------------------------------------------------------------------
# Malformed input
# ------------------------------------------------------------------


@pytest.mark.parametrize("bad", [{1, 2}, b"<script>", object()])
def test_unsupported_types_raise(bad):
    with pytest.raises(MalformedInputError):
        sanitize_structure({"a": [bad]})


def test_depth_limit():
    value = {"a": {"b": {"c": "x"}}}

    with pytest.raises(MalformedInputError):
        sanitize_structure(value, max_depth=2)

    assert sanitize_structure(value, max_depth=3).value == value


@pytest.mark.parametrize(
    ("value", "kind"),
    [
        ("s", NodeKind.TEXT),
        (1, NodeKind.SCALAR),
        (None, NodeKind.SCALAR),
        ([1], NodeKind.SEQUENCE),
        ((1,), NodeKind.SEQUENCE),
        ({"a": 1}, NodeKind.MAPPING),
    ],
)
def test_classify(value, kind):
    assert classify(value) is kind
