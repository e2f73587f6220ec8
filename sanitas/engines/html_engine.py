"""HTML Sanitization Engine for XSS Protection.

This module wraps the `bleach` library to clean individual strings. It never
parses markup itself: bleach builds the tree and filters tags and attributes,
while this module decides which tags, attributes and URL protocols a policy
allows and which element bodies are dropped.

Fail-Safe Policy:
    - If bleach raises for any reason, the string is reduced with a strict
      regex strip and entity-escaped. The fallback output is never less
      restrictive than the normal output, and no exception reaches the caller.
"""

import re
import logging
from decimal import Decimal
from functools import partial
from typing import FrozenSet, Optional, Union

import bleach
from bleach.html5lib_shim import Filter

from sanitas.app.config import settings
from sanitas.app.policy import SanitizationPolicy, compose_policy, get_policy
from sanitas.engines.url_engine import ALLOWED_SCHEMES
from sanitas.exceptions import MalformedInputError

logger = logging.getLogger("sanitas.html")

# Elements whose content is never rendered as text; their bodies are always
# removed, even under policies that otherwise keep children of stripped tags.
CONTENT_DROPPED_TAGS = frozenset([
    "script", "style", "template", "iframe", "noscript", "noembed",
    "noframes", "object", "embed", "applet", "title", "xmp", "plaintext",
    "svg", "math", "audio", "video", "head",
])

# Known element names, used to drop whole subtrees when a policy sets
# strip_unknown_tag_bodies. Custom elements are still stripped, body kept.
HTML_ELEMENTS = frozenset([
    "a", "abbr", "acronym", "address", "area", "article", "aside", "audio",
    "b", "bdi", "bdo", "big", "blink", "blockquote", "body", "br", "button",
    "canvas", "caption", "center", "cite", "code", "col", "colgroup",
    "data", "datalist", "dd", "del", "details", "dfn", "dialog", "dir",
    "div", "dl", "dt", "em", "fieldset", "figcaption", "figure", "font",
    "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hgroup",
    "hr", "html", "i", "img", "input", "ins", "kbd", "keygen", "label",
    "legend", "li", "main", "map", "mark", "marquee", "menu", "meter", "nav",
    "ol", "optgroup", "option", "output", "p", "param", "picture", "pre",
    "progress", "q", "rp", "rt", "ruby", "s", "samp", "section", "select",
    "small", "source", "span", "strike", "strong", "sub", "summary", "sup",
    "table", "tbody", "td", "textarea", "tfoot", "th", "thead", "time", "tr",
    "track", "tt", "u", "ul", "var", "video", "wbr",
]) | CONTENT_DROPPED_TAGS

DANGEROUS_PATTERNS = [
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
]

# Tag bodies stop at the next "<" so no match attempt rescans the string.
HTML_LIKE = re.compile(r"</?[a-z][^<>]*>", re.IGNORECASE)
TAG = re.compile(r"<[^<>]*>")
SCRIPT_BLOCK = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

# Ampersand first, so later replacements are not escaped twice.
ENTITY_REPLACEMENTS = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#039;"),
)


class DropContentFilter(Filter):
    """Removes the listed elements and everything nested inside them.

    Runs after bleach's sanitizer, which has been told to keep these
    elements so that their boundaries are still visible in the token stream.
    """

    def __init__(self, source, drop_tags: FrozenSet[str] = frozenset()):
        super().__init__(source)
        self.drop_tags = drop_tags

    def __iter__(self):
        depth = 0
        for token in Filter.__iter__(self):
            kind = token["type"]
            if kind in ("StartTag", "EndTag", "EmptyTag") and token["name"] in self.drop_tags:
                if kind == "StartTag":
                    depth += 1
                elif kind == "EndTag" and depth:
                    depth -= 1
                continue
            if depth:
                continue
            yield token


def escape_entities(text: str) -> str:
    """Replaces the five HTML-significant characters with entity codes.

    Lossless: nothing is removed, and entity decoding restores the input.
    """
    if not text:
        return ""
    for char, entity in ENTITY_REPLACEMENTS:
        text = text.replace(char, entity)
    return text


def escape_text(value: Union[str, int, float, Decimal, None]) -> str:
    """Escapes a value for a plain-text display context.

    Numbers are rendered as decimal strings and None as an empty string
    before escaping. Booleans are rejected rather than rendered as
    "True" or "False".

    Raises:
        MalformedInputError: If the value is a boolean, or is not text, a
            number or None.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        raise MalformedInputError("Cannot escape a boolean")
    if isinstance(value, (int, float, Decimal)):
        value = str(value)
    if not isinstance(value, str):
        raise MalformedInputError(f"Cannot escape value of type {type(value).__name__}")
    return escape_entities(value)


def is_dangerous(value) -> bool:
    """Advisory check for well-known XSS payload shapes.

    Used to enrich warnings only; it never decides whether sanitization runs.
    """
    if not isinstance(value, str):
        return False
    return any(pattern.search(value) for pattern in DANGEROUS_PATTERNS)


def looks_like_html(value: str) -> bool:
    """True when the string contains something shaped like a tag."""
    return bool(HTML_LIKE.search(value.strip()))


def fallback_strip(value: str) -> str:
    """The strict regex strip used when bleach itself fails.

    Script and style blocks are removed with their content, remaining tags
    are dropped, and whatever is left is entity-escaped so no raw `<` or `>`
    survives.
    """
    if not value:
        return ""
    stripped = SCRIPT_BLOCK.sub("", value)
    stripped = TAG.sub("", stripped)
    return escape_entities(stripped)


def build_cleaner(policy: SanitizationPolicy) -> bleach.Cleaner:
    """Configures a bleach Cleaner enforcing `policy`.

    A new Cleaner is built per call; Cleaner instances are not shared
    between threads.
    """
    drop_tags = CONTENT_DROPPED_TAGS - policy.allowed_tags
    if policy.strip_unknown_tag_bodies:
        drop_tags |= HTML_ELEMENTS - policy.allowed_tags

    return bleach.Cleaner(
        # Dropped elements must reach the tree so the filter can see their bounds
        tags=policy.allowed_tags | drop_tags,
        attributes=sorted(policy.flat_attributes),
        protocols=ALLOWED_SCHEMES,
        strip=policy.strip_unknown_tags,
        strip_comments=True,
        filters=[partial(DropContentFilter, drop_tags=drop_tags)],
    )


def strip_to_text(value: Optional[str]) -> str:
    """Removes all markup and returns the text a browser would display.

    Args:
        value (str): Untrusted input. None and empty strings yield "".

    Returns:
        str: Serialized text with `&`, `<` and `>` as entities.
    """
    if not value:
        return ""
    if not isinstance(value, str):
        raise MalformedInputError(f"Cannot strip value of type {type(value).__name__}")

    try:
        return build_cleaner(get_policy("text")).clean(value)
    except Exception as e:
        logger.error(f"❌ Tag stripping failed, using regex fallback: {e}")
        return fallback_strip(value)


def apply_policy(value: Optional[str], policy: SanitizationPolicy) -> str:
    """Filters markup through an already resolved policy.

    Disallowed tags are removed (or escaped when the policy keeps unknown
    tags as text), disallowed attributes and URL protocols are dropped.
    Any failure degrades to `strip_to_text`.
    """
    if not value:
        return ""
    if not isinstance(value, str):
        raise MalformedInputError(f"Cannot filter value of type {type(value).__name__}")

    try:
        return build_cleaner(policy).clean(value)
    except Exception as e:
        logger.error(f"❌ HTML filtering failed under policy '{policy.name}', stripping instead: {e}")
        return strip_to_text(value)


def filter_html(
    value: Optional[str],
    policy_name: Optional[str] = None,
    allowed_tags=None,
) -> str:
    """Sanitizes HTML while keeping the markup a named policy allows.

    Args:
        value (str): Untrusted HTML.
        policy_name (str, optional): Registered policy. Defaults to
            `settings.DEFAULT_POLICY`.
        allowed_tags (Iterable[str], optional): Replaces the policy's tag set.

    Returns:
        str: The filtered HTML.

    Raises:
        UnknownPolicyError: If `policy_name` is not registered.
    """
    policy = get_policy(policy_name or settings.DEFAULT_POLICY)
    if allowed_tags is not None:
        policy = compose_policy(policy, {"allowed_tags": allowed_tags})
    return apply_policy(value, policy)


def clean_string(value: str, policy: SanitizationPolicy) -> str:
    """Cleans one string leaf of a structure.

    Markup-looking strings go through `policy`; plain strings only lose angle
    brackets and control characters. Both are trimmed.
    """
    trimmed = value.strip()
    if not trimmed:
        return ""
    if looks_like_html(trimmed):
        return apply_policy(trimmed, policy)
    return CONTROL_CHARS.sub("", trimmed.replace("<", "").replace(">", "")).strip()
