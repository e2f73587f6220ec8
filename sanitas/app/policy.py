"""Sanitization Policy Registry.

This module holds the named, immutable sanitization policies used by the HTML
engine. A set of presets is built in; deployments may add their own named
policies in an external YAML file (`sanitas.yaml`), which is read once when
the registry is created and never modified afterwards.

Typical Usage:
    from sanitas.app.policy import get_policy, compose_policy
    comment = get_policy("comment")
    bio = compose_policy(comment, {"extra_tags": ["p"]})
"""

import os
import logging
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sanitas.app.config import settings
from sanitas.exceptions import PolicyConfigurationError, UnknownPolicyError

logger = logging.getLogger("sanitas.policy")

# Elements no attribute allowlist can make safe.
FORBIDDEN_TAGS = frozenset([
    "script", "style", "iframe", "object", "embed", "applet",
    "base", "meta", "link", "frame", "frameset",
])

OVERRIDE_KEYS = frozenset([
    "name", "allowed_tags", "extra_tags", "allowed_attributes",
    "strip_unknown_tags", "strip_unknown_tag_bodies",
])


class SanitizationPolicy(BaseModel):
    """An immutable description of the markup a caller permits.

    Attributes:
        name (str): Registry name, used in logs.
        allowed_tags (FrozenSet[str]): Tags kept in the output.
        allowed_attributes (Mapping[str, FrozenSet[str]]): Attributes per tag,
            held in a read-only mapping.
        strip_unknown_tags (bool): Remove disallowed tag markers when True,
            escape them into visible text when False.
        strip_unknown_tag_bodies (bool): Remove disallowed elements together
            with everything inside them.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = "custom"
    allowed_tags: FrozenSet[str] = frozenset()
    allowed_attributes: MappingProxyType = Field(default_factory=lambda: MappingProxyType({}))
    strip_unknown_tags: bool = True
    strip_unknown_tag_bodies: bool = False

    @field_validator("allowed_tags")
    @classmethod
    def _check_tags(cls, tags):
        tags = frozenset(tag.strip().lower() for tag in tags)
        forbidden = tags & FORBIDDEN_TAGS
        if forbidden:
            raise ValueError(f"Tags can never be allowed: {sorted(forbidden)}")
        return tags

    @field_validator("allowed_attributes", mode="plain")
    @classmethod
    def _normalize_attributes(cls, attributes):
        if not isinstance(attributes, Mapping):
            raise ValueError("allowed_attributes must map tag names to attribute lists")
        normalized = {}
        for tag, attrs in attributes.items():
            valid = isinstance(tag, str) and isinstance(attrs, (list, tuple, set, frozenset))
            if not valid or not all(isinstance(attr, str) for attr in attrs):
                raise ValueError(f"Invalid attribute allowlist for tag {tag!r}")
            normalized[tag.strip().lower()] = frozenset(attr.strip().lower() for attr in attrs)
        return MappingProxyType(normalized)

    @property
    def flat_attributes(self) -> FrozenSet[str]:
        """Union of every attribute allowed on any tag."""
        flat = frozenset()
        for attrs in self.allowed_attributes.values():
            flat |= attrs
        return flat


def _build(**fields) -> SanitizationPolicy:
    """Constructs a policy, turning validation failures into configuration errors."""
    try:
        return SanitizationPolicy(**fields)
    except ValidationError as e:
        raise PolicyConfigurationError(
            f"Invalid sanitization policy {fields.get('name', 'custom')!r}: {e}"
        ) from e


_TABLE_TAGS = ["table", "thead", "tbody", "tr", "th", "td"]
_HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
_INLINE = ["b", "i", "em", "strong", "u", "s", "sub", "sup"]

BUILTIN_POLICIES: Mapping[str, SanitizationPolicy] = MappingProxyType({
    # No markup at all; used by strip_to_text
    "text": _build(name="text"),
    "base": _build(
        name="base",
        allowed_tags=["b", "i", "em", "strong", "p", "br", "ul", "ol", "li", "a"],
        allowed_attributes={"a": ["href", "title"]},
    ),
    "strict": _build(
        name="strict",
        allowed_tags=["b", "i", "em", "strong"],
        strip_unknown_tag_bodies=True,
    ),
    "liberal": _build(
        name="liberal",
        allowed_tags=_HEADINGS + _INLINE + [
            "p", "br", "hr", "ul", "ol", "li", "a", "img",
            "blockquote", "code", "pre", "div", "span",
        ] + _TABLE_TAGS,
        allowed_attributes={
            "a": ["href", "title", "target"],
            "img": ["src", "alt", "title", "width", "height"],
            "blockquote": ["cite"],
            "table": ["class"],
            "th": ["scope"],
            "td": ["colspan", "rowspan"],
        },
        strip_unknown_tags=False,
    ),
    "blog": _build(
        name="blog",
        allowed_tags=_HEADINGS[1:] + [
            "p", "br", "b", "i", "em", "strong", "u", "ul", "ol", "li",
            "a", "img", "blockquote", "code", "div", "span",
        ],
        allowed_attributes={
            "a": ["href", "title", "rel"],
            "img": ["src", "alt", "title"],
            "blockquote": ["cite"],
            "div": ["class"],
            "span": ["class"],
        },
    ),
    "comment": _build(
        name="comment",
        allowed_tags=["b", "i", "em", "strong", "br", "a"],
        allowed_attributes={"a": ["href", "title"]},
        strip_unknown_tag_bodies=True,
    ),
    "email": _build(
        name="email",
        allowed_tags=["p", "br", "b", "i", "em", "strong", "a"],
        allowed_attributes={"a": ["href", "title"]},
        strip_unknown_tag_bodies=True,
    ),
    "admin": _build(
        name="admin",
        allowed_tags=_HEADINGS + _INLINE + [
            "p", "br", "hr", "ul", "ol", "li", "a", "img",
            "blockquote", "code", "pre", "div", "span", "section", "article",
            "form", "input", "textarea", "select", "option", "button", "label",
        ] + _TABLE_TAGS,
        allowed_attributes={
            "a": ["href", "title", "target", "rel"],
            "img": ["src", "alt", "title", "width", "height", "class"],
            "blockquote": ["cite"],
            "table": ["class"],
            "th": ["scope", "class"],
            "td": ["colspan", "rowspan", "class"],
            "div": ["class", "id"],
            "span": ["class", "id"],
            "form": ["action", "method"],
            "input": ["type", "name", "value", "placeholder", "required"],
            "textarea": ["name", "placeholder", "required", "rows", "cols"],
            "select": ["name", "required"],
            "option": ["value"],
            "button": ["type", "class"],
            "label": ["for"],
        },
        strip_unknown_tags=False,
    ),
})


def compose_policy(
    base: Union[str, SanitizationPolicy],
    overrides: Optional[Mapping[str, Any]] = None,
) -> SanitizationPolicy:
    """Derives a new policy from `base` without touching it.

    Args:
        base (Union[str, SanitizationPolicy]): A policy or a registered name.
        overrides (Mapping[str, Any], optional): Any of:
            - allowed_tags: replaces the tag set.
            - extra_tags: added to the (possibly replaced) tag set.
            - allowed_attributes: merged per tag, overrides win.
            - strip_unknown_tags / strip_unknown_tag_bodies / name: replaced.

    Returns:
        SanitizationPolicy: The composed policy.

    Raises:
        UnknownPolicyError: If `base` names an unregistered policy.
        PolicyConfigurationError: If an override key is unknown or the
            result is not a valid policy.
    """
    if isinstance(base, str):
        base = get_policy(base)
    overrides = dict(overrides or {})

    unknown = set(overrides) - OVERRIDE_KEYS
    if unknown:
        raise PolicyConfigurationError(f"Unknown policy override keys: {sorted(unknown)}")

    replaced = overrides.get("allowed_tags")
    tags = set(base.allowed_tags if replaced is None else replaced)
    tags.update(overrides.get("extra_tags") or ())

    extra_attributes = overrides.get("allowed_attributes") or {}
    if not isinstance(extra_attributes, Mapping):
        raise PolicyConfigurationError("allowed_attributes must map tag names to attribute lists")
    attributes = dict(base.allowed_attributes)
    attributes.update(extra_attributes)

    return _build(
        name=overrides.get("name", base.name),
        allowed_tags=tags,
        allowed_attributes=attributes,
        strip_unknown_tags=overrides.get("strip_unknown_tags", base.strip_unknown_tags),
        strip_unknown_tag_bodies=overrides.get(
            "strip_unknown_tag_bodies", base.strip_unknown_tag_bodies
        ),
    )


class PolicyRegistry:
    """The read-only set of named policies available to the engine.

    The registry is populated once, from the built-in presets plus the
    optional YAML file, and exposes its contents through a read-only mapping.
    """

    def __init__(self, config_path: Optional[str] = None):
        """Builds the registry.

        Args:
            config_path (str, optional): Path of the YAML policy file. A
                missing file only means no custom policies are defined.

        Raises:
            PolicyConfigurationError: If the file exists but cannot be parsed
                or defines an invalid policy. Misconfiguration is never
                silently replaced by a default.
        """
        self.config_path = config_path
        policies = dict(BUILTIN_POLICIES)
        policies.update(self._load_custom(policies))
        self._policies = MappingProxyType(policies)

    def _load_custom(self, known: Dict[str, SanitizationPolicy]) -> Dict[str, SanitizationPolicy]:
        if not self.config_path or not os.path.exists(self.config_path):
            logger.warning(f"⚠️ Policy file not found at {self.config_path}. Using built-in policies.")
            return {}

        try:
            with open(self.config_path, "r") as f:
                document = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.critical(f"❌ Failed to load sanitization policies: {e}")
            raise PolicyConfigurationError(f"Cannot read policy file {self.config_path}: {e}") from e

        definitions = document.get("policies") if isinstance(document, dict) else None
        if not isinstance(definitions, dict):
            raise PolicyConfigurationError(
                f"Policy file {self.config_path} must contain a 'policies' mapping"
            )

        custom = {}
        for name, definition in definitions.items():
            if name in known or name in custom:
                raise PolicyConfigurationError(f"Policy {name!r} is already defined")
            if not isinstance(definition, dict):
                raise PolicyConfigurationError(f"Policy {name!r} must be a mapping")

            definition = dict(definition)
            parent = definition.pop("extends", None)
            if parent is None:
                base = _build(name=name)
            elif parent in custom:
                base = custom[parent]
            elif parent in known:
                base = known[parent]
            else:
                raise PolicyConfigurationError(f"Policy {name!r} extends unknown policy {parent!r}")

            definition["name"] = name
            custom[name] = compose_policy(base, definition)

        logger.info(f"✅ Loaded {len(custom)} custom sanitization policies from {self.config_path}")
        return custom

    @property
    def names(self):
        return sorted(self._policies)

    def get(self, name: str) -> SanitizationPolicy:
        """Returns the policy registered under `name`.

        Raises:
            UnknownPolicyError: If no policy has that name.
        """
        try:
            return self._policies[name]
        except KeyError:
            raise UnknownPolicyError(name) from None

    def __contains__(self, name):
        return name in self._policies


registry = PolicyRegistry(settings.POLICY_FILE)


def get_policy(name: str) -> SanitizationPolicy:
    """Looks up a named policy in the process-wide registry."""
    return registry.get(name)
