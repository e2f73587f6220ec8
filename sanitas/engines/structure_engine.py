"""Recursive sanitization of nested data.

Values are classified into a small tagged variant (text, scalar, sequence,
mapping) and a single recursive visit dispatches on that tag. Only string
leaves change; key sets, sequence lengths and order are preserved, and the
caller's input is never mutated.

Input is assumed to be acyclic. Callers that cannot guarantee this should pass
`max_depth`.
"""

import re
import uuid
import logging
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

from pydantic import BaseModel

from sanitas.app.config import settings
from sanitas.app.policy import SanitizationPolicy, get_policy
from sanitas.engines.html_engine import clean_string, is_dangerous
from sanitas.exceptions import MalformedInputError

logger = logging.getLogger("sanitas.structure")

SCALAR_TYPES = (
    bool, int, float, Decimal, type(None),
    date, datetime, time, timedelta, uuid.UUID, re.Pattern,
)


class NodeKind(Enum):
    TEXT = "text"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


class SanitizationOutcome(BaseModel):
    """Result of a structural sanitization.

    Attributes:
        value (Any): The sanitized copy.
        was_modified (bool): True if any string leaf changed.
        warnings (List[str]): Informational notes, e.g. where dangerous
            content was removed. Never used for control flow.
    """
    value: Any = None
    was_modified: bool = False
    warnings: List[str] = []


def classify(value) -> NodeKind:
    """Tags a value with its node kind.

    Raises:
        MalformedInputError: If the value is neither a known scalar nor a
            list, tuple or mapping.
    """
    if isinstance(value, str):
        return NodeKind.TEXT
    if isinstance(value, SCALAR_TYPES):
        return NodeKind.SCALAR
    if isinstance(value, Mapping):
        return NodeKind.MAPPING
    if isinstance(value, (list, tuple)):
        return NodeKind.SEQUENCE
    raise MalformedInputError(f"Cannot sanitize value of type {type(value).__name__}")


class _Traversal:
    """State of one sanitize_structure call."""

    def __init__(self, policy: SanitizationPolicy, sensitive_fields: frozenset, max_depth: Optional[int]):
        self.policy = policy
        self.sensitive_fields = sensitive_fields
        self.max_depth = max_depth
        self.modified = False
        self.warnings = []

    def visit(self, value, path: str, depth: int = 0):
        kind = classify(value)

        if kind is NodeKind.SCALAR:
            return value
        if kind is NodeKind.TEXT:
            return self._visit_text(value, path)

        if self.max_depth is not None and depth >= self.max_depth:
            raise MalformedInputError(f"Nesting deeper than {self.max_depth} levels at {path or '(root)'}")

        if kind is NodeKind.SEQUENCE:
            items = [self.visit(item, f"{path}[{i}]", depth + 1) for i, item in enumerate(value)]
            if isinstance(value, tuple):
                # Named tuples take positional fields
                return type(value)(*items) if hasattr(value, "_fields") else tuple(items)
            return items

        cleaned = {}
        for key, item in value.items():
            if key in self.sensitive_fields:
                cleaned[key] = item
                continue
            child_path = f"{path}.{key}" if path else str(key)
            cleaned[key] = self.visit(item, child_path, depth + 1)
        return cleaned

    def _visit_text(self, value: str, path: str) -> str:
        cleaned = clean_string(value, self.policy)
        if cleaned != value:
            self.modified = True
            if is_dangerous(value):
                self.warnings.append(f"Dangerous content removed from: {path or '(root)'}")
        return cleaned


def resolve_policy(policy: Union[str, SanitizationPolicy, None]) -> SanitizationPolicy:
    """Accepts a policy object, a registered name, or None for the default."""
    if isinstance(policy, SanitizationPolicy):
        return policy
    return get_policy(policy or settings.DEFAULT_POLICY)


def sanitize_structure(
    value: Any,
    policy: Union[str, SanitizationPolicy, None] = None,
    sensitive_fields: Optional[Iterable[str]] = None,
    max_depth: Optional[int] = None,
) -> SanitizationOutcome:
    """Sanitizes every string leaf of a nested value.

    Args:
        value (Any): A scalar, list, tuple or mapping, nested arbitrarily.
        policy (Union[str, SanitizationPolicy], optional): Applied to
            markup-looking strings. Defaults to `settings.DEFAULT_POLICY`.
        sensitive_fields (Iterable[str], optional): Mapping keys passed
            through untouched at every depth. Defaults to
            `settings.SENSITIVE_FIELDS`.
        max_depth (int, optional): Maximum composite nesting.

    Returns:
        SanitizationOutcome: The sanitized copy plus modification metadata.

    Raises:
        UnknownPolicyError: If `policy` names an unregistered policy.
        MalformedInputError: For unsupported value types or excess nesting.
    """
    if sensitive_fields is None:
        sensitive_fields = settings.SENSITIVE_FIELDS

    traversal = _Traversal(resolve_policy(policy), frozenset(sensitive_fields), max_depth)
    cleaned = traversal.visit(value, "")

    if traversal.warnings:
        logger.warning(f"⚠️ Removed dangerous content at {len(traversal.warnings)} location(s)")

    return SanitizationOutcome(
        value=cleaned,
        was_modified=traversal.modified,
        warnings=traversal.warnings,
    )
