"""Sensitive-field preserving request sanitization.

Credentials and tokens must reach hashing or verification logic exactly as
they were submitted. The pipeline here runs in three steps around the
structural sanitizer:

1.  **Extract**: Copies the values of top-level sensitive keys aside.
2.  **Neutralize**: Replaces those values with "" in a working copy, so the
    sanitizer has nothing sensitive to touch even if the exemption check
    were bypassed.
3.  **Restore**: Overlays the original values onto the sanitized result.

The structural sanitizer additionally exempts sensitive keys at every depth.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

from sanitas.app.config import settings
from sanitas.app.policy import get_policy
from sanitas.engines.html_engine import apply_policy, strip_to_text
from sanitas.engines.structure_engine import SanitizationOutcome, sanitize_structure
from sanitas.exceptions import MalformedInputError

logger = logging.getLogger("sanitas.request")


def _sensitive_set(sensitive_keys: Optional[Iterable[str]]) -> frozenset:
    if sensitive_keys is None:
        sensitive_keys = settings.SENSITIVE_FIELDS
    return frozenset(sensitive_keys)


def _require_mapping(data) -> None:
    if not isinstance(data, Mapping):
        raise MalformedInputError(f"Expected a mapping, got {type(data).__name__}")


def extract_sensitive_values(data: Mapping, sensitive_keys: Iterable[str]) -> Dict[str, Any]:
    """Returns the top-level entries of `data` whose key is sensitive."""
    keys = frozenset(sensitive_keys)
    return {key: value for key, value in data.items() if key in keys}


def neutralize_sensitive_fields(data: Mapping, sensitive_keys: Iterable[str]) -> Dict[str, Any]:
    """Returns a copy of `data` with every sensitive top-level value set to ""."""
    keys = frozenset(sensitive_keys)
    return {key: ("" if key in keys else value) for key, value in data.items()}


def restore_sensitive_values(sanitized: Mapping, sensitive_values: Mapping) -> Dict[str, Any]:
    """Overlays the extracted originals onto the sanitized mapping, by key."""
    restored = dict(sanitized)
    restored.update(sensitive_values)
    return restored


def sanitize_request_outcome(
    data: Mapping,
    sensitive_keys: Optional[Iterable[str]] = None,
    policy_name: Optional[str] = None,
    max_depth: Optional[int] = None,
) -> SanitizationOutcome:
    """Runs the extract, neutralize, sanitize, restore pipeline.

    Args:
        data (Mapping): The incoming request payload.
        sensitive_keys (Iterable[str], optional): Keys never sanitized.
            Defaults to `settings.SENSITIVE_FIELDS`.
        policy_name (str, optional): Policy for markup-looking strings.
        max_depth (int, optional): Nesting limit passed to the traversal.

    Returns:
        SanitizationOutcome: The restored payload with modification metadata.

    Raises:
        MalformedInputError: If `data` is not a mapping or holds values of
            unsupported types.
    """
    _require_mapping(data)
    keys = _sensitive_set(sensitive_keys)

    sensitive_values = extract_sensitive_values(data, keys)
    prepared = neutralize_sensitive_fields(data, keys)
    outcome = sanitize_structure(prepared, policy_name, sensitive_fields=keys, max_depth=max_depth)

    if sensitive_values:
        logger.debug(f"Preserved {len(sensitive_values)} sensitive field(s) unmodified")

    return SanitizationOutcome(
        value=restore_sensitive_values(outcome.value, sensitive_values),
        was_modified=outcome.was_modified,
        warnings=outcome.warnings,
    )


def sanitize_request(
    data: Mapping,
    sensitive_keys: Optional[Iterable[str]] = None,
    policy_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Sanitizes a request payload, returning sensitive values untouched."""
    return sanitize_request_outcome(data, sensitive_keys, policy_name).value


def sanitize_selected_fields(
    data: Mapping,
    fields: Optional[Iterable[str]] = None,
    policy_name: Optional[str] = None,
    sensitive_keys: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Sanitizes string values of selected keys in a mapping.

    This method traverses the mapping, including mappings and sequences nested
    inside it, and cleans the string values whose key is selected. Strings in
    a sequence take the selection of the key holding the sequence. Other
    values are copied as they are.

    Args:
        data (Mapping): The input mapping.
        fields (Iterable[str], optional): Keys to sanitize. If None, every
            string value is sanitized.
        policy_name (str, optional): Policy applied to selected strings. If
            None, all markup is stripped.
        sensitive_keys (Iterable[str], optional): Keys never sanitized, even
            when selected. Defaults to `settings.SENSITIVE_FIELDS`.

    Returns:
        dict: A new mapping. The original is left unmodified.
    """
    _require_mapping(data)
    selected = None if fields is None else frozenset(fields)
    keys = _sensitive_set(sensitive_keys)
    policy = get_policy(policy_name) if policy_name else None

    def clean(value, key):
        if key in keys:
            return value
        if isinstance(value, Mapping):
            # Nested mappings use the same field selection
            return {k: clean(v, k) for k, v in value.items()}
        if isinstance(value, list):
            return [clean(item, key) for item in value]
        if isinstance(value, tuple):
            return tuple(clean(item, key) for item in value)
        if isinstance(value, str) and (selected is None or key in selected):
            return strip_to_text(value) if policy is None else apply_policy(value, policy)
        return value

    return {key: clean(value, key) for key, value in data.items()}


def sanitize_values(values: List[str]) -> List[str]:
    """Strips all markup from each string of a list."""
    return [strip_to_text(value) for value in values]
