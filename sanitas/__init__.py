"""Sanitas: policy-driven XSS sanitization for text and structured data."""

from sanitas.app.policy import SanitizationPolicy, compose_policy, get_policy
from sanitas.engines.html_engine import (
    escape_entities,
    escape_text,
    filter_html,
    is_dangerous,
    strip_to_text,
)
from sanitas.engines.sensitive_engine import (
    sanitize_request,
    sanitize_request_outcome,
    sanitize_selected_fields,
)
from sanitas.engines.structure_engine import SanitizationOutcome, sanitize_structure
from sanitas.engines.url_engine import validate_url
from sanitas.exceptions import (
    MalformedInputError,
    PolicyConfigurationError,
    SanitasError,
    UnknownPolicyError,
)

__all__ = [
    "SanitizationPolicy",
    "SanitizationOutcome",
    "compose_policy",
    "get_policy",
    "escape_entities",
    "escape_text",
    "filter_html",
    "is_dangerous",
    "strip_to_text",
    "validate_url",
    "sanitize_structure",
    "sanitize_request",
    "sanitize_request_outcome",
    "sanitize_selected_fields",
    "SanitasError",
    "UnknownPolicyError",
    "PolicyConfigurationError",
    "MalformedInputError",
]
