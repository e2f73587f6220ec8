"""Python client for the Sanitas HTTP service."""

from sanitas.sdk.client import SanitasAPIError, SanitasClient, SanitasClientError

__all__ = ["SanitasClient", "SanitasClientError", "SanitasAPIError"]
