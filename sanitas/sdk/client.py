"""Python Client for the Sanitas service.

This module provides a Pythonic interface for services that call a shared
Sanitas deployment instead of embedding the engine. It handles
authentication and error parsing.

Typical Usage:
    client = SanitasClient(base_url="http://localhost:8000")
    safe = client.filter_html("<b>hi</b><script>x()</script>", policy="comment")
"""

import os
import requests
from typing import Any, Dict, List, Optional, Union


class SanitasClientError(Exception):
    """Base exception for all client-side Sanitas errors."""
    pass


class SanitasAPIError(SanitasClientError):
    """Exception raised when the API returns an error response (4xx or 5xx).

    Attributes:
        message (str): The error description.
        status_code (int): The HTTP status code returned by the API.
    """
    def __init__(self, message, status_code):
        super().__init__(f"{message} (Status: {status_code})")
        self.status_code = status_code


class SanitasClient:
    """A synchronous client wrapper for the Sanitas REST API."""

    def __init__(self, base_url: str = None, api_key: str = None, timeout: float = 10.0):
        """Initializes the client with connection details.

        Args:
            base_url (str, optional): The root URL of the Sanitas service.
                Defaults to the SANITAS_URL env var or "http://localhost:8000".
            api_key (str, optional): The API Key, if the service requires one.
                Defaults to the SANITAS_API_KEY env var.
            timeout (float): Per-request timeout in seconds.
        """
        # Remove trailing slash to prevent double-slash URLs
        self.base_url = (base_url or os.getenv("SANITAS_URL", "http://localhost:8000")).rstrip("/")
        self.api_key = api_key or os.getenv("SANITAS_API_KEY")
        self.timeout = timeout

        if not self.base_url:
            raise SanitasClientError("Sanitas Base URL is required. Set SANITAS_URL env var.")

    def _get_headers(self) -> Dict[str, str]:
        headers = {}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def _handle_error(self, resp: requests.Response):
        """Parses raw HTTP responses to raise structured exceptions.

        Raises:
            SanitasAPIError: If the status code indicates failure (4xx/5xx).
        """
        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            # Try to get the detailed error message from FastAPI JSON
            try:
                error_detail = resp.json().get("detail", str(e))
            except Exception:
                error_detail = resp.text or str(e)

            raise SanitasAPIError(error_detail, resp.status_code) from e

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Posts a JSON body and returns the decoded JSON response.

        Raises:
            SanitasAPIError: For error responses.
            SanitasClientError: If the service cannot be reached.
        """
        try:
            resp = requests.post(
                f"{self.base_url}{path}",
                json=body,
                headers=self._get_headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SanitasClientError(f"Connection Failed: {e}") from e

        self._handle_error(resp)
        return resp.json()

    def list_policies(self) -> List[str]:
        """Returns the names of the policies registered on the service."""
        try:
            resp = requests.get(
                f"{self.base_url}/policies", headers=self._get_headers(), timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise SanitasClientError(f"Connection Failed: {e}") from e

        self._handle_error(resp)
        return resp.json()["policies"]

    def strip_text(self, value: Optional[str]) -> str:
        """Removes all markup from `value`."""
        return self._post("/sanitize/text", {"value": value, "mode": "strip"})["value"]

    def escape_text(self, value: Union[str, int, float, None]) -> str:
        """Entity-escapes `value` for a plain-text display context."""
        return self._post("/sanitize/text", {"value": value, "mode": "escape"})["value"]

    def filter_html(
        self,
        value: Optional[str],
        policy: str = None,
        allowed_tags: List[str] = None,
    ) -> str:
        """Filters HTML through a named policy on the service.

        Args:
            value (str): The untrusted HTML.
            policy (str, optional): The policy name. The service default if None.
            allowed_tags (List[str], optional): Replaces the policy's tag set.

        Returns:
            str: The filtered HTML.
        """
        body = {"value": value, "policy": policy, "allowed_tags": allowed_tags}
        return self._post("/sanitize/html", body)["value"]

    def validate_url(self, value: Optional[str]) -> str:
        """Returns the validated URL or the service's fallback sentinel."""
        return self._post("/sanitize/url", {"value": value})["value"]

    def sanitize_payload(
        self,
        payload: Any,
        policy: str = None,
        sensitive_fields: List[str] = None,
    ) -> Dict[str, Any]:
        """Sanitizes a nested payload.

        Returns:
            Dict[str, Any]: `data`, `was_modified` and `warnings`.
        """
        body = {"payload": payload, "policy": policy, "sensitive_fields": sensitive_fields}
        return self._post("/sanitize/payload", body)

    def sanitize_fields(
        self,
        payload: Dict[str, Any],
        fields: List[str] = None,
        policy: str = None,
    ) -> Dict[str, Any]:
        """Sanitizes only the named fields of `payload` (all string fields if None)."""
        body = {"payload": payload, "fields": fields, "policy": policy}
        return self._post("/sanitize/fields", body)["data"]
