"""Configuration management for the Sanitas service.

This module defines the Pydantic settings and data models used throughout
the application. It handles environment variable loading, validation,
and structured data definitions for API payloads.
"""

from pydantic import SecretStr, BaseModel
from typing import Dict, Any, List, Literal, Optional, Union
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SENSITIVE_FIELDS = [
    "password",
    "confirmPassword",
    "passwordConfirm",
    "adminPassword",
    "token",
    "accessToken",
    "refreshToken",
    "apiKey",
    "secret",
    "privateKey",
]


class Settings(BaseSettings):
    """Global application settings loaded from environment variables.

    This class leverages Pydantic's BaseSettings to automatically load
    and validate configuration from a .env file or system environment variables.

    Attributes:
        PROJECT_NAME (str): The name of the application.
        POLICY_FILE (str): Path of the YAML file holding custom named policies.
        DEFAULT_POLICY (str): Policy used when a caller does not name one.
        URL_FALLBACK (str): The sentinel returned for rejected URLs.
        SENSITIVE_FIELDS (List[str]): Keys that are never sanitized or inspected.
        MAX_DEPTH (int): Nesting limit applied to payloads arriving over HTTP.
        API_KEY (Optional[SecretStr]): When set, HTTP callers must send it in
            the `X-API-Key` header.
    """
    PROJECT_NAME: str = "Sanitas"

    # Policies
    POLICY_FILE: str = "/app/sanitas.yaml"
    DEFAULT_POLICY: str = "base"

    # URL validation
    URL_FALLBACK: str = "#"

    # Structural sanitization
    SENSITIVE_FIELDS: List[str] = DEFAULT_SENSITIVE_FIELDS
    MAX_DEPTH: int = 64

    # HTTP surface
    API_KEY: Optional[SecretStr] = None

    # This allows loading from a .env file automatically
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


class TextPayload(BaseModel):
    """Body of `/sanitize/text`.

    Attributes:
        value: The text to clean. Numbers and null are accepted for escaping.
        mode: "strip" removes all markup, "escape" entity-encodes it.
    """
    value: Union[str, int, float, None] = None
    mode: Literal["strip", "escape"] = "strip"


class HtmlPayload(BaseModel):
    """Body of `/sanitize/html`."""
    value: Optional[str] = None
    policy: Optional[str] = None
    allowed_tags: Optional[List[str]] = None


class UrlPayload(BaseModel):
    """Body of `/sanitize/url`."""
    value: Optional[str] = None


class DataPayload(BaseModel):
    """Represents a structured payload submitted for sanitization.

    Attributes:
        payload (Any): The nested data to sanitize.
        policy (Optional[str]): Named policy applied to markup-looking strings.
        sensitive_fields (Optional[List[str]]): Keys exempt from sanitization.
            Defaults to `settings.SENSITIVE_FIELDS`.
    """
    payload: Any
    policy: Optional[str] = None
    sensitive_fields: Optional[List[str]] = None


class FieldsPayload(BaseModel):
    """Body of `/sanitize/fields`.

    Attributes:
        payload (Dict[str, Any]): The mapping whose fields are cleaned.
        fields (Optional[List[str]]): Keys to clean. All string fields when None.
        policy (Optional[str]): Named policy; plain tag stripping when None.
    """
    payload: Dict[str, Any]
    fields: Optional[List[str]] = None
    policy: Optional[str] = None


settings = Settings()
