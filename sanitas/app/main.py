"""Main application entry point for the Sanitas service.

This module initializes the FastAPI application and exposes the sanitization
engine over HTTP. Request payloads can be cleaned with the `sanitized_body`
dependency, which records advisory metadata on `request.state` so that
warnings reach the logs instead of rendered content.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Security, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

# Local imports
from sanitas.app.config import settings
from sanitas.app.config import DataPayload, FieldsPayload, HtmlPayload, TextPayload, UrlPayload
from sanitas.app.policy import registry
from sanitas.engines.html_engine import escape_text, filter_html, strip_to_text
from sanitas.engines.sensitive_engine import sanitize_request_outcome, sanitize_selected_fields
from sanitas.engines.structure_engine import sanitize_structure
from sanitas.engines.url_engine import validate_url
from sanitas.exceptions import MalformedInputError, PolicyConfigurationError, UnknownPolicyError

# Setup Logger
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sanitas.api")

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Logs the policies available to this process at startup."""
    logger.info(f"🚀 Sanitas starting with policies: {', '.join(registry.names)}")
    yield
    logger.info("🛑 Sanitas shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


async def validate_api_key(header_key: Optional[str] = Security(API_KEY_HEADER)):
    """Checks the 'X-API-Key' header when an API key is configured.

    Raises:
        HTTPException (401): If a key is configured and the header does not match.
    """
    if settings.API_KEY is None:
        return None

    if header_key == settings.API_KEY.get_secret_value():
        return header_key

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API Key",
    )


def _client_error(e: Exception) -> HTTPException:
    """Maps engine errors caused by the caller to HTTP errors."""
    if isinstance(e, (UnknownPolicyError, PolicyConfigurationError)):
        return HTTPException(status.HTTP_400_BAD_REQUEST, str(e))
    return HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))


async def sanitized_body(request: Request) -> Dict[str, Any]:
    """Dependency returning the sanitized JSON body of a request.

    Sensitive fields are preserved unmodified. `was_modified` and `warnings`
    are stored on `request.state.sanitization` for observability.

    Raises:
        HTTPException (422): If the body is not a JSON object or cannot be
            sanitized.
    """
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "Body must be valid JSON")

    try:
        outcome = sanitize_request_outcome(body, max_depth=settings.MAX_DEPTH)
    except MalformedInputError as e:
        raise _client_error(e)

    request.state.sanitization = {
        "was_modified": outcome.was_modified,
        "warnings": outcome.warnings,
    }
    for warning in outcome.warnings:
        logger.warning(f"⛔ {request.url.path}: {warning}")

    return outcome.value


@app.get("/health")
async def health_check():
    """Returns the operational status of the service."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc)}


@app.get("/policies")
async def list_policies(_auth: str = Security(validate_api_key)):
    """Lists the names of the registered sanitization policies."""
    return {"policies": registry.names}


@app.post("/sanitize/text")
async def sanitize_text(body: TextPayload, _auth: str = Security(validate_api_key)):
    """Strips all markup from a value, or entity-escapes it in "escape" mode."""
    if body.mode == "escape":
        try:
            return {"value": escape_text(body.value)}
        except MalformedInputError as e:
            raise _client_error(e)

    if body.value is not None and not isinstance(body.value, str):
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "Only text can be stripped")
    return {"value": strip_to_text(body.value)}


@app.post("/sanitize/html")
async def sanitize_html(body: HtmlPayload, _auth: str = Security(validate_api_key)):
    """Filters HTML through a named policy, optionally replacing its tag set."""
    try:
        value = filter_html(body.value, body.policy, body.allowed_tags)
    except (UnknownPolicyError, PolicyConfigurationError) as e:
        raise _client_error(e)
    return {"value": value}


@app.post("/sanitize/url")
async def sanitize_url(body: UrlPayload, _auth: str = Security(validate_api_key)):
    """Validates a link target against the scheme allowlist."""
    return {"value": validate_url(body.value)}


@app.post("/sanitize/payload")
async def sanitize_payload(body: DataPayload, _auth: str = Security(validate_api_key)):
    """Sanitizes every string leaf of a nested payload.

    Sensitive fields (defaults from settings, or `sensitive_fields`) are
    exempt at every depth.

    Returns:
        dict: The sanitized data, whether it changed, and warnings.
    """
    try:
        outcome = sanitize_structure(
            body.payload,
            body.policy,
            sensitive_fields=body.sensitive_fields,
            max_depth=settings.MAX_DEPTH,
        )
    except (UnknownPolicyError, MalformedInputError) as e:
        raise _client_error(e)

    return {
        "data": outcome.value,
        "was_modified": outcome.was_modified,
        "warnings": outcome.warnings,
    }


@app.post("/sanitize/fields")
async def sanitize_fields(body: FieldsPayload, _auth: str = Security(validate_api_key)):
    """Sanitizes only the selected string fields of a mapping."""
    try:
        data = sanitize_selected_fields(body.payload, body.fields, body.policy)
    except UnknownPolicyError as e:
        raise _client_error(e)
    return {"data": data}


@app.post("/sanitize/request")
async def sanitize_incoming(
    request: Request,
    _auth: str = Security(validate_api_key),
    data: Dict[str, Any] = Depends(sanitized_body),
):
    """Runs the sensitive-field preserving pipeline over an arbitrary JSON object."""
    return {"data": data, **request.state.sanitization}
