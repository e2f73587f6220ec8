"""URL scheme validation for link targets.

Validation is allowlist based: a URL is accepted only when it already uses an
allowed scheme or has the shape of a bare domain, in which case `https://` is
prepended. Everything else, including `javascript:`, `data:`, `vbscript:` and
any other scheme, is replaced by a single fallback sentinel.
"""

import re
import logging
from typing import Optional

from sanitas.app.config import settings

logger = logging.getLogger("sanitas.url")

ALLOWED_SCHEMES = frozenset(["http", "https", "mailto"])
ALLOWED_PREFIXES = ("http://", "https://", "mailto:")

# label(.label)+ with optional port and path/query/fragment, no whitespace
BARE_DOMAIN = re.compile(r"^[\w-]+(\.[\w-]+)+(:\d+)?([/?#]\S*)?$")


def validate_url(value: Optional[str], fallback: Optional[str] = None) -> str:
    """Normalizes a URL or rejects it.

    Args:
        value (str): The untrusted URL.
        fallback (str, optional): The rejection sentinel. Defaults to
            `settings.URL_FALLBACK`.

    Returns:
        str: The URL (trimmed), the URL with `https://` prepended, or the
        fallback sentinel.
    """
    if fallback is None:
        fallback = settings.URL_FALLBACK

    if not isinstance(value, str) or not value.strip():
        return fallback

    url = value.strip()
    if url.lower().startswith(ALLOWED_PREFIXES):
        return url

    if BARE_DOMAIN.match(url):
        return f"https://{url}"

    logger.info("⛔ Rejected URL with a disallowed scheme or shape")
    return fallback
