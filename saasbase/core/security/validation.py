"""
Input Validation Module

Validates identifiers and redirect targets taken from request input.
Failures raise ``saasbase.core.errors.ValidationError`` (HTTP 400).
"""

import re
from typing import Optional
from urllib.parse import urlparse

from saasbase.core.errors import ValidationError
from saasbase.core.security.constants import (
    MAX_IDEMPOTENCY_KEY_LENGTH,
    MAX_IDENTIFIER_LENGTH,
    MAX_REDIRECT_PATH_LENGTH,
    MAX_TEXT_LENGTH,
)

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_IDEMPOTENCY_KEY_RE = re.compile(r"^[\x21-\x7e]+$")


def validate_identifier(value: Optional[str], field: str) -> str:
    """
    Validate a catalog or order identifier (prevents path/query injection).

    Identifiers are alphanumeric with hyphens and underscores.
    """
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)

    value = value.strip()

    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError(f"{field} too long", field=field)

    if not _IDENTIFIER_RE.match(value):
        raise ValidationError(f"Invalid {field} format", field=field)

    return value


def sanitize_redirect_path(target: Optional[str], default: str = "/") -> str:
    """
    Reduce a post-login redirect target to a same-origin relative path.

    Absolute URLs, scheme-relative ``//host`` paths and backslash tricks fall
    back to ``default``.
    """
    if not target or not isinstance(target, str):
        return default

    target = target.strip()
    if len(target) > MAX_REDIRECT_PATH_LENGTH:
        return default
    if not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default

    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc:
        return default

    return target


def validate_idempotency_key(key: Optional[str]) -> Optional[str]:
    if key is None:
        return None
    key = key.strip()
    if not key:
        return None
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH or not _IDEMPOTENCY_KEY_RE.match(key):
        raise ValidationError("Invalid Idempotency-Key header", field="Idempotency-Key")
    return key


def sanitize_text(text: Optional[str], max_length: int = MAX_TEXT_LENGTH) -> str:
    """
    Sanitize text input by removing control characters.

    Preserves most Unicode for internationalization.
    """
    if not text:
        return ""

    # Remove null bytes and control characters (except newlines/tabs)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)

    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()
