"""
Security Utilities

Request ID tracking, nonces, hashing, masking, and security event logging.
"""

import hashlib
import re
import secrets
import string
from typing import Any, Dict, Optional

from fastapi import Request

from saasbase.config import logger
from saasbase.core.security.constants import REQUEST_ID_HEADER, WEB3_NONCE_LENGTH

_NONCE_ALPHABET = string.ascii_letters + string.digits


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return secrets.token_hex(16)


def get_request_id(request: Request) -> str:
    """Get the request ID assigned by middleware, or derive one from headers."""
    assigned = getattr(request.state, "request_id", None)
    if assigned:
        return assigned
    request_id = request.headers.get(REQUEST_ID_HEADER)
    if request_id and len(request_id) <= 64 and re.match(r"^[a-zA-Z0-9_-]+$", request_id):
        return request_id
    return generate_request_id()


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First IP in the chain is the client
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def generate_nonce(length: int = WEB3_NONCE_LENGTH) -> str:
    """Alphanumeric nonce for sign-in-with-wallet challenges."""
    return "".join(secrets.choice(_NONCE_ALPHABET) for _ in range(length))


def hash_token(token: str) -> str:
    """
    Create a secure hash of a token for logging.

    Never log raw tokens - use this for audit trails.
    """
    return hashlib.sha256(token.encode()).hexdigest()[:16]


def mask_sensitive_data(
    data: Dict[str, Any],
    sensitive_keys: frozenset = frozenset({"token", "password", "secret", "key", "authorization", "cookie"})
) -> Dict[str, Any]:
    """Mask sensitive data in dictionaries for safe logging."""
    masked = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(s in key_lower for s in sensitive_keys):
            masked[key] = "[REDACTED]"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value, sensitive_keys)
        else:
            masked[key] = value
    return masked


def log_security_event(
    event_type: str,
    request: Optional[Request] = None,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    level: str = "warning"
) -> None:
    """Log a security-relevant event with structured data."""
    log_data: Dict[str, Any] = {
        "security_event": event_type,
        "user_id": user_id,
    }

    if request is not None:
        log_data["client_ip"] = get_client_ip(request)
        log_data["path"] = str(request.url.path)
        log_data["method"] = request.method
        log_data["request_id"] = get_request_id(request)

    if details:
        log_data["details"] = mask_sensitive_data(details)

    log_func = getattr(logger, level, logger.warning)
    log_func("Security event: %s | %s", event_type, log_data)
