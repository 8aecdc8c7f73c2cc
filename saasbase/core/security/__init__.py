"""
Security module for saasbase.

Provides:
- Rate limiting (in-memory, per application instance)
- Input validation and sanitization
- Request ID tracking and security event logging
"""

from saasbase.core.security.constants import (
    IDEMPOTENCY_KEY_HEADER,
    MAX_CART_ITEMS,
    MAX_IDENTIFIER_LENGTH,
    MAX_ITEM_QUANTITY,
    REQUEST_ID_HEADER,
    WEB3_NONCE_LENGTH,
)
from saasbase.core.security.rate_limiting import RateLimiter
from saasbase.core.security.validation import (
    sanitize_redirect_path,
    sanitize_text,
    validate_identifier,
    validate_idempotency_key,
)
from saasbase.core.security.utils import (
    generate_nonce,
    generate_request_id,
    get_client_ip,
    get_request_id,
    hash_token,
    log_security_event,
    mask_sensitive_data,
)

__all__ = [
    # Constants
    "IDEMPOTENCY_KEY_HEADER",
    "MAX_CART_ITEMS",
    "MAX_IDENTIFIER_LENGTH",
    "MAX_ITEM_QUANTITY",
    "REQUEST_ID_HEADER",
    "WEB3_NONCE_LENGTH",
    # Rate limiting
    "RateLimiter",
    # Validation
    "sanitize_redirect_path",
    "sanitize_text",
    "validate_identifier",
    "validate_idempotency_key",
    # Utils
    "generate_nonce",
    "generate_request_id",
    "get_client_ip",
    "get_request_id",
    "hash_token",
    "log_security_event",
    "mask_sensitive_data",
]
