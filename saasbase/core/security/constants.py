"""
Security Constants

Input limits and header names shared by validation and middleware.
"""

# Maximum lengths for user inputs
MAX_IDENTIFIER_LENGTH = 100
MAX_REDIRECT_PATH_LENGTH = 2048
MAX_TEXT_LENGTH = 1000
MAX_CART_ITEMS = 50
MAX_ITEM_QUANTITY = 100

# Sign-in-with-wallet nonce
WEB3_NONCE_LENGTH = 96

# Headers
REQUEST_ID_HEADER = "X-Request-ID"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
MAX_IDEMPOTENCY_KEY_LENGTH = 255
