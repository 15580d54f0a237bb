"""Security configuration constants for the Rewrite Assistant API.

This module centralizes security-related configuration including:
- Sensitive keys that should be sanitized from logs
- Error handling security settings
"""

# Keys that are redacted from structured logs. User-submitted text is listed
# alongside credentials: drafts routinely contain names, addresses and other
# personal details, so raw text must never reach the log sink.
SENSITIVE_KEYS: set[str] = {
    # Credentials
    "password",
    "secret",
    "token",
    "access_token",
    "authorization",
    "api_key",
    "bearer",
    "x-api-key",
    "cookie",
    "set-cookie",
    # Personal Identifiable Information
    "email",
    "phone",
    "address",
    # User-submitted content
    "original_text",
    "rewritten_text",
    "content",
    "transcript",
}

# Production-only error response fields
# In production, error details should only contain these fields to
# prevent information leakage
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Development error detail fields (additional fields allowed in development)
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Get allowed error detail fields based on environment.

    Args:
        environment: The application environment (production, development, etc.)

    Returns:
        Set of allowed field names for error responses
    """
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    else:
        return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)
