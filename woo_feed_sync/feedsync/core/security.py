"""
Security utilities - never log feed secrets or API credentials.
"""

import re
from typing import Any, Dict


SENSITIVE_KEYS = {
    'access_token',
    'consumer_key',
    'consumer_secret',
    'secret',
    'token',
}

REDACTED = '***REDACTED***'

SECRET_PATTERNS = [
    (re.compile(r'access_token=[^&\s"\']+'), 'access_token=***'),
    (re.compile(r'secret=[0-9a-f]{16,}'), 'secret=***'),
    (re.compile(r'ck_[a-zA-Z0-9]{32,}'), 'ck_***'),
    (re.compile(r'cs_[a-zA-Z0-9]{32,}'), 'cs_***'),
]


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_dict_for_logging(value)
    if isinstance(value, list):
        return [_sanitize_value(item) for item in value]
    return value


def sanitize_dict_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy a dict with sensitive values redacted, nested dicts included.

    Args:
        data: Request params, job filters or API payloads.

    Returns:
        Sanitized copy.
    """
    return {
        key: REDACTED if key in SENSITIVE_KEYS else _sanitize_value(value)
        for key, value in data.items()
    }


def sanitize_string_for_logging(text: str) -> str:
    """
    Remove potential secrets from a string (request URLs, error bodies).

    Args:
        text: String that may contain secrets.

    Returns:
        Sanitized string.
    """
    if not text:
        return text
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_secret(secret: str, visible: int = 4) -> str:
    """Mask a feed secret for log output, e.g. ``ab12***``."""
    if not secret:
        return ''
    return f"{secret[:visible]}***"
