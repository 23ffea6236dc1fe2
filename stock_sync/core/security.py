"""
Security utilities - never log or return secrets.
"""

import re


def sanitize_string_for_logging(text: str) -> str:
    """
    Remove potential secrets from string (consumer keys, passwords, etc.).

    Args:
        text: String that may contain secrets.

    Returns:
        Sanitized string.
    """
    if not text:
        return text

    # Pattern for WooCommerce consumer keys/secrets
    patterns = [
        (r'ck_[a-zA-Z0-9]{32,}', 'ck_***'),
        (r'cs_[a-zA-Z0-9]{32,}', 'cs_***'),
        (r'wp_app_password["\']?\s*[:=]\s*["\']?([^"\']+)', r'wp_app_password="***"'),
        (r'(consumer_(?:key|secret)=)[^&\s]+', r'\1***'),
    ]

    result = text
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)

    return result
