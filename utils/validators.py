"""
Input validation helper functions.
Provides validation for common input types.
"""

import re


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """
    Validate US phone number format.
    Accepts: (810) 555-1234, 810-555-1234, 8105551234, +1 810 555 1234

    Args:
        phone: Phone number to validate

    Returns:
        True if valid phone format
    """
    if not phone:
        return False

    # Remove spaces and common separators
    cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)

    patterns = [
        r'^\+1[2-9][0-9]{9}$',  # +1NXXXXXXXXX
        r'^1[2-9][0-9]{9}$',    # 1NXXXXXXXXX
        r'^[2-9][0-9]{9}$'      # NXXXXXXXXX (area code cannot start with 0 or 1)
    ]

    return any(bool(re.match(pattern, cleaned)) for pattern in patterns)


def sanitize_input(text: str | None, max_length: int = 500) -> str | None:
    """
    Trim whitespace and clip free text.

    Args:
        text: Raw input
        max_length: Maximum kept length

    Returns:
        Cleaned text, or None for empty input
    """
    if text is None:
        return None
    cleaned = ' '.join(str(text).split())
    if not cleaned:
        return None
    return cleaned[:max_length]
