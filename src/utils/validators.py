"""
Input helpers shared by lead submission and payment method forms
"""

from typing import Optional


def normalize_website(value: Optional[str]) -> Optional[str]:
    """
    Prefix https:// when a website is given without a scheme

    Empty input becomes None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not value.startswith("http"):
        return f"https://{value}"
    return value


def clean_optional(value: Optional[str]) -> Optional[str]:
    """Strip whitespace; empty strings become None"""
    if value is None:
        return None
    return value.strip() or None
