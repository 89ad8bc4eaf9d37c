# ABOUTME: ASIN (Amazon Standard Identification Number) validation.
# ABOUTME: An ASIN is exactly 10 characters drawn from uppercase A-Z and 0-9.

import re

from kindlecat.errors import InvalidAsinError

ASIN_PATTERN = re.compile(r"[A-Z0-9]{10}")


def is_valid_asin(value: object) -> bool:
    """Return True if value is a string of exactly 10 characters from [A-Z0-9]."""
    return isinstance(value, str) and ASIN_PATTERN.fullmatch(value) is not None


def validate_asin(value: object) -> str:
    """Return value unchanged if it is a valid ASIN.

    Raises:
        InvalidAsinError: If value is not a valid ASIN.
    """
    if not is_valid_asin(value):
        raise InvalidAsinError(value)
    return value  # type: ignore[return-value]
