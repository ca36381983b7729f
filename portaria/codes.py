"""Pickup code generation and validation."""

import re
import secrets
from typing import Iterable, Optional

from .config import settings
from .exceptions import AmbiguousPickupCode


def validate_code(code: str, length: Optional[int] = None) -> bool:
    """Return True iff code is exactly `length` ASCII digits."""
    length = length or settings.pickup_code_length
    if not isinstance(code, str):
        return False
    return re.fullmatch(rf"[0-9]{{{length}}}", code) is not None


def generate_code(length: Optional[int] = None) -> str:
    """Generate a random all-digit pickup code (leading zeros allowed)."""
    length = length or settings.pickup_code_length
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def generate_unique_code(
    taken: Iterable[str],
    length: Optional[int] = None,
    max_attempts: Optional[int] = None
) -> str:
    """
    Generate a code that does not collide with any currently pending code.

    Args:
        taken: Codes of the deliveries still pending in the same scope
        length: Code length, defaults to settings
        max_attempts: Regeneration budget, defaults to settings

    Raises:
        AmbiguousPickupCode: If no free code was found within the budget
    """
    taken = set(taken)
    max_attempts = max_attempts or settings.pickup_code_max_attempts

    for _ in range(max_attempts):
        code = generate_code(length)
        if code not in taken:
            return code

    raise AmbiguousPickupCode(
        f"Could not generate a free pickup code after {max_attempts} attempts"
    )
