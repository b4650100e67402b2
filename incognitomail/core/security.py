"""
Security Module

Secure random token generation for account secrets and handles.
"""

import math
import secrets
import string

ALLOWED_CHARACTERS = string.ascii_lowercase + string.ascii_uppercase + string.digits

# Bits needed to index into ALLOWED_CHARACTERS
BITS_PER_INDEX = math.ceil(math.log2(len(ALLOWED_CHARACTERS)))
INDEX_MASK = (1 << BITS_PER_INDEX) - 1


def generate_random_string(length: int) -> str:
    """
    Generate a random alphanumeric string.

    Each character consumes one byte from the OS CSPRNG, masked down to
    BITS_PER_INDEX bits and reduced modulo the alphabet size. The mask keeps
    the modulo bias small (values 62 and 63 fold onto "a" and "b"); it is not
    removed by rejection sampling.

    Args:
        length: Number of characters to generate

    Returns:
        str: Random string of the requested length

    Raises:
        ValueError: If length is negative
    """
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")

    buf = secrets.token_bytes(length)
    alphabet_size = len(ALLOWED_CHARACTERS)

    return "".join(
        ALLOWED_CHARACTERS[(byte & INDEX_MASK) % alphabet_size]
        for byte in buf
    )
