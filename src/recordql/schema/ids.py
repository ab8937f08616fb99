"""
Identity value generation and format checks.
"""

import re
import uuid

from ulid import ULID

from recordql.core.types import IdStrategy

# Crockford base32, 26 characters. The first character is at most 7 so the
# value fits in 128 bits.
ULID_PATTERN = re.compile(r"^[0-7][0-9A-HJKMNP-TV-Z]{25}$", re.IGNORECASE)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def new_ulid() -> str:
    """A new time-ordered ULID string."""
    return str(ULID())


def new_uuid() -> str:
    """A new random (version 4) UUID string."""
    return str(uuid.uuid4())


def generate_id(strategy: IdStrategy) -> str | None:
    """
    Produce a client-side identity value.

    Returns None for strategies the database fills in itself.
    """
    if strategy == IdStrategy.ULID:
        return new_ulid()
    if strategy == IdStrategy.UUID:
        return new_uuid()
    return None


def is_valid_ulid(value: object) -> bool:
    return isinstance(value, str) and ULID_PATTERN.fullmatch(value) is not None


def is_valid_uuid(value: object) -> bool:
    return isinstance(value, str) and UUID_PATTERN.fullmatch(value) is not None
