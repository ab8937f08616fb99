"""
Identifier allow-list.

Every table name, column name, alias and sort direction that ends up in
generated SQL text passes through this module first. Names are checked
against a fixed pattern and rejected outright; nothing is escaped and
retried.
"""

import re
from collections.abc import Iterable

from recordql.core.errors import InvalidIdentifierError

MAX_IDENTIFIER_LENGTH = 64

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")

SORT_DIRECTIONS = frozenset({"ASC", "DESC"})


def is_valid_identifier(name: object) -> bool:
    """Return True when ``name`` is safe to embed in SQL text."""
    if not isinstance(name, str):
        return False
    # fullmatch: ``$`` would also accept a trailing newline
    return IDENTIFIER_PATTERN.fullmatch(name) is not None


def validate_identifier(name: object, kind: str = "identifier") -> str:
    """
    Validate a single identifier.

    Returns:
        The identifier, unchanged

    Raises:
        InvalidIdentifierError: If the name is not allowed
    """
    if not is_valid_identifier(name):
        raise InvalidIdentifierError(str(name), kind=kind)
    return name  # type: ignore[return-value]


def validate_identifiers(names: Iterable[object], kind: str = "identifier") -> list[str]:
    """
    Validate several identifiers at once.

    All invalid names are reported together in a single error.
    """
    names = list(names)
    invalid = [str(n) for n in names if not is_valid_identifier(n)]
    if invalid:
        raise InvalidIdentifierError(invalid, kind=kind)
    return names  # type: ignore[return-value]


def validate_direction(direction: object) -> str:
    """
    Normalize and validate an ORDER BY direction.

    Returns:
        "ASC" or "DESC"
    """
    if isinstance(direction, str):
        normalized = direction.strip().upper()
        if normalized in SORT_DIRECTIONS:
            return normalized
    raise InvalidIdentifierError(str(direction), kind="direction")


def quote_identifier(name: object, quote_char: str = '"') -> str:
    """
    Validate then quote an identifier.

    The allow-list guarantees the name contains no quote characters, so
    wrapping is sufficient.
    """
    return f"{quote_char}{validate_identifier(name)}{quote_char}"
