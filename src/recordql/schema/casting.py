"""
Type casting from loose input values to a field's declared type.

Form posts deliver strings and database drivers deliver whatever the
column affinity gives back, so every field value goes through here before
validation. A failed cast never raises: the caller gets the original
value back together with ``ok=False`` and reports a FORMAT error.
"""

import json
import uuid
from collections.abc import Callable
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from recordql.core.types import FieldType, SchemaField, STRING_TYPES

TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
FALSE_STRINGS = frozenset({"false", "0", "no", "off", ""})

CENT = Decimal("0.01")


class CastFailed(Exception):
    """Internal signal that a value cannot be converted."""


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise CastFailed
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        raise CastFailed
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as e:
            raise CastFailed from e
    raise CastFailed


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise CastFailed
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as e:
            raise CastFailed from e
    raise CastFailed


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise CastFailed


def _to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal, uuid.UUID)):
        return str(value)
    raise CastFailed


def _to_money(value: Any) -> Decimal:
    """
    Money is an amount in major units, held as a Decimal with two places.

    Every input type is read the same way: ``12``, ``12.0``, ``"12"`` and
    ``Decimal("12")`` are all twelve units. Columns store the amount as an
    integer count of cents, see ``encode_value`` and ``decode_value``.
    """
    if isinstance(value, bool):
        raise CastFailed
    if isinstance(value, str):
        text = value.strip().lstrip("$").replace(",", "")
    elif isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        raise CastFailed
    try:
        amount = Decimal(text)
        if not amount.is_finite():
            raise CastFailed
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise CastFailed from e


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError as e:
            raise CastFailed from e
    raise CastFailed


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError as e:
            raise CastFailed from e
    raise CastFailed


def _to_time(value: Any) -> time:
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip())
        except ValueError as e:
            raise CastFailed from e
    raise CastFailed


def _to_json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError as e:
            raise CastFailed from e
    if isinstance(value, (dict, list, int, float, bool)):
        return value
    raise CastFailed


_CASTERS: dict[FieldType, Callable[[Any], Any]] = {
    FieldType.INT: _to_int,
    FieldType.BIGINT: _to_int,
    FieldType.FLOAT: _to_float,
    FieldType.BOOL: _to_bool,
    FieldType.MONEY: _to_money,
    FieldType.DATETIME: _to_datetime,
    FieldType.DATE: _to_date,
    FieldType.TIME: _to_time,
    FieldType.JSON: _to_json,
}


def cast_value(field: SchemaField, value: Any) -> tuple[Any, bool]:
    """
    Cast ``value`` to the type declared by ``field``.

    None passes through untouched, and so does an empty string for
    non-string types, which is read as "no value".

    Returns:
        ``(casted, True)`` on success, ``(value, False)`` on failure
    """
    if value is None:
        return None, True

    if field.type in STRING_TYPES:
        caster = _to_str
    else:
        if isinstance(value, str) and not value.strip() and field.type != FieldType.BOOL:
            return None, True
        caster = _CASTERS[field.type]

    try:
        return caster(value), True
    except CastFailed:
        return value, False


def encode_value(field: SchemaField, value: Any) -> Any:
    """
    Convert a casted value into its column representation.

    Money becomes an integer number of cents; everything else is stored
    as it is.
    """
    if field.type == FieldType.MONEY and value is not None:
        amount, ok = cast_value(field, value)
        if ok:
            return int(amount.scaleb(2).to_integral_value(rounding=ROUND_HALF_UP))
    return value


def decode_value(field: SchemaField, value: Any) -> tuple[Any, bool]:
    """
    Cast a value read back from a column.

    The inverse of ``encode_value``: integer cents in a money column come
    back as a Decimal amount. Drivers may hand back integral sums as
    Decimal, which are cents as well.
    """
    is_cents = isinstance(value, (int, Decimal)) and not isinstance(value, bool)
    if field.type == FieldType.MONEY and is_cents:
        return Decimal(value).scaleb(-2), True
    return cast_value(field, value)
