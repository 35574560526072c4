"""
Tessera Models — attribute casting.

Casts convert raw column values into Python values on read
(``cast_value``) and back into driver-friendly values on write
(``to_storage``).

Supported cast types:
    int / integer, float / real / double, decimal:N, bool / boolean,
    str / string, array / json / dict / list, datetime, date, timestamp
"""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

__all__ = [
    "CAST_TYPES",
    "DEFAULT_DATE_FORMAT",
    "is_valid_cast",
    "is_json_cast",
    "cast_value",
    "to_storage",
    "parse_datetime",
    "serialize_value",
]

DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CAST_TYPES = frozenset({
    "int", "integer",
    "float", "real", "double",
    "decimal",
    "bool", "boolean",
    "str", "string",
    "array", "json", "dict", "list",
    "datetime", "date", "timestamp",
})

_JSON_CASTS = frozenset({"array", "json", "dict", "list"})


def _base_type(cast_type: str) -> str:
    return cast_type.split(":", 1)[0].lower()


def is_valid_cast(cast_type: str) -> bool:
    return _base_type(cast_type) in CAST_TYPES


def is_json_cast(cast_type: str) -> bool:
    return _base_type(cast_type) in _JSON_CASTS


def parse_datetime(value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> Optional[datetime]:
    """Best-effort conversion of a stored value to ``datetime``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value)
    text = str(value)
    try:
        return datetime.strptime(text, date_format)
    except ValueError:
        pass
    # fromisoformat covers "YYYY-MM-DD", "YYYY-MM-DD HH:MM:SS[.ffffff]" and offsets
    return datetime.fromisoformat(text)


def cast_value(cast_type: str, value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> Any:
    """Raw column value -> Python value. ``None`` always stays ``None``."""
    if value is None:
        return None
    base = _base_type(cast_type)

    if base in ("int", "integer"):
        return int(value)
    if base in ("float", "real", "double"):
        return float(value)
    if base == "decimal":
        places = cast_type.split(":", 1)[1] if ":" in cast_type else None
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Cannot cast {value!r} to decimal") from None
        if places is not None:
            number = number.quantize(Decimal(1).scaleb(-int(places)))
        return number
    if base in ("bool", "boolean"):
        if isinstance(value, str):
            return value.strip().lower() not in ("", "0", "false", "no", "off")
        return bool(value)
    if base in ("str", "string"):
        return str(value)
    if base in _JSON_CASTS:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            return json.loads(value) if value else None
        return value
    if base == "datetime":
        return parse_datetime(value, date_format)
    if base == "date":
        parsed = parse_datetime(value, date_format)
        return parsed.date() if parsed is not None else None
    if base == "timestamp":
        parsed = parse_datetime(value, date_format)
        return int(parsed.timestamp()) if parsed is not None else None
    return value


def to_storage(cast_type: Optional[str], value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> Any:
    """Python value -> value a DB-API driver can bind."""
    if value is None:
        return None
    base = _base_type(cast_type) if cast_type else None

    if base in _JSON_CASTS or (base is None and isinstance(value, (dict, list))):
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)
    if base == "timestamp" and isinstance(value, (int, float)):
        return datetime.fromtimestamp(value).strftime(date_format)
    if isinstance(value, datetime):
        return value.strftime(date_format)
    if isinstance(value, date):
        return value.isoformat()
    if base in ("bool", "boolean"):
        return bool(value)
    if base == "decimal" and not isinstance(value, Decimal):
        return str(cast_value(cast_type, value, date_format))
    return value


def serialize_value(value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> Any:
    """Python value -> JSON-friendly value for ``to_dict``."""
    if isinstance(value, datetime):
        return value.strftime(date_format)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return value
