"""Typed accessors for JSON document fields.

Absent keys give the caller's default. A key that is present with the wrong
JSON type means the document is corrupted, not old, and raises
:class:`InvalidFormatError` naming the field.
"""

from typing import Any, Dict, List, Optional

from ..core.exceptions import InvalidFormatError


_MISSING = object()


def _wrong_type(where: str, key: str, expected: str, value: Any) -> InvalidFormatError:
    return InvalidFormatError(f"{where}.{key} must be {expected}, got {type(value).__name__}")


def section(data: Dict[str, Any], key: str, where: str, required: bool = False) -> Dict[str, Any]:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        if required:
            raise InvalidFormatError(f"{where} is missing the required {key!r} block")
        return {}
    if not isinstance(value, dict):
        raise _wrong_type(where, key, "an object", value)
    return value


def number(data: Dict[str, Any], key: str, default: float, where: str) -> float:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        return default
    # bool is an int subclass; true/false is never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _wrong_type(where, key, "a number", value)
    return float(value)


def boolean(data: Dict[str, Any], key: str, default: bool, where: str) -> bool:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        return default
    if not isinstance(value, bool):
        raise _wrong_type(where, key, "a boolean", value)
    return value


def text(data: Dict[str, Any], key: str, default: str, where: str) -> str:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        return default
    if not isinstance(value, str):
        raise _wrong_type(where, key, "a string", value)
    return value


def optional_text(data: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise _wrong_type(where, key, "a string or null", value)
    return value


def checker_rows(data: Dict[str, Any], key: str, default: List[int], where: str) -> List[int]:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        return list(default)
    if not isinstance(value, list) or not all(
        isinstance(row, int) and not isinstance(row, bool) and 0 <= row <= 3 for row in value
    ):
        raise _wrong_type(where, key, "a list of row indices 0-3", value)
    return list(value)
