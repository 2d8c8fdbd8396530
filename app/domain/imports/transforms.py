"""
Per-column transform tokens applied by the import executor.

A mapping's ``transform`` is an opaque string to the mapping editor; only
this module interprets it. Tokens may be chained with ``|`` and run left to
right, e.g. ``"trim|lower"``. Blank values pass through every token
unchanged so that required-field validation sees them as missing.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from app.utils.date import parse_flexible_date

logger = logging.getLogger(__name__)


class TransformError(ValueError):
    """Raised when a value cannot be converted by a transform token."""
    pass


_TRUE_VALUES = {"true", "t", "yes", "y", "1"}
_FALSE_VALUES = {"false", "f", "no", "n", "0"}
_NUMBER_CLEANUP = re.compile(r"[,$\s]")
_PHONE_CLEANUP = re.compile(r"[\s().\-]")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _lower(value: Any) -> str:
    return _as_text(value).lower()


def _upper(value: Any) -> str:
    return _as_text(value).upper()


def _title(value: Any) -> str:
    return _as_text(value).strip().title()


def _date(value: Any) -> str:
    parsed = parse_flexible_date(value)
    if parsed is None:
        raise TransformError(f"'{value}' is not a recognizable date")
    return parsed.isoformat()


def _number(value: Any) -> Any:
    if isinstance(value, bool):
        raise TransformError(f"'{value}' is not a number")
    if isinstance(value, (int, float)):
        return value
    try:
        number = Decimal(_NUMBER_CLEANUP.sub("", _as_text(value)))
    except InvalidOperation:
        raise TransformError(f"'{value}' is not a number")
    if not number.is_finite():
        raise TransformError(f"'{value}' is not a number")
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def _integer(value: Any) -> int:
    number = _number(value)
    if isinstance(number, float) and not number.is_integer():
        raise TransformError(f"'{value}' is not a whole number")
    return int(number)


def _boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = _as_text(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise TransformError(f"'{value}' is not a yes/no value")


def _phone(value: Any) -> str:
    cleaned = _PHONE_CLEANUP.sub("", _as_text(value).strip())
    digits = cleaned[1:] if cleaned.startswith("+") else cleaned
    if not digits.isdigit() or not 8 <= len(digits) <= 15:
        raise TransformError(f"'{value}' is not a valid phone number")
    return cleaned


TRANSFORMS: Dict[str, Callable[[Any], Any]] = {
    "trim": _trim,
    "lower": _lower,
    "upper": _upper,
    "title": _title,
    "date": _date,
    "number": _number,
    "integer": _integer,
    "boolean": _boolean,
    "phone": _phone,
    "none": lambda value: value,
}


def parse_transform_tokens(transform: Optional[str]) -> List[str]:
    if not transform:
        return []
    return [token.strip().lower() for token in transform.split("|") if token.strip()]


def apply_transform(value: Any, transform: Optional[str]) -> Any:
    """
    Run ``value`` through the chained transform tokens.

    Raises:
        TransformError: for unknown tokens or values a token cannot convert.
    """
    for token in parse_transform_tokens(transform):
        handler = TRANSFORMS.get(token)
        if handler is None:
            raise TransformError(f"Unknown transform '{token}'")
        if _is_blank(value):
            continue
        value = handler(value)
    return value
