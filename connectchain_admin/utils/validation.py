import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional

from connectchain_admin.exceptions import ValidationError

TWO_PLACES = Decimal('0.01')
# Largest values the Numeric(18, 2) and Integer columns hold
MAX_AMOUNT = Decimal('9999999999999999.99')
MAX_INTEGER = 2 ** 31 - 1
_INTEGER_PATTERN = re.compile(r'[+-]?[0-9]+')

_TRUE_VALUES = {'true', '1', 'yes', 'on'}
_FALSE_VALUES = {'false', '0', 'no', 'off'}


def to_decimal(value: Any, field: str, minimum: Optional[Decimal] = Decimal('0'),
               maximum: Optional[Decimal] = MAX_AMOUNT) -> Decimal:
    """Coerce a price-like value to a two-place Decimal.

    Form-encoded requests deliver numbers as strings and JSON requests as
    numbers; both must end up as the same stored value.

    Args:
        value: Raw value (int, float, Decimal or numeric string)
        field: Field name used in the error message
        minimum: Lowest accepted value, None to disable the check
        maximum: Highest accepted value, None to disable the check

    Returns:
        Decimal quantized to two places

    Raises:
        ValidationError if the value is not a finite number or is out of range
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a valid number")

    try:
        if isinstance(value, float):
            number = Decimal(str(value))
        else:
            number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a valid number")

    if not number.is_finite():
        raise ValidationError(f"{field} must be a valid number")

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be greater than or equal to {minimum}")

    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must not exceed {maximum}")

    try:
        return number.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a valid number")


def to_int(value: Any, field: str, minimum: Optional[int] = 0,
           maximum: Optional[int] = MAX_INTEGER) -> int:
    """Coerce a count-like value to int.

    Args:
        value: Raw value (int, integral float or integral string)
        field: Field name used in the error message
        minimum: Lowest accepted value, None to disable the check
        maximum: Highest accepted value, None to disable the check

    Returns:
        Integer value

    Raises:
        ValidationError if the value is not an integer or is out of range
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a valid number")

    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer")
        number = int(value)
    else:
        text = str(value).strip()
        if not _INTEGER_PATTERN.fullmatch(text):
            raise ValidationError(f"{field} must be an integer")
        number = int(text)

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be greater than or equal to {minimum}")

    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must not exceed {maximum}")

    return number


def to_bool(value: Any, field: str) -> bool:
    """Coerce a query-string flag to bool."""
    if isinstance(value, bool):
        return value

    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValidationError(f"{field} must be true or false")


def to_datetime(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 date or datetime string.

    A bare date becomes midnight of that day.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")

    # Stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def to_optional_str(value: Any, field: str, max_length: int = 255) -> Optional[str]:
    """Normalize an optional text field."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if len(value) > max_length:
        raise ValidationError(f"{field} must not exceed {max_length} characters")
    return value


def to_required_str(value: Any, field: str, max_length: int = 255) -> str:
    """Normalize a required, non-empty text field."""
    text = to_optional_str(value, field, max_length)
    if text is None or not text.strip():
        raise ValidationError(f"{field} is required")
    return text


def require_fields(payload: Dict, *fields: str) -> None:
    """Raise when any of the named keys is missing from payload."""
    missing = [field for field in fields if payload.get(field) in (None, '')]
    if missing:
        raise ValidationError(
            f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required",
            details={'missing': missing}
        )


def reject_unknown_fields(payload: Dict, allowed, context: str) -> None:
    """Raise when payload carries keys outside the allowed set."""
    unknown = sorted(set(payload) - set(allowed))
    if unknown:
        raise ValidationError(
            f"Unknown {context} field(s): {', '.join(unknown)}",
            details={'unknown': unknown}
        )
