"""
Input Normalization Utilities
=============================

All parsing of values that cross the ingestion boundary happens here:
scraped rows, webhook bodies, query strings and env vars.

Datetimes are normalized to naive UTC. The database stores naive UTC
timestamps, so every comparison inside the pipeline stays naive.

Usage:
    from utils.normalize import to_float, to_date, to_datetime, ValidationError

    try:
        amount = to_float(row.amount, field="amount")
        close = to_date(row.date, field="date")
    except ValidationError as e:
        ...
"""

import math
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from dateutil import parser as date_parser


class ValidationError(ValueError):
    """Raised when input cannot be normalized to expected type."""

    def __init__(self, message: str, field: str = None, received_value=None):
        super().__init__(message)
        self.field = field
        self.received_value = received_value


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_int(
    value: Optional[Union[str, int, float, Decimal]],
    *,
    default: Optional[int] = None,
    field: str = None
) -> Optional[int]:
    """
    Convert string to int, with explicit None handling.

    Floats and Decimals are accepted only when they are whole numbers;
    3.5 is rejected rather than truncated to 3.

    Raises:
        ValidationError: If value cannot be converted to int
    """
    if value is None or value == "":
        return default
    if isinstance(value, (float, Decimal)):
        if not math.isfinite(value) or value != int(value):
            raise ValidationError(
                f"Expected whole number, got {value!r}",
                field=field,
                received_value=value
            )
        return int(value)
    try:
        return int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"Expected int, got {type(value).__name__}: {value!r}",
            field=field,
            received_value=value
        )


def to_float(
    value: Optional[Union[str, int, float, Decimal]],
    *,
    default: Optional[float] = None,
    field: str = None
) -> Optional[float]:
    """
    Convert a scraped numeric value to a finite float.

    NaN and infinity are rejected: a non-finite amount compares false
    against every tolerance and would slip through as "no change".

    Raises:
        ValidationError: If value is not a finite number
    """
    if value is None or value == "":
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"Expected number, got {type(value).__name__}: {value!r}",
            field=field,
            received_value=value
        )
    if not math.isfinite(result):
        raise ValidationError(
            f"Expected finite number, got {value!r}",
            field=field,
            received_value=value
        )
    return result


def to_bool(
    value: Optional[Union[str, bool]],
    *,
    default: bool = False,
    field: str = None
) -> bool:
    """
    Convert string to bool.

    Accepts (case-insensitive):
        True: 'true', '1', 'yes', 'on', 'enabled'
        False: 'false', '0', 'no', 'off', 'disabled'

    Raises:
        ValidationError: If value is not a recognized boolean string
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    lower = str(value).strip().lower()
    if lower in ("true", "1", "yes", "on", "enabled"):
        return True
    if lower in ("false", "0", "no", "off", "disabled"):
        return False
    raise ValidationError(
        f"Expected bool, got: {value!r}",
        field=field,
        received_value=value
    )


def to_date(
    value: Optional[Union[str, date]],
    *,
    default: Optional[date] = None,
    field: str = None
) -> Optional[date]:
    """
    Convert an ISO date (or datetime) string to a date object.

    Accepts:
        - YYYY-MM-DD
        - Full ISO 8601 datetimes (date part kept)
        - date / datetime objects (passthrough / extracts date)

    Raises:
        ValidationError: If value cannot be parsed as date
    """
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.isoparse(str(value).strip()).date()
    except (ValueError, TypeError, OverflowError):
        raise ValidationError(
            f"Expected date (YYYY-MM-DD), got {type(value).__name__}: {value!r}",
            field=field,
            received_value=value
        )


def to_datetime(
    value: Optional[Union[str, datetime]],
    *,
    default: Optional[datetime] = None,
    field: str = None
) -> Optional[datetime]:
    """
    Convert ISO string to a naive UTC datetime.

    Offsets (including a trailing 'Z') are converted to UTC; values without
    an offset are taken as UTC already.

    Raises:
        ValidationError: If value cannot be parsed as datetime
    """
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return to_naive_utc(date_parser.isoparse(str(value).strip()))
    except (ValueError, TypeError, OverflowError):
        raise ValidationError(
            f"Expected ISO datetime, got {type(value).__name__}: {value!r}",
            field=field,
            received_value=value
        )


def validation_error_response(error: ValidationError) -> tuple:
    """
    Convert ValidationError to a structured 400 response tuple.

    Usage:
        try:
            limit = to_int(request.args.get("limit"))
        except ValidationError as e:
            return validation_error_response(e)
    """
    response = {
        "error": str(error),
        "type": "validation_error"
    }
    if error.field:
        response["field"] = error.field
    if error.received_value is not None:
        response["received_value"] = str(error.received_value)
    return response, 400
