"""Field-level validation helpers run before any write.

Every helper is pure: no I/O, and the same input always yields the same
verdict. Failures raise ValidationException tagged with the field name.
"""
import re
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, Iterable, Sequence

from coffee_chronicles.core.exceptions import ValidationException
from coffee_chronicles.models.schemas.common import format_timestamp  # noqa: F401

MIN_RATING = 1
MAX_RATING = 5

_WHITESPACE = re.compile(r"\s+")


def _lookup(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def require_fields(obj: Any, names: Iterable[str]) -> None:
    """
    Ensure every named field is present and not blank.

    Args:
        obj: Mapping or object holding the fields
        names: Field names to check, in order

    Raises:
        ValidationException: Naming the first missing or blank field
    """
    for name in names:
        if _is_blank(_lookup(obj, name)):
            raise ValidationException(f"{name} is required", name)


def check_string_length(
    value: Any,
    field: str,
    min_length: int = 1,
    max_length: int = 1000,
) -> None:
    """Ensure ``min_length <= len(value) <= max_length``."""
    if not isinstance(value, str) or not (min_length <= len(value) <= max_length):
        raise ValidationException(
            f"{field} must be between {min_length} and {max_length} characters",
            field,
        )


def is_valid_rating(value: Any) -> bool:
    # bool is an int subclass but never a rating
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        if not value.is_integer():
            return False
    elif not isinstance(value, int):
        return False
    return MIN_RATING <= value <= MAX_RATING


def check_rating(value: Any, field: str) -> None:
    """Ensure the value is an integer star rating in [1, 5]."""
    if not is_valid_rating(value):
        raise ValidationException(
            f"{field} must be an integer between {MIN_RATING} and {MAX_RATING}",
            field,
        )


def parse_date(value: Any, field: str) -> datetime:
    """
    Parse a datetime, date or ISO-8601 string into an aware UTC datetime.

    Naive values are taken as UTC. Out-of-range or malformed input is
    rejected, never clamped.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationException(f"{field} must be a valid date", field)
    else:
        raise ValidationException(f"{field} must be a valid date", field)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # offset pushes the instant past year 1 or 9999
        raise ValidationException(f"{field} must be a valid date", field)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_upload(
    size: int,
    content_type: str,
    field: str,
    max_bytes: int,
    allowed_types: Sequence[str],
) -> None:
    """Ensure an uploaded file is within the size limit and of an allowed type."""
    if size > max_bytes:
        raise ValidationException(
            f"File size must be less than {max_bytes // (1024 * 1024)}MB",
            f"{field}.size",
        )
    if content_type not in allowed_types:
        raise ValidationException(
            f"File type must be one of: {', '.join(allowed_types)}",
            f"{field}.type",
        )


def sanitize_string(value: str) -> str:
    """Trim and collapse runs of whitespace."""
    return _WHITESPACE.sub(" ", value.strip())
