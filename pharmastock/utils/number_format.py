"""Parsing utilities: coerce raw request values to Decimal / date once, at ingestion."""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

# 1,234.56 / 1234.56 / 1,23,456.50 (Indian grouping) are all accepted
GROUPED_NUMBER_PATTERN = re.compile(r"^\d{1,3}(?:,\d{2,3})*(?:\.\d+)?$")


def parse_decimal(value, field: str = 'value', default: Optional[Decimal] = None,
                  allow_negative: bool = False) -> Decimal:
    """
    Parse a numeric request value (str, int, float or Decimal) to Decimal.

    Rules:
    - Empty / None returns ``default`` when given, otherwise fails
    - Thousands separators (comma) are accepted in either western or Indian grouping
    - Negative values are rejected unless ``allow_negative``

    Raises:
        ValueError: if the value is invalid or empty.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValueError(f'{field} is required')

    if isinstance(value, bool):
        raise ValueError(f'Invalid number for {field}')

    if isinstance(value, Decimal):
        number = value
    else:
        cleaned = str(value).strip()
        if GROUPED_NUMBER_PATTERN.match(cleaned):
            cleaned = cleaned.replace(',', '')
        try:
            number = Decimal(cleaned)
        except (InvalidOperation, ValueError):
            raise ValueError(f'Invalid number for {field}')

    if not number.is_finite():
        raise ValueError(f'Invalid number for {field}')

    if number < 0 and not allow_negative:
        raise ValueError(f'{field} cannot be negative')

    return number


def parse_quantity(value, field: str = 'quantity', default: Optional[Decimal] = None) -> Decimal:
    """Parse a pack count. Same rules as parse_decimal."""
    return parse_decimal(value, field=field, default=default)


def parse_date(value, field: str = 'date', required: bool = False) -> Optional[date]:
    """
    Parse ISO dates ('2025-06-01') or ISO datetimes to a date.

    Returns None for empty input unless ``required``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValueError(f'{field} is required')
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    cleaned = str(value).strip()
    try:
        return date.fromisoformat(cleaned[:10])
    except ValueError:
        raise ValueError(f'Invalid date for {field}. Use YYYY-MM-DD')


def parse_id(value, field: str = 'id') -> int:
    """
    Parse a record id from a request (JSON number or numeric string).

    Raises:
        ValueError: if the value is empty, non-numeric or not positive.
    """
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValueError(f'{field} is required')
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValueError(f'Invalid {field}: {value}')
    if number <= 0:
        raise ValueError(f'Invalid {field}: {value}')
    return number
