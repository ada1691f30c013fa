"""
Display helpers for JSON payloads and CLI output.
Amounts use Indian digit grouping (1,23,456.50).
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union, Optional


def group_in(integer_part: str) -> str:
    """Group an unsigned digit string the Indian way: last 3, then pairs."""
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ','.join(pairs + [tail])


def money_in(value: Union[int, float, Decimal, str, None], symbol: str = '₹') -> str:
    """
    Format an amount with two decimals and Indian grouping.

    Examples:
        money_in(1500) -> "₹1,500.00"
        money_in(123456.5) -> "₹1,23,456.50"
        money_in(None) -> "-"
    """
    if value is None or value == "":
        return "-"
    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = '-' if num < 0 else ''
    integer_part, decimal_part = f"{abs(num):.2f}".split('.')
    return f"{sign}{symbol}{group_in(integer_part)}.{decimal_part}"


def qty(value: Union[int, float, Decimal, None]) -> str:
    """Quantity without trailing zeros: 5.000 -> '5', 2.50 -> '2.5'."""
    if value is None:
        return "-"
    num = Decimal(str(value))
    if num == num.to_integral_value():
        return str(int(num))
    return format(num.normalize(), 'f')


def invoice_number(sale_id: Optional[int]) -> str:
    """Printable invoice number for a sale id: 7 -> 'INV-00007'."""
    if sale_id is None:
        return "INV-PENDING"
    return f"INV-{int(sale_id):05d}"


def date_iso(value: Union[date, datetime, None]) -> Optional[str]:
    """ISO date string (YYYY-MM-DD) or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


def decimal_str(value: Union[Decimal, int, float, None], places: int = 2) -> Optional[str]:
    """Serialize a Decimal for JSON with a fixed number of places."""
    if value is None:
        return None
    exponent = Decimal(1).scaleb(-places)
    return str(Decimal(str(value)).quantize(exponent))
