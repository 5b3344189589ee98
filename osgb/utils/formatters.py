"""
Formatting helpers for PDF output and API messages.
Numbers and dates follow Turkish conventions (1.234,56 / 31.12.2026).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional

CURRENCY_SYMBOLS = {
    'TRY': '₺',
    'USD': '$',
    'EUR': '€',
}


def _group_thousands(integer_part: str) -> str:
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return '.'.join(groups)[::-1]


def num_tr(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format a number Turkish style:
    - Thousands separator: dot (.)
    - Decimal separator: comma (,)
    - Trailing zero decimals are dropped unless `decimals` is fixed

    Examples:
        num_tr(1500) -> "1.500"
        num_tr(1500.5) -> "1.500,5"
        num_tr(185.00) -> "185"
        num_tr(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if num == 0:
        return "0"

    if decimals is not None:
        num = num.quantize(Decimal(10) ** -decimals, rounding=ROUND_HALF_UP)

    num_str = format(num, 'f')
    if '.' in num_str:
        integer_part, decimal_part = num_str.split('.')
        if decimals is None:
            decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = num_str, ""

    sign_str = ''
    if integer_part.startswith('-'):
        sign_str = '-'
        integer_part = integer_part[1:]

    integer_formatted = _group_thousands(integer_part)
    if decimal_part:
        return f"{sign_str}{integer_formatted},{decimal_part}"
    return f"{sign_str}{integer_formatted}"


def money_tr(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Money with exactly 2 decimals, rounded half-up: 1.500,00.
    Returns "-" for invalid input.
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    integer_part, decimal_part = f"{abs(num):.2f}".split(".")
    return f"{sign}{_group_thousands(integer_part)},{decimal_part}"


def currency_symbol(code: Optional[str]) -> str:
    return CURRENCY_SYMBOLS.get((code or 'TRY').upper(), code or '')


def date_tr(value: Union[date, datetime, str, None]) -> str:
    """
    Format a date as DD.MM.YYYY. ISO strings are accepted.

    Examples:
        date_tr(date(2026, 1, 12)) -> "12.01.2026"
        date_tr("2026-01-12") -> "12.01.2026"
    """
    if value is None or value == "":
        return "-"

    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return "-"

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "-"

    return value.strftime("%d.%m.%Y")
