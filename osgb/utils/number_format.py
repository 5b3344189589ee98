"""Number parsing utilities for Turkish-formatted input."""
import re
from decimal import Decimal, InvalidOperation

TR_NUMBER_PATTERN = re.compile(r"^-?(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?$")


def parse_tr_number(value):
    """
    Normalize a numeric API input to Decimal.

    Accepts JSON numbers as they are and strings in either Turkish format
    (1.234,56) or plain dotted format (1234.56). Range checks are left to
    the pricing engine so the error names the offending field.

    Raises:
        ValueError: if the value cannot be read as a number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError('Sayı bekleniyordu.')

    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))

    cleaned = str(value).strip().replace(' ', '')
    if not cleaned:
        raise ValueError('Sayı bekleniyordu.')

    if TR_NUMBER_PATTERN.match(cleaned) and (',' in cleaned or cleaned.count('.') > 1):
        normalized = cleaned.replace('.', '').replace(',', '.')
    else:
        normalized = cleaned

    try:
        return Decimal(normalized)
    except (InvalidOperation, ValueError):
        raise ValueError(f'Geçersiz sayı biçimi: {value}. Örnek: 1.234,56')
