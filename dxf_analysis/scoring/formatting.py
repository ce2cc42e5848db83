"""
Number formatting for score explanations.

Explanations are read by operators, so numbers follow the shop-floor
conventions: ``5000`` rather than ``5000.0``, ``12.5%`` for ratios and
``4.5E-5`` for per-mm² densities. Rounding is half away from zero on the
exact binary value of the float.
"""

import math
from decimal import Decimal, ROUND_HALF_UP


def _quantize(value: float, places: int) -> Decimal:
    return Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_decimal(value: float, max_places: int = 2) -> str:
    """Format with up to ``max_places`` decimals, dropping trailing zeros.

    >>> format_decimal(5000.0)
    '5000'
    >>> format_decimal(0.125)
    '0.13'
    """
    text = format(_quantize(value, max_places), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    if text in ('-0', ''):
        text = '0'
    return text


def format_integer(value: float) -> str:
    """Nearest integer (ties to even), as used for count thresholds."""
    return str(int(round(value)))


def format_number(value: float, prefer_integer: bool = False) -> str:
    if prefer_integer or abs(value - round(value)) < 1e-6:
        return format_integer(value)
    return format_decimal(value)


def format_percent(value: float) -> str:
    """Ratio as a percentage with one decimal (``0.125`` -> ``12.5%``)."""
    return f"{format(_quantize(value * 100, 1), 'f')}%"


def format_scientific(value: float, max_places: int = 3) -> str:
    """Scientific notation with a trimmed mantissa (``0.000045`` -> ``4.5E-5``)."""
    if value == 0 or not math.isfinite(value):
        return "0E0" if value == 0 else str(value)

    exponent = math.floor(math.log10(abs(value)))
    mantissa = _quantize(value / 10 ** exponent, max_places)
    if abs(mantissa) >= 10:
        exponent += 1
        mantissa = _quantize(value / 10 ** exponent, max_places)
    return f"{format_decimal(float(mantissa), max_places)}E{exponent}"
