"""Decimal helpers shared by the calculators."""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from scheme_engine.config import settings

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce numbers (including floats from JSON) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Any, quantum: Optional[Decimal] = None) -> Decimal:
    """Round half away from zero to ``quantum`` (the configured MONEY_QUANTUM by default)."""
    return to_decimal(value).quantize(quantum or settings.MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def floor_ratio(numerator: Any, denominator: Any) -> Decimal:
    """floor(numerator / denominator) as a Decimal. Zero denominators yield 0."""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return ZERO
    return Decimal(math.floor(to_decimal(numerator) / denominator))
