"""Numeric helpers."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union


def round_half_up(value: Union[str, float, int], places: int = 2) -> Optional[float]:
    """Round to ``places`` decimals with halves rounded away from zero.

    Works on the decimal text of the value, so ``0.045`` gives ``0.05``
    instead of the ``0.04`` produced by binary float rounding.
    Returns None when the value is not a number.
    """
    try:
        exact = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        return None
    if not exact.is_finite():
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(exact.quantize(quantum, rounding=ROUND_HALF_UP))
