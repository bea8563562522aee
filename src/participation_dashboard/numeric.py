from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, Optional


def as_number(value: Any) -> Optional[float]:
    """Numeric value of a rating-like attribute, or ``None`` when absent or not numeric."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def round_half_up(value: float, places: int) -> float:
    """
    Round the exact binary value of ``value`` to ``places`` decimals, halves up.

    ``round_half_up(4.125, 2) == 4.13`` whereas ``round`` would give ``4.12``.
    """

    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_scaled(value: float, places: int) -> float:
    """
    Scale by ``10 ** places``, round halves up on the scaled float, scale back.

    Unlike :func:`round_half_up` the scaling happens first, so ``4.35`` (whose
    binary value sits just below the half) still becomes ``4.4``.
    """

    factor = 10**places
    return math.floor(value * factor + 0.5) / factor


def mean(
    values: Iterable[float],
    places: int,
    rounder: Callable[[float, int], float] = round_half_up,
) -> float:
    total = 0.0
    count = 0
    for value in values:
        total += value
        count += 1
    if not count:
        return 0.0
    return rounder(total / count, places)


def percentage(part: float, whole: float) -> int:
    if not whole:
        return 0
    return int(round_half_up(part / whole * 100, 0))
