"""
Operand sanitizing for the hint and word problem generators.

The generators assume operands in [0, 12]. Anything arriving from a request
is floored and clamped here first; values that are not finite numbers become 0.
"""

import math
from typing import Any

MIN_OPERAND = 0
MAX_OPERAND = 12


def sanitize_operand(value: Any) -> int:
    """Floor and clamp a single operand into [0, 12]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return MIN_OPERAND
    if not math.isfinite(number):
        return MIN_OPERAND
    return max(MIN_OPERAND, min(MAX_OPERAND, math.floor(number)))


def sanitize_operands(a: Any, b: Any) -> tuple[int, int]:
    """Sanitize an operand pair."""
    return sanitize_operand(a), sanitize_operand(b)
