"""Typed answer values and the canonical forms used to compare them."""

from __future__ import annotations

import math
from typing import Any

AnswerValue = str | float | list[str]


def canonical_option_value(value: Any) -> str | None:
    """Return the option string a scalar answer is compared by.

    Strings are stripped; integral numbers lose their fractional part
    (``12.0`` and ``12`` both become ``"12"``) so that numeric answers match
    numeric-looking option labels. Booleans and containers have no
    canonical option form.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return None


def as_number(value: Any) -> float | None:
    """Read an answer as a finite float, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number
