"""Numeric coercion for merge participation.

A cell takes part in summation only when it is a real number or text that
starts with a decimal literal. Booleans and absent cells never coerce.
"""
from __future__ import annotations

import math
import re
from typing import Optional, Union

from models.schemas import CellValue

Number = Union[int, float]

# Leading decimal literal: "12", "-3.5", ".5", "1e3", "7 units" (prefix only).
_LEADING_NUMBER = re.compile(
    r"^\s*(?P<lit>[+-]?(?:[0-9]+(?P<frac>\.[0-9]*)?|(?P<bare>\.[0-9]+))(?P<exp>[eE][+-]?[0-9]+)?)"
)


def _parse_leading_number(text: str) -> Optional[Number]:
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    literal = match.group("lit")
    if not (match.group("frac") or match.group("bare") or match.group("exp")):
        try:
            return int(literal)
        except ValueError:
            # Past the int digit limit; read it as a float like any other literal
            pass
    value = float(literal)
    return value if math.isfinite(value) else None


def as_number(value: CellValue) -> Optional[Number]:
    """Return the numeric value of a cell, or None if it must not be summed."""
    # bool is an int subclass; it has to be rejected first
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if isinstance(value, str):
        return _parse_leading_number(value)
    return None


def coerce_input(raw_text: str) -> CellValue:
    """Turn typed text into a stored cell: a number if it reads as one."""
    number = _parse_leading_number(raw_text)
    return raw_text if number is None else number
