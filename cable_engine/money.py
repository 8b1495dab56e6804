"""
Decimal Arithmetic Core.

Exact base-10 arithmetic for every money and voltage-drop figure in the
engine. Values may be passed as decimal strings, ints, floats or Decimals;
results are Decimals rounded ROUND_HALF_UP to two places unless another
precision is requested.

Multi-step chains should use the ``precise_*`` helpers, which keep the full
working precision, and round once at the end with ``round_to``.
"""
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Union

from cable_engine.errors import DivisionByZero, InvalidNumber

Number = Union[Decimal, int, float, str]

MONEY_PLACES = 2
WORKING_PRECISION = 28

_CONTEXT = Context(prec=WORKING_PRECISION, rounding=ROUND_HALF_UP)
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


# -------------------------------------------------------------------
# Conversion
# -------------------------------------------------------------------
def to_decimal(value: Number) -> Decimal:
    """Convert *value* to a finite Decimal without binary float noise."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidNumber(f"Boolean is not a number: {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InvalidNumber(f"Non-finite number: {value!r}")
        # repr() gives the shortest string that round-trips, e.g. 0.1 -> "0.1"
        result = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidNumber("Empty string is not a number")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise InvalidNumber(f"Not a decimal number: {value!r}") from None
    else:
        raise InvalidNumber(f"Unsupported numeric type {type(value).__name__}: {value!r}")

    if not result.is_finite():
        raise InvalidNumber(f"Non-finite number: {value!r}")
    return result


def to_float(value: Number) -> float:
    """Float for presentation boundaries only (charts, JSON)."""
    return float(to_decimal(value))


def _quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def round_to(value: Number, places: int = MONEY_PLACES) -> Decimal:
    """Round half-up to a fixed number of decimal places."""
    with localcontext(_CONTEXT):
        return to_decimal(value).quantize(_quantum(places), rounding=ROUND_HALF_UP)


# -------------------------------------------------------------------
# Full-precision primitives (no rounding)
# -------------------------------------------------------------------
def precise_add(values: Iterable[Number]) -> Decimal:
    with localcontext(_CONTEXT) as ctx:
        total = _ZERO
        for v in values:
            total = ctx.add(total, to_decimal(v))
        return total


def precise_subtract(a: Number, b: Number) -> Decimal:
    with localcontext(_CONTEXT) as ctx:
        return ctx.subtract(to_decimal(a), to_decimal(b))


def precise_multiply(*values: Number) -> Decimal:
    with localcontext(_CONTEXT) as ctx:
        product = Decimal(1)
        for v in values:
            product = ctx.multiply(product, to_decimal(v))
        return product


def precise_divide(a: Number, b: Number) -> Decimal:
    divisor = to_decimal(b)
    if divisor == _ZERO:
        raise DivisionByZero(f"Division of {a!r} by zero")
    with localcontext(_CONTEXT) as ctx:
        return ctx.divide(to_decimal(a), divisor)


def precise_percentage(part: Number, whole: Number) -> Decimal:
    return precise_multiply(precise_divide(part, whole), _HUNDRED)


# -------------------------------------------------------------------
# Rounded primitives
# -------------------------------------------------------------------
def add(values: Iterable[Number], places: int = MONEY_PLACES) -> Decimal:
    """Sum of *values*, rounded once."""
    return round_to(precise_add(values), places)


def subtract(a: Number, b: Number, places: int = MONEY_PLACES) -> Decimal:
    return round_to(precise_subtract(a, b), places)


def multiply(a: Number, b: Number, places: int = MONEY_PLACES) -> Decimal:
    return round_to(precise_multiply(a, b), places)


def divide(a: Number, b: Number, places: int = MONEY_PLACES) -> Decimal:
    """
    Divide *a* by *b*.

    Raises:
        DivisionByZero: if *b* is zero.
    """
    return round_to(precise_divide(a, b), places)


def percentage(part: Number, whole: Number, places: int = MONEY_PLACES) -> Decimal:
    """``part / whole * 100``; raises DivisionByZero when *whole* is zero."""
    return round_to(precise_percentage(part, whole), places)


def percentage_of(value: Number, percent: Number, places: int = MONEY_PLACES) -> Decimal:
    """``value * percent / 100``."""
    return round_to(precise_divide(precise_multiply(value, percent), _HUNDRED), places)


def variance(actual: Number, baseline: Number, places: int = MONEY_PLACES) -> Decimal:
    """Signed difference ``actual - baseline`` (negative means a saving)."""
    return subtract(actual, baseline, places)


# -------------------------------------------------------------------
# Helpers over records
# -------------------------------------------------------------------
def field_value(record: Any, name: str, default: Any = None) -> Any:
    """Read *name* from a mapping or an object attribute."""
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def sum_field(records: Iterable[Any], name: str, places: int = MONEY_PLACES) -> Decimal:
    """Sum one named field across records; missing or None values count as zero."""
    values = []
    for record in records:
        value = field_value(record, name)
        if value is not None:
            values.append(value)
    return add(values, places)


def within_tolerance(a: Number, b: Number, tolerance: Number = "0.01") -> bool:
    return abs(precise_subtract(a, b)) <= to_decimal(tolerance)
