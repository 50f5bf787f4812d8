"""Decimal money helpers shared by the markup engine.

All monetary values are ``Decimal``. Floating point only appears at the
input boundary, where values are converted through ``str`` so that a cost
such as ``10.005`` keeps its exact decimal digits.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal

import loguru
from loguru import logger

RoundingMode = Literal["half_up", "half_even"]

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

_DECIMAL_ROUNDING: dict[str, str] = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}


def d(val: object) -> Decimal:
    """Coerce a numeric value to Decimal without binary float artifacts."""
    if isinstance(val, Decimal):
        return val
    if isinstance(val, bool):
        raise TypeError("Booleans are not monetary values")
    if isinstance(val, (int, float, str)):
        return Decimal(str(val).strip())
    raise TypeError(f"Cannot convert {type(val).__name__} to Decimal")


def round_money(value: Decimal, mode: RoundingMode = "half_up") -> Decimal:
    """Round to cents. ``half_up`` rounds ties away from zero."""
    return value.quantize(TWOPLACES, rounding=_DECIMAL_ROUNDING[mode])


def round_percent(value: Decimal, mode: RoundingMode = "half_up") -> Decimal:
    """Round a percentage (e.g. ``17.9910``) to two decimal places."""
    return value.quantize(TWOPLACES, rounding=_DECIMAL_ROUNDING[mode])


def money_sum(values: Iterable[Decimal]) -> Decimal:
    """Sum Decimals starting from an exact zero."""
    return sum(values, ZERO)


def coerce_amount(
    value: object,
    *,
    field_name: str,
    record_id: str | None = None,
    logger_instance: loguru.Logger = logger,
) -> Decimal:
    """Convert a raw cost field to Decimal, falling back to zero.

    Missing values become zero silently. Values that are present but not
    numeric also become zero, with a warning so the record can be fixed at
    the source without failing the whole batch.
    """
    if value is None or value == "":
        return ZERO
    try:
        amount = d(value)
    except (TypeError, InvalidOperation, ValueError):
        amount = None
    if amount is None or not amount.is_finite():
        logger_instance.bind(
            field=field_name, record_id=record_id, raw_value=repr(value)
        ).warning(
            "Non-numeric {} on record {} coerced to 0: {!r}",
            field_name,
            record_id,
            value,
        )
        return ZERO
    return amount


def coerce_optional_amount(
    value: object,
    *,
    field_name: str,
    record_id: str | None = None,
) -> Decimal | None:
    """Like ``coerce_amount`` but keeps ``None`` for absent values."""
    if value is None or value == "":
        return None
    return coerce_amount(value, field_name=field_name, record_id=record_id)
