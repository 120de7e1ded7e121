"""Quantity validation and currency rounding.

Everything here is pure and safe to call from any request thread. Money is
rounded half-up to two decimals through :mod:`decimal` so line totals never
drift the way binary floats do (``round(2.675, 2) == 2.67``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .config import Settings

_CENTS = Decimal("0.01")
_EPSILON = 1e-6


@dataclass(frozen=True, slots=True)
class QuantityLimits:
    minimum: float = 0.5
    maximum: float = 200.0
    step: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "QuantityLimits":
        return cls(
            minimum=settings.quantity_min,
            maximum=settings.quantity_max,
            step=settings.quantity_step,
        )


@dataclass(frozen=True, slots=True)
class QuantityCheck:
    """Outcome of :func:`validate_quantity`.

    ``blocking`` is set only when the requested value is outside
    ``[minimum, maximum]``; callers adding to a cart must refuse the action in
    that case. Other invalid values can be replaced by ``normalized``.
    """

    valid: bool
    normalized: float
    message: str = ""
    blocking: bool = False


DEFAULT_LIMITS = QuantityLimits()


def to_decimal(value: Any) -> Decimal:
    """Convert *value* to a Decimal through its string form."""

    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Any) -> float:
    """Round half-up to two decimals."""

    return float(to_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _parse(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def normalize_quantity(value: Any, limits: QuantityLimits = DEFAULT_LIMITS) -> float:
    """Clamp *value* into range, snap it to the step and round to one decimal."""

    numeric = _parse(value)
    if numeric is None:
        return limits.minimum
    clamped = min(limits.maximum, max(limits.minimum, numeric))
    stepped = round(clamped / limits.step) * limits.step
    return round(stepped, 1)


def is_within_range(value: float, limits: QuantityLimits = DEFAULT_LIMITS) -> bool:
    return limits.minimum - _EPSILON <= value <= limits.maximum + _EPSILON


def is_on_step(value: float, limits: QuantityLimits = DEFAULT_LIMITS) -> bool:
    steps = value / limits.step
    return abs(steps - round(steps)) < _EPSILON


def validate_quantity(value: Any, limits: QuantityLimits = DEFAULT_LIMITS) -> QuantityCheck:
    if value is None or (isinstance(value, str) and not value.strip()):
        return QuantityCheck(False, limits.minimum, "Please enter a quantity.")

    numeric = _parse(value)
    if numeric is None:
        return QuantityCheck(False, limits.minimum, "Please enter a valid number.")

    if not is_within_range(numeric, limits):
        return QuantityCheck(
            False,
            normalize_quantity(numeric, limits),
            f"Quantity must be between {limits.minimum:g} and {limits.maximum:g}.",
            blocking=True,
        )

    if not is_on_step(numeric, limits):
        return QuantityCheck(
            False,
            normalize_quantity(numeric, limits),
            f"Quantity must be a multiple of {limits.step:g}.",
        )

    return QuantityCheck(True, normalize_quantity(numeric, limits))


def line_total(unit_price: Any, quantity: Any) -> float:
    """Return ``round(unit_price * quantity, 2)`` using half-up rounding."""

    price = _parse(unit_price) or 0.0
    qty = _parse(quantity) or 0.0
    return round_currency(to_decimal(price) * to_decimal(qty))


def format_currency(amount: Any) -> str:
    return f"₹{round_currency(_parse(amount) or 0.0):,.2f}"
