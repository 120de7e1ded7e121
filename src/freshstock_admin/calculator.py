"""Ledger arithmetic for a single item on a single day."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class LedgerValues:
    total: float
    net_amount: float


def coerce_number(value: Any) -> float:
    """Return *value* as a float, treating missing or non-numeric input as 0."""

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip()
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(numeric) or math.isinf(numeric):
        return 0.0
    return numeric


def compute_ledger_values(
    yesterday_net: Any = 0,
    today_quantity: Any = 0,
    today_sale: Any = 0,
    return_to_market: Any = 0,
    adjust_quantity: Any = 0,
) -> LedgerValues:
    """Compute ``total`` and ``net_amount`` from the day's movements.

    ``net_amount`` may be negative; an oversell is reported, not rejected.
    """

    total = coerce_number(yesterday_net) + coerce_number(today_quantity)
    net_amount = (
        total
        - coerce_number(today_sale)
        - coerce_number(return_to_market)
        + coerce_number(adjust_quantity)
    )
    return LedgerValues(total=total, net_amount=net_amount)
