"""Cart pricing, snapshots and the checkout reconciliation guard."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Sequence

from .errors import ReconciliationMismatch, ValidationError
from .pricing import (
    DEFAULT_LIMITS,
    QuantityLimits,
    line_total,
    normalize_quantity,
    round_currency,
    to_decimal,
    validate_quantity,
)
from .schemas import DiscountSettings

logger = logging.getLogger(__name__)


class CheckoutStage(str, Enum):
    DELIVERY = "delivery"
    PAYMENT = "payment"


@dataclass(slots=True)
class CartLine:
    item_id: int
    quantity: float
    unit_price: float
    name: str = ""


@dataclass(frozen=True, slots=True)
class CartSummary:
    lines: list[CartLine]
    subtotal: float
    discount: float
    total: float


def compute_cart_summary(
    lines: Sequence[CartLine],
    discount: DiscountSettings,
    limits: QuantityLimits = DEFAULT_LIMITS,
) -> CartSummary:
    """Recompute subtotal, discount and total from the cart lines."""

    normalized = [replace(line, quantity=normalize_quantity(line.quantity, limits)) for line in lines]
    subtotal = round_currency(sum(to_decimal(line_total(line.unit_price, line.quantity)) for line in normalized))

    amount = 0.0
    if discount.is_enabled and subtotal >= discount.minimum_amount:
        amount = round_currency(to_decimal(subtotal) * to_decimal(discount.percentage) / 100)

    total = round_currency(to_decimal(subtotal) - to_decimal(amount))
    return CartSummary(lines=normalized, subtotal=subtotal, discount=amount, total=total)


class Cart:
    """A shopper's cart with a rollback snapshot.

    The snapshot is refreshed after every successful mutation and is what a
    failed reconciliation reverts to.
    """

    def __init__(self, limits: QuantityLimits = DEFAULT_LIMITS) -> None:
        self.limits = limits
        self.lines: list[CartLine] = []
        self._snapshot: list[CartLine] = []

    @property
    def snapshot(self) -> list[CartLine]:
        return copy.deepcopy(self._snapshot)

    def _take_snapshot(self) -> None:
        self._snapshot = copy.deepcopy(self.lines)

    def _checked_quantity(self, quantity: float) -> float:
        check = validate_quantity(quantity, self.limits)
        if check.blocking:
            raise ValidationError(check.message)
        return normalize_quantity(check.normalized, self.limits)

    def _find(self, item_id: int) -> Optional[CartLine]:
        return next((line for line in self.lines if line.item_id == item_id), None)

    def add_item(self, item_id: int, unit_price: float, quantity: float, name: str = "") -> CartLine:
        quantity = self._checked_quantity(quantity)
        line = self._find(item_id)
        if line is None:
            line = CartLine(item_id=item_id, quantity=quantity, unit_price=unit_price, name=name)
            self.lines.append(line)
        else:
            combined = round(line.quantity + quantity, 1)
            if combined > self.limits.maximum:
                raise ValidationError(
                    f"Quantity for item {item_id} cannot exceed {self.limits.maximum:g}"
                )
            line.quantity = normalize_quantity(combined, self.limits)
        self._take_snapshot()
        return line

    def update_item(self, item_id: int, quantity: float) -> CartLine:
        line = self._find(item_id)
        if line is None:
            raise ValidationError(f"Item {item_id} is not in the cart")
        line.quantity = self._checked_quantity(quantity)
        self._take_snapshot()
        return line

    def remove_item(self, item_id: int) -> None:
        self.lines = [line for line in self.lines if line.item_id != item_id]
        self._take_snapshot()

    def clear(self) -> None:
        self.lines = []
        self._take_snapshot()

    def restore_snapshot(self) -> list[CartLine]:
        self.lines = copy.deepcopy(self._snapshot)
        return self.snapshot


@dataclass
class ReconciliationGuard:
    """Compare a client-asserted total with the recomputed one."""

    discount: DiscountSettings
    tolerance: float = 0.01
    limits: QuantityLimits = field(default_factory=QuantityLimits)

    def _diverges(self, recomputed: float, asserted: float) -> bool:
        return abs(to_decimal(recomputed) - to_decimal(asserted)) > to_decimal(self.tolerance)

    def check(self, cart: Cart, asserted_total: float, stage: CheckoutStage) -> CartSummary:
        """Guard an in-process cart; restores its snapshot on mismatch."""

        summary = compute_cart_summary(cart.lines, self.discount, self.limits)
        if self._diverges(summary.total, asserted_total):
            restored = cart.restore_snapshot()
            self._report(stage, summary.total, asserted_total)
            raise ReconciliationMismatch(CheckoutStage(stage).value, summary.total, asserted_total, restored)
        return summary

    def verify(
        self,
        lines: Sequence[CartLine],
        snapshot: Sequence[CartLine],
        asserted_total: float,
        stage: CheckoutStage,
    ) -> CartSummary:
        """Guard a client-held cart; the mismatch carries the snapshot to restore."""

        summary = compute_cart_summary(lines, self.discount, self.limits)
        if self._diverges(summary.total, asserted_total):
            self._report(stage, summary.total, asserted_total)
            raise ReconciliationMismatch(
                CheckoutStage(stage).value, summary.total, asserted_total, copy.deepcopy(list(snapshot))
            )
        return summary

    def _report(self, stage: CheckoutStage, recomputed: float, asserted: float) -> None:
        logger.warning(
            "Checkout total mismatch before %s: recomputed %.2f, asserted %.2f; cart restored",
            CheckoutStage(stage).value, recomputed, asserted,
        )

