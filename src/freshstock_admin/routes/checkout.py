"""Discount settings and the checkout reconciliation check."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import OperatorContext, require_admin
from ..cart import CartLine, ReconciliationGuard
from ..clock import Clock
from ..config import get_settings
from ..dependencies import get_clock, get_db
from ..errors import ReconciliationMismatch
from ..pricing import QuantityLimits

router = APIRouter(prefix="/checkout", tags=["checkout"])


def _to_lines(rows: list[schemas.CartLineSchema]) -> list[CartLine]:
    return [
        CartLine(item_id=row.item_id, quantity=row.quantity, unit_price=row.unit_price, name=row.name)
        for row in rows
    ]


def _to_schema(lines: list[CartLine]) -> list[schemas.CartLineSchema]:
    return [
        schemas.CartLineSchema(
            item_id=line.item_id, name=line.name, quantity=line.quantity, unit_price=line.unit_price
        )
        for line in lines
    ]


@router.get("/discount", response_model=schemas.DiscountSettings)
def get_discount(db: Session = Depends(get_db)):
    return crud.get_discount_settings(db)


@router.put("/discount", response_model=schemas.DiscountSettings)
def update_discount(
    payload: schemas.DiscountSettings,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    operator: OperatorContext = Depends(require_admin),
):
    return crud.save_discount_settings(db, payload, clock)


@router.post(
    "/reconcile",
    response_model=schemas.CartSummaryRead,
    responses={status.HTTP_409_CONFLICT: {"model": schemas.ReconcileMismatchRead}},
)
def reconcile(payload: schemas.ReconcileRequest, db: Session = Depends(get_db)):
    """Check the client's total before the delivery or payment step."""

    settings = get_settings()
    guard = ReconciliationGuard(
        discount=crud.get_discount_settings(db),
        tolerance=settings.reconciliation_tolerance,
        limits=QuantityLimits.from_settings(settings),
    )
    try:
        summary = guard.verify(
            _to_lines(payload.lines), _to_lines(payload.snapshot), payload.asserted_total, payload.stage
        )
    except ReconciliationMismatch as exc:
        body = schemas.ReconcileMismatchRead(
            detail="Quantity or total mismatch detected; review the cart before checkout.",
            stage=exc.stage,
            recomputed_total=exc.recomputed_total,
            asserted_total=exc.asserted_total,
            restored_cart=_to_schema(exc.restored),
        )
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump())
    return schemas.CartSummaryRead(
        lines=_to_schema(summary.lines), subtotal=summary.subtotal, discount=summary.discount, total=summary.total
    )
