"""Daily stock ledger: editing sessions, saves, reports and deletion."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import OperatorContext, get_current_operator, require_admin
from ..clock import Clock
from ..dependencies import get_clock, get_db
from ..errors import NotFoundError, TransientStoreError, ValidationError
from ..ledger import DailyLedger

router = APIRouter(prefix="/ledger", tags=["ledger"])


def get_ledger(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> DailyLedger:
    return DailyLedger(db, clock)


@router.get("/dates", response_model=list[date])
def list_dates(
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(get_current_operator),
):
    return ledger.available_dates()


@router.get("/{entry_date}", response_model=list[schemas.LedgerEntryRead])
def list_entries(
    entry_date: date,
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(get_current_operator),
):
    return ledger.entries_for_date(entry_date)


@router.get("/{entry_date}/session", response_model=list[schemas.LedgerDraft])
def open_session(
    entry_date: date,
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(get_current_operator),
):
    return ledger.open_session(entry_date)


@router.put("/{entry_date}", response_model=schemas.LedgerSaveReport)
def save_entries(
    entry_date: date,
    payload: schemas.LedgerBatchInput,
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(get_current_operator),
):
    try:
        return ledger.save_entries(entry_date, payload.entries)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.reasons) from exc


@router.get("/{entry_date}/summary", response_model=schemas.DailySummary)
def daily_summary(
    entry_date: date,
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(get_current_operator),
):
    return ledger.daily_summary(entry_date)


@router.get("/{entry_date}/export", response_class=PlainTextResponse)
def export_csv(
    entry_date: date,
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(get_current_operator),
) -> PlainTextResponse:
    try:
        content = ledger.export_csv(entry_date)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return PlainTextResponse(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="daily_stock_{entry_date.isoformat()}.csv"'},
    )


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(
    entry_id: int,
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(get_current_operator),
) -> None:
    try:
        ledger.delete_entry(entry_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except TransientStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.delete("/{entry_date}", response_model=schemas.DeleteReport)
def delete_date(
    entry_date: date,
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(require_admin),
):
    return ledger.delete_entries_for_date(entry_date)


@router.delete("", response_model=schemas.DeleteReport)
def delete_older_than(
    older_than_days: int = Query(..., ge=1),
    ledger: DailyLedger = Depends(get_ledger),
    operator: OperatorContext = Depends(require_admin),
):
    return ledger.delete_entries_older_than(older_than_days)
