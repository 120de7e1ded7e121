"""Bulk rate/availability updates and the audit log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import OperatorContext, require_admin
from ..bulk import BulkUpdateEngine
from ..clock import Clock
from ..dependencies import get_clock, get_db

router = APIRouter(tags=["bulk updates"])

_FAILURE_STATUS = {
    schemas.BulkErrorCode.INVALID: status.HTTP_400_BAD_REQUEST,
    schemas.BulkErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    schemas.BulkErrorCode.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_bulk_engine(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> BulkUpdateEngine:
    return BulkUpdateEngine(db, clock)


@router.post("/bulk-updates", response_model=schemas.BulkUpdateResult)
def bulk_update(
    payload: schemas.BulkUpdatePayload,
    engine: BulkUpdateEngine = Depends(get_bulk_engine),
    operator: OperatorContext = Depends(require_admin),
):
    result = engine.bulk_update(payload.items, operator, payload.max_retries)
    if result.success:
        return result
    code = _FAILURE_STATUS.get(result.error_code, status.HTTP_503_SERVICE_UNAVAILABLE)
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


@router.get("/audit-log", response_model=list[schemas.AuditLogRead])
def audit_log(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    operator: OperatorContext = Depends(require_admin),
):
    return crud.list_audit_log(db, limit=limit)
