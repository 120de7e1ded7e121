"""Catalog items and single-item rate edits."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import OperatorContext, get_current_operator, require_admin
from ..clock import Clock
from ..dependencies import get_clock, get_db
from ..errors import NotFoundError

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/items", response_model=list[schemas.CatalogItemRead])
def list_items(
    db: Session = Depends(get_db),
    operator: OperatorContext = Depends(get_current_operator),
):
    return crud.list_catalog_items(db)


@router.post("/items", response_model=schemas.CatalogItemRead, status_code=status.HTTP_201_CREATED)
def create_item(
    payload: schemas.CatalogItemCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    operator: OperatorContext = Depends(require_admin),
):
    return crud.create_catalog_item(db, payload, clock)


@router.get("/items/{item_id}", response_model=schemas.CatalogItemRead)
def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    operator: OperatorContext = Depends(get_current_operator),
):
    try:
        return crud.get_catalog_item(db, item_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.put("/items/{item_id}/rate", response_model=schemas.CatalogItemRead)
def update_rate(
    item_id: int,
    payload: schemas.RateUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    operator: OperatorContext = Depends(require_admin),
):
    try:
        item = crud.get_catalog_item(db, item_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return crud.update_item_rate(db, item, payload.rate, operator.username, clock)
