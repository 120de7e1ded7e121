"""Database access helpers for operators, the catalog and shop settings."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas, security
from .clock import Clock
from .config import get_settings
from .errors import NotFoundError

logger = logging.getLogger(__name__)


class DuplicateUsernameError(RuntimeError):
    """Raised when trying to create an operator with an existing username."""


# Operators


def list_operators(db: Session, *, skip: int = 0, limit: int = 50) -> list[models.Operator]:
    statement = select(models.Operator).order_by(models.Operator.id).offset(skip).limit(limit)
    return list(db.scalars(statement))


def get_operator_by_username(db: Session, username: str) -> Optional[models.Operator]:
    statement = select(models.Operator).where(models.Operator.username == username)
    return db.scalars(statement).first()


def create_operator(db: Session, payload: schemas.OperatorCreate) -> models.Operator:
    operator = models.Operator(
        username=payload.username,
        full_name=payload.full_name,
        hashed_password=security.hash_password(payload.password),
        is_active=payload.is_active,
        is_superuser=payload.is_superuser,
    )
    db.add(operator)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateUsernameError(f"Username '{payload.username}' already exists") from exc
    db.refresh(operator)
    logger.info("Created operator %s (superuser=%s)", operator.username, operator.is_superuser)
    return operator


def authenticate_operator(db: Session, username: str, password: str) -> Optional[models.Operator]:
    """Return the matching operator when the credentials are valid."""

    operator = get_operator_by_username(db, username)
    if not operator or not operator.is_active:
        return None
    if not security.verify_password(password, operator.hashed_password):
        return None
    return operator


# Catalog


def list_catalog_items(db: Session) -> list[models.CatalogItem]:
    return list(db.scalars(select(models.CatalogItem).order_by(models.CatalogItem.id)))


def get_catalog_item(db: Session, item_id: int) -> models.CatalogItem:
    item = db.get(models.CatalogItem, item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def create_catalog_item(db: Session, payload: schemas.CatalogItemCreate, clock: Clock) -> models.CatalogItem:
    now = clock.now()
    item = models.CatalogItem(
        name=payload.name.strip(),
        rate=payload.rate,
        available=payload.available,
        created_at=now,
        updated_at=now,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_item_rate(
    db: Session, item: models.CatalogItem, rate: float, changed_by: str, clock: Clock
) -> models.CatalogItem:
    """Change a single item's rate, appending to its history when it moves."""

    if rate != item.rate:
        item.rate_history.append(
            models.RateHistoryEntry(
                rate=rate, previous_rate=item.rate, changed_by=changed_by, changed_at=clock.now()
            )
        )
        item.rate = rate
        item.updated_at = clock.now()
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


# Discount settings


def get_discount_settings(db: Session) -> schemas.DiscountSettings:
    row = db.get(models.DiscountSetting, 1)
    if row is None:
        settings = get_settings()
        return schemas.DiscountSettings(
            is_enabled=settings.discount_enabled,
            percentage=settings.discount_percentage,
            minimum_amount=settings.discount_minimum,
        )
    return schemas.DiscountSettings.model_validate(row)


def save_discount_settings(
    db: Session, payload: schemas.DiscountSettings, clock: Clock
) -> schemas.DiscountSettings:
    row = db.get(models.DiscountSetting, 1) or models.DiscountSetting(id=1)
    row.is_enabled = payload.is_enabled
    row.percentage = payload.percentage
    row.minimum_amount = payload.minimum_amount
    row.updated_at = clock.now()
    db.add(row)
    db.commit()
    return schemas.DiscountSettings.model_validate(row)


# Audit log


def list_audit_log(db: Session, *, limit: int = 50) -> list[models.AuditLogEntry]:
    statement = (
        select(models.AuditLogEntry)
        .order_by(models.AuditLogEntry.timestamp.desc(), models.AuditLogEntry.id.desc())
        .limit(limit)
    )
    return list(db.scalars(statement))
