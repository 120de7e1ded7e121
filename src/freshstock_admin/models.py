"""Database models."""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Operator(Base):
    """A back-office operator allowed to record stock and edit the catalog."""

    __tablename__ = "operators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    hashed_password: Mapped[str] = mapped_column(String(256), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_superuser: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Operator username={self.username!r} active={self.is_active}>"


class CatalogItem(Base):
    """A sellable item. Only ``rate`` and ``available`` are touched by bulk updates."""

    __tablename__ = "catalog_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    rate_history: Mapped[list["RateHistoryEntry"]] = relationship(
        back_populates="item",
        order_by="RateHistoryEntry.id",
        cascade="all, delete-orphan",
    )


class RateHistoryEntry(Base):
    """Append-only record of a rate change."""

    __tablename__ = "rate_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("catalog_items.id"), nullable=False, index=True)
    rate: Mapped[float] = mapped_column(Float, nullable=False)
    previous_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    changed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    item: Mapped[CatalogItem] = relationship(back_populates="rate_history")


class LedgerEntry(Base):
    """One item's stock movement on one calendar day."""

    __tablename__ = "ledger_entries"
    __table_args__ = (UniqueConstraint("item_id", "entry_date", name="uq_ledger_item_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("catalog_items.id"), nullable=False, index=True)
    item_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    yesterday_net: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    today_quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    today_sale: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    return_to_market: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    adjust_quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    net_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<LedgerEntry item={self.item_id} date={self.entry_date} net={self.net_amount}>"


class AuditLogEntry(Base):
    """One record per bulk update call. Never updated after insert."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    operation: Mapped[str] = mapped_column(String(64), nullable=False, default="bulk_rate_update")
    operator: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    item_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    item_names: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    requested_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)


class DiscountSetting(Base):
    """Storefront-wide order discount; a single row."""

    __tablename__ = "discount_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    percentage: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    minimum_amount: Mapped[float] = mapped_column(Float, nullable=False, default=1000.0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
