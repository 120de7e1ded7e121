"""Pydantic schemas for API payloads."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat


class OperatorBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    full_name: Optional[str] = Field(None, max_length=128)
    is_active: bool = True
    is_superuser: bool = False


class OperatorCreate(OperatorBase):
    password: str = Field(..., min_length=6, max_length=128)


class OperatorRead(OperatorBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenRead(BaseModel):
    access_token: str
    token_type: str = "bearer"
    operator: OperatorRead


# Catalog


class RateHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rate: float
    previous_rate: Optional[float] = None
    changed_by: str
    changed_at: datetime


class CatalogItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    rate: float = Field(0.0, ge=0)
    available: bool = True


class RateUpdate(BaseModel):
    rate: float = Field(..., ge=0)


class CatalogItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    rate: float
    available: bool
    updated_at: datetime
    rate_history: list[RateHistoryRead] = Field(default_factory=list)


# Daily ledger


class LedgerEntryInput(BaseModel):
    """One operator-entered row for a date.

    ``yesterday_net`` is normally left out so the store looks it up; the
    editing session echoes the value it showed the operator.
    """

    model_config = ConfigDict(extra="forbid")

    item_id: int
    yesterday_net: Optional[float] = None
    today_quantity: float = Field(0.0, ge=0)
    today_sale: float = Field(0.0, ge=0)
    return_to_market: float = Field(0.0, ge=0)
    adjust_quantity: float = 0.0

    def has_values(self) -> bool:
        return (
            self.today_quantity > 0
            or self.today_sale > 0
            or self.return_to_market > 0
            or self.adjust_quantity != 0
        )


class LedgerBatchInput(BaseModel):
    entries: list[LedgerEntryInput]


class LedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    item_name: str
    entry_date: date
    yesterday_net: float
    today_quantity: float
    total: float
    today_sale: float
    return_to_market: float
    adjust_quantity: float
    net_amount: float
    created_at: datetime
    updated_at: datetime


class LedgerDraft(BaseModel):
    """Editing-session row: the carry-forward value plus today's inputs."""

    item_id: int
    item_name: str
    entry_date: date
    yesterday_net: float
    today_quantity: float = 0.0
    today_sale: float = 0.0
    return_to_market: float = 0.0
    adjust_quantity: float = 0.0
    total: float = 0.0
    net_amount: float = 0.0
    existing_entry_id: Optional[int] = None


class EntryFailure(BaseModel):
    item_id: int
    error: str


class LedgerSaveReport(BaseModel):
    entry_date: date
    created: list[int] = Field(default_factory=list)
    updated: list[int] = Field(default_factory=list)
    skipped: list[int] = Field(default_factory=list)
    failed: list[EntryFailure] = Field(default_factory=list)

    @property
    def saved_count(self) -> int:
        return len(self.created) + len(self.updated)


class DeleteReport(BaseModel):
    deleted: int = 0
    dates: list[date] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)
    cutoff: Optional[date] = None


class DailySummary(BaseModel):
    entry_date: date
    entry_count: int
    yesterday_net: float
    today_quantity: float
    total: float
    today_sale: float
    return_to_market: float
    adjust_quantity: float
    net_amount: float


# Bulk updates


class BulkUpdateItem(BaseModel):
    """A single requested change. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    item_id: int
    rate: Optional[StrictFloat] = Field(None, ge=0, allow_inf_nan=False)
    available: Optional[StrictBool] = None


class BulkUpdatePayload(BaseModel):
    """Raw request body; items are validated by the bulk engine itself."""

    items: list[dict]
    max_retries: Optional[int] = Field(None, ge=1, le=10)


class BulkErrorCode(str, Enum):
    """Why a bulk update was not applied."""

    INVALID = "invalid"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


class BulkUpdateResult(BaseModel):
    success: bool
    error_code: Optional[BulkErrorCode] = None
    updated_count: int = 0
    errors: list[str] = Field(default_factory=list)
    touched_items: list[str] = Field(default_factory=list)
    touched_item_ids: list[int] = Field(default_factory=list)
    attempts: int = 0


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    operation: str
    operator: str
    timestamp: datetime
    item_ids: list[int]
    item_names: list[str]
    requested_count: int
    status: Literal["success", "failed"]
    error: Optional[str] = None


# Checkout


class DiscountSettings(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_enabled: bool = True
    percentage: float = Field(5.0, ge=0, le=100)
    minimum_amount: float = Field(1000.0, ge=0)


class CartLineSchema(BaseModel):
    item_id: int
    name: str = ""
    quantity: float
    unit_price: float = Field(..., ge=0)


class CartSummaryRead(BaseModel):
    lines: list[CartLineSchema]
    subtotal: float
    discount: float
    total: float


class ReconcileRequest(BaseModel):
    stage: Literal["delivery", "payment"]
    lines: list[CartLineSchema]
    snapshot: list[CartLineSchema]
    asserted_total: float


class ReconcileMismatchRead(BaseModel):
    detail: str
    stage: str
    recomputed_total: float
    asserted_total: float
    restored_cart: list[CartLineSchema]
