"""All-or-nothing bulk changes to catalog rates and availability."""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

import pydantic
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .auth import OperatorContext
from .clock import Clock
from .config import get_settings
from .errors import AuditWriteFailure, NotFoundError, TransientStoreError, ValidationError
from .schemas import BulkErrorCode, BulkUpdateItem, BulkUpdateResult

logger = logging.getLogger(__name__)

OPERATION = "bulk_rate_update"

RawChange = Union[BulkUpdateItem, Mapping[str, Any]]


def backoff_delay_ms(attempt: int, base_ms: int = 1000, cap_ms: int = 5000) -> int:
    """Wait before the retry that follows failed *attempt* (1-based)."""

    return min(base_ms * 2 ** (attempt - 1), cap_ms)


def validate_changes(requests: Sequence[RawChange]) -> list[BulkUpdateItem]:
    """Parse and check a bulk request, collecting every problem found."""

    if not requests:
        raise ValidationError("No updates to process")

    changes: list[BulkUpdateItem] = []
    errors: list[str] = []
    for index, raw in enumerate(requests, start=1):
        try:
            change = raw if isinstance(raw, BulkUpdateItem) else BulkUpdateItem.model_validate(raw)
        except pydantic.ValidationError as exc:
            for problem in exc.errors():
                field = ".".join(str(part) for part in problem["loc"]) or "item"
                errors.append(f"Update #{index}: {field}: {problem['msg']}")
            continue
        if change.rate is None and change.available is None:
            errors.append(f"Update #{index}: nothing to change for item {change.item_id}")
            continue
        changes.append(change)

    counts = Counter(change.item_id for change in changes)
    errors.extend(f"Item {item_id} appears more than once" for item_id, count in counts.items() if count > 1)

    if errors:
        raise ValidationError(errors)
    return changes


class BulkUpdateEngine:
    """Apply a batch of rate/availability changes as one transaction.

    Transient store failures retry the whole batch with exponential backoff.
    Exactly one audit record is written per call, whatever the outcome; a
    failure to write it is logged and does not change the result.
    """

    def __init__(
        self,
        db: Session,
        clock: Clock,
        *,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = get_settings()
        self.db = db
        self.clock = clock
        self.max_retries = settings.bulk_max_retries if max_retries is None else max_retries
        self.base_delay_ms = settings.retry_base_ms
        self.cap_delay_ms = settings.retry_cap_ms
        self.sleep = sleep

    def bulk_update(
        self,
        requests: Sequence[RawChange],
        operator: OperatorContext,
        max_retries: Optional[int] = None,
    ) -> BulkUpdateResult:
        if max_retries is None:
            max_retries = self.max_retries
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        try:
            changes = validate_changes(requests)
        except ValidationError as exc:
            logger.warning("Bulk update by %s rejected: %s", operator.username, exc)
            self._audit(operator, "failed", len(requests), [], error=str(exc))
            return BulkUpdateResult(success=False, errors=exc.reasons, error_code=BulkErrorCode.INVALID)

        last_error: Optional[Exception] = None
        error_code = BulkErrorCode.UNAVAILABLE
        attempt = 0
        for attempt in range(1, max_retries + 1):
            logger.info("Bulk update attempt %s/%s by %s", attempt, max_retries, operator.username)
            try:
                touched = self._apply(changes, operator)
            except NotFoundError as exc:
                last_error = exc
                error_code = BulkErrorCode.NOT_FOUND
                break
            except TransientStoreError as exc:
                last_error = exc
                logger.error("Bulk update attempt %s failed: %s", attempt, exc)
                if attempt < max_retries:
                    delay = backoff_delay_ms(attempt, self.base_delay_ms, self.cap_delay_ms)
                    logger.info("Retrying bulk update in %sms", delay)
                    self.sleep(delay / 1000)
                continue

            logger.info("Bulk update committed: %s items", len(touched))
            self._audit(operator, "success", len(requests), touched)
            return BulkUpdateResult(
                success=True,
                updated_count=len(touched),
                touched_items=[name for _, name in touched],
                touched_item_ids=[item_id for item_id, _ in touched],
                attempts=attempt,
            )

        message = str(last_error) if last_error else "Batch update failed after all retries"
        self._audit(operator, "failed", len(requests), [], error=message)
        return BulkUpdateResult(success=False, errors=[message], attempts=attempt, error_code=error_code)

    def _apply(self, changes: Sequence[BulkUpdateItem], operator: OperatorContext) -> list[tuple[int, str]]:
        """Resolve every item, then write all changes in a single commit."""

        ids = [change.item_id for change in changes]
        try:
            rows = self.db.scalars(select(models.CatalogItem).where(models.CatalogItem.id.in_(ids)))
            by_id = {row.id: row for row in rows}
            missing = [item_id for item_id in ids if item_id not in by_id]
            if missing:
                raise NotFoundError(
                    "Items not found: " + ", ".join(str(item_id) for item_id in missing)
                )

            now = self.clock.now()
            touched: list[tuple[int, str]] = []
            for change in changes:
                item = by_id[change.item_id]
                if change.rate is not None and change.rate != item.rate:
                    item.rate_history.append(
                        models.RateHistoryEntry(
                            rate=change.rate,
                            previous_rate=item.rate,
                            changed_by=operator.username,
                            changed_at=now,
                        )
                    )
                    item.rate = change.rate
                if change.available is not None:
                    item.available = change.available
                item.updated_at = now
                touched.append((item.id, item.name))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransientStoreError(f"Batch write failed: {exc}") from exc
        return touched

    def _audit(
        self,
        operator: OperatorContext,
        status: str,
        requested_count: int,
        touched: Iterable[tuple[int, str]],
        *,
        error: Optional[str] = None,
    ) -> None:
        try:
            self._write_audit(operator, status, requested_count, list(touched), error)
        except AuditWriteFailure as exc:
            logger.warning("%s; bulk update outcome unchanged", exc)

    def _write_audit(
        self,
        operator: OperatorContext,
        status: str,
        requested_count: int,
        touched: list[tuple[int, str]],
        error: Optional[str],
    ) -> None:
        entry = models.AuditLogEntry(
            operation=OPERATION,
            operator=operator.username,
            timestamp=self.clock.now(),
            item_ids=[item_id for item_id, _ in touched],
            item_names=[name for _, name in touched],
            requested_count=requested_count,
            status=status,
            error=error,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise AuditWriteFailure(f"Could not write audit entry: {exc}") from exc
