"""Daily per-item stock ledger with carry-forward balances.

Each (item, date) pair has at most one :class:`~freshstock_admin.models.LedgerEntry`.
An entry's ``yesterday_net`` is copied from the previous day's ``net_amount``
at the moment an editing session is opened or an entry is saved; it is not
propagated forward when an older day is corrected later. Saves are per entry
and never roll back their neighbours, deletions are best-effort.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from collections import Counter
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .calculator import compute_ledger_values
from .clock import Clock
from .config import get_settings
from .errors import LedgerError, NotFoundError, TransientStoreError, ValidationError

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Item Name",
    "Yesterday Net",
    "Today Quantity",
    "Total",
    "Today Sale",
    "Return to Market",
    "Adjust Quantity",
    "Net Amount",
]


class DailyLedger:
    def __init__(self, db: Session, clock: Clock, *, save_attempts: Optional[int] = None) -> None:
        self.db = db
        self.clock = clock
        if save_attempts is None:
            save_attempts = get_settings().ledger_save_attempts
        if save_attempts < 1:
            raise ValueError("save_attempts must be at least 1")
        self.save_attempts = save_attempts

    # Lookups

    def get_entry(self, item_id: int, day: date) -> Optional[models.LedgerEntry]:
        statement = select(models.LedgerEntry).where(
            models.LedgerEntry.item_id == item_id, models.LedgerEntry.entry_date == day
        )
        return self.db.scalars(statement).first()

    def previous_net(self, item_id: int, day: date) -> float:
        """Return the item's ``net_amount`` on the day before *day*, or 0."""

        previous = self.get_entry(item_id, day - timedelta(days=1))
        return previous.net_amount if previous else 0.0

    def entries_for_date(self, day: date) -> list[models.LedgerEntry]:
        statement = (
            select(models.LedgerEntry)
            .where(models.LedgerEntry.entry_date == day)
            .order_by(models.LedgerEntry.item_id)
        )
        return list(self.db.scalars(statement))

    def available_dates(self) -> list[date]:
        """Dates that have at least one entry, newest first."""

        statement = (
            select(models.LedgerEntry.entry_date)
            .distinct()
            .order_by(models.LedgerEntry.entry_date.desc())
        )
        return list(self.db.scalars(statement))

    def open_session(self, day: date) -> list[schemas.LedgerDraft]:
        """Build the editing rows for every catalog item on *day*.

        The carry-forward value is always looked up fresh. Rows for items that
        already have an entry on *day* start from the stored movements.
        """

        drafts: list[schemas.LedgerDraft] = []
        for item in crud.list_catalog_items(self.db):
            yesterday_net = self.previous_net(item.id, day)
            existing = self.get_entry(item.id, day)
            draft = schemas.LedgerDraft(
                item_id=item.id,
                item_name=item.name,
                entry_date=day,
                yesterday_net=yesterday_net,
            )
            if existing:
                draft.today_quantity = existing.today_quantity
                draft.today_sale = existing.today_sale
                draft.return_to_market = existing.return_to_market
                draft.adjust_quantity = existing.adjust_quantity
                draft.existing_entry_id = existing.id
            values = compute_ledger_values(
                draft.yesterday_net,
                draft.today_quantity,
                draft.today_sale,
                draft.return_to_market,
                draft.adjust_quantity,
            )
            draft.total = values.total
            draft.net_amount = values.net_amount
            drafts.append(draft)
        return drafts

    # Upsert

    def save_entries(
        self, day: date, entries: Sequence[schemas.LedgerEntryInput]
    ) -> schemas.LedgerSaveReport:
        """Create or update one entry per item for *day*.

        Rows without any movement are skipped. Each row is committed on its
        own and retried up to ``save_attempts`` times; rows that still fail
        are listed in the report instead of undoing the rest.
        """

        counts = Counter(payload.item_id for payload in entries)
        duplicates = sorted(item_id for item_id, count in counts.items() if count > 1)
        if duplicates:
            raise ValidationError([f"Item {item_id} appears more than once" for item_id in duplicates])

        report = schemas.LedgerSaveReport(entry_date=day)
        pending = []
        for payload in entries:
            if payload.has_values():
                pending.append(payload)
            else:
                report.skipped.append(payload.item_id)
        if not pending:
            raise ValidationError("Enter at least one value for any item")

        for payload in pending:
            error: Optional[LedgerError] = None
            for attempt in range(1, self.save_attempts + 1):
                try:
                    created, entry_id = self._save_one(day, payload)
                except TransientStoreError as exc:
                    error = exc
                    logger.warning(
                        "Saving ledger entry for item %s on %s failed (attempt %s/%s): %s",
                        payload.item_id, day, attempt, self.save_attempts, exc,
                    )
                    continue
                except NotFoundError as exc:
                    error = exc
                    break
                (report.created if created else report.updated).append(entry_id)
                error = None
                break
            if error is not None:
                report.failed.append(schemas.EntryFailure(item_id=payload.item_id, error=str(error)))

        logger.info(
            "Ledger %s: %s created, %s updated, %s skipped, %s failed",
            day, len(report.created), len(report.updated), len(report.skipped), len(report.failed),
        )
        return report

    def _save_one(self, day: date, payload: schemas.LedgerEntryInput) -> tuple[bool, int]:
        try:
            item = crud.get_catalog_item(self.db, payload.item_id)
            yesterday_net = payload.yesterday_net
            if yesterday_net is None:
                yesterday_net = self.previous_net(payload.item_id, day)
            values = compute_ledger_values(
                yesterday_net,
                payload.today_quantity,
                payload.today_sale,
                payload.return_to_market,
                payload.adjust_quantity,
            )
            now = self.clock.now()
            entry = self.get_entry(payload.item_id, day)
            created = entry is None
            if created:
                entry = models.LedgerEntry(item_id=payload.item_id, entry_date=day, created_at=now)
            entry.item_name = item.name
            entry.yesterday_net = yesterday_net
            entry.today_quantity = payload.today_quantity
            entry.total = values.total
            entry.today_sale = payload.today_sale
            entry.return_to_market = payload.return_to_market
            entry.adjust_quantity = payload.adjust_quantity
            entry.net_amount = values.net_amount
            entry.updated_at = now
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransientStoreError(f"Could not save entry for item {payload.item_id}: {exc}") from exc
        return created, entry.id

    # Deletion

    def delete_entry(self, entry_id: int) -> None:
        entry = self.db.get(models.LedgerEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry {entry_id} not found")
        try:
            self.db.delete(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Deleting ledger entry %s failed: %s", entry_id, exc)
            raise TransientStoreError(f"Could not delete ledger entry {entry_id}") from exc
        logger.info("Deleted ledger entry %s", entry_id)

    def delete_entries_for_date(self, day: date) -> schemas.DeleteReport:
        statement = (
            select(models.LedgerEntry.id, models.LedgerEntry.entry_date)
            .where(models.LedgerEntry.entry_date == day)
            .order_by(models.LedgerEntry.id)
        )
        return self._delete_rows(self.db.execute(statement).all())

    def delete_entries_older_than(self, days: int) -> schemas.DeleteReport:
        """Delete every entry dated before ``today - days``."""

        if days < 1:
            raise ValidationError("Number of days must be at least 1")
        cutoff = self.clock.today() - timedelta(days=days)
        statement = (
            select(models.LedgerEntry.id, models.LedgerEntry.entry_date)
            .where(models.LedgerEntry.entry_date < cutoff)
            .order_by(models.LedgerEntry.id)
        )
        report = self._delete_rows(self.db.execute(statement).all())
        report.cutoff = cutoff
        return report

    def _delete_rows(self, rows: Iterable[tuple[int, date]]) -> schemas.DeleteReport:
        report = schemas.DeleteReport()
        dates: set[date] = set()
        for entry_id, entry_date in rows:
            try:
                self.db.execute(delete(models.LedgerEntry).where(models.LedgerEntry.id == entry_id))
                self.db.commit()
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.error("Deleting ledger entry %s failed, continuing: %s", entry_id, exc)
                report.failed.append(entry_id)
                continue
            report.deleted += 1
            dates.add(entry_date)
        report.dates = sorted(dates)
        if report.deleted:
            logger.info("Deleted %s ledger entries across %s dates", report.deleted, len(dates))
        return report

    # Reporting

    def daily_summary(self, day: date) -> schemas.DailySummary:
        entries = self.entries_for_date(day)

        def column(name: str) -> float:
            return round(math.fsum(getattr(entry, name) for entry in entries), 2)

        return schemas.DailySummary(
            entry_date=day,
            entry_count=len(entries),
            yesterday_net=column("yesterday_net"),
            today_quantity=column("today_quantity"),
            total=column("total"),
            today_sale=column("today_sale"),
            return_to_market=column("return_to_market"),
            adjust_quantity=column("adjust_quantity"),
            net_amount=column("net_amount"),
        )

    def export_csv(self, day: date) -> str:
        entries = self.entries_for_date(day)
        if not entries:
            raise NotFoundError(f"No ledger entries for {day.isoformat()}")
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for entry in entries:
            writer.writerow(
                [
                    entry.item_name,
                    f"{entry.yesterday_net:.2f}",
                    f"{entry.today_quantity:.2f}",
                    f"{entry.total:.2f}",
                    f"{entry.today_sale:.2f}",
                    f"{entry.return_to_market:.2f}",
                    f"{entry.adjust_quantity:.2f}",
                    f"{entry.net_amount:.2f}",
                ]
            )
        return buffer.getvalue()
