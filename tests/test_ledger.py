from datetime import date, timedelta

import pydantic
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from freshstock_admin import models
from freshstock_admin.errors import NotFoundError, ValidationError
from freshstock_admin.ledger import CSV_HEADERS, DailyLedger
from freshstock_admin.schemas import LedgerEntryInput

DAY_ONE = date(2024, 3, 9)
DAY_TWO = date(2024, 3, 10)


@pytest.fixture(name="ledger")
def ledger_fixture(session, clock) -> DailyLedger:
    return DailyLedger(session, clock, save_attempts=2)


def _entry_count(session) -> int:
    return session.scalar(select(func.count()).select_from(models.LedgerEntry))


def test_carry_forward_between_days(ledger, items) -> None:
    rohu = items[0]
    report = ledger.save_entries(DAY_ONE, [LedgerEntryInput(item_id=rohu.id, today_quantity=50, today_sale=30)])
    assert len(report.created) == 1

    first = ledger.get_entry(rohu.id, DAY_ONE)
    assert first.yesterday_net == 0
    assert first.total == 50
    assert first.net_amount == 20

    drafts = {draft.item_id: draft for draft in ledger.open_session(DAY_TWO)}
    assert drafts[rohu.id].yesterday_net == 20
    assert drafts[items[1].id].yesterday_net == 0

    ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=rohu.id, today_quantity=10, today_sale=25)])
    second = ledger.get_entry(rohu.id, DAY_TWO)
    assert second.yesterday_net == 20
    assert second.total == 30
    assert second.net_amount == 5


def test_gap_day_starts_from_zero(ledger, items) -> None:
    ledger.save_entries(DAY_ONE, [LedgerEntryInput(item_id=items[0].id, today_quantity=8)])
    later = DAY_ONE + timedelta(days=2)
    draft = ledger.open_session(later)[0]
    assert draft.yesterday_net == 0


def test_open_session_prefills_existing_entry(ledger, items) -> None:
    ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=items[1].id, today_quantity=4, adjust_quantity=-1)])
    draft = next(d for d in ledger.open_session(DAY_TWO) if d.item_id == items[1].id)
    assert draft.existing_entry_id is not None
    assert draft.today_quantity == 4
    assert draft.net_amount == 3


def test_saving_twice_is_idempotent(ledger, items, session) -> None:
    payload = [LedgerEntryInput(item_id=items[0].id, today_quantity=12, today_sale=2.5, return_to_market=1)]
    first = ledger.save_entries(DAY_TWO, payload)
    before = ledger.get_entry(items[0].id, DAY_TWO)
    total, net = before.total, before.net_amount

    second = ledger.save_entries(DAY_TWO, payload)
    after = ledger.get_entry(items[0].id, DAY_TWO)

    assert first.created == second.updated
    assert (after.total, after.net_amount) == (total, net)
    assert _entry_count(session) == 1


def test_rows_without_values_are_skipped(ledger, items) -> None:
    report = ledger.save_entries(
        DAY_TWO,
        [LedgerEntryInput(item_id=items[0].id, today_quantity=3), LedgerEntryInput(item_id=items[1].id)],
    )
    assert report.skipped == [items[1].id]
    assert report.saved_count == 1


def test_all_empty_rows_are_rejected(ledger, items) -> None:
    with pytest.raises(ValidationError):
        ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=item.id) for item in items])


def test_duplicate_items_are_rejected(ledger, items) -> None:
    rows = [LedgerEntryInput(item_id=items[0].id, today_quantity=1)] * 2
    with pytest.raises(ValidationError) as excinfo:
        ledger.save_entries(DAY_TWO, rows)
    assert excinfo.value.reasons == [f"Item {items[0].id} appears more than once"]


def test_unknown_item_is_reported_not_raised(ledger, items) -> None:
    report = ledger.save_entries(
        DAY_TWO,
        [LedgerEntryInput(item_id=items[0].id, today_quantity=2), LedgerEntryInput(item_id=999, today_quantity=1)],
    )
    assert report.saved_count == 1
    assert [failure.item_id for failure in report.failed] == [999]
    assert ledger.get_entry(999, DAY_TWO) is None
    assert [entry.item_id for entry in ledger.entries_for_date(DAY_TWO)] == [items[0].id]


def test_client_cannot_name_the_item() -> None:
    with pytest.raises(pydantic.ValidationError):
        LedgerEntryInput(item_id=999, item_name="Ghost", today_quantity=5)


def test_stored_name_comes_from_catalog(ledger, items, session) -> None:
    ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=items[0].id, today_quantity=5)])
    assert ledger.get_entry(items[0].id, DAY_TWO).item_name == "Rohu"

    items[0].name = "Rohu (large)"
    session.commit()
    ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=items[0].id, today_quantity=6)])
    assert ledger.get_entry(items[0].id, DAY_TWO).item_name == "Rohu (large)"


def test_save_attempts_must_be_positive(session, clock) -> None:
    with pytest.raises(ValueError):
        DailyLedger(session, clock, save_attempts=0)


def test_correcting_a_past_day_is_not_propagated(ledger, items) -> None:
    rohu = items[0].id
    ledger.save_entries(DAY_ONE, [LedgerEntryInput(item_id=rohu, today_quantity=50, today_sale=30)])
    next_day = [LedgerEntryInput(item_id=rohu, today_quantity=10, today_sale=25)]
    ledger.save_entries(DAY_TWO, next_day)

    ledger.save_entries(DAY_ONE, [LedgerEntryInput(item_id=rohu, today_quantity=50, today_sale=20)])
    assert ledger.get_entry(rohu, DAY_ONE).net_amount == 30
    stale = ledger.get_entry(rohu, DAY_TWO)
    assert (stale.yesterday_net, stale.net_amount) == (20, 5)

    ledger.save_entries(DAY_TWO, next_day)
    refreshed = ledger.get_entry(rohu, DAY_TWO)
    assert (refreshed.yesterday_net, refreshed.total, refreshed.net_amount) == (30, 40, 15)


def test_failed_row_does_not_undo_neighbours(ledger, items, session, monkeypatch) -> None:
    real_commit = session.commit
    calls = {"count": 0}

    def flaky_commit() -> None:
        calls["count"] += 1
        # second row fails on both of its attempts
        if calls["count"] in (2, 3):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(session, "commit", flaky_commit)
    report = ledger.save_entries(
        DAY_TWO,
        [
            LedgerEntryInput(item_id=items[0].id, today_quantity=5),
            LedgerEntryInput(item_id=items[1].id, today_quantity=6),
            LedgerEntryInput(item_id=items[2].id, today_quantity=7),
        ],
    )

    assert [failure.item_id for failure in report.failed] == [items[1].id]
    assert report.saved_count == 2
    assert ledger.get_entry(items[1].id, DAY_TWO) is None
    assert ledger.get_entry(items[2].id, DAY_TWO).total == 7


def test_transient_failure_is_retried(ledger, items, session, monkeypatch) -> None:
    real_commit = session.commit
    calls = {"count": 0}

    def flaky_commit() -> None:
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(session, "commit", flaky_commit)
    report = ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=items[0].id, today_quantity=5)])
    assert report.failed == []
    assert len(report.created) == 1


def test_delete_entry(ledger, items) -> None:
    report = ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=items[0].id, today_quantity=5)])
    ledger.delete_entry(report.created[0])
    assert ledger.get_entry(items[0].id, DAY_TWO) is None
    with pytest.raises(NotFoundError):
        ledger.delete_entry(report.created[0])


def test_delete_entries_older_than(ledger, items, clock) -> None:
    today = clock.today()
    for offset in (0, 1, 2, 5):
        ledger.save_entries(
            today - timedelta(days=offset), [LedgerEntryInput(item_id=items[0].id, today_quantity=1)]
        )

    report = ledger.delete_entries_older_than(1)

    assert report.cutoff == today - timedelta(days=1)
    assert report.deleted == 2
    assert report.dates == [today - timedelta(days=5), today - timedelta(days=2)]
    assert ledger.available_dates() == [today, today - timedelta(days=1)]


def test_failed_delete_does_not_stop_the_rest(ledger, items, session, monkeypatch, caplog) -> None:
    report = ledger.save_entries(DAY_TWO, [LedgerEntryInput(item_id=item.id, today_quantity=1) for item in items])
    first, second, third = sorted(report.created)

    real_commit = session.commit
    calls = {"count": 0}

    def flaky_commit() -> None:
        calls["count"] += 1
        if calls["count"] == 2:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(session, "commit", flaky_commit)
    with caplog.at_level("ERROR", logger="freshstock_admin.ledger"):
        deleted = ledger.delete_entries_for_date(DAY_TWO)

    assert deleted.failed == [second]
    assert deleted.deleted == 2
    assert [entry.id for entry in ledger.entries_for_date(DAY_TWO)] == [second]
    assert f"Deleting ledger entry {second} failed" in caplog.text


@pytest.mark.parametrize("days", [0, -3])
def test_cutoff_must_be_positive(ledger, days) -> None:
    with pytest.raises(ValidationError):
        ledger.delete_entries_older_than(days)


def test_delete_entries_for_date(ledger, items) -> None:
    ledger.save_entries(DAY_ONE, [LedgerEntryInput(item_id=items[0].id, today_quantity=1)])
    ledger.save_entries(
        DAY_TWO,
        [LedgerEntryInput(item_id=item.id, today_quantity=2) for item in items],
    )
    report = ledger.delete_entries_for_date(DAY_TWO)
    assert report.deleted == 3
    assert report.dates == [DAY_TWO]
    assert ledger.available_dates() == [DAY_ONE]


def test_summary_and_csv_export(ledger, items) -> None:
    ledger.save_entries(
        DAY_TWO,
        [
            LedgerEntryInput(item_id=items[0].id, today_quantity=10, today_sale=4),
            LedgerEntryInput(item_id=items[1].id, today_quantity=2.5, return_to_market=0.5),
        ],
    )
    summary = ledger.daily_summary(DAY_TWO)
    assert summary.entry_count == 2
    assert summary.total == 12.5
    assert summary.net_amount == 8

    lines = ledger.export_csv(DAY_TWO).splitlines()
    assert lines[0] == ",".join(CSV_HEADERS)
    assert lines[1] == "Rohu,0.00,10.00,10.00,4.00,0.00,0.00,6.00"

    with pytest.raises(NotFoundError):
        ledger.export_csv(DAY_ONE)
