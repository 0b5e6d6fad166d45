from __future__ import annotations

import pytest

from factories import FakeStore, deposit, trade, utc
from pocket_ledger.ingest.records import LedgerIngestResult
from pocket_ledger.ingest.store_api import IngestError, MutationError
from pocket_ledger.state import LedgerSession


def _result(*, march: bool = True) -> LedgerIngestResult:
    trades = [trade("T1", utc(2024, 2, 10), 20.0)]
    if march:
        trades.append(trade("T2", utc(2024, 3, 10), -5.0))
    return LedgerIngestResult(
        trades=trades,
        transactions=[deposit("D1", utc(2024, 2, 1), 1000.0)],
        skipped=1,
    )


def test_reload_builds_snapshot() -> None:
    session = LedgerSession(FakeStore(_result()))

    assert session.reload() is True
    assert session.snapshot.loaded_at is not None
    assert session.snapshot.skipped == 1
    assert session.snapshot.months == ("2024-03", "2024-02")
    assert session.available_periods() == ["all", "2024-03", "2024-02"]
    assert session.timeline[-1].running_total == pytest.approx(1015.0)


def test_failed_reload_keeps_previous_snapshot() -> None:
    store = FakeStore(_result(), IngestError("store down"))
    session = LedgerSession(store)
    session.reload()
    before = session.snapshot

    assert session.reload() is False
    assert session.snapshot is before
    assert session.last_error == "store down"


def test_reload_without_store() -> None:
    session = LedgerSession()

    assert session.reload() is False
    assert session.last_error


def test_select_period_only_accepts_loaded_months() -> None:
    session = LedgerSession(FakeStore(_result()))
    session.reload()

    assert session.select_period("2024-03") == "2024-03"
    assert session.period == "2024-03"
    with pytest.raises(ValueError):
        session.select_period("2023-01")
    with pytest.raises(ValueError):
        session.select_period("March")
    assert session.period == "2024-03"


def test_selected_month_resets_when_it_disappears() -> None:
    session = LedgerSession(FakeStore(_result(), _result(march=False)))
    session.reload()
    session.select_period("2024-03")

    session.reload()

    assert session.period == "all"


def test_report_uses_selected_period() -> None:
    session = LedgerSession(FakeStore(_result()))
    session.reload()
    session.select_period("2024-03")

    report = session.report()

    assert report.total_trades == 1
    assert report.baseline.start_total == pytest.approx(1020.0)
    assert session.report("all").total_trades == 2


def test_submit_reloads_after_success() -> None:
    store = FakeStore(_result())
    session = LedgerSession(store)

    body = session.submit("addTrade", {"type": "Buy"})

    assert body["id"] == "ID-new"
    assert store.submitted == [("addTrade", {"type": "Buy"})]
    assert store.fetches == 1


def test_submit_reloads_after_failure() -> None:
    store = FakeStore(_result())
    store.reject_with = "locked"
    session = LedgerSession(store)

    with pytest.raises(MutationError):
        session.submit("deleteTrade", {"id": "T1"})

    assert store.fetches == 1
    assert session.snapshot.loaded_at is not None


def test_submit_without_store_raises() -> None:
    with pytest.raises(MutationError):
        LedgerSession().submit("addTrade", {})


def test_check_period_validates_without_selecting() -> None:
    session = LedgerSession(FakeStore(_result()))
    session.reload()

    assert session.check_period("2024-03") == "2024-03"
    assert session.period == "all"
    with pytest.raises(ValueError):
        session.check_period("2023-01")
