from __future__ import annotations

import pytest

from factories import deposit, trade, utc, withdraw
from pocket_ledger.reconstruct.allocation import allocate_balances, split_trade_value
from pocket_ledger.reconstruct.events import normalize_events
from pocket_ledger.reconstruct.timeline import build_timeline, reconstruct_timeline


def test_build_timeline_sorts_by_timestamp() -> None:
    events = normalize_events(
        [trade("T2", utc(2024, 1, 3), 5.0), trade("T1", utc(2024, 1, 2), 5.0)],
        [deposit("D1", utc(2024, 1, 1), 100.0)],
    )

    ordered = build_timeline(events)

    assert [event.event_id for event in ordered] == ["D1", "T1", "T2"]
    timestamps = [event.timestamp for event in ordered]
    assert timestamps == sorted(timestamps)


def test_build_timeline_is_stable_for_equal_timestamps() -> None:
    moment = utc(2024, 1, 2, 12, 0)
    events = normalize_events(
        [trade("T1", moment, 5.0), trade("T2", moment, -3.0)],
        [deposit("D1", moment, 100.0)],
    )

    ordered = build_timeline(events)

    assert [event.event_id for event in ordered] == ["T1", "T2", "D1"]


def test_proportional_split_example() -> None:
    timeline = reconstruct_timeline(
        [trade("T1", utc(2024, 1, 3), 100.0)],
        [
            deposit("D1", utc(2024, 1, 1), 600.0, "MAIN"),
            deposit("D2", utc(2024, 1, 2), 400.0, "TEMP"),
        ],
    )

    last = timeline[-1]
    assert last.running_main == pytest.approx(660.0)
    assert last.running_temp == pytest.approx(440.0)
    assert last.running_total == pytest.approx(1100.0)
    assert last.cumulative_main_net == pytest.approx(60.0)
    assert last.cumulative_temp_net == pytest.approx(40.0)
    assert last.cumulative_deposits == pytest.approx(1000.0)
    assert last.start_total == pytest.approx(1000.0)


def test_split_trade_value_shares() -> None:
    split = split_trade_value(600.0, 400.0, 100.0)
    assert split.main_share == pytest.approx(0.6)
    assert split.temp_share == pytest.approx(0.4)
    assert split.profit_main == pytest.approx(60.0)
    assert split.profit_temp == pytest.approx(40.0)


def test_flat_book_sends_result_to_main() -> None:
    split = split_trade_value(0.0, 0.0, 50.0)
    assert split.profit_main == 50.0
    assert split.profit_temp == 0.0

    timeline = reconstruct_timeline([trade("T1", utc(2024, 1, 1), 50.0)], [])
    assert timeline[0].running_main == 50.0
    assert timeline[0].running_temp == 0.0


def test_negative_book_sends_result_to_main() -> None:
    split = split_trade_value(-100.0, 40.0, -20.0)
    assert split.main_share == 1.0
    assert split.profit_main == -20.0
    assert split.profit_temp == 0.0


def test_deposit_and_withdraw_routing() -> None:
    timeline = reconstruct_timeline(
        [],
        [
            deposit("D1", utc(2024, 1, 1), 500.0, "MAIN"),
            deposit("D2", utc(2024, 1, 2), 1000.0, "TEMP"),
            withdraw("W1", utc(2024, 1, 3), 200.0, "MAIN"),
        ],
    )

    assert timeline[1].running_main == 500.0
    assert timeline[1].running_temp == 1000.0
    assert timeline[2].running_main == 300.0
    assert timeline[2].running_temp == 1000.0
    assert timeline[2].cumulative_deposits == 1500.0


def test_running_total_is_conserved() -> None:
    timeline = reconstruct_timeline(
        [
            trade("T1", utc(2024, 1, 3), 37.5),
            trade("T2", utc(2024, 1, 4), -81.25),
            trade("T3", utc(2024, 1, 6), 12.0),
        ],
        [
            deposit("D1", utc(2024, 1, 1), 700.0, "MAIN"),
            deposit("D2", utc(2024, 1, 2), 300.0, "TEMP"),
            withdraw("W1", utc(2024, 1, 5), 150.0, "TEMP"),
        ],
    )

    for event in timeline:
        assert event.running_total == pytest.approx(event.running_main + event.running_temp)
    assert timeline[-1].running_total == pytest.approx(1000.0 + 37.5 - 81.25 - 150.0 + 12.0)


def test_allocator_does_not_mutate_input() -> None:
    ordered = build_timeline(normalize_events([trade("T1", utc(2024, 1, 2), 10.0)], []))
    allocated = allocate_balances(ordered)

    assert ordered[0].running_total == 0.0
    assert allocated[0].running_total == 10.0


def test_pipeline_is_idempotent() -> None:
    trades = [trade("T1", utc(2024, 1, 3), 33.3), trade("T2", utc(2024, 1, 4), -12.1)]
    transactions = [deposit("D1", utc(2024, 1, 1), 333.0), deposit("D2", utc(2024, 1, 2), 667.0, "TEMP")]

    first = reconstruct_timeline(trades, transactions)
    second = reconstruct_timeline(trades, transactions)

    assert first == second
    assert [repr(event) for event in first] == [repr(event) for event in second]
