from __future__ import annotations

import pytest

from factories import deposit, trade, utc
from pocket_ledger.metrics.periods import (
    PERIOD_ALL,
    PeriodBaseline,
    filter_period,
    month_keys,
    month_label,
    parse_period,
    period_options,
)
from pocket_ledger.reconstruct.timeline import reconstruct_timeline


def _timeline():
    return reconstruct_timeline(
        [
            # 2024-02-29 23:59:59 local (+5h): last second of February.
            trade("T0", utc(2024, 2, 29, 18, 59, 59), 50.0),
            # 2024-03-01 00:00:00 local: first second of March.
            trade("T1", utc(2024, 2, 29, 19, 0, 0), 10.0),
        ],
        [deposit("D1", utc(2024, 2, 10), 1000.0, "MAIN")],
    )


def test_all_period_has_zero_baseline() -> None:
    timeline = _timeline()
    view = filter_period(timeline, PERIOD_ALL)

    assert view.events == timeline
    assert view.baseline == PeriodBaseline()
    assert view.baseline.start_total == 0.0


def test_month_boundary_is_inclusive_at_local_midnight() -> None:
    view = filter_period(_timeline(), "2024-03")

    assert [event.event_id for event in view.events] == ["T1"]
    assert view.baseline.start_main == pytest.approx(1050.0)
    assert view.baseline.start_temp == 0.0
    assert view.baseline.start_deposits == 1000.0
    assert view.baseline.start_main_net == pytest.approx(50.0)


def test_previous_month_keeps_last_second_event() -> None:
    view = filter_period(_timeline(), "2024-02")

    assert [event.event_id for event in view.events] == ["D1", "T0"]
    assert view.baseline == PeriodBaseline()


def test_month_after_data_carries_latest_balances() -> None:
    view = filter_period(_timeline(), "2024-05")

    assert view.events == []
    assert view.baseline.start_total == pytest.approx(1060.0)
    assert view.baseline.start_deposits == 1000.0


def test_month_before_data_has_zero_baseline() -> None:
    view = filter_period(_timeline(), "2023-12")

    assert view.events == []
    assert view.baseline == PeriodBaseline()


def test_baseline_uses_global_timeline_across_empty_months() -> None:
    timeline = reconstruct_timeline(
        [trade("T1", utc(2024, 1, 15), 100.0), trade("T2", utc(2024, 4, 15), 5.0)],
        [deposit("D1", utc(2024, 1, 1), 900.0, "TEMP")],
    )

    view = filter_period(timeline, "2024-04")

    assert [event.event_id for event in view.events] == ["T2"]
    assert view.baseline.start_temp == pytest.approx(1000.0)
    assert view.baseline.start_temp_net == pytest.approx(100.0)


@pytest.mark.parametrize("value", ["2024-13", "2024-00", "March", "2024-3", "2024-03-01"])
def test_parse_period_rejects_bad_selectors(value: str) -> None:
    with pytest.raises(ValueError):
        parse_period(value)


def test_parse_period_defaults_to_all() -> None:
    assert parse_period(None) == PERIOD_ALL
    assert parse_period(" ALL ") == PERIOD_ALL
    assert parse_period("2024-03") == "2024-03"


def test_month_keys_and_labels() -> None:
    timeline = _timeline()

    assert month_keys(timeline) == ["2024-03", "2024-02"]
    assert month_label("2024-03") == "MAR 2024"
    assert month_label(PERIOD_ALL) == "ALL TIME"
    assert [option["key"] for option in period_options(timeline)] == ["all", "2024-03", "2024-02"]
