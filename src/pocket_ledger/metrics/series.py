from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from pocket_ledger.metrics.periods import PeriodView
from pocket_ledger.models import TimelineEvent, TradeRecord, TransactionRecord


@dataclass(frozen=True)
class EquityPoint:
    label: str
    main: float
    temp: float
    total: float
    timestamp: str | None


def event_growth_pct(event: TimelineEvent) -> float:
    if event.start_total <= 0:
        return 0.0
    return (event.running_total - event.start_total) / event.start_total * 100


def equity_series(view: PeriodView) -> list[EquityPoint]:
    baseline = view.baseline
    points = [
        EquityPoint(
            label="Start",
            main=baseline.start_main,
            temp=baseline.start_temp,
            total=baseline.start_total,
            timestamp=None,
        )
    ]
    for event in view.events:
        points.append(
            EquityPoint(
                label=str(event.local_timestamp.day),
                main=event.running_main,
                temp=event.running_temp,
                total=event.running_total,
                timestamp=event.local_timestamp.isoformat(),
            )
        )
    return points


def history_rows(events: Iterable[TimelineEvent]) -> list[dict[str, Any]]:
    """Display rows for the history list, newest first."""
    rows = [_history_row(event) for event in events]
    rows.reverse()
    return rows


def _history_row(event: TimelineEvent) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": event.event_id,
        "category": event.category,
        "timestamp": event.timestamp.isoformat(),
        "local_time": event.local_timestamp.isoformat(),
        "value": event.signed_value,
        "running_main": event.running_main,
        "running_temp": event.running_temp,
        "running_total": event.running_total,
    }
    record = event.record
    if isinstance(record, TradeRecord):
        row.update(
            {
                "type": record.direction,
                "lots": record.lots,
                "entry_price": record.entry_price,
                "exit_price": record.exit_price,
                "session": event.session,
                "pips": round(event.pips_delta, 1),
                "growth_pct": event_growth_pct(event),
                "is_win": event.signed_value >= 0,
            }
        )
    elif isinstance(record, TransactionRecord):
        row.update(
            {
                "type": record.type,
                "amount": record.amount,
                "allocation": event.allocation,
            }
        )
    return row
