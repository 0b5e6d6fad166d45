from __future__ import annotations

from datetime import timedelta
from typing import Iterable

from pocket_ledger.models import TimelineEvent, TradeRecord, TransactionRecord
from pocket_ledger.reconstruct.allocation import allocate_balances
from pocket_ledger.reconstruct.events import DISPLAY_OFFSET, normalize_events


def build_timeline(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    # sorted() is stable, so same-timestamp events keep their input order.
    return sorted(events, key=lambda event: event.timestamp)


def reconstruct_timeline(
    trades: Iterable[TradeRecord],
    transactions: Iterable[TransactionRecord],
    *,
    offset: timedelta = DISPLAY_OFFSET,
) -> list[TimelineEvent]:
    events = normalize_events(trades, transactions, offset=offset)
    return allocate_balances(build_timeline(events))
