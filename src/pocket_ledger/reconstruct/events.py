from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

from pocket_ledger.models import (
    CATEGORY_TRADE,
    CATEGORY_TRANSACTION,
    DIRECTION_BUY,
    DIRECTION_SELL,
    TRANSACTION_DEPOSIT,
    TRANSACTION_WITHDRAW,
    TimelineEvent,
    TradeRecord,
    TransactionRecord,
)

DISPLAY_OFFSET = timedelta(hours=5)
PIPS_PER_PRICE_UNIT = 10.0

SESSION_NEW_YORK = "New York"
SESSION_LONDON = "London"
SESSION_ASIA = "Asia"
SESSION_PACIFIC = "Pacific"


def display_zone(offset: timedelta = DISPLAY_OFFSET) -> timezone:
    return timezone(offset)


def to_local(timestamp: datetime, offset: timedelta = DISPLAY_OFFSET) -> datetime:
    return timestamp.astimezone(display_zone(offset))


def compute_pips(direction: str, entry_price: float, exit_price: float) -> float:
    if direction == DIRECTION_BUY:
        return (exit_price - entry_price) * PIPS_PER_PRICE_UNIT
    if direction == DIRECTION_SELL:
        return (entry_price - exit_price) * PIPS_PER_PRICE_UNIT
    return 0.0


def classify_session(hour: int) -> str:
    # Buckets overlap by construction; the order of these checks decides.
    if hour >= 19 or hour < 4:
        return SESSION_NEW_YORK
    if hour >= 14:
        return SESSION_LONDON
    if hour >= 7:
        return SESSION_ASIA
    return SESSION_PACIFIC


def transaction_value(transaction: TransactionRecord) -> float:
    if transaction.type == TRANSACTION_DEPOSIT:
        return transaction.amount
    if transaction.type == TRANSACTION_WITHDRAW:
        return -transaction.amount
    return 0.0


def trade_event(trade: TradeRecord, *, offset: timedelta = DISPLAY_OFFSET) -> TimelineEvent:
    local = to_local(trade.close_time, offset)
    return TimelineEvent(
        category=CATEGORY_TRADE,
        event_id=trade.trade_id,
        timestamp=trade.close_time,
        local_timestamp=local,
        signed_value=trade.net_profit,
        record=trade,
        pips_delta=compute_pips(trade.direction, trade.entry_price, trade.exit_price),
        session=classify_session(local.hour),
    )


def transaction_event(
    transaction: TransactionRecord, *, offset: timedelta = DISPLAY_OFFSET
) -> TimelineEvent:
    return TimelineEvent(
        category=CATEGORY_TRANSACTION,
        event_id=transaction.transaction_id,
        timestamp=transaction.date,
        local_timestamp=to_local(transaction.date, offset),
        signed_value=transaction_value(transaction),
        record=transaction,
        allocation=transaction.allocation,
    )


def normalize_events(
    trades: Iterable[TradeRecord],
    transactions: Iterable[TransactionRecord],
    *,
    offset: timedelta = DISPLAY_OFFSET,
) -> list[TimelineEvent]:
    events = [trade_event(trade, offset=offset) for trade in trades]
    events.extend(transaction_event(item, offset=offset) for item in transactions)
    return events
