from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Union

Category = str

CATEGORY_TRADE: Category = "TRADE"
CATEGORY_TRANSACTION: Category = "TRANSACTION"

DIRECTION_BUY = "Buy"
DIRECTION_SELL = "Sell"

TRANSACTION_DEPOSIT = "Deposit"
TRANSACTION_WITHDRAW = "Withdraw"

ALLOCATION_MAIN = "MAIN"
ALLOCATION_TEMP = "TEMP"


@dataclass(frozen=True)
class TradeRecord:
    trade_id: str
    direction: str
    lots: float
    entry_price: float
    exit_price: float
    open_time: datetime | None
    close_time: datetime
    net_profit: float
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class TransactionRecord:
    transaction_id: str
    type: str
    amount: float
    allocation: str
    date: datetime
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


SourceRecord = Union[TradeRecord, TransactionRecord]


@dataclass(frozen=True)
class TimelineEvent:
    category: Category
    event_id: str
    timestamp: datetime
    local_timestamp: datetime
    signed_value: float
    record: SourceRecord
    pips_delta: float = 0.0
    session: str | None = None
    allocation: str | None = None
    start_total: float = 0.0
    running_main: float = 0.0
    running_temp: float = 0.0
    running_total: float = 0.0
    cumulative_main_net: float = 0.0
    cumulative_temp_net: float = 0.0
    cumulative_deposits: float = 0.0

    @property
    def is_trade(self) -> bool:
        return self.category == CATEGORY_TRADE

    @property
    def is_transaction(self) -> bool:
        return self.category == CATEGORY_TRANSACTION
