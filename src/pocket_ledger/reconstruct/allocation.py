from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from pocket_ledger.models import (
    ALLOCATION_MAIN,
    TRANSACTION_DEPOSIT,
    TimelineEvent,
    TransactionRecord,
)


@dataclass(frozen=True)
class TradeSplit:
    main_share: float
    temp_share: float
    profit_main: float
    profit_temp: float


def split_trade_value(main_balance: float, temp_balance: float, value: float) -> TradeSplit:
    """Split a trade result across the pockets by their share of equity before the trade.

    A flat or negative book sends the whole result to MAIN.
    """
    total = main_balance + temp_balance
    if total > 0:
        main_share = main_balance / total
        temp_share = temp_balance / total
    else:
        main_share = 1.0
        temp_share = 0.0
    return TradeSplit(
        main_share=main_share,
        temp_share=temp_share,
        profit_main=value * main_share,
        profit_temp=value * temp_share,
    )


def allocate_balances(timeline: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Walk an ordered timeline once and return copies carrying running pocket state."""
    main_balance = 0.0
    temp_balance = 0.0
    cumulative_main_net = 0.0
    cumulative_temp_net = 0.0
    cumulative_deposits = 0.0
    output: list[TimelineEvent] = []

    for event in timeline:
        start_total = main_balance + temp_balance
        if event.is_transaction:
            record = event.record
            if isinstance(record, TransactionRecord) and record.type == TRANSACTION_DEPOSIT:
                cumulative_deposits += record.amount
            if event.allocation == ALLOCATION_MAIN:
                main_balance += event.signed_value
            else:
                temp_balance += event.signed_value
        else:
            split = split_trade_value(main_balance, temp_balance, event.signed_value)
            main_balance += split.profit_main
            temp_balance += split.profit_temp
            cumulative_main_net += split.profit_main
            cumulative_temp_net += split.profit_temp

        output.append(
            replace(
                event,
                start_total=start_total,
                running_main=main_balance,
                running_temp=temp_balance,
                running_total=main_balance + temp_balance,
                cumulative_main_net=cumulative_main_net,
                cumulative_temp_net=cumulative_temp_net,
                cumulative_deposits=cumulative_deposits,
            )
        )

    return output
