from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from pocket_ledger.metrics.periods import PeriodBaseline, PeriodView
from pocket_ledger.models import (
    ALLOCATION_MAIN,
    ALLOCATION_TEMP,
    DIRECTION_BUY,
    DIRECTION_SELL,
    TRANSACTION_DEPOSIT,
    TRANSACTION_WITHDRAW,
    TimelineEvent,
    TradeRecord,
    TransactionRecord,
)

PROFIT_FACTOR_INFINITE = math.inf


@dataclass(frozen=True)
class BalanceSnapshot:
    main: float
    temp: float
    total: float
    main_share_pct: float
    temp_share_pct: float
    cumulative_deposits: float


@dataclass(frozen=True)
class TradeExtreme:
    trade_id: str
    direction: str
    net_profit: float
    pips: float
    close_time: str


@dataclass(frozen=True)
class DirectionStats:
    direction: str
    trades: int
    wins: int
    win_rate: float


@dataclass(frozen=True)
class AllocationBreakdown:
    total_deposits: float
    total_withdrawals: float
    deposits_main: float
    deposits_temp: float
    withdrawals_main: float
    withdrawals_temp: float
    deposits_main_pct: float
    deposits_temp_pct: float
    withdrawals_main_pct: float
    withdrawals_temp_pct: float


@dataclass(frozen=True)
class PeriodReport:
    period: str
    baseline: PeriodBaseline
    balances: BalanceSnapshot
    total_trades: int
    wins: int
    losses: int
    win_rate: float
    net_profit: float
    gross_profit: float
    gross_loss: float
    avg_win: float
    avg_loss: float
    profit_factor: float
    expected_payoff: float
    period_roi_pct: float
    all_time_roi_pct: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    max_drawdown_pct: float
    best_trade: TradeExtreme | None
    worst_trade: TradeExtreme | None
    best_pips_trade: TradeExtreme | None
    worst_pips_trade: TradeExtreme | None
    directions: dict[str, DirectionStats]
    allocation: AllocationBreakdown

    @property
    def profit_factor_is_infinite(self) -> bool:
        return math.isinf(self.profit_factor)


def is_win(value: float) -> bool:
    return value >= 0


def compute_period_report(view: PeriodView) -> PeriodReport:
    trades = view.trades
    values = [event.signed_value for event in trades]
    total_trades = len(values)

    win_values = [value for value in values if is_win(value)]
    loss_values = [value for value in values if not is_win(value)]
    gross_profit = sum(win_values)
    gross_loss = sum(loss_values)
    net_profit = sum(values)

    balances = balance_snapshot(view.events, view.baseline)
    max_wins, max_losses = max_streaks(values)

    return PeriodReport(
        period=view.period,
        baseline=view.baseline,
        balances=balances,
        total_trades=total_trades,
        wins=len(win_values),
        losses=len(loss_values),
        win_rate=win_rate(values),
        net_profit=net_profit,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        avg_win=gross_profit / len(win_values) if win_values else 0.0,
        avg_loss=gross_loss / len(loss_values) if loss_values else 0.0,
        profit_factor=profit_factor(values),
        expected_payoff=net_profit / total_trades if total_trades else 0.0,
        period_roi_pct=period_roi_pct(net_profit, view.baseline.start_total),
        all_time_roi_pct=all_time_roi_pct(balances.total, balances.cumulative_deposits),
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        max_drawdown_pct=max_drawdown_pct(view.events, view.baseline.start_total),
        best_trade=_extreme(trades, key=lambda event: event.signed_value, highest=True),
        worst_trade=_extreme(trades, key=lambda event: event.signed_value, highest=False),
        best_pips_trade=_extreme(trades, key=lambda event: event.pips_delta, highest=True),
        worst_pips_trade=_extreme(trades, key=lambda event: event.pips_delta, highest=False),
        directions=direction_stats(trades),
        allocation=allocation_breakdown(view.transactions),
    )


def balance_snapshot(events: list[TimelineEvent], baseline: PeriodBaseline) -> BalanceSnapshot:
    if events:
        last = events[-1]
        main, temp, deposits = last.running_main, last.running_temp, last.cumulative_deposits
    else:
        main, temp, deposits = baseline.start_main, baseline.start_temp, baseline.start_deposits
    total = main + temp
    main_share = main / total * 100 if total > 0 else 0.0
    temp_share = temp / total * 100 if total > 0 else 0.0
    return BalanceSnapshot(
        main=main,
        temp=temp,
        total=total,
        main_share_pct=main_share,
        temp_share_pct=temp_share,
        cumulative_deposits=deposits,
    )


def win_rate(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(1 for value in values if is_win(value)) / len(values) * 100


def profit_factor(values: list[float]) -> float:
    if not values:
        return 0.0
    gross_profit = sum(value for value in values if value > 0)
    gross_loss = sum(value for value in values if value < 0)
    if gross_loss == 0:
        return PROFIT_FACTOR_INFINITE
    return gross_profit / abs(gross_loss)


def period_roi_pct(net_profit: float, start_total: float) -> float:
    """Trading result over the period relative to equity at its start."""
    if start_total <= 0:
        return 0.0
    return net_profit / start_total * 100


def all_time_roi_pct(current_total: float, cumulative_deposits: float) -> float:
    """Equity above everything ever deposited, relative to those deposits."""
    if cumulative_deposits <= 0:
        return 0.0
    return (current_total - cumulative_deposits) / cumulative_deposits * 100


def max_streaks(values: Iterable[float]) -> tuple[int, int]:
    max_wins = 0
    max_losses = 0
    current_wins = 0
    current_losses = 0

    for value in values:
        if is_win(value):
            current_wins += 1
            current_losses = 0
        else:
            current_losses += 1
            current_wins = 0
        max_wins = max(max_wins, current_wins)
        max_losses = max(max_losses, current_losses)

    return max_wins, max_losses


def max_drawdown_pct(events: Iterable[TimelineEvent], start_total: float) -> float:
    peak = start_total
    equity = start_total
    max_dd = 0.0

    for event in events:
        equity += event.signed_value
        if equity > peak:
            peak = equity
        if peak > 0:
            drawdown = (peak - equity) / peak * 100
            if drawdown > max_dd:
                max_dd = drawdown

    return max_dd


def direction_stats(trades: Iterable[TimelineEvent]) -> dict[str, DirectionStats]:
    trade_list = list(trades)
    output: dict[str, DirectionStats] = {}
    for direction in (DIRECTION_BUY, DIRECTION_SELL):
        values = [
            event.signed_value
            for event in trade_list
            if isinstance(event.record, TradeRecord) and event.record.direction == direction
        ]
        output[direction] = DirectionStats(
            direction=direction,
            trades=len(values),
            wins=sum(1 for value in values if is_win(value)),
            win_rate=win_rate(values),
        )
    return output


def allocation_breakdown(transactions: Iterable[TimelineEvent]) -> AllocationBreakdown:
    totals = {
        (TRANSACTION_DEPOSIT, ALLOCATION_MAIN): 0.0,
        (TRANSACTION_DEPOSIT, ALLOCATION_TEMP): 0.0,
        (TRANSACTION_WITHDRAW, ALLOCATION_MAIN): 0.0,
        (TRANSACTION_WITHDRAW, ALLOCATION_TEMP): 0.0,
    }
    for event in transactions:
        record = event.record
        if not isinstance(record, TransactionRecord):
            continue
        pocket = ALLOCATION_MAIN if record.allocation == ALLOCATION_MAIN else ALLOCATION_TEMP
        key = (record.type, pocket)
        if key in totals:
            totals[key] += record.amount

    deposits_main = totals[(TRANSACTION_DEPOSIT, ALLOCATION_MAIN)]
    deposits_temp = totals[(TRANSACTION_DEPOSIT, ALLOCATION_TEMP)]
    withdrawals_main = totals[(TRANSACTION_WITHDRAW, ALLOCATION_MAIN)]
    withdrawals_temp = totals[(TRANSACTION_WITHDRAW, ALLOCATION_TEMP)]
    total_deposits = deposits_main + deposits_temp
    total_withdrawals = withdrawals_main + withdrawals_temp

    return AllocationBreakdown(
        total_deposits=total_deposits,
        total_withdrawals=total_withdrawals,
        deposits_main=deposits_main,
        deposits_temp=deposits_temp,
        withdrawals_main=withdrawals_main,
        withdrawals_temp=withdrawals_temp,
        deposits_main_pct=_pct(deposits_main, total_deposits),
        deposits_temp_pct=_pct(deposits_temp, total_deposits),
        withdrawals_main_pct=_pct(withdrawals_main, total_withdrawals),
        withdrawals_temp_pct=_pct(withdrawals_temp, total_withdrawals),
    )


def _pct(part: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return part / total * 100


def _extreme(trades: list[TimelineEvent], *, key, highest: bool) -> TradeExtreme | None:
    if not trades:
        return None
    # max()/min() keep the first of equal candidates.
    chosen = max(trades, key=key) if highest else min(trades, key=key)
    record = chosen.record
    direction = record.direction if isinstance(record, TradeRecord) else ""
    return TradeExtreme(
        trade_id=chosen.event_id,
        direction=direction,
        net_profit=chosen.signed_value,
        pips=chosen.pips_delta,
        close_time=chosen.local_timestamp.isoformat(),
    )
