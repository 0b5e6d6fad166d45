from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from pocket_ledger.models import (
    ALLOCATION_MAIN,
    ALLOCATION_TEMP,
    DIRECTION_BUY,
    DIRECTION_SELL,
    TRANSACTION_DEPOSIT,
    TRANSACTION_WITHDRAW,
    TradeRecord,
    TransactionRecord,
)

DEFAULT_COMMISSION_PER_LOT = 10.0
_DISPLAY_MARGIN = timedelta(days=1)


@dataclass(frozen=True)
class LedgerIngestResult:
    trades: list[TradeRecord]
    transactions: list[TransactionRecord]
    skipped: int = 0


def load_ledger(path: str | Path) -> LedgerIngestResult:
    source_path = Path(path)
    if source_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported file type: {source_path.suffix}")
    with source_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return parse_ledger_payload(payload)


def parse_ledger_payload(payload: Any) -> LedgerIngestResult:
    raw_trades, raw_transactions = _extract_lists(payload)
    trades, skipped_trades = _normalize_records(raw_trades, parse_trade)
    transactions, skipped_transactions = _normalize_records(raw_transactions, parse_transaction)
    return LedgerIngestResult(
        trades=trades,
        transactions=transactions,
        skipped=skipped_trades + skipped_transactions,
    )


def parse_trade(raw: Mapping[str, Any]) -> TradeRecord:
    close_time = _parse_timestamp(_pick(raw, "closeTime", "close_time", "exitTime"))
    open_raw = _pick(raw, "openTime", "open_time", "entryTime")
    try:
        open_time = _parse_timestamp(open_raw) if open_raw is not None else None
    except ValueError:
        open_time = None
    return TradeRecord(
        trade_id=str(_pick(raw, "id", "trade_id", "tradeId") or ""),
        direction=_normalize_direction(_pick(raw, "type", "direction", "side")),
        lots=_to_float(_pick(raw, "lots", "lot", "size")),
        entry_price=_to_float(_pick(raw, "entryPrice", "entry_price")),
        exit_price=_to_float(_pick(raw, "exitPrice", "exit_price")),
        open_time=open_time,
        close_time=close_time,
        net_profit=_to_float(_pick(raw, "netProfit", "net_profit", "profit")),
        raw=dict(raw),
    )


def parse_transaction(raw: Mapping[str, Any]) -> TransactionRecord:
    return TransactionRecord(
        transaction_id=str(_pick(raw, "id", "transaction_id", "transactionId") or ""),
        type=_normalize_transaction_type(_pick(raw, "type", "transaction_type")),
        amount=abs(_to_float(_pick(raw, "amount", "value"))),
        allocation=_normalize_allocation(_pick(raw, "allocation", "pocket")),
        date=_parse_timestamp(_pick(raw, "date", "timestamp", "time")),
        raw=dict(raw),
    )


def trade_payload(trade: TradeRecord) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": trade.trade_id,
        "type": trade.direction,
        "lots": trade.lots,
        "entryPrice": trade.entry_price,
        "exitPrice": trade.exit_price,
        "closeTime": trade.close_time.isoformat(),
        "netProfit": round(trade.net_profit, 2),
    }
    if trade.open_time is not None:
        payload["openTime"] = trade.open_time.isoformat()
    return payload


def transaction_payload(transaction: TransactionRecord) -> dict[str, Any]:
    return {
        "id": transaction.transaction_id,
        "type": transaction.type,
        "amount": transaction.amount,
        "allocation": transaction.allocation,
        "date": transaction.date.isoformat(),
    }


def net_profit_from_gross(
    lots: float,
    gross_profit: float,
    commission_per_lot: float = DEFAULT_COMMISSION_PER_LOT,
) -> tuple[float, float]:
    """Return ``(commission, net_profit)`` for a trade entered with its gross result."""
    commission = lots * commission_per_lot
    return commission, round(gross_profit - commission, 2)


def _extract_lists(payload: Any) -> tuple[list[Any], list[Any]]:
    if isinstance(payload, Mapping):
        data = payload.get("data")
        container = data if isinstance(data, Mapping) else payload
        trades = container.get("trades")
        transactions = container.get("transactions")
        if isinstance(trades, list) or isinstance(transactions, list):
            return (
                trades if isinstance(trades, list) else [],
                transactions if isinstance(transactions, list) else [],
            )
    raise ValueError("Unsupported JSON format for ledger payload")


def _normalize_records(records: Iterable[Any], parser) -> tuple[list[Any], int]:
    output = []
    skipped = 0
    for raw in records:
        if not isinstance(raw, Mapping):
            skipped += 1
            continue
        try:
            output.append(parser(raw))
        except ValueError:
            skipped += 1
    return output, skipped


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _normalize_direction(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    lowered = text.lower()
    if lowered in {"buy", "long"}:
        return DIRECTION_BUY
    if lowered in {"sell", "short"}:
        return DIRECTION_SELL
    return text


def _normalize_transaction_type(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    lowered = text.lower()
    if lowered == "deposit":
        return TRANSACTION_DEPOSIT
    if lowered in {"withdraw", "withdrawal"}:
        return TRANSACTION_WITHDRAW
    return text


def _normalize_allocation(value: Any) -> str:
    if value is None:
        return ALLOCATION_MAIN
    text = str(value).strip().upper()
    if text in {ALLOCATION_MAIN, ALLOCATION_TEMP}:
        return text
    return text or ALLOCATION_MAIN


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def _parse_timestamp(value: Any) -> datetime:
    parsed = _coerce_timestamp(value)
    # Display offsets stay under a day, so this keeps the local shift in range.
    try:
        parsed - _DISPLAY_MARGIN
        parsed + _DISPLAY_MARGIN
    except OverflowError as exc:
        raise ValueError("Timestamp out of range") from exc
    return parsed


def _coerce_timestamp(value: Any) -> datetime:
    if value is None:
        raise ValueError("Missing timestamp")

    if isinstance(value, datetime):
        return _as_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    try:
        numeric = float(text)
        return _timestamp_from_number(numeric)
    except ValueError:
        pass

    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError("Unsupported timestamp format") from exc
    return _as_utc(parsed)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as exc:
        raise ValueError("Timestamp out of range") from exc


def _timestamp_from_number(value: float) -> datetime:
    seconds = value / 1000.0 if value > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError("Timestamp out of range") from exc
