from __future__ import annotations

import logging
import math
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from jinja2 import Undefined
from pydantic import BaseModel, Field

from pocket_ledger.config.app_config import apply_store_settings, load_app_config
from pocket_ledger.ingest.records import (
    net_profit_from_gross,
    parse_trade,
    parse_transaction,
    trade_payload,
    transaction_payload,
)
from pocket_ledger.ingest.store_api import (
    ACTION_ADD_TRADE,
    ACTION_ADD_TRANSACTION,
    ACTION_DELETE_TRADE,
    ACTION_DELETE_TRANSACTION,
    ACTION_EDIT_TRADE,
    ACTION_EDIT_TRANSACTION,
    MutationError,
    StoreApiClient,
    StoreApiConfig,
    load_dotenv,
)
from pocket_ledger.metrics.periods import month_label, period_options
from pocket_ledger.metrics.series import equity_series, history_rows
from pocket_ledger.metrics.summary import PeriodReport
from pocket_ledger.state import LedgerSession

APP_ROOT = Path(__file__).resolve().parent
TEMPLATES = Jinja2Templates(directory=str(APP_ROOT / "templates"))

logger = logging.getLogger(__name__)

app = FastAPI(title="Pocket Ledger")


class TradeInput(BaseModel):
    type: Literal["Buy", "Sell"]
    lots: float = Field(gt=0)
    entry_price: float
    exit_price: float
    open_time: Optional[str] = None
    close_time: str
    net_profit: Optional[float] = None
    gross_profit: Optional[float] = None


class TransactionInput(BaseModel):
    type: Literal["Deposit", "Withdraw"]
    amount: float = Field(gt=0)
    allocation: Literal["MAIN", "TEMP"]
    date: str


@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    session = _session()
    period = _select_period(session, request.query_params.get("period"), remember=True)
    view = session.view(period)
    context = {
        "request": request,
        "page": "dashboard",
        "period": period,
        "period_label": month_label(period),
        "period_options": period_options(session.timeline),
        "summary": _report_payload(session.report(period)),
        "history": history_rows(view.events),
        "data_note": _data_note(session),
    }
    return TEMPLATES.TemplateResponse(request, "dashboard.html", context)


@app.get("/api/summary")
def summary_api(request: Request) -> dict[str, Any]:
    session = _session()
    period = _select_period(session, request.query_params.get("period"))
    return {
        "period": period,
        "summary": _report_payload(session.report(period)),
        "data_note": _data_note(session),
    }


@app.get("/api/history")
def history_api(request: Request) -> dict[str, Any]:
    session = _session()
    period = _select_period(session, request.query_params.get("period"))
    return {"period": period, "rows": history_rows(session.view(period).events)}


@app.get("/api/chart")
def chart_api(request: Request) -> dict[str, Any]:
    session = _session()
    period = _select_period(session, request.query_params.get("period"))
    points = equity_series(session.view(period))
    return {"period": period, "points": [asdict(point) for point in points]}


@app.get("/api/periods")
def periods_api() -> dict[str, Any]:
    session = _session()
    return {"selected": session.period, "options": period_options(session.timeline)}


@app.post("/api/reload")
def reload_api() -> dict[str, Any]:
    session = _session(load=False)
    if not session.reload():
        raise HTTPException(status_code=502, detail=session.last_error or "Ledger reload failed.")
    snapshot = session.snapshot
    return {
        "trades": len(snapshot.trades),
        "transactions": len(snapshot.transactions),
        "skipped": snapshot.skipped,
        "periods": session.available_periods(),
    }


@app.post("/api/trades")
def add_trade_api(trade: TradeInput) -> dict[str, Any]:
    return _mutate(ACTION_ADD_TRADE, _trade_store_payload(trade))


@app.put("/api/trades/{trade_id}")
def edit_trade_api(trade_id: str, trade: TradeInput) -> dict[str, Any]:
    return _mutate(ACTION_EDIT_TRADE, _trade_store_payload(trade, trade_id))


@app.delete("/api/trades/{trade_id}")
def delete_trade_api(trade_id: str) -> dict[str, Any]:
    return _mutate(ACTION_DELETE_TRADE, {"id": trade_id})


@app.post("/api/transactions")
def add_transaction_api(transaction: TransactionInput) -> dict[str, Any]:
    return _mutate(ACTION_ADD_TRANSACTION, _transaction_store_payload(transaction))


@app.put("/api/transactions/{transaction_id}")
def edit_transaction_api(transaction_id: str, transaction: TransactionInput) -> dict[str, Any]:
    return _mutate(ACTION_EDIT_TRANSACTION, _transaction_store_payload(transaction, transaction_id))


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction_api(transaction_id: str) -> dict[str, Any]:
    return _mutate(ACTION_DELETE_TRANSACTION, {"id": transaction_id})


def _session(*, load: bool = True) -> LedgerSession:
    session = getattr(app.state, "session", None)
    if session is None:
        session = _build_session()
        app.state.session = session
    if load and session.snapshot.loaded_at is None and session.last_error is None:
        session.reload()
    return session


def _build_session() -> LedgerSession:
    app_config = load_app_config()
    env = dict(os.environ)
    env.update(load_dotenv(app_config.app.env_path))
    env = apply_store_settings(env, app_config)
    client = None
    try:
        client = StoreApiClient(StoreApiConfig.from_env(env))
    except ValueError as exc:
        logger.warning("Ledger store not configured: %s", exc)
    return LedgerSession(
        client,
        offset=app_config.ledger.display_offset,
        period=app_config.ledger.default_period,
    )


def _commission_per_lot() -> float:
    return load_app_config().ledger.commission_per_lot


def _select_period(session: LedgerSession, raw: str | None, *, remember: bool = False) -> str:
    if raw is None:
        return session.period
    try:
        if remember:
            return session.select_period(raw)
        return session.check_period(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _mutate(action: str, payload: dict[str, Any]) -> dict[str, Any]:
    session = _session(load=False)
    try:
        sent = session.submit(action, payload)
    except MutationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"status": "success", "action": action, "id": sent.get("id"), "data_note": _data_note(session)}


def _trade_store_payload(trade: TradeInput, trade_id: str = "") -> dict[str, Any]:
    if trade.net_profit is not None:
        net_profit = trade.net_profit
    elif trade.gross_profit is not None:
        _, net_profit = net_profit_from_gross(trade.lots, trade.gross_profit, _commission_per_lot())
    else:
        raise HTTPException(status_code=400, detail="Provide net_profit or gross_profit.")
    # Parsed the same way as on ingest, so anything stored here reads back.
    try:
        record = parse_trade(
            {
                "id": trade_id,
                "type": trade.type,
                "lots": trade.lots,
                "entryPrice": trade.entry_price,
                "exitPrice": trade.exit_price,
                "openTime": trade.open_time,
                "closeTime": trade.close_time,
                "netProfit": net_profit,
            }
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid close_time: {exc}") from exc
    if trade.open_time and record.open_time is None:
        raise HTTPException(status_code=400, detail="Invalid open_time.")
    return trade_payload(record)


def _transaction_store_payload(transaction: TransactionInput, transaction_id: str = "") -> dict[str, Any]:
    try:
        record = parse_transaction(
            {
                "id": transaction_id,
                "type": transaction.type,
                "amount": transaction.amount,
                "allocation": transaction.allocation,
                "date": transaction.date,
            }
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid date: {exc}") from exc
    return transaction_payload(record)


def _report_payload(report: PeriodReport) -> dict[str, Any]:
    payload = asdict(report)
    payload["baseline"]["start_total"] = report.baseline.start_total
    payload["profit_factor"] = _json_number(report.profit_factor)
    return payload


def _json_number(value: float) -> float | str:
    if math.isinf(value):
        return "inf"
    return value


def _data_note(session: LedgerSession) -> str | None:
    notes = []
    if session.last_error:
        notes.append(f"Showing last loaded data: {session.last_error}")
    if session.snapshot.skipped:
        notes.append(f"Skipped {session.snapshot.skipped} malformed records.")
    return " ".join(notes) or None


def money_filter(value: float | None) -> str:
    if value is None or isinstance(value, Undefined):
        return "n/a"
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return "n/a"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def percent_filter(value: float | None) -> str:
    if value is None or isinstance(value, Undefined):
        return "n/a"
    return f"{float(value):.2f}%"


def factor_filter(value: float | str | None) -> str:
    if value is None or isinstance(value, Undefined):
        return "n/a"
    if value == "inf":
        return "∞"
    return f"{float(value):.2f}"


TEMPLATES.env.filters.update(
    {
        "money": money_filter,
        "percent": percent_filter,
        "factor": factor_filter,
    }
)


def main() -> None:
    import uvicorn

    app_config = load_app_config()
    uvicorn.run(
        "pocket_ledger.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
