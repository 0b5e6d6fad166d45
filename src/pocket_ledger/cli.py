from __future__ import annotations

import argparse
import json
import math
import os
import sys
from dataclasses import asdict
from pathlib import Path

from pocket_ledger.config.app_config import apply_store_settings, load_app_config
from pocket_ledger.ingest.records import load_ledger
from pocket_ledger.ingest.store_api import StoreApiClient, StoreApiConfig, load_dotenv
from pocket_ledger.metrics.periods import month_label
from pocket_ledger.metrics.series import history_rows
from pocket_ledger.metrics.summary import PeriodReport
from pocket_ledger.state import LedgerSession


def main(argv: list[str] | None = None) -> int:
    app_config = load_app_config()
    parser = argparse.ArgumentParser(description="Rebuild pocket balances and report a period.")
    parser.add_argument(
        "ledger_path",
        type=Path,
        nargs="?",
        default=None,
        help="Local ledger export (json). Fetches from the store when omitted.",
    )
    parser.add_argument("--period", type=str, default=app_config.ledger.default_period, help="'all' or YYYY-MM.")
    parser.add_argument("--env", type=Path, default=app_config.app.env_path, help="Path to .env file.")
    parser.add_argument("--store-url", type=str, default=None, help="Override the store URL.")
    parser.add_argument("--history", action="store_true", help="Also print the event history, newest first.")
    parser.add_argument("--json", action="store_true", help="Print JSON output.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    args = parser.parse_args(argv)

    if args.ledger_path is not None:
        session = LedgerSession(offset=app_config.ledger.display_offset)
        try:
            result = load_ledger(args.ledger_path)
        except (OSError, ValueError) as exc:
            print(f"Could not load {args.ledger_path}: {exc}", file=sys.stderr)
            return 1
        session.load(result)
    else:
        env = dict(os.environ)
        env.update(load_dotenv(args.env))
        env = apply_store_settings(env, app_config, base_url_override=args.store_url)
        try:
            client = StoreApiClient(StoreApiConfig.from_env(env))
        except ValueError as exc:
            print(str(exc), file=sys.stderr)
            return 1
        session = LedgerSession(client, offset=app_config.ledger.display_offset)
        if not session.reload():
            print(f"Ledger fetch failed: {session.last_error}", file=sys.stderr)
            return 1

    if session.snapshot.skipped:
        print(f"Skipped {session.snapshot.skipped} malformed ledger rows.", file=sys.stderr)

    try:
        period = session.select_period(args.period)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    report = session.report(period)
    if args.json:
        payload = asdict(report)
        payload["profit_factor"] = "inf" if report.profit_factor_is_infinite else report.profit_factor
        if args.history:
            payload["history"] = history_rows(session.view(period).events)
        output = json.dumps(payload, indent=2, sort_keys=True)
    else:
        lines = _format_report(report)
        if args.history:
            lines.append("")
            lines.extend(_format_history(history_rows(session.view(period).events)))
        output = "\n".join(lines)

    if args.out is None:
        print(output)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(output + "\n", encoding="utf-8")
    return 0


def _format_report(report: PeriodReport) -> list[str]:
    balances = report.balances
    allocation = report.allocation
    lines = [
        f"period {month_label(report.period)}",
        f"equity {_money(balances.total)} main {_money(balances.main)} ({balances.main_share_pct:.1f}%) "
        f"temp {_money(balances.temp)} ({balances.temp_share_pct:.1f}%)",
        f"period_roi {report.period_roi_pct:.2f}% all_time_roi {report.all_time_roi_pct:.2f}%",
        f"trades {report.total_trades} win_rate {report.win_rate:.1f}% net {_money(report.net_profit)}",
        f"gross_profit {_money(report.gross_profit)} gross_loss {_money(report.gross_loss)} "
        f"profit_factor {_factor(report.profit_factor)} expected_payoff {report.expected_payoff:.2f}",
        f"avg_win {_money(report.avg_win)} avg_loss {_money(report.avg_loss)}",
        f"max_consecutive_wins {report.max_consecutive_wins} "
        f"max_consecutive_losses {report.max_consecutive_losses}",
        f"max_drawdown {report.max_drawdown_pct:.1f}%",
    ]
    for stats in report.directions.values():
        lines.append(f"{stats.direction.lower()} trades {stats.trades} win_rate {stats.win_rate:.1f}%")
    if report.best_trade is not None and report.worst_trade is not None:
        lines.append(
            f"best {report.best_trade.trade_id} {_money(report.best_trade.net_profit)} "
            f"worst {report.worst_trade.trade_id} {_money(report.worst_trade.net_profit)}"
        )
    if report.best_pips_trade is not None and report.worst_pips_trade is not None:
        lines.append(
            f"best_pips {report.best_pips_trade.trade_id} {report.best_pips_trade.pips:.1f} "
            f"worst_pips {report.worst_pips_trade.trade_id} {report.worst_pips_trade.pips:.1f}"
        )
    lines.append(
        f"deposits {_money(allocation.total_deposits)} "
        f"(main {allocation.deposits_main_pct:.1f}% temp {allocation.deposits_temp_pct:.1f}%) "
        f"withdrawals {_money(allocation.total_withdrawals)}"
    )
    return lines


def _format_history(rows: list[dict]) -> list[str]:
    output = ["time id category type value detail"]
    for row in rows:
        if row["category"] == "TRADE":
            detail = f"{row['lots']}lot {row['session']} {row['pips']:.1f}pips {row['growth_pct']:+.2f}%"
        else:
            detail = str(row.get("allocation"))
        output.append(
            f"{row['local_time']} {row['id']} {row['category']} {row['type']} {_money(row['value'])} {detail}"
        )
    return output


def _money(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def _factor(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.2f}"


if __name__ == "__main__":
    raise SystemExit(main())
