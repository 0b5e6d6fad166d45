from __future__ import annotations

import json

from pocket_ledger.cli import main


def _write_ledger(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text(
        json.dumps(
            {
                "status": "success",
                "data": {
                    "trades": [
                        {"id": "T1", "type": "Buy", "lots": 0.1, "entryPrice": 2000, "exitPrice": 2003,
                         "closeTime": "2024-03-05T10:00:00Z", "netProfit": 30},
                        {"id": "T2", "type": "Sell", "lots": 0.1, "entryPrice": 2000, "exitPrice": 2001,
                         "closeTime": "2024-03-06T10:00:00Z", "netProfit": -10},
                        {"id": "T3", "type": "Buy", "closeTime": "yesterday", "netProfit": 1},
                    ],
                    "transactions": [
                        {"id": "D1", "type": "Deposit", "amount": 500, "allocation": "MAIN",
                         "date": "2024-02-01T00:00:00Z"},
                    ],
                },
            }
        ),
        encoding="utf-8",
    )
    return path


def test_cli_text_report(tmp_path, capsys) -> None:
    code = main([str(_write_ledger(tmp_path)), "--period", "2024-03", "--history"])

    captured = capsys.readouterr()
    assert code == 0
    assert "period MAR 2024" in captured.out
    assert "equity $520.00" in captured.out
    assert "profit_factor 3.00" in captured.out
    assert "Skipped 1 malformed ledger rows." in captured.err
    assert captured.out.index("2024-03-06T15:00:00+05:00 T2") < captured.out.index("2024-03-05T15:00:00+05:00 T1")


def test_cli_json_output_to_file(tmp_path) -> None:
    out = tmp_path / "reports" / "march.json"

    code = main([str(_write_ledger(tmp_path)), "--json", "--out", str(out)])

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert code == 0
    assert payload["period"] == "all"
    assert payload["total_trades"] == 2
    assert payload["all_time_roi_pct"] == 4.0


def test_cli_rejects_unknown_period(tmp_path, capsys) -> None:
    code = main([str(_write_ledger(tmp_path)), "--period", "2023-01"])

    assert code == 1
    assert "No ledger data for period 2023-01" in capsys.readouterr().err


def test_cli_missing_file(tmp_path, capsys) -> None:
    code = main([str(tmp_path / "absent.json")])

    assert code == 1
    assert "Could not load" in capsys.readouterr().err
