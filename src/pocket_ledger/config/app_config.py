from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    reload: bool
    env_path: Path


@dataclass(frozen=True)
class StoreSettings:
    base_url: str
    timeout_seconds: float
    debug: bool


@dataclass(frozen=True)
class LedgerSettings:
    display_offset_hours: float
    commission_per_lot: float
    default_period: str

    @property
    def display_offset(self) -> timedelta:
        return timedelta(hours=self.display_offset_hours)


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    store: StoreSettings
    ledger: LedgerSettings


def apply_store_settings(
    env: Mapping[str, str],
    app_config: AppConfig,
    *,
    base_url_override: str | None = None,
) -> dict[str, str]:
    merged = dict(env)
    store = app_config.store
    base_url = base_url_override or merged.get("LEDGER_STORE_URL") or store.base_url
    merged["LEDGER_STORE_URL"] = base_url
    merged["LEDGER_STORE_TIMEOUT_SECONDS"] = str(store.timeout_seconds)
    merged["LEDGER_STORE_DEBUG"] = "true" if store.debug else "false"
    return merged


def load_app_config(path: Path | None = None) -> AppConfig:
    config_path = path or Path("config/app.toml")
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    store_raw = _section(raw, "store")
    ledger_raw = _section(raw, "ledger")

    app = AppSettings(
        host=str(app_raw.get("host", "127.0.0.1")),
        port=int(app_raw.get("port", 8000)),
        reload=bool(app_raw.get("reload", False)),
        env_path=Path(app_raw.get("env_path", ".env")),
    )

    store = StoreSettings(
        base_url=str(store_raw.get("base_url", "")).strip(),
        timeout_seconds=_float_or_default(store_raw.get("timeout_seconds"), 30.0),
        debug=bool(store_raw.get("debug", False)),
    )

    ledger = LedgerSettings(
        display_offset_hours=_float_or_default(ledger_raw.get("display_offset_hours"), 5.0),
        commission_per_lot=_float_or_default(ledger_raw.get("commission_per_lot"), 10.0),
        default_period=str(ledger_raw.get("default_period", "all")).strip().lower() or "all",
    )

    return AppConfig(app=app, store=store, ledger=ledger)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _float_or_default(value: Any, default: float) -> float:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
