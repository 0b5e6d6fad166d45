from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from pocket_ledger.ingest.records import LedgerIngestResult, parse_ledger_payload

DEFAULT_TIMEOUT_SECONDS = 30.0

ACTION_ADD_TRADE = "addTrade"
ACTION_EDIT_TRADE = "editTrade"
ACTION_DELETE_TRADE = "deleteTrade"
ACTION_ADD_TRANSACTION = "addTransaction"
ACTION_EDIT_TRANSACTION = "editTransaction"
ACTION_DELETE_TRANSACTION = "deleteTransaction"

MUTATION_ACTIONS = frozenset(
    {
        ACTION_ADD_TRADE,
        ACTION_EDIT_TRADE,
        ACTION_DELETE_TRADE,
        ACTION_ADD_TRANSACTION,
        ACTION_EDIT_TRANSACTION,
        ACTION_DELETE_TRANSACTION,
    }
)
CREATE_ACTIONS = frozenset({ACTION_ADD_TRADE, ACTION_ADD_TRANSACTION})

logger = logging.getLogger(__name__)


class IngestError(RuntimeError):
    """Fetching the ledger from the store failed or returned a non-success status."""


class MutationError(RuntimeError):
    """The store rejected a mutation or could not be reached."""


@dataclass(frozen=True)
class StoreApiConfig:
    base_url: str
    timeout_seconds: float
    debug: bool

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "StoreApiConfig":
        base_url = env.get("LEDGER_STORE_URL", "").strip()
        if not base_url:
            raise ValueError("Missing required environment value: LEDGER_STORE_URL")
        return cls(
            base_url=base_url,
            timeout_seconds=_to_float(env.get("LEDGER_STORE_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT_SECONDS),
            debug=env.get("LEDGER_STORE_DEBUG", "").lower() in {"1", "true", "yes"},
        )


def load_dotenv(path: Path) -> dict[str, str]:
    env: dict[str, str] = {}
    if not path.exists():
        return env

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        env[key.strip()] = value.strip().strip("\"").strip("'")
    return env


def new_record_id() -> str:
    return f"ID-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class StoreApiClient:
    def __init__(self, config: StoreApiConfig) -> None:
        self._config = config

    @property
    def debug(self) -> bool:
        return bool(self._config.debug)

    def fetch_ledger(self) -> LedgerIngestResult:
        query = urllib.parse.urlencode({"action": "getData"})
        separator = "&" if "?" in self._config.base_url else "?"
        url = f"{self._config.base_url}{separator}{query}"
        try:
            payload = self._send("GET", url, body=None)
        except RuntimeError as exc:
            raise IngestError(f"Ledger fetch failed: {exc}") from exc

        status = payload.get("status") if isinstance(payload, Mapping) else None
        if status != "success":
            message = payload.get("message") if isinstance(payload, Mapping) else None
            raise IngestError(f"Ledger fetch returned status={status!r} message={message!r}")
        try:
            return parse_ledger_payload(payload)
        except ValueError as exc:
            raise IngestError(f"Ledger payload malformed: {exc}") from exc

    def submit(self, action: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Send one mutation to the store and return the body that was posted.

        Creates get a fresh client-side id; edits and deletes must carry the id
        of the record they replace.
        """
        if action not in MUTATION_ACTIONS:
            raise ValueError(f"Unknown action: {action!r}")
        body = dict(payload)
        if action in CREATE_ACTIONS:
            body["id"] = new_record_id()
        elif not body.get("id"):
            raise ValueError(f"Action {action} requires a record id.")
        body["action"] = action

        try:
            response = self._send("POST", self._config.base_url, body=body)
        except RuntimeError as exc:
            raise MutationError(f"{action} failed: {exc}") from exc

        status = response.get("status") if isinstance(response, Mapping) else None
        if status is not None and status != "success":
            message = response.get("message")
            raise MutationError(f"{action} rejected: status={status!r} message={message!r}")
        return body

    def _send(self, method: str, url: str, body: Mapping[str, Any] | None) -> Any:
        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = {"Accept": "application/json"}
        if data is not None:
            headers["Content-Type"] = "application/json"
        if self.debug:
            logger.debug("store request: method=%s url=%s body=%r", method, url, body)

        request = urllib.request.Request(url, headers=headers, data=data, method=method)
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout_seconds) as response:
                status = response.status
                raw = response.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            raise RuntimeError(f"HTTP {exc.code}: {detail}") from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise RuntimeError(f"Transport error: {exc}") from exc

        if not raw:
            raise RuntimeError(f"Empty response body (status {status}, url {url})")
        try:
            return json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            snippet = raw[:200].decode("utf-8", errors="replace")
            raise RuntimeError(f"Non-JSON response (status {status}, url {url}): {snippet}") from exc


def _to_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default
