from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from pocket_ledger.ingest.records import LedgerIngestResult
from pocket_ledger.ingest.store_api import IngestError, MutationError, StoreApiClient
from pocket_ledger.metrics.periods import PERIOD_ALL, PeriodView, filter_period, month_keys, parse_period
from pocket_ledger.metrics.summary import PeriodReport, compute_period_report
from pocket_ledger.models import TimelineEvent, TradeRecord, TransactionRecord
from pocket_ledger.reconstruct.events import DISPLAY_OFFSET
from pocket_ledger.reconstruct.timeline import reconstruct_timeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    trades: tuple[TradeRecord, ...] = ()
    transactions: tuple[TransactionRecord, ...] = ()
    timeline: tuple[TimelineEvent, ...] = ()
    skipped: int = 0
    loaded_at: datetime | None = None
    months: tuple[str, ...] = ()


class LedgerSession:
    """Owns the loaded ledger and the selected period.

    Every data change rebuilds a fresh snapshot from the full record lists and
    swaps it in with one assignment. A failed fetch keeps the previous snapshot.
    """

    def __init__(
        self,
        client: StoreApiClient | None = None,
        *,
        offset: timedelta = DISPLAY_OFFSET,
        period: str = PERIOD_ALL,
    ) -> None:
        self._client = client
        self._offset = offset
        self._snapshot = LedgerSnapshot()
        self._period = parse_period(period)
        self.last_error: str | None = None

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def timeline(self) -> list[TimelineEvent]:
        return list(self._snapshot.timeline)

    @property
    def period(self) -> str:
        return self._period

    @property
    def offset(self) -> timedelta:
        return self._offset

    def available_periods(self) -> list[str]:
        return [PERIOD_ALL, *self._snapshot.months]

    def reload(self) -> bool:
        if self._client is None:
            self.last_error = "No ledger store configured."
            return False
        try:
            result = self._client.fetch_ledger()
        except IngestError as exc:
            self.last_error = str(exc)
            logger.warning("Ledger reload failed; keeping previous data: %s", exc)
            return False
        self.load(result)
        return True

    def load(self, result: LedgerIngestResult) -> LedgerSnapshot:
        timeline = reconstruct_timeline(result.trades, result.transactions, offset=self._offset)
        snapshot = LedgerSnapshot(
            trades=tuple(result.trades),
            transactions=tuple(result.transactions),
            timeline=tuple(timeline),
            skipped=result.skipped,
            loaded_at=datetime.now(timezone.utc),
            months=tuple(month_keys(timeline)),
        )
        self._snapshot = snapshot
        self.last_error = None
        if result.skipped:
            logger.info("Skipped %d malformed ledger rows during ingest.", result.skipped)
        if self._period != PERIOD_ALL and self._period not in snapshot.months:
            self._period = PERIOD_ALL
        return snapshot

    def check_period(self, period: str | None) -> str:
        selector = parse_period(period)
        if selector != PERIOD_ALL and selector not in self._snapshot.months:
            raise ValueError(f"No ledger data for period {selector}.")
        return selector

    def select_period(self, period: str | None) -> str:
        self._period = self.check_period(period)
        return self._period

    def view(self, period: str | None = None) -> PeriodView:
        selector = self._period if period is None else parse_period(period)
        return filter_period(self._snapshot.timeline, selector, offset=self._offset)

    def report(self, period: str | None = None) -> PeriodReport:
        return compute_period_report(self.view(period))

    def submit(self, action: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Send a mutation, then reload from the store whether or not it succeeded."""
        if self._client is None:
            raise MutationError("No ledger store configured.")
        try:
            return self._client.submit(action, payload)
        except MutationError as exc:
            logger.warning("Ledger mutation %s failed: %s", action, exc)
            raise
        finally:
            self.reload()
