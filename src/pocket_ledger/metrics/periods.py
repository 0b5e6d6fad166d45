from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Sequence

from pocket_ledger.models import TimelineEvent
from pocket_ledger.reconstruct.events import DISPLAY_OFFSET, display_zone

PERIOD_ALL = "all"

_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class PeriodBaseline:
    start_main: float = 0.0
    start_temp: float = 0.0
    start_main_net: float = 0.0
    start_temp_net: float = 0.0
    start_deposits: float = 0.0

    @property
    def start_total(self) -> float:
        return self.start_main + self.start_temp

    @classmethod
    def from_event(cls, event: TimelineEvent) -> "PeriodBaseline":
        return cls(
            start_main=event.running_main,
            start_temp=event.running_temp,
            start_main_net=event.cumulative_main_net,
            start_temp_net=event.cumulative_temp_net,
            start_deposits=event.cumulative_deposits,
        )


@dataclass(frozen=True)
class PeriodView:
    period: str
    events: list[TimelineEvent]
    baseline: PeriodBaseline

    @property
    def trades(self) -> list[TimelineEvent]:
        return [event for event in self.events if event.is_trade]

    @property
    def transactions(self) -> list[TimelineEvent]:
        return [event for event in self.events if event.is_transaction]


def parse_period(value: str | None) -> str:
    """Return the canonical selector (``all`` or ``YYYY-MM``) or raise ``ValueError``."""
    text = (value or PERIOD_ALL).strip().lower()
    if text == PERIOD_ALL:
        return PERIOD_ALL
    _month_bounds(text)
    return text


def filter_period(
    timeline: Sequence[TimelineEvent],
    period: str | None,
    *,
    offset: timedelta = DISPLAY_OFFSET,
) -> PeriodView:
    selector = parse_period(period)
    if selector == PERIOD_ALL:
        return PeriodView(period=PERIOD_ALL, events=list(timeline), baseline=PeriodBaseline())

    year, month = _month_bounds(selector)
    zone = display_zone(offset)
    month_start = datetime(year, month, 1, tzinfo=zone)
    next_start = datetime(*_next_month(year, month), 1, tzinfo=zone)

    events = [event for event in timeline if month_start <= event.local_timestamp < next_start]

    # Pocket balances carry across months, so the baseline is read from the
    # full timeline, not from the slice.
    previous: TimelineEvent | None = None
    for event in timeline:
        if event.timestamp >= month_start:
            break
        previous = event
    baseline = PeriodBaseline.from_event(previous) if previous is not None else PeriodBaseline()
    return PeriodView(period=selector, events=events, baseline=baseline)


def month_key(event: TimelineEvent) -> str:
    return event.local_timestamp.strftime("%Y-%m")


def month_keys(timeline: Sequence[TimelineEvent]) -> list[str]:
    return sorted({month_key(event) for event in timeline}, reverse=True)


def month_label(key: str) -> str:
    if key == PERIOD_ALL:
        return "ALL TIME"
    year, month = _month_bounds(key)
    return date(year, month, 1).strftime("%b %Y").upper()


def period_options(timeline: Sequence[TimelineEvent]) -> list[dict[str, str]]:
    options = [{"key": PERIOD_ALL, "label": month_label(PERIOD_ALL)}]
    options.extend({"key": key, "label": month_label(key)} for key in month_keys(timeline))
    return options


def _month_bounds(key: str) -> tuple[int, int]:
    match = _MONTH_KEY.match(key.strip())
    if not match:
        raise ValueError(f"Invalid period: {key!r}; expected 'all' or YYYY-MM.")
    year = int(match.group(1))
    month = int(match.group(2))
    if month < 1 or month > 12 or year < 1:
        raise ValueError(f"Invalid period: {key!r}; month out of range.")
    return year, month


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1
