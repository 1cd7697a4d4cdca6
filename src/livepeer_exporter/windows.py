"""Trailing-window sums over on-chain events."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Tuple

from dateutil.relativedelta import relativedelta

# Wei-scale gas cost to gwei.
GWEI = 1e9

# Window name -> how far back it reaches from "now". Months and years are
# calendar based, see ``shift_back``.
PERIODS: Tuple[Tuple[str, relativedelta], ...] = (
    ("day", relativedelta(days=1)),
    ("week", relativedelta(days=7)),
    ("thirty_day", relativedelta(months=1)),
    ("ninety_day", relativedelta(months=3)),
    ("year", relativedelta(years=1)),
)
TOTAL = "total"
PERIOD_NAMES = tuple(name for name, _ in PERIODS) + (TOTAL,)


@dataclass(frozen=True)
class Event:
    """A settled on-chain event: a reward call or a redeemed winning ticket."""

    tx_id: str
    amount: Optional[float] = None
    timestamp: Optional[float] = None
    block_number: Optional[float] = None
    round: Optional[float] = None
    gas_used: Optional[float] = None
    gas_price: Optional[float] = None

    @property
    def gas_cost(self) -> Optional[float]:
        """Gas used times gas price, in gwei."""
        if self.gas_used is None or self.gas_price is None:
            return None
        return self.gas_used * self.gas_price / GWEI


@dataclass
class PeriodTotals:
    amount: Dict[str, float] = field(
        default_factory=lambda: dict.fromkeys(PERIOD_NAMES, 0.0)
    )
    gas_cost: Dict[str, float] = field(
        default_factory=lambda: dict.fromkeys(PERIOD_NAMES, 0.0)
    )


def shift_back(now: datetime, delta: relativedelta) -> datetime:
    """``now - delta`` with day overflow rolled into the next month.

    ``relativedelta`` clips to the end of a short month. Here the day is kept
    and the excess carries over instead, so 31 March minus one month is
    2 March (in a leap year), not 29 February.
    """
    first = now.replace(day=1) - delta
    return first + timedelta(days=now.day - 1)


def window_starts(now: datetime) -> Dict[str, float]:
    """Unix timestamp each window starts at, relative to ``now``."""
    return {name: shift_back(now, delta).timestamp() for name, delta in PERIODS}


def sum_by_period(
    events: Iterable[Event], now: Optional[datetime] = None
) -> PeriodTotals:
    """Sum amounts and gas costs per trailing window.

    Windows overlap: an event counts towards every window that reaches back
    to its timestamp, and always towards the total. Events without a
    timestamp only count towards the total.
    """
    starts = window_starts(now or datetime.now(timezone.utc))
    totals = PeriodTotals()

    for event in events:
        amount = event.amount or 0.0
        gas_cost = event.gas_cost or 0.0

        totals.amount[TOTAL] += amount
        totals.gas_cost[TOTAL] += gas_cost
        if event.timestamp is None:
            continue
        for name, start in starts.items():
            if event.timestamp >= start:
                totals.amount[name] += amount
                totals.gas_cost[name] += gas_cost

    return totals
