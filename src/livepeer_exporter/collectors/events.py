"""Shared publishing for families built on a list of on-chain events."""

from abc import abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

from ..collector import Collector
from ..metrics import GaugeSpec, Sample
from ..utils.numeric import parse_float
from ..windows import PERIOD_NAMES, Event, sum_by_period

PERIOD_DESCRIPTIONS = {
    "day": "in the last 24 hours",
    "week": "in the last 7 days",
    "thirty_day": "in the last month",
    "ninety_day": "in the last 3 months",
    "year": "in the last year",
    "total": "in total",
}

# Event attribute -> (metric suffix, description). Block time is exported in
# milliseconds for Grafana.
EVENT_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("amount", "amount", "The amount earned by each transaction."),
    ("gas_used", "gas_used", "The amount of gas used by each transaction."),
    ("gas_price", "gas_price", "The gas price for each transaction in Wei."),
    ("gas_cost", "gas_cost", "The cost of gas used by each transaction in Gwei."),
    ("block_number", "block_number", "The block number of each transaction."),
    ("timestamp", "block_time", "The block time of each transaction in milliseconds."),
    ("round", "round", "The round of each transaction."),
)


def optional_float(value: Any) -> Optional[float]:
    parsed, ok = parse_float(value)
    return parsed if ok else None


def event_gauge_specs(
    event_prefix: str, amount_name: str, gas_name: str, what: str
) -> Tuple[GaugeSpec, ...]:
    """Per-transaction vectors plus the trailing-window sums.

    ``amount_name`` and ``gas_name`` are ``str.format`` templates taking the
    window name.
    """
    specs = [
        GaugeSpec(f"{event_prefix}_{suffix}", doc, ("id",))
        for _, suffix, doc in EVENT_FIELDS
    ]
    for period in PERIOD_NAMES:
        when = PERIOD_DESCRIPTIONS[period]
        specs.append(
            GaugeSpec(amount_name.format(period), f"The {what} earned {when}.")
        )
        specs.append(
            GaugeSpec(
                gas_name.format(period),
                f"The gas cost of all {what} transactions {when} in Gwei.",
            )
        )
    return tuple(specs)


class EventCollector(Collector):
    event_prefix: str = ""
    amount_name: str = ""
    gas_name: str = ""

    @abstractmethod
    def to_events(self, payload: Any) -> List[Event]:
        """Turn the buffered payload into events for this orchestrator."""

    def derive(self, payload: Any, now: Optional[datetime] = None) -> Iterable[Sample]:
        events = self.to_events(payload)

        samples = []
        for event in events:
            labels = {"id": event.tx_id}
            for attr, suffix, _ in EVENT_FIELDS:
                value = getattr(event, attr)
                if value is None:
                    continue
                if attr == "timestamp":
                    value *= 1000
                samples.append(Sample(f"{self.event_prefix}_{suffix}", value, labels))

        totals = sum_by_period(events, now or datetime.now(timezone.utc))
        for period in PERIOD_NAMES:
            samples.append(Sample(self.amount_name.format(period), totals.amount[period]))
            samples.append(Sample(self.gas_name.format(period), totals.gas_cost[period]))
        return samples
