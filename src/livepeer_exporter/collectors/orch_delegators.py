"""Delegators bonded to the orchestrator (stronk.rocks API)."""

from typing import List, Optional

import httpx

from ..collector import Collector
from ..fetcher import DEFAULT_TIMEOUT, Fetcher
from ..metrics import GaugeSpec, MetricsSink, Sample
from ..schemas import OrchDelegatorsData
from ..utils.numeric import parse_float

STRONK_URL = "https://stronk.rocks/api/livepeer"


class OrchDelegatorsCollector(Collector):
    name = "orch_delegators"
    gauge_specs = (
        GaugeSpec(
            "livepeer_orch_delegator_bonded_amount",
            "The bonded amount for each delegator.",
            ("id",),
        ),
        GaugeSpec(
            "livepeer_orch_delegator_start_round",
            "The start round for each delegator.",
            ("id",),
        ),
        GaugeSpec(
            "livepeer_orch_delegator_count",
            "The number of delegators for the orchestrator.",
        ),
    )

    def __init__(
        self,
        sink: MetricsSink,
        orch_address: str,
        fetch_interval: float,
        publish_interval: float,
        base_url: str = STRONK_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        super().__init__(sink, fetch_interval, publish_interval)
        self.fetcher = Fetcher(
            f"{base_url.rstrip('/')}/getOrchestrator/{orch_address}",
            OrchDelegatorsData,
            timeout=timeout,
            client=client,
        )

    async def fetch(self) -> OrchDelegatorsData:
        return await self.fetcher.fetch()

    def derive(self, payload: OrchDelegatorsData) -> List[Sample]:
        samples = [
            Sample("livepeer_orch_delegator_count", float(len(payload.delegators)))
        ]
        for delegator in payload.delegators:
            if not delegator.id:
                continue
            labels = {"id": delegator.id}
            bonded, ok = parse_float(delegator.bonded_amount)
            if ok:
                samples.append(Sample("livepeer_orch_delegator_bonded_amount", bonded, labels))
            start_round, ok = parse_float(delegator.start_round)
            if ok:
                samples.append(Sample("livepeer_orch_delegator_start_round", start_round, labels))
        return samples
