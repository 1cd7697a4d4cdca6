"""Orchestrator price and per-region scores (Livepeer explorer API)."""

from typing import List, Optional

import httpx

from ..collector import Collector
from ..fetcher import DEFAULT_TIMEOUT, Fetcher
from ..metrics import GaugeSpec, MetricsSink, Sample
from ..schemas import OrchScoreData
from ..utils.numeric import parse_float

EXPLORER_URL = "https://explorer.livepeer.org"


class OrchScoreCollector(Collector):
    name = "orch_score"
    gauge_specs = (
        GaugeSpec("livepeer_orch_price_per_pixel", "The price per pixel."),
        GaugeSpec("livepeer_orch_success_rates", "The success rates per region.", ("region",)),
        GaugeSpec(
            "livepeer_orch_round_trip_scores", "The round trip scores per region.", ("region",)
        ),
        GaugeSpec("livepeer_orch_scores", "The scores per region.", ("region",)),
    )

    def __init__(
        self,
        sink: MetricsSink,
        orch_address: str,
        fetch_interval: float,
        publish_interval: float,
        base_url: str = EXPLORER_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        super().__init__(sink, fetch_interval, publish_interval)
        self.fetcher = Fetcher(
            f"{base_url.rstrip('/')}/api/score/{orch_address}",
            OrchScoreData,
            timeout=timeout,
            client=client,
        )

    async def fetch(self) -> OrchScoreData:
        return await self.fetcher.fetch()

    def derive(self, payload: OrchScoreData) -> List[Sample]:
        samples = []

        price, ok = parse_float(payload.price_per_pixel)
        if ok:
            samples.append(Sample("livepeer_orch_price_per_pixel", price))

        for name, per_region in (
            ("livepeer_orch_success_rates", payload.success_rates),
            ("livepeer_orch_round_trip_scores", payload.round_trip_scores),
            ("livepeer_orch_scores", payload.scores),
        ):
            for region, raw in per_region.items():
                value, ok = parse_float(raw)
                if ok:
                    samples.append(Sample(name, value, {"region": region}))
        return samples
