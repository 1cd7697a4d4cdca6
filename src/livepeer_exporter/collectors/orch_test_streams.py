"""Test stream probes per region (Livepeer leaderboard API).

The leaderboard maps each probing region to a list of probe results. When a
region holds several probes for the same orchestrator the most recent one is
published.
"""

from typing import Dict, List, Optional, Tuple

import httpx

from ..collector import Collector
from ..fetcher import DEFAULT_TIMEOUT, Fetcher
from ..metrics import GaugeSpec, MetricsSink, Sample
from ..schemas import StreamStats
from ..utils.numeric import parse_float

LEADERBOARD_URL = "https://leaderboard-serverless.vercel.app/api/raw_stats"

LABELS = ("region", "orchestrator")

STAT_FIELDS = (
    ("success_rate", "Success rate per region for test streams"),
    ("upload_time", "Upload time per region for test streams"),
    ("download_time", "Download time per region for test streams"),
    ("transcode_time", "Transcode time per region for test streams"),
    ("round_trip_time", "Round trip time per region for test streams"),
)

StreamStatsByRegion = Dict[str, List[StreamStats]]


def latest_probes(payload: StreamStatsByRegion) -> Dict[Tuple[str, str], StreamStats]:
    """Most recent probe per (region, orchestrator)."""
    latest: Dict[Tuple[str, str], StreamStats] = {}
    stamps: Dict[Tuple[str, str], float] = {}
    for region, probes in payload.items():
        for probe in probes:
            key = (region.upper(), probe.orchestrator)
            stamp, ok = parse_float(probe.timestamp)
            if not ok:
                stamp = float("-inf")
            # Later entries win ties, matching list order upstream.
            if key not in latest or stamp >= stamps[key]:
                latest[key] = probe
                stamps[key] = stamp
    return latest


class OrchTestStreamsCollector(Collector):
    name = "orch_test_streams"
    gauge_specs = tuple(
        GaugeSpec(f"livepeer_orch_test_stream_{field}", doc, LABELS)
        for field, doc in STAT_FIELDS
    )

    def __init__(
        self,
        sink: MetricsSink,
        orch_address: str,
        fetch_interval: float,
        publish_interval: float,
        url: str = LEADERBOARD_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        super().__init__(sink, fetch_interval, publish_interval)
        self.fetcher = Fetcher(
            f"{url}?orchestrator={orch_address}",
            StreamStatsByRegion,
            timeout=timeout,
            client=client,
        )

    async def fetch(self) -> StreamStatsByRegion:
        return await self.fetcher.fetch()

    def derive(self, payload: StreamStatsByRegion) -> List[Sample]:
        samples = []
        for (region, orchestrator), probe in latest_probes(payload).items():
            labels = {"region": region, "orchestrator": orchestrator}
            for field, _ in STAT_FIELDS:
                value, ok = parse_float(getattr(probe, field))
                if ok:
                    samples.append(
                        Sample(f"livepeer_orch_test_stream_{field}", value, labels)
                    )
        return samples
