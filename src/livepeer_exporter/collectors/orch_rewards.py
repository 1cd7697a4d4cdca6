"""Reward calls made by the orchestrator.

Two sources are supported. ``graphql`` queries the Livepeer subgraph for the
orchestrator's reward events. ``legacy`` posts to the stronk.rocks reward
firehose, which returns every orchestrator's events and has to be filtered
down to the configured address before anything is aggregated.
"""

import logging
from typing import Any, List, Optional

import httpx

from ..fetcher import DEFAULT_TIMEOUT, LIVEPEER_SUBGRAPH_URL, Fetcher
from ..metrics import MetricsSink
from ..schemas import LegacyRewardTransaction, RewardEventsData
from ..windows import Event
from .events import EventCollector, event_gauge_specs, optional_float

logger = logging.getLogger(__name__)

SOURCE_GRAPHQL = "graphql"
SOURCE_LEGACY = "legacy"
SOURCES = (SOURCE_GRAPHQL, SOURCE_LEGACY)

LEGACY_REWARDS_URL = "https://stronk.rocks/api/livepeer/getAllRewardEvents"
LEGACY_REQUEST_BODY = '{"smartUpdate":false}'

GRAPHQL_QUERY_TEMPLATE = """
{{
  rewardEvents(
    where: {{delegate: "{address}"}}
    first: 1000
    orderBy: timestamp
    orderDirection: desc
  ) {{
    transaction {{
      gasUsed
      gasPrice
      blockNumber
      timestamp
      id
    }}
    round {{
      id
    }}
    rewardTokens
  }}
}}
"""


def filter_by_address(
    transactions: List[LegacyRewardTransaction], address: str
) -> List[LegacyRewardTransaction]:
    address = address.lower()
    return [tx for tx in transactions if tx.address.lower() == address]


class OrchRewardsCollector(EventCollector):
    name = "orch_rewards"
    event_prefix = "livepeer_orch_reward"
    amount_name = "livepeer_orch_{}_rewards"
    gas_name = "livepeer_orch_rewards_{}_gas_cost"
    gauge_specs = event_gauge_specs(event_prefix, amount_name, gas_name, "rewards")

    def __init__(
        self,
        sink: MetricsSink,
        orch_address: str,
        fetch_interval: float,
        publish_interval: float,
        source: str = SOURCE_GRAPHQL,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        if source not in SOURCES:
            raise ValueError(f"Unknown rewards source '{source}', expected one of {SOURCES}")
        super().__init__(sink, fetch_interval, publish_interval)
        self.orch_address = orch_address
        self.source = source

        if source == SOURCE_LEGACY:
            self.fetcher = Fetcher(
                url or LEGACY_REWARDS_URL,
                List[LegacyRewardTransaction],
                timeout=timeout,
                accept_gzip=True,
                client=client,
            )
        else:
            self.query = GRAPHQL_QUERY_TEMPLATE.format(address=orch_address)
            self.fetcher = Fetcher(
                url or LIVEPEER_SUBGRAPH_URL,
                RewardEventsData,
                timeout=timeout,
                client=client,
            )

    async def fetch(self) -> Any:
        if self.source == SOURCE_LEGACY:
            return await self.fetcher.fetch_with_body(LEGACY_REQUEST_BODY)
        return await self.fetcher.fetch_graphql(self.query)

    def to_events(self, payload: Any) -> List[Event]:
        if self.source == SOURCE_LEGACY:
            return self._legacy_events(payload)

        events = []
        for reward in payload.reward_events:
            tx = reward.transaction
            if not tx.id:
                logger.warning("Skipping reward event without a transaction id")
                continue
            events.append(
                Event(
                    tx_id=tx.id,
                    amount=optional_float(reward.reward_tokens),
                    timestamp=optional_float(tx.timestamp),
                    block_number=optional_float(tx.block_number),
                    round=optional_float(reward.round.id if reward.round else None),
                    gas_used=optional_float(tx.gas_used),
                    gas_price=optional_float(tx.gas_price),
                )
            )
        return events

    def _legacy_events(self, transactions: List[LegacyRewardTransaction]) -> List[Event]:
        return [
            Event(
                tx_id=tx.transaction_hash,
                amount=optional_float(tx.amount),
                timestamp=optional_float(tx.block_time),
                block_number=optional_float(tx.block_number),
            )
            for tx in filter_by_address(transactions, self.orch_address)
            if tx.transaction_hash
        ]
