"""Winning tickets redeemed by the orchestrator (Livepeer subgraph)."""

import logging
from typing import List, Optional

import httpx

from ..fetcher import DEFAULT_TIMEOUT, LIVEPEER_SUBGRAPH_URL, Fetcher
from ..metrics import MetricsSink
from ..schemas import WinningTicketsData
from ..windows import Event
from .events import EventCollector, event_gauge_specs, optional_float

logger = logging.getLogger(__name__)

CLIENT_ID_TEMPLATE = "livepeer-exporter-{}"

GRAPHQL_QUERY_TEMPLATE = """
{{
  winningTicketRedeemedEvents(
    where: {{recipient: "{address}"}}
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
    faceValue
  }}
}}
"""


class OrchTicketsCollector(EventCollector):
    name = "orch_tickets"
    event_prefix = "livepeer_orch_winning_ticket"
    amount_name = "livepeer_orch_{}_fees"
    gas_name = "livepeer_orch_tickets_{}_gas_cost"
    gauge_specs = event_gauge_specs(
        event_prefix, amount_name, gas_name, "ticket fees"
    )

    def __init__(
        self,
        sink: MetricsSink,
        orch_address: str,
        fetch_interval: float,
        publish_interval: float,
        url: str = LIVEPEER_SUBGRAPH_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        super().__init__(sink, fetch_interval, publish_interval)
        self.orch_address = orch_address
        self.query = GRAPHQL_QUERY_TEMPLATE.format(address=orch_address)
        self.fetcher = Fetcher(
            url,
            WinningTicketsData,
            headers={"X-Device-ID": CLIENT_ID_TEMPLATE.format(orch_address)},
            timeout=timeout,
            client=client,
        )

    async def fetch(self) -> WinningTicketsData:
        return await self.fetcher.fetch_graphql(self.query)

    def to_events(self, payload: WinningTicketsData) -> List[Event]:
        events = []
        for ticket in payload.winning_ticket_redeemed_events:
            tx = ticket.transaction
            if not tx.id:
                logger.warning("Skipping winning ticket without a transaction id")
                continue
            events.append(
                Event(
                    tx_id=tx.id,
                    amount=optional_float(ticket.face_value),
                    timestamp=optional_float(tx.timestamp),
                    block_number=optional_float(tx.block_number),
                    round=optional_float(ticket.round.id if ticket.round else None),
                    gas_used=optional_float(tx.gas_used),
                    gas_price=optional_float(tx.gas_price),
                )
            )
        return events
