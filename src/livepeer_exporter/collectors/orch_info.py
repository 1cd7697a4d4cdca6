"""Orchestrator account info (Livepeer subgraph)."""

import logging
import math
from dataclasses import dataclass, fields
from typing import Iterable, List, Optional

import httpx

from ..collector import Collector
from ..fetcher import DEFAULT_TIMEOUT, LIVEPEER_SUBGRAPH_URL, Fetcher
from ..metrics import GaugeSpec, MetricsSink, Sample
from ..schemas import OrchInfoData
from ..utils.numeric import (
    assign_parsed,
    bool_to_float,
    fee_cut,
    parse_float,
    reward_cut,
)

logger = logging.getLogger(__name__)

# Rounds looked back over for the reward call ratio.
REWARD_CALL_WINDOW = 30

TRANSCODER_FIELDS = """
    activationRound
    active
    feeShare
    rewardCut
    lastRewardRound {{ id }}
    ninetyDayVolumeETH
    thirtyDayVolumeETH
    totalVolumeETH
    pools(first: {pools}, orderBy: id, orderDirection: desc) {{
      rewardTokens
      round {{ id }}
    }}
"""

GRAPHQL_QUERY_TEMPLATE = (
    """
{{
  transcoder(id: "{address}") {{"""
    + TRANSCODER_FIELDS
    + """  }}
  delegator(id: "{address}") {{
    bondedAmount
    startRound
    withdrawnFees
    lastClaimRound {{ id }}
    delegate {{ totalStake }}
  }}
  protocol(id: "0") {{
    currentRound {{ id }}
  }}{secondary}
}}
"""
)

SECONDARY_QUERY_TEMPLATE = """
  secondary: delegator(id: "{address}") {{
    bondedAmount
  }}"""


@dataclass
class OrchInfo:
    """Parsed orchestrator values. Kept between ticks so a field that fails
    to parse keeps its previous value."""

    bonded_amount: float = 0.0
    total_stake: float = 0.0
    last_claim_round: float = 0.0
    start_round: float = 0.0
    withdrawn_fees: float = 0.0
    current_round: float = 0.0
    activation_round: float = 0.0
    active: float = 0.0
    fee_cut: float = 0.0
    reward_cut: float = 0.0
    last_reward_round: float = 0.0
    ninety_day_volume_eth: float = 0.0
    thirty_day_volume_eth: float = 0.0
    total_volume_eth: float = 0.0
    total_reward: float = 0.0
    orch_stake: float = 0.0
    reward_call_ratio: float = 0.0


METRIC_NAMES = {
    "orch_stake": "livepeer_orch_stake",
}

GAUGE_DOCS = {
    "bonded_amount": "The amount of LPT bonded to the orchestrator.",
    "total_stake": "The total stake of the orchestrator in LPT.",
    "last_claim_round": "The last round the orchestrator claimed fees.",
    "start_round": "The round the orchestrator registered.",
    "withdrawn_fees": "The amount of fees the orchestrator has withdrawn.",
    "current_round": "The current round.",
    "activation_round": "The round the orchestrator activated.",
    "active": "Whether the orchestrator is active.",
    "fee_cut": "The proportion of the fees the orchestrator takes.",
    "reward_cut": "The proportion of the block reward the orchestrator takes.",
    "last_reward_round": "The last round the orchestrator received a reward.",
    "ninety_day_volume_eth": "The 90 day volume of ETH.",
    "thirty_day_volume_eth": "The 30 day volume of ETH.",
    "total_volume_eth": "The total volume of ETH.",
    "total_reward": "The reward tokens earned over the recent reward pools.",
    "orch_stake": "The stake provided by the orchestrator.",
    "reward_call_ratio": "Ratio of reward calls to active rounds in the last 30 rounds.",
}


def metric_name(attr: str) -> str:
    return METRIC_NAMES.get(attr, f"livepeer_orch_{attr}")


def reward_call_ratio(
    claimed_rounds: Iterable[int],
    current_round: int,
    activation_round: int,
    window: int = REWARD_CALL_WINDOW,
) -> float:
    """Share of the recent rounds the orchestrator called reward in.

    The window starts at the later of the activation round and
    ``current_round - window``, so recently activated orchestrators are only
    measured over the rounds they could have claimed in. Claims are counted
    for rounds after the start of the window up to the current round.
    """
    lower = max(activation_round, current_round - window)
    total_rounds = current_round - lower + 1
    if total_rounds <= 0:
        return 0.0
    rewarded = {r for r in claimed_rounds if lower < r <= current_round}
    return len(rewarded) / total_rounds


class OrchInfoCollector(Collector):
    name = "orch_info"
    gauge_specs = tuple(
        GaugeSpec(metric_name(f.name), GAUGE_DOCS[f.name]) for f in fields(OrchInfo)
    )

    def __init__(
        self,
        sink: MetricsSink,
        orch_address: str,
        fetch_interval: float,
        publish_interval: float,
        orch_address_secondary: str = "",
        url: str = LIVEPEER_SUBGRAPH_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        super().__init__(sink, fetch_interval, publish_interval)
        self.orch_address = orch_address
        self.orch_address_secondary = orch_address_secondary
        self.info = OrchInfo()

        secondary = ""
        if orch_address_secondary:
            secondary = SECONDARY_QUERY_TEMPLATE.format(address=orch_address_secondary)
        self.query = GRAPHQL_QUERY_TEMPLATE.format(
            address=orch_address, pools=REWARD_CALL_WINDOW + 1, secondary=secondary
        )
        self.fetcher = Fetcher(url, OrchInfoData, timeout=timeout, client=client)

    async def fetch(self) -> OrchInfoData:
        return await self.fetcher.fetch_graphql(self.query)

    def parse(self, payload: OrchInfoData) -> OrchInfo:
        """Update ``self.info`` from ``payload``; unparsable fields are skipped."""
        info = self.info

        delegator = payload.delegator
        if delegator is not None:
            assign_parsed(info, "bonded_amount", delegator.bonded_amount)
            if delegator.delegate is not None:
                assign_parsed(info, "total_stake", delegator.delegate.total_stake)
            if delegator.last_claim_round is not None:
                assign_parsed(info, "last_claim_round", delegator.last_claim_round.id)
            assign_parsed(info, "start_round", delegator.start_round)
            assign_parsed(info, "withdrawn_fees", delegator.withdrawn_fees)
        else:
            self.warn_once("no-delegator", f"No delegator record for {self.orch_address}")

        protocol = payload.protocol
        if protocol is not None and protocol.current_round is not None:
            assign_parsed(info, "current_round", protocol.current_round.id)

        transcoder = payload.transcoder
        if transcoder is not None:
            self._parse_transcoder(info, transcoder)
        else:
            self.warn_once("no-transcoder", f"No transcoder record for {self.orch_address}")

        self._parse_stake(info, payload)
        return info

    def _parse_transcoder(self, info: OrchInfo, transcoder) -> None:
        assign_parsed(info, "activation_round", transcoder.activation_round)
        info.active = bool_to_float(transcoder.active)

        raw, ok = parse_float(transcoder.fee_share)
        if ok:
            info.fee_cut = fee_cut(raw)
        raw, ok = parse_float(transcoder.reward_cut)
        if ok:
            info.reward_cut = reward_cut(raw)

        if transcoder.last_reward_round is not None:
            assign_parsed(info, "last_reward_round", transcoder.last_reward_round.id)
        assign_parsed(info, "ninety_day_volume_eth", transcoder.ninety_day_volume_eth)
        assign_parsed(info, "thirty_day_volume_eth", transcoder.thirty_day_volume_eth)
        assign_parsed(info, "total_volume_eth", transcoder.total_volume_eth)

        total_reward = 0.0
        claimed_rounds: List[int] = []
        for pool in transcoder.pools:
            tokens, ok = parse_float(pool.reward_tokens)
            if not ok:
                continue
            total_reward += tokens
            round_id, ok = parse_float(pool.round.id if pool.round else None)
            if ok:
                claimed_rounds.append(int(round_id))
        info.total_reward = total_reward

        if math.isfinite(info.current_round) and math.isfinite(info.activation_round):
            info.reward_call_ratio = reward_call_ratio(
                claimed_rounds, int(info.current_round), int(info.activation_round)
            )

    def _parse_stake(self, info: OrchInfo, payload: OrchInfoData) -> None:
        bonded = payload.delegator.bonded_amount if payload.delegator else None
        primary, ok = parse_float(bonded)
        if not ok:
            return

        secondary = 0.0
        if self.orch_address_secondary:
            if payload.secondary is None:
                self.warn_once(
                    "no-secondary",
                    f"No delegator record for secondary address "
                    f"{self.orch_address_secondary}, counting its stake as 0",
                )
            else:
                value, ok = parse_float(payload.secondary.bonded_amount)
                if ok:
                    secondary = value
        info.orch_stake = primary + secondary

    def derive(self, payload: OrchInfoData) -> List[Sample]:
        info = self.parse(payload)
        return [
            Sample(metric_name(f.name), getattr(info, f.name)) for f in fields(OrchInfo)
        ]
