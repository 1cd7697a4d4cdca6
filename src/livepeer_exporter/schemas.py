"""Upstream payload models.

Every model ignores unknown fields and defaults missing ones, so a partial
response still decodes. Numeric values are kept as strings and parsed by the
collectors, where a malformed field only skips that one metric.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
        frozen=True,
    )


class GraphQLError(Payload):
    message: str = ""


class GraphQLEnvelope(Payload):
    data: Optional[dict] = None
    errors: Optional[List[GraphQLError]] = None


class TypenameRef(Payload):
    typename: Optional[str] = Field(None, alias="__typename")


class AccountLookup(Payload):
    transcoder: Optional[TypenameRef] = None
    delegator: Optional[TypenameRef] = None


# Orchestrator info (subgraph).


class RoundRef(Payload):
    id: Optional[str] = None


class Pool(Payload):
    reward_tokens: Optional[str] = None
    round: Optional[RoundRef] = None


class Transcoder(Payload):
    activation_round: Optional[str] = None
    active: Optional[bool] = None
    fee_share: Optional[str] = None
    reward_cut: Optional[str] = None
    last_reward_round: Optional[RoundRef] = None
    ninety_day_volume_eth: Optional[str] = Field(None, alias="ninetyDayVolumeETH")
    thirty_day_volume_eth: Optional[str] = Field(None, alias="thirtyDayVolumeETH")
    total_volume_eth: Optional[str] = Field(None, alias="totalVolumeETH")
    pools: List[Pool] = []


class DelegateRef(Payload):
    total_stake: Optional[str] = None


class Delegator(Payload):
    bonded_amount: Optional[str] = None
    start_round: Optional[str] = None
    withdrawn_fees: Optional[str] = None
    last_claim_round: Optional[RoundRef] = None
    delegate: Optional[DelegateRef] = None


class Protocol(Payload):
    current_round: Optional[RoundRef] = None


class OrchInfoData(Payload):
    transcoder: Optional[Transcoder] = None
    delegator: Optional[Delegator] = None
    protocol: Optional[Protocol] = None
    # Aliased second delegator lookup, only queried when configured.
    secondary: Optional[Delegator] = None


# Orchestrator score (explorer REST).


class OrchScoreData(Payload):
    price_per_pixel: Optional[str] = None
    success_rates: Dict[str, Optional[str]] = {}
    round_trip_scores: Dict[str, Optional[str]] = {}
    scores: Dict[str, Optional[str]] = {}


# Delegators (stronk REST).


class DelegatorEntry(Payload):
    id: str = ""
    bonded_amount: Optional[str] = None
    start_round: Optional[str] = None


class OrchDelegatorsData(Payload):
    delegators: List[DelegatorEntry] = []


# On-chain events (subgraph).


class EventTransaction(Payload):
    id: str = ""
    gas_used: Optional[str] = None
    gas_price: Optional[str] = None
    block_number: Optional[str] = None
    timestamp: Optional[str] = None


class RewardEventEntry(Payload):
    transaction: EventTransaction = EventTransaction()
    round: Optional[RoundRef] = None
    reward_tokens: Optional[str] = None


class RewardEventsData(Payload):
    reward_events: List[RewardEventEntry] = []


class WinningTicketEntry(Payload):
    transaction: EventTransaction = EventTransaction()
    round: Optional[RoundRef] = None
    face_value: Optional[str] = None


class WinningTicketsData(Payload):
    winning_ticket_redeemed_events: List[WinningTicketEntry] = []


# Legacy reward firehose (stronk REST). Every orchestrator's events in one list.


class LegacyRewardTransaction(Payload):
    address: str = ""
    amount: Optional[str] = None
    transaction_hash: str = ""
    block_number: Optional[str] = None
    block_time: Optional[str] = None


# Test streams (leaderboard REST). Keys are snake_case upstream.


class StreamStats(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, frozen=True)

    region: Optional[str] = None
    orchestrator: str = ""
    success_rate: Optional[str] = None
    upload_time: Optional[str] = None
    download_time: Optional[str] = None
    transcode_time: Optional[str] = None
    round_trip_time: Optional[str] = None
    timestamp: Optional[str] = None


# Crypto prices (Coinbase REST).


class ExchangeRates(Payload):
    currency: Optional[str] = None
    rates: Dict[str, Optional[str]] = {}


class ExchangeRatesData(Payload):
    data: ExchangeRates = ExchangeRates()
