import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import ORCH, json_response, mock_client
from livepeer_exporter.collectors.orch_rewards import (
    SOURCE_LEGACY,
    OrchRewardsCollector,
    filter_by_address,
)
from livepeer_exporter.collectors.orch_tickets import OrchTicketsCollector
from livepeer_exporter.schemas import (
    LegacyRewardTransaction,
    RewardEventsData,
    WinningTicketsData,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def ts(**kwargs) -> str:
    return str(int((NOW - timedelta(**kwargs)).timestamp()))


def as_dict(samples):
    return {(s.name, tuple(sorted(s.labels.items()))): s.value for s in samples}


def ticket(tx_id, face_value, timestamp, gas_used="100000", gas_price="1000000000"):
    return {
        "transaction": {
            "id": tx_id,
            "gasUsed": gas_used,
            "gasPrice": gas_price,
            "blockNumber": "123",
            "timestamp": timestamp,
        },
        "round": {"id": "3000"},
        "faceValue": face_value,
    }


def test_ticket_samples_and_period_sums(sink):
    payload = WinningTicketsData.model_validate(
        {
            "winningTicketRedeemedEvents": [
                ticket("0x1", "0.25", ts(hours=2)),
                ticket("0x2", "0.5", ts(days=2)),
                ticket("0x3", "1", ts(days=200)),
            ]
        }
    )
    c = OrchTicketsCollector(sink, ORCH, 60, 30)
    values = as_dict(c.derive(payload, now=NOW))

    assert values[("livepeer_orch_winning_ticket_amount", (("id", "0x1"),))] == 0.25
    assert values[("livepeer_orch_winning_ticket_gas_cost", (("id", "0x1"),))] == 100000.0
    assert values[("livepeer_orch_winning_ticket_round", (("id", "0x1"),))] == 3000.0
    assert values[("livepeer_orch_winning_ticket_block_time", (("id", "0x2"),))] == float(
        ts(days=2)
    ) * 1000

    assert values[("livepeer_orch_day_fees", ())] == 0.25
    assert values[("livepeer_orch_week_fees", ())] == 0.75
    assert values[("livepeer_orch_thirty_day_fees", ())] == 0.75
    assert values[("livepeer_orch_year_fees", ())] == 1.75
    assert values[("livepeer_orch_total_fees", ())] == 1.75
    assert values[("livepeer_orch_tickets_total_gas_cost", ())] == 300000.0


def test_tickets_without_transaction_id_are_skipped(sink):
    payload = WinningTicketsData.model_validate(
        {"winningTicketRedeemedEvents": [ticket("", "1", ts(hours=1))]}
    )
    c = OrchTicketsCollector(sink, ORCH, 60, 30)
    values = as_dict(c.derive(payload, now=NOW))

    assert values[("livepeer_orch_total_fees", ())] == 0.0
    assert not any(name == "livepeer_orch_winning_ticket_amount" for name, _ in values)


@pytest.mark.asyncio
async def test_tickets_request_carries_client_id(sink):
    def handler(request):
        assert request.headers["x-device-id"] == f"livepeer-exporter-{ORCH}"
        assert f'recipient: "{ORCH}"' in json.loads(request.content)["query"]
        return json_response({"data": {"winningTicketRedeemedEvents": []}})

    async with mock_client(handler) as client:
        c = OrchTicketsCollector(sink, ORCH, 60, 30, client=client)
        assert await c.refresh() is True
        assert await c.publish() == 12

    assert sink.get("livepeer_orch_total_fees") == 0.0


def test_reward_events_graphql(sink):
    payload = RewardEventsData.model_validate(
        {
            "rewardEvents": [
                {
                    "transaction": {
                        "id": "0xr1",
                        "gasUsed": "200000",
                        "gasPrice": "10000000",
                        "blockNumber": "42",
                        "timestamp": ts(hours=5),
                    },
                    "round": {"id": "3001"},
                    "rewardTokens": "12.5",
                }
            ]
        }
    )
    c = OrchRewardsCollector(sink, ORCH, 60, 30)
    values = as_dict(c.derive(payload, now=NOW))

    assert values[("livepeer_orch_reward_amount", (("id", "0xr1"),))] == 12.5
    assert values[("livepeer_orch_reward_gas_cost", (("id", "0xr1"),))] == 2000.0
    assert values[("livepeer_orch_day_rewards", ())] == 12.5
    assert values[("livepeer_orch_rewards_day_gas_cost", ())] == 2000.0


def test_filter_by_address_is_case_insensitive():
    rows = [
        LegacyRewardTransaction(address=ORCH.upper().replace("0X", "0x"), transaction_hash="0x1"),
        LegacyRewardTransaction(address="0xother", transaction_hash="0x2"),
    ]
    assert [tx.transaction_hash for tx in filter_by_address(rows, ORCH)] == ["0x1"]


@pytest.mark.asyncio
async def test_legacy_source_filters_firehose(sink):
    rows = [
        {"address": ORCH, "amount": "3", "transactionHash": "0x1", "blockNumber": 7, "blockTime": ts(hours=1)},
        {"address": "0xother", "amount": "100", "transactionHash": "0x2", "blockTime": ts(hours=1)},
    ]

    def handler(request):
        assert request.method == "POST"
        assert request.content == b'{"smartUpdate":false}'
        return json_response(rows)

    async with mock_client(handler) as client:
        c = OrchRewardsCollector(sink, ORCH, 60, 30, source=SOURCE_LEGACY, client=client)
        await c.refresh()
        await c.publish()

    assert sink.get("livepeer_orch_total_rewards") == 3.0
    assert sink.get("livepeer_orch_reward_amount", {"id": "0x1"}) == 3.0
    assert sink.get("livepeer_orch_reward_amount", {"id": "0x2"}) is None


def test_unknown_rewards_source(sink):
    with pytest.raises(ValueError):
        OrchRewardsCollector(sink, ORCH, 60, 30, source="rest")
