import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import ORCH, json_response, mock_client
from livepeer_exporter import main
from livepeer_exporter.collectors.orch_rewards import SOURCE_LEGACY
from livepeer_exporter.config import FAMILIES, load_settings
from livepeer_exporter.errors import ConfigError, FetchError

SECONDARY = "0xdef"


def lookup_handler(transcoder="Transcoder", delegator="Delegator"):
    def handler(request):
        query = json.loads(request.content)["query"]
        if "transcoder" in query:
            ref = {"__typename": transcoder} if transcoder else None
            return json_response({"data": {"transcoder": ref}})
        ref = {"__typename": delegator} if delegator else None
        return json_response({"data": {"delegator": ref}})

    return handler


def test_build_collectors_covers_every_family(sink):
    settings = load_settings({"ORCHESTRATOR_ADDRESS": ORCH, "REWARDS_SOURCE": "legacy"})
    collectors = main.build_collectors(settings, sink)

    assert [c.name for c in collectors] == [
        "orch_info",
        "orch_score",
        "orch_delegators",
        "orch_rewards",
        "orch_tickets",
        "orch_test_streams",
        "crypto_prices",
    ]
    assert set(c.name for c in collectors) == set(FAMILIES)

    rewards = collectors[3]
    assert rewards.source == SOURCE_LEGACY
    assert rewards.fetcher.url == "https://stronk.rocks/api/livepeer/getAllRewardEvents"


@pytest.mark.asyncio
async def test_validate_addresses_accepts_orchestrator():
    settings = load_settings(
        {"ORCHESTRATOR_ADDRESS": ORCH, "ORCHESTRATOR_ADDRESS_SECONDARY": SECONDARY}
    )
    async with mock_client(lookup_handler()) as client:
        await main.validate_addresses(settings, client)


@pytest.mark.asyncio
async def test_validate_addresses_rejects_non_orchestrator():
    settings = load_settings({"ORCHESTRATOR_ADDRESS": ORCH})
    async with mock_client(lookup_handler(transcoder=None)) as client:
        with pytest.raises(ConfigError, match="not a Livepeer orchestrator"):
            await main.validate_addresses(settings, client)


@pytest.mark.asyncio
async def test_validate_addresses_rejects_unknown_secondary():
    settings = load_settings(
        {"ORCHESTRATOR_ADDRESS": ORCH, "ORCHESTRATOR_ADDRESS_SECONDARY": SECONDARY}
    )
    async with mock_client(lookup_handler(delegator=None)) as client:
        with pytest.raises(ConfigError, match="not a Livepeer delegator"):
            await main.validate_addresses(settings, client)


@pytest.mark.asyncio
async def test_validation_fetch_failure_is_fatal():
    settings = load_settings({"ORCHESTRATOR_ADDRESS": ORCH})
    with patch(
        "livepeer_exporter.main.is_orchestrator",
        AsyncMock(side_effect=FetchError(FetchError.TRANSPORT, "http://x", "down")),
    ):
        with pytest.raises(ConfigError):
            await main.validate_addresses(settings, AsyncMock())


@pytest.mark.asyncio
async def test_run_fails_when_port_is_taken(sink):
    settings = load_settings({"ORCHESTRATOR_ADDRESS": ORCH})
    with patch("livepeer_exporter.main.validate_addresses", AsyncMock()), patch(
        "livepeer_exporter.main.build_collectors", return_value=[]
    ), patch("livepeer_exporter.main.serve", side_effect=OSError("address in use")):
        with pytest.raises(ConfigError, match="failed to bind"):
            await asyncio.wait_for(main.run(settings, sink), timeout=5)


def test_main_exits_nonzero_without_address():
    with patch.dict("os.environ", {}, clear=True), patch(
        "livepeer_exporter.main.setup_logging"
    ):
        assert main.main() == 1


def test_main_exits_nonzero_on_fatal_startup_error():
    env = {"ORCHESTRATOR_ADDRESS": ORCH}

    def fail(coro):
        coro.close()
        raise ConfigError("not an orchestrator")

    with patch.dict("os.environ", env, clear=True), patch(
        "livepeer_exporter.main.setup_logging"
    ), patch("livepeer_exporter.main.asyncio.run", side_effect=fail):
        assert main.main() == 1
