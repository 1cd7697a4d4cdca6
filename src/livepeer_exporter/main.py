"""Livepeer exporter entry point.

Fetches orchestrator metrics from several Livepeer endpoints and exposes them
on ``/metrics`` for Prometheus to scrape. See ``config.py`` for the
environment variables it reads.
"""

import asyncio
import logging
import sys
from typing import List, Optional

try:
    import uvloop

    if sys.platform != "win32":
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
except ImportError:
    pass

import httpx

from .collector import Collector
from .collectors.crypto_prices import CryptoPricesCollector
from .collectors.orch_delegators import OrchDelegatorsCollector
from .collectors.orch_info import OrchInfoCollector
from .collectors.orch_rewards import SOURCE_LEGACY, OrchRewardsCollector
from .collectors.orch_score import OrchScoreCollector
from .collectors.orch_test_streams import OrchTestStreamsCollector
from .collectors.orch_tickets import OrchTicketsCollector
from .config import Settings, load_settings
from .errors import ConfigError, FetchError
from .fetcher import is_delegator, is_orchestrator
from .metrics import MetricsSink, serve
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)

SERVICE_NAME = "livepeer_exporter"
VERSION = "0.1.0"


async def validate_addresses(settings: Settings, client: httpx.AsyncClient) -> None:
    """Raise ``ConfigError`` unless the configured addresses are what they claim."""
    try:
        if not await is_orchestrator(settings.orch_address, settings.subgraph_url, client):
            raise ConfigError(f"'{settings.orch_address}' is not a Livepeer orchestrator")
        if settings.orch_address_secondary and not await is_delegator(
            settings.orch_address_secondary, settings.subgraph_url, client
        ):
            raise ConfigError(
                f"'{settings.orch_address_secondary}' is not a Livepeer delegator"
            )
    except FetchError as e:
        raise ConfigError(f"failed to validate orchestrator address: {e}") from e


def build_collectors(
    settings: Settings, sink: MetricsSink, client: Optional[httpx.AsyncClient] = None
) -> List[Collector]:
    timeout = httpx.Timeout(settings.request_timeout, connect=min(4.0, settings.request_timeout))
    intervals = settings.intervals
    address = settings.orch_address

    def common(family: str) -> dict:
        return {
            "fetch_interval": intervals[family].fetch,
            "publish_interval": intervals[family].publish,
            "client": client,
            "timeout": timeout,
        }

    if settings.rewards_source == SOURCE_LEGACY:
        rewards_url = f"{settings.stronk_url.rstrip('/')}/getAllRewardEvents"
    else:
        rewards_url = settings.subgraph_url

    return [
        OrchInfoCollector(
            sink,
            address,
            orch_address_secondary=settings.orch_address_secondary,
            url=settings.subgraph_url,
            **common("orch_info"),
        ),
        OrchScoreCollector(
            sink, address, base_url=settings.explorer_url, **common("orch_score")
        ),
        OrchDelegatorsCollector(
            sink, address, base_url=settings.stronk_url, **common("orch_delegators")
        ),
        OrchRewardsCollector(
            sink,
            address,
            source=settings.rewards_source,
            url=rewards_url,
            **common("orch_rewards"),
        ),
        OrchTicketsCollector(
            sink, address, url=settings.subgraph_url, **common("orch_tickets")
        ),
        OrchTestStreamsCollector(
            sink, address, url=settings.leaderboard_url, **common("orch_test_streams")
        ),
        CryptoPricesCollector(sink, url=settings.coinbase_url, **common("crypto_prices")),
    ]


async def run(settings: Settings, sink: Optional[MetricsSink] = None) -> None:
    """Validate, start every collector and serve metrics until cancelled."""
    sink = sink or MetricsSink()

    async with httpx.AsyncClient() as client:
        await validate_addresses(settings, client)

        logger.info("Setting up collectors...")
        collectors = build_collectors(settings, sink, client)

        try:
            logger.info("Starting collectors...")
            await asyncio.gather(*(collector.start() for collector in collectors))

            logger.info("Exposing metrics via HTTP...")
            try:
                serve(settings.metrics_port, sink.registry)
            except OSError as e:
                raise ConfigError(
                    f"failed to bind metrics server on port {settings.metrics_port}: {e}"
                ) from e

            await asyncio.Event().wait()
        finally:
            await asyncio.gather(*(collector.stop() for collector in collectors))
            logger.info("Collectors stopped")


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging(SERVICE_NAME)
        logger.error(str(e))
        return 1

    setup_logging(SERVICE_NAME, settings.log_level, settings.log_format)
    logger.info(
        "Starting Livepeer exporter...",
        extra={
            "extra_fields": {
                "version": VERSION,
                "orchestrator": settings.orch_address,
                "secondary": settings.orch_address_secondary or None,
                "rewards_source": settings.rewards_source,
                "metrics_port": settings.metrics_port,
                "intervals": {
                    family: {"fetch": i.fetch, "publish": i.publish}
                    for family, i in settings.intervals.items()
                },
                "status": "starting",
            }
        },
    )

    try:
        asyncio.run(run(settings))
    except ConfigError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
