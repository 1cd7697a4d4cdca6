import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from livepeer_exporter.collector import Collector
from livepeer_exporter.errors import FetchError
from livepeer_exporter.metrics import GaugeSpec, Sample


class PairCollector(Collector):
    """Publishes two gauges that must always carry the same value"""

    name = "pair"
    gauge_specs = (
        GaugeSpec("test_pair_left", "Left half."),
        GaugeSpec("test_pair_right", "Right half."),
    )

    def __init__(self, sink, fetch_interval=60, publish_interval=30):
        super().__init__(sink, fetch_interval, publish_interval)
        self.counter = 0
        self.fetch_mock = None

    async def fetch(self):
        if self.fetch_mock is not None:
            return await self.fetch_mock()
        self.counter += 1
        await asyncio.sleep(0)
        return {"value": float(self.counter)}

    def derive(self, payload):
        return [
            Sample("test_pair_left", payload["value"]),
            Sample("test_pair_right", payload["value"]),
        ]


@pytest.mark.asyncio
async def test_publish_before_first_fetch_is_noop(sink):
    collector = PairCollector(sink)
    assert await collector.publish() == 0
    assert sink.get("test_pair_left") == 0.0


@pytest.mark.asyncio
async def test_refresh_then_publish_sets_gauges(sink):
    collector = PairCollector(sink)

    assert await collector.refresh() is True
    assert await collector.publish() == 2

    assert sink.get("test_pair_left") == 1.0
    assert sink.get("test_pair_right") == 1.0


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_values(sink, caplog):
    """A failed fetch leaves the buffer and the published gauges unchanged"""
    collector = PairCollector(sink)
    await collector.refresh()
    await collector.publish()

    collector.fetch_mock = AsyncMock(
        side_effect=FetchError(FetchError.STATUS, "http://x", "received non-200 status code: 500")
    )
    with caplog.at_level(logging.WARNING):
        assert await collector.refresh() is False
    await collector.publish()

    assert collector.fetch_errors == 1
    assert collector.buffer == {"value": 1.0}
    assert sink.get("test_pair_left") == 1.0
    assert any("fetch failed (status)" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_derive_error_does_not_propagate(sink, caplog):
    collector = PairCollector(sink)
    collector.buffer = {"no-value": 1}

    with caplog.at_level(logging.ERROR):
        assert await collector.publish() == 0
    assert any("failed to derive" in r.getMessage() for r in caplog.records)


def test_warn_once_logs_a_single_time(sink, caplog):
    collector = PairCollector(sink)
    with caplog.at_level(logging.WARNING):
        collector.warn_once("missing", "thing is missing")
        collector.warn_once("missing", "thing is missing")
        collector.warn_once("other", "other thing is missing")

    messages = [r.getMessage() for r in caplog.records]
    assert messages.count("[pair] thing is missing") == 1
    assert len(messages) == 2


def test_duplicate_gauge_registration_fails(sink):
    PairCollector(sink)
    with pytest.raises(ValueError):
        PairCollector(sink)


@pytest.mark.asyncio
async def test_start_publishes_immediately_and_stop_cancels(sink):
    collector = PairCollector(sink, fetch_interval=3600, publish_interval=3600)

    await collector.start()
    try:
        assert sink.get("test_pair_left") == 1.0
        assert collector.running is True
        assert len(collector._tasks) == 2
    finally:
        await collector.stop()

    assert collector.running is False
    assert collector._tasks == []


@pytest.mark.asyncio
async def test_loops_keep_gauges_fresh(sink):
    collector = PairCollector(sink, fetch_interval=0.01, publish_interval=0.005)

    await collector.start()
    await asyncio.sleep(0.1)
    await collector.stop()

    assert collector.counter > 1
    assert sink.get("test_pair_left") > 1.0


@pytest.mark.asyncio
async def test_concurrent_refresh_and_publish_never_tear(sink):
    """Both gauges always come from the same buffer"""
    collector = PairCollector(sink)
    await collector.refresh()
    torn = []

    async def reader():
        for _ in range(200):
            await collector.publish()
            async with collector.lock:
                if sink.get("test_pair_left") != sink.get("test_pair_right"):
                    torn.append(True)
            await asyncio.sleep(0)

    async def writer():
        for _ in range(200):
            await collector.refresh()

    await asyncio.gather(reader(), writer(), reader())

    assert torn == []
    assert collector.counter == 201
