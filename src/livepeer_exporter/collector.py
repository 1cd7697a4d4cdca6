"""Periodic fetch/publish engine shared by every metric family.

A collector owns one response buffer guarded by an ``asyncio.Lock`` and runs
two independent loops: the fetch loop replaces the buffer with the latest
upstream payload, the publish loop derives gauge values from it. A failed
fetch keeps the previous buffer, so gauges keep their last published values
until the upstream recovers.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Sequence, Set

from .errors import FetchError
from .metrics import GaugeSpec, MetricsSink, Sample

logger = logging.getLogger(__name__)


class Collector(ABC):
    """Base class for a metric family.

    Subclasses set ``name`` and ``gauge_specs`` and implement ``fetch`` and
    ``derive``.
    """

    name: str = "collector"
    gauge_specs: Sequence[GaugeSpec] = ()

    def __init__(
        self, sink: MetricsSink, fetch_interval: float, publish_interval: float
    ):
        self.sink = sink
        self.fetch_interval = fetch_interval
        self.publish_interval = publish_interval

        self.buffer: Optional[Any] = None
        self.lock = asyncio.Lock()
        self.fetch_errors = 0
        self.running = False

        self._tasks: List[asyncio.Task] = []
        self._warned: Set[str] = set()

        sink.register_all(self.gauge_specs)

    @abstractmethod
    async def fetch(self) -> Any:
        """Fetch and decode one upstream payload. Raises ``FetchError``."""

    @abstractmethod
    def derive(self, payload: Any) -> Iterable[Sample]:
        """Compute the gauge values for ``payload``."""

    async def refresh(self) -> bool:
        """Replace the buffer with a fresh payload. Returns False on failure."""
        async with self.lock:
            try:
                payload = await self.fetch()
            except FetchError as e:
                self.fetch_errors += 1
                logger.warning(f"[{self.name}] fetch failed ({e.kind}): {e}")
                return False
            self.buffer = payload
            return True

    async def publish(self) -> int:
        """Set every gauge from the current buffer. Returns the samples set."""
        async with self.lock:
            if self.buffer is None:
                logger.debug(f"[{self.name}] nothing to publish yet")
                return 0
            try:
                samples = list(self.derive(self.buffer))
            except Exception as e:
                logger.error(f"[{self.name}] failed to derive metrics: {e}")
                return 0
            for sample in samples:
                self.sink.set(sample.name, sample.labels, sample.value)
            return len(samples)

    def warn_once(self, key: str, message: str) -> None:
        """Log ``message`` the first time ``key`` is seen by this collector."""
        if key in self._warned:
            return
        self._warned.add(key)
        logger.warning(f"[{self.name}] {message}")

    async def start(self) -> None:
        """Fetch and publish once, then launch the periodic loops."""
        await self.refresh()
        await self.publish()

        self.running = True
        self._tasks = [
            asyncio.create_task(self._fetch_loop(), name=f"{self.name}-fetch"),
            asyncio.create_task(self._publish_loop(), name=f"{self.name}-publish"),
        ]
        logger.info(
            f"[{self.name}] started (fetch every {self.fetch_interval}s, "
            f"publish every {self.publish_interval}s)"
        )

    async def stop(self) -> None:
        self.running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _fetch_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.fetch_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"[{self.name}] unexpected error in fetch loop: {e}")

    async def _publish_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.publish_interval)
            try:
                await self.publish()
            except Exception as e:
                logger.error(f"[{self.name}] unexpected error in publish loop: {e}")
