"""Prometheus gauge registry shared by all collectors."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from prometheus_client import REGISTRY, CollectorRegistry, Gauge, start_http_server

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 9153


@dataclass(frozen=True)
class GaugeSpec:
    name: str
    documentation: str
    labelnames: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Sample:
    """One gauge value produced by a collector on a publish tick."""

    name: str
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


class MetricsSink:
    """Owns the gauges and hands out ``set(name, labels, value)``.

    Scraping reads straight from the prometheus_client registry, which is
    safe to do from the exposition thread while collectors write.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        self._gauges: Dict[str, Gauge] = {}

    def register(self, spec: GaugeSpec) -> Gauge:
        if spec.name in self._gauges:
            raise ValueError(f"Gauge {spec.name} is already registered")
        gauge = Gauge(
            spec.name,
            spec.documentation,
            list(spec.labelnames),
            registry=self.registry,
        )
        self._gauges[spec.name] = gauge
        return gauge

    def register_all(self, specs: Sequence[GaugeSpec]) -> None:
        for spec in specs:
            self.register(spec)

    def set(self, name: str, labels: Optional[Dict[str, str]], value: float) -> None:
        gauge = self._gauges[name]
        if labels:
            gauge.labels(**labels).set(value)
        else:
            gauge.set(value)

    def get(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Current value of a gauge, ``None`` if it was never set."""
        return self.registry.get_sample_value(name, labels or {})

    def names(self) -> Tuple[str, ...]:
        return tuple(self._gauges)


def serve(port: int = DEFAULT_METRICS_PORT, registry: Optional[CollectorRegistry] = None):
    """Expose ``GET /metrics`` on ``port``. Raises ``OSError`` if the bind fails."""
    result = start_http_server(port, registry=registry if registry is not None else REGISTRY)
    logger.info(f"Prometheus metrics server started on port {port}")
    return result
