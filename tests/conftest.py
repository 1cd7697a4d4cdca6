import json

import httpx
import pytest
from prometheus_client import CollectorRegistry

from livepeer_exporter.metrics import MetricsSink

ORCH = "0xabc0000000000000000000000000000000000001"


@pytest.fixture
def sink():
    """Sink backed by a private registry so tests don't share gauges"""
    return MetricsSink(CollectorRegistry())


def json_response(payload, status_code=200):
    return httpx.Response(status_code, content=json.dumps(payload).encode())


def mock_client(handler):
    """AsyncClient whose requests are answered by ``handler(request)``"""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
