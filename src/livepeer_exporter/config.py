"""Environment configuration."""

import os
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .collectors.orch_delegators import STRONK_URL
from .collectors.orch_rewards import SOURCE_GRAPHQL, SOURCES
from .collectors.orch_score import EXPLORER_URL
from .collectors.orch_test_streams import LEADERBOARD_URL
from .collectors.crypto_prices import COINBASE_URL
from .errors import ConfigError
from .fetcher import LIVEPEER_SUBGRAPH_URL
from .metrics import DEFAULT_METRICS_PORT

FETCH_INTERVAL_DEFAULT = 60.0
TEST_STREAMS_FETCH_INTERVAL_DEFAULT = 15 * 60.0
UPDATE_INTERVAL_DEFAULT = 30.0
REQUEST_TIMEOUT_DEFAULT = 10.0

FAMILIES = (
    "orch_info",
    "orch_score",
    "orch_delegators",
    "orch_rewards",
    "orch_tickets",
    "orch_test_streams",
    "crypto_prices",
)

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse a Go style duration (``1m``, ``30s``, ``1h30m``) into seconds.

    A bare number is read as seconds.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _UNITS[match.group(2)]
            pos = match.end()
        if pos != len(text) or pos == 0:
            raise ValueError(f"invalid duration {value!r}")
    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


@dataclass
class Intervals:
    fetch: float
    publish: float


@dataclass
class Settings:
    orch_address: str
    orch_address_secondary: str = ""
    intervals: Dict[str, Intervals] = field(default_factory=dict)
    rewards_source: str = SOURCE_GRAPHQL
    metrics_port: int = DEFAULT_METRICS_PORT
    request_timeout: float = REQUEST_TIMEOUT_DEFAULT
    subgraph_url: str = LIVEPEER_SUBGRAPH_URL
    explorer_url: str = EXPLORER_URL
    stronk_url: str = STRONK_URL
    leaderboard_url: str = LEADERBOARD_URL
    coinbase_url: str = COINBASE_URL
    log_level: str = "INFO"
    log_format: str = "json"


def _duration(env: Mapping[str, str], key: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(key, "")
    if raw == "":
        return default
    try:
        return parse_duration(raw)
    except ValueError as e:
        raise ConfigError(f"failed to parse '{key}' environment variable: {e}") from e


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from ``env`` (``os.environ`` by default).

    Raises ``ConfigError`` when the orchestrator address is missing or a
    value is present but unparsable.
    """
    env = os.environ if env is None else env

    orch_address = env.get("ORCHESTRATOR_ADDRESS", "").strip().lower()
    if not orch_address:
        raise ConfigError("'ORCHESTRATOR_ADDRESS' environment variable should be set")

    fetch_default = _duration(env, "FETCH_INTERVAL", FETCH_INTERVAL_DEFAULT)
    update_default = _duration(env, "UPDATE_INTERVAL", UPDATE_INTERVAL_DEFAULT)
    # The test streams API is slow, so it gets its own default.
    test_streams_default = _duration(
        env, "FETCH_TEST_STREAMS_INTERVAL", TEST_STREAMS_FETCH_INTERVAL_DEFAULT
    )

    intervals = {}
    for family in FAMILIES:
        prefix = family.upper()
        family_fetch = test_streams_default if family == "orch_test_streams" else fetch_default
        intervals[family] = Intervals(
            fetch=_duration(env, f"{prefix}_FETCH_INTERVAL", family_fetch),
            publish=_duration(env, f"{prefix}_UPDATE_INTERVAL", update_default),
        )

    rewards_source = env.get("REWARDS_SOURCE", SOURCE_GRAPHQL).strip().lower()
    if rewards_source not in SOURCES:
        raise ConfigError(
            f"'REWARDS_SOURCE' should be one of {', '.join(SOURCES)}, got '{rewards_source}'"
        )

    port_raw = env.get("METRICS_PORT", str(DEFAULT_METRICS_PORT))
    try:
        metrics_port = int(port_raw)
    except ValueError as e:
        raise ConfigError(f"failed to parse 'METRICS_PORT' environment variable: {e}") from e

    return Settings(
        orch_address=orch_address,
        orch_address_secondary=env.get("ORCHESTRATOR_ADDRESS_SECONDARY", "").strip().lower(),
        intervals=intervals,
        rewards_source=rewards_source,
        metrics_port=metrics_port,
        request_timeout=_duration(env, "REQUEST_TIMEOUT", REQUEST_TIMEOUT_DEFAULT),
        subgraph_url=env.get("LIVEPEER_SUBGRAPH_URL", LIVEPEER_SUBGRAPH_URL),
        explorer_url=env.get("EXPLORER_URL", EXPLORER_URL),
        stronk_url=env.get("STRONK_URL", STRONK_URL),
        leaderboard_url=env.get("LEADERBOARD_URL", LEADERBOARD_URL),
        coinbase_url=env.get("COINBASE_URL", COINBASE_URL),
        log_level=env.get("LOG_LEVEL", "INFO"),
        log_format=env.get("LOG_FORMAT", "json").lower(),
    )
