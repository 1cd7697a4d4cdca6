"""Numeric coercion helpers shared by the collectors."""

import logging
import math
from typing import Any, Tuple

logger = logging.getLogger(__name__)

# Pass as ``decimals`` to skip rounding.
NO_ROUNDING = -1

# Upstream cut values are fractions scaled by 1e6.
PERCENTAGE_SCALE = 1e-6


def parse_float(value: Any) -> Tuple[float, bool]:
    """Parse ``value`` as a float.

    Returns ``(value, True)`` on success and ``(0.0, False)`` otherwise. A
    missing value (``None``) fails silently, anything else that does not parse
    to a finite number is logged. Never raises.
    """
    if value is None:
        return 0.0, False
    if isinstance(value, bool):
        logger.warning(f"Error parsing value {value!r}: booleans are not numeric")
        return 0.0, False
    try:
        if isinstance(value, (int, float)):
            parsed = float(value)
        else:
            parsed = float(str(value).strip())
    except (ValueError, OverflowError) as e:
        logger.warning(f"Error parsing value {value!r}: {e}")
        return 0.0, False
    if not math.isfinite(parsed):
        logger.warning(f"Error parsing value {value!r}: not a finite number")
        return 0.0, False
    return parsed, True


def bool_to_float(value: Any) -> float:
    """Map a truthy flag to 1.0 and anything else to 0.0."""
    return 1.0 if value else 0.0


def round_to(value: float, decimals: int) -> float:
    """Round ``value`` to ``decimals`` places, half away from zero.

    A negative ``decimals`` returns the value unchanged.
    """
    if decimals < 0 or math.isnan(value) or math.isinf(value):
        return value
    shift = 10.0**decimals
    return math.copysign(math.floor(abs(value) * shift + 0.5), value) / shift


def assign_parsed(dest: Any, attr: str, source: Any, decimals: int = NO_ROUNDING) -> bool:
    """Parse ``source`` and store it on ``dest.attr``.

    On failure ``dest`` is left untouched so a single malformed field cannot
    abort the rest of a metrics update.
    """
    value, ok = parse_float(source)
    if not ok:
        if source is not None:
            logger.warning(f"Keeping previous value of '{attr}', could not parse {source!r}")
        return False
    setattr(dest, attr, round_to(value, decimals))
    return True


def reward_cut(raw: float) -> float:
    """Share of the block reward kept by the orchestrator."""
    return round_to(raw * PERCENTAGE_SCALE, 2)


def fee_cut(raw: float) -> float:
    """Share of the fees kept by the orchestrator.

    The upstream value is the share passed on to delegators, hence the
    complement.
    """
    return round_to(1 - raw * PERCENTAGE_SCALE, 2)
