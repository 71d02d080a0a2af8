#!/usr/bin/env python3
"""
Market Data Points

One observed tick of pool market data. Only ts and price are required;
the economic fields may be missing (None or NaN) and the backtest engine
substitutes config defaults for them.
"""

import math
import numbers
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

# camelCase names used by the CSV columns and JSON payloads
FIELD_ALIASES = {
    "ts": "timestamp",
    "price": "price",
    "fees_apr": "feesApr",
    "emissions_apr": "emissionsApr",
    "liquidity_usd": "liquidityUsd",
    "gas_usd": "gasUsd",
    "volume_usd": "volumeUsd",
    "fee_tier": "feeTier",
}


@dataclass(frozen=True)
class MarketPoint:
    """Single market observation, ts in epoch milliseconds"""
    ts: int
    price: float  # quote per base
    fees_apr: Optional[float] = None
    emissions_apr: Optional[float] = None
    liquidity_usd: Optional[float] = None
    gas_usd: Optional[float] = None
    volume_usd: Optional[float] = None
    fee_tier: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {FIELD_ALIASES[key]: value for key, value in asdict(self).items()}


def is_finite_number(value: Optional[float]) -> bool:
    if value is None or isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)
