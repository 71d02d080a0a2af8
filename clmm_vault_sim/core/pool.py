#!/usr/bin/env python3
"""
Pool Snapshot

Per-tick view of the pool the vault provides liquidity to.
"""

from dataclasses import dataclass
from enum import Enum


class PoolType(Enum):
    """Pool curve types"""
    VOLATILE = "volatile"
    STABLE = "stable"
    CL = "cl"


@dataclass(frozen=True)
class PoolSnapshot:
    """Pool state derived from one market point plus rolling statistics"""
    pool_type: PoolType
    price: float  # quote per base
    twap_short: float
    twap_long: float
    vol: float  # annualized, e.g. 0.7 = 70%
    fees_apr: float
    emissions_apr: float
    liquidity_usd: float
    gas_usd: float  # estimated gas cost of one rebalance

    @property
    def is_concentrated(self) -> bool:
        return self.pool_type == PoolType.CL
