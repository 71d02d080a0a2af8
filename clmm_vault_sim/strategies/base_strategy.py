#!/usr/bin/env python3
"""
Strategy Interface

Shared types and helpers for the rebalancing strategies. A strategy is a
pure function of (pool snapshot, vault state, params, now) returning a
StrategyDecision; strategies never mutate the vault.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from typing import List, Optional

from ..core.actions import Action, Noop
from ..core.pool import PoolSnapshot
from ..core.v3_math import DEFAULT_AVG_POOL_RANGE_WIDTH
from ..core.vault import ExecutionSettings, VaultState

HOURS_PER_YEAR = 365 * 24


@dataclass(frozen=True)
class RebalanceParams:
    """Strategy tuning constants (immutable for a run)"""
    min_gas_multiple: float = 1.5  # required gain multiple over gas cost
    target_rebalance_hours: float = 12
    band_width_k: float = 1.2  # volatility multiplier
    min_band_width: float = 0.01  # fraction, 0.01 = 1%
    max_band_width: float = 0.25
    drift_threshold: float = 0.03
    trend_threshold: float = 0.006
    max_skew: float = 0.04
    rewards_claim_usd: float = 50.0

    # Optional trading cost assumptions; None disables the cost
    swap_spread_bps: Optional[float] = None
    swap_impact_bps: Optional[float] = None
    mev_bps: Optional[float] = None
    avg_pool_range_width: Optional[float] = None

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def execution_settings(self) -> ExecutionSettings:
        return ExecutionSettings(
            spread_bps=self.swap_spread_bps or 0.0,
            impact_bps=self.swap_impact_bps or 0.0,
            mev_bps=self.mev_bps,
            avg_pool_range_width=(
                self.avg_pool_range_width
                if self.avg_pool_range_width is not None
                else DEFAULT_AVG_POOL_RANGE_WIDTH
            ),
        )


@dataclass(frozen=True)
class StrategyContext:
    """Everything a strategy may look at for one tick"""
    pool: PoolSnapshot
    vault: VaultState
    params: RebalanceParams
    now_ms: int


@dataclass(frozen=True)
class StrategyDecision:
    """
    Result of evaluating a strategy.

    score is the expected net USD gain; -inf means no candidate at all.
    Vetoed decisions keep their score for diagnostics but are not actionable.
    """
    should_rebalance: bool
    score: float
    reason: str
    actions: List[Action] = field(default_factory=list)
    strategy: Optional[str] = None

    @property
    def action_names(self) -> List[str]:
        return [action.name for action in self.actions]


class BaseStrategy(ABC):
    """Minimal strategy interface: a name and a decide() method"""

    name: str = "base"

    @abstractmethod
    def decide(self, ctx: StrategyContext) -> StrategyDecision:
        """Evaluate the strategy against one snapshot"""
        pass


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def vol_to_band_width(vol: float, target_hours: float, k: float) -> float:
    """Half-width of the band: k * sigma over the rebalance horizon"""
    stdev = vol * math.sqrt(target_hours / HOURS_PER_YEAR)
    return k * stdev


def band_width(vol: float, params: RebalanceParams) -> float:
    """Band half-width clamped to [min_band_width, max_band_width]"""
    return clamp(
        vol_to_band_width(vol, params.target_rebalance_hours, params.band_width_k),
        params.min_band_width,
        params.max_band_width,
    )


def estimate_fee_gain(ctx: StrategyContext, capital_usd: float) -> float:
    """Fees plus emissions earned by `capital_usd` over one rebalance horizon"""
    horizon_days = ctx.params.target_rebalance_hours / 24
    fee_gain = capital_usd * ctx.pool.fees_apr * (horizon_days / 365)
    rewards_gain = capital_usd * ctx.pool.emissions_apr * (horizon_days / 365)
    return fee_gain + rewards_gain


def is_worth_rebalance(gas_usd: float, expected_gain_usd: float, multiple: float) -> bool:
    return expected_gain_usd >= gas_usd * multiple


def total_vault_value(ctx: StrategyContext) -> float:
    return ctx.vault.total_value_usd(ctx.pool.price)


def noop_decision(reason: str) -> StrategyDecision:
    """Decision meaning 'nothing to do' (score -inf)"""
    return StrategyDecision(
        should_rebalance=False,
        score=-math.inf,
        reason=reason,
        actions=[Noop()],
    )


def vetoed_decision(score: float, reason: str) -> StrategyDecision:
    """Condition detected but gain does not clear the gas threshold"""
    return StrategyDecision(
        should_rebalance=False,
        score=score,
        reason=reason,
        actions=[Noop()],
    )
