#!/usr/bin/env python3
"""
Strategy Runner

Evaluates every registered strategy against the same context and keeps the
actionable decision with the strictly greatest score. Ties keep the first
strategy in registration order, so the default order below is also the
tie-break rule: range-around-twap, trend-skew, inventory-target,
reward-compound.
"""

from dataclasses import replace
from typing import List, Optional

from .base_strategy import BaseStrategy, StrategyContext, StrategyDecision, noop_decision
from .inventory_strategies import InventoryTargetStrategy, RewardCompoundStrategy
from .range_strategies import RangeAroundTWAPStrategy, TrendSkewStrategy


def create_default_strategies() -> List[BaseStrategy]:
    """Default strategy list, in tie-break order"""
    return [
        RangeAroundTWAPStrategy(),
        TrendSkewStrategy(),
        InventoryTargetStrategy(),
        RewardCompoundStrategy(),
    ]


class StrategyRunner:
    """Picks the best actionable decision across strategies"""

    def __init__(self, strategies: Optional[List[BaseStrategy]] = None):
        self.strategies = list(strategies) if strategies is not None else create_default_strategies()

    def evaluate_all(self, ctx: StrategyContext) -> List[StrategyDecision]:
        """Every strategy's decision, tagged with its name (diagnostics)"""
        return [replace(strategy.decide(ctx), strategy=strategy.name) for strategy in self.strategies]

    def pick_best(self, ctx: StrategyContext) -> StrategyDecision:
        best = noop_decision("No strategies")
        for strategy in self.strategies:
            decision = strategy.decide(ctx)
            if decision.should_rebalance and decision.score > best.score:
                best = replace(decision, strategy=strategy.name)
        return best
