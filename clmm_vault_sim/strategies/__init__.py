"""Rebalancing strategies and the strategy runner"""

from .base_strategy import BaseStrategy, RebalanceParams, StrategyContext, StrategyDecision
from .range_strategies import RangeAroundTWAPStrategy, TrendSkewStrategy
from .inventory_strategies import InventoryTargetStrategy, RewardCompoundStrategy
from .runner import StrategyRunner, create_default_strategies

__all__ = [
    "BaseStrategy", "RebalanceParams", "StrategyContext", "StrategyDecision",
    "RangeAroundTWAPStrategy", "TrendSkewStrategy",
    "InventoryTargetStrategy", "RewardCompoundStrategy",
    "StrategyRunner", "create_default_strategies"
]
