"""
CLMM Vault Backtester

Tick-by-tick simulation of a vault providing concentrated liquidity to an
AMM pool and repositioning itself according to competing rebalancing
strategies.
"""

__version__ = "1.0.0"

# Core components
from .core.actions import VaultAction, Action, RemoveLiquidity, AddLiquidity, Swap, ClaimRewards, Noop
from .core.pool import PoolType, PoolSnapshot
from .core.vault import Position, VaultState, VaultInvariantError

# Strategies
from .strategies.base_strategy import RebalanceParams, StrategyContext, StrategyDecision, BaseStrategy
from .strategies.runner import StrategyRunner, create_default_strategies

# Data
from .data.market_data import MarketPoint

# Engine
from .engine.config import BacktestConfig, load_config
from .engine.results import BacktestResult
from .engine.backtest_engine import BacktestEngine, run_backtest, NoMarketDataError, InvalidMarketDataError

__all__ = [
    # Core
    "VaultAction", "Action", "RemoveLiquidity", "AddLiquidity", "Swap", "ClaimRewards", "Noop",
    "PoolType", "PoolSnapshot", "Position", "VaultState", "VaultInvariantError",

    # Strategies
    "RebalanceParams", "StrategyContext", "StrategyDecision", "BaseStrategy",
    "StrategyRunner", "create_default_strategies",

    # Data
    "MarketPoint",

    # Engine
    "BacktestConfig", "load_config", "BacktestResult",
    "BacktestEngine", "run_backtest", "NoMarketDataError", "InvalidMarketDataError"
]
