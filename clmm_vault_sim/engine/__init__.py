"""Backtest engine and configuration"""

from .config import BacktestConfig, load_config
from .results import BacktestResult
from .backtest_engine import BacktestEngine, run_backtest

__all__ = ["BacktestConfig", "load_config", "BacktestResult", "BacktestEngine", "run_backtest"]
