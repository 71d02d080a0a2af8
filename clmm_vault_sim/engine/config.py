#!/usr/bin/env python3
"""
Backtest Configuration

Simple attribute-based configuration classes instead of schema libraries.
Config files are JSON with camelCase keys (snake_case is accepted too);
anything not given falls back to the defaults assigned in __init__.
"""

import json
import os
import re
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.pool import PoolType
from ..strategies.base_strategy import RebalanceParams

DEFAULT_CONFIG_PATH = Path("config") / "backtest.json"
DATA_SOURCES = ("sample", "csv", "thegraph")

# 2024-01-01T00:00:00Z, fixed so sample series are reproducible
DEFAULT_SAMPLE_START_MS = 1_704_067_200_000


def _snake(key: str) -> str:
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _apply_section(target: Any, raw: Dict[str, Any], section: str):
    """Assign raw[key] onto target's existing attributes, rejecting unknown keys"""
    for key, value in raw.items():
        attr = _snake(key)
        if attr not in vars(target):
            raise ValueError(f"Unknown {section} option: {key}")
        setattr(target, attr, value)


class SampleConfig:
    """Synthetic series generator settings"""

    def __init__(self):
        self.start_price = 1800.0
        self.vol_daily = 0.04  # 4% daily volatility
        self.drift_daily = 0.0
        self.seed = 42
        self.start_ms = DEFAULT_SAMPLE_START_MS
        self.fee_tier = 0.003  # 0.3% pool


class WindowConfig:
    """Rolling statistics windows"""

    def __init__(self):
        self.vol_days = 7.0
        self.twap_short_hours = 6.0
        self.twap_long_hours = 48.0


class TheGraphConfig:
    """The Graph gateway settings for historical pool data"""

    def __init__(self):
        self.api_key = ""
        self.pool_address = ""
        self.subgraph_id: Optional[str] = None
        self.start_timestamp: Optional[int] = None  # unix seconds
        self.end_timestamp: Optional[int] = None


class BacktestConfig:
    """Backtest run configuration"""

    def __init__(self):
        # Pool
        self.pool_type = PoolType.CL.value
        self.symbol = "WETH/USDC"

        # Time grid
        self.time_step_minutes = 60
        self.lookback_days = 30

        # Vault
        self.initial_capital_usd = 10_000.0

        # Defaults substituted for missing per-tick fields
        self.fees_apr = 0.2
        self.emissions_apr = 0.2
        self.liquidity_usd = 10_000_000.0
        self.gas_usd = 0.6

        # Market data
        self.data_source = "sample"
        self.csv_path: Optional[str] = None
        self.sample = SampleConfig()
        self.the_graph: Optional[TheGraphConfig] = None

        self.windows = WindowConfig()
        self.rebalance_params = RebalanceParams()

        # Progress output
        self.verbose = False

    @property
    def pool_type_enum(self) -> PoolType:
        return PoolType(self.pool_type)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BacktestConfig":
        """Merge a (partial) mapping over the defaults"""
        config = cls()
        for key, value in raw.items():
            attr = _snake(key)
            if attr == "sample":
                _apply_section(config.sample, value or {}, "sample")
            elif attr == "windows":
                _apply_section(config.windows, value or {}, "windows")
            elif attr == "the_graph":
                if value is not None:
                    config.the_graph = TheGraphConfig()
                    _apply_section(config.the_graph, value, "theGraph")
            elif attr == "rebalance_params":
                config.rebalance_params = _merge_params(config.rebalance_params, value or {})
            elif attr in vars(config):
                setattr(config, attr, value)
            else:
                raise ValueError(f"Unknown config option: {key}")

        config.fill_from_env()
        config.validate()
        return config

    def fill_from_env(self):
        """Fill absent The Graph credentials from the environment"""
        if self.the_graph is None:
            return
        if not self.the_graph.api_key:
            self.the_graph.api_key = os.environ.get("THEGRAPH_API_KEY", "")
        if not self.the_graph.subgraph_id:
            self.the_graph.subgraph_id = os.environ.get("THEGRAPH_SUBGRAPH_ID") or None

    def validate(self):
        valid_pool_types = [pool_type.value for pool_type in PoolType]
        if self.pool_type not in valid_pool_types:
            raise ValueError(f"pool_type must be one of {valid_pool_types}, got {self.pool_type!r}")
        if self.data_source not in DATA_SOURCES:
            raise ValueError(f"data_source must be one of {list(DATA_SOURCES)}, got {self.data_source!r}")
        if self.time_step_minutes <= 0:
            raise ValueError("time_step_minutes must be positive")
        if self.initial_capital_usd <= 0:
            raise ValueError("initial_capital_usd must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready mapping with camelCase keys"""
        return {
            "poolType": self.pool_type,
            "symbol": self.symbol,
            "timeStepMinutes": self.time_step_minutes,
            "lookbackDays": self.lookback_days,
            "initialCapitalUsd": self.initial_capital_usd,
            "feesApr": self.fees_apr,
            "emissionsApr": self.emissions_apr,
            "liquidityUsd": self.liquidity_usd,
            "gasUsd": self.gas_usd,
            "dataSource": self.data_source,
            "csvPath": self.csv_path,
            "sample": _section_dict(self.sample),
            "theGraph": _section_dict(self.the_graph) if self.the_graph else None,
            "windows": _section_dict(self.windows),
            "rebalanceParams": {
                _camel(f.name): getattr(self.rebalance_params, f.name)
                for f in fields(self.rebalance_params)
            },
            "verbose": self.verbose,
        }


def _section_dict(section: Any) -> Dict[str, Any]:
    return {_camel(key): value for key, value in vars(section).items()}


def _merge_params(params: RebalanceParams, raw: Dict[str, Any]) -> RebalanceParams:
    known = set(RebalanceParams.field_names())
    updates = {}
    for key, value in raw.items():
        attr = _snake(key)
        if attr not in known:
            raise ValueError(f"Unknown rebalanceParams option: {key}")
        updates[attr] = value
    return replace(params, **updates)


def load_config(path: Optional[str] = None) -> BacktestConfig:
    """
    Load configuration from JSON.

    Resolution order: explicit path, CONFIG_PATH environment variable,
    config/backtest.json. A missing file yields the defaults.
    """
    config_path = Path(path or os.environ.get("CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        config = BacktestConfig()
        config.fill_from_env()
        return config

    with open(config_path, "r") as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_path} must contain a JSON object")

    return BacktestConfig.from_dict(raw)
