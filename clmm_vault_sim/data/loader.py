#!/usr/bin/env python3
"""Market data source dispatch"""

from typing import List

from .csv_loader import load_csv_series
from .market_data import MarketPoint
from .sample_series import generate_sample_series
from .thegraph import load_thegraph_series


def load_series(config) -> List[MarketPoint]:
    """Load the series selected by config.data_source"""
    if config.data_source == "csv":
        return load_csv_series(config.csv_path)

    if config.data_source == "thegraph":
        return load_thegraph_series(config)

    return generate_sample_series(config)
