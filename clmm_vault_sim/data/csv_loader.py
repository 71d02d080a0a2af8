#!/usr/bin/env python3
"""
CSV Market Data Loader

Reads a market series from CSV. Required columns: timestamp (epoch ms) and
price. Optional: feesApr, emissionsApr, liquidityUsd, gasUsd, volumeUsd,
feeTier; missing columns or cells are left empty for the engine to default.
"""

import math
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from .market_data import FIELD_ALIASES, MarketPoint

DEFAULT_CSV_PATH = Path("data") / "series.csv"
REQUIRED_COLUMNS = ("timestamp", "price")


def _optional_float(value) -> Optional[float]:
    if pd.isna(value):
        return None
    return float(value)


def load_csv_series(path: Union[str, Path, None] = None) -> List[MarketPoint]:
    """Load MarketPoints from CSV, dropping rows with a non-finite ts or price"""
    csv_path = Path(path) if path else DEFAULT_CSV_PATH
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found at {csv_path}")

    try:
        df = pd.read_csv(csv_path, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        return []

    df.columns = [str(column).strip() for column in df.columns]
    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"CSV must include timestamp and price columns (missing: {', '.join(missing)})")

    numeric = df.apply(pd.to_numeric, errors="coerce")

    optional_fields = {
        field_name: column
        for field_name, column in FIELD_ALIASES.items()
        if column not in REQUIRED_COLUMNS
    }

    points: List[MarketPoint] = []
    for record in numeric.to_dict(orient="records"):
        ts = record["timestamp"]
        price = record["price"]
        if pd.isna(ts) or pd.isna(price) or not math.isfinite(ts) or not math.isfinite(price):
            continue

        values = {
            field_name: _optional_float(record[column])
            for field_name, column in optional_fields.items()
            if column in record
        }
        points.append(MarketPoint(ts=int(ts), price=float(price), **values))

    return points
