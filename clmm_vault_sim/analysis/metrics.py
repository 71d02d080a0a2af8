#!/usr/bin/env python3
"""
Backtest Performance Metrics

Return, drawdown and cost summaries for a finished run, plus pandas views
of the equity curve and action log for analysis.
"""

import math
from collections import Counter
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from ..engine.results import BacktestResult, BacktestSummary, EquityPoint

# Cap on log(annual growth); exp(700) * 100 is still a finite float
MAX_LOG_GROWTH = 700.0


def drawdown_series(values: Sequence[float]) -> np.ndarray:
    """
    Fractional drawdown from the running peak at every point.

    The running peak starts at -inf, so the first point is never a drawdown;
    non-positive peaks count as no drawdown.
    """
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return values
    peaks = np.maximum.accumulate(values)
    safe_peaks = np.where(peaks > 0, peaks, 1.0)
    return np.where(peaks > 0, (peaks - values) / safe_peaks, 0.0)


def compute_max_drawdown(values: Sequence[float]) -> float:
    """Largest drawdown in percent, e.g. [100, 120, 90, 150] -> 25.0"""
    drawdowns = drawdown_series(values)
    if drawdowns.size == 0:
        return 0.0
    return float(max(0.0, drawdowns.max()) * 100)


def annualize_return(total_return_pct: float, days: float) -> float:
    """
    Geometric annualization of a total return over `days`.

    Short windows with large returns saturate at a large finite value
    instead of overflowing.
    """
    if days <= 0:
        return total_return_pct
    growth = 1 + total_return_pct / 100
    if growth <= 0:
        return -100.0
    years = days / 365
    log_growth = min(math.log(growth) / years, MAX_LOG_GROWTH)
    return (math.exp(log_growth) - 1) * 100


def build_summary(
    equity_curve: List[EquityPoint],
    initial_capital_usd: float,
    lookback_days: float,
    totals: Dict[str, float],
    rebalances: int
) -> BacktestSummary:
    """Assemble run statistics from the equity curve and accumulated costs"""
    start_value = equity_curve[0].value_usd if equity_curve else initial_capital_usd
    end_value = equity_curve[-1].value_usd if equity_curve else start_value
    total_return_pct = (end_value - start_value) / start_value * 100

    return BacktestSummary(
        start_value_usd=start_value,
        end_value_usd=end_value,
        total_return_pct=total_return_pct,
        annualized_return_pct=annualize_return(total_return_pct, lookback_days),
        fees_usd=totals.get("fees_usd", 0.0),
        emissions_usd=totals.get("emissions_usd", 0.0),
        gas_usd=totals.get("gas_usd", 0.0),
        mev_usd=totals.get("mev_usd", 0.0),
        slippage_usd=totals.get("slippage_usd", 0.0),
        rebalances=rebalances,
        max_drawdown_pct=compute_max_drawdown([point.value_usd for point in equity_curve]),
    )


def equity_curve_frame(result: BacktestResult) -> pd.DataFrame:
    """Equity curve indexed by UTC timestamp, with drawdown in percent"""
    df = pd.DataFrame(
        [point.to_dict() for point in result.equity_curve],
        columns=["ts", "valueUsd", "price"],
    )
    df["time"] = pd.to_datetime(df["ts"], unit="ms", utc=True)
    df["drawdownPct"] = drawdown_series(df["valueUsd"].to_numpy()) * 100
    return df.set_index("time")


def actions_frame(result: BacktestResult) -> pd.DataFrame:
    """Action log as a DataFrame; action lists are joined with '+'"""
    rows = []
    for entry in result.actions:
        row = entry.to_dict()
        row["actions"] = "+".join(entry.actions)
        rows.append(row)
    df = pd.DataFrame(rows, columns=["ts", "strategy", "reason", "actions", "gasUsd", "mevUsd"])
    df["time"] = pd.to_datetime(df["ts"], unit="ms", utc=True)
    return df


def action_breakdown(result: BacktestResult) -> Dict[str, int]:
    """Number of applied decisions per strategy"""
    return dict(Counter(entry.strategy for entry in result.actions))
