#!/usr/bin/env python3
"""
Rolling Market Statistics

Trailing TWAP and realized volatility over the price history seen so far.
"""

import math
from typing import List, Sequence

import numpy as np

MINUTES_PER_YEAR = 365 * 24 * 60
MINUTES_PER_DAY = 24 * 60


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def window_steps(window_minutes: float, step_minutes: float) -> int:
    """Number of ticks covering a window, at least 2"""
    return max(2, _round_half_up(window_minutes / step_minutes))


def compute_twap(prices: Sequence[float], window: int) -> float:
    """Simple mean of the last `window` prices (clipped to available history)"""
    if len(prices) == 0:
        return 0.0
    tail = np.asarray(prices[-window:], dtype=float)
    return float(tail.mean())


def compute_annualized_vol(returns: Sequence[float], window: int, step_minutes: float) -> float:
    """
    Sample standard deviation of the last `window` log returns, annualized
    by sqrt(ticks per year). Fewer than two returns gives 0.
    """
    if len(returns) < 2:
        return 0.0
    tail = np.asarray(returns[-window:], dtype=float)
    if tail.size < 2:
        return 0.0
    stdev = float(np.std(tail, ddof=1))
    return stdev * math.sqrt(MINUTES_PER_YEAR / step_minutes)


class RollingStats:
    """Accumulates prices and log returns tick by tick"""

    def __init__(self, step_minutes: float, vol_days: float, twap_short_hours: float, twap_long_hours: float):
        self.step_minutes = step_minutes
        self.vol_window = window_steps(vol_days * MINUTES_PER_DAY, step_minutes)
        self.twap_short_window = window_steps(twap_short_hours * 60, step_minutes)
        self.twap_long_window = window_steps(twap_long_hours * 60, step_minutes)

        self.prices: List[float] = []
        self.returns: List[float] = []

    def push(self, price: float):
        if self.prices:
            self.returns.append(math.log(price / self.prices[-1]))
        self.prices.append(price)

    @property
    def vol(self) -> float:
        return compute_annualized_vol(self.returns, self.vol_window, self.step_minutes)

    @property
    def twap_short(self) -> float:
        return compute_twap(self.prices, self.twap_short_window)

    @property
    def twap_long(self) -> float:
        return compute_twap(self.prices, self.twap_long_window)
