#!/usr/bin/env python3
"""
Backtest Engine

Walks an ordered market-data series tick by tick: updates rolling
statistics, builds the pool snapshot, accrues fees and emissions, asks the
strategy runner for the best decision and applies it to the vault.

A run is a pure function of (config, series): no wall clock, no randomness,
no shared state between runs.
"""

from typing import List, Optional, Sequence

from ..analysis.metrics import build_summary
from ..core import vault as vault_ops
from ..core.pool import PoolSnapshot
from ..core.vault import VaultState
from ..data.market_data import MarketPoint, is_finite_number
from ..strategies.base_strategy import StrategyContext, band_width
from ..strategies.runner import StrategyRunner
from .config import BacktestConfig
from .results import (
    ActionLogEntry, BacktestMeta, BacktestResult, EquityPoint, MarketSnapshot
)
from .rolling_stats import MINUTES_PER_DAY, RollingStats


class NoMarketDataError(ValueError):
    """Raised when a backtest is started with an empty series"""


class InvalidMarketDataError(ValueError):
    """Raised when a market point breaks the ts/price input contract"""


def validate_series(series: Sequence[MarketPoint]):
    """ts and price must be finite, price positive, ts strictly increasing"""
    if len(series) == 0:
        raise NoMarketDataError("No market data points available")

    last_ts = None
    for index, point in enumerate(series):
        if not is_finite_number(point.ts):
            raise InvalidMarketDataError(f"Point {index} has a non-finite timestamp: {point.ts!r}")
        if not is_finite_number(point.price) or point.price <= 0:
            raise InvalidMarketDataError(f"Point {index} has an invalid price: {point.price!r}")
        if last_ts is not None and point.ts <= last_ts:
            raise InvalidMarketDataError(
                f"Timestamps must be strictly increasing (point {index}: {point.ts} <= {last_ts})"
            )
        last_ts = point.ts


class BacktestEngine:
    """Single backtest run over one market-data series"""

    def __init__(self, config: BacktestConfig, runner: Optional[StrategyRunner] = None):
        self.config = config
        self.params = config.rebalance_params
        self.settings = self.params.execution_settings()
        self.runner = runner or StrategyRunner()
        self.dt_days = config.time_step_minutes / MINUTES_PER_DAY

        # Per-run state
        self.vault: Optional[VaultState] = None
        self.stats: Optional[RollingStats] = None
        self.equity_curve: List[EquityPoint] = []
        self.action_log: List[ActionLogEntry] = []
        self.totals = {}
        self.rebalances = 0

    def _reset(self, first_price: float):
        config = self.config
        self.vault = vault_ops.create_vault(config.initial_capital_usd, first_price)
        self.stats = RollingStats(
            config.time_step_minutes,
            config.windows.vol_days,
            config.windows.twap_short_hours,
            config.windows.twap_long_hours,
        )
        self.equity_curve = []
        self.action_log = []
        self.totals = {
            "fees_usd": 0.0,
            "emissions_usd": 0.0,
            "gas_usd": 0.0,
            "mev_usd": 0.0,
            "slippage_usd": 0.0,
        }
        self.rebalances = 0

    def run(self, series: Sequence[MarketPoint], generated_at: Optional[int] = None) -> BacktestResult:
        """Run the backtest and return the immutable result"""
        validate_series(series)

        config = self.config
        self._reset(series[0].price)
        total_points = len(series)
        progress_every = max(1, total_points // 10)

        if config.verbose:
            print(f"📈 Backtesting {config.symbol} ({config.pool_type}) over {total_points} points")

        for i, point in enumerate(series):
            self.stats.push(point.price)
            pool = self._build_snapshot(point)

            self._accrue(pool, point)

            if not self.vault.is_active and pool.is_concentrated:
                self._seed_position(pool, point.ts)

            if i > 0:
                self._decide_and_apply(pool, point.ts)

            self.equity_curve.append(
                EquityPoint(ts=point.ts, value_usd=self.vault.total_value_usd(pool.price), price=pool.price)
            )

            if config.verbose and i % progress_every == 0:
                print(f"Backtest step {i}/{total_points}")

        last = series[-1]
        summary = build_summary(
            self.equity_curve,
            config.initial_capital_usd,
            config.lookback_days,
            self.totals,
            self.rebalances,
        )

        if config.verbose:
            print(f"✅ Backtest complete: {self.rebalances} rebalances, "
                  f"end value ${summary.end_value_usd:,.2f}")
            self._print_strategy_diagnostics(pool, last.ts)

        return BacktestResult(
            meta=BacktestMeta(
                generated_at=generated_at if generated_at is not None else last.ts,
                symbol=config.symbol,
                pool_type=config.pool_type,
                points=total_points,
            ),
            summary=summary,
            equity_curve=list(self.equity_curve),
            actions=list(self.action_log),
            last_snapshot=MarketSnapshot(
                ts=last.ts,
                price=last.price,
                twap_short=self.stats.twap_short,
                twap_long=self.stats.twap_long,
                vol=self.stats.vol,
            ),
        )

    def _build_snapshot(self, point: MarketPoint) -> PoolSnapshot:
        """Pool view for this tick, falling back to config defaults for bad fields"""
        config = self.config

        fees_apr = point.fees_apr if is_finite_number(point.fees_apr) else config.fees_apr
        emissions_apr = point.emissions_apr if is_finite_number(point.emissions_apr) else config.emissions_apr
        liquidity_usd = (
            point.liquidity_usd
            if is_finite_number(point.liquidity_usd) and point.liquidity_usd > 0
            else config.liquidity_usd
        )
        gas_usd = (
            point.gas_usd
            if is_finite_number(point.gas_usd) and point.gas_usd >= 0
            else config.gas_usd
        )

        return PoolSnapshot(
            pool_type=config.pool_type_enum,
            price=point.price,
            twap_short=self.stats.twap_short,
            twap_long=self.stats.twap_long,
            vol=self.stats.vol,
            fees_apr=fees_apr,
            emissions_apr=emissions_apr,
            liquidity_usd=liquidity_usd,
            gas_usd=gas_usd,
        )

    def _pool_fees(self, pool: PoolSnapshot, point: MarketPoint) -> float:
        """Fees earned by the whole pool this tick"""
        volume = point.volume_usd
        fee_tier = point.fee_tier
        if is_finite_number(volume) and volume > 0 and is_finite_number(fee_tier) and fee_tier > 0:
            return volume * fee_tier
        return pool.liquidity_usd * pool.fees_apr * (self.dt_days / 365)

    def _accrue(self, pool: PoolSnapshot, point: MarketPoint):
        accrual = vault_ops.accrue(
            self.vault,
            pool,
            self._pool_fees(pool, point),
            self.dt_days,
            self.settings.avg_pool_range_width,
        )
        self.vault = accrual.vault
        self.totals["fees_usd"] += accrual.fees_usd
        self.totals["emissions_usd"] += accrual.emissions_usd

    def _seed_position(self, pool: PoolSnapshot, ts: int):
        """Open the first position centered on the current price"""
        width = band_width(pool.vol, self.params)
        lower = pool.price * (1 - width)
        upper = pool.price * (1 + width)
        self.vault = vault_ops.add_liquidity(
            self.vault, pool.price, lower, upper, self.vault.total_value_usd(pool.price), ts
        )

    def _decide_and_apply(self, pool: PoolSnapshot, ts: int):
        ctx = StrategyContext(pool=pool, vault=self.vault, params=self.params, now_ms=ts)
        decision = self.runner.pick_best(ctx)
        if not decision.should_rebalance:
            return

        execution = vault_ops.execute_actions(self.vault, decision.actions, pool, self.settings, ts)
        if execution is None:
            return

        self.vault = execution.vault
        self.rebalances += 1
        self.totals["gas_usd"] += execution.gas_usd
        self.totals["mev_usd"] += execution.mev_usd
        self.totals["slippage_usd"] += execution.slippage_usd

        self.action_log.append(ActionLogEntry(
            ts=ts,
            strategy=decision.strategy or "unknown",
            reason=decision.reason,
            actions=decision.action_names,
            gas_usd=execution.gas_usd,
            mev_usd=execution.mev_usd,
        ))

    def _print_strategy_diagnostics(self, pool: PoolSnapshot, ts: int):
        """Every strategy's view of the final tick"""
        ctx = StrategyContext(pool=pool, vault=self.vault, params=self.params, now_ms=ts)
        print("Strategy view at last tick:")
        for decision in self.runner.evaluate_all(ctx):
            flag = "*" if decision.should_rebalance else " "
            print(f"  {flag} {decision.strategy}: {decision.reason} (score {decision.score:,.2f})")


def run_backtest(
    config: BacktestConfig,
    series: Sequence[MarketPoint],
    generated_at: Optional[int] = None
) -> BacktestResult:
    """Core entry point: run one backtest over `series`"""
    return BacktestEngine(config).run(series, generated_at)
