#!/usr/bin/env python3
"""
Backtest Chart Generator

Static PNG charts for a finished run: vault equity against pool price with
rebalance markers, the drawdown curve, and a per-day heatmap of rebalances
by strategy.
"""

from pathlib import Path
from typing import List

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from ..engine.results import BacktestResult
from .metrics import actions_frame, equity_curve_frame


class BacktestChartGenerator:
    """Generates equity, drawdown and rebalance charts for one result"""

    def __init__(self):
        self._setup_styling()

    def _setup_styling(self):
        plt.style.use('default')
        sns.set_palette("husl")

        plt.rcParams.update({
            'figure.figsize': (12, 8),
            'font.size': 11,
            'axes.titlesize': 14,
            'axes.labelsize': 12,
            'legend.fontsize': 10,
            'xtick.labelsize': 10,
            'ytick.labelsize': 10
        })

    def generate_charts(self, result: BacktestResult, charts_dir: Path) -> List[Path]:
        """Write all charts into charts_dir and return their paths"""
        charts_dir = Path(charts_dir)
        charts_dir.mkdir(parents=True, exist_ok=True)

        if not result.equity_curve:
            print("Warning: empty equity curve, no charts generated")
            return []

        chart_paths = [
            self._create_equity_chart(result, charts_dir),
            self._create_drawdown_chart(result, charts_dir),
        ]
        if result.actions:
            chart_paths.append(self._create_rebalance_heatmap(result, charts_dir))
        return chart_paths

    def _create_equity_chart(self, result: BacktestResult, charts_dir: Path) -> Path:
        equity = equity_curve_frame(result)
        actions = actions_frame(result)

        fig, ax1 = plt.subplots(figsize=(14, 7))
        ax1.plot(equity.index, equity["valueUsd"], color='tab:blue', linewidth=1.5, label='Vault value (USD)')
        ax1.set_ylabel('Vault value (USD)')
        ax1.set_xlabel('Time (UTC)')
        ax1.grid(True, alpha=0.3)

        ax2 = ax1.twinx()
        ax2.plot(equity.index, equity["price"], color='tab:gray', linewidth=1.0, alpha=0.7, label='Price')
        ax2.set_ylabel('Price (quote per base)')

        if not actions.empty:
            marker_values = equity["valueUsd"].reindex(actions["time"], method='nearest')
            ax1.scatter(actions["time"], marker_values.values, color='tab:red', s=14, zorder=3,
                        label=f'Rebalances ({len(actions)})')

        lines = ax1.get_legend_handles_labels()
        price_lines = ax2.get_legend_handles_labels()
        ax1.legend(lines[0] + price_lines[0], lines[1] + price_lines[1], loc='upper left')

        summary = result.summary
        ax1.set_title(
            f"{result.meta.symbol} ({result.meta.pool_type}) - "
            f"return {summary.total_return_pct:.2f}%, max drawdown {summary.max_drawdown_pct:.2f}%"
        )

        chart_path = charts_dir / "equity_curve.png"
        fig.savefig(chart_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return chart_path

    def _create_drawdown_chart(self, result: BacktestResult, charts_dir: Path) -> Path:
        equity = equity_curve_frame(result)

        fig, ax = plt.subplots(figsize=(14, 4))
        ax.fill_between(equity.index, -equity["drawdownPct"], 0, color='tab:red', alpha=0.3)
        ax.plot(equity.index, -equity["drawdownPct"], color='tab:red', linewidth=1.0)
        ax.set_ylabel('Drawdown (%)')
        ax.set_xlabel('Time (UTC)')
        ax.set_title('Drawdown from running peak')
        ax.grid(True, alpha=0.3)

        chart_path = charts_dir / "drawdown.png"
        fig.savefig(chart_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return chart_path

    def _create_rebalance_heatmap(self, result: BacktestResult, charts_dir: Path) -> Path:
        actions = actions_frame(result)
        actions["day"] = actions["time"].dt.strftime('%m-%d')
        counts = pd.crosstab(actions["strategy"], actions["day"])

        fig, ax = plt.subplots(figsize=(max(8, 0.5 * counts.shape[1] + 4), 1.2 * counts.shape[0] + 2))
        sns.heatmap(counts, annot=True, fmt='d', cmap='YlOrRd', ax=ax,
                    cbar_kws={'label': 'Rebalances'})
        ax.set_title('Rebalances per day by strategy')
        ax.set_xlabel('Day (UTC)')
        ax.set_ylabel('')

        chart_path = charts_dir / "rebalance_heatmap.png"
        fig.savefig(chart_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return chart_path
