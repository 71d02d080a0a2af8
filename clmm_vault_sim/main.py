#!/usr/bin/env python3
"""
CLMM Vault Backtest - Main Entry Point

Runs one backtest from a JSON config (plus command-line overrides), prints
the summary and optionally writes the result JSON and charts.
"""

import argparse
import json
import sys
import time
from pathlib import Path
from typing import List, Optional

from clmm_vault_sim.analysis.metrics import action_breakdown
from clmm_vault_sim.analysis.results_manager import ResultsManager, run_with_config
from clmm_vault_sim.engine.config import DATA_SOURCES, BacktestConfig, load_config
from clmm_vault_sim.engine.results import BacktestResult


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Concentrated liquidity vault rebalancing backtester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clmm-vault-backtest                                  # Sample series, default config
  clmm-vault-backtest --config config/backtest.json    # Explicit config file
  clmm-vault-backtest --data-source csv --csv data/series.csv
  clmm-vault-backtest --pool-type volatile --seed 7 --charts charts/
  clmm-vault-backtest --cached                         # Reuse data/results.json
        """
    )

    parser.add_argument('--config', type=str,
                        help='Path to JSON config (default: $CONFIG_PATH or config/backtest.json)')
    parser.add_argument('--data-source', choices=DATA_SOURCES,
                        help='Market data source override')
    parser.add_argument('--csv', type=str,
                        help='CSV series path (implies --data-source csv)')
    parser.add_argument('--pool-type', choices=['cl', 'volatile', 'stable'],
                        help='Pool type override')
    parser.add_argument('--seed', type=int,
                        help='Sample generator seed override')
    parser.add_argument('--output', type=str,
                        help='Write the result JSON to this path')
    parser.add_argument('--cached', action='store_true',
                        help='Reuse data/results.json when present instead of re-running')
    parser.add_argument('--charts', type=str, metavar='DIR',
                        help='Write equity and drawdown charts into DIR')
    parser.add_argument('--show-config', action='store_true',
                        help='Print the effective configuration and exit')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')
    return parser


def create_backtest_config(args) -> BacktestConfig:
    """Load the config file and apply command-line overrides"""
    config = load_config(args.config)

    if args.data_source:
        config.data_source = args.data_source
    if args.csv:
        config.csv_path = args.csv
        config.data_source = "csv"
    if args.pool_type:
        config.pool_type = args.pool_type
    if args.seed is not None:
        config.sample.seed = args.seed
    if args.verbose:
        config.verbose = True

    config.validate()
    return config


def print_summary(result: BacktestResult):
    summary = result.summary
    print("\nBacktest complete")
    print(f"Start USD: {summary.start_value_usd:.2f}")
    print(f"End USD: {summary.end_value_usd:.2f}")
    print(f"Total return: {summary.total_return_pct:.2f}%")
    print(f"Annualized: {summary.annualized_return_pct:.2f}%")
    print(f"Fees: {summary.fees_usd:.2f}")
    print(f"Emissions: {summary.emissions_usd:.2f}")
    print(f"Gas: {summary.gas_usd:.2f}")
    print(f"MEV Cost: {summary.mev_usd:.2f}")
    print(f"Slippage: {summary.slippage_usd:.2f}")
    print(f"Rebalances: {summary.rebalances}")
    print(f"Max Drawdown: {summary.max_drawdown_pct:.2f}%")

    breakdown = action_breakdown(result)
    if breakdown:
        print("\nRebalances by strategy:")
        for strategy, count in sorted(breakdown.items(), key=lambda item: -item[1]):
            print(f"  {strategy}: {count}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with command-line interface"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = create_backtest_config(args)

        if args.show_config:
            print(json.dumps(config.to_dict(), indent=2))
            return 0

        results_manager = ResultsManager()
        print(f"Running backtest with dataSource: {config.data_source}")
        print("=" * 50)

        if args.cached:
            result = results_manager.load_or_run(config)
        else:
            result = run_with_config(config, generated_at=int(time.time() * 1000))
            results_manager.save(result)

        print_summary(result)

        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w') as f:
                json.dump(result.to_dict(), f, indent=2)
            print(f"\n📁 Result written to {output_path}")

        if args.charts:
            from clmm_vault_sim.analysis.charts import BacktestChartGenerator

            chart_paths = BacktestChartGenerator().generate_charts(result, Path(args.charts))
            for chart_path in chart_paths:
                print(f"📊 Chart saved: {chart_path}")

        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except Exception as e:
        print(f"Backtest failed: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
