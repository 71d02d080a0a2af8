#!/usr/bin/env python3
"""
Results Management

Single-record result cache: the most recent backtest result is stored as
JSON at data/results.json and reused until a forced re-run.
"""

import json
import threading
import time
from pathlib import Path
from typing import Any, Optional, Union

from ..data.loader import load_series
from ..engine.backtest_engine import run_backtest
from ..engine.config import BacktestConfig
from ..engine.results import BacktestResult

DEFAULT_RESULTS_PATH = Path("data") / "results.json"


def run_with_config(config: BacktestConfig, generated_at: Optional[int] = None) -> BacktestResult:
    """Load the configured series and run one backtest over it"""
    series = load_series(config)
    return run_backtest(config, series, generated_at)


class ResultsManager:
    """Reads and writes the cached backtest result"""

    def __init__(self, results_path: Union[str, Path] = DEFAULT_RESULTS_PATH):
        self.results_path = Path(results_path)
        self._lock = threading.Lock()

    def save(self, result: BacktestResult) -> Path:
        """Write the result as JSON, replacing any previous record"""
        serializable = self._make_serializable(result.to_dict())
        with self._lock:
            self.results_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.results_path, 'w') as f:
                json.dump(serializable, f, indent=2)
        return self.results_path

    def load(self) -> Optional[BacktestResult]:
        """Cached result, or None when missing or unreadable"""
        if not self.results_path.exists():
            return None

        try:
            with open(self.results_path, 'r') as f:
                return BacktestResult.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, TypeError):
            return None

    def load_or_run(self, config: BacktestConfig, force: bool = False) -> BacktestResult:
        """Return the cached result unless forced or absent; otherwise run and cache"""
        if not force:
            cached = self.load()
            if cached is not None:
                if config.verbose:
                    print(f"📂 Using cached results from {self.results_path}")
                return cached

        result = run_with_config(config, generated_at=int(time.time() * 1000))
        self.save(result)
        return result

    def _make_serializable(self, obj: Any) -> Any:
        """Convert numpy values and containers to plain JSON types"""
        if hasattr(obj, 'tolist'):  # numpy arrays
            return obj.tolist()
        elif hasattr(obj, 'item'):  # numpy scalars
            return obj.item()
        elif isinstance(obj, dict):
            return {str(k): self._make_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._make_serializable(item) for item in obj]
        return obj
