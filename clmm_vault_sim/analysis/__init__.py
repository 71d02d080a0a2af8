"""Performance metrics, result persistence and charts"""

from .metrics import compute_max_drawdown, annualize_return, build_summary

__all__ = ["compute_max_drawdown", "annualize_return", "build_summary"]
