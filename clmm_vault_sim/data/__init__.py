"""Market data points and loaders"""

from .market_data import MarketPoint
from .loader import load_series

__all__ = ["MarketPoint", "load_series"]
