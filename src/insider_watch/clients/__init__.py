"""
Market data sources.
"""

from .base import BaseClient, MarketSource
from .polymarket import PolymarketClient

__all__ = ["PolymarketClient", "BaseClient", "MarketSource"]
