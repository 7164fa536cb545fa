"""
Market Data Provider Base Classes

Abstract interface for pull-based latest-price providers.
Allows swapping Alpaca for another data vendor without touching the engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal


@dataclass
class PriceQuote:
    """Latest price for a symbol"""
    symbol: str
    price: Decimal
    source: str = "trade"  # "trade" or "ask"
    as_of: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.
    
    Usage:
        quote = await provider.latest_price("AAPL")
        print(quote.price)
    """
    
    @abstractmethod
    async def latest_price(self, symbol: str) -> PriceQuote:
        """
        Latest trade price, falling back to the best ask.
        
        Raises:
            PriceUnavailableError: No trade or quote price for the symbol
            TransientProviderError: Network error or timeout
        """
    
    async def close(self) -> None:
        """Release network resources."""
