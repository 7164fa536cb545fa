from stopguard.integrations.market_data.base import MarketDataProvider, PriceQuote
from stopguard.integrations.market_data.alpaca_data import AlpacaMarketDataProvider

__all__ = [
    "MarketDataProvider",
    "PriceQuote",
    "AlpacaMarketDataProvider",
]
