from stopguard.integrations.brokers.base import OrderExecutionGateway, OrderResult, OrderSide
from stopguard.integrations.brokers.alpaca_trading import AlpacaTradingGateway

__all__ = [
    "OrderExecutionGateway",
    "OrderResult",
    "OrderSide",
    "AlpacaTradingGateway",
]
