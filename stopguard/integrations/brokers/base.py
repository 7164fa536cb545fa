"""
Order Execution Gateway Base Classes

Abstract interface for placing and closing market orders at a brokerage.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class OrderSide(str, Enum):
    """Order side"""
    BUY = "buy"
    SELL = "sell"


@dataclass
class OrderResult:
    """Brokerage acknowledgement for a submitted order"""
    order_id: str
    fill_price: Optional[Decimal] = None
    status: Optional[str] = None


class OrderExecutionGateway(ABC):
    """
    Abstract base class for order execution.
    
    Usage:
        order = await gateway.place_market_order("AAPL", Decimal("10"), OrderSide.BUY)
        exit_order = await gateway.close_position("AAPL")
    """
    
    @abstractmethod
    async def place_market_order(
        self,
        symbol: str,
        qty: Decimal,
        side: OrderSide
    ) -> OrderResult:
        """
        Place a market day order.
        
        Raises:
            ExecutionError: Order rejected or brokerage unreachable
        """
    
    @abstractmethod
    async def close_position(self, symbol: str) -> OrderResult:
        """
        Liquidate the brokerage position for a symbol at market.
        
        Raises:
            ExecutionError: Close rejected or brokerage unreachable
        """
    
    async def close(self) -> None:
        """Release network resources."""
