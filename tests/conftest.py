"""
Pytest configuration and shared fixtures.

Provides in-process fakes for the three collaborators of the engine:
the Position Store, the Market Data Provider and the Order Execution Gateway.
"""

import pytest
from decimal import Decimal
from typing import Any, Dict, List, Optional

from stopguard.domain.models.managed_position import (
    ManagedPosition,
    ManagedPositionStatus,
    PositionSide,
    calculate_thresholds,
)
from stopguard.integrations.brokers.base import OrderExecutionGateway, OrderResult, OrderSide
from stopguard.integrations.market_data.base import MarketDataProvider, PriceQuote
from stopguard.repositories.memory import InMemoryPositionStore
from stopguard.services.position_manager import PositionManagerService
from stopguard.services.position_monitor import PositionMonitorService
from stopguard.shared.exceptions import DatabaseError, PriceUnavailableError


# ==================== FAKES ====================

class RecordingStore(InMemoryPositionStore):
    """In-memory store that records every update patch; writes can be failed per target status."""
    
    def __init__(self):
        super().__init__()
        self.updates: List[Dict[str, Any]] = []
        self.failing_writes: Dict[ManagedPositionStatus, int] = {}
    
    def fail_writes(self, status: ManagedPositionStatus, times: int = 1) -> None:
        """Fail the next `times` updates that set `status`."""
        self.failing_writes[status] = times
    
    async def update(self, position_id: str, patch: Dict[str, Any]) -> ManagedPosition:
        status = patch.get("status")
        if self.failing_writes.get(status, 0) > 0:
            self.failing_writes[status] -= 1
            raise DatabaseError(f"write to {position_id} timed out")
        self.updates.append({"id": position_id, **patch})
        return await super().update(position_id, patch)


class FakeMarketData(MarketDataProvider):
    """Prices set per symbol; failures injected per symbol."""
    
    def __init__(self):
        self.prices: Dict[str, Decimal] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
    
    def set_price(self, symbol: str, price: Any) -> None:
        self.prices[symbol] = Decimal(str(price))
    
    def fail(self, symbol: str, error: Exception) -> None:
        self.failures[symbol] = error
    
    async def latest_price(self, symbol: str) -> PriceQuote:
        self.calls.append(symbol)
        if symbol in self.failures:
            raise self.failures[symbol]
        if symbol not in self.prices:
            raise PriceUnavailableError(f"No price for {symbol}")
        return PriceQuote(symbol=symbol, price=self.prices[symbol])


class FakeGateway(OrderExecutionGateway):
    """Records submitted orders; fill price and failures are configurable."""
    
    def __init__(self):
        self.fill_price: Optional[Decimal] = None
        self.close_fill_price: Optional[Decimal] = None
        self.place_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None
        self.placed: List[Dict[str, Any]] = []
        self.closed: List[str] = []
        self._counter = 0
    
    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"
    
    async def place_market_order(self, symbol: str, qty: Decimal, side: OrderSide) -> OrderResult:
        if self.place_error:
            raise self.place_error
        self.placed.append({"symbol": symbol, "qty": qty, "side": side})
        return OrderResult(order_id=self._next_id("entry"), fill_price=self.fill_price)
    
    async def close_position(self, symbol: str) -> OrderResult:
        if self.close_error:
            raise self.close_error
        self.closed.append(symbol)
        return OrderResult(order_id=self._next_id("exit"), fill_price=self.close_fill_price)


# ==================== FIXTURES ====================

@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def market_data() -> FakeMarketData:
    return FakeMarketData()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def manager(store, market_data, gateway) -> PositionManagerService:
    return PositionManagerService(store, market_data, gateway, close_retry_delay=0)


@pytest.fixture
def monitor(store, market_data, manager) -> PositionMonitorService:
    return PositionMonitorService(store, market_data, manager, max_concurrency=3, price_timeout=1.0)


@pytest.fixture
def seed_position(store):
    """
    Insert a managed position directly into the store.
    
    Usage:
        position = await seed_position(symbol="AAPL", entry_price="150")
    """
    async def _seed(
        symbol: str = "AAPL",
        qty: Any = "10",
        side: PositionSide = PositionSide.LONG,
        entry_price: Any = "150",
        stop_loss_pct: Any = "2",
        take_profit_pct: Any = "5",
        trailing_stop: bool = False,
        status: ManagedPositionStatus = ManagedPositionStatus.ACTIVE,
        **overrides: Any
    ) -> ManagedPosition:
        entry = Decimal(str(entry_price))
        sl, tp = calculate_thresholds(entry, Decimal(str(stop_loss_pct)), Decimal(str(take_profit_pct)), side)
        data = dict(
            symbol=symbol,
            qty=Decimal(str(qty)),
            side=side,
            entry_price=entry,
            entry_order_id="entry-seed",
            stop_loss_pct=Decimal(str(stop_loss_pct)),
            take_profit_pct=Decimal(str(take_profit_pct)),
            trailing_stop=trailing_stop,
            stop_loss_price=sl,
            take_profit_price=tp,
            status=status,
            current_price=entry,
            unrealized_pl=Decimal("0"),
            unrealized_plpc=Decimal("0"),
        )
        data.update(overrides)
        position = await store.create(ManagedPosition(**data))
        store.updates.clear()
        return position
    
    return _seed
