"""
Position Monitoring Service

Evaluates managed positions against live price, ratchets trailing stops,
and runs the batch monitoring cycle.

The service has no timer of its own: a scheduler (cron, task queue beat,
orchestrator tick) calls run_cycle() as often as it likes.
"""

import asyncio
from decimal import Decimal
from typing import Optional

from stopguard.domain.models.managed_position import (
    ACTIVE_STATUSES,
    CloseReason,
    ManagedPosition,
    ManagedPositionStatus,
)
from stopguard.domain.schemas import CycleResult, EvaluationResult
from stopguard.integrations.market_data.base import MarketDataProvider
from stopguard.repositories.base import PositionStore
from stopguard.services.position_manager import PositionManagerService
from stopguard.shared.exceptions import (
    InvalidPositionStateError,
    NotFoundError,
    PositionBusyError,
)
from stopguard.core.logger import get_logger

logger = get_logger(__name__)


class PositionMonitorService:
    """
    Position Monitoring Service

    Features:
    - Price refresh and unrealized P&L per position
    - Stop-loss / take-profit triggers (mirrored for short positions)
    - Trailing stop ratchet
    - Batch cycle with per-position error isolation

    Usage:
        monitor = PositionMonitorService(store, market_data, manager)

        # One position
        result = await monitor.evaluate(position_id)

        # All open positions (call from the scheduler)
        summary = await monitor.run_cycle()
    """

    def __init__(
        self,
        store: PositionStore,
        market_data: MarketDataProvider,
        manager: PositionManagerService,
        max_concurrency: int = 5,
        price_timeout: float = 5.0
    ):
        """
        Initialize position monitor.

        Args:
            store: Position Store
            market_data: Market Data Provider
            manager: Position manager used to close triggered positions
            max_concurrency: Positions evaluated in parallel within one cycle
            price_timeout: Seconds to wait for a price before skipping the position
        """
        self.store = store
        self.market_data = market_data
        self.manager = manager
        self.locks = manager.locks
        self.max_concurrency = max_concurrency
        self.price_timeout = price_timeout

    # ==================== SINGLE POSITION ====================

    async def evaluate(self, position_id: str) -> EvaluationResult:
        """
        Check one position against its thresholds and close it if crossed.

        Closed and error positions are skipped without a price fetch or write.
        A failed price lookup is logged and reported in the result's error field,
        never raised.

        Args:
            position_id: Position ID

        Returns:
            EvaluationResult

        Raises:
            NotFoundError: If position not found
            ExecutionError: If a triggered close failed at the brokerage
        """
        position = await self.store.get(position_id)
        if position is None:
            raise NotFoundError(f"Managed position {position_id} not found")

        if not position.is_open() or self.locks.is_closing(position_id):
            return EvaluationResult()

        current_price, error = await self._fetch_price(position)
        if current_price is None:
            return EvaluationResult(error=error)

        position = await self._record_price(position_id, current_price)
        if position is None:
            return EvaluationResult()

        if position.stop_loss_hit(current_price):
            logger.warning(
                f"Stop-loss triggered for position {position_id} ({position.symbol}): "
                f"price={current_price} stop_loss={position.stop_loss_price}"
            )
            return await self._close_triggered(position, CloseReason.STOP_LOSS, "stop_loss", current_price)

        if position.take_profit_hit(current_price):
            logger.info(
                f"Take-profit triggered for position {position_id} ({position.symbol}): "
                f"price={current_price} take_profit={position.take_profit_price}"
            )
            return await self._close_triggered(position, CloseReason.TAKE_PROFIT, "take_profit", current_price)

        if position.trailing_stop:
            await self.adjust_trailing_stop(position_id, current_price)

        return EvaluationResult()

    async def _fetch_price(self, position: ManagedPosition) -> tuple[Optional[Decimal], Optional[str]]:
        """Latest price, or (None, error message) on any provider failure."""
        try:
            quote = await asyncio.wait_for(
                self.market_data.latest_price(position.symbol),
                timeout=self.price_timeout
            )
        except asyncio.TimeoutError:
            message = f"Price lookup for {position.symbol} timed out after {self.price_timeout}s"
            logger.warning(f"{message} (position {position.id})")
            return None, message
        except Exception as e:
            message = f"Price lookup for {position.symbol} failed: {e}"
            logger.warning(f"{message} (position {position.id})")
            return None, message

        if quote is None or quote.price is None or quote.price <= 0:
            message = f"No current price available for {position.symbol}"
            logger.warning(f"{message} (position {position.id})")
            return None, message

        return Decimal(str(quote.price)), None

    async def _record_price(self, position_id: str, current_price: Decimal) -> Optional[ManagedPosition]:
        """Persist current price and P&L; None if the position left open status meanwhile."""
        async with self.locks.hold(position_id):
            position = await self.store.get(position_id)
            if position is None or not position.is_open() or self.locks.is_closing(position_id):
                return None

            unrealized_pl, unrealized_plpc = position.calculate_pnl(current_price)
            return await self.store.update(position_id, {
                "current_price": current_price,
                "unrealized_pl": unrealized_pl,
                "unrealized_plpc": unrealized_plpc,
                "status": ManagedPositionStatus.MONITORING,
            })

    async def _close_triggered(
        self,
        position: ManagedPosition,
        close_reason: CloseReason,
        trigger: str,
        current_price: Decimal
    ) -> EvaluationResult:
        try:
            await self.manager.close(position.id, close_reason.value, observed_price=current_price)
        except (PositionBusyError, InvalidPositionStateError) as e:
            # Closed or being closed by another caller
            logger.info(f"Skipping triggered close for position {position.id}: {e.message}")
            return EvaluationResult()

        return EvaluationResult(triggered=True, reason=trigger, action="closed")

    # ==================== TRAILING STOP ====================

    async def adjust_trailing_stop(self, position_id: str, current_price: Decimal) -> None:
        """
        Ratchet the stop-loss toward the market.

        Long: candidate = price * (1 - sl%), stored only if above the current stop.
        Short: candidate = price * (1 + sl%), stored only if below the current stop.
        Otherwise nothing is written.

        Raises:
            NotFoundError: If position not found
        """
        current_price = Decimal(str(current_price))

        async with self.locks.hold(position_id):
            position = await self.store.get(position_id)
            if position is None:
                raise NotFoundError(f"Managed position {position_id} not found")
            if not position.is_open():
                return

            new_stop = position.trailing_stop_candidate(current_price)
            if new_stop is None:
                return

            await self.store.update(position_id, {"stop_loss_price": new_stop})

        logger.info(
            f"Trailing stop updated for position {position_id} ({position.symbol}): "
            f"{position.stop_loss_price} -> {new_stop} at price {current_price}"
        )

    # ==================== CYCLE ====================

    async def run_cycle(self) -> CycleResult:
        """
        Evaluate every active/monitoring position once.

        One position's failure is logged and counted; it never stops the others.

        Returns:
            CycleResult with total, triggered and errors counts
        """
        positions = await self.store.list_by_status(ACTIVE_STATUSES)

        logger.info(f"Starting position monitoring cycle ({len(positions)} positions)")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _evaluate_one(position: ManagedPosition) -> Optional[EvaluationResult]:
            async with semaphore:
                try:
                    return await self.evaluate(position.id)
                except Exception as e:
                    logger.error(f"Error monitoring position {position.id} ({position.symbol}): {e}")
                    return None

        results = await asyncio.gather(*(_evaluate_one(p) for p in positions))

        summary = CycleResult(
            total=len(positions),
            triggered=sum(1 for r in results if r is not None and r.triggered),
            errors=sum(1 for r in results if r is None or r.error),
        )

        logger.info(
            f"Position monitoring cycle completed: total={summary.total} "
            f"triggered={summary.triggered} errors={summary.errors}"
        )

        return summary
