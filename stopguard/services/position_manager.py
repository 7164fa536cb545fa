"""
Position Manager Service

Opens managed positions, closes them at market, and answers queries.
Uses the Position Store, Market Data Provider and Order Execution Gateway
passed in at construction - no module-level clients.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from decimal import Decimal

from stopguard.domain.models.managed_position import (
    ACTIVE_STATUSES,
    CloseReason,
    ManagedPosition,
    ManagedPositionStatus,
    PositionSide,
    calculate_thresholds,
)
from stopguard.domain.schemas import CreateManagedPositionParams
from stopguard.integrations.brokers.base import OrderExecutionGateway, OrderResult, OrderSide
from stopguard.integrations.market_data.base import MarketDataProvider
from stopguard.repositories.base import PositionStore
from stopguard.services.position_locks import PositionLockRegistry
from stopguard.shared.exceptions import (
    DatabaseError,
    ExecutionError,
    InvalidPositionStateError,
    NotFoundError,
    PriceUnavailableError,
    RetryError,
)
from stopguard.utils.retry import with_retry
from stopguard.core.logger import get_logger

logger = get_logger(__name__)


class PositionManagerService:
    """
    Position Manager Service

    Handles managed-position lifecycle:
    - Entry order + threshold calculation + record creation
    - Market close with ordered close-price fallback
    - Listing and lookup

    Usage:
        manager = PositionManagerService(store, market_data, gateway)

        position = await manager.create_managed_position(
            symbol="AAPL", qty=10, side="long",
            stop_loss_pct=2, take_profit_pct=5, trailing_stop=True
        )

        await manager.close(position.id, reason="manual_close")
    """

    CLOSE_SAVE_ATTEMPTS = 3

    def __init__(
        self,
        store: PositionStore,
        market_data: MarketDataProvider,
        gateway: OrderExecutionGateway,
        locks: Optional[PositionLockRegistry] = None,
        close_max_attempts: int = 1,
        close_retry_delay: float = 1.0
    ):
        """
        Initialize position manager.

        Args:
            store: Position Store
            market_data: Market Data Provider (entry price fallback)
            gateway: Order Execution Gateway
            locks: Lock registry shared with the monitor
            close_max_attempts: Close attempts before the position is flagged as error
            close_retry_delay: Base backoff between close attempts, in seconds
        """
        self.store = store
        self.market_data = market_data
        self.gateway = gateway
        self.locks = locks or PositionLockRegistry()
        self.close_max_attempts = close_max_attempts
        self.close_retry_delay = close_retry_delay

    # ==================== CREATION ====================

    async def create_managed_position(
        self,
        params: Optional[CreateManagedPositionParams] = None,
        **kwargs: Any
    ) -> ManagedPosition:
        """
        Open a position at market and put it under management.

        Args:
            params: Validated parameters, or pass the fields as keyword arguments

        Returns:
            The stored ManagedPosition (status=active)

        Raises:
            ValidationError: Malformed parameters (nothing submitted)
            ExecutionError: Entry order failed (no record created)
            PriceUnavailableError: No fill price and no market price (no record created)
        """
        if params is None:
            params = CreateManagedPositionParams.build(**kwargs)

        logger.info(
            f"Creating managed position: {params.side.value} {params.qty} {params.symbol} "
            f"sl={params.stop_loss_pct}% tp={params.take_profit_pct}% trailing={params.trailing_stop}"
        )

        order = await self._place_entry_order(params)
        entry_price = await self._resolve_entry_price(params.symbol, order)

        stop_loss_price, take_profit_price = calculate_thresholds(
            entry_price,
            params.stop_loss_pct,
            params.take_profit_pct,
            params.side
        )

        position = ManagedPosition(
            symbol=params.symbol,
            qty=params.qty,
            side=params.side,
            entry_price=entry_price,
            entry_order_id=order.order_id,
            stop_loss_pct=params.stop_loss_pct,
            take_profit_pct=params.take_profit_pct,
            trailing_stop=params.trailing_stop,
            stop_loss_price=stop_loss_price,
            take_profit_price=take_profit_price,
            status=ManagedPositionStatus.ACTIVE,
            current_price=entry_price,
            unrealized_pl=Decimal("0"),
            unrealized_plpc=Decimal("0"),
        )
        position = await self.store.create(position)

        logger.info(
            f"Managed position {position.id} created: {position.symbol} entry={entry_price} "
            f"stop_loss={stop_loss_price} take_profit={take_profit_price}"
        )

        return position

    async def _place_entry_order(self, params: CreateManagedPositionParams) -> OrderResult:
        order_side = OrderSide.BUY if params.side == PositionSide.LONG else OrderSide.SELL

        try:
            return await self.gateway.place_market_order(params.symbol, params.qty, order_side)
        except ExecutionError:
            logger.error(f"Entry order for {params.symbol} failed, no position created")
            raise
        except Exception as e:
            logger.error(f"Entry order for {params.symbol} failed, no position created: {e}")
            raise ExecutionError(f"Entry order for {params.symbol} failed: {e}") from e

    async def _resolve_entry_price(self, symbol: str, order: OrderResult) -> Decimal:
        """Fill price if reported, otherwise the latest market price."""
        if order.fill_price and order.fill_price > 0:
            return Decimal(str(order.fill_price))

        try:
            quote = await self.market_data.latest_price(symbol)
        except Exception as e:
            logger.error(
                f"Entry order {order.order_id} for {symbol} has no fill price "
                f"and the market price lookup failed: {e}"
            )
            raise PriceUnavailableError(
                f"No entry price for {symbol} (order {order.order_id}): {e}"
            ) from e

        if quote.price is None or quote.price <= 0:
            raise PriceUnavailableError(f"No entry price for {symbol} (order {order.order_id})")

        return Decimal(str(quote.price))

    # ==================== QUERIES ====================

    async def get_managed_position(self, position_id: str) -> Optional[ManagedPosition]:
        """Get a managed position by ID, or None."""
        return await self.store.get(position_id)

    async def require_position(self, position_id: str) -> ManagedPosition:
        """
        Get a managed position by ID.

        Raises:
            NotFoundError: If position not found
        """
        position = await self.store.get(position_id)
        if position is None:
            raise NotFoundError(f"Managed position {position_id} not found")
        return position

    async def get_active_managed_positions(self) -> List[ManagedPosition]:
        """All positions in active/monitoring status, newest first."""
        return await self.store.list_by_status(ACTIVE_STATUSES)

    async def list_managed_positions(
        self,
        status: Optional[ManagedPositionStatus] = None,
        symbol: Optional[str] = None,
        limit: int = 100
    ) -> List[ManagedPosition]:
        """
        List managed positions with optional filters.

        Error positions show up here with their failure reason in closed_reason.
        """
        return await self.store.list(
            status=ManagedPositionStatus(status) if status else None,
            symbol=symbol.upper() if symbol else None,
            limit=limit
        )

    async def record_realized_pl(self, position_id: str, realized_pl: Decimal) -> ManagedPosition:
        """
        Backfill the realized result of a closed position.

        Raises:
            NotFoundError: If position not found
            InvalidPositionStateError: If the position is not closed
        """
        async with self.locks.hold(position_id):
            position = await self.require_position(position_id)
            if not position.is_closed():
                raise InvalidPositionStateError(
                    f"Realized P&L can only be recorded on a closed position ({position.status.value})"
                )
            return await self.store.update(position_id, {"realized_pl": Decimal(str(realized_pl))})

    # ==================== CLOSE ====================

    async def close(
        self,
        position_id: str,
        reason: str = CloseReason.MANUAL.value,
        observed_price: Optional[Decimal] = None
    ) -> ManagedPosition:
        """
        Close a managed position at market.

        Args:
            position_id: Position ID
            reason: Close reason tag ("stop_loss_triggered", "take_profit_triggered", "manual_close", ...)
            observed_price: Price that triggered the close, if any

        Returns:
            The closed position

        Raises:
            NotFoundError: If position not found
            InvalidPositionStateError: If the position is already closed
            PositionBusyError: If another close is in flight
            ExecutionError: If the brokerage close failed (position is now status=error)
            DatabaseError: If the close order was accepted but could not be saved
                (position is now status=error, or blocked from further closes)
        """
        reason = reason.value if isinstance(reason, CloseReason) else reason

        async with self.locks.claim_close(position_id):
            position = await self.require_position(position_id)
            if position.is_closed():
                raise InvalidPositionStateError(f"Position {position_id} is already closed")

            logger.info(f"Closing managed position {position_id} ({position.symbol}): {reason}")

            try:
                order = await self._submit_close(position.symbol)
            except Exception as e:
                await self._mark_error(position, e)
                if isinstance(e, ExecutionError):
                    raise
                raise ExecutionError(f"Close for {position.symbol} failed: {e}") from e

            closed_price = position.resolve_close_price(observed_price, order.fill_price)
            realized_pl = (closed_price - position.entry_price) * position.qty * position.direction
            patch = {
                "status": ManagedPositionStatus.CLOSED,
                "closed_price": closed_price,
                "closed_reason": reason,
                "exit_order_id": order.order_id,
                "realized_pl": realized_pl,
                "closed_at": datetime.now(timezone.utc),
            }

            try:
                position = await self._save_close(position_id, patch)
            except RetryError as e:
                await self._record_unsaved_close(position, patch, e.last_error)
                raise DatabaseError(
                    f"Close order {order.order_id} for {position.symbol} was submitted "
                    f"but position {position_id} could not be saved: {e.last_error}"
                ) from e

        logger.info(
            f"Managed position {position_id} closed: {position.symbol} price={closed_price} "
            f"reason={reason} realized_pl={realized_pl}"
        )

        return position

    async def _submit_close(self, symbol: str) -> OrderResult:
        if self.close_max_attempts <= 1:
            return await self.gateway.close_position(symbol)

        try:
            return await with_retry(
                lambda: self.gateway.close_position(symbol),
                max_attempts=self.close_max_attempts,
                delay=self.close_retry_delay,
                retry_on=(ExecutionError,)
            )
        except RetryError as e:
            raise ExecutionError(
                f"Close for {symbol} failed after {e.attempts} attempts: {e.last_error}"
            ) from e

    async def _save_close(self, position_id: str, patch: Dict[str, Any]) -> ManagedPosition:
        """Persist a brokerage-accepted close, retrying transient store failures."""
        async def _update() -> ManagedPosition:
            async with self.locks.hold(position_id):
                return await self.store.update(position_id, patch)

        return await with_retry(
            _update,
            max_attempts=self.CLOSE_SAVE_ATTEMPTS,
            delay=self.close_retry_delay,
            retry_on=(Exception,)
        )

    async def _record_unsaved_close(
        self,
        position: ManagedPosition,
        patch: Dict[str, Any],
        error: Optional[BaseException]
    ) -> None:
        """
        The close order exists but the closed record does not.

        Park the record in error status with the exit order id so it leaves the
        monitored set. If even that write fails, pin the claim so this process
        never submits another close for it.
        """
        order_id = patch["exit_order_id"]
        logger.critical(
            f"Close order {order_id} for position {position.id} ({position.symbol}) "
            f"was accepted but the closed record could not be saved: {error}"
        )

        try:
            async with self.locks.hold(position.id):
                await self.store.update(position.id, {
                    **patch,
                    "status": ManagedPositionStatus.ERROR,
                    "closed_reason": f"Error: close order {order_id} submitted but not recorded: {error}",
                })
        except Exception as e:
            logger.critical(
                f"Position {position.id} still stored as {position.status.value} after close "
                f"order {order_id}; blocking further closes in this process: {e}"
            )
            self.locks.pin(position.id)

    async def _mark_error(self, position: ManagedPosition, error: Exception) -> None:
        """Flag a failed close; the position waits for an operator."""
        message = getattr(error, "message", None) or str(error)

        logger.error(f"Failed to close managed position {position.id} ({position.symbol}): {message}")

        async with self.locks.hold(position.id):
            await self.store.update(position.id, {
                "status": ManagedPositionStatus.ERROR,
                "closed_reason": f"Error: {message}",
            })
