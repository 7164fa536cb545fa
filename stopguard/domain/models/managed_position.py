"""
Managed Position Domain Model

Pure Pydantic domain model for positions under automated stop-loss /
take-profit management. No database dependencies - business logic only.
"""

from typing import Optional, Tuple
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pydantic import Field

from stopguard.shared.models import DomainModel


HUNDRED = Decimal("100")


# ==================== ENUMS ====================

class ManagedPositionStatus(str, Enum):
    """Managed position status lifecycle"""
    ACTIVE = "active"          # Created, not yet observed
    MONITORING = "monitoring"  # At least one price observed
    CLOSED = "closed"          # Exit order placed
    ERROR = "error"            # Close failed, waiting for an operator


class PositionSide(str, Enum):
    """Position side"""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def parse(cls, value: "str | PositionSide") -> "PositionSide":
        """Accept "long"/"short" as well as order sides "buy"/"sell"."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        aliases = {"buy": cls.LONG, "sell": cls.SHORT}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


class CloseReason(str, Enum):
    """Reason tags written by the engine itself"""
    STOP_LOSS = "stop_loss_triggered"
    TAKE_PROFIT = "take_profit_triggered"
    MANUAL = "manual_close"


ACTIVE_STATUSES = (ManagedPositionStatus.ACTIVE, ManagedPositionStatus.MONITORING)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calculate_thresholds(
    entry_price: Decimal,
    stop_loss_pct: Decimal,
    take_profit_pct: Decimal,
    side: PositionSide
) -> Tuple[Decimal, Decimal]:
    """
    Calculate initial stop-loss and take-profit prices.
    
    Args:
        entry_price: Entry fill price
        stop_loss_pct: Stop-loss distance in percent of entry
        take_profit_pct: Take-profit distance in percent of entry
        side: Position side
        
    Returns:
        (stop_loss_price, take_profit_price)
    """
    entry_price = Decimal(str(entry_price))
    sl = Decimal(str(stop_loss_pct)) / HUNDRED
    tp = Decimal(str(take_profit_pct)) / HUNDRED

    if PositionSide.parse(side) == PositionSide.LONG:
        return entry_price * (1 - sl), entry_price * (1 + tp)

    # Short: stop above entry, target below
    return entry_price * (1 + sl), entry_price * (1 - tp)


# ==================== MAIN MODEL ====================

class ManagedPosition(DomainModel):
    """
    Managed Position Domain Model
    
    A tracked open position with automated exit rules. Thresholds are
    derived once at creation; only the stop-loss may later move, and only
    in the protective direction.
    
    Usage:
        sl, tp = calculate_thresholds(Decimal("150"), Decimal("2"), Decimal("5"), PositionSide.LONG)
        position = ManagedPosition(
            symbol="AAPL",
            qty=Decimal("10"),
            side=PositionSide.LONG,
            entry_price=Decimal("150"),
            stop_loss_pct=Decimal("2"),
            take_profit_pct=Decimal("5"),
            stop_loss_price=sl,
            take_profit_price=tp,
        )
        
        # Domain checks (no persistence)
        position.stop_loss_hit(Decimal("146"))   # True
    """
    
    # Identity
    id: Optional[str] = Field(None, alias="_id")
    
    # Static terms
    symbol: str
    qty: Decimal
    side: PositionSide = PositionSide.LONG
    entry_price: Decimal
    entry_order_id: Optional[str] = None
    stop_loss_pct: Decimal
    take_profit_pct: Decimal
    trailing_stop: bool = False
    
    # Thresholds
    stop_loss_price: Decimal
    take_profit_price: Decimal
    
    # Live state
    status: ManagedPositionStatus = ManagedPositionStatus.ACTIVE
    current_price: Optional[Decimal] = None
    unrealized_pl: Optional[Decimal] = None
    unrealized_plpc: Optional[Decimal] = None
    
    # Terminal state
    closed_price: Optional[Decimal] = None
    closed_reason: Optional[str] = None
    exit_order_id: Optional[str] = None
    realized_pl: Optional[Decimal] = None
    closed_at: Optional[datetime] = None
    
    # Timing
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    
    @property
    def direction(self) -> int:
        """+1 for long, -1 for short"""
        return 1 if self.side == PositionSide.LONG else -1
    
    def is_open(self) -> bool:
        """Check if position is still under automated management"""
        return self.status in ACTIVE_STATUSES
    
    def is_closed(self) -> bool:
        """Check if position is closed"""
        return self.status == ManagedPositionStatus.CLOSED
    
    def calculate_pnl(self, current_price: Decimal) -> Tuple[Decimal, Decimal]:
        """
        Unrealized P&L at a given price.
        
        Returns:
            (absolute P&L, P&L percent of entry)
        """
        move = (Decimal(str(current_price)) - self.entry_price) * self.direction
        pl = move * self.qty
        plpc = (move / self.entry_price * HUNDRED) if self.entry_price > 0 else Decimal("0")
        return pl, plpc
    
    def stop_loss_hit(self, current_price: Decimal) -> bool:
        """Long: price at or below stop. Short: price at or above stop."""
        if self.side == PositionSide.LONG:
            return current_price <= self.stop_loss_price
        return current_price >= self.stop_loss_price
    
    def take_profit_hit(self, current_price: Decimal) -> bool:
        """Long: price at or above target. Short: price at or below target."""
        if self.side == PositionSide.LONG:
            return current_price >= self.take_profit_price
        return current_price <= self.take_profit_price
    
    def trailing_stop_candidate(self, current_price: Decimal) -> Optional[Decimal]:
        """
        Stop-loss the trailing rule would set at this price.
        
        Returns None when the candidate would not tighten the stored stop.
        """
        distance = self.stop_loss_pct / HUNDRED
        if self.side == PositionSide.LONG:
            candidate = current_price * (1 - distance)
            return candidate if candidate > self.stop_loss_price else None

        candidate = current_price * (1 + distance)
        return candidate if candidate < self.stop_loss_price else None
    
    def resolve_close_price(
        self,
        observed_price: Optional[Decimal] = None,
        fill_price: Optional[Decimal] = None
    ) -> Decimal:
        """Close price fallback: observed -> fill -> last current -> entry."""
        for candidate in (observed_price, fill_price, self.current_price):
            if candidate:
                return Decimal(str(candidate))
        return self.entry_price
