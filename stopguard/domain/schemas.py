"""
Managed Position Schemas

Pydantic schemas for engine inputs and results.
"""

from typing import Optional, Dict, Any
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from stopguard.domain.models.managed_position import PositionSide
from stopguard.shared.exceptions import ValidationError


# ==================== REQUEST SCHEMAS ====================

class CreateManagedPositionParams(BaseModel):
    """Open a position and put it under stop-loss / take-profit management"""
    symbol: str = Field(..., min_length=1, max_length=10)
    qty: Decimal = Field(..., gt=0)
    side: PositionSide
    stop_loss_pct: Decimal = Field(..., gt=0, le=100)
    take_profit_pct: Decimal = Field(..., gt=0, le=100)
    trailing_stop: bool = False
    
    @field_validator("symbol", mode="before")
    @classmethod
    def normalize_symbol(cls, v: Any) -> Any:
        """Strip and upper-case the ticker."""
        if isinstance(v, str):
            return v.strip().upper()
        return v
    
    @field_validator("side", mode="before")
    @classmethod
    def parse_side(cls, v: Any) -> PositionSide:
        """Accept long/short and buy/sell."""
        try:
            return PositionSide.parse(v)
        except ValueError:
            raise ValueError("side must be one of: long, short, buy, sell")
    
    @classmethod
    def build(cls, **data: Any) -> "CreateManagedPositionParams":
        """
        Validate raw input, raising the application ValidationError.
        
        Raises:
            ValidationError: If any field is malformed
        """
        try:
            return cls(**data)
        except PydanticValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(f"Invalid managed position parameters: {details}") from e


# ==================== RESULT SCHEMAS ====================

class EvaluationResult(BaseModel):
    """Outcome of evaluating one position against its thresholds"""
    triggered: bool = False
    reason: Optional[str] = None   # "stop_loss" | "take_profit"
    action: Optional[str] = None   # "closed"
    error: Optional[str] = None    # set when the price could not be read
    
    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CycleResult(BaseModel):
    """Aggregate outcome of one monitoring cycle"""
    total: int = 0
    triggered: int = 0
    errors: int = 0
    
    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
