"""
Shared Models

Base class for domain models.
"""

from decimal import Decimal
from pydantic import BaseModel, ConfigDict


class DomainModel(BaseModel):
    """
    Base domain model for all domain entities.
    
    Provides:
    - Proper Pydantic v2 configuration
    - Decimal serialized as string in JSON
    - Validation on attribute assignment
    """
    
    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        json_encoders={
            Decimal: str,
        },
    )
