"""
Custom exception classes for the application.

All custom exceptions inherit from base AppException for consistent error handling.
Each carries an error code and an HTTP status so an API layer can map them directly.
"""

from typing import Optional


class AppException(Exception):
    """
    Base application exception.
    
    All custom exceptions should inherit from this class.
    
    Attributes:
        message: Error message
        code: Error code
        status_code: HTTP status code
    """
    
    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = 500
    ):
        """
        Initialize AppException.
        
        Args:
            message: Error message
            code: Error code
            status_code: HTTP status code
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(self.message)


# Resource Exceptions

class NotFoundError(AppException):
    """Managed position not found."""
    
    def __init__(self, message: str = "Managed position not found"):
        super().__init__(message=message, code="POSITION_NOT_FOUND", status_code=404)


class InvalidPositionStateError(AppException):
    """Operation not allowed in the position's current status."""
    
    def __init__(self, message: str = "Operation not allowed for position status"):
        super().__init__(message=message, code="INVALID_POSITION_STATE", status_code=400)


class PositionBusyError(AppException):
    """Another operation holds the position (e.g. a close is in flight)."""
    
    def __init__(self, message: str = "Position is busy"):
        super().__init__(message=message, code="POSITION_BUSY", status_code=409)


# Validation Exceptions

class ValidationError(AppException):
    """Malformed creation parameters."""
    
    def __init__(self, message: str = "Validation failed"):
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=422)


# External Service Exceptions

class TransientProviderError(AppException):
    """Market data temporarily unavailable (network error, timeout, empty snapshot)."""
    
    def __init__(self, message: str = "Market data provider unavailable"):
        super().__init__(message=message, code="PROVIDER_UNAVAILABLE", status_code=503)


class PriceUnavailableError(TransientProviderError):
    """No usable price for a symbol."""
    
    def __init__(self, message: str = "Price unavailable"):
        super().__init__(message=message)
        self.code = "PRICE_UNAVAILABLE"


class ExecutionError(AppException):
    """Order placement or position close failed at the brokerage."""
    
    def __init__(self, message: str = "Order execution failed"):
        super().__init__(message=message, code="EXECUTION_ERROR", status_code=502)


class RetryError(AppException):
    """
    Operation failed after all retry attempts.
    
    Attributes:
        attempts: Number of attempts made
        last_error: Exception raised by the final attempt
    """
    
    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[BaseException] = None
    ):
        super().__init__(message=message, code="RETRY_EXHAUSTED", status_code=502)
        self.attempts = attempts
        self.last_error = last_error


# Database Exceptions

class DatabaseError(AppException):
    """Database error."""
    
    def __init__(self, message: str = "Database error"):
        super().__init__(message=message, code="DATABASE_ERROR", status_code=500)
