"""
Retry utility for handling transient failures.
"""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from stopguard.shared.exceptions import RetryError
from stopguard.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: str = "exponential",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
) -> T:
    """
    Retry an async operation with backoff.
    
    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Total attempts, including the first
        delay: Base wait in seconds
        backoff: "exponential" (delay * 2^(n-1)) or "linear" (delay * n)
        retry_on: Exception types that trigger another attempt
        
    Returns:
        The operation's result
        
    Raises:
        RetryError: If all attempts fail (wraps the last error)
    """
    last_error: BaseException | None = None
    
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            last_error = e
            
            if attempt == max_attempts:
                break
            
            wait_time = delay * (2 ** (attempt - 1)) if backoff == "exponential" else delay * attempt
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed: {e}; retrying in {wait_time:.2f}s"
            )
            await asyncio.sleep(wait_time)
    
    raise RetryError(
        f"Operation failed after {max_attempts} attempts: {last_error}",
        attempts=max_attempts,
        last_error=last_error,
    )
