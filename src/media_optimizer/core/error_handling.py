# src/media_optimizer/core/error_handling.py

import asyncio
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    List,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

from .logging_config import get_logger

T = TypeVar("T")

SleepFunction = Callable[[float], Awaitable[Any]]


@dataclass
class RetryOutcome(Generic[T]):
    """What a retried operation ended with."""

    success: bool
    value: Optional[T] = None
    attempts: int = 0
    delays: List[float] = field(default_factory=list)
    last_error: Optional[BaseException] = None


def backoff_delay(attempt: int, base_delay: float, backoff_factor: float = 2.0) -> float:
    """Delay to wait after failed attempt number ``attempt`` (1-based)."""
    return base_delay * (backoff_factor ** (attempt - 1))


def _always(_: Any) -> bool:
    return True


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    base_delay: float,
    is_success: Callable[[T], bool] = _always,
    backoff_factor: float = 2.0,
    error_base_delay: Optional[float] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: SleepFunction = asyncio.sleep,
    description: str = "operation",
    logger: Any = None,
) -> RetryOutcome[T]:
    """
    Run ``operation`` until ``is_success`` accepts its result.

    The operation receives the 1-based attempt number. A result rejected by
    ``is_success`` and an exception listed in ``retry_on`` both count as a
    failed attempt. After a failed attempt (except the last) the loop sleeps
    ``base * backoff_factor ** (attempt - 1)``, where ``base`` is
    ``error_base_delay`` after an exception and ``base_delay`` otherwise.
    Exceptions outside ``retry_on`` propagate.

    Returns:
        RetryOutcome with the accepted value, or the last rejected value and
        last error once ``max_attempts`` is exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if logger is None:
        logger = get_logger("media-optimizer.retry")

    delays: List[float] = []
    last_value: Optional[T] = None
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        raised = False
        try:
            value = await operation(attempt)
        except retry_on as exc:
            raised = True
            last_error = exc
            logger.debug(
                f"{description} raised on attempt {attempt}/{max_attempts}: {exc}"
            )
        else:
            if is_success(value):
                return RetryOutcome(
                    success=True, value=value, attempts=attempt, delays=delays
                )
            last_value = value
            last_error = None
            logger.debug(
                f"{description} not accepted on attempt {attempt}/{max_attempts}"
            )

        if attempt < max_attempts:
            base = base_delay
            if raised and error_base_delay is not None:
                base = error_base_delay
            delay = backoff_delay(attempt, base, backoff_factor)
            delays.append(delay)
            await sleep(delay)

    return RetryOutcome(
        success=False,
        value=last_value,
        attempts=max_attempts,
        delays=delays,
        last_error=last_error,
    )
