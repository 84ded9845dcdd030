"""
Retry policy value object and a generic async retry helper.

Used by the two flows that retry automatically: the remote relay
directory fetch
([RelayDirectory.refresh()][georelay.services.directory.service.RelayDirectory.refresh])
and the geolocation-based connect
([ConnectionManager.connect_nearby()][georelay.services.manager.service.ConnectionManager.connect_nearby]).
Every other failure in the engine degrades gracefully instead of retrying.

Examples:
    ```python
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0)
    policy.delays()  # [1.0, 2.0]

    text = await retry_async(lambda: fetch_text(url), policy, retry_on=(OSError,))
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .logger import Logger


T = TypeVar("T")

logger = Logger("georelay.retry")


class RetryPolicy(BaseModel):
    """Exponential backoff between a bounded number of attempts.

    The delay before retry ``n`` (0-based) is
    ``base_delay * multiplier ** n``, capped at ``max_delay``.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Delay in seconds before the first retry.
        multiplier: Growth factor per retry (1.0 gives a constant delay).
        max_delay: Upper bound for any single delay.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, le=20, description="Total attempts")
    base_delay: float = Field(default=1.0, ge=0.0, description="First retry delay (s)")
    multiplier: float = Field(default=2.0, ge=1.0, description="Backoff growth factor")
    max_delay: float = Field(default=60.0, ge=0.0, description="Maximum single delay (s)")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        """Ensure max_delay >= base_delay."""
        base_delay = info.data.get("base_delay", 1.0)
        if v < base_delay:
            raise ValueError(f"max_delay ({v}) must be >= base_delay ({base_delay})")
        return v

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before retry number ``retry`` (0-based)."""
        return float(min(self.base_delay * self.multiplier**retry, self.max_delay))

    def delays(self) -> list[float]:
        """All delays the policy will wait, in order."""
        return [self.delay_for(i) for i in range(self.max_attempts - 1)]


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    name: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds or the policy is exhausted.

    Only exceptions matching ``retry_on`` are retried; anything else
    propagates immediately, as does ``asyncio.CancelledError``.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per attempt.
        policy: Attempt count and backoff.
        retry_on: Exception types that trigger another attempt.
        name: Label used in log fields.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        The first successful result.

    Raises:
        The last exception raised by ``operation`` once all attempts failed.
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except retry_on as e:
            if attempt + 1 >= policy.max_attempts:
                logger.warning(
                    "retry_exhausted",
                    operation=name,
                    attempts=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            delay = policy.delay_for(attempt)
            logger.info(
                "retry_scheduled",
                operation=name,
                attempt=attempt + 1,
                delay=delay,
                error=str(e),
            )
            await sleep(delay)

    raise AssertionError("unreachable: max_attempts >= 1")
