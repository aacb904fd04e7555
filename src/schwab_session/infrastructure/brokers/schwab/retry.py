"""RetryPolicy - bounded attempts with a fixed, cancellable backoff"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from loguru import logger

from schwab_session.core.config import RetryConfig

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry loop parameters for the authenticating transports

    The sleep callable is injectable so tests can skip real delays. Waits
    run on asyncio.sleep by default, so cancelling the calling task aborts
    the wait and propagates CancelledError to the caller.
    """

    max_attempts: int = 3
    interval_seconds: float = 2.0
    sleep: Sleep = field(default=asyncio.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        """Build a policy from loaded configuration"""
        return cls(
            max_attempts=config.max_attempts,
            interval_seconds=config.interval_seconds,
        )

    def is_last(self, attempt: int) -> bool:
        """True when no attempt follows this one"""
        return attempt >= self.max_attempts - 1

    async def wait(self, attempt: int) -> None:
        """Back off before the attempt following ``attempt``"""
        logger.info(
            f"Retrying in {self.interval_seconds:.2f}s "
            f"(attempt {attempt + 2}/{self.max_attempts})"
        )
        await self.sleep(self.interval_seconds)
