import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from services.cancellation import CancellationToken
from services.llm_errors import error_message, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY = 1.0
DEFAULT_BACKOFF_FACTOR = 2.0


def _retry_delay(base_delay: float, backoff_factor: float, attempt: int) -> float:
    return base_delay * (backoff_factor ** attempt)


async def _sleep_for_retry(delay: float, token: Optional[CancellationToken]) -> None:
    if token is None:
        await asyncio.sleep(delay)
    else:
        await token.sleep(delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    token: Optional[CancellationToken] = None,
) -> T:
    """Run ``operation`` with exponential backoff on retryable failures.

    Terminal errors (authentication, bad request, content safety, validation)
    are raised on the first occurrence. ``asyncio.CancelledError`` is never
    caught here, so cancellation short-circuits both the attempt and any
    pending backoff delay.
    """
    attempts = max(1, max_attempts)
    for attempt in range(attempts):
        if token is not None:
            token.raise_if_cancelled()
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt == attempts - 1:
                raise
            delay = _retry_delay(base_delay, backoff_factor, attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{attempts} failed. Retrying in {delay:.1f}s... "
                f"Error: {error_message(e)}"
            )
            await _sleep_for_retry(delay, token)
    raise RuntimeError("with_retry exhausted without result")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        token: Optional[CancellationToken] = None,
    ) -> T:
        return await with_retry(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            backoff_factor=self.backoff_factor,
            token=token,
        )
