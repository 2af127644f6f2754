"""Bounded retry with a fixed delay between attempts."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, Generic, TypeVar

import structlog

from .errors import RetryExhaustedError

log = structlog.stdlib.get_logger()

T = TypeVar("T")

Operation = Callable[[], T | Awaitable[T]]
SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryOptions(Generic[T]):
    """Schedule and observer hooks for one retried operation.

    Delays are in seconds. ``on_error`` receives ``(will_retry, error)`` after
    every failed attempt; ``will_retry`` is False only for the final one.
    """
    retries: int = 3
    retry_delay: float = 1.0
    initial_delay: float = 0.0
    on_success: Callable[[T], None] | None = None
    on_error: Callable[[bool, Exception], None] | None = None


class RetryExecutor:
    """Runs a fallible operation until it succeeds or the retries run out."""

    def __init__(self, sleep: SleepFunc = asyncio.sleep) -> None:
        self._sleep = sleep

    async def execute(self, operation: Operation[T], options: RetryOptions[T] | None = None) -> T:
        """Run ``operation`` with the given retry schedule.

        Args:
            operation: Zero-argument callable returning a value or an awaitable
            options: Retry schedule and hooks (defaults apply when omitted)

        Returns:
            The value produced by the first successful attempt

        Raises:
            RetryExhaustedError: After ``retries + 1`` failed attempts
        """
        options = options or RetryOptions()
        errors: list[Exception] = []

        await self._sleep(options.initial_delay)
        while True:
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                errors.append(e)
                will_retry = len(errors) <= options.retries
                log.debug(
                    "Attempt failed",
                    attempt=len(errors),
                    max_attempts=options.retries + 1,
                    will_retry=will_retry,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if options.on_error is not None:
                    options.on_error(will_retry, e)
                if not will_retry:
                    raise RetryExhaustedError(errors) from e
            else:
                if options.on_success is not None:
                    options.on_success(result)
                return result

            await self._sleep(options.retry_delay)


async def retry(
    operation: Operation[T],
    options: RetryOptions[T] | None = None,
    sleep: SleepFunc = asyncio.sleep,
    **overrides: Any,
) -> T:
    """Convenience wrapper around :class:`RetryExecutor`.

    Keyword overrides replace individual fields of ``options``::

        await retry(fetch, retries=2, retry_delay=10.0)
    """
    options = options or RetryOptions()
    if overrides:
        options = replace(options, **overrides)
    return await RetryExecutor(sleep=sleep).execute(operation, options)
