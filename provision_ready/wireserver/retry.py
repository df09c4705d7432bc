"""Exponential backoff around a Result-returning operation."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from provision_ready.config.settings import RetryConfig
from provision_ready.utils.logging import get_logger
from provision_ready.utils.result import Result, is_retryable

logger = get_logger("wireserver.retry")

T = TypeVar("T")
E = TypeVar("E")


def retry(
    operation: Callable[[], Result[T, E]],
    *,
    initial_delay: float = 2.0,
    max_delay: float = 120.0,
    backoff_factor: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "",
) -> Result[T, E]:
    """
    Run ``operation`` until it succeeds or the backoff ceiling is reached.

    The delay starts at ``initial_delay`` and is multiplied by
    ``backoff_factor`` after every sleep. Once the delay for the next attempt
    would exceed ``max_delay`` the last failure is returned unchanged.
    Errors that are not retryable are returned after a single attempt.

    Args:
        operation: Zero-argument callable returning Ok or Err
        initial_delay: First sleep in seconds
        max_delay: Ceiling on the sleep interval in seconds
        backoff_factor: Growth of the interval between attempts
        sleep: Sleep function (injected by tests)
        description: Operation name for logs

    Returns:
        The first Ok, or the final Err
    """
    delay = initial_delay
    attempt = 0

    while True:
        attempt += 1
        result = operation()
        if result.is_ok():
            if attempt > 1:
                logger.info("retry_succeeded", operation=description, attempts=attempt)
            return result

        error = result.unwrap_err()
        if not is_retryable(error):
            return result

        if delay > max_delay:
            logger.error(
                "retry_limit_exceeded",
                operation=description,
                attempts=attempt,
                error=str(error),
            )
            return result

        logger.warning(
            "attempt_failed",
            operation=description,
            attempt=attempt,
            error=str(error),
            retry_in_seconds=delay,
        )
        sleep(delay)
        delay *= backoff_factor


def retry_with_config(
    operation: Callable[[], Result[T, E]],
    config: RetryConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "",
) -> Result[T, E]:
    """Run :func:`retry` with the backoff parameters from ``config``."""
    return retry(
        operation,
        initial_delay=config.initial_delay,
        max_delay=config.max_delay,
        backoff_factor=config.backoff_factor,
        sleep=sleep,
        description=description,
    )
