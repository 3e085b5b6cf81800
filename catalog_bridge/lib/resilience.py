"""Retry policy for catalog transport calls.

The mapping engine itself never retries. The REST transport wraps each HTTP
call with :func:`retry_operation` so that dropped connections and 5xx
responses are retried a bounded number of times before surfacing.

Implementation: Uses tenacity library internally for retry logic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type

import tenacity
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

__all__ = ["RetryConfig", "retry_operation"]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first (1 = no retry)
        backoff_seconds: Base delay between attempts
        exponential: Double the delay after each failed attempt
        jitter: Add up to 50% random jitter to each delay
    """

    max_attempts: int = 3
    backoff_seconds: float = 1.0
    exponential: bool = True
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds cannot be negative")

    @classmethod
    def none(cls) -> "RetryConfig":
        """No retry - fail immediately."""
        return cls(max_attempts=1)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RetryConfig":
        if not data:
            return cls()
        return cls(
            max_attempts=int(data.get("max_attempts", 3)),
            backoff_seconds=float(data.get("backoff_seconds", 1.0)),
            exponential=bool(data.get("exponential", True)),
            jitter=bool(data.get("jitter", True)),
        )

    def wait_strategy(self) -> wait_base:
        strategy: wait_base
        if self.exponential:
            strategy = tenacity.wait_exponential(
                multiplier=self.backoff_seconds, min=self.backoff_seconds
            )
        else:
            strategy = tenacity.wait_fixed(self.backoff_seconds)
        if self.jitter:
            strategy = strategy + tenacity.wait_random(0, self.backoff_seconds * 0.5)
        return strategy


def retry_operation(
    operation: Callable[[], Any],
    config: RetryConfig,
    operation_name: str = "catalog request",
    retry_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Any:
    """Execute an operation, retrying on the given exception types.

    Args:
        operation: Callable to execute
        config: Retry configuration
        operation_name: Name for logging
        retry_exceptions: Exception types worth another attempt

    Returns:
        Result of the operation

    Example:
        page = retry_operation(
            lambda: session.post(url, json=payload),
            RetryConfig(),
            "catalog search",
        )
    """

    def before_sleep_handler(retry_state: tenacity.RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
            operation_name,
            retry_state.attempt_number,
            config.max_attempts,
            exception,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    retryer = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=tenacity.retry_if_exception_type(retry_exceptions),
        before_sleep=before_sleep_handler,
        reraise=True,
    )

    try:
        return retryer(operation)
    except retry_exceptions:
        if config.max_attempts > 1:
            logger.error("%s failed after %d attempts", operation_name, config.max_attempts)
        raise
