"""
Retry orchestration for outbound Notion API calls.

This module provides:
- RetryPolicy with capped exponential backoff
- RetryOrchestrator, which gates every attempt through the shared
  TokenBucket and dispatches failures on their ErrorKind
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .errors import ErrorKind, classify_error
from .rate_limiter import Clock, TokenBucket
from .usage import UsageTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry limits and delays.

    Attributes:
        max_retries: Retries after the first attempt
        base_delay: Backoff base in seconds
        max_delay: Backoff ceiling in seconds
        default_retry_after: Wait for a 429 without a Retry-After header
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    default_retry_after: float = 60.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )

    def backoff(self, attempt: int) -> float:
        """
        Calculate the exponential backoff before the next attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            min(base_delay * 2^attempt, max_delay)
        """
        return min(self.base_delay * (2 ** attempt), self.max_delay)


class RetryOrchestrator:
    """
    Runs a zero-argument operation with admission control and retries.

    Error handling per attempt:
    - client_error / local_error: raised immediately
    - rate_limited: wait the server's Retry-After, then retry
    - server_error / unknown: capped exponential backoff, then retry

    Every retry, including rate-limit retries, counts against max_retries,
    so the operation is invoked at most max_retries + 1 times.
    """

    def __init__(
        self,
        rate_limiter: Optional[TokenBucket] = None,
        policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        usage: Optional[UsageTracker] = None
    ):
        self.clock = clock or Clock()
        self.rate_limiter = rate_limiter or TokenBucket(clock=self.clock)
        self.policy = policy or RetryPolicy()
        self.usage = usage

    def run(
        self,
        operation: Callable[[], T],
        max_retries: Optional[int] = None,
        operation_name: str = "API call"
    ) -> T:
        """
        Execute ``operation`` with rate limiting and retries.

        Args:
            operation: Callable performing a single remote request
            max_retries: Override for the policy's max_retries
            operation_name: Label used in log messages

        Returns:
            The operation's result

        Raises:
            The last exception raised by the operation, unchanged
        """
        if max_retries is None:
            max_retries = self.policy.max_retries

        attempt = 0
        while True:
            self.rate_limiter.acquire()
            if self.usage is not None:
                self.usage.record()

            try:
                return operation()
            except Exception as error:
                kind, retry_after = classify_error(error)

                if kind in (ErrorKind.CLIENT_ERROR, ErrorKind.LOCAL_ERROR):
                    logger.debug(f"{operation_name} failed permanently: {error}")
                    raise

                if attempt >= max_retries:
                    logger.warning(
                        f"{operation_name} failed after {attempt + 1} attempts: {error}"
                    )
                    raise

                if kind is ErrorKind.RATE_LIMITED:
                    delay = (
                        retry_after
                        if retry_after is not None
                        else self.policy.default_retry_after
                    )
                    logger.warning(
                        f"Rate limited on {operation_name}. "
                        f"Waiting {delay:.2f}s before retry {attempt + 1}"
                    )
                else:
                    delay = self.policy.backoff(attempt)
                    logger.warning(
                        f"{kind.value} on {operation_name}: {error}. "
                        f"Waiting {delay:.2f}s before retry {attempt + 1}"
                    )

                self.clock.sleep(delay)
                attempt += 1
