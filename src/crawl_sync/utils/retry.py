"""Retry configuration built on tenacity."""
from typing import Optional
import logging
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from ..core.logging import logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        min_wait: float = 1.0,
        max_wait: float = 60.0,
        backoff_multiplier: float = 2.0,
        retry_exceptions: Optional[tuple] = None
    ):
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.backoff_multiplier = backoff_multiplier
        self.retry_exceptions = retry_exceptions or (Exception,)

    def async_retrying(self) -> AsyncRetrying:
        """
        Build a tenacity AsyncRetrying for this configuration.

        Usage::

            async for attempt in config.async_retrying():
                with attempt:
                    ...
        """
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_multiplier,
                min=self.min_wait,
                max=self.max_wait
            ),
            retry=retry_if_exception_type(self.retry_exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )
