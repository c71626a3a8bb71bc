"""Bounded retry with exponential backoff for ledger calls.

Only failures flagged ``retryable`` (transport errors) are attempted
again. Business rejections such as "asset not found" or "asset already
exists" carry ``retryable = False`` and surface on the first attempt.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Errors without a ``retryable`` flag are treated as transient."""
    return bool(getattr(exc, "retryable", True))


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5  # seconds
    max_delay: float = 10.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True
    retry_on: Tuple[Type[Exception], ...] = (Exception,)
    should_retry: Callable[[BaseException], bool] = is_transient

    def calculate_delay(self, attempt: int) -> float:
        """Backoff after failed ``attempt`` (1-indexed), capped, ±25% jitter."""
        backoff = min(self.max_delay, self.base_delay * self.exponential_base ** (attempt - 1))
        if not self.jitter:
            return backoff
        spread = backoff / 4
        return max(0.0, backoff + random.uniform(-spread, spread))


class RetryExecutor:
    """Calls a function under a :class:`RetryConfig` and counts outcomes."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = config or RetryConfig()
        self._sleep = sleep
        self._calls = 0
        self._attempts = 0
        self._retries = 0
        self._failures = 0

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def stats(self) -> dict:
        return {
            "calls": self._calls,
            "total_attempts": self._attempts,
            "total_retries": self._retries,
            "total_failures": self._failures,
        }

    def execute(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Returns ``func``'s result; re-raises its last error once the
        attempts are used up or as soon as the error is not transient."""
        cfg = self._config
        name = getattr(func, "__name__", "call")
        self._calls += 1
        attempt = 0

        while True:
            attempt += 1
            self._attempts += 1
            try:
                return func(*args, **kwargs)
            except cfg.retry_on as e:
                give_up = not cfg.should_retry(e) or attempt >= cfg.max_attempts
                if give_up:
                    self._failures += 1
                    if cfg.should_retry(e):
                        logger.error("RETRY_EXHAUSTED func=%s attempts=%d err=%s", name, attempt, e)
                    raise

                delay = cfg.calculate_delay(attempt)
                self._retries += 1
                logger.warning(
                    "RETRY func=%s attempt=%d/%d delay=%.2fs err=%s",
                    name, attempt, cfg.max_attempts, delay, e,
                )
                self._sleep(delay)
