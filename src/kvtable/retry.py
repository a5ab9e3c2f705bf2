from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from .errors import TransientStoreError, ValidationError

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 5
    initial_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValidationError("max_retries must be >= 0")
        if self.initial_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValidationError("retry delays must be >= 0")
        if self.backoff_factor < 1:
            raise ValidationError("backoff_factor must be >= 1")

    def delay_for(self, attempt: int) -> float:
        seconds = self.initial_delay_seconds * (self.backoff_factor ** (attempt - 1))
        if seconds > self.max_delay_seconds:
            return self.max_delay_seconds
        return seconds


def call_with_retry(
    fn: Callable[[], R],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> R:
    attempt = 0
    while True:
        try:
            return fn()
        except TransientStoreError as err:
            if attempt >= policy.max_retries:
                raise
            attempt += 1
            delay = policy.delay_for(attempt)
            logger.warning("%s; retry %d/%d in %.2fs", err, attempt, policy.max_retries, delay)
            if delay > 0:
                sleep(delay)
