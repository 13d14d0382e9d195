# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Reconnect strategies for the WebSocket connection manager.

The connection manager asks a strategy two questions after every lost or
failed connection: may another attempt be made, and how long to wait before
it. Fixed-interval and exponential backoff share one interface so callers
(and tests) can swap timing without touching the state machine.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class RetryContext:
    """State of a reconnect sequence.

    ``attempt`` counts reconnect attempts already scheduled in the current
    sequence; it goes back to zero after a successful connect.
    """

    attempt: int = 0
    last_exception: Optional[BaseException] = None
    total_delay: float = 0.0

    def record_exception(self, exc: Optional[BaseException]) -> None:
        self.last_exception = exc

    def record_delay(self, delay: float) -> None:
        self.total_delay += delay

    def reset(self) -> None:
        """Start a fresh sequence (called on successful connect)."""
        self.attempt = 0
        self.total_delay = 0.0
        self.last_exception = None


class BaseRetryStrategy(ABC):
    """Abstract base class for reconnect strategies."""

    max_attempts: int

    @abstractmethod
    def should_retry(self, context: RetryContext) -> bool:
        """Determine if another attempt should be made.

        Args:
            context: Current retry context with attempt info

        Returns:
            True if should retry, False to give up
        """

    @abstractmethod
    def get_delay(self, context: RetryContext) -> float:
        """Delay in seconds before the attempt numbered ``context.attempt``."""


class FixedDelayStrategy(BaseRetryStrategy):
    """Fixed delay between attempts - no backoff.

    This is the default: the same interval is waited before every attempt
    until ``max_attempts`` is reached.
    """

    def __init__(self, max_attempts: int = 10, delay: float = 5.0):
        """Initialize fixed delay strategy.

        Args:
            max_attempts: Maximum number of reconnect attempts
            delay: Fixed delay between attempts in seconds
        """
        self.max_attempts = max_attempts
        self.delay = delay

    def should_retry(self, context: RetryContext) -> bool:
        return context.attempt < self.max_attempts

    def get_delay(self, context: RetryContext) -> float:
        return self.delay


class ExponentialBackoffStrategy(BaseRetryStrategy):
    """Exponential backoff with optional jitter.

    Delay formula: min(max_delay, base_delay * multiplier ** (attempt - 1)) * (1 +/- jitter)
    """

    def __init__(
        self,
        max_attempts: int = 10,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter: float = 0.0,
    ):
        """Initialize exponential backoff strategy.

        Args:
            max_attempts: Maximum number of reconnect attempts
            base_delay: Delay before the first attempt in seconds
            max_delay: Maximum delay cap in seconds
            multiplier: Exponential multiplier (default 2.0 = doubling)
            jitter: Random jitter factor (0.1 = +/-10% randomness)
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter = jitter

    def should_retry(self, context: RetryContext) -> bool:
        return context.attempt < self.max_attempts

    def get_delay(self, context: RetryContext) -> float:
        exponent = max(0, context.attempt - 1)
        delay = min(self.base_delay * (self.multiplier**exponent), self.max_delay)

        if self.jitter > 0:
            jitter_amount = delay * self.jitter
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)


def create_strategy(
    name: str,
    max_attempts: int = 10,
    interval: float = 5.0,
    max_delay: float = 60.0,
) -> BaseRetryStrategy:
    """Build a strategy from its configuration name.

    Args:
        name: ``"fixed"`` or ``"exponential"``
        max_attempts: Attempt bound shared by both strategies
        interval: Fixed delay, or the base delay for exponential backoff
        max_delay: Cap for exponential backoff

    Raises:
        ValueError: If the name is unknown
    """
    normalized = name.strip().lower()
    if normalized == "fixed":
        return FixedDelayStrategy(max_attempts=max_attempts, delay=interval)
    if normalized == "exponential":
        return ExponentialBackoffStrategy(
            max_attempts=max_attempts, base_delay=interval, max_delay=max_delay
        )
    raise ValueError(f"Unknown reconnect strategy: {name!r} (expected 'fixed' or 'exponential')")
