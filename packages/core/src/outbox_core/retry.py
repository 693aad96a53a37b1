"""RetryPolicy — backoff between failed dispatch cycles."""

from __future__ import annotations

import random


class RetryPolicy:
    """Exponential backoff with an upper bound and optional jitter.

    No attempt limit: envelopes are never discarded, so once the cap is
    reached the dispatcher keeps retrying every ``max_delay`` seconds.
    """

    def __init__(
        self,
        *,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter: bool = True,
    ) -> None:
        """Configure retry behavior.

        Args:
            base_delay: Delay in seconds after the first failed cycle.
            max_delay: Cap on delay in seconds.
            multiplier: Growth factor per consecutive failure.
            jitter: If True, scale delays by a random factor in [0.5, 1.5).
        """
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter = jitter

    def delay_for_attempt(self, attempt: int) -> float:
        """Return delay in seconds after the given 1-based consecutive failure.

        ``base_delay * multiplier ** (attempt - 1)``, capped by ``max_delay``.
        """
        if attempt < 1:
            return 0.0
        try:
            raw = self.base_delay * (self.multiplier ** (attempt - 1))
        except OverflowError:
            raw = self.max_delay
        delay = min(raw, self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())  # noqa: S311
        return float(max(0.0, delay))

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(base_delay={self.base_delay}, max_delay={self.max_delay}, "
            f"multiplier={self.multiplier}, jitter={self.jitter})"
        )


__all__ = ["RetryPolicy"]
