"""
Backoff schedules for retry loops.

Two flavours are used in the relay:
- ExponentialBackoff: open-ended, jittered, for consumers reconnecting
  after transient Redis failures.
- DelaySchedule: a fixed, bounded table of delays (e.g. 1s, 5s, 15s) for
  hub handshakes, where the schedule itself is configuration.
"""

import random
from collections.abc import Iterator, Sequence


class ExponentialBackoff:
    """
    Exponential backoff with jitter.

    Computes delays as: min(base * multiplier^attempt, max_delay) +/- jitter.
    Call reset() after a successful operation to zero the attempt counter.

    Usage:
        backoff = ExponentialBackoff(base_delay=1.0, max_delay=60.0)
        while True:
            try:
                await read_stream()
                backoff.reset()
            except Exception:
                await asyncio.sleep(backoff.next_delay())
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter_range: float = 0.5,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter_range = jitter_range
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Current attempt count."""
        return self._attempt

    def next_delay(self) -> float:
        """Return the next delay and advance the attempt counter."""
        delay = min(
            self.base_delay * (self.multiplier ** self._attempt),
            self.max_delay,
        )
        jitter = delay * random.uniform(-self.jitter_range, self.jitter_range)
        self._attempt += 1
        return max(0.0, delay + jitter)

    def reset(self) -> None:
        """Reset the attempt counter after a successful operation."""
        self._attempt = 0


class DelaySchedule:
    """
    Bounded retry schedule backed by a delay table.

    ``max_retries`` retries follow the first attempt; retry n waits
    ``delays[n]``, reusing the last entry when the table is shorter.

    Usage:
        schedule = DelaySchedule([1.0, 5.0, 15.0], max_retries=3)
        for attempt, delay in schedule:
            if delay:
                await asyncio.sleep(delay)
            ...
    """

    def __init__(self, delays: Sequence[float], max_retries: int):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if max_retries and not delays:
            raise ValueError("delays must not be empty when retries are allowed")
        self._delays = list(delays)
        self._max_retries = max_retries

    @property
    def max_attempts(self) -> int:
        """Total attempts, first one included."""
        return self._max_retries + 1

    def delay_before(self, attempt: int) -> float:
        """Delay to wait before ``attempt`` (0 = first attempt, no wait)."""
        if attempt <= 0:
            return 0.0
        index = min(attempt - 1, len(self._delays) - 1)
        return self._delays[index]

    def __iter__(self) -> Iterator[tuple[int, float]]:
        for attempt in range(self.max_attempts):
            yield attempt, self.delay_before(attempt)
