"""Reconnect delays: exponential growth with full jitter."""
import random
from typing import Callable


def full_jitter_delay(attempt: int, base: float = 1.0, cap: float = 30.0,
                      rng: Callable[[], float] = random.random) -> float:
    """Uniform delay in ``[0, min(cap, base * 2**attempt))``."""
    return rng() * min(cap, base * (2 ** max(0, attempt)))


class Backoff:
    """Counts consecutive failures and hands out the next delay."""

    def __init__(self, base: float = 1.0, cap: float = 30.0, rng: Callable[[], float] = random.random) -> None:
        if base <= 0 or cap < base:
            raise ValueError("backoff requires 0 < base <= cap")
        self.base = base
        self.cap = cap
        self._rng = rng
        self._attempt = 0

    @property
    def attempt(self) -> int:
        return self._attempt

    def next_delay(self) -> float:
        delay = full_jitter_delay(self._attempt, self.base, self.cap, self._rng)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0
