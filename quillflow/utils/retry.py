from __future__ import annotations

import random


def compute_backoff(
    attempt: int, initial: float = 5.0, factor: float = 2.0, jitter: float = 0.0
) -> float:
    """Compute exponential backoff with optional jitter.

    ``attempt`` is the 1-based attempt that just failed, so the first retry
    waits ``initial`` seconds.
    """
    delay = initial * factor ** max(0, attempt - 1)
    if jitter:
        delay += random.uniform(0, jitter)
    return delay
