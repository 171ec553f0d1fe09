"""Retry utilities for the orchestration engine.

This module provides the exponential backoff schedule used between tool-call
attempts. Delays beyond the end of the schedule reuse its last value.
"""

from typing import Sequence

DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)


def exponential_schedule(
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    steps: int = 3,
    max_delay: float = 60.0,
) -> tuple[float, ...]:
    """Build an exponential backoff schedule.

    Args:
        base_delay: Delay before the first retry in seconds
        exponential_base: Growth factor between consecutive delays
        steps: Number of distinct delays in the schedule
        max_delay: Upper bound for any single delay

    Returns:
        Tuple of delays, e.g. (1.0, 2.0, 4.0)
    """
    if steps < 1:
        raise ValueError("Backoff schedule needs at least one step")
    return tuple(min(base_delay * exponential_base**i, max_delay) for i in range(steps))


def delay_for_attempt(schedule: Sequence[float], attempt: int) -> float:
    """Return the delay to wait after a failed attempt.

    Args:
        schedule: Backoff schedule
        attempt: Zero-based index of the attempt that just failed

    Returns:
        Delay in seconds (0.0 for an empty schedule)
    """
    if not schedule:
        return 0.0
    return float(schedule[min(attempt, len(schedule) - 1)])
