"""
Retry schedule for failed deliveries.

delay(attempts) = min(base * multiplier^(attempts - 1), max_delay)

With the defaults (30s, x4, 2h cap) attempts 1..5 wait
30s, 2min, 8min, 32min and 2h.
"""
from datetime import datetime, timedelta

from django.conf import settings


def delay_seconds(attempts: int) -> int:
    """
    Seconds to wait before the next attempt.

    Args:
        attempts: Attempts made so far, counting the failure just recorded

    Returns:
        Delay in seconds, never above WEBHOOK_RETRY_MAX_DELAY_SECONDS
    """
    base = getattr(settings, 'WEBHOOK_RETRY_BASE_DELAY_SECONDS', 30)
    multiplier = getattr(settings, 'WEBHOOK_RETRY_MULTIPLIER', 4)
    max_delay = getattr(settings, 'WEBHOOK_RETRY_MAX_DELAY_SECONDS', 7200)

    exponent = max(attempts, 1) - 1
    if multiplier <= 1:
        return min(base, max_delay)
    delay = base
    for _ in range(exponent):
        delay *= multiplier
        if delay >= max_delay:
            return max_delay
    return min(delay, max_delay)


def next_retry_time(attempts: int, now: datetime) -> datetime:
    return now + timedelta(seconds=delay_seconds(attempts))
