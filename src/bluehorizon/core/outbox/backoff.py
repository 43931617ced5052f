"""Retry delay schedule for queued mutations."""

from datetime import datetime, timedelta

BASE_DELAY_SECONDS = 15
MAX_DELAY_SECONDS = 1800
MAX_EXPONENT = 8


def backoff_seconds(attempts: int) -> int:
    """
    Delay before the next attempt: 15 * 2^attempts seconds, capped at 30 minutes.

    attempts is clamped to [1, 8], giving 30s, 60s, 120s ... 1800s.
    """
    exponent = max(1, min(int(attempts), MAX_EXPONENT))
    return min(BASE_DELAY_SECONDS * 2 ** exponent, MAX_DELAY_SECONDS)


def calculate_next_retry(attempts: int, now: datetime) -> datetime:
    """Calculate next attempt time with exponential backoff."""
    return now + timedelta(seconds=backoff_seconds(attempts))
