"""
Server-side exam clock.

Everything is derived from the attempt's fixed ``started_at`` and the exam's
duration; the client countdown is advisory and resyncs from ``remaining``.
"""
import math
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone


def deadline(duration_minutes: int, started_at: datetime) -> datetime:
    return started_at + timedelta(minutes=duration_minutes)


def remaining(duration_minutes: int, started_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole seconds left before the deadline, floored at zero."""
    now = now or timezone.now()
    left = (deadline(duration_minutes, started_at) - now).total_seconds()
    return max(0, math.floor(left))


def is_past_deadline(duration_minutes: int, started_at: datetime, now: Optional[datetime] = None) -> bool:
    now = now or timezone.now()
    return now > deadline(duration_minutes, started_at)
