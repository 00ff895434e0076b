# core/timewindow.py
"""
Calendar arithmetic for challenge windows.

Everything here is a pure function of its arguments. A challenge runs on
whole calendar days: it is active from ``start_date`` through ``end_date``
inclusive, where ``end_date = start_date + duration days``.
"""
import enum
from datetime import date, datetime, timedelta, timezone
from typing import Union

DateLike = Union[date, datetime, str]


class ChallengeStatus(str, enum.Enum):
    upcoming = "upcoming"
    active = "active"
    ended = "ended"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_date(value: DateLike) -> date:
    """
    Normalize a date, datetime or ISO-8601 string to a calendar date.

    Raises:
        ValueError: If a string cannot be parsed
        TypeError: If the value is of an unsupported type
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    raise TypeError(f"Unsupported date value: {value!r}")


def compute_end_date(start_date: date, duration: int) -> date:
    return start_date + timedelta(days=duration)


def challenge_status(start_date: date, end_date: date, now: DateLike) -> ChallengeStatus:
    today = as_date(now)
    if today < start_date:
        return ChallengeStatus.upcoming
    if today > end_date:
        return ChallengeStatus.ended
    return ChallengeStatus.active


def days_remaining(end_date: date, now: DateLike) -> int:
    """Whole days left until ``end_date``, never negative."""
    return max(0, (end_date - as_date(now)).days)


def day_of_challenge(start_date: date, on: DateLike) -> int:
    """1-based day index of ``on`` within a challenge starting ``start_date``."""
    return (as_date(on) - start_date).days + 1


def date_for_day(start_date: date, day: int) -> date:
    """Calendar date of the 1-based ``day`` of a challenge."""
    return start_date + timedelta(days=day - 1)
