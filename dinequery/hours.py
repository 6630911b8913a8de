"""Opening-hours state computation.

Weekly periods use day 0 = Monday and "HHMM" times. A period whose
close day differs from its open day spans midnight.
"""

from datetime import datetime
from typing import Iterable
from zoneinfo import ZoneInfo

import structlog
from pydantic import ValidationError

from dinequery.config import get_settings
from dinequery.models.domain import (
    OpeningHours,
    OpeningPeriod,
    OpeningTime,
    OpenState,
    Restaurant,
    WorkingDayOverride,
)

logger = structlog.get_logger()
settings = get_settings()


def _hhmm(value: str | None) -> int | None:
    """Parse "HHMM" or "HH:MM" into an int like 1430."""
    if value is None:
        return None
    digits = value.replace(":", "").strip()
    if not digits.isdigit() or len(digits) not in (3, 4):
        return None
    number = int(digits)
    if number // 100 > 24 or number % 100 > 59:
        return None
    return number


def format_hhmm(value: int | None) -> str | None:
    if value is None:
        return None
    return f"{value // 100:02d}:{value % 100:02d}"


def _coerce_hours(opening_hours: OpeningHours | dict | None) -> OpeningHours | None:
    if opening_hours is None or isinstance(opening_hours, OpeningHours):
        return opening_hours
    try:
        return OpeningHours.model_validate(opening_hours)
    except ValidationError as e:
        logger.warning("opening_hours_invalid", error=str(e))
        return None


def _flatten(periods: Iterable[OpeningPeriod]) -> list[tuple[int, int, int, int]]:
    """Expand shifts and drop blank periods.

    Returns:
        List of (open_day, open_time, close_day, close_time)
    """
    flat: list[tuple[int, int, int, int]] = []
    for period in periods:
        candidates = [period, *period.shifts] if period.shifts else [period]
        for p in candidates:
            if p.open is None or p.close is None:
                continue
            open_t, close_t = _hhmm(p.open.time), _hhmm(p.close.time)
            if open_t is None or close_t is None:
                continue
            flat.append((p.open.day, open_t, p.close.day, close_t))
    return flat


def _override_periods(override: WorkingDayOverride, day: int) -> list[tuple[int, int, int, int]]:
    if override.closed:
        return []
    open_t, close_t = _hhmm(override.open), _hhmm(override.close)
    if open_t is None or close_t is None:
        return []
    close_day = (day + override.close_day_offset) % 7
    return [(day, open_t, close_day, close_t)]


def _is_within(day: int, t: int, period: tuple[int, int, int, int]) -> bool:
    open_day, open_t, close_day, close_t = period
    if open_day == close_day:
        return day == open_day and open_t <= t < close_t
    return (
        (day == open_day and t >= open_t)
        or (day == close_day and t < close_t)
        or (open_day < day < close_day)
        or (open_day > close_day and (day > open_day or day < close_day))
    )


def compute_open_state(
    opening_hours: OpeningHours | dict | None,
    at: datetime,
    tz: str | None = None,
    overrides: dict[str, WorkingDayOverride] | None = None,
) -> OpenState:
    """Compute open/closed/undefined state at an instant.

    Args:
        opening_hours: Weekly schedule, raw dict or model
        at: Target instant; naive datetimes are taken as local time in ``tz``
        tz: IANA zone; defaults to the configured zone
        overrides: Date-specific schedules keyed "YYYY-MM-DD"

    Returns:
        OpenState. ``undefined`` means the schedule is unknown, which is
        not the same as closed.
    """
    zone = ZoneInfo(tz or settings.timezone)
    local = at.replace(tzinfo=zone) if at.tzinfo is None else at.astimezone(zone)
    day = local.weekday()
    t = local.hour * 100 + local.minute

    hours = _coerce_hours(opening_hours)
    weekly = _flatten(hours.periods) if hours else []

    override = (overrides or {}).get(local.date().isoformat())
    if override is not None:
        # the override replaces entries opening on this date; spill-over from yesterday stays
        periods = [p for p in weekly if p[0] != day] + _override_periods(override, day)
    else:
        if not weekly:
            return OpenState(state="undefined")
        periods = weekly

    for period in periods:
        if _is_within(day, t, period):
            return OpenState(state="open", closes_at=format_hhmm(period[3]))

    later_today = sorted(p for p in periods if p[0] == day and p[1] > t)
    if later_today:
        _, open_t, _, close_t = later_today[0]
        return OpenState(state="closed", opens_at=format_hhmm(open_t), closes_at=format_hhmm(close_t))
    return OpenState(state="closed")


def restaurant_open_state(restaurant: Restaurant, at: datetime, tz: str | None = None) -> OpenState:
    return compute_open_state(restaurant.opening_hours, at, tz, restaurant.custom_working_days)


def filter_open(
    restaurants: Iterable[Restaurant],
    at: datetime,
    tz: str | None = None,
) -> list[tuple[Restaurant, OpenState]]:
    """Keep restaurants that are open at ``at``, paired with their state."""
    selected = []
    for restaurant in restaurants:
        state = restaurant_open_state(restaurant, at, tz)
        if state.state == "open":
            selected.append((restaurant, state))
    return selected


def weekly_period(open_day: int, open_time: str, close_day: int, close_time: str) -> OpeningPeriod:
    """Build a period from plain values."""
    return OpeningPeriod(
        open=OpeningTime(day=open_day, time=open_time),
        close=OpeningTime(day=close_day, time=close_time),
    )


def week_schedule(days: Iterable[int], open_time: str, close_time: str) -> OpeningHours:
    """Same hours on each of ``days``; closing at or before opening spills into the next day."""
    periods = []
    for d in days:
        close_day = (d + 1) % 7 if _hhmm(close_time) <= _hhmm(open_time) else d
        periods.append(weekly_period(d, open_time, close_day, close_time))
    return OpeningHours(periods=periods)
